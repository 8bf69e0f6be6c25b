"""
Coh Music Site - Shared Utilities

Common helpers used across multiple modules to avoid duplication.
"""

import json
from typing import Any, Dict, List

from pydantic.alias_generators import to_camel


def camelize(row: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of a database row with camelCase keys for the JSON API."""
    return {to_camel(key): value for key, value in row.items()}


def parse_json_list(raw: Any) -> List[Any]:
    """
    Safely parse a value that may be a JSON array string or already a list.

    Returns a list in all cases (empty list on parse failure).
    """
    if isinstance(raw, list):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def parse_tags(raw: Any) -> List[str]:
    """Parse a tags value into a list of unique, non-empty strings.

    Accepts a list, a JSON string, or ``None``.  Non-string entries are
    dropped; order of first appearance is kept.
    """
    seen: set[str] = set()
    out: List[str] = []
    for t in parse_json_list(raw):
        if not isinstance(t, str):
            continue
        t_clean = t.strip()
        if t_clean and t_clean not in seen:
            seen.add(t_clean)
            out.append(t_clean)
    return out

