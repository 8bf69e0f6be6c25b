"""
Coh Music Site - Ordering Manager

Music releases, gallery items and videos each keep an independent
``sort_order`` column.  New rows are appended after the current maximum;
a drag-and-drop reorder reassigns the whole collection to ``0..n-1`` in a
single transaction so readers never observe a half-applied order.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

import aiosqlite
from loguru import logger

from coh_music.errors import InvalidInputError, NotFoundError

# Collections with a manual sort order
SORTABLE_COLLECTIONS = ("music_releases", "gallery_items", "videos")

# ORDER BY clauses used by every list endpoint and page
DISPLAY_ORDER = {
    "music_releases": "sort_order ASC, created_at DESC",
    "gallery_items": "sort_order ASC, created_at DESC",
    "videos": "sort_order ASC, created_at DESC",
    "press_releases": "featured DESC, date DESC, created_at DESC",
    "newsletter_subscribers": "created_at DESC",
}


def _check_sortable(collection: str) -> None:
    if collection not in SORTABLE_COLLECTIONS:
        raise ValueError(f"Collection '{collection}' has no manual sort order")


def display_order(collection: str) -> str:
    """Return the ORDER BY clause for *collection* (newest first by default)."""
    return DISPLAY_ORDER.get(collection, "created_at DESC")


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------
def next_sort_order(existing: Iterable[Optional[int]]) -> int:
    """Position for a new row: one past the highest value, or 0 when empty."""
    values = [v for v in existing if v is not None]
    if not values:
        return 0
    return max(values) + 1


def plan_reorder(
    current_ids: Iterable[str], ordered_ids: Sequence[str]
) -> List[Tuple[int, str]]:
    """
    Validate a requested order and return ``(sort_order, id)`` assignments.

    *ordered_ids* must be a permutation of *current_ids*.

    Raises:
        NotFoundError: an id is not part of the live collection.
        InvalidInputError: an id is repeated or a live id is missing.
    """
    live = set(current_ids)

    unknown = [i for i in ordered_ids if i not in live]
    if unknown:
        raise NotFoundError(
            f"Unknown id(s) in reorder request: {', '.join(unknown)}", field="ids"
        )

    if len(set(ordered_ids)) != len(ordered_ids):
        raise InvalidInputError("Duplicate ids in reorder request.", field="ids")

    missing = live.difference(ordered_ids)
    if missing:
        raise InvalidInputError(
            f"Reorder request is missing {len(missing)} id(s); send the full list.",
            field="ids",
        )

    return [(index, item_id) for index, item_id in enumerate(ordered_ids)]


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------
async def append_position(db: aiosqlite.Connection, collection: str) -> int:
    """Return the ``sort_order`` a new row in *collection* should receive."""
    _check_sortable(collection)
    cursor = await db.execute(f"SELECT MAX(sort_order) AS max_order FROM {collection}")
    row = await cursor.fetchone()
    return next_sort_order([row["max_order"]] if row else [])


async def reorder(
    db: aiosqlite.Connection, collection: str, ordered_ids: Sequence[str]
) -> int:
    """
    Persist *ordered_ids* as the new order of *collection*.

    The id check and every update run inside one ``BEGIN IMMEDIATE``
    transaction.  Any failure rolls the whole batch back and re-raises.
    Returns the number of rows reordered.
    """
    _check_sortable(collection)

    await db.execute("BEGIN IMMEDIATE")
    try:
        cursor = await db.execute(f"SELECT id FROM {collection}")
        current_ids = [r["id"] for r in await cursor.fetchall()]

        assignments = plan_reorder(current_ids, ordered_ids)

        await db.executemany(
            f"UPDATE {collection} SET sort_order = ? WHERE id = ?",
            assignments,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("↕️ Reordered {} ({} rows)", collection, len(assignments))
    return len(assignments)
