"""
Coh Music Site - Press Kit

The press kit is a single row holding an ordered list of labelled links.
Each link is either a file to download or a folder to open.  Older rows
kept one URL column per asset; when the link list is empty those columns
are turned into links with their canonical labels.
"""

import uuid
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from coh_music import database
from coh_music.utils import parse_json_list

PRESS_KIT_ASSETS_ID = "press-kit-assets"

LINK_MODES = ("download", "open")

LEGACY_LINK_CONFIGS = (
    {
        "column": "full_press_kit_zip_url",
        "label": "Full Press Kit (ZIP)",
        "helper": "Everything bundled for easy distribution to press and partners.",
        "mode": "download",
    },
    {
        "column": "one_pager_pdf_url",
        "label": "One-Pager (PDF)",
        "helper": "A concise single-sheet summary of Creature of Habit.",
        "mode": "download",
    },
    {
        "column": "press_photos_folder_url",
        "label": "Press Photos Folder",
        "helper": "High-resolution stills and performance imagery.",
        "mode": "open",
    },
    {
        "column": "logos_folder_url",
        "label": "Logos Folder",
        "helper": "Brand marks, lockups, and horizontal/vertical variants.",
        "mode": "open",
    },
    {
        "column": "artwork_folder_url",
        "label": "Artwork Folder",
        "helper": "Cover art, campaign visuals, and promotional treatments.",
        "mode": "open",
    },
    {
        "column": "stage_plot_pdf_url",
        "label": "Stage Plot (PDF)",
        "helper": "Stage plot, riser layout, and technical overlay.",
        "mode": "download",
    },
    {
        "column": "input_list_pdf_url",
        "label": "Input List (PDF)",
        "helper": "FOH/monitor-friendly signal path and channel choices.",
        "mode": "download",
    },
)


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def sanitize_links(raw_links: Iterable[Dict[str, Any]]) -> List[Dict[str, str]]:
    """
    Keep links that have both a label and a URL.

    Missing ids are generated, unknown modes become ``download`` and empty
    helper texts are dropped.
    """
    links: List[Dict[str, str]] = []
    for link in raw_links:
        label, url = _text(link.get("label")), _text(link.get("url"))
        if not label or not url:
            continue

        entry = {
            "id": _text(link.get("id")) or uuid.uuid4().hex,
            "label": label,
            "url": url,
            "mode": link.get("mode") if link.get("mode") in LINK_MODES else "download",
        }
        helper = _text(link.get("helper"))
        if helper:
            entry["helper"] = helper
        links.append(entry)
    return links


def normalize_links(raw: Any) -> List[Dict[str, str]]:
    """Narrow a stored JSON value to well-formed press kit links."""
    candidates = []
    for entry in parse_json_list(raw):
        if not isinstance(entry, dict):
            continue
        candidates.append(
            {
                key: entry[key]
                for key in ("id", "label", "helper", "url", "mode")
                if isinstance(entry.get(key), str)
            }
        )
    return sanitize_links(candidates)


def build_legacy_links(record: Dict[str, Any]) -> List[Dict[str, str]]:
    links = []
    for config in LEGACY_LINK_CONFIGS:
        url = _text(record.get(config["column"]))
        if not url:
            continue
        links.append(
            {
                "id": f"legacy-{config['column']}",
                "label": config["label"],
                "helper": config["helper"],
                "url": url,
                "mode": config["mode"],
            }
        )
    return links


async def get_press_kit_assets() -> Dict[str, List[Dict[str, str]]]:
    record = await database.get_row("press_kit_assets", PRESS_KIT_ASSETS_ID)
    if not record:
        return {"links": []}

    links = normalize_links(record.get("links"))
    if links:
        return {"links": links}
    return {"links": build_legacy_links(record)}


async def upsert_press_kit_assets(links: Optional[Iterable[Dict[str, Any]]]) -> Dict[str, Any]:
    sanitized = sanitize_links(links or [])
    await database.upsert_row("press_kit_assets", PRESS_KIT_ASSETS_ID, {"links": sanitized})
    logger.info("📦 Press kit saved ({} links)", len(sanitized))
    return {"links": sanitized}


def build_press_kit_items(assets: Dict[str, Any]) -> List[Dict[str, str]]:
    """Download cards for the public press kit page."""
    items = []
    for link in assets.get("links") or []:
        label, url = _text(link.get("label")), _text(link.get("url"))
        if not label or not url:
            continue
        item = {
            "id": link.get("id") or url,
            "label": label,
            "url": url,
            "mode": link.get("mode") if link.get("mode") in LINK_MODES else "download",
        }
        description = _text(link.get("helper"))
        if description:
            item["description"] = description
        items.append(item)
    return items
