"""
Coh Music Site - SQLite Database

Embedded SQLite database holding every piece of editable site content.
Uses aiosqlite for async operations within FastAPI and plain sqlite3 for
schema creation at startup.

Rows are addressed by an opaque string ``id`` (uuid4 hex).  ``created_at``
and ``updated_at`` are ISO-8601 UTC strings with microseconds, so sorting by
``created_at`` gives a stable newest-first tie-break.  List and link columns
are stored as JSON text and decoded by :func:`row_to_dict`.
"""

import json
import sqlite3
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import aiosqlite
from loguru import logger

from coh_music import ordering
from coh_music.config import DB_PATH

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS hero (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    subtitle TEXT NOT NULL,
    background_color TEXT,
    title_color TEXT,
    subtitle_color TEXT,
    eyebrow_color TEXT,
    title_font TEXT,
    subtitle_font TEXT,
    primary_cta_label TEXT,
    primary_cta_href TEXT,
    secondary_cta_label TEXT,
    secondary_cta_href TEXT,
    meta_title TEXT,
    meta_description TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS site_labels (
    id TEXT PRIMARY KEY,
    hero_label TEXT,
    music_label TEXT,
    gallery_label TEXT,
    videos_label TEXT,
    about_label TEXT,
    contact_label TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS music_releases (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    slug TEXT UNIQUE NOT NULL,
    description TEXT,
    streaming_links TEXT DEFAULT '[]',
    cover_image_url TEXT,
    cover_image_alt TEXT,
    cover_cloudinary_public_id TEXT,
    audio_url TEXT,
    audio_cloudinary_public_id TEXT,
    release_date TEXT,
    release_time TEXT,
    time_zone TEXT,
    release_at TEXT,
    coming_soon INTEGER NOT NULL DEFAULT 1,
    genre TEXT,
    duration TEXT,
    credits TEXT,
    featured INTEGER NOT NULL DEFAULT 0,
    meta_title TEXT,
    meta_description TEXT,
    sort_order INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS gallery_items (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    caption TEXT,
    alt_text TEXT,
    category TEXT,
    tags TEXT DEFAULT '[]',
    image_url TEXT NOT NULL,
    cloudinary_public_id TEXT,
    width INTEGER,
    height INTEGER,
    sort_order INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS videos (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT,
    video_url TEXT NOT NULL,
    provider TEXT NOT NULL DEFAULT 'OTHER',
    external_id TEXT NOT NULL,
    thumbnail_url TEXT,
    video_cloudinary_public_id TEXT,
    thumbnail_cloudinary_public_id TEXT,
    tags TEXT DEFAULT '[]',
    sort_order INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS press_releases (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    date TEXT NOT NULL,
    summary TEXT NOT NULL,
    full_content TEXT,
    category TEXT,
    cover_image_url TEXT,
    cover_cloudinary_public_id TEXT,
    pdf_url TEXT,
    pdf_cloudinary_public_id TEXT,
    dropbox_url TEXT,
    direct_download_url TEXT,
    featured INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS press_kit_assets (
    id TEXT PRIMARY KEY,
    links TEXT DEFAULT '[]',
    full_press_kit_zip_url TEXT,
    one_pager_pdf_url TEXT,
    press_photos_folder_url TEXT,
    logos_folder_url TEXT,
    artwork_folder_url TEXT,
    stage_plot_pdf_url TEXT,
    input_list_pdf_url TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS about_content (
    id TEXT PRIMARY KEY,
    about_text TEXT NOT NULL,
    markdown TEXT,
    mission_statement TEXT,
    featured_quote TEXT,
    quote_attribution TEXT,
    artist_photo_url TEXT,
    artist_photo_alt TEXT,
    artist_photo_cloudinary_public_id TEXT,
    seo_title TEXT,
    seo_description TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS contact_profiles (
    id TEXT PRIMARY KEY,
    email_contact TEXT NOT NULL,
    booking_email TEXT,
    social_links TEXT DEFAULT '[]',
    management_contact TEXT,
    press_contact TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS newsletter_subscribers (
    id TEXT PRIMARY KEY,
    email TEXT UNIQUE NOT NULL,
    source TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_music_releases_order ON music_releases(sort_order, created_at);
CREATE INDEX IF NOT EXISTS idx_gallery_items_order ON gallery_items(sort_order, created_at);
CREATE INDEX IF NOT EXISTS idx_videos_order ON videos(sort_order, created_at);
CREATE INDEX IF NOT EXISTS idx_press_releases_order ON press_releases(featured, date, created_at);
"""

# Writable columns per table (id and timestamps are managed here)
TABLE_COLUMNS: Dict[str, tuple] = {
    "hero": (
        "title",
        "subtitle",
        "background_color",
        "title_color",
        "subtitle_color",
        "eyebrow_color",
        "title_font",
        "subtitle_font",
        "primary_cta_label",
        "primary_cta_href",
        "secondary_cta_label",
        "secondary_cta_href",
        "meta_title",
        "meta_description",
    ),
    "site_labels": (
        "hero_label",
        "music_label",
        "gallery_label",
        "videos_label",
        "about_label",
        "contact_label",
    ),
    "music_releases": (
        "title",
        "slug",
        "description",
        "streaming_links",
        "cover_image_url",
        "cover_image_alt",
        "cover_cloudinary_public_id",
        "audio_url",
        "audio_cloudinary_public_id",
        "release_date",
        "release_time",
        "time_zone",
        "release_at",
        "coming_soon",
        "genre",
        "duration",
        "credits",
        "featured",
        "meta_title",
        "meta_description",
        "sort_order",
    ),
    "gallery_items": (
        "title",
        "caption",
        "alt_text",
        "category",
        "tags",
        "image_url",
        "cloudinary_public_id",
        "width",
        "height",
        "sort_order",
    ),
    "videos": (
        "title",
        "description",
        "video_url",
        "provider",
        "external_id",
        "thumbnail_url",
        "video_cloudinary_public_id",
        "thumbnail_cloudinary_public_id",
        "tags",
        "sort_order",
    ),
    "press_releases": (
        "title",
        "date",
        "summary",
        "full_content",
        "category",
        "cover_image_url",
        "cover_cloudinary_public_id",
        "pdf_url",
        "pdf_cloudinary_public_id",
        "dropbox_url",
        "direct_download_url",
        "featured",
    ),
    "press_kit_assets": (
        "links",
        "full_press_kit_zip_url",
        "one_pager_pdf_url",
        "press_photos_folder_url",
        "logos_folder_url",
        "artwork_folder_url",
        "stage_plot_pdf_url",
        "input_list_pdf_url",
    ),
    "about_content": (
        "about_text",
        "markdown",
        "mission_statement",
        "featured_quote",
        "quote_attribution",
        "artist_photo_url",
        "artist_photo_alt",
        "artist_photo_cloudinary_public_id",
        "seo_title",
        "seo_description",
    ),
    "contact_profiles": (
        "email_contact",
        "booking_email",
        "social_links",
        "management_contact",
        "press_contact",
    ),
    "newsletter_subscribers": ("email", "source"),
}

JSON_COLUMNS = {"streaming_links", "tags", "social_links", "links"}
BOOL_COLUMNS = {"coming_soon", "featured"}

# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------
def init_db() -> None:
    """Initialize the SQLite database and create any missing tables."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    try:
        with sqlite3.connect(str(DB_PATH)) as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()
        logger.success("✅ Database initialized at {}", DB_PATH)
    except Exception as e:
        logger.critical("❌ Failed to initialize database: {}", e)
        raise


# ---------------------------------------------------------------------------
# Async context manager (for use in FastAPI routes)
# ---------------------------------------------------------------------------
@asynccontextmanager
async def get_async_connection():
    """Async context manager for an aiosqlite connection with row factory."""
    db = await aiosqlite.connect(str(DB_PATH))
    db.row_factory = aiosqlite.Row
    try:
        yield db
    finally:
        await db.close()


# ---------------------------------------------------------------------------
# Row encoding / decoding
# ---------------------------------------------------------------------------
def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _new_id() -> str:
    return uuid.uuid4().hex


def _check_table(table: str) -> tuple:
    try:
        return TABLE_COLUMNS[table]
    except KeyError:
        raise ValueError(f"Unknown table: {table}") from None


def _encode(column: str, value: Any) -> Any:
    if column in JSON_COLUMNS:
        return json.dumps(value if value is not None else [])
    if column in BOOL_COLUMNS:
        return 1 if value else 0
    return value


def _filter_fields(table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    allowed = _check_table(table)
    return {k: _encode(k, v) for k, v in fields.items() if k in allowed}


def row_to_dict(row) -> Dict[str, Any]:
    """Convert a database row to a plain dict, decoding JSON and bool columns."""
    if row is None:
        return {}
    data = dict(row)
    for column in JSON_COLUMNS.intersection(data):
        raw = data[column]
        if isinstance(raw, str):
            try:
                data[column] = json.loads(raw)
            except (json.JSONDecodeError, TypeError):
                data[column] = []
        elif raw is None:
            data[column] = []
    for column in BOOL_COLUMNS.intersection(data):
        data[column] = bool(data[column])
    return data


# ---------------------------------------------------------------------------
# CRUD operations (async)
# ---------------------------------------------------------------------------
async def list_rows(table: str) -> List[Dict[str, Any]]:
    """Fetch every row of *table* in display order."""
    _check_table(table)
    async with get_async_connection() as db:
        cursor = await db.execute(
            f"SELECT * FROM {table} ORDER BY {ordering.display_order(table)}"
        )
        rows = await cursor.fetchall()
        return [row_to_dict(r) for r in rows]


async def get_row(table: str, row_id: str) -> Optional[Dict[str, Any]]:
    """Fetch a single row by its id."""
    _check_table(table)
    async with get_async_connection() as db:
        cursor = await db.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,))
        row = await cursor.fetchone()
        return row_to_dict(row) if row else None


async def get_release_by_slug(slug: str) -> Optional[Dict[str, Any]]:
    """Fetch a music release by its unique slug."""
    async with get_async_connection() as db:
        cursor = await db.execute("SELECT * FROM music_releases WHERE slug = ?", (slug,))
        row = await cursor.fetchone()
        return row_to_dict(row) if row else None


async def get_latest(table: str) -> Optional[Dict[str, Any]]:
    """Return the most recently updated row of a singleton table."""
    _check_table(table)
    async with get_async_connection() as db:
        cursor = await db.execute(
            f"SELECT * FROM {table} ORDER BY updated_at DESC LIMIT 1"
        )
        row = await cursor.fetchone()
        return row_to_dict(row) if row else None


async def insert_row(
    table: str, fields: Dict[str, Any], row_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Insert a row and return it.

    A ``sort_order`` of None on a sortable table is replaced by the next
    append position, read in the same ``BEGIN IMMEDIATE`` transaction as
    the insert.

    Raises:
        sqlite3.IntegrityError: a unique column (slug, email) already exists.
    """
    values = _filter_fields(table, fields)
    new_id = row_id or _new_id()
    stamp = _now()

    async with get_async_connection() as db:
        await db.execute("BEGIN IMMEDIATE")
        try:
            if table in ordering.SORTABLE_COLLECTIONS and values.get("sort_order") is None:
                values["sort_order"] = await ordering.append_position(db, table)

            columns = ["id", *values.keys(), "created_at", "updated_at"]
            placeholders = ", ".join("?" for _ in columns)
            await db.execute(
                f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
                [new_id, *values.values(), stamp, stamp],
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        cursor = await db.execute(f"SELECT * FROM {table} WHERE id = ?", (new_id,))
        row = row_to_dict(await cursor.fetchone())

    logger.success("✅ {} row added (id={})", table, new_id)
    return row


async def update_row(
    table: str, row_id: str, fields: Dict[str, Any]
) -> Optional[Dict[str, Any]]:
    """Update specific fields of a row. Returns the updated row, or None if missing."""
    filtered = _filter_fields(table, fields)
    filtered["updated_at"] = _now()

    set_clause = ", ".join(f"{k} = ?" for k in filtered)
    values = list(filtered.values()) + [row_id]

    async with get_async_connection() as db:
        cursor = await db.execute(
            f"UPDATE {table} SET {set_clause} WHERE id = ?",
            values,
        )
        await db.commit()
        if cursor.rowcount == 0:
            logger.warning("⚠️ {} id={} not found for update", table, row_id)
            return None

        cursor = await db.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,))
        row = row_to_dict(await cursor.fetchone())

    logger.info("✏️ {} id={} updated: {}", table, row_id, sorted(fields))
    return row


async def delete_row(table: str, row_id: str) -> bool:
    """Delete a row by id. Returns True if a row was deleted."""
    _check_table(table)
    async with get_async_connection() as db:
        cursor = await db.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
        await db.commit()
        deleted = cursor.rowcount > 0
    if deleted:
        logger.info("🗑️ {} id={} deleted", table, row_id)
    else:
        logger.warning("⚠️ {} id={} not found for deletion", table, row_id)
    return deleted


async def upsert_singleton(table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Update the single row of *table*, creating it on first save."""
    current = await get_latest(table)
    if current:
        updated = await update_row(table, current["id"], fields)
        if updated:
            return updated
    return await insert_row(table, fields)


async def upsert_row(table: str, row_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Insert or update a row with a fixed id."""
    existing = await get_row(table, row_id)
    if existing:
        updated = await update_row(table, row_id, fields)
        if updated:
            return updated
    return await insert_row(table, fields, row_id=row_id)


async def count_rows(table: str) -> int:
    """Return the number of rows in *table*."""
    _check_table(table)
    async with get_async_connection() as db:
        cursor = await db.execute(f"SELECT COUNT(*) AS cnt FROM {table}")
        row = await cursor.fetchone()
        return row["cnt"] if row else 0


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------
async def next_sort_order(table: str) -> int:
    """Return the append position for a new row in *table*."""
    async with get_async_connection() as db:
        return await ordering.append_position(db, table)


async def reorder_rows(table: str, ordered_ids: Sequence[str]) -> int:
    """Apply a full reorder of *table* in one transaction."""
    async with get_async_connection() as db:
        return await ordering.reorder(db, table, ordered_ids)
