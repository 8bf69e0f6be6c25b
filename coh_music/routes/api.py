"""
Coh Music Site - JSON API Routes

Provides all REST API endpoints for:
- Singleton content (hero, site labels, about, contact)
- Music releases CRUD with release timing and manual ordering
- Gallery uploads, metadata edits and ordering
- Videos CRUD with provider detection and ordering
- Press releases CRUD and the press kit link list
- Newsletter signup, subscriber management and CSV export
- Generic asset uploads and download redirects
- Health check

Successful responses use ``{"data": ...}``; failures use
``{"error": ..., "issues": {...}}``.  Authentication is enforced by the
middleware in ``coh_music.main``.
"""

import json
import sqlite3
import time
from typing import Any, Dict, List, Optional, Type, TypeVar
from urllib.parse import urlparse

from fastapi import APIRouter, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, RedirectResponse, Response
from loguru import logger
from pydantic import ValidationError

from coh_music import assets, database, press_kit
from coh_music.config import (
    APP_VERSION,
    CLOUDINARY_FOLDER,
    CLOUDINARY_GALLERY_FOLDER,
    DB_PATH,
    MAX_IMAGE_BYTES,
    MAX_UPLOAD_BYTES,
)
from coh_music.content import (
    derive_direct_download_url,
    gallery_item,
    newsletter_csv,
    parse_links,
    resolve_video_provider,
)
from coh_music.errors import ContentError, InvalidInputError, NotFoundError
from coh_music.release_timing import as_instant, record_is_coming_soon, resolve_release_timing
from coh_music.utils import camelize, parse_tags
from coh_music.validation import (
    AboutPayload,
    ApiModel,
    ContactPayload,
    GalleryItemPayload,
    HeroPayload,
    MusicReleasePayload,
    NewsletterSubscriptionPayload,
    PressKitAssetsPayload,
    PressReleasePayload,
    ReorderPayload,
    SiteLabelsPayload,
    VideoPayload,
    flatten_issues,
)

router = APIRouter(prefix="/api", tags=["API"])

# Track startup time for health check
_START_TIME = time.time()

PayloadT = TypeVar("PayloadT", bound=ApiModel)


# ---------------------------------------------------------------------------
# Request / response helpers
# ---------------------------------------------------------------------------
def _fail(status_code: int, message: str, issues: Optional[Dict[str, List[str]]] = None):
    detail: Dict[str, Any] = {"error": message}
    if issues:
        detail["issues"] = issues
    raise HTTPException(status_code=status_code, detail=detail)


async def _read_json(request: Request) -> Dict[str, Any]:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None
    if not isinstance(payload, dict):
        _fail(400, "Missing request body.")
    return payload


def _parse(model: Type[PayloadT], payload: Dict[str, Any], message: str) -> PayloadT:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        _fail(400, message, flatten_issues(exc))


def _require_id(payload: Dict[str, Any], label: str) -> str:
    row_id = payload.get("id")
    if not isinstance(row_id, str) or not row_id:
        _fail(400, f"{label} id is required.")
    return row_id


def _raise_content_error(exc: ContentError):
    status = 404 if isinstance(exc, NotFoundError) else 400
    _fail(status, exc.message, exc.to_issues())


def _data(value: Any, status_code: int = 200) -> Any:
    if status_code == 200:
        return {"data": value}
    return JSONResponse(status_code=status_code, content={"data": value})


# ---------------------------------------------------------------------------
# Read-side shaping
# ---------------------------------------------------------------------------
def _release_out(row: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(row)
    out["streaming_links"] = parse_links(row.get("streaming_links"), row["slug"])
    out["show_coming_soon"] = record_is_coming_soon(row)
    return camelize(out)


def _video_out(row: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(row)
    out["tags"] = parse_tags(row.get("tags"))
    return camelize(out)


def _contact_out(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not row:
        return None
    out = dict(row)
    out["social_links"] = parse_links(row.get("social_links"), "social")
    return camelize(out)


def _singleton_out(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    return camelize(row) if row else None


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@router.get("/health")
async def health_check():
    """Health check endpoint for the service."""
    uptime = round(time.time() - _START_TIME, 2)
    db_ok = DB_PATH.exists()

    status = "ok" if db_ok else "degraded"

    return {
        "status": status,
        "database": "ok" if db_ok else "missing",
        "assets_configured": assets.is_configured(),
        "uptime_seconds": uptime,
        "version": APP_VERSION,
    }


# ---------------------------------------------------------------------------
# Singletons
# ---------------------------------------------------------------------------
@router.get("/hero")
async def api_get_hero():
    return _data(_singleton_out(await database.get_latest("hero")))


@router.put("/hero")
async def api_put_hero(request: Request):
    hero = _parse(HeroPayload, await _read_json(request), "Invalid hero payload")
    saved = await database.upsert_singleton("hero", hero.to_fields())
    return _data(camelize(saved))


@router.get("/labels")
async def api_get_labels():
    return _data(_singleton_out(await database.get_latest("site_labels")))


@router.put("/labels")
async def api_put_labels(request: Request):
    labels = _parse(SiteLabelsPayload, await _read_json(request), "Invalid labels payload")
    saved = await database.upsert_singleton("site_labels", labels.to_fields())
    return _data(camelize(saved))


@router.get("/about")
async def api_get_about():
    return _data(_singleton_out(await database.get_latest("about_content")))


@router.put("/about")
async def api_put_about(request: Request):
    about = _parse(AboutPayload, await _read_json(request), "Invalid about payload")
    saved = await database.upsert_singleton("about_content", about.to_fields())
    return _data(camelize(saved))


@router.get("/contact")
async def api_get_contact():
    return _data(_contact_out(await database.get_latest("contact_profiles")))


@router.put("/contact")
async def api_put_contact(request: Request):
    contact = _parse(ContactPayload, await _read_json(request), "Invalid contact payload")
    fields = contact.to_fields()
    for key in ("email_contact", "booking_email"):
        if fields.get(key):
            fields[key] = str(fields[key])
    saved = await database.upsert_singleton("contact_profiles", fields)
    return _data(_contact_out(saved))


# ---------------------------------------------------------------------------
# Reordering (music, gallery, videos)
# ---------------------------------------------------------------------------
async def _reorder(table: str, request: Request, label: str):
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None
    if not isinstance(payload, dict) or not isinstance(payload.get("ids"), list):
        _fail(400, "Expected an array of ids.")

    ids = ReorderPayload(ids=payload["ids"]).valid_ids()
    if not ids:
        _fail(400, f"No valid {label} ids provided.")

    try:
        count = await database.reorder_rows(table, ids)
    except ContentError as exc:
        _raise_content_error(exc)
    except Exception:
        logger.exception("❌ Failed to persist {} order", label)
        _fail(500, f"Failed to persist {label} order.")

    return {"success": True, "data": {"count": count}}


@router.patch("/music/order")
async def api_order_music(request: Request):
    return await _reorder("music_releases", request, "release")


@router.patch("/gallery/order")
async def api_order_gallery(request: Request):
    return await _reorder("gallery_items", request, "gallery item")


@router.patch("/videos/order")
async def api_order_videos(request: Request):
    return await _reorder("videos", request, "video")


# ---------------------------------------------------------------------------
# Music releases
# ---------------------------------------------------------------------------
def _release_fields(release: MusicReleasePayload, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Column values for a release, with timing resolved."""
    try:
        timing = resolve_release_timing(
            release.release_date,
            release.release_time,
            release.time_zone,
            release.coming_soon,
        )
    except InvalidInputError as exc:
        _raise_content_error(exc)

    fields = release.to_fields()
    fields.update(timing.as_record())
    if not fields.get("cover_cloudinary_public_id"):
        legacy_id = payload.get("cloudinaryPublicId")
        fields["cover_cloudinary_public_id"] = legacy_id if isinstance(legacy_id, str) else None
    return fields


@router.get("/music")
async def api_list_music():
    rows = await database.list_rows("music_releases")
    return _data([_release_out(r) for r in rows])


@router.post("/music")
async def api_create_music(request: Request):
    payload = await _read_json(request)
    release = _parse(MusicReleasePayload, payload, "Invalid music release payload.")
    fields = _release_fields(release, payload)

    try:
        row = await database.insert_row("music_releases", fields)
    except sqlite3.IntegrityError:
        _fail(409, "Slug already exists.")

    logger.info("🎵 Release created: {} ({})", row["title"], row["slug"])
    return _data(_release_out(row), status_code=201)


@router.put("/music")
async def api_update_music(request: Request):
    payload = await _read_json(request)
    release_id = _require_id(payload, "Music release")
    release = _parse(MusicReleasePayload, payload, "Invalid release update payload.")
    fields = _release_fields(release, payload)
    if fields.get("sort_order") is None:
        fields.pop("sort_order", None)

    try:
        row = await database.update_row("music_releases", release_id, fields)
    except sqlite3.IntegrityError:
        _fail(409, "Slug already exists.")

    if not row:
        _fail(404, "Music release not found.")
    return _data(_release_out(row))


@router.delete("/music")
async def api_delete_music(id: Optional[str] = Query(None)):
    if not id:
        _fail(400, "Missing music release id.")

    release = await database.get_row("music_releases", id)
    if not release:
        _fail(404, "Music release not found.")

    await database.delete_row("music_releases", id)
    await assets.destroy_assets(
        (release.get("cover_cloudinary_public_id"), "image"),
        (release.get("audio_cloudinary_public_id"), "video"),
    )
    return {"success": True}


# ---------------------------------------------------------------------------
# Gallery
# ---------------------------------------------------------------------------
def _form_text(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


@router.get("/gallery")
async def api_list_gallery():
    rows = await database.list_rows("gallery_items")
    return _data([camelize(gallery_item(r)) for r in rows])


@router.post("/gallery")
async def api_create_gallery_item(
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    caption: Optional[str] = Form(None),
    alt_text: Optional[str] = Form(None, alias="altText"),
    category: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    sort_order: Optional[str] = Form(None, alias="sortOrder"),
):
    """Upload an image to the asset host and add it to the gallery."""
    if file is None or not file.filename:
        _fail(400, "Image file is required.")

    content = await file.read()
    if len(content) > MAX_IMAGE_BYTES:
        _fail(400, f"Image exceeds {MAX_IMAGE_BYTES // (1024 * 1024)} MB limit.")

    tag_list = None
    if tags and tags.strip():
        try:
            parsed_tags = json.loads(tags)
        except json.JSONDecodeError:
            _fail(400, "Tags must be provided as a JSON array of strings.")
        if isinstance(parsed_tags, list):
            tag_list = parsed_tags

    metadata = _parse(
        GalleryItemPayload,
        {
            "title": title,
            "caption": _form_text(caption),
            "altText": _form_text(alt_text),
            "category": _form_text(category),
            "tags": tag_list or [],
            "sortOrder": _form_text(sort_order),
        },
        "Invalid gallery item metadata.",
    )

    if not assets.is_configured():
        _fail(503, "Asset storage is not configured.")

    uploaded = await assets.upload_asset(
        content,
        file.filename,
        folder=CLOUDINARY_GALLERY_FOLDER,
        resource_type="image",
        content_type=file.content_type or "image/jpeg",
    )
    if not uploaded:
        _fail(500, "Failed to upload image. Check server logs for details.")

    fields = metadata.to_fields()
    fields.update(
        {
            "image_url": uploaded["url"],
            "cloudinary_public_id": uploaded["public_id"],
            "width": uploaded.get("width") or 0,
            "height": uploaded.get("height") or 0,
        }
    )
    row = await database.insert_row("gallery_items", fields)
    return _data(camelize(gallery_item(row)), status_code=201)


@router.put("/gallery")
async def api_update_gallery_item(request: Request):
    payload = await _read_json(request)
    item_id = _require_id(payload, "Gallery item")
    item = _parse(GalleryItemPayload, payload, "Invalid gallery item update.")

    fields = item.to_fields()
    if fields.get("sort_order") is None:
        fields.pop("sort_order", None)

    row = await database.update_row("gallery_items", item_id, fields)
    if not row:
        _fail(404, "Gallery item not found.")
    return _data(camelize(gallery_item(row)))


@router.delete("/gallery")
async def api_delete_gallery_item(id: Optional[str] = Query(None)):
    if not id:
        _fail(400, "Missing gallery item id.")

    item = await database.get_row("gallery_items", id)
    if not item:
        _fail(404, "Gallery item not found.")

    await database.delete_row("gallery_items", id)
    await assets.destroy_assets((item.get("cloudinary_public_id"), "image"))
    return {"success": True}


# ---------------------------------------------------------------------------
# Videos
# ---------------------------------------------------------------------------
def _video_fields(video: VideoPayload) -> Dict[str, Any]:
    fields = video.to_fields()
    fields.update(
        resolve_video_provider(video.video_url, video.video_cloudinary_public_id)
    )
    return fields


@router.get("/videos")
async def api_list_videos():
    rows = await database.list_rows("videos")
    return _data([_video_out(r) for r in rows])


@router.post("/videos")
async def api_create_video(request: Request):
    video = _parse(VideoPayload, await _read_json(request), "Invalid video payload.")
    row = await database.insert_row("videos", _video_fields(video))
    logger.info("🎬 Video added: {} ({})", row["title"], row["provider"])
    return _data(_video_out(row), status_code=201)


@router.put("/videos")
async def api_update_video(request: Request):
    payload = await _read_json(request)
    video_id = _require_id(payload, "Video")
    video = _parse(VideoPayload, payload, "Invalid video update payload.")

    row = await database.update_row("videos", video_id, _video_fields(video))
    if not row:
        _fail(404, "Video not found.")
    return _data(_video_out(row))


@router.delete("/videos")
async def api_delete_video(id: Optional[str] = Query(None)):
    if not id:
        _fail(400, "Missing video id.")

    video = await database.get_row("videos", id)
    if not video:
        _fail(404, "Video not found.")

    await database.delete_row("videos", id)
    await assets.destroy_assets(
        (video.get("video_cloudinary_public_id"), "video"),
        (video.get("thumbnail_cloudinary_public_id"), "image"),
    )
    return {"success": True}


# ---------------------------------------------------------------------------
# Press releases
# ---------------------------------------------------------------------------
def _press_release_fields(release: PressReleasePayload) -> Dict[str, Any]:
    published = as_instant(release.date)
    if published is None:
        _fail(400, "Invalid release date.", {"date": ["Invalid release date."]})

    fields = release.to_fields()
    fields["date"] = published.isoformat()
    fields["direct_download_url"] = derive_direct_download_url(
        release.dropbox_url, release.pdf_url
    )
    return fields


@router.get("/press-releases")
async def api_list_press_releases():
    rows = await database.list_rows("press_releases")
    return _data([camelize(r) for r in rows])


@router.post("/press-releases")
async def api_create_press_release(request: Request):
    release = _parse(PressReleasePayload, await _read_json(request), "Invalid press release data.")
    row = await database.insert_row("press_releases", _press_release_fields(release))
    return _data(camelize(row), status_code=201)


@router.put("/press-releases")
async def api_update_press_release(request: Request):
    payload = await _read_json(request)
    release_id = _require_id(payload, "Press release")
    release = _parse(PressReleasePayload, payload, "Invalid press release data.")

    row = await database.update_row("press_releases", release_id, _press_release_fields(release))
    if not row:
        _fail(404, "Press release not found.")
    return _data(camelize(row))


@router.delete("/press-releases")
async def api_delete_press_release(id: Optional[str] = Query(None)):
    if not id:
        _fail(400, "Missing press release id.")

    release = await database.get_row("press_releases", id)
    if not release:
        _fail(404, "Press release not found.")

    await database.delete_row("press_releases", id)
    await assets.destroy_assets(
        (release.get("cover_cloudinary_public_id"), "image"),
        (release.get("pdf_cloudinary_public_id"), "raw"),
    )
    return {"success": True}


# ---------------------------------------------------------------------------
# Press kit
# ---------------------------------------------------------------------------
@router.get("/press-kit")
async def api_get_press_kit():
    return _data(await press_kit.get_press_kit_assets())


@router.post("/press-kit")
async def api_save_press_kit(request: Request):
    kit = _parse(PressKitAssetsPayload, await _read_json(request), "Invalid press kit data.")
    links = [link.model_dump(exclude_none=True) for link in kit.links]
    return _data(await press_kit.upsert_press_kit_assets(links))


# ---------------------------------------------------------------------------
# Newsletter
# ---------------------------------------------------------------------------
@router.get("/newsletter")
async def api_list_subscribers():
    rows = await database.list_rows("newsletter_subscribers")
    return _data([camelize(r) for r in rows])


@router.post("/newsletter")
async def api_subscribe(request: Request):
    payload = await _read_json(request)
    subscription = _parse(
        NewsletterSubscriptionPayload, payload, "Invalid subscription payload."
    )

    try:
        row = await database.insert_row(
            "newsletter_subscribers",
            {"email": str(subscription.email).lower(), "source": subscription.source},
        )
    except sqlite3.IntegrityError:
        _fail(409, "Email is already subscribed.")

    logger.info("📬 New newsletter subscriber (source={})", subscription.source or "-")
    return _data(camelize(row), status_code=201)


@router.delete("/newsletter")
async def api_unsubscribe(id: Optional[str] = Query(None)):
    if not id:
        _fail(400, "Missing subscriber id.")

    if not await database.delete_row("newsletter_subscribers", id):
        _fail(404, "Subscriber not found.")
    return {"success": True}


@router.get("/newsletter/csv")
async def api_export_subscribers():
    rows = await database.list_rows("newsletter_subscribers")
    rows.sort(key=lambda r: r["created_at"])
    return Response(
        content=newsletter_csv(rows),
        media_type="text/csv",
        headers={
            "Content-Disposition": 'attachment; filename="newsletter-subscribers.csv"'
        },
    )


# ---------------------------------------------------------------------------
# Uploads and downloads
# ---------------------------------------------------------------------------
@router.post("/uploads")
async def api_upload_asset(
    file: Optional[UploadFile] = File(None),
    folder: Optional[str] = Form(None),
    resource_type: Optional[str] = Form(None, alias="resourceType"),
):
    """Proxy a file to the asset host and return its URL and public id."""
    if file is None or not file.filename:
        _fail(400, "File upload required.")

    content = await file.read()
    if len(content) > MAX_UPLOAD_BYTES:
        _fail(400, f"File exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit.")

    if not assets.is_configured():
        _fail(503, "Asset storage is not configured.")

    uploaded = await assets.upload_asset(
        content,
        file.filename,
        folder=_form_text(folder) or CLOUDINARY_FOLDER,
        resource_type=assets.normalize_resource_type(resource_type),
        content_type=file.content_type or "application/octet-stream",
    )
    if not uploaded:
        _fail(500, "Upload failed.")
    return _data(camelize(uploaded))


@router.get("/download")
async def api_download(url: Optional[str] = Query(None)):
    """Redirect to an absolute http(s) download URL."""
    if not url:
        _fail(400, "Missing url query parameter.")

    target = urlparse(url.strip())
    if target.scheme not in ("http", "https") or not target.netloc:
        _fail(400, "Invalid download URL.")
    return RedirectResponse(url=target.geturl(), status_code=307)
