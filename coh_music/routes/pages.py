"""
Coh Music Site - Page Routes

Serves HTML pages using Jinja2 templates: the public one-page site, the
shareable release pages, the press kit and the admin dashboard.

Every page reads straight from the SQLite database, so edits made in the
admin show up on the next request.
"""

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse
from loguru import logger

from coh_music import database, press_kit
from coh_music.auth import get_current_user
from coh_music.config import APP_VERSION, BADGE_REFRESH_SECONDS, SITE_NAME
from coh_music.content import (
    gallery_item,
    parse_links,
    release_detail,
    release_metadata,
    release_summary,
    resolve_site_labels,
    video_embed_url,
)
from coh_music.release_timing import utc_now
from coh_music.utils import parse_tags

router = APIRouter(tags=["Pages"])


def _base_context(request: Request, page_title: str) -> dict:
    return {
        "page_title": page_title,
        "site_name": SITE_NAME,
        "current_user": get_current_user(request),
        "version": APP_VERSION,
        "badge_refresh_ms": BADGE_REFRESH_SECONDS * 1000,
    }


# ---------------------------------------------------------------------------
# Home
# ---------------------------------------------------------------------------
@router.get("/", response_class=HTMLResponse)
async def home(request: Request):
    """The public one-page site."""
    now = utc_now()
    hero = await database.get_latest("hero")
    labels = resolve_site_labels(await database.get_latest("site_labels"))
    about = await database.get_latest("about_content")
    contact = await database.get_latest("contact_profiles")

    releases = [release_summary(r, now) for r in await database.list_rows("music_releases")]
    gallery = [gallery_item(r) for r in await database.list_rows("gallery_items")]

    videos = []
    for row in await database.list_rows("videos"):
        video = dict(row)
        video["tags"] = parse_tags(row.get("tags"))
        video["embed_url"] = video_embed_url(row)
        videos.append(video)

    if contact:
        contact = dict(contact)
        contact["social_links"] = parse_links(contact.get("social_links"), "social")

    context = _base_context(request, (hero or {}).get("meta_title") or SITE_NAME)
    context.update(
        {
            "hero": hero,
            "labels": labels,
            "releases": releases,
            "gallery": gallery,
            "videos": videos,
            "press_releases": await database.list_rows("press_releases"),
            "about": about,
            "contact": contact,
            "meta_description": (hero or {}).get("meta_description"),
        }
    )
    return request.app.state.templates.TemplateResponse(request, "home.html", context)


# ---------------------------------------------------------------------------
# Release page
# ---------------------------------------------------------------------------
@router.get("/music/{slug}", response_class=HTMLResponse)
async def release_page(request: Request, slug: str):
    """Shareable page for a single release."""
    row = await database.get_release_by_slug(slug)
    if not row:
        logger.debug("🔍 No release with slug '{}'", slug)
        raise HTTPException(status_code=404, detail="Release not found")

    release = release_detail(row)
    meta = release_metadata(release, SITE_NAME)

    context = _base_context(request, meta["title"])
    context.update(
        {
            "release": release,
            "meta_description": meta["description"],
            "meta_image": meta["image"],
        }
    )
    return request.app.state.templates.TemplateResponse(request, "release.html", context)


# ---------------------------------------------------------------------------
# Press kit
# ---------------------------------------------------------------------------
@router.get("/press-kit", response_class=HTMLResponse)
async def press_kit_page(request: Request):
    kit = await press_kit.get_press_kit_assets()

    context = _base_context(request, f"Press Kit · {SITE_NAME}")
    context["items"] = press_kit.build_press_kit_items(kit)
    return request.app.state.templates.TemplateResponse(request, "press_kit.html", context)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------
@router.get("/admin", response_class=HTMLResponse)
async def admin_page(request: Request):
    """
    Admin dashboard.

    Every section of the site has an editor here.  Forms post JSON to the
    ``/api/*`` endpoints; releases, gallery items and videos can also be
    dragged into a new order which is saved through the order endpoints.
    """
    now = utc_now()
    releases = [release_detail(r, now) for r in await database.list_rows("music_releases")]

    context = _base_context(request, f"Admin · {SITE_NAME}")
    context.update(
        {
            "hero": await database.get_latest("hero"),
            "labels": resolve_site_labels(await database.get_latest("site_labels")),
            "stored_labels": await database.get_latest("site_labels") or {},
            "about": await database.get_latest("about_content"),
            "contact": await database.get_latest("contact_profiles"),
            "releases": releases,
            "gallery": [gallery_item(r) for r in await database.list_rows("gallery_items")],
            "videos": await database.list_rows("videos"),
            "press_releases": await database.list_rows("press_releases"),
            "press_kit": await press_kit.get_press_kit_assets(),
            "subscribers": await database.list_rows("newsletter_subscribers"),
            "subscriber_count": await database.count_rows("newsletter_subscribers"),
            "link_modes": press_kit.LINK_MODES,
        }
    )
    return request.app.state.templates.TemplateResponse(request, "admin.html", context)
