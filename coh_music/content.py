"""
Coh Music Site - Content Shaping

Turns stored rows into the structures the pages and the JSON API expose:

- Site label fallbacks
- Release summaries and detail views (coming-soon badge, streaming links)
- Gallery tag narrowing
- Video provider detection
- Press release download links
- Newsletter CSV export
"""

import csv
import io
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse, urlunparse

from coh_music.release_timing import as_instant, record_is_coming_soon
from coh_music.utils import parse_json_list, parse_tags

# ---------------------------------------------------------------------------
# Site labels
# ---------------------------------------------------------------------------
DEFAULT_SITE_LABELS = {
    "hero_label": "Composer • Producer • Multi-Instrumentalist",
    "music_label": "Music",
    "gallery_label": "Gallery",
    "videos_label": "Videos",
    "about_label": "About",
    "contact_label": "Contact",
}


def resolve_site_labels(row: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Merge stored labels over the defaults; blank values fall back too."""
    labels = dict(DEFAULT_SITE_LABELS)
    if not row:
        return labels
    for key in labels:
        value = row.get(key)
        if isinstance(value, str) and value.strip():
            labels[key] = value
    return labels


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------
def parse_links(raw: Any, fallback_prefix: str) -> List[Dict[str, str]]:
    """
    Narrow a stored link list to ``{"id", "label", "url"}`` dicts.

    Entries without a string label and url are dropped.  Entries without an
    id get ``"{fallback_prefix}-{label}-{url}"``.
    """
    links: List[Dict[str, str]] = []
    for entry in parse_json_list(raw):
        if not isinstance(entry, dict):
            continue
        label, url = entry.get("label"), entry.get("url")
        if not isinstance(label, str) or not isinstance(url, str):
            continue
        link_id = entry.get("id")
        if not isinstance(link_id, str) or not link_id:
            link_id = f"{fallback_prefix}-{label}-{url}"
        links.append({"id": link_id, "label": label, "url": url})
    return links


# ---------------------------------------------------------------------------
# Music releases
# ---------------------------------------------------------------------------
def release_moment(row: Dict[str, Any]) -> Optional[datetime]:
    """The instant a release goes live (``release_at``, else ``release_date``)."""
    return as_instant(row.get("release_at")) or as_instant(row.get("release_date"))


def release_summary(row: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Card data for the release carousel on the home page."""
    moment = release_moment(row)
    return {
        "id": row["id"],
        "title": row["title"],
        "slug": row["slug"],
        "cover_image_url": row.get("cover_image_url"),
        "cover_image_alt": row.get("cover_image_alt"),
        "release_date": row.get("release_date"),
        "coming_soon": bool(row.get("coming_soon")),
        "release_timestamp": int(moment.timestamp() * 1000) if moment else None,
        "show_coming_soon": record_is_coming_soon(row, now),
    }


def release_detail(row: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Everything the release page renders."""
    links = parse_links(row.get("streaming_links"), row["slug"])
    credits = row.get("credits") or ""
    detail = dict(row)
    detail.update(
        {
            "streaming_links": links,
            "credit_lines": [line.strip() for line in credits.splitlines() if line.strip()],
        }
    )
    detail.update(release_summary(row, now))
    return detail


def release_metadata(detail: Dict[str, Any], site_name: str) -> Dict[str, Any]:
    """Title, description and Open Graph image for a release page."""
    title = detail.get("meta_title") or f"{detail['title']} · {site_name}"
    description = (
        detail.get("meta_description")
        or detail.get("description")
        or f"New release from {site_name}."
    )
    image = None
    if detail.get("cover_image_url"):
        image = {
            "url": detail["cover_image_url"],
            "width": 1200,
            "height": 1200,
            "alt": detail.get("cover_image_alt") or detail["title"],
        }
    return {"title": title, "description": description, "image": image}


# ---------------------------------------------------------------------------
# Gallery
# ---------------------------------------------------------------------------
def gallery_item(row: Dict[str, Any]) -> Dict[str, Any]:
    item = dict(row)
    item["tags"] = parse_tags(row.get("tags"))
    return item


# ---------------------------------------------------------------------------
# Videos
# ---------------------------------------------------------------------------
def resolve_video_provider(
    video_url: str, video_cloudinary_public_id: Optional[str] = None
) -> Dict[str, str]:
    """
    Work out where a video is hosted.

    Uploaded videos are ``CLOUDINARY`` keyed by public id; YouTube links are
    ``YOUTUBE`` keyed by the video id; anything else is ``OTHER``.
    """
    if video_cloudinary_public_id:
        return {"provider": "CLOUDINARY", "external_id": video_cloudinary_public_id}

    parsed = urlparse(video_url)
    host = (parsed.hostname or "").lower()
    if "youtube.com" in host or "youtu.be" in host:
        video_id = parse_qs(parsed.query).get("v", [None])[0]
        if not video_id:
            segments = [s for s in parsed.path.split("/") if s]
            video_id = segments[-1] if segments else None
        if video_id:
            return {"provider": "YOUTUBE", "external_id": video_id}

    return {"provider": "OTHER", "external_id": video_url}


def video_embed_url(row: Dict[str, Any]) -> str:
    if row.get("provider") == "YOUTUBE":
        return f"https://www.youtube-nocookie.com/embed/{row['external_id']}"
    return row["video_url"]


# ---------------------------------------------------------------------------
# Press releases
# ---------------------------------------------------------------------------
def to_dropbox_download_url(value: str) -> str:
    """Rewrite a Dropbox share link into a direct download link."""
    text = value.strip()
    parsed = urlparse(text)
    host = (parsed.hostname or "").lower()
    if host in ("www.dropbox.com", "dropbox.com"):
        return urlunparse(parsed._replace(netloc="dl.dropboxusercontent.com", query=""))
    return text


def derive_direct_download_url(
    dropbox_url: Optional[str], pdf_url: Optional[str]
) -> Optional[str]:
    if dropbox_url:
        return to_dropbox_download_url(dropbox_url)
    if pdf_url:
        return pdf_url.strip()
    return None


# ---------------------------------------------------------------------------
# Newsletter
# ---------------------------------------------------------------------------
NEWSLETTER_CSV_HEADER = "email,created_at,source"


def newsletter_csv(subscribers: List[Dict[str, Any]]) -> str:
    """Export subscribers (oldest first) with every cell quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for sub in subscribers:
        writer.writerow([sub["email"], sub["created_at"], sub.get("source") or ""])
    body = buffer.getvalue().rstrip("\n")
    return NEWSLETTER_CSV_HEADER + ("\n" + body if body else "")
