"""
Coh Music Site - Cloudinary Asset Client

Cover art, gallery photos, audio, videos and PDFs live on Cloudinary; the
database only keeps their delivery URL and public id.  This module talks
to the Cloudinary upload REST API with signed requests using httpx.

Every call fails soft: errors are logged and ``None`` / ``False`` is
returned so the caller decides whether the failure matters.
"""

from __future__ import annotations

import hashlib
import time
from typing import Any, Optional

import httpx
from loguru import logger

from coh_music.config import (
    ASSET_RESOURCE_TYPES,
    CLOUDINARY_API_KEY,
    CLOUDINARY_API_SECRET,
    CLOUDINARY_API_URL,
    CLOUDINARY_CLOUD_NAME,
    CLOUDINARY_FOLDER,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def is_configured() -> bool:
    """Return True if Cloudinary credentials are configured."""
    return bool(CLOUDINARY_CLOUD_NAME and CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET)


def normalize_resource_type(value: Optional[str]) -> str:
    """Map a requested resource type onto ``image`` / ``video`` / ``raw``."""
    text = value.strip().lower() if isinstance(value, str) else ""
    if text in ASSET_RESOURCE_TYPES:
        return text
    return "image"


def sign_params(params: dict[str, Any], secret: str) -> str:
    """
    Cloudinary request signature: SHA-1 of the sorted ``key=value`` pairs
    joined by ``&`` with the API secret appended.
    """
    to_sign = "&".join(
        f"{key}={params[key]}" for key in sorted(params) if params[key] not in (None, "")
    )
    return hashlib.sha1(f"{to_sign}{secret}".encode("utf-8")).hexdigest()


def _endpoint(resource_type: str, action: str) -> str:
    return f"{CLOUDINARY_API_URL.rstrip('/')}/{CLOUDINARY_CLOUD_NAME}/{resource_type}/{action}"


def _signed(params: dict[str, Any]) -> dict[str, Any]:
    payload = dict(params, timestamp=int(time.time()))
    payload["signature"] = sign_params(payload, CLOUDINARY_API_SECRET)
    payload["api_key"] = CLOUDINARY_API_KEY
    return payload


# ---------------------------------------------------------------------------
# Upload / destroy
# ---------------------------------------------------------------------------
async def upload_asset(
    content: bytes,
    filename: str,
    folder: str = CLOUDINARY_FOLDER,
    resource_type: str = "image",
    content_type: str = "application/octet-stream",
) -> Optional[dict[str, Any]]:
    """
    Upload bytes to Cloudinary.

    Returns the fields the site stores (``url``, ``public_id``,
    ``resource_type``, ``width``, ``height``, ``bytes``, ``format``) or
    ``None`` on failure.
    """
    if not is_configured():
        logger.warning("⚠️ Cloudinary not configured")
        return None

    resource_type = normalize_resource_type(resource_type)
    data = _signed({"folder": folder})
    try:
        async with httpx.AsyncClient(timeout=300.0) as client:
            response = await client.post(
                _endpoint(resource_type, "upload"),
                data=data,
                files={"file": (filename, content, content_type)},
            )
    except httpx.HTTPError as e:
        logger.error("❌ Upload error for {}: {}", filename, e)
        return None

    if response.status_code != 200:
        logger.error(
            "❌ Upload failed ({}): {}", response.status_code, response.text[:200]
        )
        return None

    try:
        body = response.json()
    except ValueError:
        logger.error("❌ Upload for {} returned a non-JSON body", filename)
        return None

    logger.info("⬆️ Uploaded {} → {} ({} bytes)", filename, body.get("public_id"), len(content))
    return {
        "url": body.get("secure_url") or body.get("url"),
        "public_id": body.get("public_id"),
        "resource_type": body.get("resource_type", resource_type),
        "width": body.get("width"),
        "height": body.get("height"),
        "bytes": body.get("bytes", len(content)),
        "format": body.get("format"),
        "duration": body.get("duration"),
    }


async def destroy_asset(public_id: Optional[str], resource_type: str = "image") -> bool:
    """
    Delete an asset from Cloudinary.
    Returns True on success.  A missing public id is a no-op.
    """
    if not public_id:
        return False
    if not is_configured():
        logger.warning("⚠️ Cloudinary not configured, cannot remove {}", public_id)
        return False

    resource_type = normalize_resource_type(resource_type)
    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                _endpoint(resource_type, "destroy"),
                data=_signed({"public_id": public_id}),
            )
    except httpx.HTTPError as e:
        logger.warning("⚠️ Destroy error for {}: {}", public_id, e)
        return False

    try:
        result = response.json().get("result") if response.status_code == 200 else None
    except ValueError:
        result = None

    if result == "ok":
        logger.info("🗑️ Removed asset {} ({})", public_id, resource_type)
        return True

    logger.warning(
        "⚠️ Destroy failed for {} ({}): {}",
        public_id,
        response.status_code,
        response.text[:200],
    )
    return False


async def destroy_assets(*assets: tuple[Optional[str], str]) -> int:
    """Best-effort removal of several ``(public_id, resource_type)`` pairs."""
    removed = 0
    for public_id, resource_type in assets:
        if public_id and await destroy_asset(public_id, resource_type):
            removed += 1
    return removed
