"""
Coh Music Site - Pytest Configuration & Shared Fixtures

Provides reusable fixtures for:
- A fresh SQLite database per test (schema applied)
- A FastAPI TestClient bound to that database
- A signed admin session cookie
- Sample payloads for releases, videos and press releases
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from coh_music.config import SESSION_COOKIE_NAME

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now() -> datetime:
    """A fixed 'now' so time-dependent assertions are deterministic."""
    return FIXED_NOW


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def temp_db(tmp_path: Path, monkeypatch) -> Path:
    """
    Point the database layer at a temporary SQLite file and create the
    schema.  Returns the database path.
    """
    from coh_music import database
    from coh_music.routes import api

    db_path = tmp_path / "coh_music_test.db"
    monkeypatch.setattr(database, "DB_PATH", db_path)
    monkeypatch.setattr(api, "DB_PATH", db_path)
    database.init_db()
    return db_path


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def client(temp_db: Path, monkeypatch) -> TestClient:
    """TestClient with auth disabled and no asset host configured."""
    from coh_music import assets, auth
    from coh_music.main import app

    monkeypatch.setattr(auth, "ADMIN_PASSWORD", "")
    monkeypatch.setattr(assets, "is_configured", lambda: False)
    return TestClient(app)


@pytest.fixture
def secured_client(temp_db: Path, monkeypatch) -> TestClient:
    """TestClient with an admin password set (no session cookie)."""
    from coh_music import assets, auth
    from coh_music.main import app

    monkeypatch.setattr(auth, "ADMIN_PASSWORD", "correct-horse")
    monkeypatch.setattr(assets, "is_configured", lambda: False)
    return TestClient(app)


@pytest.fixture
def admin_cookie() -> Dict[str, str]:
    """Cookies for a valid admin session."""
    from coh_music.auth import _create_session_cookie

    return {SESSION_COOKIE_NAME: _create_session_cookie("admin@cohmusic.com")}


# ---------------------------------------------------------------------------
# Sample payloads
# ---------------------------------------------------------------------------


@pytest.fixture
def release_payload() -> Dict[str, Any]:
    """A valid music release payload as the admin form sends it."""
    return {
        "title": "Night Signals",
        "slug": "night-signals",
        "description": "A slow-burning single built on modular synth loops.",
        "streamingLinks": [
            {"label": "Spotify", "url": "https://open.spotify.com/track/abc"},
            {"label": "Bandcamp", "url": "https://coh.bandcamp.com/track/night-signals"},
        ],
        "releaseDate": "2025-03-01",
        "releaseTime": "18:30",
        "timeZone": "Europe/Stockholm",
        "credits": "Written by COH\n\nMixed by A. Person\n",
    }


@pytest.fixture
def make_release(release_payload):
    """Factory returning a release payload with a unique slug."""

    def _factory(slug: str, **overrides: Any) -> Dict[str, Any]:
        payload = dict(release_payload)
        payload.update({"title": slug.replace("-", " ").title(), "slug": slug})
        payload.update(overrides)
        return payload

    return _factory


@pytest.fixture
def video_payload() -> Dict[str, Any]:
    return {
        "title": "Live at the Warehouse",
        "videoUrl": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "tags": ["live", "", 3, "warehouse"],
    }


@pytest.fixture
def press_release_payload() -> Dict[str, Any]:
    return {
        "title": "New EP announced",
        "date": "2025-02-14",
        "summary": "Creature of Habit announces a four-track EP for spring.",
        "dropboxUrl": "https://www.dropbox.com/s/abc123/ep.pdf?dl=0",
        "featured": True,
    }
