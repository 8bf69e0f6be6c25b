"""
Coh Music Site - Configuration
All settings loaded from environment variables with sensible defaults.

The site runs as a single container.  Content lives in a local SQLite
database; images, audio and PDFs are hosted on Cloudinary and only their
URLs and public ids are stored here.
"""

import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
_ = load_dotenv()

# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------
APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
APP_PORT = int(os.getenv("APP_PORT", "8000"))
APP_ENV = os.getenv("APP_ENV", "development")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
DEBUG = os.getenv("DEBUG", "true").lower() == "true"
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
SITE_NAME = os.getenv("SITE_NAME", "Creature of Habit")

if APP_ENV == "production" and SECRET_KEY == "change-me-in-production":
    raise RuntimeError(
        "SECRET_KEY must be changed from the default value in production. "
        "Set the SECRET_KEY environment variable to a random secret."
    )

# ---------------------------------------------------------------------------
# Authentication (single admin account)
# ---------------------------------------------------------------------------
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@cohmusic.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")  # MUST be set in .env
ADMIN_ROLE = "ADMIN"
# Session cookie name and max age (seconds), default 30 days
SESSION_COOKIE_NAME = "coh_session"
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(60 * 60 * 24 * 30)))

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent

DATA_DIR = Path(os.getenv("DATA_DIR", os.path.join(tempfile.gettempdir(), "coh-music")))
DB_PATH = Path(os.getenv("DB_PATH", os.path.join(DATA_DIR, "coh_music.db")))

TEMPLATES_DIR = BASE_DIR / "templates"
STATIC_DIR = BASE_DIR / "static"

# ---------------------------------------------------------------------------
# Logging: stdout only
# ---------------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ---------------------------------------------------------------------------
# Cloudinary asset host
# ---------------------------------------------------------------------------
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY", "")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET", "")
CLOUDINARY_API_URL = os.getenv("CLOUDINARY_API_URL", "https://api.cloudinary.com/v1_1")

# Folders used on the asset host
CLOUDINARY_FOLDER = os.getenv("CLOUDINARY_FOLDER", "coh-music/uploads")
CLOUDINARY_GALLERY_FOLDER = os.getenv("CLOUDINARY_GALLERY_FOLDER", "coh-music/gallery")

ASSET_RESOURCE_TYPES = ("image", "video", "raw")

# ---------------------------------------------------------------------------
# Upload limits
# ---------------------------------------------------------------------------
MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", str(5 * 1024 * 1024)))
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(100 * 1024 * 1024)))

# ---------------------------------------------------------------------------
# Release badges
# ---------------------------------------------------------------------------
# How often the "coming soon" badge re-checks the clock in the browser
BADGE_REFRESH_SECONDS = int(os.getenv("BADGE_REFRESH_SECONDS", "30"))


def ensure_directories() -> None:
    """Create the local directory holding the SQLite database."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
