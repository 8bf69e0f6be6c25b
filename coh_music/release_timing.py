"""
Coh Music Site - Release Timing

Two pure functions shared by the API, the page renderer and the badge
script:

- ``resolve_release_timing`` turns the admin's date / time / timezone
  inputs into the stored ``release_date``, ``release_at`` and default
  ``coming_soon`` values.
- ``is_coming_soon`` decides whether a stored release currently shows a
  "coming soon" badge.

Both take ``now`` as a parameter so callers and tests control the clock.
Naive date/time values are interpreted as UTC.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger

from coh_music.errors import InvalidInputError


@dataclass(frozen=True)
class ReleaseTiming:
    """Resolved timing values written into a release record."""

    release_date: Optional[datetime]
    release_at: Optional[datetime]
    coming_soon: bool

    def as_record(self) -> dict[str, Any]:
        """Column values for the ``music_releases`` table."""
        return {
            "release_date": _isoformat(self.release_date),
            "release_at": _isoformat(self.release_at),
            "coming_soon": self.coming_soon,
        }


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------
def parse_release_date(value: str) -> date:
    """Parse a calendar date (``YYYY-MM-DD`` or a full ISO timestamp)."""
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise InvalidInputError("Invalid release date.", field="releaseDate") from None


def parse_release_time(value: Optional[str]) -> Optional[tuple[int, int]]:
    """
    Parse ``HH:MM`` into ``(hour, minute)``.

    ``9:30`` is accepted as ``09:30``.  Anything else returns None and the
    release falls back to midnight.
    """
    if not value or not value.strip():
        return None

    parts = value.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        logger.debug("⏱️ Ignoring unparseable release time '{}'", value)
        return None

    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        logger.debug("⏱️ Ignoring out-of-range release time '{}'", value)
        return None
    return hour, minute


def load_time_zone(name: Optional[str]) -> Optional[ZoneInfo]:
    """Return the IANA zone for *name*, or None when it is missing or unknown."""
    if not name or not name.strip():
        return None
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.warning("🌐 Unknown time zone '{}', using UTC wall-clock time", name)
        return None


def as_instant(value: Any) -> Optional[datetime]:
    """
    Coerce a stored timestamp (datetime or ISO string) into an aware UTC
    datetime.  Unparseable values return None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        try:
            moment = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------
def resolve_release_timing(
    release_date: Optional[str] = None,
    release_time: Optional[str] = None,
    time_zone: Optional[str] = None,
    coming_soon: Optional[bool] = None,
    *,
    now: Optional[datetime] = None,
) -> ReleaseTiming:
    """
    Derive the stored timing values for a release.

    Without a release date the release is announced but undated: both
    timestamps are None and ``coming_soon`` defaults to True.  With a date,
    ``release_at`` is the date plus the optional time of day, read as
    wall-clock time in *time_zone* when that zone is valid and as UTC
    otherwise.  An explicit *coming_soon* always wins; when omitted it is
    ``release_at > now``.

    Raises:
        InvalidInputError: *release_date* is present but cannot be parsed.
    """
    if not release_date or not release_date.strip():
        return ReleaseTiming(
            release_date=None,
            release_at=None,
            coming_soon=True if coming_soon is None else coming_soon,
        )

    day = parse_release_date(release_date)
    hour, minute = parse_release_time(release_time) or (0, 0)

    midnight = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    release_at = midnight.replace(hour=hour, minute=minute)

    zone = load_time_zone(time_zone)
    if zone is not None:
        wall_clock = datetime(day.year, day.month, day.day, hour, minute, tzinfo=zone)
        release_at = wall_clock.astimezone(timezone.utc)

    if coming_soon is None:
        current = now or utc_now()
        coming_soon = release_at > current

    return ReleaseTiming(
        release_date=midnight,
        release_at=release_at,
        coming_soon=coming_soon,
    )


# ---------------------------------------------------------------------------
# Visibility predicate
# ---------------------------------------------------------------------------
def is_coming_soon(
    coming_soon: Any,
    release_at: Any = None,
    release_date: Any = None,
    *,
    now: Optional[datetime] = None,
) -> bool:
    """
    Return True when a release should display the "coming soon" badge.

    A false flag always hides the badge, even for a future release.  A true
    flag shows it until the release instant (``release_at``, else
    ``release_date``) has passed.  Undated releases stay "coming soon".
    """
    if not coming_soon:
        return False

    moment = as_instant(release_at) or as_instant(release_date)
    if moment is None:
        return True

    current = now or utc_now()
    return moment > current


def record_is_coming_soon(
    record: Mapping[str, Any], now: Optional[datetime] = None
) -> bool:
    """Apply :func:`is_coming_soon` to a ``music_releases`` row."""
    return is_coming_soon(
        record.get("coming_soon"),
        record.get("release_at"),
        record.get("release_date"),
        now=now,
    )
