"""
Coh Music Site - Payload Validation

Pydantic models for every admin form and the public newsletter signup.
Payloads are validated once here; route handlers and the database layer
only ever see these typed models.

The JSON API uses camelCase keys (``releaseDate``); snake_case names are
accepted too.  Loosely shaped arrays (streaming links, social links, tags)
are narrowed at this boundary: malformed entries are dropped instead of
failing the whole payload.
"""

from typing import Annotated, Any, Dict, List, Optional

from pydantic import (
    AfterValidator,
    AnyUrl,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel


_URL_ADAPTER = TypeAdapter(AnyUrl)


def _required_url(value: str) -> str:
    _URL_ADAPTER.validate_python(value)
    return value


def _optional_url(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return _required_url(value.strip())


Url = Annotated[str, AfterValidator(_required_url)]
OptionalUrl = Annotated[Optional[str], AfterValidator(_optional_url)]


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_fields(self) -> Dict[str, Any]:
        """Column values keyed by snake_case name."""
        return self.model_dump()


# ---------------------------------------------------------------------------
# Links and tags
# ---------------------------------------------------------------------------
class LabeledLink(ApiModel):
    id: Optional[str] = Field(default=None, min_length=1, max_length=64)
    label: str = Field(min_length=2, max_length=60)
    url: Url


def _narrow_links(value: Any) -> List[Dict[str, Any]]:
    """Keep only link entries that validate; everything else is discarded."""
    if not isinstance(value, list):
        return []
    links: List[Dict[str, Any]] = []
    for entry in value:
        if not isinstance(entry, dict):
            continue
        try:
            link = LabeledLink.model_validate(entry)
        except ValidationError:
            continue
        links.append(link.model_dump(exclude_none=True))
    return links


def _narrow_tags(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    tags: List[str] = []
    for tag in value:
        if isinstance(tag, str) and 1 <= len(tag.strip()) <= 40:
            tags.append(tag.strip())
    return tags


LinkList = Annotated[List[Dict[str, Any]], BeforeValidator(_narrow_links)]
TagList = Annotated[List[str], BeforeValidator(_narrow_tags)]


# ---------------------------------------------------------------------------
# Singletons
# ---------------------------------------------------------------------------
class HeroPayload(ApiModel):
    title: str = Field(min_length=10, max_length=140)
    subtitle: str = Field(min_length=20, max_length=280)
    background_color: Optional[str] = Field(default=None, max_length=40)
    title_color: Optional[str] = Field(default=None, max_length=40)
    subtitle_color: Optional[str] = Field(default=None, max_length=40)
    eyebrow_color: Optional[str] = Field(default=None, max_length=40)
    title_font: Optional[str] = Field(default=None, max_length=120)
    subtitle_font: Optional[str] = Field(default=None, max_length=120)
    primary_cta_label: Optional[str] = Field(default=None, max_length=80)
    primary_cta_href: OptionalUrl = None
    secondary_cta_label: Optional[str] = Field(default=None, max_length=80)
    secondary_cta_href: OptionalUrl = None
    meta_title: Optional[str] = Field(default=None, max_length=70)
    meta_description: Optional[str] = Field(default=None, max_length=300)


class SiteLabelsPayload(ApiModel):
    hero_label: Optional[str] = Field(default=None, max_length=120)
    music_label: Optional[str] = Field(default=None, max_length=80)
    gallery_label: Optional[str] = Field(default=None, max_length=80)
    videos_label: Optional[str] = Field(default=None, max_length=80)
    about_label: Optional[str] = Field(default=None, max_length=80)
    contact_label: Optional[str] = Field(default=None, max_length=80)


class AboutPayload(ApiModel):
    about_text: str = Field(min_length=40)
    markdown: Optional[str] = None
    mission_statement: Optional[str] = Field(default=None, max_length=240)
    featured_quote: Optional[str] = Field(default=None, max_length=280)
    quote_attribution: Optional[str] = Field(default=None, max_length=120)
    artist_photo_url: OptionalUrl = None
    artist_photo_alt: Optional[str] = Field(default=None, max_length=160)
    artist_photo_cloudinary_public_id: Optional[str] = Field(default=None, max_length=200)
    seo_title: Optional[str] = Field(default=None, max_length=70)
    seo_description: Optional[str] = Field(default=None, max_length=300)


class ContactPayload(ApiModel):
    email_contact: EmailStr
    booking_email: Optional[EmailStr] = None
    social_links: LinkList = Field(default_factory=list, max_length=20)
    management_contact: Optional[str] = Field(default=None, max_length=200)
    press_contact: Optional[str] = Field(default=None, max_length=200)


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------
class GalleryItemPayload(ApiModel):
    title: str = Field(min_length=2, max_length=120)
    caption: Optional[str] = Field(default=None, max_length=400)
    alt_text: Optional[str] = Field(default=None, max_length=160)
    category: Optional[str] = Field(default=None, max_length=80)
    tags: TagList = Field(default_factory=list)
    sort_order: Optional[int] = Field(default=None, ge=0)


class MusicReleasePayload(ApiModel):
    title: str = Field(min_length=2, max_length=160)
    slug: str = Field(min_length=2, max_length=120, pattern=r"^[a-z0-9-]+$")
    description: Optional[str] = Field(default=None, max_length=1000)
    streaming_links: LinkList = Field(default_factory=list, max_length=12)
    cover_image_url: OptionalUrl = None
    cover_image_alt: Optional[str] = Field(default=None, max_length=160)
    cover_cloudinary_public_id: Optional[str] = Field(default=None, max_length=200)
    audio_url: OptionalUrl = None
    audio_cloudinary_public_id: Optional[str] = Field(default=None, max_length=200)
    release_time: Optional[str] = None
    time_zone: Optional[str] = None
    coming_soon: Optional[bool] = None
    # Declared after the fields it is cross-checked against
    release_date: Optional[str] = Field(default=None, validate_default=True)
    genre: Optional[str] = Field(default=None, max_length=80)
    duration: Optional[str] = Field(default=None, max_length=40)
    credits: Optional[str] = Field(default=None, max_length=1200)
    featured: bool = False
    meta_title: Optional[str] = Field(default=None, max_length=70)
    meta_description: Optional[str] = Field(default=None, max_length=300)
    sort_order: Optional[int] = Field(default=None, ge=0)

    @field_validator("release_date")
    @classmethod
    def _release_date_required(cls, value: Optional[str], info: ValidationInfo):
        if value is not None and not value.strip():
            value = None
        if value is None:
            if info.data.get("release_time") or info.data.get("time_zone"):
                raise ValueError(
                    "Provide a release date when release time or timezone is set."
                )
            if info.data.get("coming_soon") is False:
                raise ValueError(
                    "Provide a release date or mark the release as coming soon."
                )
        return value


class VideoPayload(ApiModel):
    title: str = Field(min_length=2, max_length=160)
    description: Optional[str] = Field(default=None, max_length=500)
    video_url: Url
    video_cloudinary_public_id: Optional[str] = Field(default=None, max_length=200)
    thumbnail_url: OptionalUrl = None
    thumbnail_cloudinary_public_id: Optional[str] = Field(default=None, max_length=200)
    tags: TagList = Field(default_factory=list)


class PressReleasePayload(ApiModel):
    title: str = Field(min_length=2, max_length=200)
    date: str = Field(min_length=1)
    summary: str = Field(min_length=10, max_length=600)
    full_content: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=80)
    cover_image_url: OptionalUrl = None
    cover_cloudinary_public_id: Optional[str] = Field(default=None, max_length=200)
    pdf_url: OptionalUrl = None
    pdf_cloudinary_public_id: Optional[str] = Field(default=None, max_length=200)
    dropbox_url: OptionalUrl = None
    featured: bool = False


class PressKitLinkInput(ApiModel):
    """Press kit links are sanitised later; here every field is optional."""

    id: Optional[str] = None
    label: Optional[str] = None
    helper: Optional[str] = None
    url: Optional[str] = None
    mode: Optional[str] = None


def _narrow_press_kit_links(value: Any) -> List[Any]:
    if not isinstance(value, list):
        return []
    return [
        {k: v for k, v in entry.items() if isinstance(v, str)}
        for entry in value
        if isinstance(entry, dict)
    ]


class PressKitAssetsPayload(ApiModel):
    links: Annotated[List[PressKitLinkInput], BeforeValidator(_narrow_press_kit_links)] = (
        Field(default_factory=list)
    )


class NewsletterSubscriptionPayload(ApiModel):
    email: EmailStr
    source: Optional[str] = Field(default=None, max_length=120)


class ReorderPayload(ApiModel):
    ids: List[Any]

    def valid_ids(self) -> List[str]:
        """Non-string entries are dropped."""
        return [i for i in self.ids if isinstance(i, str)]


# ---------------------------------------------------------------------------
# Error shaping
# ---------------------------------------------------------------------------
def flatten_issues(exc: ValidationError) -> Dict[str, List[str]]:
    """Group validation messages by top-level field name."""
    issues: Dict[str, List[str]] = {}
    for error in exc.errors():
        loc = error.get("loc") or ("_",)
        field = to_camel(str(loc[0])) if isinstance(loc[0], str) else "_"
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        issues.setdefault(field, []).append(message)
    return issues
