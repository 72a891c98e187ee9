"""
Reader account schemas: profile, settings, notifications and API keys.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from api.schemas.articles import AdResponse


# ============================================================================
# Profile
# ============================================================================


class ProfileUpdateRequest(BaseModel):
    """Editable profile fields. Omitted fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    bio: Optional[str] = Field(None, max_length=2000)
    avatar_url: Optional[str] = Field(None, max_length=500)
    socials: Optional[dict[str, str]] = None


class SearchHistoryItem(BaseModel):
    query: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentHistoryItem(BaseModel):
    id: str
    timestamp: datetime
    plan: str
    amount: Decimal
    method: str
    status: str

    model_config = ConfigDict(from_attributes=True)


class ProfileResponse(BaseModel):
    """The signed-in user's profile with reader activity attached."""

    id: str
    email: str
    name: str
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    socials: Optional[dict[str, str]] = None
    role: str
    tier: str
    billing_status: Optional[str] = None
    created_at: datetime
    saved_article_ids: list[str] = Field(default_factory=list)
    search_history: list[SearchHistoryItem] = Field(default_factory=list)
    ads: list[AdResponse] = Field(default_factory=list)
    payment_history: list[PaymentHistoryItem] = Field(default_factory=list)


# ============================================================================
# Settings (nested, camelCase on the wire)
# ============================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ThemeSettings(_CamelModel):
    name: str
    accent: str


class FontSettings(_CamelModel):
    family: str
    weight: str


class LayoutSettings(_CamelModel):
    homepage: str
    density: str
    infinite_scroll: bool


class UISettings(_CamelModel):
    card_style: str
    border_radius: str


class ReadingSettings(_CamelModel):
    auto_play_audio: bool
    default_summary_view: bool
    line_height: float = Field(..., ge=1.0, le=3.0)
    letter_spacing: float = Field(..., ge=-0.1, le=0.5)
    justify_text: bool


class NotificationSettings(_CamelModel):
    breaking_news: bool
    weekly_digest: bool
    special_offers: bool


class PreferenceSettings(_CamelModel):
    categories: list[str] = Field(..., max_length=50)
    tags: list[str] = Field(..., max_length=100)


class UserSettingsPayload(_CamelModel):
    """
    The complete settings object. Every field is required on update:
    a partial object is rejected with 422.
    """

    theme: ThemeSettings
    font: FontSettings
    layout: LayoutSettings
    ui: UISettings
    reading: ReadingSettings
    notifications: NotificationSettings
    font_size: str
    high_contrast: bool
    reduce_motion: bool
    dyslexia_font: bool
    data_sharing: bool
    ad_personalization: bool
    preferences: PreferenceSettings


# ============================================================================
# Notifications & API keys
# ============================================================================


class NotificationResponse(BaseModel):
    id: str
    message: str
    link: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ApiKeyCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class ApiKeyResponse(BaseModel):
    id: str
    name: str
    key_prefix: str
    active: bool
    created_at: datetime
    last_used_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ApiKeyCreatedResponse(ApiKeyResponse):
    """Returned once, on creation: the only time the full key is visible."""

    key: str


class SavedToggleResponse(BaseModel):
    article_id: str
    saved: bool
