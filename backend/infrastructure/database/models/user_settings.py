"""
Per-user display and notification preferences, one flat column per setting.

Column names match the flat keys of core.domain.settings_mapping.
"""

from typing import Any

from sqlalchemy import Boolean, Float, ForeignKey, String, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from core.domain.settings_mapping import FLAT_KEYS, default_flat_settings
from .base import Base, TimestampMixin

_DEFAULTS = default_flat_settings()


class UserSettings(Base, TimestampMixin):
    """Flat storage for the nested settings object."""

    __tablename__ = "user_settings"

    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )

    theme_name: Mapped[str] = mapped_column(String(50), default=_DEFAULTS["theme_name"])
    theme_accent: Mapped[str] = mapped_column(String(50), default=_DEFAULTS["theme_accent"])
    font_family: Mapped[str] = mapped_column(String(50), default=_DEFAULTS["font_family"])
    font_weight: Mapped[str] = mapped_column(String(20), default=_DEFAULTS["font_weight"])
    homepage_layout: Mapped[str] = mapped_column(String(20), default=_DEFAULTS["homepage_layout"])
    content_density: Mapped[str] = mapped_column(String(20), default=_DEFAULTS["content_density"])
    infinite_scroll: Mapped[bool] = mapped_column(Boolean, default=_DEFAULTS["infinite_scroll"])
    card_style: Mapped[str] = mapped_column(String(20), default=_DEFAULTS["card_style"])
    border_radius: Mapped[str] = mapped_column(String(20), default=_DEFAULTS["border_radius"])
    auto_play_audio: Mapped[bool] = mapped_column(Boolean, default=_DEFAULTS["auto_play_audio"])
    default_summary_view: Mapped[bool] = mapped_column(
        Boolean, default=_DEFAULTS["default_summary_view"]
    )
    line_height: Mapped[float] = mapped_column(Float, default=_DEFAULTS["line_height"])
    letter_spacing: Mapped[float] = mapped_column(Float, default=_DEFAULTS["letter_spacing"])
    justify_text: Mapped[bool] = mapped_column(Boolean, default=_DEFAULTS["justify_text"])
    notifications_breaking_news: Mapped[bool] = mapped_column(
        Boolean, default=_DEFAULTS["notifications_breaking_news"]
    )
    notifications_weekly_digest: Mapped[bool] = mapped_column(
        Boolean, default=_DEFAULTS["notifications_weekly_digest"]
    )
    notifications_special_offers: Mapped[bool] = mapped_column(
        Boolean, default=_DEFAULTS["notifications_special_offers"]
    )
    font_size: Mapped[str] = mapped_column(String(20), default=_DEFAULTS["font_size"])
    high_contrast: Mapped[bool] = mapped_column(Boolean, default=_DEFAULTS["high_contrast"])
    reduce_motion: Mapped[bool] = mapped_column(Boolean, default=_DEFAULTS["reduce_motion"])
    dyslexia_font: Mapped[bool] = mapped_column(Boolean, default=_DEFAULTS["dyslexia_font"])
    data_sharing: Mapped[bool] = mapped_column(Boolean, default=_DEFAULTS["data_sharing"])
    ad_personalization: Mapped[bool] = mapped_column(
        Boolean, default=_DEFAULTS["ad_personalization"]
    )
    preferred_categories: Mapped[list] = mapped_column(JSON, default=list)
    preferred_tags: Mapped[list] = mapped_column(JSON, default=list)

    def to_flat(self) -> dict[str, Any]:
        return {key: getattr(self, key) for key in FLAT_KEYS}

    def update_from_flat(self, flat: dict[str, Any]) -> None:
        for key in FLAT_KEYS:
            setattr(self, key, flat[key])
