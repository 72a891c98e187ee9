"""
User settings (de)normalization.

The API exchanges a nested preferences object; storage keeps one flat
column per leaf. ``SETTINGS_FIELDS`` is the single table both directions
walk, so every nested leaf maps to exactly one column and back.
"""

from typing import Any, Callable, NamedTuple


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _to_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    return [str(v) for v in value]


class SettingsField(NamedTuple):
    flat_key: str
    path: tuple[str, ...]
    coerce: Callable[[Any], Any]
    default: Any


SETTINGS_FIELDS: tuple[SettingsField, ...] = (
    SettingsField("theme_name", ("theme", "name"), str, "system"),
    SettingsField("theme_accent", ("theme", "accent"), str, "yellow"),
    SettingsField("font_family", ("font", "family"), str, "sans"),
    SettingsField("font_weight", ("font", "weight"), str, "normal"),
    SettingsField("homepage_layout", ("layout", "homepage"), str, "grid"),
    SettingsField("content_density", ("layout", "density"), str, "comfortable"),
    SettingsField("infinite_scroll", ("layout", "infiniteScroll"), _to_bool, True),
    SettingsField("card_style", ("ui", "cardStyle"), str, "elevated"),
    SettingsField("border_radius", ("ui", "borderRadius"), str, "medium"),
    SettingsField("auto_play_audio", ("reading", "autoPlayAudio"), _to_bool, False),
    SettingsField("default_summary_view", ("reading", "defaultSummaryView"), _to_bool, False),
    SettingsField("line_height", ("reading", "lineHeight"), float, 1.6),
    SettingsField("letter_spacing", ("reading", "letterSpacing"), float, 0.0),
    SettingsField("justify_text", ("reading", "justifyText"), _to_bool, False),
    SettingsField("notifications_breaking_news", ("notifications", "breakingNews"), _to_bool, True),
    SettingsField("notifications_weekly_digest", ("notifications", "weeklyDigest"), _to_bool, True),
    SettingsField("notifications_special_offers", ("notifications", "specialOffers"), _to_bool, False),
    SettingsField("font_size", ("fontSize",), str, "medium"),
    SettingsField("high_contrast", ("highContrast",), _to_bool, False),
    SettingsField("reduce_motion", ("reduceMotion",), _to_bool, False),
    SettingsField("dyslexia_font", ("dyslexiaFont",), _to_bool, False),
    SettingsField("data_sharing", ("dataSharing",), _to_bool, True),
    SettingsField("ad_personalization", ("adPersonalization",), _to_bool, True),
    SettingsField("preferred_categories", ("preferences", "categories"), _to_str_list, []),
    SettingsField("preferred_tags", ("preferences", "tags"), _to_str_list, []),
)

FLAT_KEYS: tuple[str, ...] = tuple(f.flat_key for f in SETTINGS_FIELDS)


class SettingsShapeError(KeyError):
    """A nested or flat settings object is missing a required field."""

    def __init__(self, field: str):
        super().__init__(field)
        self.field = field

    def __str__(self) -> str:
        return f"Missing settings field: {self.field}"


def _check_table(fields: tuple[SettingsField, ...]) -> None:
    flat_keys = [f.flat_key for f in fields]
    paths = [f.path for f in fields]
    if len(set(flat_keys)) != len(flat_keys):
        raise ValueError("Duplicate flat key in settings table")
    if len(set(paths)) != len(paths):
        raise ValueError("Duplicate nested path in settings table")
    leaves = set(paths)
    for path in paths:
        for depth in range(1, len(path)):
            if path[:depth] in leaves:
                raise ValueError(f"Settings path {'.'.join(path)} nests under a leaf")


_check_table(SETTINGS_FIELDS)


def flatten(nested: dict) -> dict[str, Any]:
    """Nested settings object -> flat column values. Every leaf is required."""
    flat: dict[str, Any] = {}
    for spec in SETTINGS_FIELDS:
        node: Any = nested
        for key in spec.path:
            if not isinstance(node, dict) or key not in node:
                raise SettingsShapeError(".".join(spec.path))
            node = node[key]
        flat[spec.flat_key] = node
    return flat


def unflatten(flat: dict[str, Any]) -> dict:
    """Flat column values -> nested settings object, coercing storage types."""
    nested: dict = {}
    for spec in SETTINGS_FIELDS:
        if spec.flat_key not in flat:
            raise SettingsShapeError(spec.flat_key)
        node = nested
        for key in spec.path[:-1]:
            node = node.setdefault(key, {})
        node[spec.path[-1]] = spec.coerce(flat[spec.flat_key])
    return nested


def default_flat_settings() -> dict[str, Any]:
    """Column values for a user who has never saved settings."""
    return {
        spec.flat_key: list(spec.default) if isinstance(spec.default, list) else spec.default
        for spec in SETTINGS_FIELDS
    }


def default_settings() -> dict:
    return unflatten(default_flat_settings())
