"""Localized Field Resolution

CMS fields arrive in one of a few shapes: a plain string (single-locale
content), a per-locale map such as ``{"en": "...", "sv": "..."}``, a rich-text
tree (``{"root": {...}}``), or nothing at all. ``classify`` turns a raw value
into one of the variants below and ``resolve`` / ``select`` pick the value for
a locale, falling back to the default locale. None of these raise.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Union

from .config import DEFAULT_FALLBACK_LOCALE


@dataclass(frozen=True)
class Absent:
    pass


@dataclass(frozen=True)
class PlainText:
    value: str


@dataclass(frozen=True)
class RichText:
    tree: Mapping[str, Any]


@dataclass(frozen=True)
class LocaleMap:
    values: Mapping[str, Any]


LocalizedField = Union[Absent, PlainText, RichText, LocaleMap]

ABSENT = Absent()


def is_rich_text_tree(value: Any) -> bool:
    """True for a rich-text document or one of its nodes."""
    if not isinstance(value, Mapping):
        return False
    return "root" in value or "children" in value or value.get("type") == "text"


def classify(value: Any) -> LocalizedField:
    if value is None:
        return ABSENT
    if isinstance(value, str):
        return PlainText(value)
    if isinstance(value, Mapping):
        if is_rich_text_tree(value):
            return RichText(value)
        return LocaleMap(value)
    return ABSENT


def _pick_from_map(values: Mapping[str, Any], locale: str, fallback_locale: str) -> Any:
    value = values.get(locale)
    if not value:
        value = values.get(fallback_locale)
    return value or None


def select(value: Any, locale: str, fallback_locale: str = DEFAULT_FALLBACK_LOCALE) -> Any:
    """Return the raw value for ``locale`` without converting it to text.

    Used for fields whose per-locale value may itself be structured, such as
    a description holding one rich-text tree per locale.
    """
    field = classify(value)
    if isinstance(field, LocaleMap):
        return _pick_from_map(field.values, locale, fallback_locale)
    if isinstance(field, PlainText):
        return field.value
    if isinstance(field, RichText):
        return field.tree
    return None


def resolve(value: Any, locale: str, fallback_locale: str = DEFAULT_FALLBACK_LOCALE) -> str:
    """Resolve a localizable field to a string for ``locale``.

    Plain strings are returned unchanged. For per-locale maps the requested
    locale wins unless it is missing or empty, then ``fallback_locale`` is
    used. Anything else, including a non-string map value, resolves to "".

    Example:
        >>> resolve({"en": "Old Town Walk", "sv": ""}, "sv")
        'Old Town Walk'
    """
    field = classify(value)
    if isinstance(field, PlainText):
        return field.value
    if isinstance(field, LocaleMap):
        picked = _pick_from_map(field.values, locale, fallback_locale)
        return picked if isinstance(picked, str) else ""
    return ""
