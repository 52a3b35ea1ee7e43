"""Embeddable Document Assembly

Builds the per-locale ``EmbeddableDocument`` for a tour: localizable fields go
through the resolver, the description additionally through the rich-text
extractor, related entities are mapped to their localized display names and
audience tags are copied as they are.
"""

import logging
from typing import Any, List

from .config import DEFAULT_FALLBACK_LOCALE
from .localization import resolve, select
from .models import EmbeddableDocument, TourRecord
from .richtext import RICH_TEXT_CHAR_LIMIT, extract_text

logger = logging.getLogger(__name__)


def _highlight_names(items: List[Any], locale: str, fallback_locale: str) -> List[str]:
    names: List[str] = []
    for item in items or []:
        value = item.get("highlight") if isinstance(item, dict) else item
        name = resolve(value, locale, fallback_locale)
        if name:
            names.append(name)
    return names


def _category_names(items: List[Any], locale: str, fallback_locale: str) -> List[str]:
    # Unpopulated relationships arrive as bare ids and have no display name
    names: List[str] = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        name = resolve(item.get("name"), locale, fallback_locale)
        if name:
            names.append(name)
    return names


def assemble(
    record: TourRecord,
    locale: str,
    fallback_locale: str = DEFAULT_FALLBACK_LOCALE,
    rich_text_char_limit: int = RICH_TEXT_CHAR_LIMIT,
) -> EmbeddableDocument:
    """Assemble the embedding input of ``record`` for one locale."""
    description = extract_text(
        select(record.description, locale, fallback_locale),
        max_chars=rich_text_char_limit,
    )
    return EmbeddableDocument(
        locale=locale,
        title=resolve(record.title, locale, fallback_locale),
        short_description=resolve(record.short_description, locale, fallback_locale),
        description=description,
        highlights=_highlight_names(record.highlights, locale, fallback_locale),
        categories=_category_names(record.categories, locale, fallback_locale),
        audience_tags=[tag for tag in record.audience_tags if isinstance(tag, str)],
    )


def has_own_content(record: TourRecord, locale: str) -> bool:
    """True if ``locale`` itself fills title, short description or description.

    Resolution uses the locale as its own fallback, so a translation that is
    empty everywhere does not inherit the default locale's text and produce
    a duplicate of its embedding.
    """
    if resolve(record.title, locale, locale) or resolve(record.short_description, locale, locale):
        return True
    return bool(extract_text(select(record.description, locale, locale)))


def should_skip(record: TourRecord, document: EmbeddableDocument) -> bool:
    """Skip predicate: no meaningful text for this locale, so no model call."""
    if not document.has_meaningful_content():
        return True
    return not has_own_content(record, document.locale)
