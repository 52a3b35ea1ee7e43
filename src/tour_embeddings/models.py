"""Data Models Module

Defines Pydantic models for the values that move through the embedding sync
pipeline: the tour snapshot handed over by the CMS after a save, the
per-locale document assembled for the embedding model, the model's answer,
the persisted embedding row, and the report of one sync run.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Operation(str, Enum):
    """CMS change operations that can trigger a sync."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class TourRecord(BaseModel):
    """Snapshot of a tour as saved by the CMS.

    Localizable fields (title, short description, description) are kept as
    raw values: a plain string, a per-locale map, or a rich-text tree.
    Resolution happens later, per locale, in the assembler.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: int
    status: Optional[str] = None
    title: Any = None
    short_description: Any = Field(default=None, alias="shortDescription")
    description: Any = None
    highlights: List[Any] = []
    categories: List[Any] = []
    audience_tags: List[Any] = Field(default_factory=list, alias="audienceTags")

    @model_validator(mode="before")
    @classmethod
    def _audience_tags_from_cms_field(cls, data: Any) -> Any:
        # The CMS stores audience tags under ``targetAudience``
        if isinstance(data, dict) and not data.get("audienceTags") and data.get("targetAudience"):
            data = dict(data)
            data["audienceTags"] = data["targetAudience"]
        return data

    @field_validator("highlights", "categories", "audience_tags", mode="before")
    @classmethod
    def _list_or_empty(cls, value: Any) -> Any:
        # Unset relationship fields arrive as null
        return value if isinstance(value, list) else []

    @property
    def is_draft(self) -> bool:
        return self.status == "draft"


class EmbeddableDocument(BaseModel):
    """Per-locale input for the embedding model. Never persisted."""

    locale: str
    title: str = ""
    short_description: str = ""
    description: str = ""
    highlights: List[str] = []
    categories: List[str] = []
    audience_tags: List[str] = []

    def has_meaningful_content(self) -> bool:
        """False when title, short description and description are all empty.

        Highlights, categories and tags alone never justify a model call.
        """
        return bool(self.title or self.short_description or self.description)


class EmbeddingResult(BaseModel):
    """What the embedding client returns for one document."""

    vector: List[float]
    fingerprint: str
    model: Optional[str] = None


class EmbeddingRecord(BaseModel):
    """One stored row of the vector index, keyed by (tour_id, locale)."""

    tour_id: int
    locale: str
    vector: List[float]
    fingerprint: Optional[str]
    model: Optional[str]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LocaleOutcome(str, Enum):
    GENERATED = "generated"
    UNCHANGED = "unchanged"
    SKIPPED_EMPTY = "skipped_empty"
    FAILED = "failed"


class SyncReport(BaseModel):
    """Result of one pipeline invocation for a single tour.

    ``skipped_reason`` is set when an entry gate stopped the run before the
    locale loop; ``outcomes`` then stays empty.
    """

    tour_id: Optional[int] = None
    operation: str
    skipped_reason: Optional[str] = None
    outcomes: Dict[str, LocaleOutcome] = {}
    errors: Dict[str, str] = {}

    def count(self, outcome: LocaleOutcome) -> int:
        return sum(1 for value in self.outcomes.values() if value == outcome)
