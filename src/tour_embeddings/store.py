"""Vector Store Module

Persists tour embeddings in a pgvector-backed table with exactly one row per
(tour_id, locale). Writes are native upserts, so repeated or concurrent
saves of the same key overwrite in place (last write wins).

Index design:
  - HNSW over ``embedding`` with cosine distance, m=16 (graph connectivity:
    recall vs. memory) and ef_construction=64 (build-time candidate list:
    index quality vs. build cost)
  - ``locale`` alone, for locale-filtered similarity queries
  - (tour_id, content_hash), for the fingerprint lookup before regeneration
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    DateTime,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .db import session_scope
from .embeddings import EMBEDDING_DIMENSIONS, EMBEDDING_MODEL
from .models import EmbeddingRecord

logger = logging.getLogger(__name__)

TABLE_NAME = "tour_embeddings"
HNSW_M = 16
HNSW_EF_CONSTRUCTION = 64


class Base(DeclarativeBase):
    pass


class TourEmbedding(Base):
    __tablename__ = TABLE_NAME

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tour_id: Mapped[int] = mapped_column(Integer, nullable=False)
    locale: Mapped[str] = mapped_column(Text, nullable=False, server_default="en")
    embedding: Mapped[Optional[List[float]]] = mapped_column(Vector(EMBEDDING_DIMENSIONS))
    embedding_model: Mapped[Optional[str]] = mapped_column(Text, server_default=EMBEDDING_MODEL)
    content_hash: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("tour_id", "locale", name="tour_embeddings_tour_id_locale_key"),
        Index(
            "tour_embeddings_hnsw_idx",
            "embedding",
            postgresql_using="hnsw",
            postgresql_with={"m": HNSW_M, "ef_construction": HNSW_EF_CONSTRUCTION},
            postgresql_ops={"embedding": "vector_cosine_ops"},
        ),
        Index("tour_embeddings_locale_idx", "locale"),
        Index("tour_embeddings_hash_idx", "tour_id", "content_hash"),
    )


class EmbeddingDimensionError(ValueError):
    """Vector length does not match the column's declared dimensionality."""


_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _to_record(row: TourEmbedding) -> EmbeddingRecord:
    vector = [] if row.embedding is None else [float(x) for x in row.embedding]
    return EmbeddingRecord(
        tour_id=row.tour_id,
        locale=row.locale,
        vector=vector,
        fingerprint=row.content_hash,
        model=row.embedding_model,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class EmbeddingStore:
    """Read/write access to the ``tour_embeddings`` table.

    Every call runs in its own short session, so the store can be shared by
    threads processing different locales; the engine's pool is the only
    shared resource.
    """

    def __init__(self, engine: Engine, dimensions: int = EMBEDDING_DIMENSIONS):
        self.engine = engine
        self.dimensions = dimensions

    def get_fingerprint(self, tour_id: int, locale: str) -> Optional[str]:
        """Stored content hash for (tour_id, locale), or None if no row exists."""
        stmt = select(TourEmbedding.content_hash).where(
            TourEmbedding.tour_id == tour_id,
            TourEmbedding.locale == locale,
        )
        with session_scope(self.engine) as session:
            return session.execute(stmt).scalars().first()

    def upsert(
        self,
        tour_id: int,
        locale: str,
        vector: Sequence[float],
        fingerprint: str,
        model: Optional[str] = None,
    ) -> None:
        """Insert or overwrite the embedding row for (tour_id, locale)."""
        if len(vector) != self.dimensions:
            raise EmbeddingDimensionError(
                f"Embedding for tour {tour_id} ({locale}) has {len(vector)} dimensions, "
                f"expected {self.dimensions}"
            )

        now = datetime.now(timezone.utc)
        values = {
            "tour_id": tour_id,
            "locale": locale,
            "embedding": [float(x) for x in vector],
            "content_hash": fingerprint,
            "embedding_model": model or EMBEDDING_MODEL,
            "created_at": now,
            "updated_at": now,
        }

        insert = _UPSERT_DIALECTS.get(self.engine.dialect.name)
        with session_scope(self.engine) as session:
            if insert is None:
                self._merge(session, values)
                return
            stmt = insert(TourEmbedding).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["tour_id", "locale"],
                set_={
                    "embedding": stmt.excluded.embedding,
                    "content_hash": stmt.excluded.content_hash,
                    "embedding_model": stmt.excluded.embedding_model,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            session.execute(stmt)

        logger.debug("Upserted embedding for tour %s (%s) hash=%s", tour_id, locale, fingerprint)

    @staticmethod
    def _merge(session, values: Dict) -> None:
        # Dialects without ON CONFLICT support: select, then update or add
        row = session.execute(
            select(TourEmbedding).where(
                TourEmbedding.tour_id == values["tour_id"],
                TourEmbedding.locale == values["locale"],
            )
        ).scalars().first()
        if row is None:
            session.add(TourEmbedding(**values))
            return
        row.embedding = values["embedding"]
        row.content_hash = values["content_hash"]
        row.embedding_model = values["embedding_model"]
        row.updated_at = values["updated_at"]

    def has_embedding(self, tour_id: int, locale: str) -> bool:
        stmt = select(TourEmbedding.id).where(
            TourEmbedding.tour_id == tour_id,
            TourEmbedding.locale == locale,
        ).limit(1)
        with session_scope(self.engine) as session:
            return session.execute(stmt).first() is not None

    def get_record(self, tour_id: int, locale: str) -> Optional[EmbeddingRecord]:
        stmt = select(TourEmbedding).where(
            TourEmbedding.tour_id == tour_id,
            TourEmbedding.locale == locale,
        )
        with session_scope(self.engine) as session:
            row = session.execute(stmt).scalars().first()
            return _to_record(row) if row is not None else None

    def list_records(self, tour_id: Optional[int] = None) -> List[EmbeddingRecord]:
        stmt = select(TourEmbedding).order_by(TourEmbedding.tour_id, TourEmbedding.locale)
        if tour_id is not None:
            stmt = stmt.where(TourEmbedding.tour_id == tour_id)
        with session_scope(self.engine) as session:
            return [_to_record(row) for row in session.execute(stmt).scalars()]

    def stats(self) -> Dict:
        """Row counts per locale and the most recent update, for monitoring."""
        stmt = select(
            TourEmbedding.locale,
            func.count(TourEmbedding.id),
            func.max(TourEmbedding.updated_at),
        ).group_by(TourEmbedding.locale)

        by_locale: Dict[str, int] = {}
        last_updated: Optional[datetime] = None
        with session_scope(self.engine) as session:
            for locale, count, updated in session.execute(stmt):
                by_locale[locale] = int(count)
                if updated is not None and (last_updated is None or updated > last_updated):
                    last_updated = updated

        return {
            "total": sum(by_locale.values()),
            "by_locale": by_locale,
            "last_updated": last_updated,
        }
