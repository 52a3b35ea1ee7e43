"""
Embedding Sync Pipeline

Keeps the vector store aligned with tour content after each CMS save.

Per invocation:
  1. Entry gates: delete operations, draft tours and a missing API key end
     the run before any locale is touched
  2. For each supported locale: assemble the document, apply the skip
     predicate, fingerprint it, consult the cache gate, and on a miss embed
     and upsert

Each locale is isolated: an exception while processing one locale is logged
with the tour id and locale and recorded in the report, and the remaining
locales still run. ``sync`` itself never raises.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from pydantic import ValidationError

from .assembler import assemble, should_skip
from .cache import CacheGate
from .config import DEFAULT_FALLBACK_LOCALE, DEFAULT_LOCALES, Settings
from .db import supports_concurrent_sessions
from .embeddings import EmbeddingClient
from .models import EmbeddingResult, LocaleOutcome, Operation, SyncReport, TourRecord
from .richtext import RICH_TEXT_CHAR_LIMIT

logger = logging.getLogger(__name__)

SYNC_OPERATIONS = {Operation.CREATE.value, Operation.UPDATE.value}


def _operation_name(operation: Union[str, Operation]) -> str:
    return operation.value if isinstance(operation, Operation) else str(operation)


def _raw_tour_id(doc: Any) -> Any:
    if isinstance(doc, TourRecord):
        return doc.id
    if isinstance(doc, dict):
        return doc.get("id")
    return None


class EmbeddingSyncPipeline:
    """Orchestrates embedding generation for one tour across all locales.

    Args:
        client: Embedding client exposing ``generate(document)`` and, ideally,
            ``fingerprint(document)``. With ``fingerprint`` the cache gate is
            consulted before the model is called, so unchanged content costs
            no model call at all.
        store: Vector store exposing ``get_fingerprint`` and ``upsert``
        locales: Supported locales, processed in this order
        fallback_locale: Locale used when a translation is missing
        credentials_present: Whether the embedding API key is configured
        parallel: Process locales on a thread pool instead of sequentially.
            Ignored when the store's engine shares a single connection
            (in-memory SQLite).
    """

    def __init__(
        self,
        client,
        store,
        locales: Iterable[str] = DEFAULT_LOCALES,
        fallback_locale: str = DEFAULT_FALLBACK_LOCALE,
        credentials_present: bool = True,
        parallel: bool = False,
        rich_text_char_limit: int = RICH_TEXT_CHAR_LIMIT,
        cache_gate: Optional[CacheGate] = None,
    ):
        self.client = client
        self.store = store
        self.locales = tuple(locales)
        self.fallback_locale = fallback_locale
        self.credentials_present = credentials_present
        engine = getattr(store, "engine", None)
        if parallel and engine is not None and not supports_concurrent_sessions(engine):
            logger.warning("Parallel locales need a file-backed or server database; running sequentially")
            parallel = False
        self.parallel = parallel
        self.rich_text_char_limit = rich_text_char_limit
        self.cache_gate = cache_gate or CacheGate(store)

    @classmethod
    def from_settings(cls, settings: Settings, store, client=None) -> "EmbeddingSyncPipeline":
        if client is None:
            client = EmbeddingClient.from_settings(settings)
        return cls(
            client=client,
            store=store,
            locales=settings.locales,
            fallback_locale=settings.EMBEDDING_FALLBACK_LOCALE,
            credentials_present=settings.credentials_present or settings.USE_FAKE_EMBEDDINGS,
            parallel=settings.EMBEDDING_PARALLEL_LOCALES,
            rich_text_char_limit=settings.RICH_TEXT_CHAR_LIMIT,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def sync(self, doc: Union[TourRecord, Dict[str, Any]], operation: Union[str, Operation]) -> SyncReport:
        """Run the pipeline for a saved tour. Never raises."""
        op = _operation_name(operation)
        tour_id = _raw_tour_id(doc)
        report = SyncReport(tour_id=tour_id if isinstance(tour_id, int) else None, operation=op)

        if op not in SYNC_OPERATIONS:
            logger.debug("Skipping embeddings for tour %s: operation=%s", tour_id, op)
            report.skipped_reason = "operation"
            return report

        try:
            record = doc if isinstance(doc, TourRecord) else TourRecord.model_validate(doc)
        except ValidationError:
            logger.exception("Skipping embeddings for tour %s: invalid tour snapshot", tour_id)
            report.skipped_reason = "invalid_record"
            return report
        report.tour_id = record.id

        if record.is_draft:
            logger.debug("Skipping embeddings for draft tour %s", record.id)
            report.skipped_reason = "draft"
            return report

        if not self.credentials_present:
            logger.warning("OPENAI_API_KEY not set, skipping embedding generation for tour %s", record.id)
            report.skipped_reason = "missing_credentials"
            return report

        for locale, (outcome, error) in self._run_locales(record):
            report.outcomes[locale] = outcome
            if error:
                report.errors[locale] = error

        logger.info(
            "Embedding sync for tour %s: generated=%d unchanged=%d skipped=%d failed=%d",
            record.id,
            report.count(LocaleOutcome.GENERATED),
            report.count(LocaleOutcome.UNCHANGED),
            report.count(LocaleOutcome.SKIPPED_EMPTY),
            report.count(LocaleOutcome.FAILED),
        )
        return report

    # ------------------------------------------------------------------
    # Locale fan-out
    # ------------------------------------------------------------------

    def _run_locales(self, record: TourRecord):
        if not self.parallel or len(self.locales) < 2:
            return [(locale, self._process_locale_safely(record, locale)) for locale in self.locales]

        with ThreadPoolExecutor(max_workers=len(self.locales)) as executor:
            futures = {
                locale: executor.submit(self._process_locale_safely, record, locale)
                for locale in self.locales
            }
            return [(locale, futures[locale].result()) for locale in self.locales]

    def _process_locale_safely(self, record: TourRecord, locale: str) -> Tuple[LocaleOutcome, Optional[str]]:
        try:
            return self.process_locale(record, locale), None
        except Exception as e:
            logger.exception("Embedding failed for tour %s (%s)", record.id, locale)
            return LocaleOutcome.FAILED, f"{type(e).__name__}: {e}"

    def process_locale(self, record: TourRecord, locale: str) -> LocaleOutcome:
        """Process one locale. Exceptions propagate to the caller."""
        document = assemble(record, locale, self.fallback_locale, self.rich_text_char_limit)

        if should_skip(record, document):
            logger.debug("Skipped tour %s (%s): no meaningful content", record.id, locale)
            return LocaleOutcome.SKIPPED_EMPTY

        fingerprint_fn = getattr(self.client, "fingerprint", None)
        if callable(fingerprint_fn):
            if not self.cache_gate.should_regenerate(record.id, locale, fingerprint_fn(document)):
                logger.info("Skipped tour %s (%s): content unchanged", record.id, locale)
                return LocaleOutcome.UNCHANGED
            result = self._generate(document)
        else:
            # Fingerprint is only known after the model call
            result = self._generate(document)
            if not self.cache_gate.should_regenerate(record.id, locale, result.fingerprint):
                logger.info("Skipped tour %s (%s): content unchanged", record.id, locale)
                return LocaleOutcome.UNCHANGED

        self.store.upsert(record.id, locale, result.vector, result.fingerprint, result.model)
        logger.info("✓ Generated embedding for tour %s (%s)", record.id, locale)
        return LocaleOutcome.GENERATED

    def _generate(self, document) -> EmbeddingResult:
        result = self.client.generate(document)
        if isinstance(result, EmbeddingResult):
            return result
        return EmbeddingResult.model_validate(result)
