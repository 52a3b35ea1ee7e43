"""Backfill CLI Entry Point

Runs the embedding sync pipeline over an exported list of tours, as if each
tour had just been saved in the CMS. Useful after first deploying the vector
store, after changing supported locales, or to repair rows after an outage.
Unchanged tours cost nothing: the cache gate skips them before any model call.

Usage:
    python -m run_backfill --input data/tours.json --database-url postgresql+psycopg://... --init-schema
"""

import argparse
import logging
import time
from collections import Counter
from pathlib import Path

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from tour_embeddings.assembler import assemble, should_skip
from tour_embeddings.cache import CacheGate
from tour_embeddings.config import load_settings
from tour_embeddings.db import create_schema, get_engine
from tour_embeddings.embeddings import content_fingerprint
from tour_embeddings.loaders import load_tour_records
from tour_embeddings.models import Operation, TourRecord
from tour_embeddings.pipeline import EmbeddingSyncPipeline
from tour_embeddings.store import EmbeddingStore


def configure_logging() -> None:
    """Configure logging with both console and file output.

    Sets up:
      - Root logger at DEBUG level
      - Console handler at INFO level for user-facing messages
      - File handler at DEBUG level in logs/backfill.log
      - Reduced verbosity for httpx and openai loggers
    """
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)
    log_file = log_dir / "backfill.log"

    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    # Clear existing handlers to avoid duplicates if run multiple times
    logger.handlers.clear()
    logger.addHandler(console_handler)
    logger.addHandler(file_handler)


def dry_run(pipeline: EmbeddingSyncPipeline, raw_tours) -> Counter:
    """Assemble and fingerprint every tour; no model calls, no writes."""
    logger = logging.getLogger(__name__)
    gate = CacheGate(pipeline.store)
    counts: Counter = Counter()

    for raw in raw_tours:
        try:
            record = TourRecord.model_validate(raw)
        except ValidationError:
            logger.exception("Invalid tour snapshot: %s", raw.get("id") if isinstance(raw, dict) else raw)
            counts["invalid_record"] += 1
            continue
        if record.is_draft:
            counts["draft"] += 1
            continue
        for locale in pipeline.locales:
            document = assemble(record, locale, pipeline.fallback_locale, pipeline.rich_text_char_limit)
            if should_skip(record, document):
                counts["skipped_empty"] += 1
                continue
            fingerprint = content_fingerprint(document)
            if gate.should_regenerate(record.id, locale, fingerprint):
                counts["would_generate"] += 1
                logger.info("Would generate tour %s (%s) hash=%s", record.id, locale, fingerprint)
            else:
                counts["unchanged"] += 1
    return counts


def main(argv=None) -> int:
    """
    CLI entrypoint for the embedding backfill.

    Returns a Unix-style exit code: 0 when the run completed (individual
    locale failures are reported, not fatal), 1 on a fatal setup failure.
    """
    configure_logging()
    logger = logging.getLogger(__name__)

    parser = argparse.ArgumentParser(
        description="Backfill tour embeddings into the vector store"
    )
    parser.add_argument(
        "--input",
        type=Path,
        default=Path("data/tours.json"),
        help="Path to exported tours JSON file.",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL of the vector store (default: DATABASE_URL).",
    )
    parser.add_argument(
        "--init-schema",
        action="store_true",
        help="Create the vector extension, table and indexes before running.",
    )
    parser.add_argument(
        "--operation",
        choices=[op.value for op in Operation],
        default=Operation.UPDATE.value,
        help="Operation to replay for each tour (default: update).",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Optional limit on number of tours to process.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Assemble and fingerprint only; no model calls, no writes.",
    )
    parser.add_argument(
        "--parallel",
        action="store_true",
        help="Process the locales of each tour concurrently.",
    )

    args = parser.parse_args(argv)

    logger.info("=== Starting tour embedding backfill ===")
    logger.info("Input: %s", args.input)
    logger.info("Operation: %s", args.operation)
    logger.info("Limit: %s", args.limit if args.limit else "None (all tours)")
    logger.info("Dry run: %s", args.dry_run)

    try:
        raw_tours = load_tour_records(args.input)
    except (OSError, ValueError) as e:
        logger.error("Could not load tours from %s: %s", args.input, e)
        return 1
    if args.limit is not None:
        raw_tours = raw_tours[: args.limit]

    overrides = {}
    if args.database_url:
        overrides["DATABASE_URL"] = args.database_url
    if args.parallel:
        overrides["EMBEDDING_PARALLEL_LOCALES"] = True
    settings = load_settings(**overrides)

    try:
        engine = get_engine(settings.DATABASE_URL)
        with engine.connect():
            pass
        if args.init_schema and not args.dry_run:
            create_schema(engine)
    except SQLAlchemyError as e:
        logger.error("Vector store unavailable: %s", e)
        return 1

    pipeline = EmbeddingSyncPipeline.from_settings(settings, store=EmbeddingStore(engine))
    logger.info("Locales: %s", ", ".join(pipeline.locales))

    start_time = time.time()
    if args.dry_run:
        logger.info("DRY RUN MODE: no embeddings will be generated or stored")
        counts = dry_run(pipeline, raw_tours)
    else:
        counts = Counter()
        for raw in raw_tours:
            report = pipeline.sync(raw, args.operation)
            if report.skipped_reason:
                counts[report.skipped_reason] += 1
            for outcome in report.outcomes.values():
                counts[outcome.value] += 1
    elapsed_time = time.time() - start_time

    logger.info("=" * 70)
    logger.info("Backfill completed in %.2fs", elapsed_time)
    logger.info("")
    logger.info("Summary:")
    logger.info("  Tours:      %d", len(raw_tours))
    for name, count in sorted(counts.items()):
        logger.info("  %-15s %d", f"{name}:", count)
    logger.info("=" * 70)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
