"""Store Validation Script

Checks the rows of the tour embeddings table:
  - Vector length equals the expected dimensionality
  - Every vector component is a finite number
  - Content hash is present and non-empty
  - Locale belongs to the supported set (warning otherwise)
  - Rows written in fake mode or holding a zero vector (warning)

Usage:
    python -m tour_embeddings.scripts.validate_store \\
        --database-url postgresql+psycopg://localhost/cms \\
        --expected-dim 1536

Exits with code 0 on success, 1 on validation failure.
"""

import argparse
import math
from typing import Any, Iterable, List, Optional, Tuple

from tour_embeddings.config import load_settings
from tour_embeddings.db import get_engine
from tour_embeddings.embeddings import EMBEDDING_DIMENSIONS, FAKE_EMBEDDING_MODEL
from tour_embeddings.models import EmbeddingRecord
from tour_embeddings.store import EmbeddingStore


def is_finite_number(x: Any) -> bool:
    return isinstance(x, (int, float)) and math.isfinite(x)


def validate_record(
    record: EmbeddingRecord,
    expected_dim: Optional[int],
    locales: Iterable[str],
) -> Tuple[List[str], List[str]]:
    """Validate a single stored embedding.

    Returns:
        (errors, warnings)
    """
    errors: List[str] = []
    warnings: List[str] = []
    key = f"[tour={record.tour_id} locale={record.locale}]"

    if expected_dim is not None and len(record.vector) != expected_dim:
        errors.append(f"{key} vector length {len(record.vector)} != expected_dim {expected_dim}")

    for j, v in enumerate(record.vector):
        if not is_finite_number(v):
            errors.append(f"{key} vector[{j}] is not a finite number (got {v!r})")
            break

    if not record.fingerprint or not record.fingerprint.strip():
        errors.append(f"{key} missing content hash")

    if record.locale not in set(locales):
        warnings.append(f"{key} locale is not in the supported set")

    if record.model == FAKE_EMBEDDING_MODEL:
        warnings.append(f"{key} written by fake embeddings; rerun with an API key to replace it")
    elif record.vector and not any(record.vector):
        warnings.append(f"{key} zero vector; cosine distance is undefined")

    return errors, warnings


def main(argv: Optional[List[str]] = None) -> None:
    """Validate the vector store and print per-locale stats.

    Raises:
        SystemExit: With code 0 on success, 1 on validation failure
    """
    parser = argparse.ArgumentParser(
        description="Validate stored tour embeddings."
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL of the vector store (default: DATABASE_URL).",
    )
    parser.add_argument(
        "--expected-dim",
        type=int,
        default=EMBEDDING_DIMENSIONS,
        help=f"Expected vector dimensionality (default: {EMBEDDING_DIMENSIONS}).",
    )
    args = parser.parse_args(argv)

    settings = load_settings()
    store = EmbeddingStore(get_engine(args.database_url or settings.DATABASE_URL))

    try:
        records = store.list_records()
        stats = store.stats()
    except Exception as e:
        print(f"FAILED TO READ STORE: {e}")
        raise SystemExit(1)

    all_errors: List[str] = []
    all_warnings: List[str] = []
    for record in records:
        errors, warnings = validate_record(record, args.expected_dim, settings.locales)
        all_errors.extend(errors)
        all_warnings.extend(warnings)

    if all_errors:
        print("VALIDATION FAILED:\n")
        for err in all_errors:
            print(err)
        print(f"\nTotal errors: {len(all_errors)}")
        if all_warnings:
            print(f"Total warnings: {len(all_warnings)}")
        raise SystemExit(1)

    print("VALIDATION PASSED")
    print(f"Total embeddings: {stats['total']}")
    for locale, count in sorted(stats["by_locale"].items()):
        print(f"  {locale}: {count}")
    if stats["last_updated"] is not None:
        print(f"Last updated: {stats['last_updated']}")
    if all_warnings:
        print("\nWarnings (non-fatal):")
        for w in all_warnings:
            print(w)

    raise SystemExit(0)


if __name__ == "__main__":
    main()
