# tests/test_validate_store.py

"""
Tests for the store validator: per-record checks and the CLI exit codes.
"""

import math

import pytest

from conftest import make_vector
from tour_embeddings.db import create_schema, get_engine
from tour_embeddings.embeddings import FAKE_EMBEDDING_MODEL
from tour_embeddings.models import EmbeddingRecord
from tour_embeddings.scripts.validate_store import main as validate_main
from tour_embeddings.scripts.validate_store import validate_record
from tour_embeddings.store import EmbeddingStore

LOCALES = ["en", "sv", "de"]


def make_record(**overrides):
    data = {
        "tour_id": 1,
        "locale": "en",
        "vector": [0.5, 0.5, 0.5, 0.5],
        "fingerprint": "abc123",
        "model": "text-embedding-3-small",
    }
    data.update(overrides)
    return EmbeddingRecord(**data)


def test_valid_record_has_no_errors():
    errors, warnings = validate_record(make_record(), expected_dim=4, locales=LOCALES)

    assert errors == []
    assert warnings == []


def test_wrong_dimension_is_an_error():
    errors, _ = validate_record(make_record(), expected_dim=1536, locales=LOCALES)

    assert any("vector length 4 != expected_dim 1536" in e for e in errors)


def test_non_finite_component_is_an_error():
    errors, _ = validate_record(make_record(vector=[0.5, math.nan, 0.5, 0.5]), expected_dim=4, locales=LOCALES)

    assert any("vector[1] is not a finite number" in e for e in errors)


@pytest.mark.parametrize("fingerprint", [None, "", "   "])
def test_missing_hash_is_an_error(fingerprint):
    errors, _ = validate_record(make_record(fingerprint=fingerprint), expected_dim=4, locales=LOCALES)

    assert any("missing content hash" in e for e in errors)


def test_unsupported_locale_is_a_warning():
    errors, warnings = validate_record(make_record(locale="fr"), expected_dim=4, locales=LOCALES)

    assert errors == []
    assert warnings == ["[tour=1 locale=fr] locale is not in the supported set"]


def test_fake_embedding_row_is_a_warning():
    errors, warnings = validate_record(
        make_record(vector=[0.0] * 4, model=FAKE_EMBEDDING_MODEL), expected_dim=4, locales=LOCALES
    )

    assert errors == []
    assert warnings == ["[tour=1 locale=en] written by fake embeddings; rerun with an API key to replace it"]


def test_zero_vector_is_a_warning():
    errors, warnings = validate_record(make_record(vector=[0.0] * 4), expected_dim=4, locales=LOCALES)

    assert errors == []
    assert warnings == ["[tour=1 locale=en] zero vector; cosine distance is undefined"]


def test_main_passes_on_valid_store(tmp_path, monkeypatch, capsys):
    url = f"sqlite+pysqlite:///{tmp_path / 'vectors.db'}"
    engine = get_engine(url)
    create_schema(engine)
    store = EmbeddingStore(engine)
    store.upsert(1, "en", make_vector(), "hash-en")
    store.upsert(1, "sv", make_vector(), "hash-sv")
    monkeypatch.delenv("EMBEDDING_LOCALES", raising=False)

    with pytest.raises(SystemExit) as exc:
        validate_main(["--database-url", url])

    assert exc.value.code == 0
    out = capsys.readouterr().out
    assert "VALIDATION PASSED" in out
    assert "Total embeddings: 2" in out
    assert "sv: 1" in out


def test_main_fails_on_empty_hash(tmp_path, capsys):
    url = f"sqlite+pysqlite:///{tmp_path / 'vectors.db'}"
    engine = get_engine(url)
    create_schema(engine)
    EmbeddingStore(engine).upsert(2, "de", make_vector(), "")

    with pytest.raises(SystemExit) as exc:
        validate_main(["--database-url", url])

    assert exc.value.code == 1
    assert "VALIDATION FAILED" in capsys.readouterr().out


def test_main_fails_when_table_missing(tmp_path, capsys):
    url = f"sqlite+pysqlite:///{tmp_path / 'empty.db'}"

    with pytest.raises(SystemExit) as exc:
        validate_main(["--database-url", url])

    assert exc.value.code == 1
    assert "FAILED TO READ STORE" in capsys.readouterr().out
