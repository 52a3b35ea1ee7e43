import pytest

from tour_embeddings.db import create_schema, get_engine
from tour_embeddings.embeddings import EMBEDDING_DIMENSIONS, content_fingerprint
from tour_embeddings.models import EmbeddingResult
from tour_embeddings.store import EmbeddingStore


def make_vector(value: float = 0.5, dim: int = EMBEDDING_DIMENSIONS):
    return [value] * dim


class FakeEmbeddingClient:
    """
    Stand-in for EmbeddingClient that records every generate() call
    and can be told to fail for specific locales.
    """

    def __init__(self, fail_locales=(), value: float = 0.5):
        self.fail_locales = set(fail_locales)
        self.value = value
        self.calls = []

    def fingerprint(self, document):
        return content_fingerprint(document)

    def generate(self, document):
        self.calls.append(document)
        if document.locale in self.fail_locales:
            raise RuntimeError(f"Simulated API failure for {document.locale}")
        return EmbeddingResult(
            vector=make_vector(self.value),
            fingerprint=content_fingerprint(document),
            model="fake-model",
        )


class RecordingStore:
    """Wraps an EmbeddingStore and records upsert calls."""

    def __init__(self, store):
        self._store = store
        self.upserts = []

    def get_fingerprint(self, tour_id, locale):
        return self._store.get_fingerprint(tour_id, locale)

    def upsert(self, tour_id, locale, vector, fingerprint, model=None):
        self.upserts.append((tour_id, locale))
        return self._store.upsert(tour_id, locale, vector, fingerprint, model)


@pytest.fixture
def engine():
    engine = get_engine("sqlite+pysqlite:///:memory:")
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return EmbeddingStore(engine)


@pytest.fixture
def fake_client():
    return FakeEmbeddingClient()


@pytest.fixture
def old_town_walk():
    return {
        "id": 1,
        "status": "published",
        "title": {"en": "Old Town Walk", "sv": "", "de": ""},
        "shortDescription": {"en": "desc", "sv": "", "de": ""},
        "description": {"en": "long", "sv": "", "de": ""},
    }
