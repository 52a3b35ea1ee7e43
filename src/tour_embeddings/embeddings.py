"""Embeddings Generation Module

Generates vector embeddings for assembled tour documents using OpenAI's
embedding API, and computes the content fingerprint used to decide whether a
stored embedding is still current.

Key features:
  - Content fingerprint computed locally, before any network call
  - Text truncation to fit the embedding model context window
  - Batch processing for bulk embedding
  - Exponential backoff retry on rate limiting
  - Fake embeddings mode for local runs without API calls
"""

import hashlib
import json
import logging
import time
from typing import Any, List, Optional

import openai
from openai import OpenAI

from .models import EmbeddableDocument, EmbeddingResult

logger = logging.getLogger(__name__)

EMBEDDING_MODEL = "text-embedding-3-small"
EMBEDDING_DIMENSIONS = 1536

# ~4 chars/token keeps 8000 chars well below the model's 8191 token limit
MAX_EMBEDDING_CHARS = 8000
DESCRIPTION_EMBED_CHARS = 1000
FINGERPRINT_LENGTH = 16

# Zero-vector stand-ins carry their own model name and fingerprint prefix so a
# later real run never mistakes them for a cache hit
FAKE_EMBEDDING_MODEL = "fake-zero-vectors"
FAKE_FINGERPRINT_PREFIX = "fake:"


def content_fingerprint(document: EmbeddableDocument) -> str:
    """Stable digest of the document's semantic content.

    List fields are sorted so reordering highlights, categories or tags does
    not count as a change. The locale is not hashed; it is part of the
    storage key instead.
    """
    content = json.dumps(
        {
            "title": document.title,
            "description": document.description,
            "shortDescription": document.short_description,
            "highlights": sorted(document.highlights),
            "categories": sorted(document.categories),
            "audienceTags": sorted(document.audience_tags),
        },
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def prepare_embedding_text(document: EmbeddableDocument) -> str:
    """Combine the document fields into the text sent to the model."""
    parts = [
        f"Tour: {document.title}",
        document.short_description,
        document.description[:DESCRIPTION_EMBED_CHARS],
        f"Highlights: {', '.join(document.highlights)}" if document.highlights else "",
        f"Categories: {', '.join(document.categories)}" if document.categories else "",
        f"Suitable for: {', '.join(document.audience_tags)}" if document.audience_tags else "",
    ]
    return "\n\n".join(part for part in parts if part)


def _truncate_for_embedding(text: str, max_chars: int = MAX_EMBEDDING_CHARS) -> str:
    """
    Truncate text to fit the embedding model's context window.

    Cuts at ``max_chars`` and backtracks to the last space when that space
    lies in the final 20% of the cut, so words are not split.
    """
    if not text:
        return ""

    if len(text) <= max_chars:
        return text

    original_len = len(text)
    truncated = text[:max_chars]

    last_space = truncated.rfind(" ")
    if last_space > int(max_chars * 0.8):
        truncated = truncated[:last_space]

    logger.info(
        "Truncated text for embedding: %d -> %d chars (%.1f%% reduction)",
        original_len,
        len(truncated),
        100 * (original_len - len(truncated)) / original_len,
    )

    return truncated


class EmbeddingClient:
    """OpenAI-backed embedding generator for tour documents.

    The OpenAI client is created lazily on first use, so constructing an
    ``EmbeddingClient`` without an API key is fine as long as nothing is
    embedded. Tests pass their own object exposing ``embeddings.create``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = EMBEDDING_MODEL,
        dimensions: int = EMBEDDING_DIMENSIONS,
        batch_size: int = 50,
        max_chars: int = MAX_EMBEDDING_CHARS,
        max_retries: int = 5,
        use_fake: bool = False,
        openai_client: Any = None,
    ):
        self.api_key = api_key
        self.model = model
        self.dimensions = dimensions
        self.batch_size = batch_size
        self.max_chars = max_chars
        self.max_retries = max_retries
        self.use_fake = use_fake
        self._client = openai_client

    @classmethod
    def from_settings(cls, settings) -> "EmbeddingClient":
        return cls(
            api_key=settings.OPENAI_API_KEY,
            model=settings.EMBEDDING_MODEL,
            batch_size=settings.EMBEDDING_BATCH_SIZE,
            max_chars=settings.MAX_EMBEDDING_CHARS,
            max_retries=settings.EMBEDDING_MAX_RETRIES,
            use_fake=settings.USE_FAKE_EMBEDDINGS,
        )

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                raise RuntimeError("OPENAI_API_KEY is required to generate embeddings")
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def fingerprint(self, document: EmbeddableDocument) -> str:
        fingerprint = content_fingerprint(document)
        return FAKE_FINGERPRINT_PREFIX + fingerprint if self.use_fake else fingerprint

    def generate(self, document: EmbeddableDocument) -> EmbeddingResult:
        """Embed one document and return its vector with its fingerprint."""
        text = prepare_embedding_text(document)
        vector = self.embed_texts_with_retry([text])[0]
        return EmbeddingResult(
            vector=vector,
            fingerprint=self.fingerprint(document),
            model=FAKE_EMBEDDING_MODEL if self.use_fake else self.model,
        )

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for texts, in input order.

        Raises:
            ValueError: If returned vectors differ in dimensionality
            openai.OpenAIError: On API errors
        """
        if not texts:
            logger.debug("embed_texts called with empty list; returning []")
            return []

        if self.use_fake:
            logger.warning(
                "USE_FAKE_EMBEDDINGS=1 set; returning zero vectors instead of calling OpenAI"
            )
            return [[0.0] * self.dimensions for _ in texts]

        processed_texts = [_truncate_for_embedding(text, self.max_chars) for text in texts]
        vectors: List[List[float]] = []

        try:
            for start in range(0, len(processed_texts), self.batch_size):
                batch = processed_texts[start : start + self.batch_size]
                end = start + len(batch) - 1

                logger.debug(
                    "Calling OpenAI embeddings API: model=%s, batch=[%d:%d], size=%d",
                    self.model, start, end, len(batch)
                )

                response = self.client.embeddings.create(
                    model=self.model,
                    input=batch,
                    dimensions=self.dimensions,
                )

                items = sorted(response.data, key=lambda item: getattr(item, "index", 0))
                vectors.extend(list(item.embedding) for item in items)

            if vectors:
                expected_dim = len(vectors[0])
                for idx, vec in enumerate(vectors):
                    if len(vec) != expected_dim:
                        raise ValueError(
                            f"Inconsistent embedding dimension at index {idx}: "
                            f"expected {expected_dim}, got {len(vec)}"
                        )

            logger.debug(
                "Generated %d embeddings (dim=%d)",
                len(vectors), len(vectors[0]) if vectors else 0
            )
            return vectors

        except Exception:
            logger.exception("Failed to generate embeddings for %d texts", len(texts))
            raise

    def embed_texts_with_retry(self, texts: List[str]) -> List[List[float]]:
        """
        Wraps embed_texts to handle rate limiting with retries.
        Retries up to ``max_retries`` times with exponential backoff.
        """
        retries = 0
        while True:
            try:
                return self.embed_texts(texts)
            except openai.RateLimitError as e:
                retries += 1
                # insufficient_quota never recovers by waiting
                if getattr(e, "code", None) == "insufficient_quota" or "insufficient_quota" in str(e):
                    logger.error("Insufficient quota, cannot retry. Error: %s", e)
                    raise

                if retries > self.max_retries:
                    logger.error("Max retries exceeded (%d). Last error: %s", self.max_retries, e)
                    raise

                wait_time = 2 ** retries
                logger.warning(
                    "Rate limit error from OpenAI (attempt %d/%d). "
                    "Sleeping for %d seconds before retry. Error: %s",
                    retries,
                    self.max_retries,
                    wait_time,
                    e,
                )
                time.sleep(wait_time)
