# vectorpipe/memory/embedder.py

"""
Embedding gateway in front of an OpenAI-compatible provider.

Architecture contract:
chunker → mode selector → embedder → index

Guarantees:
• embed() never raises, degraded calls return the zero vector
• one provider round-trip per text, bounded by explicit timeouts
• no internal retries, failures degrade immediately
• successful embeddings are cached by (model, dimension, text)
• every provider call reports its estimated cost
• each batch item succeeds or degrades on its own
"""

import logging
import math
import time
from typing import List, Optional, Sequence, Union

import httpx
from openai import OpenAI

from vectorpipe.config import Settings
from vectorpipe.memory.cache import VectorCache
from vectorpipe.memory.vector import Vector, cache_key
from vectorpipe.models import (
    Degraded,
    DegradedReason,
    Embedded,
    EmbeddingOutcome,
)

logger = logging.getLogger(__name__)


VectorLike = Union[Vector, Sequence[float]]


class EmbeddingGateway:
    """
    Calls the embedding provider one text at a time.

    Responsibilities:
    • Build the provider client from Settings
    • Turn provider responses into Vectors
    • Fall back to a deterministic zero vector when degraded
    • Convenience cosine scoring
    """

    # ============================================================
    # INITIALIZATION
    # ============================================================

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client=None,
        cache: Optional[VectorCache] = None,
    ):

        self._settings = settings or Settings()
        self._model = self._settings.embedding_model
        self._dimension = self._settings.embedding_dimension
        self._client = client
        self._cache = cache

        if self._cache is None and self._settings.cache_enabled:
            self._cache = VectorCache(
                self._settings.cache_max_entries,
                self._settings.cache_ttl_seconds,
            )

        if self._client is None and self.is_available():

            self._client = OpenAI(
                api_key=self._settings.embedding_api_key,
                base_url=self._settings.embedding_api_base,
                timeout=httpx.Timeout(
                    self._settings.read_timeout_seconds,
                    connect=self._settings.connect_timeout_seconds,
                    read=self._settings.read_timeout_seconds,
                    write=self._settings.write_timeout_seconds,
                ),
                max_retries=0,
            )

        logger.info(
            "Embedding gateway initialized",
            extra={
                "model": self._model,
                "dimension": self._dimension,
                "available": self.is_available(),
            },
        )

    # ============================================================
    # PUBLIC API
    # ============================================================

    def is_available(self) -> bool:
        return self._settings.embedding_enabled and self._settings.has_credential()

    def default_vector(self) -> Vector:
        """Zero vector of the configured dimension."""
        return Vector([0.0] * self._dimension, self._model)

    def embed(self, text: str) -> Vector:
        return self.embed_outcome(text).vector

    def embed_batch(self, texts: Sequence[str]) -> List[Vector]:
        return [outcome.vector for outcome in self.embed_batch_outcomes(texts)]

    def embed_batch_outcomes(self, texts: Sequence[str]) -> List[EmbeddingOutcome]:

        outcomes = [self.embed_outcome(text) for text in texts]

        degraded = sum(1 for outcome in outcomes if outcome.degraded)

        logger.info(
            "Batch embedding completed",
            extra={
                "items": len(outcomes),
                "degraded": degraded,
            },
        )

        return outcomes

    def embed_outcome(self, text: str) -> EmbeddingOutcome:
        """Embed one text, keeping track of why a fallback was used."""

        if not self._settings.embedding_enabled:
            return self._degrade(
                DegradedReason.DISABLED,
                "Embedding disabled, returning default vector",
            )

        if not self._settings.has_credential():
            return self._degrade(
                DegradedReason.MISSING_CREDENTIAL,
                "Embedding API key not configured, returning default vector",
            )

        if not text or not text.strip():
            return self._degrade(
                DegradedReason.EMPTY_INPUT,
                "Empty embedding request, returning default vector",
            )

        key = cache_key(self._model, self._dimension, text)

        if self._cache is not None:

            cached = self._cache.get(key)

            if cached is not None:
                return Embedded(vector=cached, cached=True)

        start_time = time.perf_counter()

        try:

            response = self._client.embeddings.create(
                model=self._model,
                input=text,
            )

        except Exception as e:

            logger.error(
                "Embedding provider call failed",
                extra={
                    "model": self._model,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )

            return Degraded(
                reason=DegradedReason.PROVIDER_FAILURE,
                vector=self.default_vector(),
                error=str(e),
            )

        latency_ms = (time.perf_counter() - start_time) * 1000

        try:

            vector = Vector(_extract_embedding(response), self._model)

        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:

            logger.error(
                "Malformed embedding response",
                extra={"model": self._model, "error": str(e)},
            )

            return Degraded(
                reason=DegradedReason.MALFORMED_RESPONSE,
                vector=self.default_vector(),
                error=str(e),
            )

        if vector.dimension != self._dimension:
            logger.warning(
                "Embedding dimension differs from configuration",
                extra={
                    "model": self._model,
                    "expected": self._dimension,
                    "actual": vector.dimension,
                },
            )

        tokens = _usage_tokens(response) or estimate_tokens(text)
        cost_cents = estimate_cost_cents(tokens, self._settings.price_per_1k_tokens())

        if self._cache is not None:
            self._cache.put(key, vector)

        return Embedded(
            vector=vector,
            latency_ms=latency_ms,
            cost_cents=cost_cents,
            tokens=tokens,
        )

    def similarity(self, a: VectorLike, b: VectorLike) -> float:
        """
        Cosine similarity of two embeddings.

        Looser than Vector.cosine_similarity: a length mismatch scores 0.0
        instead of raising.
        """

        a_data = a.data if isinstance(a, Vector) else list(a)
        b_data = b.data if isinstance(b, Vector) else list(b)

        if len(a_data) != len(b_data) or not a_data:
            return 0.0

        return Vector(a_data, self._model).cosine_similarity(
            Vector(b_data, self._model)
        )

    # ============================================================
    # ACCESSORS
    # ============================================================

    def get_dimension(self) -> int:
        return self._dimension

    def health_check(self) -> dict:

        health = {
            "model": self._model,
            "dimension": self._dimension,
            "provider": self._settings.embedding_api_base,
            "status": "healthy" if self.is_available() else "degraded",
        }

        if self._cache is not None:
            health["cache"] = self._cache.stats().model_dump()

        return health

    # ============================================================
    # INTERNALS
    # ============================================================

    def _degrade(self, reason: DegradedReason, message: str) -> Degraded:

        logger.warning(
            message,
            extra={"model": self._model, "reason": reason.value},
        )

        return Degraded(reason=reason, vector=self.default_vector())


def _extract_embedding(response) -> List[float]:
    """Pull the flat float array out of an embeddings response."""

    if isinstance(response, dict):
        values = response["data"][0]["embedding"]
    else:
        values = response.data[0].embedding

    if not values:
        raise ValueError("Embedding response contained no values")

    return [float(value) for value in values]


def _usage_tokens(response) -> Optional[int]:
    """Token count reported by the provider, if any."""

    if isinstance(response, dict):
        tokens = (response.get("usage") or {}).get("total_tokens")
    else:
        tokens = getattr(getattr(response, "usage", None), "total_tokens", None)

    if isinstance(tokens, int) and not isinstance(tokens, bool) and tokens > 0:
        return tokens

    return None


def estimate_tokens(text: Optional[str]) -> int:
    """
    Rough token count: 2 per CJK character, 1.3 per five other
    characters (one average English word).
    """

    if not text:
        return 0

    cjk = sum(1 for ch in text if "\u4e00" <= ch <= "\u9fff")
    words = (len(text) - cjk) // 5

    return int(cjk * 2 + words * 1.3)


def estimate_cost_cents(tokens: int, price_per_1k_tokens: float) -> int:
    """Whole cents, rounded up so any billed call costs at least 1."""

    if tokens <= 0:
        return 0

    return math.ceil(tokens / 1000 * price_per_1k_tokens)
