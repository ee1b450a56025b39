# tests/test_embedder.py
import httpx
import pytest
from unittest.mock import Mock

from vectorpipe.config import Settings
from vectorpipe.memory.cache import VectorCache
from vectorpipe.memory.embedder import (
    EmbeddingGateway,
    estimate_cost_cents,
    estimate_tokens,
)
from vectorpipe.memory.vector import Vector
from vectorpipe.models import Degraded, DegradedReason, Embedded


VALUES = [0.1, 0.2, 0.3, 0.4]


class TestDegradedFallback:
    """Misconfiguration never raises, it returns the zero vector."""

    def test_disabled_returns_zero_vector(self):
        gateway = EmbeddingGateway(Settings(embedding_dimension=8))

        vector = gateway.embed("some text")

        assert vector.dimension == 8
        assert vector.magnitude == 0.0
        assert vector.model_name == Settings().embedding_model

    def test_disabled_reason(self, settings):
        outcome = EmbeddingGateway(settings).embed_outcome("some text")

        assert isinstance(outcome, Degraded)
        assert outcome.degraded is True
        assert outcome.reason == DegradedReason.DISABLED

    def test_missing_credential(self):
        gateway = EmbeddingGateway(Settings(embedding_enabled=True, embedding_dimension=4))

        outcome = gateway.embed_outcome("some text")

        assert outcome.reason == DegradedReason.MISSING_CREDENTIAL
        assert outcome.vector == gateway.default_vector()
        assert gateway.is_available() is False

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_blank_input_skips_provider(self, enabled_settings, mock_embedding_client, text):
        client = mock_embedding_client(VALUES)
        gateway = EmbeddingGateway(enabled_settings, client=client)

        outcome = gateway.embed_outcome(text)

        assert outcome.reason == DegradedReason.EMPTY_INPUT
        client.embeddings.create.assert_not_called()

    def test_fallback_is_deterministic(self, settings):
        gateway = EmbeddingGateway(settings)

        assert gateway.embed("a") == gateway.embed("b") == gateway.default_vector()


class TestProviderCall:
    """Test calls through a mocked provider client."""

    def test_success(self, enabled_settings, mock_embedding_client):
        client = mock_embedding_client(VALUES)
        gateway = EmbeddingGateway(enabled_settings, client=client)

        outcome = gateway.embed_outcome("hello world")

        assert isinstance(outcome, Embedded)
        assert outcome.degraded is False
        assert outcome.vector == Vector(VALUES, "text-embedding-3-small")
        assert outcome.latency_ms >= 0.0

        client.embeddings.create.assert_called_once_with(
            model="text-embedding-3-small",
            input="hello world",
        )

    def test_embed_returns_vector(self, enabled_settings, mock_embedding_client):
        gateway = EmbeddingGateway(enabled_settings, client=mock_embedding_client(VALUES))

        assert gateway.embed("hello").data == pytest.approx(VALUES)

    def test_provider_failure_degrades(self, enabled_settings):
        client = Mock()
        client.embeddings.create.side_effect = RuntimeError("connection reset")
        gateway = EmbeddingGateway(enabled_settings, client=client)

        outcome = gateway.embed_outcome("hello")

        assert outcome.reason == DegradedReason.PROVIDER_FAILURE
        assert outcome.error == "connection reset"
        assert outcome.vector.magnitude == 0.0
        assert outcome.vector.dimension == 4

    def test_empty_response_is_malformed(self, enabled_settings):
        client = Mock()
        response = Mock()
        response.data = []
        client.embeddings.create.return_value = response
        gateway = EmbeddingGateway(enabled_settings, client=client)

        outcome = gateway.embed_outcome("hello")

        assert outcome.reason == DegradedReason.MALFORMED_RESPONSE

    def test_empty_embedding_is_malformed(self, enabled_settings, mock_embedding_client):
        gateway = EmbeddingGateway(enabled_settings, client=mock_embedding_client([]))

        assert gateway.embed_outcome("hello").reason == DegradedReason.MALFORMED_RESPONSE

    def test_dict_response_accepted(self, enabled_settings):
        client = Mock()
        client.embeddings.create.return_value = {"data": [{"embedding": VALUES}]}
        gateway = EmbeddingGateway(enabled_settings, client=client)

        assert gateway.embed("hello").data == pytest.approx(VALUES)

    def test_dimension_mismatch_still_returned(self, enabled_settings, mock_embedding_client):
        """Unexpected dimensions are logged, not rejected."""
        gateway = EmbeddingGateway(
            enabled_settings, client=mock_embedding_client([1.0, 2.0])
        )

        outcome = gateway.embed_outcome("hello")

        assert outcome.degraded is False
        assert outcome.vector.dimension == 2


class TestBatch:
    """Each batch item succeeds or degrades on its own."""

    def test_partial_failure_does_not_abort(self, enabled_settings):
        item = Mock()
        item.embedding = VALUES
        ok = Mock()
        ok.data = [item]

        client = Mock()
        client.embeddings.create.side_effect = [ok, RuntimeError("timeout"), ok]
        gateway = EmbeddingGateway(enabled_settings, client=client)

        outcomes = gateway.embed_batch_outcomes(["one", "two", "three"])

        assert [o.degraded for o in outcomes] == [False, True, False]
        assert outcomes[1].reason == DegradedReason.PROVIDER_FAILURE
        assert client.embeddings.create.call_count == 3

    def test_embed_batch_preserves_order(self, enabled_settings, mock_embedding_client):
        gateway = EmbeddingGateway(enabled_settings, client=mock_embedding_client(VALUES))

        vectors = gateway.embed_batch(["a", "", "c"])

        assert len(vectors) == 3
        assert vectors[0].data == pytest.approx(VALUES)
        assert vectors[1] == gateway.default_vector()

    def test_empty_batch(self, settings):
        assert EmbeddingGateway(settings).embed_batch([]) == []


class TestSimilarity:
    """Test the lenient similarity helper."""

    def test_length_mismatch_scores_zero(self, settings):
        gateway = EmbeddingGateway(settings)

        assert gateway.similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0

    def test_empty_scores_zero(self, settings):
        assert EmbeddingGateway(settings).similarity([], []) == 0.0

    def test_parallel_vectors(self, settings):
        gateway = EmbeddingGateway(settings)

        assert gateway.similarity([1.0, 2.0], [2.0, 4.0]) == pytest.approx(1.0)

    def test_accepts_vectors(self, settings):
        gateway = EmbeddingGateway(settings)
        v1 = Vector([1.0, 0.0], "any-model")
        v2 = Vector([0.0, 1.0], "other-model")

        assert gateway.similarity(v1, v2) == pytest.approx(0.0)


class TestClientConstruction:
    """Test provider client wiring and health reporting."""

    def test_client_built_with_timeouts(self, enabled_settings, monkeypatch):
        fake_openai = Mock()
        monkeypatch.setattr("vectorpipe.memory.embedder.OpenAI", fake_openai)

        EmbeddingGateway(enabled_settings)

        kwargs = fake_openai.call_args.kwargs
        assert kwargs["api_key"] == "sk-test-key"
        assert kwargs["base_url"] == enabled_settings.embedding_api_base
        assert kwargs["max_retries"] == 0
        assert isinstance(kwargs["timeout"], httpx.Timeout)
        assert kwargs["timeout"].connect == 30.0
        assert kwargs["timeout"].read == 60.0
        assert kwargs["timeout"].write == 30.0

    def test_no_client_when_unavailable(self, settings, monkeypatch):
        fake_openai = Mock()
        monkeypatch.setattr("vectorpipe.memory.embedder.OpenAI", fake_openai)

        EmbeddingGateway(settings)

        fake_openai.assert_not_called()

    def test_health_check_degraded(self, settings):
        health = EmbeddingGateway(settings).health_check()

        assert health["status"] == "degraded"
        assert health["dimension"] == 1536

    def test_health_check_healthy(self, enabled_settings, mock_embedding_client):
        gateway = EmbeddingGateway(enabled_settings, client=mock_embedding_client(VALUES))

        health = gateway.health_check()

        assert health["status"] == "healthy"
        assert health["model"] == "text-embedding-3-small"
        assert gateway.get_dimension() == 4

    def test_health_check_reports_cache(self, enabled_settings, mock_embedding_client):
        gateway = EmbeddingGateway(enabled_settings, client=mock_embedding_client(VALUES))
        gateway.embed("hello")
        gateway.embed("hello")

        cache = gateway.health_check()["cache"]

        assert cache["hits"] == 1
        assert cache["misses"] == 1
        assert cache["size"] == 1


class TestCost:
    """Every provider call reports tokens and cost."""

    def test_usage_tokens_preferred(self, enabled_settings):
        client = Mock()
        client.embeddings.create.return_value = {
            "data": [{"embedding": VALUES}],
            "usage": {"total_tokens": 2500},
        }
        gateway = EmbeddingGateway(enabled_settings, client=client)

        outcome = gateway.embed_outcome("hello")

        assert outcome.tokens == 2500
        # 2.5K tokens at 0.002 cents per 1K
        assert outcome.cost_cents == 1

    def test_estimate_when_usage_missing(self, enabled_settings, mock_embedding_client):
        gateway = EmbeddingGateway(enabled_settings, client=mock_embedding_client(VALUES))
        text = "a sentence long enough to count a few tokens"

        outcome = gateway.embed_outcome(text)

        assert outcome.tokens == estimate_tokens(text)
        assert outcome.tokens > 0
        assert outcome.cost_cents == 1

    def test_price_follows_model(self, mock_embedding_client):
        settings = Settings(
            embedding_enabled=True,
            embedding_api_key="sk-test-key",
            embedding_model="text-embedding-3-large",
            embedding_dimension=4,
        )
        client = Mock()
        client.embeddings.create.return_value = {
            "data": [{"embedding": VALUES}],
            "usage": {"total_tokens": 200000},
        }

        outcome = EmbeddingGateway(settings, client=client).embed_outcome("hello")

        # 200K tokens at 0.013 cents per 1K, rounded up
        assert outcome.cost_cents == 3

    def test_degraded_has_no_cost(self, settings):
        outcome = EmbeddingGateway(settings).embed_outcome("hello")

        assert isinstance(outcome, Degraded)
        assert not hasattr(outcome, "cost_cents")


class TestTokenEstimate:

    @pytest.mark.parametrize(
        "text, tokens",
        [
            (None, 0),
            ("", 0),
            ("abcd", 0),
            ("abcdefghij", 2),
            ("文本", 4),
            ("文本 hello", 5),
        ],
    )
    def test_estimate_tokens(self, text, tokens):
        assert estimate_tokens(text) == tokens

    @pytest.mark.parametrize(
        "tokens, price, cents",
        [(0, 0.002, 0), (1, 0.002, 1), (1000, 0.013, 1), (10000, 0.013, 1), (100000, 0.013, 2)],
    )
    def test_estimate_cost_rounds_up(self, tokens, price, cents):
        assert estimate_cost_cents(tokens, price) == cents


class TestCache:
    """Successful embeddings are reused; fallbacks never are."""

    def test_repeat_text_hits_cache(self, enabled_settings, mock_embedding_client):
        client = mock_embedding_client(VALUES)
        gateway = EmbeddingGateway(enabled_settings, client=client)

        first = gateway.embed_outcome("hello")
        second = gateway.embed_outcome("hello")

        assert first.cached is False
        assert second.cached is True
        assert second.vector == first.vector
        assert second.cost_cents == 0
        client.embeddings.create.assert_called_once()

    def test_different_text_misses(self, enabled_settings, mock_embedding_client):
        client = mock_embedding_client(VALUES)
        gateway = EmbeddingGateway(enabled_settings, client=client)

        gateway.embed_outcome("hello")
        outcome = gateway.embed_outcome("world")

        assert outcome.cached is False
        assert client.embeddings.create.call_count == 2

    def test_evicted_text_calls_provider_again(self, enabled_settings, mock_embedding_client):
        client = mock_embedding_client(VALUES)
        cache = VectorCache(max_entries=1, ttl_seconds=60)
        gateway = EmbeddingGateway(enabled_settings, client=client, cache=cache)

        gateway.embed_outcome("hello")
        gateway.embed_outcome("world")
        outcome = gateway.embed_outcome("hello")

        assert outcome.cached is False
        assert client.embeddings.create.call_count == 3
        assert cache.stats().evictions == 2

    def test_failure_not_cached(self, enabled_settings):
        item = Mock()
        item.embedding = VALUES
        ok = Mock()
        ok.data = [item]

        client = Mock()
        client.embeddings.create.side_effect = [RuntimeError("timeout"), ok, ok]
        gateway = EmbeddingGateway(enabled_settings, client=client)

        assert gateway.embed_outcome("hello").degraded is True
        assert gateway.embed_outcome("hello").degraded is False
        assert gateway.embed_outcome("hello").cached is True
        assert client.embeddings.create.call_count == 2

    def test_cache_disabled(self, mock_embedding_client):
        settings = Settings(
            embedding_enabled=True,
            embedding_api_key="sk-test-key",
            embedding_dimension=4,
            cache_enabled=False,
        )
        client = mock_embedding_client(VALUES)
        gateway = EmbeddingGateway(settings, client=client)

        gateway.embed("hello")
        gateway.embed("hello")

        assert client.embeddings.create.call_count == 2
        assert "cache" not in gateway.health_check()
