# tests/test_models.py
import pytest
from pydantic import ValidationError

from vectorpipe.memory.store import (
    DEFAULT_KEYWORD_WEIGHT,
    DEFAULT_VECTOR_WEIGHT,
    SearchRequest,
    SearchType,
)
from vectorpipe.models import (
    DecisionReason,
    ModeDecision,
    ProcessingContext,
    ProcessingMetrics,
    ProcessingMode,
)


class TestProcessingMode:

    def test_flags(self):
        assert ProcessingMode.SYNCHRONOUS_ONLINE.is_realtime
        assert ProcessingMode.DEFERRED_BATCH.is_batch
        assert ProcessingMode.AUTO.is_auto
        assert not ProcessingMode.AUTO.is_realtime

    def test_every_mode_described(self):
        for mode in ProcessingMode:
            assert mode.description

    def test_parse_from_string(self):
        assert ProcessingMode("DEFERRED_BATCH") is ProcessingMode.DEFERRED_BATCH


class TestProcessingContext:

    def test_defaults_to_auto(self):
        context = ProcessingContext()

        assert context.requested_mode == ProcessingMode.AUTO
        assert context.max_latency_ms is None

    def test_negative_latency_rejected(self):
        with pytest.raises(ValidationError):
            ProcessingContext(max_latency_ms=-1)

    def test_priority_and_quality_defaults(self):
        context = ProcessingContext()

        assert context.priority is None
        assert context.requires_high_quality is False

    def test_unknown_field_ignored(self):
        assert not hasattr(ProcessingContext(max_cost_cents=5), "max_cost_cents")


class TestProcessingMetrics:

    def test_rates(self):
        metrics = ProcessingMetrics(total_requests=4, successful_requests=3, failed_requests=1)

        assert metrics.success_rate == 0.75
        assert metrics.error_rate == 0.25

    def test_rates_without_requests(self):
        assert ProcessingMetrics().success_rate == 0.0


class TestModeDecision:

    def test_weights(self):
        decision = ModeDecision(
            mode=ProcessingMode.DEFERRED_BATCH,
            reason=DecisionReason.SCORED,
            cost_weight=0.7,
            latency_weight=-0.3,
        )

        assert decision.weights() == {
            "cost": 0.7, "latency": -0.3, "load": 0.0, "queue": 0.0,
        }


class TestSearchRequest:
    """Shape of queries handed to the external index."""

    def test_hybrid_defaults(self):
        request = SearchRequest(index_name="documents", query="vector search")

        assert request.search_type == SearchType.HYBRID
        assert request.keyword_weight == DEFAULT_KEYWORD_WEIGHT == 1.0
        assert request.vector_weight == DEFAULT_VECTOR_WEIGHT == 2.0
        assert request.page == 0
        assert request.size == 10

    def test_index_name_required(self):
        with pytest.raises(ValidationError):
            SearchRequest(index_name="")

    def test_negative_page_rejected(self):
        with pytest.raises(ValidationError):
            SearchRequest(index_name="documents", page=-1)
