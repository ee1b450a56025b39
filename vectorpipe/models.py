# vectorpipe/models.py
from enum import Enum
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from vectorpipe.memory.vector import Vector


class ProcessingMode(str, Enum):
    """Execution path for an embedding request."""

    SYNCHRONOUS_ONLINE = "SYNCHRONOUS_ONLINE"
    DEFERRED_BATCH = "DEFERRED_BATCH"
    # Request-time sentinel only, never a resolved operating state.
    AUTO = "AUTO"

    @property
    def description(self) -> str:
        return _MODE_DESCRIPTIONS[self]

    @property
    def is_realtime(self) -> bool:
        return self is ProcessingMode.SYNCHRONOUS_ONLINE

    @property
    def is_batch(self) -> bool:
        return self is ProcessingMode.DEFERRED_BATCH

    @property
    def is_auto(self) -> bool:
        return self is ProcessingMode.AUTO


_MODE_DESCRIPTIONS = {
    ProcessingMode.SYNCHRONOUS_ONLINE: "Online real-time processing, latency first",
    ProcessingMode.DEFERRED_BATCH: "Offline batch processing, throughput and cost first",
    ProcessingMode.AUTO: "Automatic selection from live metrics",
}


class ProcessingContext(BaseModel):
    """Per-request input to the mode decision."""

    model_config = ConfigDict(frozen=True)

    requested_mode: ProcessingMode = ProcessingMode.AUTO
    max_latency_ms: Optional[int] = Field(None, ge=0)
    document_id: Optional[str] = None
    # deferred work drains lowest value first; None uses the default priority
    priority: Optional[int] = None
    # embedded vectors failing the quality check are not indexed
    requires_high_quality: bool = False


class ProcessingMetrics(BaseModel):
    """
    Point-in-time read of the monitored system.

    Produced by a monitoring collaborator (see MetricsTracker.snapshot);
    the decision engine only reads it.
    """

    model_config = ConfigDict(frozen=True)

    total_cost_cents: int = 0
    average_processing_time_ms: float = 0.0
    system_load_average: float = 0.0
    current_queue_size: int = 0

    total_requests: int = Field(0, ge=0)
    successful_requests: int = Field(0, ge=0)
    failed_requests: int = Field(0, ge=0)

    @property
    def success_rate(self) -> float:
        if self.total_requests <= 0:
            return 0.0
        return self.successful_requests / self.total_requests

    @property
    def error_rate(self) -> float:
        if self.total_requests <= 0:
            return 0.0
        return self.failed_requests / self.total_requests


class DecisionReason(str, Enum):
    EXPLICIT = "explicit"
    AUTO_SWITCH_DISABLED = "auto_switch_disabled"
    SCORED = "scored"


class ModeDecision(BaseModel):
    """Resolved mode together with the signals that produced it."""

    model_config = ConfigDict(frozen=True)

    mode: ProcessingMode
    reason: DecisionReason
    cost_weight: float = 0.0
    latency_weight: float = 0.0
    load_weight: float = 0.0
    queue_weight: float = 0.0
    offline_score: Optional[float] = None
    online_score: Optional[float] = None

    def weights(self) -> Dict[str, float]:
        return {
            "cost": self.cost_weight,
            "latency": self.latency_weight,
            "load": self.load_weight,
            "queue": self.queue_weight,
        }


class DegradedReason(str, Enum):
    DISABLED = "disabled"
    MISSING_CREDENTIAL = "missing_credential"
    EMPTY_INPUT = "empty_input"
    PROVIDER_FAILURE = "provider_failure"
    MALFORMED_RESPONSE = "malformed_response"


class Embedded(BaseModel):
    """Provider returned a usable embedding."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    vector: Vector
    latency_ms: float = 0.0
    cost_cents: int = Field(0, ge=0)
    tokens: int = Field(0, ge=0)
    cached: bool = False

    @property
    def degraded(self) -> bool:
        return False


class Degraded(BaseModel):
    """Embedding replaced by the deterministic fallback vector."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    reason: DegradedReason
    vector: Vector
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return True


EmbeddingOutcome = Union[Embedded, Degraded]
