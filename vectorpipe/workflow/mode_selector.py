# vectorpipe/workflow/mode_selector.py

"""
Adaptive processing-mode selection.

Each factor (cost, latency, load, queue) is mapped onto a weight where a
positive value pushes towards DEFERRED_BATCH and a negative value towards
SYNCHRONOUS_ONLINE. The weights feed two competing scores; batch wins only
on a strictly higher score.

The coefficients and breakpoints below are compatibility constants. They
must stay exactly as they are for existing deployments.
"""

import logging
from typing import Optional, Sequence, Tuple

from vectorpipe.config import Settings
from vectorpipe.models import (
    DecisionReason,
    ModeDecision,
    ProcessingContext,
    ProcessingMetrics,
    ProcessingMode,
)

logger = logging.getLogger(__name__)


# ========== SCORE COEFFICIENTS ==========

BASE_SCORE = 0.5

OFFLINE_COST_FACTOR = 0.3
OFFLINE_LATENCY_FACTOR = 0.2
OFFLINE_LOAD_FACTOR = 0.3
OFFLINE_QUEUE_FACTOR = 0.2

ONLINE_COST_FACTOR = 0.3
ONLINE_LATENCY_FACTOR = 0.4  # latency matters twice as much online
ONLINE_LOAD_FACTOR = 0.2
ONLINE_QUEUE_FACTOR = 0.1


# ========== WEIGHT BREAKPOINTS ==========
# (ratio strictly above, weight), checked top-down; floor otherwise

COST_BREAKPOINTS = ((1.0, 1.0), (0.8, 0.7), (0.5, 0.3))
COST_FLOOR = 0.0

LATENCY_BREAKPOINTS = ((1.5, 0.8), (1.0, 0.5), (0.7, 0.2))
LATENCY_FLOOR = -0.3
STRICT_LATENCY_WEIGHT = -1.0

LOAD_BREAKPOINTS = ((1.2, 1.0), (1.0, 0.7), (0.8, 0.3))
LOAD_FLOOR = -0.1

QUEUE_BREAKPOINTS = ((1.5, 1.0), (1.0, 0.8), (0.7, 0.4))
QUEUE_FLOOR = -0.2

UNCONFIGURED_WEIGHT = 0.0


def _configured(threshold) -> bool:
    return threshold is not None and threshold > 0


def _step(
    ratio: float,
    breakpoints: Sequence[Tuple[float, float]],
    floor: float,
) -> float:

    for bound, weight in breakpoints:
        if ratio > bound:
            return weight

    return floor


class ModeSelector:
    """
    Decides between online and batch processing for a request.

    Stateless apart from the immutable Settings; safe to share between
    threads.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or Settings()

    # ============================================================
    # DECISION
    # ============================================================

    def determine_mode(
        self,
        context: Optional[ProcessingContext],
        metrics: Optional[ProcessingMetrics],
    ) -> ProcessingMode:
        return self.evaluate(context, metrics).mode

    def evaluate(
        self,
        context: Optional[ProcessingContext],
        metrics: Optional[ProcessingMetrics],
    ) -> ModeDecision:
        """Resolve a concrete mode and report the signals behind it."""

        context = context or ProcessingContext()
        metrics = metrics or ProcessingMetrics()

        # explicit caller intent always wins
        if not context.requested_mode.is_auto:

            logger.debug(
                "Using requested processing mode",
                extra={"mode": context.requested_mode.value},
            )

            return ModeDecision(
                mode=context.requested_mode,
                reason=DecisionReason.EXPLICIT,
            )

        if not self._settings.auto_switch_enabled:

            mode = self._settings.default_mode

            if mode.is_auto:
                mode = ProcessingMode.SYNCHRONOUS_ONLINE

            logger.debug(
                "Auto switching disabled, using default mode",
                extra={"mode": mode.value},
            )

            return ModeDecision(
                mode=mode,
                reason=DecisionReason.AUTO_SWITCH_DISABLED,
            )

        cost_weight = self.cost_weight(metrics)
        latency_weight = self.latency_weight(metrics, context)
        load_weight = self.load_weight(metrics)
        queue_weight = self.queue_weight(metrics)

        offline_score = offline_score_for(
            cost_weight, latency_weight, load_weight, queue_weight
        )
        online_score = online_score_for(
            cost_weight, latency_weight, load_weight, queue_weight
        )

        # ties go to online
        if offline_score > online_score:
            mode = ProcessingMode.DEFERRED_BATCH
        else:
            mode = ProcessingMode.SYNCHRONOUS_ONLINE

        logger.info(
            "Mode decision",
            extra={
                "offline_score": round(offline_score, 4),
                "online_score": round(online_score, 4),
                "cost_weight": cost_weight,
                "latency_weight": latency_weight,
                "load_weight": load_weight,
                "queue_weight": queue_weight,
                "mode": mode.value,
            },
        )

        return ModeDecision(
            mode=mode,
            reason=DecisionReason.SCORED,
            cost_weight=cost_weight,
            latency_weight=latency_weight,
            load_weight=load_weight,
            queue_weight=queue_weight,
            offline_score=offline_score,
            online_score=online_score,
        )

    def should_switch(
        self,
        current_mode: ProcessingMode,
        context: Optional[ProcessingContext],
        metrics: Optional[ProcessingMetrics],
    ) -> bool:
        """
        Advisory check. The caller owns any migration of in-flight work.
        """

        optimal = self.determine_mode(context, metrics)

        if current_mode != optimal:

            logger.info(
                "Mode switch recommended",
                extra={
                    "from_mode": getattr(current_mode, "value", current_mode),
                    "to_mode": optimal.value,
                },
            )

            return True

        return False

    # ============================================================
    # FACTOR WEIGHTS
    # ============================================================

    def cost_weight(self, metrics: ProcessingMetrics) -> float:

        threshold = self._settings.cost_threshold_cents

        if not _configured(threshold):
            return UNCONFIGURED_WEIGHT

        ratio = metrics.total_cost_cents / threshold

        return _step(ratio, COST_BREAKPOINTS, COST_FLOOR)

    def latency_weight(
        self,
        metrics: ProcessingMetrics,
        context: ProcessingContext,
    ) -> float:

        threshold = self._settings.latency_threshold_ms

        if not _configured(threshold):
            return UNCONFIGURED_WEIGHT

        # a stricter ceiling on the request overrides observed latency
        if context.max_latency_ms is not None and context.max_latency_ms < threshold:
            return STRICT_LATENCY_WEIGHT

        ratio = metrics.average_processing_time_ms / threshold

        return _step(ratio, LATENCY_BREAKPOINTS, LATENCY_FLOOR)

    def load_weight(self, metrics: ProcessingMetrics) -> float:

        threshold = self._settings.load_threshold

        if not _configured(threshold):
            return UNCONFIGURED_WEIGHT

        ratio = metrics.system_load_average / threshold

        return _step(ratio, LOAD_BREAKPOINTS, LOAD_FLOOR)

    def queue_weight(self, metrics: ProcessingMetrics) -> float:

        threshold = self._settings.queue_size_threshold

        if not _configured(threshold):
            return UNCONFIGURED_WEIGHT

        ratio = metrics.current_queue_size / threshold

        return _step(ratio, QUEUE_BREAKPOINTS, QUEUE_FLOOR)


def offline_score_for(
    cost_weight: float,
    latency_weight: float,
    load_weight: float,
    queue_weight: float,
) -> float:

    return (
        BASE_SCORE
        + cost_weight * OFFLINE_COST_FACTOR
        + max(0.0, latency_weight) * OFFLINE_LATENCY_FACTOR
        + load_weight * OFFLINE_LOAD_FACTOR
        + queue_weight * OFFLINE_QUEUE_FACTOR
    )


def online_score_for(
    cost_weight: float,
    latency_weight: float,
    load_weight: float,
    queue_weight: float,
) -> float:

    return (
        BASE_SCORE
        - cost_weight * ONLINE_COST_FACTOR
        + max(0.0, -latency_weight) * ONLINE_LATENCY_FACTOR
        - load_weight * ONLINE_LOAD_FACTOR
        - queue_weight * ONLINE_QUEUE_FACTOR
    )
