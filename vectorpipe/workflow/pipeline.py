# vectorpipe/workflow/pipeline.py
import heapq
import itertools
import logging
import threading
from typing import Callable, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict

from vectorpipe.config import DEFAULT_TASK_PRIORITY, Settings
from vectorpipe.memory.chunker import TextChunker
from vectorpipe.memory.embedder import EmbeddingGateway
from vectorpipe.memory.store import DocumentIndex
from vectorpipe.memory.vector import Vector
from vectorpipe.memory.vector_quality import assess_vector
from vectorpipe.models import (
    DegradedReason,
    EmbeddingOutcome,
    ProcessingContext,
    ProcessingMetrics,
    ProcessingMode,
)
from vectorpipe.observability.logger import log_stage
from vectorpipe.observability.metrics import MetricsTracker
from vectorpipe.workflow.mode_selector import ModeSelector

logger = logging.getLogger(__name__)

# Degraded reasons that count as failed requests in the metrics
_FAILURE_REASONS = {
    DegradedReason.PROVIDER_FAILURE,
    DegradedReason.MALFORMED_RESPONSE,
}


class BatchItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    chunk_idx: int
    text: str
    # lower drains first
    priority: int = DEFAULT_TASK_PRIORITY
    requires_high_quality: bool = False


class BatchQueue(Protocol):

    def submit(self, item: BatchItem) -> None:
        ...

    def size(self) -> int:
        ...

    def drain(self, max_items: Optional[int] = None) -> List[BatchItem]:
        ...


class InMemoryBatchQueue:
    """
    Thread-safe priority queue standing in for an external batch scheduler.

    Items drain by ascending priority, FIFO within a priority level.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._heap = []
        self._sequence = itertools.count()

    def submit(self, item: BatchItem) -> None:
        with self._lock:
            heapq.heappush(self._heap, (item.priority, next(self._sequence), item))

    def size(self) -> int:
        with self._lock:
            return len(self._heap)

    def drain(self, max_items: Optional[int] = None) -> List[BatchItem]:

        with self._lock:

            count = len(self._heap) if max_items is None else min(max_items, len(self._heap))

            return [heapq.heappop(self._heap)[2] for _ in range(count)]


class ChunkResult(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    chunk_idx: int
    text: str
    mode: ProcessingMode
    vector: Optional[Vector] = None
    degraded_reason: Optional[DegradedReason] = None
    # set when a high-quality request rejected the vector
    quality_issues: Optional[List[str]] = None

    @property
    def deferred(self) -> bool:
        return self.mode.is_batch and self.vector is None

    @property
    def rejected(self) -> bool:
        return self.quality_issues is not None


class PipelineResult(BaseModel):
    document_id: str
    chunks: List[ChunkResult]

    @property
    def embedded_count(self) -> int:
        return sum(
            1 for c in self.chunks
            if c.vector is not None and c.degraded_reason is None and not c.rejected
        )

    @property
    def deferred_count(self) -> int:
        return sum(1 for c in self.chunks if c.deferred)

    @property
    def degraded_count(self) -> int:
        return sum(1 for c in self.chunks if c.degraded_reason is not None)

    @property
    def rejected_count(self) -> int:
        return sum(1 for c in self.chunks if c.rejected)


class EmbeddingPipeline:
    """
    chunker → mode selector → (embedder | batch queue) → index

    Every collaborator is injectable; defaults are built from Settings.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        chunker: Optional[TextChunker] = None,
        selector: Optional[ModeSelector] = None,
        gateway: Optional[EmbeddingGateway] = None,
        batch_queue: Optional[BatchQueue] = None,
        metrics_tracker: Optional[MetricsTracker] = None,
        metrics_fn: Optional[Callable[[], ProcessingMetrics]] = None,
        index: Optional[DocumentIndex] = None,
    ):

        settings = settings or Settings()

        self._chunker = chunker or TextChunker(settings)
        self._selector = selector or ModeSelector(settings)
        self._gateway = gateway or EmbeddingGateway(settings)
        self._batch_queue = batch_queue or InMemoryBatchQueue()
        self._metrics = metrics_tracker or MetricsTracker(
            queue_size_fn=self._batch_queue.size
        )
        self._metrics_fn = metrics_fn or self._metrics.snapshot
        self._index = index

    @property
    def batch_queue(self) -> BatchQueue:
        return self._batch_queue

    @property
    def metrics(self) -> MetricsTracker:
        return self._metrics

    # ============================================================
    # ONLINE ENTRY POINT
    # ============================================================

    def process_document(
        self,
        document_id: str,
        text: str,
        context: Optional[ProcessingContext] = None,
    ) -> PipelineResult:

        context = context or ProcessingContext(document_id=document_id)

        priority = DEFAULT_TASK_PRIORITY if context.priority is None else context.priority

        with log_stage(logger, document_id, "pipeline") as summary:

            chunks = self._chunker.chunk(text)

            results: List[ChunkResult] = []

            for idx, chunk in enumerate(chunks):

                mode = self._selector.determine_mode(context, self._metrics_fn())

                if mode.is_batch:

                    self._batch_queue.submit(
                        BatchItem(
                            document_id=document_id,
                            chunk_idx=idx,
                            text=chunk,
                            priority=priority,
                            requires_high_quality=context.requires_high_quality,
                        )
                    )

                    results.append(ChunkResult(chunk_idx=idx, text=chunk, mode=mode))

                    continue

                results.append(
                    self._process_chunk(
                        document_id,
                        idx,
                        chunk,
                        mode,
                        context.requires_high_quality,
                    )
                )

            result = PipelineResult(document_id=document_id, chunks=results)

            summary.update(
                chunks=len(results),
                embedded=result.embedded_count,
                deferred=result.deferred_count,
                degraded=result.degraded_count,
                rejected=result.rejected_count,
            )

        return result

    # ============================================================
    # DEFERRED PATH
    # ============================================================

    def flush_deferred(self, max_items: Optional[int] = None) -> List[ChunkResult]:
        """Embed queued chunks in priority order, as a batch worker would."""

        items = self._batch_queue.drain(max_items)

        results = [
            self._process_chunk(
                item.document_id,
                item.chunk_idx,
                item.text,
                ProcessingMode.DEFERRED_BATCH,
                item.requires_high_quality,
            )
            for item in items
        ]

        logger.info(
            "Deferred batch flushed",
            extra={"items": len(results), "remaining": self._batch_queue.size()},
        )

        return results

    # ============================================================
    # INTERNALS
    # ============================================================

    def _process_chunk(
        self,
        document_id: str,
        chunk_idx: int,
        text: str,
        mode: ProcessingMode,
        requires_high_quality: bool,
    ) -> ChunkResult:

        outcome = self._embed(text, mode)

        issues = None

        if requires_high_quality and not outcome.degraded:

            assessment = assess_vector(outcome.vector)

            if not assessment.is_valid:

                issues = assessment.issues

                logger.warning(
                    "Embedding failed quality check, not indexed",
                    extra={
                        "document_id": document_id,
                        "chunk_idx": chunk_idx,
                        "score": round(assessment.score, 4),
                        "issues": issues,
                    },
                )

        if issues is None:
            self._store(document_id, chunk_idx, text, outcome, mode)

        return ChunkResult(
            chunk_idx=chunk_idx,
            text=text,
            mode=mode,
            vector=outcome.vector,
            degraded_reason=getattr(outcome, "reason", None),
            quality_issues=issues,
        )

    def _embed(self, text: str, mode: ProcessingMode) -> EmbeddingOutcome:

        outcome = self._gateway.embed_outcome(text)

        if not outcome.degraded:
            self._metrics.record_success(
                outcome.latency_ms,
                cost_cents=outcome.cost_cents,
                mode=mode,
            )
        elif outcome.reason in _FAILURE_REASONS:
            self._metrics.record_failure(mode=mode)

        return outcome

    def _store(
        self,
        document_id: str,
        chunk_idx: int,
        text: str,
        outcome: EmbeddingOutcome,
        mode: ProcessingMode,
    ):

        # zero vectors would only pollute vector ranking
        if self._index is None or outcome.degraded:
            return

        with log_stage(
            logger,
            document_id,
            "indexing",
            logging.DEBUG,
            chunk_idx=chunk_idx,
        ):

            self._index.index_document(
                f"{document_id}:{chunk_idx}",
                outcome.vector,
                text,
                {
                    "document_id": document_id,
                    "chunk_idx": chunk_idx,
                    "mode": mode.value,
                },
            )
