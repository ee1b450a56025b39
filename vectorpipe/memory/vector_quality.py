# vectorpipe/memory/vector_quality.py

"""
Embedding quality checks.

A single vector is scored on magnitude, value distribution and numeric
stability. A batch is additionally screened for magnitude outliers.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np
from pydantic import BaseModel, Field

from vectorpipe.memory.vector import Vector

logger = logging.getLogger(__name__)


# ========== THRESHOLDS ==========

MIN_MAGNITUDE = 0.1
MAX_MAGNITUDE = 10.0
VARIANCE_THRESHOLD = 0.001
ZERO_EPSILON = 1e-10
MAX_ZERO_RATIO = 0.9
MIN_SUM_OF_SQUARES = 1e-20
MAX_SUM_OF_SQUARES = 1e20

VALID_SCORE = 0.7

# score weights
MAGNITUDE_WEIGHT = 0.3
DISTRIBUTION_WEIGHT = 0.4
STABILITY_WEIGHT = 0.3

# batch anomaly detection
MAX_MAGNITUDE_SPREAD = 100.0  # max / min magnitude
OUTLIER_SIGMA = 3.0
MAX_OUTLIER_RATIO = 0.1


class QualityAssessment(BaseModel):
    score: float
    is_valid: bool
    issues: List[str] = Field(default_factory=list)


class BatchQualityReport(BaseModel):
    total: int = 0
    valid: int = 0
    average_score: float = 0.0
    issues: List[str] = Field(default_factory=list)

    @property
    def valid_ratio(self) -> float:
        if self.total == 0:
            return 0.0
        return self.valid / self.total


class AnomalyReport(BaseModel):
    has_anomalies: bool = False
    details: List[str] = Field(default_factory=list)


def assess_vector(vector: Optional[Vector]) -> QualityAssessment:
    """Score one vector in [0, 1]; valid only at >= 0.7 with no issues."""

    if vector is None:
        return QualityAssessment(score=0.0, is_valid=False, issues=["vector is missing"])

    values = vector.as_array()
    issues: List[str] = []

    score = (
        MAGNITUDE_WEIGHT * _magnitude_score(vector.magnitude, issues)
        + DISTRIBUTION_WEIGHT * _distribution_score(values, issues)
        + STABILITY_WEIGHT * _stability_score(values, issues)
    )

    is_valid = score >= VALID_SCORE and not issues

    logger.debug(
        "Vector quality assessed",
        extra={
            "score": round(score, 4),
            "valid": is_valid,
            "dimension": vector.dimension,
            "model": vector.model_name,
        },
    )

    return QualityAssessment(score=score, is_valid=is_valid, issues=issues)


def assess_batch(vectors: Sequence[Vector]) -> BatchQualityReport:

    if not vectors:
        return BatchQualityReport()

    assessments = [assess_vector(v) for v in vectors]

    issues = [
        f"vector {idx}: {'; '.join(a.issues)}"
        for idx, a in enumerate(assessments)
        if not a.is_valid
    ]

    return BatchQualityReport(
        total=len(assessments),
        valid=sum(1 for a in assessments if a.is_valid),
        average_score=sum(a.score for a in assessments) / len(assessments),
        issues=issues,
    )


def detect_anomalies(vectors: Sequence[Vector]) -> AnomalyReport:
    """Flag batches whose magnitudes spread too far or have many outliers."""

    if not vectors:
        return AnomalyReport()

    magnitudes = np.array([v.magnitude for v in vectors])
    details: List[str] = []

    if not np.all(np.isfinite(magnitudes)):
        details.append("non-finite magnitude in batch")
        return AnomalyReport(has_anomalies=True, details=details)

    low = magnitudes.min()
    high = magnitudes.max()

    if high > 0 and (low == 0 or high / low > MAX_MAGNITUDE_SPREAD):
        spread = float("inf") if low == 0 else high / low
        details.append(f"magnitude spread too wide (max/min={spread:.2f})")

    deviation = np.abs(magnitudes - magnitudes.mean())
    outliers = int(np.sum(deviation > OUTLIER_SIGMA * magnitudes.std()))

    if outliers > len(vectors) * MAX_OUTLIER_RATIO:
        details.append(f"too many magnitude outliers ({outliers})")

    return AnomalyReport(has_anomalies=bool(details), details=details)


def _magnitude_score(magnitude: float, issues: List[str]) -> float:

    if not np.isfinite(magnitude):
        issues.append("magnitude is not finite")
        return 0.0

    if magnitude < MIN_MAGNITUDE:
        issues.append(f"magnitude too small ({magnitude:.4f} < {MIN_MAGNITUDE})")
        return max(0.0, magnitude / MIN_MAGNITUDE)

    if magnitude > MAX_MAGNITUDE:
        issues.append(f"magnitude too large ({magnitude:.4f} > {MAX_MAGNITUDE})")
        return max(0.0, 1.0 - (magnitude - MAX_MAGNITUDE) / MAX_MAGNITUDE)

    return 1.0


def _distribution_score(values: np.ndarray, issues: List[str]) -> float:

    if not np.all(np.isfinite(values)):
        issues.append("contains NaN or infinite values")
        return 0.0

    score = 1.0

    variance = float(values.var())
    if variance < VARIANCE_THRESHOLD:
        issues.append(f"variance too small ({variance:.6f})")
        score *= 0.5

    if values.max() == values.min():
        issues.append("all components identical")
        score *= 0.3

    zero_ratio = float(np.mean(np.abs(values) < ZERO_EPSILON))
    if zero_ratio > MAX_ZERO_RATIO:
        issues.append(f"too many zero components ({zero_ratio:.0%})")
        score *= 0.4

    return score


def _stability_score(values: np.ndarray, issues: List[str]) -> float:

    score = 1.0

    with np.errstate(over="ignore", invalid="ignore"):
        sum_of_squares = float(np.sum(values * values))

    if sum_of_squares < MIN_SUM_OF_SQUARES:
        issues.append("values small enough to lose precision")
        score *= 0.6

    if sum_of_squares > MAX_SUM_OF_SQUARES:
        issues.append("values large enough to overflow")
        score *= 0.6

    return score
