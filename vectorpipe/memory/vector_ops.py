# vectorpipe/memory/vector_ops.py

"""
Vector helpers built on the Vector value type.

Binary operations require compatible vectors and raise
IncompatibleVectorsError otherwise. Results keep the left operand's model.
"""

from typing import List, Sequence, Tuple

import numpy as np

from vectorpipe.memory.vector import IncompatibleVectorsError, Vector


def _pair(v1: Vector, v2: Vector) -> Tuple[np.ndarray, np.ndarray]:

    if not v1.is_compatible_with(v2):
        raise IncompatibleVectorsError(
            "Vectors are not compatible: dimension or model mismatch"
        )

    return v1.as_array(), v2.as_array()


def euclidean_distance(v1: Vector, v2: Vector) -> float:
    a, b = _pair(v1, v2)
    return float(np.linalg.norm(a - b))


def manhattan_distance(v1: Vector, v2: Vector) -> float:
    a, b = _pair(v1, v2)
    return float(np.abs(a - b).sum())


def dot_product(v1: Vector, v2: Vector) -> float:
    a, b = _pair(v1, v2)
    return float(np.dot(a, b))


def add(v1: Vector, v2: Vector) -> Vector:
    a, b = _pair(v1, v2)
    return Vector(a + b, v1.model_name)


def subtract(v1: Vector, v2: Vector) -> Vector:
    a, b = _pair(v1, v2)
    return Vector(a - b, v1.model_name)


def multiply(vector: Vector, scalar: float) -> Vector:
    return Vector(vector.as_array() * scalar, vector.model_name)


def centroid(vectors: Sequence[Vector]) -> Vector:
    """Component-wise mean of compatible vectors."""

    if not vectors:
        raise ValueError("Cannot compute centroid of an empty vector list")

    first = vectors[0]

    for other in vectors[1:]:
        if not first.is_compatible_with(other):
            raise IncompatibleVectorsError(
                "All vectors must share dimension and model to compute a centroid"
            )

    stacked = np.vstack([v.as_array() for v in vectors])

    return Vector(stacked.mean(axis=0), first.model_name)


def k_nearest(
    query: Vector,
    candidates: Sequence[Vector],
    k: int,
) -> List[Tuple[int, float]]:
    """
    Indices and cosine similarities of the k most similar candidates,
    best first. Ties keep candidate order.
    """

    if k <= 0:
        raise ValueError(f"Invalid k: {k}")

    scored = [
        (idx, query.cosine_similarity(candidate))
        for idx, candidate in enumerate(candidates)
    ]

    scored.sort(key=lambda item: item[1], reverse=True)

    return scored[:k]
