# vectorpipe/memory/vector.py

"""
Immutable embedding value type.

A Vector is a fixed-length array of reals tagged with the model that
produced it. Similarity is only defined between compatible vectors
(same dimension, same model name).
"""

import hashlib
from typing import List, Sequence

import numpy as np


CACHE_KEY_SEPARATOR = "_"
CACHE_KEY_DIGEST_LENGTH = 32


class IncompatibleVectorsError(ValueError):
    """Raised when comparing vectors of different dimension or model."""


class Vector:

    __slots__ = ("_data", "_model_name")

    def __init__(self, data: Sequence[float], model_name: str):

        if data is None:
            raise ValueError("Vector data cannot be None")

        array = np.array(data, dtype=np.float64)

        if array.ndim != 1:
            raise ValueError(
                f"Vector data must be one-dimensional, got shape {array.shape}"
            )

        if array.size == 0:
            raise ValueError("Vector data cannot be empty")

        if model_name is None or not str(model_name).strip():
            raise ValueError("Model name cannot be empty")

        # np.array copies, so later changes to `data` are not observed
        array.flags.writeable = False

        self._data = array
        self._model_name = str(model_name)

    # ============================================================
    # ACCESSORS
    # ============================================================

    @property
    def data(self) -> List[float]:
        """Copy of the components as a plain list."""
        return self._data.tolist()

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimension(self) -> int:
        return int(self._data.size)

    @property
    def magnitude(self) -> float:
        """Euclidean norm."""
        return float(np.linalg.norm(self._data))

    def as_array(self) -> np.ndarray:
        """Writable numpy copy, for callers doing bulk arithmetic."""
        return self._data.copy()

    # ============================================================
    # ALGEBRA
    # ============================================================

    def is_compatible_with(self, other) -> bool:

        if other is None or not isinstance(other, Vector):
            return False

        return (
            self.dimension == other.dimension
            and self._model_name == other._model_name
        )

    def _require_compatible(self, other):

        if not self.is_compatible_with(other):
            raise IncompatibleVectorsError(
                f"Vectors are not compatible: "
                f"{self._describe()} vs {_describe(other)}"
            )

    def dot(self, other: "Vector") -> float:

        self._require_compatible(other)

        return float(np.dot(self._data, other._data))

    def cosine_similarity(self, other: "Vector") -> float:
        """
        Cosine of the angle between two compatible vectors.

        Returns 0.0 when either vector has zero magnitude.
        """

        self._require_compatible(other)

        norms = self.magnitude * other.magnitude

        if norms == 0.0:
            return 0.0

        similarity = float(np.dot(self._data, other._data)) / norms

        # rounding can push identical vectors slightly past 1
        return max(-1.0, min(1.0, similarity))

    def normalize(self) -> "Vector":
        """Unit-length copy. A zero vector is returned unchanged."""

        magnitude = self.magnitude

        if magnitude == 0.0:
            return self

        return Vector(self._data / magnitude, self._model_name)

    def cache_key(self, content: str) -> str:
        """Deterministic key for (model, dimension, content)."""
        return cache_key(self._model_name, self.dimension, content)

    # ============================================================
    # VALUE SEMANTICS
    # ============================================================

    def __eq__(self, other) -> bool:

        if not isinstance(other, Vector):
            return NotImplemented

        return (
            self._model_name == other._model_name
            and np.array_equal(self._data, other._data)
        )

    def __hash__(self) -> int:
        return hash((self._model_name, self._data.tobytes()))

    def __len__(self) -> int:
        return self.dimension

    def __repr__(self) -> str:
        return (
            f"Vector(dimension={self.dimension}, "
            f"model_name={self._model_name!r}, "
            f"magnitude={self.magnitude:.4f})"
        )

    def _describe(self) -> str:
        return f"{self._model_name}/{self.dimension}"


def _describe(other) -> str:

    if isinstance(other, Vector):
        return other._describe()

    return repr(other)


def cache_key(model_name: str, dimension: int, content: str) -> str:
    """
    Format: <model>_<dimension>_<digest>.

    The model name is percent-escaped ("%" then "_") so the key always has
    exactly two separators and distinct model names never share a key.
    """

    model_segment = model_name.replace("%", "%25").replace(CACHE_KEY_SEPARATOR, "%5F")

    digest = hashlib.sha256(
        (content or "").encode("utf-8")
    ).hexdigest()[:CACHE_KEY_DIGEST_LENGTH]

    return CACHE_KEY_SEPARATOR.join([model_segment, str(dimension), digest])
