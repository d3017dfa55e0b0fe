"""
Standard embedding type.

EmbeddingVector is the only embedding format passed between the service,
the caches and the vector stores.
"""

from typing import List, Optional, Sequence, Union

import numpy as np

from hybridrag.core.exceptions import ValidationError


class EmbeddingVector:
    """
    L2-normalized float32 embedding.

    Raises ValidationError for vectors that are not one-dimensional, have
    fewer than two components, or do not match ``expected_dim``.
    """

    __slots__ = ("_data",)

    def __init__(
        self,
        data: Union[np.ndarray, Sequence[float]],
        expected_dim: Optional[int] = None,
    ):
        array = np.asarray(data, dtype=np.float32)

        if array.ndim != 1 or array.shape[0] <= 1:
            raise ValidationError(
                f"Embedding must be a vector with more than one dimension, got shape {array.shape}",
                context={"field": "embedding", "shape": list(array.shape)},
            )
        if expected_dim is not None and array.shape[0] != expected_dim:
            raise ValidationError(
                f"Embedding dimension mismatch: expected {expected_dim}, got {array.shape[0]}",
                context={"field": "embedding", "expected": expected_dim, "actual": array.shape[0]},
            )
        if not np.all(np.isfinite(array)):
            raise ValidationError(
                "Embedding contains NaN or infinite values", context={"field": "embedding"}
            )

        norm = np.linalg.norm(array)
        self._data = array / norm if norm > 0 else array

    @property
    def dimension(self) -> int:
        return int(self._data.shape[0])

    @property
    def numpy(self) -> np.ndarray:
        """For efficient mathematical operations."""
        return self._data

    @property
    def list(self) -> List[float]:
        """For generic serialization."""
        return self._data.tolist()

    def to_weaviate(self) -> List[float]:
        """Weaviate expects plain float64 lists."""
        return self._data.astype(np.float64).tolist()

    def cosine_similarity(self, other: "EmbeddingVector") -> float:
        """Both vectors are normalized, so this is the dot product."""
        return float(np.dot(self._data, other._data))

    def __len__(self) -> int:
        return self.dimension

    def __repr__(self) -> str:
        return f"EmbeddingVector(dim={self.dimension})"
