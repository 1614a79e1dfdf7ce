"""kdindex: incremental KD-tree spatial index with pluggable distance functions."""

from jax import config as _jax_config

# Batch kernels must score in the same float64 precision as the tree.
_jax_config.update("jax_enable_x64", True)

from .batch import count_within_batch, query_nearest_batch, snapshot
from .config import IndexConfig
from .distance import (
    DistanceFn,
    chebyshev,
    euclidean,
    manhattan,
    squared_euclidean,
)
from .dtypes import COORD_DTYPE, as_point
from .errors import (
    DimensionMismatch,
    DistanceFnError,
    InvalidDimensions,
    InvalidQuery,
    NonFiniteCoordinate,
    SpatialIndexError,
)
from .heap import BoundedMaxHeap
from .index import IndexStats, SpatialIndex, log_index_stats

__all__ = [
    "COORD_DTYPE",
    "BoundedMaxHeap",
    "DimensionMismatch",
    "DistanceFn",
    "DistanceFnError",
    "IndexConfig",
    "IndexStats",
    "InvalidDimensions",
    "InvalidQuery",
    "NonFiniteCoordinate",
    "SpatialIndex",
    "SpatialIndexError",
    "as_point",
    "chebyshev",
    "count_within_batch",
    "euclidean",
    "log_index_stats",
    "manhattan",
    "query_nearest_batch",
    "snapshot",
    "squared_euclidean",
]
