"""Brute-force JAX kernels for answering many queries against an index at once.

The kernels score every stored point, so they are exact and serve as a
reference for the tree queries. Only squared Euclidean distance is supported.
"""

from __future__ import annotations

import operator
from numbers import Integral, Real
from typing import Any

import jax
import jax.numpy as jnp
import numpy as np
from beartype import beartype
from jaxtyping import Array, ArrayLike, jaxtyped

from .dtypes import COORD_DTYPE
from .errors import DimensionMismatch, InvalidQuery, NonFiniteCoordinate
from .index import SpatialIndex


def _pairwise_squared_distances(queries: Array, points: Array) -> Array:
    """Return squared pairwise distances with shape ``(n_queries, n_points)``."""

    deltas = queries[:, None, :] - points[None, :, :]
    return jnp.sum(deltas * deltas, axis=-1)


def _validate_queries(index: SpatialIndex, queries: ArrayLike) -> Array:
    queries_arr = jnp.asarray(queries, dtype=COORD_DTYPE)
    if queries_arr.ndim != 2:
        raise DimensionMismatch(index.dimensions, tuple(queries_arr.shape))
    if queries_arr.shape[1] != index.dimensions:
        raise DimensionMismatch(index.dimensions, int(queries_arr.shape[1]))
    if not bool(jnp.all(jnp.isfinite(queries_arr))):
        raise NonFiniteCoordinate("queries must have finite coordinates")
    return queries_arr


def snapshot(index: SpatialIndex) -> tuple[Array, list[Any]]:
    """Return stored points as an ``(n, dim)`` array plus payloads, in insertion order."""

    entries = list(index.entries())
    if not entries:
        return jnp.zeros((0, index.dimensions), dtype=COORD_DTYPE), []
    points = jnp.asarray(np.stack([coords for coords, _ in entries]), dtype=COORD_DTYPE)
    return points, [payload for _, payload in entries]


@jaxtyped(typechecker=beartype)
def query_nearest_batch(
    index: SpatialIndex,
    queries: ArrayLike,
    *,
    k: Integral = 1,
) -> tuple[Array, list[list[Any]]]:
    """Return the ``k`` nearest payloads for each query row.

    Args:
        index: Index whose entries are searched.
        queries: Query points with shape ``(n_queries, dim)``.
        k: Number of neighbors per query; clipped to ``index.size()``.

    Returns:
        Tuple ``(scores, payloads)``. ``scores`` has shape
        ``(n_queries, min(k, size))`` and holds squared Euclidean distances in
        ascending order; ``payloads[q]`` lists the matching payloads. Equal
        scores keep insertion order.
    """

    queries_arr = _validate_queries(index, queries)
    k = operator.index(k)
    if k < 1:
        raise InvalidQuery(f"k must be >= 1, received {k}")

    points, payloads = snapshot(index)
    n_queries = int(queries_arr.shape[0])
    k_eff = min(k, len(payloads))
    if k_eff == 0:
        return jnp.zeros((n_queries, 0), dtype=COORD_DTYPE), [[] for _ in range(n_queries)]

    distances_sq = _pairwise_squared_distances(queries_arr, points)
    top_scores, indices = jax.lax.top_k(-distances_sq, k_eff)
    rows = np.asarray(indices)
    return -top_scores, [[payloads[int(i)] for i in row] for row in rows]


@jaxtyped(typechecker=beartype)
def count_within_batch(
    index: SpatialIndex,
    queries: ArrayLike,
    *,
    radius: Real,
) -> Array:
    """Count entries whose squared Euclidean distance is ``<= radius`` per query."""

    queries_arr = _validate_queries(index, queries)
    radius_value = float(radius)
    if np.isnan(radius_value):
        raise InvalidQuery("radius must not be NaN")

    points, _ = snapshot(index)
    if points.shape[0] == 0:
        return jnp.zeros((queries_arr.shape[0],), dtype=jnp.int32)
    distances_sq = _pairwise_squared_distances(queries_arr, points)
    return jnp.sum(distances_sq <= radius_value, axis=1, dtype=jnp.int32)


__all__ = ["count_within_batch", "query_nearest_batch", "snapshot"]
