"""Incremental KD-tree spatial index with pluggable distance functions."""

from __future__ import annotations

import heapq
import itertools
import logging
import math
import operator
from dataclasses import dataclass, field
from numbers import Integral, Real
from typing import Any, NamedTuple, Optional, Union

import numpy as np
from beartype import beartype
from beartype.typing import Iterator, Sequence
from jaxtyping import ArrayLike

from .config import IndexConfig, validate_config
from .distance import DistanceFn, checked_score, project_to_box, squared_euclidean
from .dtypes import COORD_DTYPE, as_point
from .errors import InvalidDimensions, InvalidQuery
from .heap import BoundedMaxHeap

logger = logging.getLogger(__name__)

PointLike = Union[ArrayLike, Sequence[Real]]


@dataclass
class _Leaf:
    """Bucket of entries; all three lists stay aligned."""

    depth: int
    box_min: np.ndarray
    box_max: np.ndarray
    points: list[np.ndarray] = field(default_factory=list)
    payloads: list[Any] = field(default_factory=list)
    orders: list[int] = field(default_factory=list)

    @classmethod
    def from_entries(cls, depth, points, payloads, orders) -> "_Leaf":
        stacked = np.stack(points)
        return cls(
            depth=depth,
            box_min=stacked.min(axis=0),
            box_max=stacked.max(axis=0),
            points=list(points),
            payloads=list(payloads),
            orders=list(orders),
        )

    @classmethod
    def empty(cls, depth: int, dimensions: int) -> "_Leaf":
        # Inverted box; the first append widens it to that point.
        return cls(
            depth=depth,
            box_min=np.full(dimensions, np.inf, dtype=COORD_DTYPE),
            box_max=np.full(dimensions, -np.inf, dtype=COORD_DTYPE),
        )

    def __len__(self) -> int:
        return len(self.points)

    def append(self, point: np.ndarray, payload: Any, order: int) -> None:
        self.points.append(point)
        self.payloads.append(payload)
        self.orders.append(order)

    def entries(self):
        return zip(self.points, self.payloads, self.orders)


@dataclass
class _Internal:
    """Split node: ``left`` holds ``point[split_dim] < split_value``."""

    depth: int
    box_min: np.ndarray
    box_max: np.ndarray
    split_dim: int
    split_value: float
    left: Union[_Leaf, "_Internal"]
    right: Union[_Leaf, "_Internal"]

    def child_for(self, point: np.ndarray) -> Union[_Leaf, "_Internal"]:
        if point[self.split_dim] < self.split_value:
            return self.left
        return self.right

    def stack_order(self, point: np.ndarray) -> list[Union[_Leaf, "_Internal"]]:
        """Return non-empty children as ``[far, near]`` for a LIFO stack."""

        if point[self.split_dim] < self.split_value:
            ordered = [self.right, self.left]
        else:
            ordered = [self.left, self.right]
        return [child for child in ordered if not _is_empty(child)]


def _is_empty(node) -> bool:
    return isinstance(node, _Leaf) and not node.points


def _holds_only(leaf: _Leaf, point: np.ndarray) -> bool:
    """True when every entry of a non-empty ``leaf`` equals ``point``."""

    return (
        bool(leaf.points)
        and np.array_equal(leaf.box_min, point)
        and np.array_equal(leaf.box_max, point)
    )


_Node = Union[_Leaf, _Internal]


class IndexStats(NamedTuple):
    """Shape summary of a spatial index tree."""

    size: int
    num_leaves: int
    num_internal_nodes: int
    depth: int
    max_bucket: int


def log_index_stats(
    stats: IndexStats,
    *,
    level: int = logging.INFO,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Log index statistics using the provided (or module) logger."""

    target_logger = logger or logging.getLogger(__name__)
    target_logger.log(
        level,
        "Spatial index: size=%d, leaves=%d, internal=%d, depth=%d, max_bucket=%d",
        stats.size,
        stats.num_leaves,
        stats.num_internal_nodes,
        stats.depth,
        stats.max_bucket,
    )


class SpatialIndex:
    """KD-tree over fixed-dimension points, each carrying an opaque payload.

    Points are added one at a time and never removed. Leaves are buckets of up
    to ``config.bucket_size`` entries; an overflowing leaf at depth ``i`` is
    split on dimension ``i % dimensions`` at the median of its bucket. The
    tree is never rebalanced, so adversarial insertion orders degrade queries
    toward a linear scan.

    Every node keeps the tight bounding box of the points below it. Queries
    skip a subtree when the distance function, applied to the query and its
    projection onto that box, already exceeds the current bound. That test is
    exact for metrics that grow with per-axis absolute differences; pass
    ``prune=False`` to scan every entry for arbitrary callables.

    Equal scores are ordered by insertion, earliest first.
    """

    @beartype
    def __init__(self, dimensions: Integral, *, config: Optional[IndexConfig] = None):
        if isinstance(dimensions, bool) or dimensions < 1:
            raise InvalidDimensions(f"dimensions must be >= 1, received {dimensions!r}")
        self._dimensions = operator.index(dimensions)
        self._config = validate_config(config or IndexConfig())
        self._root: Optional[_Node] = None
        self._size = 0
        self._next_order = 0

    def __repr__(self) -> str:
        return f"SpatialIndex(dimensions={self._dimensions}, size={self._size})"

    def __len__(self) -> int:
        return self._size

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def config(self) -> IndexConfig:
        return self._config

    def size(self) -> int:
        """Return the number of stored entries."""

        return self._size

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    @beartype
    def add(self, point: PointLike, payload: Any) -> None:
        """Insert ``point`` with ``payload``.

        Raises:
            DimensionMismatch: if ``len(point) != dimensions``.
            NonFiniteCoordinate: if a coordinate is NaN or infinite.
        """

        coords = as_point(point, self._dimensions)
        order = self._next_order

        if self._root is None:
            self._root = _Leaf.from_entries(0, [coords], [payload], [order])
        else:
            path: list[_Internal] = []
            node = self._root
            while isinstance(node, _Internal):
                path.append(node)
                node = node.child_for(coords)

            # The split is built from a fresh leaf before anything is mutated,
            # so a failure leaves the tree unchanged.
            replacement: Optional[_Node] = None
            if len(node) >= self._config.bucket_size and _holds_only(node, coords):
                logger.debug(
                    "Leaf at depth %d holds %d identical points; split deferred",
                    node.depth,
                    len(node) + 1,
                )
            elif len(node) >= self._config.bucket_size:
                replacement = self._split(
                    _Leaf.from_entries(
                        node.depth,
                        node.points + [coords],
                        node.payloads + [payload],
                        node.orders + [order],
                    )
                )

            for parent in path:
                np.minimum(parent.box_min, coords, out=parent.box_min)
                np.maximum(parent.box_max, coords, out=parent.box_max)
            if replacement is None:
                np.minimum(node.box_min, coords, out=node.box_min)
                np.maximum(node.box_max, coords, out=node.box_max)
                node.append(coords, payload, order)
            elif not path:
                self._root = replacement
            elif path[-1].left is node:
                path[-1].left = replacement
            else:
                path[-1].right = replacement

        self._next_order += 1
        self._size += 1

    def _split(self, leaf: _Leaf) -> _Node:
        """Split an overflowing bucket that holds at least two distinct points."""

        dims = self._dimensions
        # Axes in the order successive depths would split on them.
        axes = (leaf.depth + np.arange(dims)) % dims
        varied = np.flatnonzero(leaf.box_max[axes] > leaf.box_min[axes])
        flat = int(varied[0])
        depth = leaf.depth + flat
        dim = int(axes[flat])
        values = np.fromiter((p[dim] for p in leaf.points), dtype=COORD_DTYPE, count=len(leaf))
        ordered = np.sort(values)
        lowest = ordered[0]
        split_value = ordered[len(ordered) // 2]
        if split_value == lowest:
            split_value = ordered[ordered > lowest][0]

        goes_left = values < split_value
        left = _Leaf.from_entries(
            depth + 1,
            [p for p, is_left in zip(leaf.points, goes_left) if is_left],
            [v for v, is_left in zip(leaf.payloads, goes_left) if is_left],
            [o for o, is_left in zip(leaf.orders, goes_left) if is_left],
        )
        right = _Leaf.from_entries(
            depth + 1,
            [p for p, is_left in zip(leaf.points, goes_left) if not is_left],
            [v for v, is_left in zip(leaf.payloads, goes_left) if not is_left],
            [o for o, is_left in zip(leaf.orders, goes_left) if not is_left],
        )
        logger.debug(
            "Split leaf at depth %d on dim %d at %r (%d left, %d right)",
            depth,
            dim,
            float(split_value),
            len(left),
            len(right),
        )
        node: _Node = _Internal(
            depth=depth,
            box_min=leaf.box_min.copy(),
            box_max=leaf.box_max.copy(),
            split_dim=dim,
            split_value=float(split_value),
            left=left,
            right=right,
        )
        if not flat:
            return node

        logger.debug(
            "Leaf at depth %d is flat on %d axes; carried %d entries to depth %d",
            leaf.depth,
            flat,
            len(leaf),
            depth,
        )
        # Every entry lies on the plane of each flat axis: those levels get an
        # empty left side. Built bottom-up.
        for flat_depth in range(depth - 1, leaf.depth - 1, -1):
            flat_dim = flat_depth % dims
            node = _Internal(
                depth=flat_depth,
                box_min=leaf.box_min.copy(),
                box_max=leaf.box_max.copy(),
                split_dim=flat_dim,
                split_value=float(leaf.box_min[flat_dim]),
                left=_Leaf.empty(flat_depth + 1, dims),
                right=node,
            )
        return node

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _resolve_prune(self, prune: Optional[bool]) -> bool:
        return self._config.prune if prune is None else prune

    @staticmethod
    def _box_score(distance: DistanceFn, query: np.ndarray, node: _Node) -> float:
        return checked_score(distance, query, project_to_box(query, node.box_min, node.box_max))

    @beartype
    def nearest(
        self,
        point: PointLike,
        k: Integral,
        distance: DistanceFn,
        *,
        prune: Optional[bool] = None,
    ) -> list[tuple[float, Any]]:
        """Return up to ``k`` ``(score, payload)`` pairs with the smallest scores.

        Results are sorted ascending by ``distance(point, entry_point)``. An
        empty index yields an empty list.

        Raises:
            DimensionMismatch: if ``len(point) != dimensions``.
            InvalidQuery: if ``k < 1``.
            DistanceFnError: if ``distance`` fails on any pair.
        """

        query = as_point(point, self._dimensions)
        k = operator.index(k)
        if k < 1:
            raise InvalidQuery(f"k must be >= 1, received {k}")
        if self._root is None:
            return []

        use_pruning = self._resolve_prune(prune)
        best: BoundedMaxHeap[Any] = BoundedMaxHeap(k)
        stack: list[_Node] = [self._root]
        while stack:
            node = stack.pop()
            if (
                use_pruning
                and best.full
                and self._box_score(distance, query, node) > best.worst()
            ):
                continue
            if isinstance(node, _Leaf):
                for coords, payload, order in node.entries():
                    best.push(checked_score(distance, query, coords), order, payload)
                continue
            stack.extend(node.stack_order(query))

        return best.drain()

    @beartype
    def nearest_euclidean(self, point: PointLike, k: Integral) -> list[tuple[float, Any]]:
        """:meth:`nearest` under squared Euclidean distance."""

        return self.nearest(point, k, squared_euclidean)

    def _scan_within(
        self,
        query: np.ndarray,
        radius: float,
        distance: DistanceFn,
        use_pruning: bool,
    ) -> Iterator[tuple[float, int, Any]]:
        if self._root is None:
            return
        stack: list[_Node] = [self._root]
        while stack:
            node = stack.pop()
            if use_pruning and self._box_score(distance, query, node) > radius:
                continue
            if isinstance(node, _Leaf):
                for coords, payload, order in node.entries():
                    score = checked_score(distance, query, coords)
                    if score <= radius:
                        yield score, order, payload
                continue
            stack.extend(node.stack_order(query))

    @staticmethod
    def _check_radius(radius: Real) -> float:
        radius_value = float(radius)
        if math.isnan(radius_value):
            raise InvalidQuery("radius must not be NaN")
        return radius_value

    @beartype
    def within(
        self,
        point: PointLike,
        radius: Real,
        distance: DistanceFn,
        *,
        prune: Optional[bool] = None,
    ) -> list[tuple[float, Any]]:
        """Return every ``(score, payload)`` with ``score <= radius``.

        ``radius`` is compared directly with the metric's output, so for
        squared Euclidean distance it is a squared radius. Results are sorted
        ascending by score.
        """

        query = as_point(point, self._dimensions)
        radius_value = self._check_radius(radius)
        matches = list(
            self._scan_within(query, radius_value, distance, self._resolve_prune(prune))
        )
        matches.sort(key=lambda match: (match[0], match[1]))
        return [(score, payload) for score, _, payload in matches]

    @beartype
    def within_euclidean(self, point: PointLike, radius: Real) -> list[tuple[float, Any]]:
        """:meth:`within` under squared Euclidean distance."""

        return self.within(point, radius, squared_euclidean)

    @beartype
    def within_count(
        self,
        point: PointLike,
        radius: Real,
        distance: DistanceFn,
        *,
        prune: Optional[bool] = None,
    ) -> int:
        """Return how many entries :meth:`within` would report."""

        query = as_point(point, self._dimensions)
        radius_value = self._check_radius(radius)
        return sum(
            1
            for _ in self._scan_within(query, radius_value, distance, self._resolve_prune(prune))
        )

    @beartype
    def iter_nearest(
        self, point: PointLike, distance: DistanceFn
    ) -> Iterator[tuple[float, Any]]:
        """Lazily yield every ``(score, payload)`` in ascending score order.

        Uses best-first search over node bounding boxes, so ``distance`` must
        grow with per-axis absolute differences. The index must not be
        modified while the iterator is in use.
        """

        query = as_point(point, self._dimensions)
        return self._iter_nearest(query, distance)

    def _iter_nearest(
        self, query: np.ndarray, distance: DistanceFn
    ) -> Iterator[tuple[float, Any]]:
        if self._root is None:
            return
        # Keys are (score, kind, tiebreak, item); kind 0 nodes expand before
        # kind 1 entries of the same score so insertion order decides ties.
        node_seq = itertools.count()
        pending: list[tuple[float, int, int, Any]] = [
            (self._box_score(distance, query, self._root), 0, next(node_seq), self._root)
        ]
        while pending:
            score, kind, _, item = heapq.heappop(pending)
            if kind == 1:
                yield score, item
                continue
            if isinstance(item, _Leaf):
                for coords, payload, order in item.entries():
                    heapq.heappush(
                        pending, (checked_score(distance, query, coords), 1, order, payload)
                    )
                continue
            for child in item.stack_order(query):
                heapq.heappush(
                    pending,
                    (self._box_score(distance, query, child), 0, next(node_seq), child),
                )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def _leaves(self) -> Iterator[_Leaf]:
        if self._root is None:
            return
        stack: list[_Node] = [self._root]
        while stack:
            node = stack.pop()
            if isinstance(node, _Leaf):
                yield node
            else:
                stack.append(node.right)
                stack.append(node.left)

    def entries(self) -> Iterator[tuple[np.ndarray, Any]]:
        """Yield ``(point, payload)`` for every entry in insertion order."""

        collected = [entry for leaf in self._leaves() for entry in leaf.entries()]
        collected.sort(key=lambda entry: entry[2])
        for coords, payload, _ in collected:
            yield coords, payload

    def stats(self) -> IndexStats:
        """Return a shape summary of the current tree."""

        num_leaves = 0
        depth = 0
        max_bucket = 0
        for leaf in self._leaves():
            num_leaves += 1
            depth = max(depth, leaf.depth)
            max_bucket = max(max_bucket, len(leaf))
        return IndexStats(
            size=self._size,
            num_leaves=num_leaves,
            # A binary tree whose internal nodes all have two children.
            num_internal_nodes=max(num_leaves - 1, 0),
            depth=depth,
            max_bucket=max_bucket,
        )


__all__ = ["IndexStats", "SpatialIndex", "log_index_stats"]
