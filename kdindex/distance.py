"""Distance functions and checked scoring for kdindex queries."""

from __future__ import annotations

import math

import numpy as np
from beartype.typing import Callable

from .errors import DistanceFnError

DistanceFn = Callable[[np.ndarray, np.ndarray], float]


def squared_euclidean(a: np.ndarray, b: np.ndarray) -> float:
    """Return ``sum((a - b) ** 2)``.

    Ordering by squared distance matches ordering by true Euclidean distance,
    so the square root is skipped.
    """

    delta = np.subtract(a, b)
    return float(np.dot(delta, delta))


def euclidean(a: np.ndarray, b: np.ndarray) -> float:
    """Return the Euclidean (L2) distance."""

    return math.sqrt(squared_euclidean(a, b))


def manhattan(a: np.ndarray, b: np.ndarray) -> float:
    """Return the taxicab (L1) distance."""

    return float(np.sum(np.abs(np.subtract(a, b))))


def chebyshev(a: np.ndarray, b: np.ndarray) -> float:
    """Return the maximum per-axis (L-infinity) distance."""

    return float(np.max(np.abs(np.subtract(a, b))))


def checked_score(distance: DistanceFn, a: np.ndarray, b: np.ndarray) -> float:
    """Call ``distance(a, b)`` and coerce the result to a comparable float.

    Raises:
        DistanceFnError: if the callable raises, returns something that is not
            a real scalar, or returns NaN.
    """

    try:
        value = distance(a, b)
    except Exception as exc:
        raise DistanceFnError(
            f"distance function raised {type(exc).__name__}: {exc}"
        ) from exc

    if isinstance(value, (str, bytes, bool, np.bool_)) or np.ndim(value) != 0:
        raise DistanceFnError(
            f"distance function must return a real scalar, received {value!r}"
        )
    try:
        score = float(value)
    except (TypeError, ValueError) as exc:
        raise DistanceFnError(
            f"distance function must return a real scalar, received {value!r}"
        ) from exc
    if math.isnan(score):
        raise DistanceFnError("distance function returned NaN")
    return score


def project_to_box(point: np.ndarray, box_min: np.ndarray, box_max: np.ndarray) -> np.ndarray:
    """Return the point of the box ``[box_min, box_max]`` closest to ``point``."""

    projected = np.clip(point, box_min, box_max)
    projected.setflags(write=False)
    return projected


__all__ = [
    "DistanceFn",
    "checked_score",
    "chebyshev",
    "euclidean",
    "manhattan",
    "project_to_box",
    "squared_euclidean",
]
