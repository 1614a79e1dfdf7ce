"""Error taxonomy for spatial index operations."""

from __future__ import annotations


class SpatialIndexError(Exception):
    """Base class for every failure raised by :mod:`kdindex`."""


class InvalidDimensions(SpatialIndexError, ValueError):
    """Raised when an index is configured with a non-positive dimensionality."""


class DimensionMismatch(SpatialIndexError, ValueError):
    """Raised when a point's length disagrees with the index dimensionality."""

    def __init__(self, expected: int, received: int | tuple[int, ...]):
        self.expected = expected
        self.received = received
        super().__init__(
            "point dimensions do not match index dimensions; "
            f"expected {expected}, received {received}"
        )


class NonFiniteCoordinate(SpatialIndexError, ValueError):
    """Raised when a point carries a NaN or infinite coordinate."""


class InvalidQuery(SpatialIndexError, ValueError):
    """Raised for malformed query parameters such as ``k < 1``."""


class DistanceFnError(SpatialIndexError, RuntimeError):
    """Raised when a distance callable fails or returns an unusable score."""


__all__ = [
    "DimensionMismatch",
    "DistanceFnError",
    "InvalidDimensions",
    "InvalidQuery",
    "NonFiniteCoordinate",
    "SpatialIndexError",
]
