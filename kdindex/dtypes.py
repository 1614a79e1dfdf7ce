"""Local dtype policy for kdindex points."""

import numpy as np

from .errors import DimensionMismatch, NonFiniteCoordinate

# Coordinates are stored and scored in double precision everywhere.
COORD_DTYPE = np.float64


def as_point(x, dimensions: int) -> np.ndarray:
    """Convert ``x`` to a read-only coordinate vector of length ``dimensions``."""
    point = np.array(x, dtype=COORD_DTYPE)
    if point.ndim != 1:
        raise DimensionMismatch(dimensions, point.shape)
    if point.shape[0] != dimensions:
        raise DimensionMismatch(dimensions, int(point.shape[0]))
    if not np.all(np.isfinite(point)):
        raise NonFiniteCoordinate(f"point coordinates must be finite; received {point.tolist()}")
    point.setflags(write=False)
    return point


__all__ = ["COORD_DTYPE", "as_point"]
