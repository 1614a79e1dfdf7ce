"""Index configuration for kdindex."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class IndexConfig:
    """Resolved options for a :class:`~kdindex.index.SpatialIndex`.

    Attributes:
        bucket_size: Number of entries a leaf holds before it is split.
        prune: Default pruning mode for queries. Bounding-box pruning is exact
            for metrics that grow with per-axis absolute differences (the
            Minkowski family, squared Euclidean). Queries may override it.
    """

    bucket_size: int = 16
    prune: bool = True


def validate_config(config: IndexConfig) -> IndexConfig:
    if isinstance(config.bucket_size, bool) or not isinstance(config.bucket_size, int):
        raise ValueError(f"bucket_size must be an integer, received {config.bucket_size!r}")
    if config.bucket_size < 1:
        raise ValueError(f"bucket_size must be >= 1, received {config.bucket_size}")
    return config


__all__ = ["IndexConfig", "validate_config"]
