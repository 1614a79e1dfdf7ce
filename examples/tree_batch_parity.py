"""Parity check between tree queries and the brute-force batch kernels.

Builds an index from random points, answers the same queries both ways, and
reports mismatches and how many distance evaluations the tree needed:
    python examples/tree_batch_parity.py --n-points 5000 --bucket-size 16
"""

from __future__ import annotations

import argparse
import logging

import jax
import numpy as np

from kdindex import (
    IndexConfig,
    SpatialIndex,
    count_within_batch,
    log_index_stats,
    query_nearest_batch,
    squared_euclidean,
)


def _make_points(n: int, dim: int, seed: int) -> jax.Array:
    key = jax.random.PRNGKey(seed)
    return jax.random.uniform(key, (n, dim), minval=-1.0, maxval=1.0)


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--n-points", type=int, default=2048)
    parser.add_argument("--n-queries", type=int, default=64)
    parser.add_argument("--dim", type=int, default=3)
    parser.add_argument("--k", type=int, default=8)
    parser.add_argument("--radius", type=float, default=0.05)
    parser.add_argument("--bucket-size", type=int, default=16)
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    points = _make_points(args.n_points, args.dim, args.seed)
    queries = _make_points(args.n_queries, args.dim, args.seed + 1)

    index = SpatialIndex(args.dim, config=IndexConfig(bucket_size=args.bucket_size))
    for i, point in enumerate(np.asarray(points)):
        index.add(point, i)
    log_index_stats(index.stats())

    evaluations = 0

    def counting(a, b):
        nonlocal evaluations
        evaluations += 1
        return squared_euclidean(a, b)

    _, batch_payloads = query_nearest_batch(index, queries, k=args.k)
    batch_counts = np.asarray(count_within_batch(index, queries, radius=args.radius))

    knn_mismatches = 0
    count_mismatches = 0
    for row, query in enumerate(np.asarray(queries)):
        tree_payloads = [payload for _, payload in index.nearest(query, args.k, counting)]
        if tree_payloads != batch_payloads[row]:
            knn_mismatches += 1
        if index.within_count(query, args.radius, squared_euclidean) != batch_counts[row]:
            count_mismatches += 1

    print("knn mismatches:", knn_mismatches)
    print("radius-count mismatches:", count_mismatches)
    print(
        "distance evaluations per knn query:",
        evaluations / max(args.n_queries, 1),
        f"(brute force: {args.n_points})",
    )


if __name__ == "__main__":
    main()
