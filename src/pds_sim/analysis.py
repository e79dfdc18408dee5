"""
Spacing statistics for finished sample fields.
"""

from __future__ import annotations

import math
from typing import Dict

import numpy as np
from scipy.spatial import cKDTree


def validate_positions(positions) -> np.ndarray:
    """
    Return positions as a finite (N, 2) float array.

    Raises:
        ValueError: If positions is None or not shaped (N, 2)
    """
    if positions is None:
        raise ValueError("positions is None. Cannot perform analysis.")
    pos = np.asarray(positions, dtype=np.float64)
    if pos.size == 0:
        return pos.reshape(0, 2)
    if pos.ndim != 2 or pos.shape[1] != 2:
        raise ValueError(f"Expected positions to be shape (N, 2), got {pos.shape}.")
    return pos[np.isfinite(pos).all(axis=1)]


def nearest_neighbour_distances(positions) -> np.ndarray:
    """Distance from every sample to its nearest other sample."""
    pos = validate_positions(positions)
    if len(pos) < 2:
        return np.empty(0, dtype=np.float64)
    dist, _ = cKDTree(pos).query(pos, k=2)
    return dist[:, 1]


def close_pairs(positions, min_radius: float) -> np.ndarray:
    """(M, 2) index pairs of distinct samples closer than min_radius."""
    pos = validate_positions(positions)
    if len(pos) < 2:
        return np.empty((0, 2), dtype=np.int64)
    tree = cKDTree(pos)
    # query_pairs is inclusive of r; drop pairs exactly at min_radius
    pairs = tree.query_pairs(min_radius, output_type="ndarray")
    if len(pairs) == 0:
        return pairs.reshape(0, 2)
    d = np.linalg.norm(pos[pairs[:, 0]] - pos[pairs[:, 1]], axis=1)
    return pairs[d < min_radius]


def packing_fraction(n: int, min_radius: float, width: float, height: float) -> float:
    """Share of the domain covered by disks of radius min_radius / 2."""
    return n * math.pi * (0.5 * min_radius) ** 2 / (width * height)


def summarize(positions, min_radius: float, width: float, height: float) -> Dict[str, float]:
    nn = nearest_neighbour_distances(positions)
    n = len(validate_positions(positions))
    return {
        "num": n,
        "min_nn": float(nn.min()) if nn.size else math.inf,
        "mean_nn": float(nn.mean()) if nn.size else math.inf,
        "std_nn": float(nn.std()) if nn.size else 0.0,
        "violations": int(len(close_pairs(positions, min_radius))),
        "packing_fraction": packing_fraction(n, min_radius, width, height),
    }


__all__ = [
    "close_pairs",
    "nearest_neighbour_distances",
    "packing_fraction",
    "summarize",
    "validate_positions",
]
