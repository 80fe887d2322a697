"""
Voxel Classification

Converts per-voxel type weights into discrete voxel type ids.

A voxel takes the type with the strictly greatest weight. Comparison starts
from a threshold of 0 and uses strict greater-than, so:
- ties keep the lowest type index
- a voxel whose weights are all zero is EMPTY
"""

from typing import Sequence
import numpy as np


# Sentinel type id for an empty voxel
EMPTY = -1


def classify_weights(weights: Sequence[float]) -> int:
    """
    Classify a single voxel.

    Args:
        weights: One non-negative weight per voxel type

    Returns:
        Index of the strictly greatest weight, or EMPTY
    """
    best_type = EMPTY
    best_weight = 0.0

    for voxel_type, weight in enumerate(weights):
        if weight > best_weight:
            best_type = voxel_type
            best_weight = weight

    return best_type


def classify_grid(weights: np.ndarray) -> np.ndarray:
    """
    Classify every voxel of a TypeWeights array.

    np.argmax returns the first maximum, which matches the strict
    greater-than tie break of classify_weights.

    Args:
        weights: Array of shape (X, Y, Z, num_types)

    Returns:
        int32 array of shape (X, Y, Z) with type ids or EMPTY
    """
    if weights.ndim != 4:
        raise ValueError("Weights must have shape (X, Y, Z, num_types)")

    if weights.shape[3] == 0:
        return np.full(weights.shape[:3], EMPTY, dtype=np.int32)

    best = np.argmax(weights, axis=3).astype(np.int32)
    solid = np.max(weights, axis=3) > 0

    return np.where(solid, best, EMPTY).astype(np.int32)


def count_types(voxel_types: np.ndarray, num_types: int) -> np.ndarray:
    """
    Histogram of classified voxels.

    Args:
        voxel_types: Classified grid
        num_types: Size of the voxel type set

    Returns:
        Array of length num_types with the cell count of each type
    """
    solid = voxel_types[(voxel_types >= 0) & (voxel_types < num_types)]
    return np.bincount(solid.ravel(), minlength=num_types)[:num_types]
