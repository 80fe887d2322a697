"""
Block Model Configuration

Holds the parameters of one regeneration pass:
- parent_count: number of coarse blocks along (x, y, z)
- sub_blocks_per_parent: fine voxels per coarse block along (x, y, z)
- num_voxel_types: size of the voxel type set
- layer_filter: inclusive (min, max) range of coarse layers along y
- parent_block_size: world-space size of one coarse block

Validation happens once, before any classification or decomposition, so a
malformed configuration never produces a partial mesh.
"""

from dataclasses import dataclass
from typing import Tuple
import math
import numpy as np


AXES = ("x", "y", "z")


def _as_triple(name: str, value) -> Tuple:
    """Check that a per-axis parameter has exactly three components."""
    try:
        triple = tuple(value)
    except TypeError:
        raise ValueError(f"{name} must be a sequence of 3 values, got {value!r}")
    if len(triple) != 3:
        raise ValueError(f"{name} must have 3 components (x, y, z), got {len(triple)}")
    return triple


def _check_positive_ints(name: str, value) -> Tuple[int, int, int]:
    triple = _as_triple(name, value)
    for axis, component in zip(AXES, triple):
        if isinstance(component, bool) or not isinstance(component, (int, np.integer)):
            raise ValueError(f"{name}.{axis} must be an integer, got {component!r}")
        if component <= 0:
            raise ValueError(f"{name}.{axis} must be positive, got {component}")
    return tuple(int(c) for c in triple)


@dataclass
class ModelConfig:
    """
    Configuration for one block model regeneration.

    The fine voxel grid has shape parent_count * sub_blocks_per_parent
    on every axis.
    """

    parent_count: Tuple[int, int, int] = (8, 4, 8)
    sub_blocks_per_parent: Tuple[int, int, int] = (4, 4, 4)
    num_voxel_types: int = 4
    layer_filter: Tuple[int, int] = (0, 20)
    parent_block_size: Tuple[float, float, float] = (1.0, 1.0, 1.0)

    def validate(self) -> "ModelConfig":
        """
        Reject malformed configuration.

        Raises:
            ValueError: Naming the offending parameter and axis

        Returns:
            self for method chaining
        """
        self.parent_count = _check_positive_ints("parent_count", self.parent_count)
        self.sub_blocks_per_parent = _check_positive_ints(
            "sub_blocks_per_parent", self.sub_blocks_per_parent
        )

        if (isinstance(self.num_voxel_types, bool) or
                not isinstance(self.num_voxel_types, (int, np.integer))):
            raise ValueError(
                f"num_voxel_types must be an integer, got {self.num_voxel_types!r}"
            )
        if self.num_voxel_types <= 0:
            raise ValueError(
                f"num_voxel_types must be positive, got {self.num_voxel_types}"
            )
        self.num_voxel_types = int(self.num_voxel_types)

        layer_filter = tuple(self.layer_filter)
        if len(layer_filter) != 2:
            raise ValueError(
                f"layer_filter must be a (min, max) pair, got {self.layer_filter!r}"
            )
        # min > max is a valid (empty) filter, only the type is checked
        for label, bound in zip(("min", "max"), layer_filter):
            if isinstance(bound, bool) or not isinstance(bound, (int, np.integer)):
                raise ValueError(f"layer_filter.{label} must be an integer, got {bound!r}")
        self.layer_filter = (int(layer_filter[0]), int(layer_filter[1]))

        block_size = _as_triple("parent_block_size", self.parent_block_size)
        for axis, component in zip(AXES, block_size):
            try:
                component = float(component)
            except (TypeError, ValueError):
                raise ValueError(
                    f"parent_block_size.{axis} must be a number, got {component!r}"
                )
            if not math.isfinite(component) or component <= 0:
                raise ValueError(
                    f"parent_block_size.{axis} must be positive and finite, got {component}"
                )
        self.parent_block_size = tuple(float(c) for c in block_size)

        return self

    def validate_weights(self, weights: np.ndarray) -> np.ndarray:
        """
        Check a TypeWeights array against this configuration.

        Args:
            weights: Array of shape grid_shape + (num_voxel_types,)

        Returns:
            The weights as a float32 array

        Raises:
            ValueError: On shape mismatch, non-finite or negative weights
        """
        weights = np.asarray(weights)
        expected = self.grid_shape + (self.num_voxel_types,)

        if weights.ndim != 4:
            raise ValueError(
                f"weights must be a 4D array (x, y, z, type), got {weights.ndim}D"
            )
        for axis, got, want in zip(AXES + ("type",), weights.shape, expected):
            if got != want:
                raise ValueError(
                    f"weights size along {axis} is {got}, expected {want} "
                    f"for grid shape {expected}"
                )

        weights = weights.astype(np.float32, copy=False)
        if not np.all(np.isfinite(weights)):
            raise ValueError("weights must be finite")
        if np.any(weights < 0):
            raise ValueError("weights must be non-negative")

        return weights

    @property
    def grid_shape(self) -> Tuple[int, int, int]:
        """Fine voxel grid dimensions (x, y, z)."""
        return tuple(
            p * s for p, s in zip(self.parent_count, self.sub_blocks_per_parent)
        )

    @property
    def voxel_size(self) -> Tuple[float, float, float]:
        """World-space size of a single fine voxel."""
        return tuple(
            b / s for b, s in zip(self.parent_block_size, self.sub_blocks_per_parent)
        )

    @property
    def max_sub_dimension(self) -> int:
        """Largest per-axis subdivision factor."""
        return max(self.sub_blocks_per_parent)

    @property
    def voxel_count(self) -> int:
        """Total number of fine voxels."""
        x, y, z = self.grid_shape
        return x * y * z

    @property
    def parent_block_count(self) -> int:
        """Total number of coarse blocks."""
        x, y, z = self.parent_count
        return x * y * z


def ordered_layer_filter(layer_min: int, layer_max: int, moved: str = "min") -> Tuple[int, int]:
    """
    Order a (min, max) layer pair after one bound was moved past the other.

    The bound that was not moved follows the one that was, so dragging max
    below min lowers min and dragging min above max raises max.
    """
    layer_min, layer_max = int(layer_min), int(layer_max)
    if layer_min > layer_max:
        if moved == "max":
            layer_min = layer_max
        else:
            layer_max = layer_min
    return layer_min, layer_max
