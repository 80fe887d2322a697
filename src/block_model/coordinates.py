"""
Coordinate System Conversion for Export

The block model is built in a Y-up, right-handed space (+X right, +Y up,
+Z toward the viewer), which is also what glTF expects. Z-up tools such as
Blender can be targeted on export.
"""

from enum import Enum
import numpy as np


class CoordinateSystem(Enum):
    """Up-axis convention of an exported file."""
    Y_UP = "y_up"    # internal, glTF, Godot
    Z_UP = "z_up"    # Blender, MagicaVoxel


# Y-up to Z-up: x' = x, y' = -z, z' = y (a rotation, so winding is kept)
_Y_UP_TO_Z_UP = np.array([
    [1, 0, 0],
    [0, 0, -1],
    [0, 1, 0]
], dtype=np.float64)


def get_coordinate_transform(
    source: CoordinateSystem,
    target: CoordinateSystem
) -> np.ndarray:
    """
    Rotation taking positions in `source` axes to `target` axes.

    Args:
        source: Axes the positions are given in
        target: Axes to convert to

    Returns:
        3x3 rotation matrix (identity when source == target)
    """
    if source == target:
        return np.eye(3, dtype=np.float64)

    if (source, target) == (CoordinateSystem.Y_UP, CoordinateSystem.Z_UP):
        return _Y_UP_TO_Z_UP

    if (source, target) == (CoordinateSystem.Z_UP, CoordinateSystem.Y_UP):
        return _Y_UP_TO_Z_UP.T

    raise ValueError(f"Unsupported conversion {source} -> {target}")


def transform_vertices(
    vertices: np.ndarray,
    source: CoordinateSystem,
    target: CoordinateSystem
) -> np.ndarray:
    """
    Rotate positions or normals into another up-axis convention.

    Args:
        vertices: (N, 3) positions or normals
        source: Axes the input is given in
        target: Axes to convert to

    Returns:
        float32 array of shape (N, 3)
    """
    rotation = get_coordinate_transform(source, target)
    return (rotation @ vertices.T).T.astype(np.float32)
