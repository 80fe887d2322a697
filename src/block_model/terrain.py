"""
Procedural Type-Weight Generation

Produces the per-voxel TypeWeights field that the block model compresses.
This is a stand-in for an external terrain generator:

1. Height field: smooth 2D noise in [0, 1] over the (x, z) plane, made by
   cubic-spline interpolation of a seeded random lattice
2. Columns: cells below solid_level + (height - solid_level) * noise get
   full weight for voxel type 0
3. Sphere overrides: every cell inside a sphere gets a small weight for all
   types and full weight for the sphere's type
"""

from dataclasses import dataclass
from typing import Sequence, Tuple
import logging
import numpy as np
from scipy import ndimage


logger = logging.getLogger(__name__)

# Weight given to every type inside a sphere, below the sphere's own type
SPHERE_BACKGROUND_WEIGHT = 0.01


@dataclass
class VoxelSphere:
    """Spherical region forced to one voxel type."""
    center: Tuple[float, float, float]  # fine voxel coordinates
    radius: float
    voxel_type: int


class TerrainGenerator:
    """
    Generates TypeWeights for a fine voxel grid.
    """

    def __init__(
        self,
        num_voxel_types: int,
        solid_level: int = 4,
        seed: int = 0,
        feature_cells: float = 24.0,
        spheres: Sequence[VoxelSphere] = ()
    ):
        """
        Initialize the generator.

        Args:
            num_voxel_types: Length of each weight vector
            solid_level: Height (fine voxels) that is always solid
            seed: Random seed of the height noise
            feature_cells: Noise feature size in fine voxels
            spheres: Sphere overrides, applied in order
        """
        if num_voxel_types <= 0:
            raise ValueError(f"num_voxel_types must be positive, got {num_voxel_types}")
        if feature_cells <= 0:
            raise ValueError(f"feature_cells must be positive, got {feature_cells}")

        for sphere in spheres:
            if not 0 <= sphere.voxel_type < num_voxel_types:
                raise ValueError(
                    f"Sphere voxel_type {sphere.voxel_type} is outside "
                    f"[0, {num_voxel_types})"
                )

        self.num_voxel_types = num_voxel_types
        self.solid_level = solid_level
        self.seed = seed
        self.feature_cells = feature_cells
        self.spheres = list(spheres)

    def height_noise(self, size_x: int, size_z: int) -> np.ndarray:
        """
        Smooth noise over the (x, z) plane.

        Returns:
            float32 array of shape (size_x, size_z) with values in [0, 1]
        """
        rng = np.random.default_rng(self.seed)
        lattice = rng.random((
            int(size_x / self.feature_cells) + 2,
            int(size_z / self.feature_cells) + 2
        ))

        coords = np.meshgrid(
            np.arange(size_x) / self.feature_cells,
            np.arange(size_z) / self.feature_cells,
            indexing="ij"
        )
        noise = ndimage.map_coordinates(lattice, coords, order=3, mode="nearest")

        # Cubic splines overshoot slightly
        return np.clip(noise, 0.0, 1.0).astype(np.float32)

    def generate(self, grid_shape: Tuple[int, int, int]) -> np.ndarray:
        """
        Generate the weight field.

        Args:
            grid_shape: Fine grid dimensions (x, y, z)

        Returns:
            float32 array of shape grid_shape + (num_voxel_types,)
        """
        size_x, size_y, size_z = grid_shape
        weights = np.zeros(
            (size_x, size_y, size_z, self.num_voxel_types), dtype=np.float32
        )

        noise = self.height_noise(size_x, size_z)
        open_height = size_y - self.solid_level
        column_height = self.solid_level + (open_height * noise).astype(np.int32)

        heights = np.arange(size_y)[np.newaxis, :, np.newaxis]
        solid = heights < column_height[:, np.newaxis, :]
        weights[..., 0][solid] = 1.0

        self.apply_spheres(weights)

        logger.info(
            "Generated weights for grid %s: %d terrain cells, %d spheres",
            grid_shape, int(solid.sum()), len(self.spheres)
        )
        return weights

    def apply_spheres(self, weights: np.ndarray) -> np.ndarray:
        """
        Apply sphere overrides in place.

        Args:
            weights: Weight field of shape (X, Y, Z, num_types)

        Returns:
            The same array
        """
        size_x, size_y, size_z = weights.shape[:3]
        x, y, z = np.ogrid[0:size_x, 0:size_y, 0:size_z]

        for sphere in self.spheres:
            cx, cy, cz = sphere.center
            distance_sq = (x - cx) ** 2 + (y - cy) ** 2 + (z - cz) ** 2
            inside = distance_sq <= sphere.radius ** 2

            weights[inside] = SPHERE_BACKGROUND_WEIGHT
            weights[inside, sphere.voxel_type] = 1.0

        return weights
