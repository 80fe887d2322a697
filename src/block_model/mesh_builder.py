"""
Face-Culled Mesh Building

This module turns the compressed block model into renderable geometry:
- Uniform parent blocks become one box spanning the whole parent
- Mixed parent blocks contribute one box per decomposed cuboid
- Empty parent blocks produce nothing

Every box face is emitted as a quad unless the parent block on the other
side of the face is solid (Uniform of a real voxel type). Visibility is
decided at parent-block granularity: a face next to a Mixed block, an Empty
block, the edge of the grid or a layer outside the filter is always drawn.

Coordinate system: Y-up, right-handed. Quads wind counter-clockwise when
seen from outside the box.
"""

from enum import IntEnum
from typing import Dict, List, NamedTuple, Optional, Tuple
import logging
import numpy as np

from .atlas import TextureAtlas
from .decomposer import Cuboid
from .parent_blocks import MIXED


logger = logging.getLogger(__name__)


class FaceDirection(IntEnum):
    """Face normal directions."""
    WEST = 0    # -X
    EAST = 1    # +X
    BOTTOM = 2  # -Y
    TOP = 3     # +Y
    SOUTH = 4   # -Z
    NORTH = 5   # +Z


# Normal vectors for each face direction
FACE_NORMALS = np.array([
    [-1, 0, 0],  # WEST
    [1, 0, 0],   # EAST
    [0, -1, 0],  # BOTTOM
    [0, 1, 0],   # TOP
    [0, 0, -1],  # SOUTH
    [0, 0, 1],   # NORTH
], dtype=np.int32)

# Quad corners as fractions of the box size, counter-clockwise from outside
FACE_CORNERS = np.array([
    [[0, 0, 0], [0, 0, 1], [0, 1, 1], [0, 1, 0]],  # WEST
    [[1, 0, 0], [1, 1, 0], [1, 1, 1], [1, 0, 1]],  # EAST
    [[0, 0, 0], [1, 0, 0], [1, 0, 1], [0, 0, 1]],  # BOTTOM
    [[0, 1, 0], [0, 1, 1], [1, 1, 1], [1, 1, 0]],  # TOP
    [[0, 0, 0], [0, 1, 0], [1, 1, 0], [1, 0, 0]],  # SOUTH
    [[0, 0, 1], [1, 0, 1], [1, 1, 1], [0, 1, 1]],  # NORTH
], dtype=np.float32)

# Two triangles per quad
QUAD_INDICES = np.array([0, 1, 2, 0, 2, 3], dtype=np.uint32)


class MeshData(NamedTuple):
    """Container for mesh geometry data."""
    vertices: np.ndarray     # (N, 3) float32 positions
    normals: np.ndarray      # (N, 3) float32 normals
    uvs: np.ndarray          # (N, 2) float32 atlas coordinates
    indices: np.ndarray      # (M,) uint32 triangle indices

    @property
    def quad_count(self) -> int:
        return len(self.vertices) // 4

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3


def empty_mesh() -> MeshData:
    """Mesh with no geometry."""
    return MeshData(
        vertices=np.zeros((0, 3), dtype=np.float32),
        normals=np.zeros((0, 3), dtype=np.float32),
        uvs=np.zeros((0, 2), dtype=np.float32),
        indices=np.zeros((0,), dtype=np.uint32)
    )


def in_layer_filter(layer: int, layer_filter: Tuple[int, int]) -> bool:
    """Inclusive test of a coarse y layer against (min, max)."""
    return layer_filter[0] <= layer <= layer_filter[1]


class CulledMeshBuilder:
    """
    Builds a face-culled mesh from parent labels and cuboids.
    """

    def __init__(
        self,
        sub_blocks_per_parent: Tuple[int, int, int],
        num_voxel_types: int,
        parent_block_size: Tuple[float, float, float] = (1.0, 1.0, 1.0),
        atlas: Optional[TextureAtlas] = None
    ):
        """
        Initialize the builder.

        Args:
            sub_blocks_per_parent: Fine voxels per parent along (x, y, z)
            num_voxel_types: Faces of types outside [0, num_voxel_types) are skipped
            parent_block_size: World-space size of a parent block
            atlas: UV layout (default: TextureAtlas(num_voxel_types))
        """
        self.sub = tuple(int(s) for s in sub_blocks_per_parent)
        self.num_voxel_types = num_voxel_types
        self.parent_block_size = tuple(float(b) for b in parent_block_size)
        self.atlas = atlas or TextureAtlas(num_voxel_types)

        self.voxel_size = np.array(
            [b / s for b, s in zip(self.parent_block_size, self.sub)],
            dtype=np.float32
        )

    def is_face_visible(
        self,
        labels: np.ndarray,
        neighbour: Tuple[int, int, int],
        layer_filter: Tuple[int, int]
    ) -> bool:
        """
        Decide whether a face next to a parent block is drawn.

        Args:
            labels: Parent label codes
            neighbour: Parent coordinate on the other side of the face
            layer_filter: Inclusive (min, max) coarse y range

        Returns:
            False only when the neighbour is a solid Uniform block
        """
        nx, ny, nz = neighbour

        if not in_layer_filter(ny, layer_filter):
            return True

        cx, cy, cz = labels.shape
        if nx < 0 or ny < 0 or nz < 0 or nx >= cx or ny >= cy or nz >= cz:
            return True

        label = labels[nx, ny, nz]
        if label == MIXED:
            return True

        # Uniform of a real type occludes, Uniform(EMPTY) does not
        return label < 0

    def _neighbour_parent(
        self,
        direction: int,
        fine_min: Tuple[int, int, int],
        fine_size: Tuple[int, int, int]
    ) -> Tuple[int, int, int]:
        """Parent block holding the fine cell just outside a face."""
        cell = list(fine_min)
        axis = direction // 2
        if direction % 2 == 0:
            cell[axis] -= 1
        else:
            cell[axis] += fine_size[axis]
        return tuple(c // s for c, s in zip(cell, self.sub))

    def _emit_box(
        self,
        labels: np.ndarray,
        layer_filter: Tuple[int, int],
        voxel_type: int,
        fine_min: Tuple[int, int, int],
        fine_size: Tuple[int, int, int],
        vertices: List[np.ndarray],
        normals: List[np.ndarray],
        uvs: List[np.ndarray]
    ):
        """Append the visible faces of one box."""
        if voxel_type < 0 or voxel_type >= self.num_voxel_types:
            return

        origin = np.array(fine_min, dtype=np.float32) * self.voxel_size
        extent = np.array(fine_size, dtype=np.float32) * self.voxel_size

        for direction in range(6):
            neighbour = self._neighbour_parent(direction, fine_min, fine_size)
            if not self.is_face_visible(labels, neighbour, layer_filter):
                continue

            corners = origin + FACE_CORNERS[direction] * extent
            normal = FACE_NORMALS[direction]
            corner_y = float(corners[:, 1].min())

            vertices.append(corners)
            normals.append(np.tile(normal.astype(np.float32), (4, 1)))
            uvs.append(self.atlas.face_uvs(voxel_type, corner_y, int(normal[1])))

    def build(
        self,
        labels: np.ndarray,
        cuboids_by_parent: Dict[Tuple[int, int, int], List[Cuboid]],
        layer_filter: Tuple[int, int] = (0, 20)
    ) -> MeshData:
        """
        Generate the culled mesh.

        Args:
            labels: Parent label codes from classify_parents
            cuboids_by_parent: Cuboids of every Mixed block
            layer_filter: Inclusive (min, max) coarse y range to draw

        Returns:
            MeshData with vertices, normals, uvs and indices
        """
        vertices: List[np.ndarray] = []
        normals: List[np.ndarray] = []
        uvs: List[np.ndarray] = []

        cx, cy, cz = labels.shape
        sx, sy, sz = self.sub

        for px in range(cx):
            for py in range(cy):
                if not in_layer_filter(py, layer_filter):
                    continue
                for pz in range(cz):
                    label = int(labels[px, py, pz])
                    base = (px * sx, py * sy, pz * sz)

                    if label == MIXED:
                        for cuboid in cuboids_by_parent.get((px, py, pz), []):
                            fine_min = tuple(
                                b + m for b, m in zip(base, cuboid.min_corner)
                            )
                            self._emit_box(
                                labels, layer_filter, cuboid.voxel_type,
                                fine_min, cuboid.size, vertices, normals, uvs
                            )
                    elif label >= 0:
                        self._emit_box(
                            labels, layer_filter, label,
                            base, self.sub, vertices, normals, uvs
                        )

        if not vertices:
            logger.info("Mesh is empty for layer filter %s", layer_filter)
            return empty_mesh()

        quad_count = len(vertices)
        offsets = np.arange(quad_count, dtype=np.uint32) * 4
        indices = (offsets[:, np.newaxis] + QUAD_INDICES[np.newaxis, :]).ravel()

        mesh = MeshData(
            vertices=np.vstack(vertices).astype(np.float32),
            normals=np.vstack(normals).astype(np.float32),
            uvs=np.vstack(uvs).astype(np.float32),
            indices=indices.astype(np.uint32)
        )

        logger.info(
            "Built mesh: %d quads, %d vertices, %d triangles",
            quad_count, len(mesh.vertices), mesh.triangle_count
        )
        return mesh
