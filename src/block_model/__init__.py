"""
Block Model Compression
=======================

Compresses a dense grid of typed voxels into a two-level block model and
renders it as a face-culled, texture-atlased mesh.

The fine grid is partitioned into parent blocks. A parent block whose voxels
all share one type (or are all empty) is stored as a single label; a Mixed
block is greedily decomposed into maximal single-type cuboids.

Key Features:
- Per-voxel classification from type weights
- Vectorised parent block uniformity labelling
- Greedy maximal cuboid extraction with Numba JIT compilation
- Neighbour-aware face culling with a coarse layer filter
- Export to glTF 2.0 (.glb) and Wavefront (.obj) with an embedded atlas

Example Usage:
    from block_model import BlockModel

    model = BlockModel(parent_count=(8, 4, 8), sub_blocks_per_parent=(4, 4, 4))
    model.generate_terrain(seed=7)
    model.regenerate()
    model.export_glb("terrain.glb")
"""

__version__ = "1.0.0"

from .generator import BlockModel
from .config import ModelConfig
from .classifier import EMPTY, classify_grid, classify_weights
from .parent_blocks import MIXED, classify_parents, describe_label
from .decomposer import Cuboid, decompose, decompose_blocks
from .mesh_builder import CulledMeshBuilder, MeshData
from .atlas import TextureAtlas
from .terrain import TerrainGenerator, VoxelSphere

__all__ = [
    "BlockModel",
    "ModelConfig",
    "EMPTY",
    "MIXED",
    "classify_grid",
    "classify_weights",
    "classify_parents",
    "describe_label",
    "Cuboid",
    "decompose",
    "decompose_blocks",
    "CulledMeshBuilder",
    "MeshData",
    "TextureAtlas",
    "TerrainGenerator",
    "VoxelSphere",
]
