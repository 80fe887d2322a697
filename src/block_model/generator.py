"""
Main BlockModel Class

This is the primary interface for the block model pipeline.
It orchestrates:
1. Type weight input (loaded or generated)
2. Voxel classification
3. Parent block uniformity labelling
4. Greedy cuboid decomposition of Mixed blocks
5. Face-culled mesh generation
6. Export to various formats

Every regeneration recomputes the whole chain from the published weights;
results are only replaced once a step has completed.

Example Usage:
    model = BlockModel(parent_count=(8, 4, 8), sub_blocks_per_parent=(4, 4, 4))
    model.generate_terrain(solid_level=4, seed=7)
    model.regenerate()
    model.export_glb("terrain.glb")
"""

from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union
import logging
import time
import numpy as np

from .atlas import TextureAtlas
from .classifier import EMPTY, classify_grid, count_types
from .config import ModelConfig
from .coordinates import CoordinateSystem
from .decomposer import Cuboid, decompose_blocks
from .exporters import GLTFExporter, OBJExporter
from .mesh_builder import CulledMeshBuilder, MeshData
from .parent_blocks import classify_parents, label_counts
from .terrain import TerrainGenerator, VoxelSphere


logger = logging.getLogger(__name__)


class BlockModel:
    """
    High-level interface for voxel block model compression.

    Attributes:
        config: Validated model configuration
        weights: The published TypeWeights field
        voxel_types: Classified fine grid
        parent_labels: Label code per parent block
        cuboids: Cuboids per Mixed parent block
        mesh: The current mesh data
    """

    def __init__(
        self,
        parent_count: Tuple[int, int, int] = (8, 4, 8),
        sub_blocks_per_parent: Tuple[int, int, int] = (4, 4, 4),
        num_voxel_types: int = 4,
        layer_filter: Tuple[int, int] = (0, 20),
        parent_block_size: Tuple[float, float, float] = (1.0, 1.0, 1.0),
        workers: int = 1,
        palette: Optional[Sequence[Tuple[int, int, int]]] = None
    ):
        """
        Initialize the BlockModel.

        Args:
            parent_count: Number of parent blocks along (x, y, z)
            sub_blocks_per_parent: Fine voxels per parent along (x, y, z)
            num_voxel_types: Size of the voxel type set
            layer_filter: Inclusive (min, max) coarse y layers to mesh
            parent_block_size: World-space size of a parent block
            workers: Threads used to decompose Mixed blocks
            palette: Atlas color per voxel type

        Raises:
            ValueError: If the configuration is malformed
        """
        self.config = ModelConfig(
            parent_count=parent_count,
            sub_blocks_per_parent=sub_blocks_per_parent,
            num_voxel_types=num_voxel_types,
            layer_filter=layer_filter,
            parent_block_size=parent_block_size
        ).validate()

        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")
        self.workers = workers

        self.atlas = TextureAtlas(num_voxel_types, palette=palette)

        self._weights: Optional[np.ndarray] = None
        self._voxel_types: Optional[np.ndarray] = None
        self._parent_labels: Optional[np.ndarray] = None
        self._cuboids: Optional[Dict[Tuple[int, int, int], List[Cuboid]]] = None
        self._mesh: Optional[MeshData] = None
        self._timings: Dict[str, float] = {}

    def load_weights(self, weights: np.ndarray) -> "BlockModel":
        """
        Publish a TypeWeights field.

        Args:
            weights: Array of shape grid_shape + (num_voxel_types,)

        Returns:
            self for method chaining
        """
        self._weights = self.config.validate_weights(weights).copy()
        self._reset_results()
        return self

    def generate_terrain(
        self,
        solid_level: int = 4,
        seed: int = 0,
        feature_cells: float = 24.0,
        spheres: Sequence[VoxelSphere] = ()
    ) -> "BlockModel":
        """
        Generate and publish procedural type weights.

        Args:
            solid_level: Height (fine voxels) that is always solid
            seed: Noise seed
            feature_cells: Noise feature size in fine voxels
            spheres: Sphere type overrides

        Returns:
            self for method chaining
        """
        generator = TerrainGenerator(
            num_voxel_types=self.config.num_voxel_types,
            solid_level=solid_level,
            seed=seed,
            feature_cells=feature_cells,
            spheres=spheres
        )
        return self.load_weights(generator.generate(self.config.grid_shape))

    def classify(self) -> "BlockModel":
        """
        Classify voxels and label parent blocks.

        Returns:
            self for method chaining
        """
        if self._weights is None:
            raise RuntimeError("No weights loaded. Call load_weights() first.")

        start = time.perf_counter()
        voxel_types = classify_grid(self._weights)
        labels = classify_parents(
            voxel_types,
            self.config.parent_count,
            self.config.sub_blocks_per_parent
        )
        self._timings["classify"] = time.perf_counter() - start

        self._voxel_types = voxel_types
        self._parent_labels = labels
        self._cuboids = None
        self._mesh = None

        counts = label_counts(labels)
        logger.info(
            "Classified %d voxels (%d solid): %d empty, %d uniform, %d mixed blocks",
            voxel_types.size, int(np.sum(voxel_types != EMPTY)),
            counts["empty"], counts["uniform"], counts["mixed"]
        )
        return self

    def decompose(self) -> "BlockModel":
        """
        Decompose every Mixed parent block into cuboids.

        Returns:
            self for method chaining
        """
        if self._parent_labels is None:
            raise RuntimeError("Voxels not classified. Call classify() first.")

        start = time.perf_counter()
        cuboids = decompose_blocks(
            self._voxel_types,
            self._parent_labels,
            self.config.sub_blocks_per_parent,
            self.config.num_voxel_types,
            workers=self.workers
        )
        self._timings["decompose"] = time.perf_counter() - start

        self._cuboids = cuboids
        self._mesh = None

        logger.info(
            "Decomposed %d mixed blocks into %d cuboids in %.3fs",
            len(cuboids), self.cuboid_count, self._timings["decompose"]
        )
        return self

    def build_mesh(
        self,
        layer_filter: Optional[Tuple[int, int]] = None
    ) -> "BlockModel":
        """
        Generate the face-culled mesh.

        Args:
            layer_filter: Inclusive (min, max) coarse y layers
                (overrides the configured filter)

        Returns:
            self for method chaining
        """
        if self._cuboids is None:
            raise RuntimeError("Blocks not decomposed. Call decompose() first.")

        if layer_filter is not None:
            # A rejected filter leaves the current configuration in place
            self.config = replace(self.config, layer_filter=layer_filter).validate()

        builder = CulledMeshBuilder(
            self.config.sub_blocks_per_parent,
            self.config.num_voxel_types,
            self.config.parent_block_size,
            self.atlas
        )

        start = time.perf_counter()
        self._mesh = builder.build(
            self._parent_labels, self._cuboids, self.config.layer_filter
        )
        self._timings["mesh"] = time.perf_counter() - start

        return self

    def regenerate(
        self,
        layer_filter: Optional[Tuple[int, int]] = None
    ) -> "BlockModel":
        """
        Run the full chain: classify, decompose, build mesh.

        Returns:
            self for method chaining
        """
        return self.classify().decompose().build_mesh(layer_filter)

    def _reset_results(self):
        self._voxel_types = None
        self._parent_labels = None
        self._cuboids = None
        self._mesh = None
        self._timings = {}

    def _require_mesh(self) -> MeshData:
        if self._mesh is None:
            raise RuntimeError("No mesh. Call regenerate() or build_mesh() first.")
        return self._mesh

    def export_glb(
        self,
        output_path: Union[str, Path],
        coordinate_system: CoordinateSystem = CoordinateSystem.Y_UP,
        textured: bool = True
    ):
        """
        Export to glTF 2.0 binary format (.glb).

        Args:
            output_path: Output file path
            coordinate_system: Target coordinate system
            textured: Embed the texture atlas
        """
        exporter = GLTFExporter(coordinate_system=coordinate_system)
        exporter.export(
            self._require_mesh(), output_path,
            atlas=self.atlas if textured else None
        )

    def export_obj(
        self,
        output_path: Union[str, Path],
        coordinate_system: CoordinateSystem = CoordinateSystem.Y_UP,
        textured: bool = True
    ):
        """
        Export to Wavefront OBJ format.

        Args:
            output_path: Output file path
            coordinate_system: Target coordinate system
            textured: Also write the MTL file and atlas PNG
        """
        exporter = OBJExporter(coordinate_system=coordinate_system)
        exporter.export(
            self._require_mesh(), output_path,
            atlas=self.atlas if textured else None
        )

    def export_all(
        self,
        base_path: Union[str, Path],
        formats: Optional[list] = None,
        coordinate_system: CoordinateSystem = CoordinateSystem.Y_UP
    ) -> List[Path]:
        """
        Export to multiple formats at once.

        Args:
            base_path: Base file path (without extension)
            formats: List of formats to export (default: all)
            coordinate_system: Target coordinate system

        Returns:
            Paths of the written model files
        """
        base_path = Path(base_path)
        formats = formats or ["glb", "obj"]
        written = []

        if "glb" in formats or "gltf" in formats:
            path = base_path.with_suffix(".glb")
            self.export_glb(path, coordinate_system)
            written.append(path)

        if "obj" in formats:
            path = base_path.with_suffix(".obj")
            self.export_obj(path, coordinate_system)
            written.append(path)

        return written

    @property
    def weights(self) -> Optional[np.ndarray]:
        """Get the published type weights."""
        return self._weights

    @property
    def voxel_types(self) -> Optional[np.ndarray]:
        """Get the classified fine grid."""
        return self._voxel_types

    @property
    def parent_labels(self) -> Optional[np.ndarray]:
        """Get the parent block label codes."""
        return self._parent_labels

    @property
    def cuboids(self) -> Optional[Dict[Tuple[int, int, int], List[Cuboid]]]:
        """Get the cuboids of every Mixed block."""
        return self._cuboids

    @property
    def mesh(self) -> Optional[MeshData]:
        """Get the current mesh data."""
        return self._mesh

    @property
    def cuboid_count(self) -> int:
        """Get the number of cuboids over all Mixed blocks."""
        if self._cuboids is None:
            return 0
        return sum(len(c) for c in self._cuboids.values())

    @property
    def vertex_count(self) -> int:
        """Get the number of mesh vertices."""
        if self._mesh is None:
            return 0
        return len(self._mesh.vertices)

    @property
    def triangle_count(self) -> int:
        """Get the number of mesh triangles."""
        if self._mesh is None:
            return 0
        return len(self._mesh.indices) // 3

    def get_stats(self) -> dict:
        """
        Get compression and mesh statistics.

        Returns:
            Dictionary with statistics
        """
        if self._parent_labels is None:
            return {"error": "Not classified"}

        counts = label_counts(self._parent_labels)
        solid_voxels = int(np.sum(self._voxel_types != EMPTY))
        # Uniform solid blocks are one primitive each
        primitives = counts["uniform"] + self.cuboid_count

        stats = {
            "grid_size": self.config.grid_shape,
            "voxel_count": self.config.voxel_count,
            "solid_voxels": solid_voxels,
            "type_counts": count_types(
                self._voxel_types, self.config.num_voxel_types
            ).tolist(),
            "parent_blocks": self.config.parent_block_count,
            "empty_blocks": counts["empty"],
            "uniform_blocks": counts["uniform"],
            "mixed_blocks": counts["mixed"],
            "cuboids": self.cuboid_count,
            "primitives": primitives,
            "compression_ratio": solid_voxels / primitives if primitives else 0.0,
            "vertices": self.vertex_count,
            "triangles": self.triangle_count,
            "timings": dict(self._timings),
        }
        return stats

    def preview(self) -> dict:
        """
        Get a preview of the current state.

        Returns:
            Dictionary with current state information
        """
        info = {
            "weights_loaded": self._weights is not None,
            "classified": self._parent_labels is not None,
            "decomposed": self._cuboids is not None,
            "meshed": self._mesh is not None,
            "grid_size": self.config.grid_shape,
            "layer_filter": self.config.layer_filter,
        }

        if self._cuboids is not None:
            info["cuboid_count"] = self.cuboid_count

        if self._mesh is not None:
            info["vertex_count"] = self.vertex_count
            info["triangle_count"] = self.triangle_count

        return info
