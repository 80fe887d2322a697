"""
Tests for configuration, terrain generation, the BlockModel pipeline,
exporters and the command-line interface.
"""

import sys
from pathlib import Path
import json
import struct
import tempfile
import numpy as np
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from block_model import BlockModel
from block_model.cli import main
from block_model.config import ModelConfig, ordered_layer_filter
from block_model.coordinates import CoordinateSystem, transform_vertices
from block_model.exporters import GLTFExporter, OBJExporter
from block_model.mesh_builder import empty_mesh
from block_model.parent_blocks import MIXED
from block_model.terrain import TerrainGenerator, VoxelSphere


def one_hot_weights(types: np.ndarray, num_types: int) -> np.ndarray:
    """Build TypeWeights whose classification is exactly `types`."""
    weights = np.zeros(types.shape + (num_types,), dtype=np.float32)
    for voxel_type in range(num_types):
        weights[..., voxel_type][types == voxel_type] = 1.0
    return weights


def read_glb(path: Path):
    """Split a GLB file into its header, JSON and binary chunk."""
    data = path.read_bytes()
    magic, version, length = struct.unpack_from("<III", data, 0)
    json_length, json_type = struct.unpack_from("<II", data, 12)
    gltf = json.loads(data[20:20 + json_length].decode("utf-8"))
    bin_offset = 20 + json_length
    bin_length, bin_type = struct.unpack_from("<II", data, bin_offset)
    return {
        "magic": magic,
        "version": version,
        "length": length,
        "file_size": len(data),
        "json_type": json_type,
        "bin_type": bin_type,
        "bin_length": bin_length,
        "gltf": gltf,
    }


class TestModelConfig(unittest.TestCase):
    """Tests for configuration validation."""

    def test_defaults(self):
        """Test default configuration and derived values."""
        config = ModelConfig().validate()

        assert config.grid_shape == (32, 16, 32)
        assert config.voxel_size == (0.25, 0.25, 0.25)
        assert config.max_sub_dimension == 4
        assert config.parent_block_count == 256
        assert config.voxel_count == 32 * 16 * 32

    def test_non_positive_dimension(self):
        """Test errors name the parameter and axis."""
        with self.assertRaisesRegex(ValueError, "parent_count.x"):
            ModelConfig(parent_count=(0, 4, 8)).validate()
        with self.assertRaisesRegex(ValueError, "sub_blocks_per_parent.z"):
            ModelConfig(sub_blocks_per_parent=(4, 4, -1)).validate()
        with self.assertRaisesRegex(ValueError, "parent_block_size.y"):
            ModelConfig(parent_block_size=(1.0, 0.0, 1.0)).validate()

    def test_wrong_shape_and_type(self):
        """Test tuple length and integer checks."""
        with self.assertRaisesRegex(ValueError, "3 components"):
            ModelConfig(sub_blocks_per_parent=(4, 4)).validate()
        with self.assertRaisesRegex(ValueError, "parent_count.y must be an integer"):
            ModelConfig(parent_count=(2, 1.5, 2)).validate()
        with self.assertRaisesRegex(ValueError, "num_voxel_types"):
            ModelConfig(num_voxel_types=0).validate()

    def test_inverted_filter_allowed(self):
        """Test min > max is not a configuration error."""
        config = ModelConfig(layer_filter=(5, 1)).validate()
        assert config.layer_filter == (5, 1)

    def test_ordered_layer_filter(self):
        """Test the undragged bound follows the dragged one."""
        assert ordered_layer_filter(1, 3) == (1, 3)
        assert ordered_layer_filter(4, 2, moved="min") == (4, 4)
        assert ordered_layer_filter(4, 2, moved="max") == (2, 2)
        assert ordered_layer_filter(1, 3, moved="max") == (1, 3)

    def test_validate_weights(self):
        """Test weight shape and value checks."""
        config = ModelConfig((1, 1, 1), (2, 2, 2), 3).validate()

        weights = config.validate_weights(np.ones((2, 2, 2, 3)))
        assert weights.dtype == np.float32

        with self.assertRaisesRegex(ValueError, "along y"):
            config.validate_weights(np.ones((2, 3, 2, 3)))
        with self.assertRaisesRegex(ValueError, "along type"):
            config.validate_weights(np.ones((2, 2, 2, 4)))
        with self.assertRaisesRegex(ValueError, "4D"):
            config.validate_weights(np.ones((2, 2, 2)))

        bad = np.ones((2, 2, 2, 3))
        bad[0, 0, 0, 0] = np.nan
        with self.assertRaisesRegex(ValueError, "finite"):
            config.validate_weights(bad)
        bad[0, 0, 0, 0] = -1.0
        with self.assertRaisesRegex(ValueError, "non-negative"):
            config.validate_weights(bad)


class TestTerrainGenerator(unittest.TestCase):
    """Tests for procedural weights."""

    def test_solid_floor(self):
        """Test everything below the solid level is type 0."""
        weights = TerrainGenerator(3, solid_level=4, seed=1).generate((8, 8, 8))

        assert weights.shape == (8, 8, 8, 3)
        assert np.all(weights[:, :4, :, 0] == 1.0)
        assert np.all(weights[..., 1:] == 0.0)

    def test_deterministic(self):
        """Test the same seed gives the same field."""
        a = TerrainGenerator(2, seed=9, feature_cells=4).generate((16, 8, 16))
        b = TerrainGenerator(2, seed=9, feature_cells=4).generate((16, 8, 16))
        assert np.array_equal(a, b)

    def test_noise_range(self):
        """Test height noise stays in [0, 1]."""
        noise = TerrainGenerator(1, seed=5, feature_cells=3).height_noise(20, 12)
        assert noise.shape == (20, 12)
        assert noise.min() >= 0.0
        assert noise.max() <= 1.0

    def test_sphere_override(self):
        """Test sphere cells get the sphere's type."""
        sphere = VoxelSphere((4, 6, 4), 1.5, 2)
        weights = TerrainGenerator(3, solid_level=2, spheres=[sphere]).generate((8, 8, 8))

        assert weights[4, 6, 4, 2] == 1.0
        assert np.isclose(weights[4, 6, 4, 0], 0.01)
        assert np.argmax(weights[5, 6, 4]) == 2
        assert weights[0, 7, 0].max() == 0.0

    def test_sphere_type_range(self):
        """Test sphere types must exist."""
        with self.assertRaises(ValueError):
            TerrainGenerator(2, spheres=[VoxelSphere((0, 0, 0), 1, 2)])


class TestBlockModel(unittest.TestCase):
    """Tests for the BlockModel pipeline."""

    def make_model(self):
        types = np.zeros((4, 2, 2), dtype=np.int32)
        types[3, 1, 1] = 1
        model = BlockModel(
            parent_count=(2, 1, 1),
            sub_blocks_per_parent=(2, 2, 2),
            num_voxel_types=2
        )
        return model.load_weights(one_hot_weights(types, 2))

    def test_pipeline(self):
        """Test the full chain on a known grid."""
        model = self.make_model().regenerate()

        assert model.parent_labels.tolist() == [[[0]], [[MIXED]]]
        assert list(model.cuboids.keys()) == [(1, 0, 0)]
        assert model.cuboid_count == 4
        assert model.vertex_count == model.mesh.vertices.shape[0]
        assert model.triangle_count == model.vertex_count // 2

        stats = model.get_stats()
        assert stats["solid_voxels"] == 16
        assert stats["type_counts"] == [15, 1]
        assert stats["uniform_blocks"] == 1
        assert stats["mixed_blocks"] == 1
        assert stats["primitives"] == 5
        assert np.isclose(stats["compression_ratio"], 16 / 5)

    def test_out_of_order(self):
        """Test steps require their inputs."""
        model = BlockModel(parent_count=(1, 1, 1), sub_blocks_per_parent=(2, 2, 2))

        with self.assertRaises(RuntimeError):
            model.classify()
        with self.assertRaises(RuntimeError):
            model.decompose()
        with self.assertRaises(RuntimeError):
            model.build_mesh()
        with self.assertRaises(RuntimeError):
            model.export_glb("unused.glb")

        assert model.get_stats() == {"error": "Not classified"}
        assert model.cuboid_count == 0

    def test_invalid_configuration(self):
        """Test the constructor validates its configuration."""
        with self.assertRaises(ValueError):
            BlockModel(parent_count=(1, 0, 1))
        with self.assertRaises(ValueError):
            BlockModel(workers=0)

    def test_weights_shape_checked(self):
        """Test loaded weights must match the grid."""
        model = BlockModel(parent_count=(1, 1, 1), sub_blocks_per_parent=(2, 2, 2),
                           num_voxel_types=2)
        with self.assertRaises(ValueError):
            model.load_weights(np.ones((2, 2, 3, 2)))

    def test_layer_filter_rebuild(self):
        """Test rebuilding the mesh with another layer filter."""
        model = BlockModel(parent_count=(2, 3, 2), sub_blocks_per_parent=(2, 2, 2),
                           num_voxel_types=1)
        model.load_weights(np.ones((4, 6, 4, 1), dtype=np.float32)).regenerate()
        full = model.vertex_count

        model.build_mesh(layer_filter=(1, 1))
        assert 0 < model.vertex_count < full
        assert model.config.layer_filter == (1, 1)

        model.build_mesh(layer_filter=(2, 1))
        assert model.vertex_count == 0

    def test_rejected_layer_filter_not_applied(self):
        """Test an invalid layer filter leaves the previous one in place."""
        model = BlockModel(parent_count=(2, 3, 2), sub_blocks_per_parent=(2, 2, 2),
                           num_voxel_types=1)
        model.load_weights(np.ones((4, 6, 4, 1), dtype=np.float32))
        model.regenerate().build_mesh(layer_filter=(1, 1))
        partial = model.vertex_count

        with self.assertRaises(ValueError):
            model.build_mesh(layer_filter=(0.5, 1))
        with self.assertRaises(ValueError):
            model.build_mesh(layer_filter=(1, 2, 3))

        assert model.config.layer_filter == (1, 1)
        assert model.preview()["layer_filter"] == (1, 1)

        model.regenerate()
        assert model.config.layer_filter == (1, 1)
        assert model.vertex_count == partial

    def test_deterministic(self):
        """Test the same inputs give identical meshes."""
        meshes = []
        for workers in (1, 3):
            model = BlockModel(parent_count=(4, 2, 4), sub_blocks_per_parent=(4, 4, 4),
                               num_voxel_types=3, workers=workers)
            model.generate_terrain(
                solid_level=2, seed=3, feature_cells=6,
                spheres=[VoxelSphere((8, 5, 8), 3.0, 1)]
            ).regenerate()
            meshes.append(model.mesh)

        for a, b in zip(meshes[0], meshes[1]):
            assert np.array_equal(a, b)

    def test_preview(self):
        """Test the state preview."""
        model = self.make_model()
        info = model.preview()
        assert info["weights_loaded"]
        assert not info["classified"]

        model.regenerate()
        info = model.preview()
        assert info["meshed"]
        assert info["cuboid_count"] == 4

    def test_export_all(self):
        """Test exporting both formats."""
        model = self.make_model().regenerate()
        with tempfile.TemporaryDirectory() as tmpdir:
            written = model.export_all(Path(tmpdir) / "model")

            assert [p.suffix for p in written] == [".glb", ".obj"]
            for path in written:
                assert path.exists()
            assert (Path(tmpdir) / "model.mtl").exists()
            assert (Path(tmpdir) / "model.png").exists()


class TestExporters(unittest.TestCase):
    """Tests for GLB and OBJ output."""

    def setUp(self):
        model = BlockModel(parent_count=(1, 1, 1), sub_blocks_per_parent=(2, 2, 2),
                           num_voxel_types=2)
        model.load_weights(np.ones((2, 2, 2, 2), dtype=np.float32)).regenerate()
        self.model = model
        self.mesh = model.mesh

    def test_glb_structure(self):
        """Test GLB header, chunks and accessors."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "box.glb"
            GLTFExporter().export(self.mesh, path, atlas=self.model.atlas)
            glb = read_glb(path)

        assert glb["magic"] == 0x46546C67
        assert glb["version"] == 2
        assert glb["length"] == glb["file_size"]
        assert glb["json_type"] == 0x4E4F534A
        assert glb["bin_type"] == 0x004E4942

        gltf = glb["gltf"]
        assert gltf["asset"]["version"] == "2.0"
        assert gltf["buffers"][0]["byteLength"] == glb["bin_length"]
        attributes = gltf["meshes"][0]["primitives"][0]["attributes"]
        assert set(attributes) == {"POSITION", "NORMAL", "TEXCOORD_0"}
        assert gltf["accessors"][1]["count"] == 24
        assert gltf["accessors"][0]["count"] == 36
        assert gltf["accessors"][1]["max"] == [1.0, 1.0, 1.0]
        assert gltf["images"][0]["mimeType"] == "image/png"
        assert gltf["samplers"][0]["magFilter"] == 9728

    def test_glb_untextured(self):
        """Test a GLB without an atlas has no images."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "box.glb"
            GLTFExporter().export(self.mesh, path)
            gltf = read_glb(path)["gltf"]

        assert "images" not in gltf
        assert len(gltf["bufferViews"]) == 4

    def test_obj_files(self):
        """Test OBJ, MTL and atlas output."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "box.obj"
            OBJExporter().export(self.mesh, path, atlas=self.model.atlas)

            lines = path.read_text().splitlines()
            mtl = (Path(tmpdir) / "box.mtl").read_text()
            assert (Path(tmpdir) / "box.png").exists()

        assert "mtllib box.mtl" in lines
        assert "usemtl block_atlas" in lines
        assert sum(1 for l in lines if l.startswith("v ")) == 24
        assert sum(1 for l in lines if l.startswith("vt ")) == 24
        assert sum(1 for l in lines if l.startswith("vn ")) == 6
        assert sum(1 for l in lines if l.startswith("f ")) == 12
        assert "map_Kd box.png" in mtl

    def test_empty_mesh_rejected(self):
        """Test exporting an empty mesh fails."""
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(ValueError):
                GLTFExporter().export(empty_mesh(), Path(tmpdir) / "x.glb")
            with self.assertRaises(ValueError):
                OBJExporter().export(empty_mesh(), Path(tmpdir) / "x.obj")

    def test_z_up_transform(self):
        """Test Y-up to Z-up conversion keeps handedness."""
        points = np.array([[1, 2, 3]], dtype=np.float32)
        converted = transform_vertices(points, CoordinateSystem.Y_UP, CoordinateSystem.Z_UP)
        assert converted.tolist() == [[1.0, -3.0, 2.0]]

        back = transform_vertices(converted, CoordinateSystem.Z_UP, CoordinateSystem.Y_UP)
        assert np.allclose(back, points)


class TestCLI(unittest.TestCase):
    """Tests for the command-line interface."""

    def test_generate_and_export(self):
        """Test a terrain run writes the requested formats."""
        with tempfile.TemporaryDirectory() as tmpdir:
            base = Path(tmpdir) / "terrain"
            code = main([
                "--parents", "2", "2", "2", "--sub", "4", "4", "4",
                "--sphere", "4", "6", "4", "2", "1",
                "-o", str(base), "--format", "glb", "obj", "--stats"
            ])

            assert code == 0
            assert base.with_suffix(".glb").exists()
            assert base.with_suffix(".obj").exists()

    def test_load_weights(self):
        """Test loading weights from a .npy file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            weights_path = Path(tmpdir) / "weights.npy"
            np.save(weights_path, np.ones((2, 2, 2, 3), dtype=np.float32))
            base = Path(tmpdir) / "model"

            code = main([
                "--parents", "1", "1", "1", "--sub", "2", "2", "2", "--types", "3",
                "--weights", str(weights_path), "-o", str(base)
            ])

            assert code == 0
            assert base.with_suffix(".glb").exists()

    def test_errors(self):
        """Test failures return exit code 1."""
        with tempfile.TemporaryDirectory() as tmpdir:
            base = str(Path(tmpdir) / "model")
            assert main(["--parents", "0", "1", "1", "-o", base]) == 1
            assert main(["--weights", str(Path(tmpdir) / "missing.npy"), "-o", base]) == 1
            assert main(["--sphere", "0", "0", "0", "1", "9", "-o", base]) == 1


if __name__ == "__main__":
    unittest.main(verbosity=2)
