"""
glTF 2.0 Exporter (.glb binary format)

glTF is the preferred format for game engines (Godot, Unity, Unreal) and for
web previews. This exporter generates binary glTF files with:
- Positions, flat normals and atlas UVs
- The texture atlas embedded as a PNG (nearest filtering, no mipmaps)
- Coordinate system transformation
- Efficient binary buffer packing

glTF Structure:
- JSON header describing scene graph
- Binary buffer containing geometry data
  - Indices (uint16/uint32)
  - Positions (float32 vec3)
  - Normals (float32 vec3)
  - UVs (float32 vec2)
  - Atlas image (PNG, optional)
"""

from pathlib import Path
from typing import Union, Optional, Dict, Any, List
import json
import struct
import numpy as np

from ..atlas import TextureAtlas
from ..coordinates import CoordinateSystem, transform_vertices
from ..mesh_builder import MeshData


# glTF constants
GLTF_VERSION = "2.0"
GENERATOR = "BlockModel"

# Component types
UNSIGNED_SHORT = 5123
UNSIGNED_INT = 5125
FLOAT = 5126

# Buffer view targets
ARRAY_BUFFER = 34962
ELEMENT_ARRAY_BUFFER = 34963

# Primitive modes
TRIANGLES = 4

# Sampler settings
NEAREST = 9728
CLAMP_TO_EDGE = 33071


def _pad4(data: bytes, fill: bytes = b'\x00') -> bytes:
    """Pad to 4-byte alignment."""
    return data + fill * ((4 - len(data) % 4) % 4)


class GLTFExporter:
    """
    Export mesh data to glTF 2.0 binary format (.glb).
    """

    def __init__(
        self,
        coordinate_system: CoordinateSystem = CoordinateSystem.Y_UP,
        scale: float = 1.0,
        tile_size: int = 16
    ):
        """
        Initialize the exporter.

        Args:
            coordinate_system: Target coordinate system
            scale: Scale factor for vertex positions
            tile_size: Pixel size of one atlas tile when embedding the atlas
        """
        self.coordinate_system = coordinate_system
        self.scale = scale
        self.tile_size = tile_size

    def export(
        self,
        mesh: MeshData,
        output_path: Union[str, Path],
        atlas: Optional[TextureAtlas] = None,
        material_name: str = "BlockMaterial"
    ):
        """
        Export mesh to .glb file.

        Args:
            mesh: MeshData from CulledMeshBuilder
            output_path: Output file path
            atlas: Texture atlas to embed (untextured if None)
            material_name: Name for the material
        """
        output_path = Path(output_path)

        if len(mesh.vertices) == 0:
            raise ValueError("Cannot export empty mesh")

        vertices = mesh.vertices.astype(np.float32) * self.scale
        normals = mesh.normals.astype(np.float32)
        # glTF puts the UV origin at the top-left
        uvs = mesh.uvs.astype(np.float32).copy()
        uvs[:, 1] = 1.0 - uvs[:, 1]
        indices = mesh.indices

        if self.coordinate_system != CoordinateSystem.Y_UP:
            vertices = transform_vertices(
                vertices, CoordinateSystem.Y_UP, self.coordinate_system
            )
            normals = transform_vertices(
                normals, CoordinateSystem.Y_UP, self.coordinate_system
            )

        # Determine index type
        if indices.max() < 65536:
            index_type = UNSIGNED_SHORT
            indices = indices.astype(np.uint16)
        else:
            index_type = UNSIGNED_INT
            indices = indices.astype(np.uint32)

        image_bytes = atlas.to_png_bytes(self.tile_size) if atlas is not None else None

        chunks = [
            indices.tobytes(),
            vertices.tobytes(),
            normals.tobytes(),
            uvs.tobytes(),
        ]
        if image_bytes is not None:
            chunks.append(image_bytes)

        gltf, buffer_data = self._build(
            chunks, vertices, index_type, len(indices), material_name,
            textured=image_bytes is not None
        )

        self._write_glb(output_path, gltf, buffer_data)

    def _build(
        self,
        chunks: List[bytes],
        vertices: np.ndarray,
        index_type: int,
        num_indices: int,
        material_name: str,
        textured: bool
    ):
        """Pack the binary buffer and build the glTF JSON structure."""
        num_vertices = len(vertices)

        buffer_views = []
        parts = []
        offset = 0
        targets = [ELEMENT_ARRAY_BUFFER, ARRAY_BUFFER, ARRAY_BUFFER, ARRAY_BUFFER, None]

        for chunk, target in zip(chunks, targets):
            view = {
                "buffer": 0,
                "byteOffset": offset,
                "byteLength": len(chunk)
            }
            if target is not None:
                view["target"] = target
            buffer_views.append(view)

            padded = _pad4(chunk)
            parts.append(padded)
            offset += len(padded)

        buffer_data = b''.join(parts)

        material: Dict[str, Any] = {
            "name": material_name,
            "pbrMetallicRoughness": {
                "baseColorFactor": [1.0, 1.0, 1.0, 1.0],
                "metallicFactor": 0.0,
                "roughnessFactor": 0.9
            },
            "doubleSided": False
        }

        gltf: Dict[str, Any] = {
            "asset": {
                "version": GLTF_VERSION,
                "generator": GENERATOR
            },
            "scene": 0,
            "scenes": [
                {"nodes": [0]}
            ],
            "nodes": [
                {
                    "mesh": 0,
                    "name": "BlockModel"
                }
            ],
            "meshes": [
                {
                    "primitives": [
                        {
                            "attributes": {
                                "POSITION": 1,
                                "NORMAL": 2,
                                "TEXCOORD_0": 3
                            },
                            "indices": 0,
                            "material": 0,
                            "mode": TRIANGLES
                        }
                    ],
                    "name": "BlockMesh"
                }
            ],
            "materials": [material],
            "accessors": [
                # 0: Indices
                {
                    "bufferView": 0,
                    "componentType": index_type,
                    "count": num_indices,
                    "type": "SCALAR"
                },
                # 1: Positions
                {
                    "bufferView": 1,
                    "componentType": FLOAT,
                    "count": num_vertices,
                    "type": "VEC3",
                    "min": vertices.min(axis=0).tolist(),
                    "max": vertices.max(axis=0).tolist()
                },
                # 2: Normals
                {
                    "bufferView": 2,
                    "componentType": FLOAT,
                    "count": num_vertices,
                    "type": "VEC3"
                },
                # 3: UVs
                {
                    "bufferView": 3,
                    "componentType": FLOAT,
                    "count": num_vertices,
                    "type": "VEC2"
                }
            ],
            "bufferViews": buffer_views,
            "buffers": [
                {
                    "byteLength": len(buffer_data)
                }
            ]
        }

        if textured:
            material["pbrMetallicRoughness"]["baseColorTexture"] = {"index": 0}
            gltf["images"] = [{"bufferView": 4, "mimeType": "image/png"}]
            gltf["samplers"] = [{
                "magFilter": NEAREST,
                "minFilter": NEAREST,
                "wrapS": CLAMP_TO_EDGE,
                "wrapT": CLAMP_TO_EDGE
            }]
            gltf["textures"] = [{"sampler": 0, "source": 0}]

        return gltf, buffer_data

    def _write_glb(
        self,
        output_path: Path,
        gltf: Dict[str, Any],
        buffer_data: bytes
    ):
        """Write the GLB binary file."""
        json_bytes = _pad4(json.dumps(gltf, separators=(',', ':')).encode('utf-8'), b' ')

        # GLB header
        # Magic: "glTF" (0x46546C67)
        # Version: 2
        # Length: total file size
        total_length = 12 + 8 + len(json_bytes) + 8 + len(buffer_data)

        with open(output_path, 'wb') as f:
            # Header
            f.write(struct.pack('<I', 0x46546C67))  # glTF magic
            f.write(struct.pack('<I', 2))           # Version 2
            f.write(struct.pack('<I', total_length))

            # JSON chunk
            f.write(struct.pack('<I', len(json_bytes)))
            f.write(struct.pack('<I', 0x4E4F534A))  # JSON magic
            f.write(json_bytes)

            # Binary chunk
            f.write(struct.pack('<I', len(buffer_data)))
            f.write(struct.pack('<I', 0x004E4942))  # BIN magic
            f.write(buffer_data)
