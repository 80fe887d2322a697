"""
Wavefront OBJ Format Exporter

OBJ is a universal text-based format supported by virtually all 3D software.
The block mesh is written with:
- Positions (v), atlas UVs (vt) and shared face normals (vn)
- Optionally an MTL file whose diffuse map is the texture atlas, saved as a
  PNG next to the OBJ

Limitations:
- Text format = larger file sizes
- One material for the whole mesh
"""

from pathlib import Path
from typing import Union, Optional
import numpy as np

from ..atlas import TextureAtlas
from ..coordinates import CoordinateSystem, transform_vertices
from ..mesh_builder import MeshData


class OBJExporter:
    """
    Export mesh data to Wavefront OBJ format.
    """

    def __init__(
        self,
        coordinate_system: CoordinateSystem = CoordinateSystem.Y_UP,
        scale: float = 1.0,
        include_normals: bool = True,
        tile_size: int = 16
    ):
        """
        Initialize the exporter.

        Args:
            coordinate_system: Target coordinate system
            scale: Scale factor for vertex positions
            include_normals: Whether to include vertex normals
            tile_size: Pixel size of one atlas tile when saving the atlas
        """
        self.coordinate_system = coordinate_system
        self.scale = scale
        self.include_normals = include_normals
        self.tile_size = tile_size

    def export(
        self,
        mesh: MeshData,
        output_path: Union[str, Path],
        atlas: Optional[TextureAtlas] = None,
        model_name: str = "block_model"
    ):
        """
        Export mesh to OBJ file.

        Args:
            mesh: MeshData from CulledMeshBuilder
            output_path: Output file path (.obj)
            atlas: If given, also write <name>.mtl and <name>.png
            model_name: Name for the model/object
        """
        output_path = Path(output_path)

        if len(mesh.vertices) == 0:
            raise ValueError("Cannot export empty mesh")

        vertices = mesh.vertices.astype(np.float32) * self.scale
        normals = mesh.normals.astype(np.float32)
        uvs = mesh.uvs
        indices = mesh.indices

        if self.coordinate_system != CoordinateSystem.Y_UP:
            vertices = transform_vertices(
                vertices, CoordinateSystem.Y_UP, self.coordinate_system
            )
            normals = transform_vertices(
                normals, CoordinateSystem.Y_UP, self.coordinate_system
            )

        lines = []
        lines.append("# Block Model OBJ Export")
        lines.append(f"# Vertices: {len(vertices)}")
        lines.append(f"# Triangles: {len(indices) // 3}")
        lines.append("")

        if atlas is not None:
            mtl_path = output_path.with_suffix('.mtl')
            lines.append(f"mtllib {mtl_path.name}")
            lines.append("")

        lines.append(f"o {model_name}")
        lines.append("")

        for v in vertices:
            lines.append(f"v {v[0]:.6f} {v[1]:.6f} {v[2]:.6f}")
        lines.append("")

        for uv in uvs:
            lines.append(f"vt {uv[0]:.6f} {uv[1]:.6f}")
        lines.append("")

        if self.include_normals:
            unique_normals, normal_indices = np.unique(
                np.round(normals, 6), axis=0, return_inverse=True
            )
            normal_indices = normal_indices.ravel()
            for n in unique_normals:
                lines.append(f"vn {n[0]:.6f} {n[1]:.6f} {n[2]:.6f}")
            lines.append("")

        if atlas is not None:
            lines.append("usemtl block_atlas")

        # OBJ indices are 1-based; position and uv share the vertex index
        for i in range(0, len(indices), 3):
            face = [int(indices[i + j]) for j in range(3)]
            if self.include_normals:
                ni = normal_indices[face[0]] + 1
                lines.append("f " + " ".join(f"{v + 1}/{v + 1}/{ni}" for v in face))
            else:
                lines.append("f " + " ".join(f"{v + 1}/{v + 1}" for v in face))

        with open(output_path, 'w') as f:
            f.write('\n'.join(lines) + '\n')

        if atlas is not None:
            texture_path = output_path.with_suffix('.png')
            atlas.save(texture_path, self.tile_size)
            self._write_mtl(output_path.with_suffix('.mtl'), texture_path.name)

    def _write_mtl(self, mtl_path: Path, texture_name: str):
        """Write MTL material file."""
        lines = [
            "# Block Model MTL Export",
            "",
            "newmtl block_atlas",
            "Kd 1.0000 1.0000 1.0000",
            "Ka 0.1000 0.1000 0.1000",
            "Ks 0.0 0.0 0.0",
            "Ns 0",
            "d 1.0",
            "illum 1",
            f"map_Kd {texture_name}",
            "",
        ]

        with open(mtl_path, 'w') as f:
            f.write('\n'.join(lines))
