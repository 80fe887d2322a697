"""
Export modules for 3D formats.

Supported formats:
- glTF 2.0 (.glb) - Optimal for game engines and web previews
- Wavefront (.obj) - Universal legacy support, with MTL + PNG atlas
"""

from .gltf_exporter import GLTFExporter
from .obj_exporter import OBJExporter

__all__ = ["GLTFExporter", "OBJExporter"]
