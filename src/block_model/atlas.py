"""
Texture Atlas Layout

Faces are textured from a grid atlas:
- one column per voxel type, each 1 / num_types wide
- a few rows selected by world height, which gives the terrain a vertical
  banding pattern (e.g. grass at the top, dirt along the sides)

The row of a face is (floor(corner_y) + normal_y) mod row_period, reflected
for the upper part of the period so the bands run up and back down again.
Every quad is shrunk by a fixed inset to avoid sampling the neighbouring
tile. With many types the inset is capped at a quarter of the tile so the
quad never collapses or spills into the next column.

UV origin is bottom-left (OpenGL / OBJ convention).
"""

from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union
import math
import numpy as np
from PIL import Image


UV_INSET = 0.02
ATLAS_ROWS = 4
ROW_PERIOD = 7

# Base colors per voxel type, cycled when there are more types
DEFAULT_PALETTE = [
    (121, 85, 58),    # dirt
    (96, 160, 64),    # grass
    (218, 200, 140),  # sand
    (128, 128, 136),  # stone
    (70, 110, 200),   # water
    (200, 70, 60),    # clay
]


class TextureAtlas:
    """
    UV layout and image generation for the voxel type atlas.
    """

    def __init__(
        self,
        num_types: int,
        palette: Optional[Sequence[Tuple[int, int, int]]] = None,
        inset: float = UV_INSET,
        rows: int = ATLAS_ROWS,
        row_period: int = ROW_PERIOD
    ):
        """
        Initialize the atlas.

        Args:
            num_types: Number of voxel types (atlas columns)
            palette: RGB color per type (default: DEFAULT_PALETTE)
            inset: UV inset on each side of a tile
            rows: Number of atlas rows
            row_period: Height period of the row pattern
        """
        if num_types <= 0:
            raise ValueError(f"num_types must be positive, got {num_types}")
        if rows <= 0 or row_period < rows or row_period > 2 * rows - 1:
            raise ValueError(
                f"row_period must be between rows and 2 * rows - 1 "
                f"(rows={rows}, row_period={row_period})"
            )

        self.num_types = num_types
        self.inset = inset
        self.rows = rows
        self.row_period = row_period

        palette = list(palette) if palette is not None else DEFAULT_PALETTE
        self.palette: List[Tuple[int, int, int]] = [
            tuple(palette[i % len(palette)]) for i in range(num_types)
        ]

    @property
    def column_width(self) -> float:
        return 1.0 / self.num_types

    @property
    def row_height(self) -> float:
        return 1.0 / self.rows

    @property
    def column_inset(self) -> float:
        """Horizontal inset, capped at a quarter of the column width."""
        return min(self.inset, self.column_width / 4)

    @property
    def row_inset(self) -> float:
        """Vertical inset, capped at a quarter of the row height."""
        return min(self.inset, self.row_height / 4)

    def row_index(self, corner_y: float, normal_y: int) -> int:
        """
        Atlas row for a face.

        Args:
            corner_y: World-space y of the face's lowest corner
            normal_y: y component of the face normal (-1, 0 or 1)

        Returns:
            Row index in [0, rows)
        """
        row = (int(math.floor(corner_y)) + int(normal_y)) % self.row_period
        if row >= self.rows:
            row = self.row_period - row
        return row

    def face_uvs(self, voxel_type: int, corner_y: float, normal_y: int) -> np.ndarray:
        """
        UV coordinates of a quad.

        Corner order matches the mesh builder: (u0, v0), (u0, v1),
        (u1, v1), (u1, v0).

        Returns:
            float32 array of shape (4, 2)
        """
        u0 = self.column_width * voxel_type + self.column_inset
        v0 = self.row_index(corner_y, normal_y) / self.rows
        width = self.column_width - 2 * self.column_inset
        height = self.row_height - 2 * self.row_inset

        return np.array([
            [u0, v0],
            [u0, v0 + height],
            [u0 + width, v0 + height],
            [u0 + width, v0],
        ], dtype=np.float32)

    def to_image(self, tile_size: int = 16) -> Image.Image:
        """
        Render the atlas as an RGBA image.

        Lower rows are drawn at the bottom of the image (UV v = 0) and each
        row is shaded a little darker than the one above it.

        Args:
            tile_size: Pixel size of one tile

        Returns:
            PIL Image of size (num_types * tile_size, rows * tile_size)
        """
        width = self.num_types * tile_size
        height = self.rows * tile_size
        pixels = np.zeros((height, width, 4), dtype=np.uint8)
        pixels[..., 3] = 255

        for voxel_type, color in enumerate(self.palette):
            base = np.array(color, dtype=np.float32)
            x0 = voxel_type * tile_size

            for row in range(self.rows):
                # Image rows run top-down, UV rows bottom-up
                y1 = height - row * tile_size
                y0 = y1 - tile_size
                shade = 1.0 - 0.12 * (self.rows - 1 - row)
                tile = np.clip(base * shade, 0, 255)

                pixels[y0:y1, x0:x0 + tile_size, :3] = tile.astype(np.uint8)

                # Light speckle so the banding is readable on large faces
                checker = (np.add.outer(np.arange(tile_size), np.arange(tile_size)) % 4) == 0
                speckle = np.clip(tile * 1.08, 0, 255).astype(np.uint8)
                pixels[y0:y1, x0:x0 + tile_size, :3][checker] = speckle

        return Image.fromarray(pixels, "RGBA")

    def to_png_bytes(self, tile_size: int = 16) -> bytes:
        """Encode the atlas image as PNG."""
        import io

        buffer = io.BytesIO()
        self.to_image(tile_size).save(buffer, format="PNG")
        return buffer.getvalue()

    def save(self, output_path: Union[str, Path], tile_size: int = 16):
        """
        Save the atlas image.

        Args:
            output_path: Output file path (.png)
            tile_size: Pixel size of one tile
        """
        self.to_image(tile_size).save(Path(output_path))
