"""
Parent Block Uniformity Classification

Every coarse (parent) block groups sub_x * sub_y * sub_z fine voxels. A block
is labelled:
- Uniform(type): all fine voxels share one solid type
- Empty: all fine voxels are EMPTY (i.e. Uniform(EMPTY))
- Mixed: anything else; only these blocks are decomposed into cuboids

Labels are stored as int32 codes so the mesh builder can index them directly:
EMPTY (-1), MIXED (-2), or the uniform type id (>= 0).
"""

from enum import IntEnum
from typing import NamedTuple, Tuple
import numpy as np

from .classifier import EMPTY


MIXED = -2


class BlockKind(IntEnum):
    """Parent block classification."""
    EMPTY = 0
    UNIFORM = 1
    MIXED = 2


class ParentLabel(NamedTuple):
    """Decoded label of a single parent block."""
    kind: BlockKind
    voxel_type: int  # EMPTY unless kind is UNIFORM

    @property
    def is_solid(self) -> bool:
        """True for Uniform blocks of a real voxel type."""
        return self.kind == BlockKind.UNIFORM


def describe_label(code: int) -> ParentLabel:
    """
    Decode a label code.

    Args:
        code: EMPTY, MIXED or a type id

    Returns:
        ParentLabel
    """
    code = int(code)
    if code == MIXED:
        return ParentLabel(BlockKind.MIXED, EMPTY)
    if code < 0:
        return ParentLabel(BlockKind.EMPTY, EMPTY)
    return ParentLabel(BlockKind.UNIFORM, code)


def parent_slices(
    parent: Tuple[int, int, int],
    sub: Tuple[int, int, int]
) -> Tuple[slice, slice, slice]:
    """Fine-grid slices covered by one parent block."""
    return tuple(
        slice(p * s, (p + 1) * s) for p, s in zip(parent, sub)
    )


def extract_local_grid(
    voxel_types: np.ndarray,
    parent: Tuple[int, int, int],
    sub: Tuple[int, int, int]
) -> np.ndarray:
    """
    Copy one parent block's local sub-grid.

    Args:
        voxel_types: Full classified grid
        parent: Parent block coordinate
        sub: Sub-blocks per parent

    Returns:
        int32 array of shape sub, independent of voxel_types
    """
    return voxel_types[parent_slices(parent, sub)].astype(np.int32, copy=True)


def classify_parent(
    voxel_types: np.ndarray,
    parent: Tuple[int, int, int],
    sub: Tuple[int, int, int]
) -> int:
    """
    Label a single parent block.

    The first fine voxel is the candidate type; the scan stops at the first
    voxel that differs from it.

    Args:
        voxel_types: Full classified grid
        parent: Parent block coordinate
        sub: Sub-blocks per parent

    Returns:
        Label code (EMPTY, MIXED or the uniform type id)
    """
    px, py, pz = parent
    sx, sy, sz = sub
    x0, y0, z0 = px * sx, py * sy, pz * sz

    candidate = int(voxel_types[x0, y0, z0])

    for i in range(sx):
        for j in range(sy):
            for k in range(sz):
                if voxel_types[x0 + i, y0 + j, z0 + k] != candidate:
                    return MIXED

    return candidate


def classify_parents(
    voxel_types: np.ndarray,
    parent_count: Tuple[int, int, int],
    sub: Tuple[int, int, int]
) -> np.ndarray:
    """
    Label every parent block at once.

    Produces the same codes as calling classify_parent on each block.

    Args:
        voxel_types: Full classified grid of shape parent_count * sub
        parent_count: Number of parent blocks per axis
        sub: Sub-blocks per parent

    Returns:
        int32 array of shape parent_count
    """
    cx, cy, cz = parent_count
    sx, sy, sz = sub

    if voxel_types.shape != (cx * sx, cy * sy, cz * sz):
        raise ValueError(
            f"Voxel grid shape {voxel_types.shape} does not match "
            f"parent_count {parent_count} x sub {sub}"
        )

    # (cx, sx, cy, sy, cz, sz) -> (cx, cy, cz, sx * sy * sz)
    blocks = voxel_types.reshape(cx, sx, cy, sy, cz, sz)
    blocks = blocks.transpose(0, 2, 4, 1, 3, 5).reshape(cx, cy, cz, -1)

    first = blocks[..., 0]
    uniform = np.all(blocks == first[..., np.newaxis], axis=-1)

    return np.where(uniform, first, MIXED).astype(np.int32)


def label_counts(labels: np.ndarray) -> dict:
    """
    Count parent blocks per kind.

    Returns:
        Dictionary with "empty", "uniform" and "mixed" counts
    """
    return {
        "empty": int(np.sum((labels < 0) & (labels != MIXED))),
        "uniform": int(np.sum(labels >= 0)),
        "mixed": int(np.sum(labels == MIXED)),
    }


def mixed_parents(labels: np.ndarray):
    """Coordinates of Mixed blocks in x, y, z scan order."""
    return [tuple(int(c) for c in p) for p in np.argwhere(labels == MIXED)]
