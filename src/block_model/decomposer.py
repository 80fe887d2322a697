"""
Greedy Cuboid Decomposition with Numba JIT Compilation

This module compresses the fine voxels of a Mixed parent block into a small
set of axis-aligned, single-type cuboids.

The largest cuboid of one voxel type is found with a 3D extension of the
histogram-based largest-rectangle algorithm, one axis at a time:
1. Run-length along z:  R[x,y,z] = consecutive cells of the type ending at z
2. For each K:          C[x,y,z] = consecutive y cells with R >= K
3. For each M:          F[x,y,z] = consecutive x cells with C >= M
4. F * K * M is the volume of a box of size (F, M, K) whose highest corner
   is (x, y, z)

The best box is removed from the grid and the search repeats until no cell
of the type remains, then moves on to the next type. Extraction is greedy,
so the cuboid count is not guaranteed to be minimal.

Tie break: the running maximum only changes on a strictly greater volume.
Candidates are enumerated by K, then M, then y, z, x (x fastest), and the
first of several equal volumes wins.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Tuple
import logging
import numpy as np
from numba import njit

from .classifier import EMPTY
from .parent_blocks import extract_local_grid, mixed_parents


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cuboid:
    """
    Axis-aligned box of uniformly typed fine voxels.

    origin_end is the highest-coordinate corner in block-local fine
    coordinates; the box covers [origin_end - size + 1, origin_end] on every
    axis. Use min_corner / max_corner to avoid depending on that convention.
    """

    origin_end: Tuple[int, int, int]
    size: Tuple[int, int, int]
    voxel_type: int

    @property
    def min_corner(self) -> Tuple[int, int, int]:
        """Lowest covered cell (inclusive)."""
        return tuple(e - s + 1 for e, s in zip(self.origin_end, self.size))

    @property
    def max_corner(self) -> Tuple[int, int, int]:
        """One past the highest covered cell (exclusive)."""
        return tuple(e + 1 for e in self.origin_end)

    @property
    def volume(self) -> int:
        """Number of fine voxels covered."""
        sx, sy, sz = self.size
        return sx * sy * sz

    @property
    def slices(self) -> Tuple[slice, slice, slice]:
        """Local-grid slices covered by this cuboid."""
        return tuple(
            slice(lo, hi) for lo, hi in zip(self.min_corner, self.max_corner)
        )


class ExtractionTrace(NamedTuple):
    """Intermediate run-length buffers of one extraction, for diagnostics."""
    voxel_type: int
    k: int                   # winning z threshold (size along z)
    m: int                   # winning y threshold (size along y)
    volume: int
    z_runs: np.ndarray       # R, run lengths along z
    volumes: np.ndarray      # F * K * M for the winning K and M


class Decomposition(NamedTuple):
    """Result of decomposing one parent block."""
    cuboids: List[Cuboid]
    remaining: np.ndarray    # local grid after extraction (all EMPTY)
    traces: List[ExtractionTrace]


@njit(cache=True, nogil=True)
def _z_run_lengths(local: np.ndarray, voxel_type: int) -> np.ndarray:
    """Length of the run of voxel_type cells ending at each cell, along z."""
    sx, sy, sz = local.shape
    runs = np.zeros((sx, sy, sz), dtype=np.int32)

    for x in range(sx):
        for y in range(sy):
            run = 0
            for z in range(sz):
                if local[x, y, z] == voxel_type:
                    run += 1
                else:
                    run = 0
                runs[x, y, z] = run

    return runs


@njit(cache=True, nogil=True)
def _y_run_lengths(z_runs: np.ndarray, k: int) -> np.ndarray:
    """Run lengths along y of cells whose z-run reaches k."""
    sx, sy, sz = z_runs.shape
    runs = np.zeros((sx, sy, sz), dtype=np.int32)

    for x in range(sx):
        for z in range(sz):
            run = 0
            for y in range(sy):
                if z_runs[x, y, z] >= k:
                    run += 1
                else:
                    run = 0
                runs[x, y, z] = run

    return runs


@njit(cache=True, nogil=True)
def _x_run_lengths(y_runs: np.ndarray, m: int) -> np.ndarray:
    """Run lengths along x of cells whose y-run reaches m."""
    sx, sy, sz = y_runs.shape
    runs = np.zeros((sx, sy, sz), dtype=np.int32)

    for y in range(sy):
        for z in range(sz):
            run = 0
            for x in range(sx):
                if y_runs[x, y, z] >= m:
                    run += 1
                else:
                    run = 0
                runs[x, y, z] = run

    return runs


@njit(cache=True, nogil=True)
def _find_largest_cuboid(local: np.ndarray, voxel_type: int):
    """
    Find the largest box of voxel_type cells.

    Returns:
        (volume, end_x, end_y, end_z, size_x, size_y, size_z, k, m);
        volume is 0 when no cell of voxel_type remains
    """
    sx, sy, sz = local.shape
    max_dim = max(sx, max(sy, sz))

    best = 0
    end_x = end_y = end_z = 0
    size_x = size_y = size_z = 0
    best_k = best_m = 0

    z_runs = _z_run_lengths(local, voxel_type)

    for k in range(1, max_dim + 1):
        y_runs = _y_run_lengths(z_runs, k)
        for m in range(1, max_dim + 1):
            x_runs = _x_run_lengths(y_runs, m)
            for y in range(sy):
                for z in range(sz):
                    for x in range(sx):
                        volume = x_runs[x, y, z] * k * m
                        if volume > best:
                            best = volume
                            end_x, end_y, end_z = x, y, z
                            size_x, size_y, size_z = x_runs[x, y, z], m, k
                            best_k, best_m = k, m

    return best, end_x, end_y, end_z, size_x, size_y, size_z, best_k, best_m


@njit(cache=True, nogil=True)
def _clear_cuboid(
    local: np.ndarray,
    end_x: int, end_y: int, end_z: int,
    size_x: int, size_y: int, size_z: int
):
    """Mark every cell of a cuboid as EMPTY (size extends backward)."""
    for i in range(size_x):
        for j in range(size_y):
            for k in range(size_z):
                local[end_x - i, end_y - j, end_z - k] = -1


def run_length_buffers(
    local: np.ndarray,
    voxel_type: int,
    k: int,
    m: int
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Compute the intermediate buffers for one (K, M) pair.

    Args:
        local: Block-local type grid
        voxel_type: Type being extracted
        k: Threshold on z run lengths
        m: Threshold on y run lengths

    Returns:
        (R, C, F) run-length arrays
    """
    local = np.ascontiguousarray(local, dtype=np.int32)
    z_runs = _z_run_lengths(local, voxel_type)
    y_runs = _y_run_lengths(z_runs, k)
    x_runs = _x_run_lengths(y_runs, m)
    return z_runs, y_runs, x_runs


def find_largest_cuboid(local: np.ndarray, voxel_type: int) -> Optional[Cuboid]:
    """
    Find the largest single-type box without modifying the grid.

    Args:
        local: Block-local type grid
        voxel_type: Type to search for

    Returns:
        The cuboid, or None if no cell of voxel_type exists
    """
    local = np.ascontiguousarray(local, dtype=np.int32)
    result = _find_largest_cuboid(local, voxel_type)
    if result[0] == 0:
        return None
    _, ex, ey, ez, fx, fy, fz, _, _ = result
    return Cuboid(
        origin_end=(int(ex), int(ey), int(ez)),
        size=(int(fx), int(fy), int(fz)),
        voxel_type=int(voxel_type),
    )


def decompose(
    local_grid: np.ndarray,
    num_voxel_types: int,
    trace: bool = False
) -> Decomposition:
    """
    Decompose one parent block into single-type cuboids.

    The input grid is not modified; extraction consumes a private copy.

    Args:
        local_grid: Block-local type grid of shape (sub_x, sub_y, sub_z)
        num_voxel_types: Types 0..num_voxel_types-1 are extracted
        trace: If True, record the run-length buffers of every extraction

    Returns:
        Decomposition with the cuboids in extraction order
    """
    local = np.array(local_grid, dtype=np.int32, copy=True, order="C")
    if local.ndim != 3:
        raise ValueError("Local grid must be 3D (sub_x, sub_y, sub_z)")

    cuboids: List[Cuboid] = []
    traces: List[ExtractionTrace] = []

    if local.size == 0:
        return Decomposition(cuboids, local, traces)

    for voxel_type in range(num_voxel_types):
        while True:
            (volume, ex, ey, ez,
             fx, fy, fz, k, m) = _find_largest_cuboid(local, voxel_type)

            if volume == 0:
                break

            if trace:
                z_runs, _, x_runs = run_length_buffers(local, voxel_type, k, m)
                traces.append(ExtractionTrace(
                    voxel_type=voxel_type,
                    k=int(k),
                    m=int(m),
                    volume=int(volume),
                    z_runs=z_runs,
                    volumes=x_runs * k * m,
                ))

            cuboids.append(Cuboid(
                origin_end=(int(ex), int(ey), int(ez)),
                size=(int(fx), int(fy), int(fz)),
                voxel_type=voxel_type,
            ))
            _clear_cuboid(local, ex, ey, ez, fx, fy, fz)

    return Decomposition(cuboids, local, traces)


def decompose_blocks(
    voxel_types: np.ndarray,
    labels: np.ndarray,
    sub: Tuple[int, int, int],
    num_voxel_types: int,
    workers: int = 1
) -> Dict[Tuple[int, int, int], List[Cuboid]]:
    """
    Decompose every Mixed parent block.

    Blocks are independent, so with workers > 1 they are processed on a
    thread pool (the kernels release the GIL). The result does not depend
    on the number of workers.

    Args:
        voxel_types: Full classified grid (not modified)
        labels: Parent label codes from classify_parents
        sub: Sub-blocks per parent
        num_voxel_types: Size of the voxel type set
        workers: Number of decomposition threads

    Returns:
        Mapping of parent coordinate to its cuboids, in parent scan order
    """
    parents = mixed_parents(labels)

    def run(parent):
        local = extract_local_grid(voxel_types, parent, sub)
        result = decompose(local, num_voxel_types)
        logger.debug(
            "Block %s: %d cuboids for %d voxels",
            parent, len(result.cuboids), int(np.sum(local != EMPTY))
        )
        return result.cuboids

    if workers > 1 and len(parents) > 1:
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="decompose"
        ) as executor:
            results = list(executor.map(run, parents))
    else:
        results = [run(parent) for parent in parents]

    return dict(zip(parents, results))


def covered_cells(cuboids: List[Cuboid], shape: Tuple[int, int, int]) -> np.ndarray:
    """
    Rebuild a type grid from cuboids.

    Args:
        cuboids: Cuboids in block-local coordinates
        shape: Local grid shape

    Returns:
        int32 grid with each cuboid's type painted in, EMPTY elsewhere

    Raises:
        ValueError: If two cuboids overlap
    """
    grid = np.full(shape, EMPTY, dtype=np.int32)
    for cuboid in cuboids:
        region = grid[cuboid.slices]
        if np.any(region != EMPTY):
            raise ValueError(f"Cuboid {cuboid} overlaps a previous cuboid")
        region[...] = cuboid.voxel_type
    return grid
