#!/usr/bin/env python3
"""
Block Model Demo Script

This script demonstrates the full compression pipeline by:
1. Generating procedural terrain weights (no external data needed)
2. Compressing them into parent blocks and cuboids
3. Exporting to all supported formats
4. Printing statistics and a decomposition trace

Run with: python examples/demo.py
"""

import sys
from pathlib import Path
import numpy as np
import time

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from block_model import BlockModel, VoxelSphere
from block_model.cli import setup_logging
from block_model.decomposer import decompose


def print_trace():
    """Show the run-length buffers of a small Mixed block."""
    print("\n--- Decomposition Trace (2x2x2, one odd voxel) ---\n")

    grid = np.zeros((2, 2, 2), dtype=np.int32)
    grid[1, 1, 1] = 1

    result = decompose(grid, 2, trace=True)

    for cuboid, step in zip(result.cuboids, result.traces):
        print(f"Type {cuboid.voxel_type}: end={cuboid.origin_end} size={cuboid.size} "
              f"(K={step.k}, M={step.m}, volume={step.volume})")
        print(f"  z run lengths: {step.z_runs.ravel().tolist()}")
        print(f"  F*K*M:         {step.volumes.ravel().tolist()}")


def run_demo():
    """Run the demonstration."""
    print("=" * 60)
    print("Block Model Compression - Demo")
    print("=" * 60)
    print()

    # Create output directory
    output_dir = Path(__file__).parent / "output"
    output_dir.mkdir(exist_ok=True)

    scenes = [
        ("plateau", dict(solid_level=8, seed=0, spheres=[])),
        ("hills", dict(solid_level=4, seed=7, spheres=[])),
        ("hills_sphere", dict(
            solid_level=4, seed=7,
            spheres=[VoxelSphere((16, 10, 16), 6.0, 1), VoxelSphere((8, 6, 24), 3.0, 2)]
        )),
    ]

    total_start = time.time()

    for name, terrain in scenes:
        print(f"\n--- Processing: {name} ---")

        scene_start = time.time()

        model = BlockModel(
            parent_count=(8, 4, 8),
            sub_blocks_per_parent=(4, 4, 4),
            num_voxel_types=4,
            workers=4
        )
        model.generate_terrain(**terrain).regenerate()

        stats = model.get_stats()
        print(f"  Grid size: {stats['grid_size']}")
        print(f"  Solid voxels: {stats['solid_voxels']}")
        print(f"  Blocks (empty/uniform/mixed): {stats['empty_blocks']}/"
              f"{stats['uniform_blocks']}/{stats['mixed_blocks']}")
        print(f"  Cuboids: {stats['cuboids']}")
        print(f"  Compression: {stats['compression_ratio']:.2f} voxels/primitive")
        print(f"  Vertices: {stats['vertices']}, triangles: {stats['triangles']}")

        # Only the lower two coarse layers
        model.build_mesh(layer_filter=(0, 1))
        print(f"  Layers 0-1 only: {model.vertex_count} vertices")
        model.build_mesh(layer_filter=(0, 20))

        print(f"\n  Exporting...")
        for path in model.export_all(output_dir / name):
            print(f"    Saved: {path}")

        scene_time = time.time() - scene_start
        print(f"    Total time: {scene_time*1000:.1f}ms")

    total_time = time.time() - total_start

    print_trace()

    print("\n" + "=" * 60)
    print(f"Demo complete! Total time: {total_time:.2f}s")
    print(f"Output files in: {output_dir}")
    print("=" * 60)

    return 0


def benchmark_decomposition():
    """Benchmark decomposition over grid sizes and worker counts."""
    print("\n--- Decomposition Benchmark ---\n")

    for parents in (4, 8, 16):
        for workers in (1, 4):
            model = BlockModel(
                parent_count=(parents, 4, parents),
                sub_blocks_per_parent=(8, 8, 8),
                workers=workers
            )
            model.generate_terrain(seed=1, feature_cells=12).classify()

            start = time.time()
            model.decompose()
            elapsed = time.time() - start

            print(f"Parents {parents}x4x{parents}, {workers} worker(s): "
                  f"{elapsed*1000:.1f}ms, {model.cuboid_count} cuboids")
        print()


if __name__ == "__main__":
    setup_logging()
    run_demo()

    # Uncomment to run benchmark
    # benchmark_decomposition()
