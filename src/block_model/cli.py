"""
Command-Line Interface for Block Model Compression

Usage:
    blockmodel -o terrain
    blockmodel --parents 16 4 16 --sub 8 8 8 --seed 3 -o terrain --format glb obj
    blockmodel --weights weights.npy --types 3 --layers 1 2 -o slice

"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional
import time
import numpy as np

from . import __version__
from .coordinates import CoordinateSystem
from .generator import BlockModel
from .terrain import VoxelSphere


def setup_logging(verbose: bool = False) -> None:
    """Configure root logging for command-line and UI use."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quiet third-party libraries
    for lib in ("numba", "PIL", "matplotlib", "urllib3", "httpx"):
        logging.getLogger(lib).setLevel(logging.WARNING)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="blockmodel",
        description="Block Model Compression - Compress voxel grids into parent blocks and cuboids",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  blockmodel -o terrain
      Generate default terrain and export terrain.glb

  blockmodel --sphere 16 8 16 6 2 -o terrain --format glb obj
      Add a sphere of type 2 and export GLB and OBJ

  blockmodel --weights weights.npy --parents 4 4 4 --types 3 -o model
      Compress a saved weight array of shape (16, 16, 16, 3)

  blockmodel --layers 1 2 --stats -o slice
      Mesh only coarse layers 1 to 2 and print statistics
        """
    )

    # Grid configuration
    parser.add_argument(
        "--parents",
        type=int, nargs=3, metavar=("X", "Y", "Z"),
        default=[8, 4, 8],
        help="Parent blocks per axis (default: 8 4 8)"
    )

    parser.add_argument(
        "--sub",
        type=int, nargs=3, metavar=("X", "Y", "Z"),
        default=[4, 4, 4],
        help="Fine voxels per parent block per axis (default: 4 4 4)"
    )

    parser.add_argument(
        "--types",
        type=int,
        default=4,
        help="Number of voxel types (default: 4)"
    )

    parser.add_argument(
        "--layers",
        type=int, nargs=2, metavar=("MIN", "MAX"),
        default=[0, 20],
        help="Inclusive range of coarse y layers to mesh (default: 0 20)"
    )

    parser.add_argument(
        "--block-size",
        type=float, nargs=3, metavar=("X", "Y", "Z"),
        default=[1.0, 1.0, 1.0],
        help="World size of one parent block (default: 1 1 1)"
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Threads used to decompose mixed blocks (default: 1)"
    )

    # Weight source
    parser.add_argument(
        "--weights",
        help="Load type weights from a .npy file instead of generating terrain"
    )

    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Terrain noise seed (default: 0)"
    )

    parser.add_argument(
        "--solid-level",
        type=int,
        default=4,
        help="Terrain height that is always solid, in fine voxels (default: 4)"
    )

    parser.add_argument(
        "--sphere",
        type=float, nargs=5, action="append", default=[],
        metavar=("CX", "CY", "CZ", "R", "TYPE"),
        help="Force a sphere of voxels to TYPE (repeatable)"
    )

    # Output settings
    parser.add_argument(
        "-o", "--output",
        default="block_model",
        help="Output base path (default: block_model)"
    )

    parser.add_argument(
        "-f", "--format",
        nargs="+",
        choices=["glb", "gltf", "obj"],
        default=["glb"],
        help="Output format(s) (default: glb)"
    )

    parser.add_argument(
        "--coordinate-system",
        choices=["y_up", "z_up"],
        default="y_up",
        help="Target coordinate system (default: y_up)"
    )

    # Misc
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output with debug logging"
    )

    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print compression statistics"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def parse_spheres(values: List[List[float]]) -> List[VoxelSphere]:
    """Convert --sphere arguments to VoxelSphere objects."""
    spheres = []
    for cx, cy, cz, radius, voxel_type in values:
        if not float(voxel_type).is_integer():
            raise ValueError(f"Sphere type must be an integer, got {voxel_type}")
        spheres.append(VoxelSphere((cx, cy, cz), radius, int(voxel_type)))
    return spheres


def print_stats(stats: dict):
    """Print compression statistics."""
    print("\nBlock Model Statistics:")
    print(f"  Grid size: {stats['grid_size']}")
    print(f"  Voxels: {stats['voxel_count']} ({stats['solid_voxels']} solid)")
    print(f"  Voxels per type: {stats['type_counts']}")
    print(f"  Parent blocks: {stats['parent_blocks']}")
    print(f"    Empty: {stats['empty_blocks']}")
    print(f"    Uniform: {stats['uniform_blocks']}")
    print(f"    Mixed: {stats['mixed_blocks']}")
    print(f"  Cuboids: {stats['cuboids']}")
    print(f"  Compression ratio: {stats['compression_ratio']:.2f} voxels/primitive")
    print(f"  Vertices: {stats['vertices']}")
    print(f"  Triangles: {stats['triangles']}")


def run(args) -> int:
    """Run the pipeline for parsed arguments."""
    output_base = Path(args.output)
    start_time = time.time()

    try:
        model = BlockModel(
            parent_count=tuple(args.parents),
            sub_blocks_per_parent=tuple(args.sub),
            num_voxel_types=args.types,
            layer_filter=tuple(args.layers),
            parent_block_size=tuple(args.block_size),
            workers=args.workers
        )

        if args.weights:
            weights_path = Path(args.weights)
            if not weights_path.exists():
                print(f"Error: Weights file not found: {weights_path}", file=sys.stderr)
                return 1
            model.load_weights(np.load(weights_path))
        else:
            model.generate_terrain(
                solid_level=args.solid_level,
                seed=args.seed,
                spheres=parse_spheres(args.sphere)
            )

        model.regenerate()

        if args.stats or args.verbose:
            print_stats(model.get_stats())

        if model.vertex_count == 0:
            print("Warning: mesh is empty, nothing exported", file=sys.stderr)
            return 0

        written = model.export_all(
            output_base,
            formats=args.format,
            coordinate_system=CoordinateSystem(args.coordinate_system)
        )

        for path in written:
            print(f"Exported: {path}")

        elapsed = time.time() - start_time
        if args.verbose:
            print(f"\nCompleted in {elapsed:.2f}s")

        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
