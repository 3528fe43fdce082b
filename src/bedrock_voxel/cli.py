"""
Command-Line Interface for Bedrock Voxel

Usage:
    bedrockvox model.glb -o robot.geo.json
    bedrockvox model.obj --scale 2 --preset fine --exact --fill
    bedrockvox model.fbx --format json mcaddon -o out/
    bedrockvox --batch models/ --output-dir packs/ --format mcpack

"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional
import time

from . import __version__
from .converter import BatchConverter, GeometryConverter
from .coordinates import SourceConvention, convention_from_name
from .importers import get_source
from .logging_config import setup_logging
from .options import PRESETS, ConversionOptions
from .voxelizer import DistanceMode

CONVENTION_CHOICES = ["auto", "format"] + [c.value for c in SourceConvention]


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bedrockvox",
        description="Bedrock Voxel - Convert 3D models to Minecraft Bedrock cube geometry",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bedrockvox robot.glb
      Write robot.geo.json next to the model

  bedrockvox robot.obj --preset fine --exact --fill -o robot.geo.json
      Finer grid, exact triangle distance, solid interior

  bedrockvox robot.fbx --convention z-up-rh --format mcaddon -o packs/
      Z-up source, packaged as an add-on

  bedrockvox --batch models/ --output-dir out/ --format json mcpack
      Convert every supported model in a directory

Conventions:
  auto     - Guess the up axis from the model's proportions (default)
  format   - Use the usual convention of the file format
  y-up-rh  - glTF, Blender exports
  z-up-rh  - 3ds Max, most FBX files
  y-up-lh  - Unity
  z-up-lh  - Some CAD packages
        """
    )

    # Input
    parser.add_argument(
        "input",
        nargs="?",
        help="Input model file (.glb, .gltf, .obj, .fbx)"
    )

    # Output
    parser.add_argument(
        "-o", "--output",
        help="Output .geo.json path, or directory for packs"
    )

    parser.add_argument(
        "-f", "--format",
        nargs="+",
        choices=["json", "mcpack", "mcaddon"],
        default=["json"],
        help="Output format(s) (default: json)"
    )

    # Grid settings
    resolution = parser.add_mutually_exclusive_group()
    resolution.add_argument(
        "-r", "--resolution",
        type=int,
        help="Voxel cells per block (default: 16)"
    )

    resolution.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        help="Named resolution preset (standard=16, fine=32)"
    )

    parser.add_argument(
        "--scale",
        type=float,
        default=1.0,
        help="Model scale factor, 0 < scale <= 10 (default: 1.0)"
    )

    parser.add_argument(
        "--convention",
        choices=CONVENTION_CHOICES,
        default="auto",
        help="Source coordinate convention (default: auto)"
    )

    parser.add_argument(
        "--exact",
        action="store_true",
        help="Use exact point-to-triangle distance instead of the centroid heuristic"
    )

    parser.add_argument(
        "--proximity",
        type=float,
        default=1.5,
        help="Occupancy distance threshold in cells (default: 1.5)"
    )

    parser.add_argument(
        "--fill",
        action="store_true",
        help="Fill enclosed interiors to produce solid volumes"
    )

    parser.add_argument(
        "--no-flip-v",
        action="store_true",
        help="Keep texture V as is for every format (glTF is never flipped)"
    )

    parser.add_argument(
        "--ground",
        action="store_true",
        help="Move the model so it stands on Y = 0"
    )

    parser.add_argument(
        "--center",
        action="store_true",
        help="Center the model on the origin"
    )

    # Geometry description
    parser.add_argument(
        "--identifier",
        help="Geometry identifier (default: geometry.custom.<file name>)"
    )

    parser.add_argument(
        "--texture-size",
        type=int,
        nargs=2,
        metavar=("W", "H"),
        default=[64, 64],
        help="Declared texture width and height (default: 64 64)"
    )

    # Batch processing
    parser.add_argument(
        "--batch",
        help="Batch process directory of models"
    )

    parser.add_argument(
        "--output-dir",
        help="Output directory for batch processing"
    )

    parser.add_argument(
        "--pattern",
        default="*",
        help="File pattern for batch processing (default: *)"
    )

    # Misc
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output with debug logging"
    )

    parser.add_argument(
        "--log-file",
        help="Also write log output to this file"
    )

    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print conversion statistics"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def build_options(args, input_path: Optional[Path] = None) -> ConversionOptions:
    """Translate parsed arguments into ConversionOptions."""
    if args.convention == "auto":
        convention = None
    elif args.convention == "format":
        convention = get_source(input_path).default_convention if input_path else None
    else:
        convention = convention_from_name(args.convention)

    overrides = dict(
        scale=args.scale,
        source_convention=convention,
        texture_width=args.texture_size[0],
        texture_height=args.texture_size[1],
        distance_mode=DistanceMode.EXACT if args.exact else DistanceMode.CENTROID,
        proximity=args.proximity,
        fill_interior=args.fill,
        flip_v=False if args.no_flip_v else None,
        ground=args.ground,
        center=args.center,
    )
    if args.identifier:
        overrides["identifier"] = args.identifier

    if args.preset:
        return ConversionOptions.preset(args.preset, **overrides)
    if args.resolution is not None:
        overrides["resolution"] = args.resolution
    return ConversionOptions(**overrides)


def print_stats(stats: dict):
    print("\nConversion Statistics:")
    print(f"  Vertices: {stats['vertices']}")
    print(f"  Triangles: {stats['triangles']}")
    print(f"  Resolution: {stats['resolution']} cells/block")
    print(f"  Grid size: {stats['grid_size']}")
    print(f"  Voxels: {stats['voxel_count']}")
    print(f"  Greedy boxes: {stats['greedy_boxes']}")
    print(f"  Naive boxes: {stats['naive_boxes']}")
    print(f"  Box reduction: {stats['box_reduction_percent']:.1f}%")


def process_single(args) -> int:
    """Process a single model file."""
    if not args.input:
        print("Error: No input file specified", file=sys.stderr)
        return 1

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        return 1

    start_time = time.time()

    try:
        options = build_options(args, input_path)
        converter = GeometryConverter(options)

        if args.verbose:
            print(f"Loading: {input_path}")

        converter.load_model(input_path, derive_identifier=not args.identifier)
        converter.build_document()

        if args.stats or args.verbose:
            print_stats(converter.get_stats())

        if "json" in args.format:
            if args.output and Path(args.output).suffix == ".json":
                output_path = Path(args.output)
            else:
                output_dir = Path(args.output) if args.output else input_path.parent
                output_path = output_dir / f"{converter.options.entity_name}.geo.json"
            converter.export_json(output_path)
            print(f"Exported: {output_path}")

        pack_dir = input_path.parent
        if args.output and Path(args.output).suffix != ".json":
            pack_dir = Path(args.output)
        elif args.output:
            pack_dir = Path(args.output).parent

        if "mcpack" in args.format:
            print(f"Exported: {converter.export_addon(pack_dir)}")
        if "mcaddon" in args.format:
            print(f"Exported: {converter.export_addon(pack_dir, addon=True)}")

        elapsed = time.time() - start_time
        print(f"{converter.box_count} boxes from {converter.voxel_count} voxels in {elapsed:.2f}s")

        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def process_batch(args) -> int:
    """Process a directory of models."""
    batch_dir = Path(args.batch)
    if not batch_dir.is_dir():
        print(f"Error: Batch directory not found: {batch_dir}", file=sys.stderr)
        return 1

    output_dir = Path(args.output_dir) if args.output_dir else batch_dir / "output"

    start_time = time.time()

    try:
        converter = BatchConverter(build_options(args))
        outputs = converter.process_directory(
            batch_dir,
            output_dir,
            pattern=args.pattern,
            formats=args.format
        )

        elapsed = time.time() - start_time
        print(f"Wrote {len(outputs)} files in {elapsed:.2f}s")
        print(f"Output directory: {output_dir}")

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

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING, args.log_file)

    if args.batch:
        return process_batch(args)
    return process_single(args)


if __name__ == "__main__":
    sys.exit(main())
