"""gltfread CLI: inspect glTF/GLB documents and KTX2 mip layouts."""

import argparse
import json
import logging
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path
from typing import Dict, List, Optional

from gltfread.kernel.extension_dispatch import ExtensionState
from gltfread.kernel.ktx2 import Ktx2Error, Ktx2TranscodeTargets, compute_ktx2_layout
from gltfread.reader import GltfReader, GltfReaderOptions, GltfReaderResult
from gltfread._internal.loaders import FileSystemByteLoader

COUNTED_COLLECTIONS = (
    "accessors", "animations", "buffers", "buffer_views", "cameras", "images",
    "materials", "meshes", "nodes", "samplers", "scenes", "skins", "textures",
)


def _parse_extension_state(value: str):
    name, separator, state = value.partition("=")
    if not separator or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=STATE, got '{value}'")
    try:
        return name, ExtensionState(state.strip().lower())
    except ValueError:
        choices = ", ".join(s.value for s in ExtensionState)
        raise argparse.ArgumentTypeError(f"unknown extension state '{state}' (choose from {choices})")


def _summarize(result: GltfReaderResult) -> Dict:
    model = result.model
    summary = {
        "ok": result.ok,
        "errors": list(result.errors),
        "warnings": list(result.warnings),
    }
    if model is None:
        return summary
    summary["asset_version"] = model.asset.version
    summary["counts"] = {name: len(getattr(model, name)) for name in COUNTED_COLLECTIONS}
    summary["extensions_used"] = list(model.extensions_used)
    summary["root_extensions"] = sorted(model.extensions)
    summary["decoded_images"] = sum(1 for image in model.images if image.image_data is not None)
    return summary


def _run_inspect(args) -> int:
    data = args.path.read_bytes()
    reader = GltfReader(byte_loader=FileSystemByteLoader(args.path.parent))
    reader.options.set_capture_unknown_properties(not args.no_capture_unknown)
    for name, state in args.extension_state:
        reader.options.set_extension_state(name, state)

    result = reader.read_gltf(data, GltfReaderOptions(decode_embedded_images=not args.no_images))
    summary = _summarize(result)

    if args.json:
        print(json.dumps(summary, indent=2, sort_keys=True))
    elif not args.quiet:
        print(f"[{'OK' if result.ok else 'FAILED'}] Read {args.path}")
        if result.model is not None:
            print(f"  Asset version: {summary['asset_version'] or '(missing)'}")
            for name, count in summary["counts"].items():
                if count:
                    print(f"  {name}: {count}")
            if summary["extensions_used"]:
                print(f"  Extensions used: {', '.join(summary['extensions_used'])}")
        print(f"  Errors: {len(result.errors)}")
        print(f"  Warnings: {len(result.warnings)}")

    if not args.json:
        for message in result.errors:
            print(f"error: {message}", file=sys.stderr)
        if not args.quiet:
            for message in result.warnings:
                print(f"warning: {message}", file=sys.stderr)

    return 0 if result.ok else 1


def _run_mips(args) -> int:
    layout = compute_ktx2_layout(args.path.read_bytes(), Ktx2TranscodeTargets())
    header = layout.header
    positions: List[Dict[str, int]] = [p.model_dump() for p in layout.mip_positions]
    if args.json:
        print(json.dumps({
            "width": header.pixel_width,
            "height": header.pixel_height,
            "vk_format": header.vk_format,
            "level_count": header.level_count,
            "supercompression_scheme": header.supercompression_scheme,
            "target_format": layout.target_format.value,
            "channels": layout.channels,
            "mip_positions": positions,
        }, indent=2))
    elif not args.quiet:
        print(f"{args.path}: {header.pixel_width}x{header.pixel_height} vkFormat={header.vk_format} "
              f"levelCount={header.level_count}")
        if not positions:
            print("  base image only (mips may be generated at runtime)")
        for level, position in enumerate(positions):
            print(f"  level {level}: offset={position['byte_offset']} size={position['byte_size']}")
    return 0


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point for gltfread commands."""
    try:
        gltfread_version = get_version("gltfread")
    except PackageNotFoundError:
        gltfread_version = "dev"

    parser = argparse.ArgumentParser(
        prog="gltfread",
        description="gltfread: typed glTF 2.0 / GLB reader"
    )
    parser.add_argument("--version", action="version", version=f"gltfread {gltfread_version}")
    # Common arguments
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress all non-error output."
    )
    parent_parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log reader progress to stderr."
    )
    parent_parser.add_argument(
        "--json",
        action="store_true",
        help="Print a machine-readable JSON summary."
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    inspect_parser = subparsers.add_parser(
        "inspect",
        help="Read a .gltf or .glb file and summarize the result",
        parents=[parent_parser]
    )
    inspect_parser.add_argument("path", type=Path, help="Path to a .gltf or .glb file")
    inspect_parser.add_argument(
        "--no-capture-unknown",
        action="store_true",
        help="Discard properties the typed model does not know"
    )
    inspect_parser.add_argument(
        "--extension-state",
        type=_parse_extension_state,
        action="append",
        default=[],
        metavar="NAME=STATE",
        help="Force an extension to typed, generic_capture or disabled (repeatable)"
    )
    inspect_parser.add_argument(
        "--no-images",
        action="store_true",
        help="Do not decode embedded images"
    )

    mips_parser = subparsers.add_parser(
        "mips",
        help="Print the mip layout of a KTX2 file",
        parents=[parent_parser]
    )
    mips_parser.add_argument("path", type=Path, help="Path to a .ktx2 file")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        if args.command == "inspect":
            sys.exit(_run_inspect(args))
        if args.command == "mips":
            sys.exit(_run_mips(args))
    except (OSError, Ktx2Error) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
