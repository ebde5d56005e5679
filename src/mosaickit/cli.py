"""
Command-line interface for mosaic build instructions.
"""

import argparse
import logging
import os
import sys
from typing import List

from .build import BuildConfig, build_step
from .config import Settings
from .export import ExportManager
from .image_io import load_indexed_image
from .layers import LayerMode, exceeds_layer_limit
from .layout import (ColumnDef, GridDefMode, LayoutDefinition, NormalizeStrategy,
                     RowDef)
from .palettes import apply_palette, available_palettes, get_palette, palette_info
from .patch_plan import uncovered_area


def create_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="Turn an indexed image into step-by-step mosaic build instructions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
LAYOUTS:
  Rows:    HEIGHT:W1,W2,...;HEIGHT:W1,...   e.g. "16:32,32;16:64"
  Columns: WIDTH:H1,H2,...;WIDTH:H1,...     e.g. "32:16,16;32:32"

Examples:
  # Plan a 2x2 grid of 16px plates over a 32x32 image
  python -m mosaickit.cli pixel.png --rows "16:16,16;16:16,16"

  # Show the layers of the third step, one color per layer
  python -m mosaickit.cli pixel.png --rows "32:32" --step 3 --mode discrete

  # Export every step using the classic brick palette
  python -m mosaickit.cli pixel.png --rows "32:32" --palette brick_classic --export
        """
    )

    parser.add_argument("input", nargs="?", help="Pixelated or quantized input image (PNG)")

    layout_group = parser.add_mutually_exclusive_group()
    layout_group.add_argument("--rows", type=str, help="Layout as row definitions")
    layout_group.add_argument("--columns", type=str, help="Layout as column definitions")

    parser.add_argument(
        "--normalize",
        choices=[strategy.value for strategy in NormalizeStrategy],
        help="How to square off a ragged layout (default from config)"
    )
    parser.add_argument("--offset", type=str, default="0,0", help="Layout offset into the image as 'x,y'")
    parser.add_argument("--patch-size", type=int, help="Patch edge in pixels (default: 16)")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in LayerMode],
        help="Layer mode (default from config)"
    )
    parser.add_argument("--palette", type=str, help="Named build palette to apply")
    parser.add_argument("--step", type=int, help="Show the layers of one step (1-based)")
    parser.add_argument("--export", action="store_true", help="Write layer images, legend and manifest")
    parser.add_argument("--output", "-o", type=str, help="Output directory for --export")
    parser.add_argument("--config", "-c", default="mosaickit.yaml", help="Configuration file path")
    parser.add_argument("--list-palettes", action="store_true", help="List named build palettes")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")

    return parser


def _parse_tracks(text: str) -> List[tuple]:
    tracks = []
    for chunk in text.split(';'):
        chunk = chunk.strip()
        if not chunk:
            continue
        extent, _, cells = chunk.partition(':')
        cell_sizes = tuple(int(c) for c in cells.split(',') if c.strip())
        size = int(extent)
        if size <= 0 or any(c <= 0 for c in cell_sizes):
            raise ValueError(f"Sizes must be positive in '{chunk}'")
        tracks.append((size, cell_sizes))
    return tracks


def parse_row_defs(text: str) -> List[RowDef]:
    """Parse 'HEIGHT:W1,W2;HEIGHT:W1' into row definitions."""
    return [RowDef(height, widths) for height, widths in _parse_tracks(text)]


def parse_column_defs(text: str) -> List[ColumnDef]:
    """Parse 'WIDTH:H1,H2;WIDTH:H1' into column definitions."""
    return [ColumnDef(width, heights) for width, heights in _parse_tracks(text)]


def parse_offset(text: str) -> tuple:
    """Parse 'x,y' into an integer pair."""
    parts = text.split(',')
    if len(parts) != 2:
        raise ValueError(f"Offset must be 'x,y', got '{text}'")
    return int(parts[0]), int(parts[1])


def layout_definition_from_args(args: argparse.Namespace, settings: Settings) -> LayoutDefinition:
    """Layout definition from --rows/--columns, or a single default plate."""
    if args.columns:
        return LayoutDefinition(GridDefMode.BY_COLUMNS, column_defs=tuple(parse_column_defs(args.columns)))
    if args.rows:
        return LayoutDefinition(GridDefMode.BY_ROWS, row_defs=tuple(parse_row_defs(args.rows)))
    return LayoutDefinition(
        GridDefMode.BY_ROWS,
        row_defs=(RowDef(settings.layout.default_row_height, (settings.layout.default_cell_width,)),),
    )


def list_palettes():
    """List all named build palettes."""
    print("\n" + "=" * 60)
    print("AVAILABLE PALETTES")
    print("=" * 60)
    for name in available_palettes():
        info = palette_info(name)
        print(f"\n{info['name']}: {info['description']}")
        print(f"  Colors: {', '.join(color['hex'] for color in info['colors'])}")
    print("\n" + "=" * 60)


def run(args: argparse.Namespace) -> bool:
    """Plan a build and print or export it."""
    try:
        settings = Settings.from_yaml(
            args.config,
            patch_size=args.patch_size,
            layer_mode=args.mode,
            palette=args.palette,
            normalize=args.normalize,
            output_dir=args.output,
        )

        image = load_indexed_image(args.input)
        if settings.palette:
            image = apply_palette(image, get_palette(settings.palette))

        definition = layout_definition_from_args(args, settings)
        if not definition.is_normalized():
            print(f"Layout is not rectangular, normalizing with '{settings.layout.normalize}'")
            definition = definition.normalized(NormalizeStrategy(settings.layout.normalize))

        offset_x, offset_y = parse_offset(args.offset)
        config = BuildConfig(
            layout=definition.layout(),
            image_ref=os.path.basename(args.input),
            palette_ref=settings.palette or "",
            offset_x=offset_x,
            offset_y=offset_y,
        ).clamped_to(image)
        plan = config.plan(settings.build.patch_size)

        print("\n" + "=" * 60)
        print("MOSAIC BUILD PLAN")
        print("=" * 60)
        print(f"Image: {args.input} ({image.width}x{image.height}, {len(image.palette)} colors)")
        print(f"Layout: {config.layout.width}x{config.layout.height}, {len(config.layout)} sections")
        print(f"Offset: ({config.offset_x}, {config.offset_y})")
        print(f"Patch size: {plan.patch_size}px")
        print(f"Steps: {len(plan)}")
        lost = uncovered_area(config.layout, plan.patch_size)
        if lost:
            print(f"  [WARN] {lost} layout pixels fall outside whole patches")

        if args.step is not None and len(plan) == 0:
            print("  [WARN] Plan has no steps; no patch fits inside the layout")
        elif args.step is not None:
            index = plan.clamp_index(args.step - 1)
            step = build_step(
                image, plan, index,
                mode=LayerMode(settings.build.layer_mode),
                max_layers=settings.build.max_layers,
            )
            print(f"\nStep {index + 1}/{len(plan)} at ({step.x}, {step.y}), plate {step.section_index + 1}")
            if exceeds_layer_limit(step.patch, settings.build.max_layers):
                print(f"  [WARN] More than {settings.build.max_layers} colors; rarest colors dropped")
            for number, layer in enumerate(step.layers, start=1):
                color = step.patch.palette[layer.palette_index]
                print(f"  Layer {number:>2}: {color.hex} ({step.patch.count_for(layer.palette_index)} px, "
                      f"{layer.pixel_count} px shown)")

        if args.export:
            results = ExportManager(settings).export_build(image, config)
            print(f"  Layer images: {len(results['layer_images'])}")

        return True

    except (ValueError, FileNotFoundError) as e:
        print(f"\nError: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return False


def main():
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    if args.list_palettes:
        list_palettes()
        return

    if not args.input:
        print("Error: Input image file is required")
        sys.exit(1)

    success = run(args)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
