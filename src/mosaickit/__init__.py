"""
Mosaic Build Instruction Generator

Turns an indexed pixel image into plate layouts, fixed-size patches and
ordered color layers for brick, tile and bead mosaics.
"""

__version__ = "1.0.0"
__author__ = "Mosaic Kit Generator"

from .color import Pixel
from .errors import (EmptyPalette, InvalidDimensions, InvalidPaletteIndex,
                     MosaicError, OutOfBounds)
from .indexed_image import IndexedImage
from .layout import (ColumnDef, LayoutDefinition, RowDef, Section, SectionLayout,
                     is_rectangular, normalize_by_adding_cell,
                     normalize_by_enlarging_last_cell)
from .patch_plan import PATCH_SIZE, PatchPlan, steps_for
from .layers import (LayerMode, LayerSpec, colors_by_ascending_count,
                     cumulative_layers, decompose, discrete_layers)
from .build import BuildConfig, BuildStep, RunTokenIssuer, iter_build_steps
from .config import Settings

__all__ = [
    "Pixel",
    "MosaicError",
    "InvalidDimensions",
    "InvalidPaletteIndex",
    "EmptyPalette",
    "OutOfBounds",
    "IndexedImage",
    "Section",
    "RowDef",
    "ColumnDef",
    "SectionLayout",
    "LayoutDefinition",
    "is_rectangular",
    "normalize_by_adding_cell",
    "normalize_by_enlarging_last_cell",
    "PATCH_SIZE",
    "PatchPlan",
    "steps_for",
    "LayerMode",
    "LayerSpec",
    "colors_by_ascending_count",
    "discrete_layers",
    "cumulative_layers",
    "decompose",
    "BuildConfig",
    "BuildStep",
    "RunTokenIssuer",
    "iter_build_steps",
    "Settings",
]
