"""
Layer decomposition of a single patch into an ordered build sequence.

Colors are placed from least to most frequent; equally frequent colors go
darkest first (lower canonical palette index). All ordering is done with
explicit sorts so results never depend on dict iteration order.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .color import ColorLike, Pixel
from .indexed_image import IndexedImage

logger = logging.getLogger(__name__)

MAX_LAYERS = 16
LAYER_BACKGROUND = Pixel(220, 220, 220)


class LayerMode(str, Enum):
    """Discrete: one color per layer. Cumulative: everything placed so far."""
    DISCRETE = "discrete"
    CUMULATIVE = "cumulative"


@dataclass(frozen=True, eq=False)
class LayerSpec:
    """
    One build layer of a patch.

    palette_index is the color this layer introduces; color_set holds every
    index drawn in the layer (just palette_index for discrete layers).
    indices is the patch index grid the mask was taken from.
    """
    palette_index: int
    color_set: Tuple[int, ...]
    mask: np.ndarray
    indices: np.ndarray = field(repr=False)

    @property
    def pixel_count(self) -> int:
        return int(self.mask.sum())

    def render(self, palette: Sequence[ColorLike],
               background: ColorLike = LAYER_BACKGROUND) -> np.ndarray:
        """
        Draw the layer as an RGB array.

        Args:
            palette: Colors to draw with, indexed like the patch
            background: Color for pixels outside the layer

        Returns:
            (height, width, 3) uint8 array
        """
        h, w = self.mask.shape
        rgb = np.empty((h, w, 3), dtype=np.uint8)
        rgb[:, :] = Pixel.coerce(background).rgb
        for index in self.color_set:
            rgb[(self.indices == index) & self.mask] = Pixel.coerce(palette[index]).rgb
        return rgb

    def __eq__(self, other):
        if not isinstance(other, LayerSpec):
            return NotImplemented
        return (
            self.palette_index == other.palette_index
            and self.color_set == other.color_set
            and np.array_equal(self.mask, other.mask)
        )

    __hash__ = None


def colors_by_ascending_count(patch: IndexedImage) -> List[Tuple[int, int]]:
    """(palette index, count) pairs, by count then palette index."""
    return sorted(
        ((index, count) for index, count in patch.counts.items() if count > 0),
        key=lambda item: (item[1], item[0]),
    )


def color_usage(image: IndexedImage) -> List[Tuple[int, int]]:
    """(palette index, count) pairs from most to least used, ties by palette index."""
    return sorted(
        ((index, count) for index, count in image.counts.items() if count > 0),
        key=lambda item: (-item[1], item[0]),
    )


def exceeds_layer_limit(patch: IndexedImage, max_layers: int = MAX_LAYERS) -> bool:
    """Whether decomposing the patch would drop colors."""
    return len(colors_by_ascending_count(patch)) > max_layers


def _layer_order(patch: IndexedImage, max_layers: int) -> List[int]:
    if max_layers <= 0:
        raise ValueError(f"max_layers must be positive, got {max_layers}")
    ordered = [index for index, _ in colors_by_ascending_count(patch)]
    if len(ordered) > max_layers:
        logger.debug(
            "Patch has %d colors, dropping the %d rarest",
            len(ordered), len(ordered) - max_layers,
        )
        ordered = ordered[-max_layers:]
    return ordered


def _make_layer(grid: np.ndarray, palette_index: int, color_set: Tuple[int, ...],
                mask: np.ndarray) -> LayerSpec:
    mask.setflags(write=False)
    return LayerSpec(palette_index, color_set, mask, grid)


def discrete_layers(patch: IndexedImage, max_layers: int = MAX_LAYERS) -> List[LayerSpec]:
    """One layer per color; each mask covers exactly that color's pixels."""
    grid = patch.index_grid()
    return [
        _make_layer(grid, index, (index,), grid == index)
        for index in _layer_order(patch, max_layers)
    ]


def cumulative_layers(patch: IndexedImage, max_layers: int = MAX_LAYERS) -> List[LayerSpec]:
    """
    Layer i covers the first i + 1 colors in build order.

    Each layer is a strict superset of the previous one, showing what has
    been placed so far.
    """
    grid = patch.index_grid()
    layers = []
    placed: List[int] = []
    covered = np.zeros(grid.shape, dtype=bool)
    for index in _layer_order(patch, max_layers):
        placed.append(index)
        covered = covered | (grid == index)
        layers.append(_make_layer(grid, index, tuple(sorted(placed)), covered))
    return layers


def decompose(patch: IndexedImage, mode: LayerMode = LayerMode.CUMULATIVE,
              max_layers: Optional[int] = None) -> List[LayerSpec]:
    """Layers for a patch in the requested mode."""
    limit = MAX_LAYERS if max_layers is None else max_layers
    if LayerMode(mode) is LayerMode.DISCRETE:
        return discrete_layers(patch, limit)
    return cumulative_layers(patch, limit)
