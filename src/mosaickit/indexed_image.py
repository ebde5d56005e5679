"""
Indexed pixel images: an ordered palette plus one palette index per pixel.

Images built from raw or quantized data are canonicalized once, so two
images with the same visual content always carry identical index buffers.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .color import BLACK, ColorLike, Pixel
from .errors import EmptyPalette, InvalidDimensions, InvalidPaletteIndex, OutOfBounds

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False, repr=False)
class IndexedImage:
    """
    Immutable indexed image.

    Construction validates the buffer against the dimensions and palette,
    so every live instance satisfies len(pixels) == width * height and
    0 <= pixel < len(palette).
    """
    width: int
    height: int
    palette: Tuple[Pixel, ...]
    pixels: np.ndarray
    counts: Dict[int, int] = field(init=False)

    def __post_init__(self):
        """Validate inputs, freeze the buffer and count palette usage."""
        raw = np.asarray(self.pixels).reshape(-1)
        if self.width <= 0 or self.height <= 0:
            raise InvalidDimensions(
                f"Image dimensions must be positive, got {self.width}x{self.height}"
            )
        if raw.size != self.width * self.height:
            raise InvalidDimensions(
                f"Expected {self.width * self.height} pixels for "
                f"{self.width}x{self.height}, got {raw.size}"
            )

        palette = tuple(Pixel.coerce(color) for color in self.palette)
        if not palette:
            raise EmptyPalette("Palette must contain at least one color")

        if not np.issubdtype(raw.dtype, np.integer):
            raise InvalidPaletteIndex(f"Pixel indices must be integers, got {raw.dtype}")
        if raw.min() < 0 or raw.max() >= len(palette):
            bad = raw[(raw < 0) | (raw >= len(palette))][0]
            raise InvalidPaletteIndex(
                f"Pixel index {int(bad)} outside palette of {len(palette)} colors"
            )

        # Range is checked at the input width so large values cannot wrap
        pixels = raw.astype(np.int32)
        pixels.setflags(write=False)
        indices, occurrences = np.unique(pixels, return_counts=True)
        counts = {int(i): int(n) for i, n in zip(indices, occurrences)}

        object.__setattr__(self, "palette", palette)
        object.__setattr__(self, "pixels", pixels)
        object.__setattr__(self, "counts", counts)

    @classmethod
    def from_raw_pixels(cls, rgba, width: int, height: int) -> "IndexedImage":
        """
        Index a decoded RGBA buffer.

        Args:
            rgba: Bytes or array-like of length width * height * 4, flat
                or shaped (height, width, 4)
            width: Image width in pixels
            height: Image height in pixels

        Returns:
            Canonical IndexedImage with one palette entry per distinct color
        """
        if isinstance(rgba, (bytes, bytearray, memoryview)):
            data = np.frombuffer(rgba, dtype=np.uint8)
        else:
            data = np.asarray(rgba).astype(np.uint8)

        if width <= 0 or height <= 0 or data.size != width * height * 4:
            raise InvalidDimensions(
                f"Expected {width * height * 4} RGBA bytes for {width}x{height}, got {data.size}"
            )

        flat = data.reshape(-1, 4).astype(np.uint32)
        keys = (flat[:, 0] << 24) | (flat[:, 1] << 16) | (flat[:, 2] << 8) | flat[:, 3]

        # np.unique sorts by value; reorder to first-seen order
        unique_keys, first_seen, inverse = np.unique(
            keys, return_index=True, return_inverse=True
        )
        discovery = np.argsort(first_seen, kind="stable")
        rank = np.empty_like(discovery)
        rank[discovery] = np.arange(discovery.size)
        indices = rank[inverse.reshape(-1)]

        palette = [
            Pixel(int(k >> 24) & 0xFF, int(k >> 16) & 0xFF, int(k >> 8) & 0xFF, int(k) & 0xFF)
            for k in unique_keys[discovery]
        ]
        logger.debug("Indexed %dx%d image with %d distinct colors", width, height, len(palette))
        return cls(width, height, tuple(palette), indices).canonical()

    @classmethod
    def from_quantized(cls, width: int, height: int,
                       palette: Sequence[ColorLike],
                       indices: Sequence[int]) -> "IndexedImage":
        """
        Wrap a quantizer result (palette + index buffer).

        Raises:
            InvalidDimensions: width * height != len(indices)
            EmptyPalette: palette has no entries
            InvalidPaletteIndex: an index is outside the palette
        """
        return cls(width, height, tuple(palette), np.asarray(indices)).canonical()

    def canonical(self) -> "IndexedImage":
        """
        Sort the palette by brightness and remap pixel indices.

        Ties keep their current order, so canonicalizing a canonical image
        returns an equal image.
        """
        order = sorted(range(len(self.palette)), key=lambda i: self.palette[i].brightness)
        if order == list(range(len(self.palette))):
            return self
        remap = np.empty(len(order), dtype=np.int32)
        remap[order] = np.arange(len(order), dtype=np.int32)
        return IndexedImage(
            self.width,
            self.height,
            tuple(self.palette[i] for i in order),
            remap[self.pixels],
        )

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def index_grid(self) -> np.ndarray:
        """Read-only (height, width) view of the index buffer."""
        return self.pixels.reshape(self.height, self.width)

    def pixel_index(self, x: int, y: int) -> int:
        """Palette index at (x, y)."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Coordinates ({x}, {y}) outside {self.width}x{self.height} image")
        return int(self.pixels[y * self.width + x])

    def color_at(self, x: int, y: int) -> Pixel:
        return self.palette[self.pixel_index(x, y)]

    def count_for(self, palette_index: int) -> int:
        """Occurrences of a palette index, 0 if absent."""
        return self.counts.get(palette_index, 0)

    def indices_by_count(self) -> List[int]:
        """Present palette indices from least to most frequent, ties by index."""
        return [index for index, _ in sorted(self.counts.items(), key=lambda item: (item[1], item[0]))]

    def crop(self, x: int, y: int, w: int, h: int) -> "IndexedImage":
        """
        Copy a sub-rectangle sharing this image's palette.

        Counts are recomputed over the region only, so palette entries may
        occur zero times in the result.
        """
        if w <= 0 or h <= 0 or x < 0 or y < 0 or x + w > self.width or y + h > self.height:
            raise OutOfBounds(
                f"Crop ({x}, {y}, {w}, {h}) outside {self.width}x{self.height} image"
            )
        region = self.index_grid()[y:y + h, x:x + w]
        return IndexedImage(w, h, self.palette, region)

    def crop_rect(self, rect) -> "IndexedImage":
        """Crop using any value with x, y, width and height attributes."""
        return self.crop(rect.x, rect.y, rect.width, rect.height)

    def with_palette(self, new_palette: Sequence[ColorLike]) -> "IndexedImage":
        """
        Replace palette colors positionally.

        A shorter palette is padded with opaque black and a longer one is
        truncated, so every pixel index stays valid.
        """
        colors = [Pixel.coerce(color) for color in new_palette][:len(self.palette)]
        colors.extend([BLACK] * (len(self.palette) - len(colors)))
        return IndexedImage(self.width, self.height, tuple(colors), self.pixels)

    def to_rgba(self) -> np.ndarray:
        """Expand to a (height, width, 4) uint8 RGBA array."""
        lut = np.array([color.rgba for color in self.palette], dtype=np.uint8)
        return lut[self.pixels].reshape(self.height, self.width, 4)

    def __eq__(self, other):
        if not isinstance(other, IndexedImage):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and self.palette == other.palette
            and np.array_equal(self.pixels, other.pixels)
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"IndexedImage({self.width}x{self.height}, "
            f"{len(self.palette)} colors, {len(self.counts)} used)"
        )
