"""
Named build palettes and palette substitution for indexed images.

Palettes are plain constants; callers pass the one they want explicitly.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Sequence, Tuple

from .color import ColorLike, Pixel
from .indexed_image import IndexedImage

MAX_PALETTE_COLORS = 16


@dataclass(frozen=True)
class NamedPalette:
    """Ordered set of physical build colors."""
    name: str
    colors: Tuple[Pixel, ...]
    description: str = ""

    def __post_init__(self):
        """Coerce colors and enforce the palette size limit."""
        colors = tuple(Pixel.coerce(color).opaque() for color in self.colors)
        if not colors:
            raise ValueError(f"Palette {self.name} must have at least one color")
        if len(colors) > MAX_PALETTE_COLORS:
            raise ValueError(
                f"Palette {self.name} has {len(colors)} colors, limit is {MAX_PALETTE_COLORS}"
            )
        object.__setattr__(self, "colors", colors)

    @classmethod
    def from_hex(cls, name: str, hex_values: Sequence[str], description: str = "") -> "NamedPalette":
        return cls(name, tuple(Pixel.from_hex(value) for value in hex_values), description)

    @property
    def hex_values(self) -> List[str]:
        return [color.hex for color in self.colors]

    def __len__(self) -> int:
        return len(self.colors)


DEFAULT_PALETTE = NamedPalette.from_hex(
    "DEFAULT",
    ["#000000", "#ffffff", "#c83232", "#3278c8"],
    "Starter palette: black, white, red, blue",
)

GREYSCALE_PALETTE = NamedPalette.from_hex(
    "GREYSCALE",
    ["#000000", "#555555", "#aaaaaa", "#ffffff"],
    "Four evenly spaced greys",
)

BRICK_CLASSIC_PALETTE = NamedPalette.from_hex(
    "BRICK_CLASSIC",
    ["#05131d", "#6c6e68", "#0055bf", "#237841", "#c91a09", "#e4cd9e", "#f2cd37", "#ffffff"],
    "Common plate colors for brick mosaics",
)

PALETTES = MappingProxyType({
    palette.name: palette
    for palette in (DEFAULT_PALETTE, GREYSCALE_PALETTE, BRICK_CLASSIC_PALETTE)
})


def get_palette(name: str) -> NamedPalette:
    """Look up a named palette (case-insensitive)."""
    key = name.upper()
    if key not in PALETTES:
        raise ValueError(f"Unknown palette '{name}'. Available: {list(PALETTES.keys())}")
    return PALETTES[key]


def available_palettes() -> List[str]:
    return list(PALETTES.keys())


def palette_info(name: str) -> Dict:
    """Summary of a named palette for listings."""
    palette = get_palette(name)
    return {
        "name": palette.name,
        "description": palette.description,
        "colors": [
            {"hex": color.hex, "rgb": color.rgb, "brightness": round(color.brightness, 2)}
            for color in palette.colors
        ],
    }


def apply_palette(image: IndexedImage, palette) -> IndexedImage:
    """
    Restyle an image with a build palette.

    Colors are made opaque and substituted positionally; the image palette
    length is kept (padding with black or truncating as needed).
    """
    colors = palette.colors if isinstance(palette, NamedPalette) else palette
    return image.with_palette([Pixel.coerce(color).opaque() for color in colors])
