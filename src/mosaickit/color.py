"""
RGBA colour values used by indexed images and build palettes.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class Pixel:
    """Single RGBA colour. Components are 0-255."""
    r: int
    g: int
    b: int
    a: int = 255

    def __post_init__(self):
        """Store each component masked to a byte."""
        for name in ("r", "g", "b", "a"):
            object.__setattr__(self, name, int(getattr(self, name)) & 0xFF)

    @property
    def brightness(self) -> float:
        """Perceptual brightness scaled by alpha."""
        return (0.299 * self.r + 0.587 * self.g + 0.114 * self.b) * (self.a / 255.0)

    @property
    def rgb(self) -> Tuple[int, int, int]:
        return (self.r, self.g, self.b)

    @property
    def rgba(self) -> Tuple[int, int, int, int]:
        return (self.r, self.g, self.b, self.a)

    @property
    def hex(self) -> str:
        """Hex string in the form #rrggbb (lowercase, alpha dropped)."""
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    def opaque(self) -> "Pixel":
        """Same colour with alpha forced to 255."""
        return Pixel(self.r, self.g, self.b, 255)

    @classmethod
    def from_hex(cls, text: str) -> "Pixel":
        """
        Parse #rrggbb, rrggbb, #rgb or rgb.

        Anything that does not parse yields opaque black.
        """
        stripped = text.strip()
        if stripped.startswith("#"):
            stripped = stripped[1:]
        if len(stripped) == 3:
            stripped = "".join(ch * 2 for ch in stripped)
        if len(stripped) != 6:
            return BLACK
        try:
            r = int(stripped[0:2], 16)
            g = int(stripped[2:4], 16)
            b = int(stripped[4:6], 16)
        except ValueError:
            return BLACK
        return cls(r, g, b)

    @classmethod
    def from_hex_option(cls, text: Optional[str]) -> Optional["Pixel"]:
        """Parse hex, returning None for missing or blank input."""
        if text is None or not text.strip():
            return None
        return cls.from_hex(text)

    @classmethod
    def coerce(cls, value: "ColorLike") -> "Pixel":
        """
        Build a Pixel from a Pixel, an RGB(A) tuple or a hex string.

        Integer components are masked to a byte so signed-byte palettes
        from a quantizer land in 0-255.
        """
        if isinstance(value, Pixel):
            return value
        if isinstance(value, str):
            return cls.from_hex(value)
        components = [int(c) & 0xFF for c in value]
        if len(components) in (3, 4):
            return cls(*components)
        raise ValueError(f"Expected 3 or 4 colour components, got {len(components)}")


ColorLike = Union[Pixel, str, Sequence[int]]

BLACK = Pixel(0, 0, 0, 255)
WHITE = Pixel(255, 255, 255, 255)
