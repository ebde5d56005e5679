"""
Validation errors raised when building or cropping indexed images.
"""


class MosaicError(ValueError):
    """Base class for invalid mosaic data."""


class InvalidDimensions(MosaicError):
    """Pixel or index buffer length does not match width * height."""


class InvalidPaletteIndex(MosaicError):
    """An index buffer value references a palette entry that does not exist."""


class EmptyPalette(MosaicError):
    """Palette has zero entries."""


class OutOfBounds(MosaicError):
    """A crop rectangle exceeds the source image."""
