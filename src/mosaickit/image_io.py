"""
Image loading and saving for the command line surface.
"""

import logging
import os

import numpy as np
from PIL import Image

from .indexed_image import IndexedImage

logger = logging.getLogger(__name__)


def load_rgba(image_path: str) -> np.ndarray:
    """Decode an image file into a (height, width, 4) uint8 array."""
    if not os.path.exists(image_path):
        raise FileNotFoundError(f"Image not found: {image_path}")

    with Image.open(image_path) as pil_image:
        if pil_image.mode != 'RGBA':
            pil_image = pil_image.convert('RGBA')
        return np.array(pil_image)


def load_indexed_image(image_path: str) -> IndexedImage:
    """Decode an already pixelated/quantized image into an IndexedImage."""
    rgba = load_rgba(image_path)
    height, width = rgba.shape[:2]
    image = IndexedImage.from_raw_pixels(rgba, width, height)
    logger.debug("Loaded %s: %dx%d, %d colors", image_path, width, height, len(image.palette))
    return image


def save_rgb(rgb: np.ndarray, path: str, scale: int = 1):
    """Write an RGB array as PNG, upscaled with nearest-neighbour sampling."""
    pil_image = Image.fromarray(np.ascontiguousarray(rgb, dtype=np.uint8))
    if scale > 1:
        pil_image = pil_image.resize(
            (pil_image.width * scale, pil_image.height * scale),
            Image.NEAREST
        )
    dir_path = os.path.dirname(path)
    if dir_path:
        os.makedirs(dir_path, exist_ok=True)
    pil_image.save(path)
