"""
Build configurations and the step-by-step build pipeline.

A build config ties a layout to an image and palette reference plus an
offset. Walking it yields one step per patch with that patch's layers.
"""

import logging
import threading
from dataclasses import dataclass, replace
from typing import Iterator, List, Optional

from .indexed_image import IndexedImage
from .layers import MAX_LAYERS, LayerMode, LayerSpec, decompose
from .layout import SectionLayout
from .patch_plan import PATCH_SIZE, PatchPlan, clamp_offset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildConfig:
    """Stateless build definition: layout + image + palette + offset."""
    layout: SectionLayout
    image_ref: str = ""
    palette_ref: str = ""
    offset_x: int = 0
    offset_y: int = 0

    def plan(self, patch_size: int = PATCH_SIZE) -> PatchPlan:
        return PatchPlan.build(self.layout, patch_size, self.offset_x, self.offset_y)

    def clamped_to(self, image: IndexedImage) -> "BuildConfig":
        """Copy whose offset keeps the layout inside the image where possible."""
        offset_x, offset_y = clamp_offset(
            self.offset_x, self.offset_y, image.width, image.height, self.layout
        )
        if (offset_x, offset_y) == (self.offset_x, self.offset_y):
            return self
        return replace(self, offset_x=offset_x, offset_y=offset_y)


@dataclass(frozen=True)
class BuildStep:
    """One patch of a build with its layers."""
    index: int
    section_index: int
    x: int
    y: int
    patch: IndexedImage
    layers: List[LayerSpec]


def build_step(image: IndexedImage, plan: PatchPlan, index: int,
               mode: LayerMode = LayerMode.CUMULATIVE,
               max_layers: int = MAX_LAYERS) -> BuildStep:
    """
    Crop and decompose a single step of a plan.

    Raises:
        OutOfBounds: the step's patch does not fit inside the image
    """
    x, y = plan[index]
    patch = image.crop(x, y, plan.patch_size, plan.patch_size)
    return BuildStep(
        index=index,
        section_index=plan.section_index_of(index),
        x=x,
        y=y,
        patch=patch,
        layers=decompose(patch, mode, max_layers),
    )


def iter_build_steps(image: IndexedImage, config: BuildConfig,
                     patch_size: int = PATCH_SIZE,
                     mode: LayerMode = LayerMode.CUMULATIVE,
                     max_layers: int = MAX_LAYERS) -> Iterator[BuildStep]:
    """Yield every step of a build in order."""
    plan = config.plan(patch_size)
    logger.debug("Building %d steps for image %s", len(plan), config.image_ref or "<unnamed>")
    for index in range(len(plan)):
        yield build_step(image, plan, index, mode, max_layers)


class RunTokenIssuer:
    """
    Monotonically increasing run tokens for asynchronous recomputation.

    Callers issue a token per trigger and drop any result whose token is
    no longer the latest.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._latest: Optional[int] = None
        self._next = 0

    def issue(self) -> int:
        with self._lock:
            token = self._next
            self._next += 1
            self._latest = token
            return token

    @property
    def latest(self) -> Optional[int]:
        with self._lock:
            return self._latest

    def is_current(self, token: int) -> bool:
        with self._lock:
            return self._latest is not None and token == self._latest
