"""
Patch plans: the ordered fixed-size patches a builder places one at a time.
"""

import logging
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Iterator, List, Tuple

from .layout import SectionLayout

logger = logging.getLogger(__name__)

PATCH_SIZE = 16


def steps_for(layout: SectionLayout, patch_size: int = PATCH_SIZE,
              offset_x: int = 0, offset_y: int = 0) -> List[Tuple[int, int]]:
    """
    Top-left image coordinates of every patch, in build order.

    Sections are visited in the layout's stored order; within a section
    patches run row by row, left to right. A section edge that is not a
    multiple of patch_size loses its remainder strip. Coordinates are not
    checked against any image.
    """
    if patch_size <= 0:
        raise ValueError(f"Patch size must be positive, got {patch_size}")

    steps = []
    for section in layout.sections:
        cols = section.width // patch_size
        rows = section.height // patch_size
        for cy in range(rows):
            for cx in range(cols):
                steps.append((
                    offset_x + section.x + cx * patch_size,
                    offset_y + section.y + cy * patch_size,
                ))
    return steps


def uncovered_area(layout: SectionLayout, patch_size: int = PATCH_SIZE) -> int:
    """Pixels of the layout that no patch covers because of remainder strips."""
    if patch_size <= 0:
        raise ValueError(f"Patch size must be positive, got {patch_size}")
    covered = sum(
        (s.width // patch_size) * (s.height // patch_size) * patch_size * patch_size
        for s in layout.sections
    )
    return sum(s.area for s in layout.sections) - covered


def max_offset(image_width: int, image_height: int, layout: SectionLayout) -> Tuple[int, int]:
    """Largest offset that keeps the layout inside the image; (0, 0) if it does not fit."""
    return (max(0, image_width - layout.width), max(0, image_height - layout.height))


def clamp_offset(offset_x: int, offset_y: int, image_width: int, image_height: int,
                 layout: SectionLayout) -> Tuple[int, int]:
    """Clamp an offset into [0, max_offset]."""
    max_x, max_y = max_offset(image_width, image_height, layout)
    return (min(max(offset_x, 0), max_x), min(max(offset_y, 0), max_y))


@dataclass(frozen=True)
class PatchPlan:
    """Steps for one layout, patch size and offset, with per-section bookkeeping."""
    layout: SectionLayout
    patch_size: int = PATCH_SIZE
    offset_x: int = 0
    offset_y: int = 0
    steps: Tuple[Tuple[int, int], ...] = field(init=False)
    section_starts: Tuple[int, ...] = field(init=False, repr=False)

    def __post_init__(self):
        """Enumerate steps and record where each section's steps begin."""
        steps = tuple(steps_for(self.layout, self.patch_size, self.offset_x, self.offset_y))
        starts = []
        running = 0
        for section in self.layout.sections:
            starts.append(running)
            running += (section.width // self.patch_size) * (section.height // self.patch_size)
        object.__setattr__(self, "steps", steps)
        object.__setattr__(self, "section_starts", tuple(starts))
        logger.debug(
            "Planned %d patches of %dpx over %d sections",
            len(steps), self.patch_size, len(self.layout.sections),
        )

    @classmethod
    def build(cls, layout: SectionLayout, patch_size: int = PATCH_SIZE,
              offset_x: int = 0, offset_y: int = 0) -> "PatchPlan":
        return cls(layout, patch_size, offset_x, offset_y)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[Tuple[int, int]]:
        return iter(self.steps)

    def __getitem__(self, index: int) -> Tuple[int, int]:
        return self.steps[index]

    def section_index_of(self, step_index: int) -> int:
        """Index of the section (plate) that owns a step."""
        if not (0 <= step_index < len(self.steps)):
            raise IndexError(f"Step {step_index} outside plan of {len(self.steps)} steps")
        return bisect_right(self.section_starts, step_index) - 1

    def steps_in_section(self, section_index: int) -> Tuple[Tuple[int, int], ...]:
        """Steps belonging to one section, in build order."""
        start = self.section_starts[section_index]
        section = self.layout.sections[section_index]
        count = (section.width // self.patch_size) * (section.height // self.patch_size)
        return self.steps[start:start + count]

    def clamp_index(self, index: int) -> int:
        """Clamp a step index into the plan; 0 for an empty plan."""
        if not self.steps:
            return 0
        return min(max(index, 0), len(self.steps) - 1)

    def next_index(self, index: int) -> int:
        return self.clamp_index(index + 1)

    def previous_index(self, index: int) -> int:
        return self.clamp_index(index - 1)
