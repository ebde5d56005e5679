"""
Section layouts: partition of the build surface into rectangular plates.

Layouts are authored as row definitions (row height + cell widths) or
column definitions (column width + cell heights). Ragged definitions can
be squared off with one of two named normalization strategies before a
patch plan is built from them.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from itertools import groupby
from typing import List, Sequence, Tuple, TypeVar, Union

logger = logging.getLogger(__name__)

DEFAULT_ROW_HEIGHT = 16
DEFAULT_CELL_WIDTH = 32
DEFAULT_COLUMN_WIDTH = 32
DEFAULT_CELL_HEIGHT = 16


@dataclass(frozen=True)
class Section:
    """One rectangular plate; (x, y) is its top-left offset on the surface."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def contains(self, x: int, y: int, w: int, h: int) -> bool:
        """Whether the rectangle (x, y, w, h) lies fully inside this section."""
        return x >= self.x and y >= self.y and x + w <= self.right and y + h <= self.bottom


@dataclass(frozen=True)
class RowDef:
    """A row of the layout: its height and the widths of its cells, left to right."""
    height: int
    cell_widths: Tuple[int, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "cell_widths", tuple(self.cell_widths))

    @property
    def cells(self) -> Tuple[int, ...]:
        return self.cell_widths

    @property
    def total(self) -> int:
        return sum(self.cell_widths)

    def with_cells(self, cells: Sequence[int]) -> "RowDef":
        return RowDef(self.height, tuple(cells))


@dataclass(frozen=True)
class ColumnDef:
    """A column of the layout: its width and the heights of its cells, top to bottom."""
    width: int
    cell_heights: Tuple[int, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "cell_heights", tuple(self.cell_heights))

    @property
    def cells(self) -> Tuple[int, ...]:
        return self.cell_heights

    @property
    def total(self) -> int:
        return sum(self.cell_heights)

    def with_cells(self, cells: Sequence[int]) -> "ColumnDef":
        return ColumnDef(self.width, tuple(cells))


TrackDef = TypeVar("TrackDef", RowDef, ColumnDef)


@dataclass(frozen=True)
class SectionLayout:
    """Immutable ordered list of sections. Section order is the build order."""
    sections: Tuple[Section, ...] = ()
    columns_count: int = 0
    rows_count: int = 0
    width: int = field(init=False)
    height: int = field(init=False)

    def __post_init__(self):
        """Freeze sections and derive the bounding size."""
        sections = tuple(self.sections)
        object.__setattr__(self, "sections", sections)
        object.__setattr__(self, "width", max((s.right for s in sections), default=0))
        object.__setattr__(self, "height", max((s.bottom for s in sections), default=0))

    def __len__(self) -> int:
        return len(self.sections)

    def __iter__(self):
        return iter(self.sections)

    @property
    def is_empty(self) -> bool:
        return not self.sections

    @classmethod
    def from_row_defs(cls, rows: Sequence[RowDef]) -> "SectionLayout":
        """Stack rows top to bottom, laying out each row's cells left to right."""
        sections = []
        y = 0
        for row in rows:
            x = 0
            for cell_width in row.cell_widths:
                sections.append(Section(x, y, cell_width, row.height))
                x += cell_width
            y += row.height
        return cls(
            tuple(sections),
            columns_count=max((len(row.cell_widths) for row in rows), default=0),
            rows_count=len(rows),
        )

    @classmethod
    def from_column_defs(cls, columns: Sequence[ColumnDef]) -> "SectionLayout":
        """Place columns left to right, laying out each column's cells top to bottom."""
        sections = []
        x = 0
        for column in columns:
            y = 0
            for cell_height in column.cell_heights:
                sections.append(Section(x, y, column.width, cell_height))
                y += cell_height
            x += column.width
        return cls(
            tuple(sections),
            columns_count=len(columns),
            rows_count=max((len(column.cell_heights) for column in columns), default=0),
        )

    @classmethod
    def uniform(cls, row_heights: Sequence[int], column_widths: Sequence[int]) -> "SectionLayout":
        """Regular grid; sections are emitted row by row."""
        rows = [RowDef(height, tuple(column_widths)) for height in row_heights]
        return cls(
            cls.from_row_defs(rows).sections,
            columns_count=len(column_widths),
            rows_count=len(row_heights),
        )

    def infer_row_defs(self) -> List[RowDef]:
        """
        Rebuild row definitions from the sections.

        Sections sharing a y offset form one row; the first section's height
        is taken as the row height. An empty layout gives a single default row.
        """
        if not self.sections:
            return [RowDef(DEFAULT_ROW_HEIGHT, (DEFAULT_CELL_WIDTH,))]
        by_y = sorted(self.sections, key=lambda s: (s.y, s.x))
        rows = []
        for _, group in groupby(by_y, key=lambda s: s.y):
            cells = list(group)
            rows.append(RowDef(cells[0].height, tuple(s.width for s in cells)))
        return rows

    def infer_column_defs(self) -> List[ColumnDef]:
        """Rebuild column definitions from the sections, grouped by x offset."""
        if not self.sections:
            return [ColumnDef(DEFAULT_COLUMN_WIDTH, (DEFAULT_CELL_HEIGHT,))]
        by_x = sorted(self.sections, key=lambda s: (s.x, s.y))
        columns = []
        for _, group in groupby(by_x, key=lambda s: s.x):
            cells = list(group)
            columns.append(ColumnDef(cells[0].width, tuple(s.height for s in cells)))
        return columns


def is_rectangular(defs: Sequence[Union[RowDef, ColumnDef]]) -> bool:
    """True iff defs is non-empty, no def is empty and all totals are equal."""
    if not defs:
        return False
    if any(not d.cells for d in defs):
        return False
    return len({d.total for d in defs}) == 1


def _max_total(defs: Sequence[Union[RowDef, ColumnDef]]) -> int:
    return max(1, max((d.total for d in defs), default=0))


def normalize_by_adding_cell(defs: Sequence[TrackDef]) -> List[TrackDef]:
    """
    Square off ragged definitions by appending a filler cell.

    Every row (or column) shorter than the longest one gets one new cell
    of exactly the missing size, so a new section fills the remainder.
    """
    max_total = _max_total(defs)
    normalized = []
    for d in defs:
        gap = max_total - d.total
        normalized.append(d.with_cells(d.cells + (gap,)) if gap > 0 else d)
    return normalized


def normalize_by_enlarging_last_cell(defs: Sequence[TrackDef]) -> List[TrackDef]:
    """
    Square off ragged definitions by stretching the last existing cell.

    No section is added. Definitions with no cells are left unchanged.
    """
    max_total = _max_total(defs)
    normalized = []
    for d in defs:
        gap = max_total - d.total
        if gap > 0 and d.cells:
            normalized.append(d.with_cells(d.cells[:-1] + (d.cells[-1] + gap,)))
        else:
            normalized.append(d)
    return normalized


class NormalizeStrategy(str, Enum):
    """How to square off a ragged layout."""
    ADD_CELL = "add_cell"
    ENLARGE_LAST_CELL = "enlarge_last_cell"


def normalize(defs: Sequence[TrackDef], strategy: NormalizeStrategy) -> List[TrackDef]:
    """Apply the named normalization strategy."""
    strategy = NormalizeStrategy(strategy)
    if strategy is NormalizeStrategy.ADD_CELL:
        return normalize_by_adding_cell(defs)
    return normalize_by_enlarging_last_cell(defs)


class GridDefMode(str, Enum):
    """Which kind of definition a layout is authored with."""
    BY_ROWS = "rows"
    BY_COLUMNS = "columns"


@dataclass(frozen=True)
class LayoutDefinition:
    """
    Authoring record kept beside a layout for later re-editing.

    Both definition lists are kept so switching mode does not lose edits;
    only the one selected by mode drives the layout.
    """
    mode: GridDefMode = GridDefMode.BY_ROWS
    row_defs: Tuple[RowDef, ...] = ()
    column_defs: Tuple[ColumnDef, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "mode", GridDefMode(self.mode))
        object.__setattr__(self, "row_defs", tuple(self.row_defs))
        object.__setattr__(self, "column_defs", tuple(self.column_defs))

    @property
    def active_defs(self) -> Tuple[Union[RowDef, ColumnDef], ...]:
        return self.row_defs if self.mode is GridDefMode.BY_ROWS else self.column_defs

    def layout(self) -> SectionLayout:
        """Build the layout from the active definitions as authored."""
        if self.mode is GridDefMode.BY_ROWS:
            return SectionLayout.from_row_defs(self.row_defs)
        return SectionLayout.from_column_defs(self.column_defs)

    def is_normalized(self) -> bool:
        return is_rectangular(self.active_defs)

    def normalized(self, strategy: NormalizeStrategy = NormalizeStrategy.ADD_CELL) -> "LayoutDefinition":
        """New definition with the active list normalized; rectangular input is returned as is."""
        if self.is_normalized():
            return self
        logger.debug("Normalizing %s layout with %s", self.mode.value, NormalizeStrategy(strategy).value)
        if self.mode is GridDefMode.BY_ROWS:
            return LayoutDefinition(self.mode, tuple(normalize(self.row_defs, strategy)), self.column_defs)
        return LayoutDefinition(self.mode, self.row_defs, tuple(normalize(self.column_defs, strategy)))

    @classmethod
    def from_layout(cls, layout: SectionLayout,
                    mode: GridDefMode = GridDefMode.BY_ROWS) -> "LayoutDefinition":
        """Infer both definition lists from a stored layout that has none."""
        return cls(GridDefMode(mode), tuple(layout.infer_row_defs()), tuple(layout.infer_column_defs()))
