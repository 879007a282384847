from __future__ import annotations

"""
File: gridsim/sim/grid.py
Purpose: Immutable cell matrix for a run plus lookup helpers.
Key responsibilities:
- Parse character-matrix grid definitions ('.', '#', 'c', '_').
- Load stored JSON layouts.
- Answer bounds/passability/neighbour/charging-station queries.
"""

from dataclasses import dataclass, field
import logging
from typing import Any, Iterable, Sequence

from gridsim.sim.entities import Cell, CellType, Coord

logger = logging.getLogger("gridsim.grid")

CHAR_TO_CELL_TYPE = {
    ".": CellType.WALKABLE,
    "#": CellType.WALL,
    "c": CellType.CHARGING_STATION,
    "_": CellType.EMPTY,
}

CELL_TYPE_TO_CHAR = {value: key for key, value in CHAR_TO_CELL_TYPE.items()}

# Stored layouts use the camelCase name for charging stations.
_LAYOUT_TYPE_ALIASES = {
    "chargingStation": CellType.CHARGING_STATION,
    "charging_station": CellType.CHARGING_STATION,
    "walkable": CellType.WALKABLE,
    "wall": CellType.WALL,
    "empty": CellType.EMPTY,
}

# Neighbour expansion order: up, left, right, down.
_OFFSETS = ((0, -1), (-1, 0), (1, 0), (0, 1))


def parse_character_matrix(matrix: str, grid_name: str = "grid") -> list[list[Cell]]:
    """Parse a newline separated character matrix into rows of cells.

    Rows are padded to the widest row with EMPTY cells; unknown characters
    become walls and are logged.
    """
    trimmed = matrix.strip()
    if not trimmed:
        return []
    rows = [row.strip() for row in trimmed.split("\n")]
    max_width = max(len(row) for row in rows)

    layout: list[list[Cell]] = []
    for y, row in enumerate(rows):
        cells: list[Cell] = []
        for x in range(max_width):
            char = row[x] if x < len(row) else "_"
            cell_type = CHAR_TO_CELL_TYPE.get(char)
            if cell_type is None:
                logger.warning("grid %r: unknown character %r at (%s,%s), defaulting to wall", grid_name, char, x, y)
                cell_type = CellType.WALL
            cells.append(Cell(type=cell_type, coordinates=(x, y)))
        layout.append(cells)
    return layout


@dataclass(frozen=True)
class Grid:
    """Rectangular, read-only cell matrix indexed as rows[y][x]."""
    rows: tuple[tuple[Cell, ...], ...]
    name: str = "grid"
    charging_stations: tuple[Coord, ...] = field(init=False, default=())

    def __post_init__(self) -> None:
        rows = tuple(tuple(row) for row in self.rows)
        if rows:
            width = len(rows[0])
            for y, row in enumerate(rows):
                if len(row) != width:
                    raise ValueError(f"grid {self.name!r} is not rectangular: row {y} has {len(row)} cells, expected {width}")
                for x, cell in enumerate(row):
                    if cell.coordinates != (x, y):
                        raise ValueError(f"grid {self.name!r}: cell at ({x},{y}) claims {cell.coordinates}")
        stations = tuple(
            cell.coordinates
            for row in rows
            for cell in row
            if cell.type == CellType.CHARGING_STATION
        )
        object.__setattr__(self, "rows", rows)
        object.__setattr__(self, "charging_stations", stations)

    @classmethod
    def from_text(cls, matrix: str, name: str = "grid") -> "Grid":
        return cls(rows=tuple(tuple(row) for row in parse_character_matrix(matrix, name)), name=name)

    @classmethod
    def from_rows(cls, rows: Iterable[str], name: str = "grid") -> "Grid":
        return cls.from_text("\n".join(rows), name=name)

    @classmethod
    def from_layout(cls, layout: Sequence[Sequence[dict[str, Any]]], name: str = "grid") -> "Grid":
        """Build a grid from a stored JSON layout of {type, coordinates: {x, y}} cells."""
        rows: list[tuple[Cell, ...]] = []
        for y, raw_row in enumerate(layout):
            cells: list[Cell] = []
            for x, raw in enumerate(raw_row):
                cell_type = _LAYOUT_TYPE_ALIASES.get(str(raw.get("type", "")))
                if cell_type is None:
                    logger.warning("grid %r: unknown cell type %r at (%s,%s), defaulting to wall", name, raw.get("type"), x, y)
                    cell_type = CellType.WALL
                cells.append(Cell(type=cell_type, coordinates=(x, y)))
            rows.append(tuple(cells))
        return cls(rows=tuple(rows), name=name)

    @property
    def height(self) -> int:
        return len(self.rows)

    @property
    def width(self) -> int:
        return len(self.rows[0]) if self.rows else 0

    def in_bounds(self, coord: Coord) -> bool:
        x, y = coord
        return 0 <= x < self.width and 0 <= y < self.height

    def cell(self, coord: Coord) -> Cell:
        if not self.in_bounds(coord):
            raise IndexError(f"({coord[0]},{coord[1]}) outside {self.width}x{self.height} grid {self.name!r}")
        return self.rows[coord[1]][coord[0]]

    def is_passable(self, coord: Coord) -> bool:
        """Walkable or charging station, inside the grid."""
        return self.in_bounds(coord) and self.cell(coord).passable

    def is_walkable(self, coord: Coord) -> bool:
        return self.in_bounds(coord) and self.cell(coord).type == CellType.WALKABLE

    def is_charging_station(self, coord: Coord) -> bool:
        return self.in_bounds(coord) and self.cell(coord).type == CellType.CHARGING_STATION

    def neighbors(self, coord: Coord) -> list[Coord]:
        x, y = coord
        return [
            (x + dx, y + dy)
            for dx, dy in _OFFSETS
            if self.is_passable((x + dx, y + dy))
        ]

    def passable_cells(self) -> list[Coord]:
        return [cell.coordinates for row in self.rows for cell in row if cell.passable]

    def to_text(self) -> str:
        return "\n".join("".join(CELL_TYPE_TO_CHAR[cell.type] for cell in row) for row in self.rows)

    def to_layout(self) -> list[list[dict[str, Any]]]:
        return [
            [{"type": cell.type.value, "coordinates": {"x": cell.coordinates[0], "y": cell.coordinates[1]}} for cell in row]
            for row in self.rows
        ]
