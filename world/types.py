from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Literal, Tuple, TypedDict

# Square world grid; cell index = y * GRID_SIZE + x
GRID_SIZE = 24
CELL_COUNT = GRID_SIZE * GRID_SIZE
CENTER: Tuple[int, int] = (GRID_SIZE // 2, GRID_SIZE // 2)

ResourceType = Literal['open', 'wood', 'stone', 'gold', 'diamond']

OPEN = 'open'
WOOD = 'wood'
STONE = 'stone'
GOLD = 'gold'
DIAMOND = 'diamond'

# Cascade order of the map generator; also the inventory keys (minus open)
CELL_TYPES: Tuple[str, ...] = (OPEN, WOOD, STONE, GOLD, DIAMOND)
RESOURCES: Tuple[str, ...] = (WOOD, STONE, GOLD, DIAMOND)


class Cell(TypedDict):
    x: int
    y: int


class SpawnedCell(TypedDict):
    x: int
    y: int
    type: str


def in_bounds(x: int, y: int) -> bool:
    return 0 <= x < GRID_SIZE and 0 <= y < GRID_SIZE


def clamp_coord(v: int) -> int:
    return max(0, min(GRID_SIZE - 1, int(v)))


def manhattan(ax: int, ay: int, bx: int, by: int) -> int:
    return abs(ax - bx) + abs(ay - by)


@dataclass(frozen=True)
class Layout:
    """Generated resource layout for one seed.

    `cells` holds one resource type per cell index (576 entries).
    """
    seed: int
    cells: Tuple[ResourceType, ...]

    def type_at(self, x: int, y: int) -> ResourceType:
        if not in_bounds(x, y):
            raise ValueError(f"cell out of bounds: ({x}, {y})")
        return self.cells[y * GRID_SIZE + x]

    def counts(self) -> Dict[str, int]:
        out = {t: 0 for t in CELL_TYPES}
        for t in self.cells:
            out[t] += 1
        return out
