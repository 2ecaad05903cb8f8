"""Deterministic resource map generation.

The layout is a pure function of the seed: a xorshift32 stream drives a
Fisher-Yates shuffle of all cell indices, and the shuffled sequence is cut
into categories with a golden-ratio cascade. Browser clients mirror this
computation, so every step stays in 32-bit unsigned integer arithmetic.
"""
from __future__ import annotations
import math
from typing import Iterator, List, Tuple

from .types import CELL_COUNT, CELL_TYPES, OPEN, GRID_SIZE, Layout, in_bounds

PHI = 0.61803
MASK32 = 0xFFFFFFFF
# Substitute for seed 0, which would lock xorshift at zero forever
DEFAULT_SEED = 2463534242


def normalize_seed(seed: int) -> int:
    """Interpret any int as an unsigned 32-bit seed."""
    return int(seed) & MASK32


def xorshift32(seed: int) -> Iterator[int]:
    state = normalize_seed(seed) or DEFAULT_SEED
    while True:
        state ^= (state << 13) & MASK32
        state ^= state >> 17
        state ^= (state << 5) & MASK32
        yield state


def shuffled_indices(seed: int, count: int = CELL_COUNT) -> List[int]:
    rng = xorshift32(seed)
    perm = list(range(count))
    for i in range(count - 1, 0, -1):
        j = next(rng) % (i + 1)
        perm[i], perm[j] = perm[j], perm[i]
    return perm


def _round_half_up(v: float) -> int:
    return int(math.floor(v + 0.5))


def cascade_counts(total: int = CELL_COUNT) -> Tuple[int, ...]:
    """Category sizes in CELL_TYPES order; the last category takes the tail."""
    counts = []
    remaining = total
    for _ in CELL_TYPES[:-1]:
        n = min(remaining, _round_half_up(PHI * remaining))
        counts.append(n)
        remaining -= n
    counts.append(remaining)
    return tuple(counts)


def generate_layout(seed: int) -> Layout:
    seed = normalize_seed(seed)
    perm = shuffled_indices(seed)
    cells = [OPEN] * CELL_COUNT
    pos = 0
    for kind, n in zip(CELL_TYPES, cascade_counts(len(perm))):
        end = min(len(perm), pos + n)
        for idx in perm[pos:end]:
            cells[idx] = kind
        pos = end
    return Layout(seed=seed, cells=tuple(cells))


def resource_type(seed: int, x: int, y: int) -> str:
    if not in_bounds(x, y):
        raise ValueError(f"cell out of bounds: ({x}, {y})")
    return generate_layout(seed).cells[y * GRID_SIZE + x]
