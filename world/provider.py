from __future__ import annotations
import threading
from typing import Optional

from .mapgen import generate_layout, normalize_seed
from .types import Layout

# Layout cache seam: one generated layout, keyed by the current seed.
# Regeneration is deterministic, so the cache never changes what callers see.

_layout: Optional[Layout] = None
_lock = threading.Lock()


def get_layout(seed: int) -> Layout:
    global _layout
    seed = normalize_seed(seed)
    with _lock:
        if _layout is None or _layout.seed != seed:
            _layout = generate_layout(seed)
        return _layout


def invalidate() -> None:
    """Drop the cached layout (seed changed, or tests want a cold start)."""
    global _layout
    with _lock:
        _layout = None


def base_type(seed: int, x: int, y: int) -> str:
    return get_layout(seed).type_at(x, y)
