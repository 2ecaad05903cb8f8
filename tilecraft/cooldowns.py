# tilecraft/cooldowns.py
import time
from typing import Callable, Dict, Optional

from .config import get_setting


class ActionCooldown:
    """Shared per-player action gate for move/harvest/build style intents.

    Timestamps are ephemeral; a restart forgets them.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, seconds: Optional[float] = None):
        self.clock = clock
        if seconds is None:
            seconds = float(get_setting('actions', 'cooldown_ms', 950)) / 1000.0
        self.seconds = seconds
        self._last: Dict[int, float] = {}

    def ready(self, player_id: int) -> bool:
        last = self._last.get(player_id)
        if last is None:
            return True
        return (self.clock() - last) >= self.seconds

    def stamp(self, player_id: int) -> None:
        self._last[player_id] = self.clock()

    def forget(self, player_id: int) -> None:
        self._last.pop(player_id, None)
