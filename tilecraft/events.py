from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Emit:
    """One server -> client message.

    `to` set: unicast to that connection. Otherwise broadcast, skipping
    `skip` when given.
    """
    event: str
    data: Dict[str, Any]
    to: Optional[str] = None
    skip: Optional[str] = None


@dataclass
class Outbox:
    emits: List[Emit] = field(default_factory=list)
    # flush a snapshot once the events are out
    persist: bool = False
    # the intent was applied; the action cooldown restarts
    accepted: bool = False

    def broadcast(self, event: str, data: Dict[str, Any], skip: Optional[str] = None) -> None:
        self.emits.append(Emit(event, data, skip=skip))

    def unicast(self, sid: Optional[str], event: str, data: Dict[str, Any]) -> None:
        # a disconnected participant is simply unreachable
        if sid:
            self.emits.append(Emit(event, data, to=sid))

    def reject(self, sid: Optional[str], action: str, reason: str) -> 'Outbox':
        self.unicast(sid, 'action_rejected', {'action': action, 'reason': reason})
        return self

    @property
    def rejected(self) -> bool:
        return any(e.event == 'action_rejected' for e in self.emits)

    def extend(self, other: 'Outbox') -> 'Outbox':
        self.emits.extend(other.emits)
        self.persist = self.persist or other.persist
        self.accepted = self.accepted or other.accepted
        return self

    def named(self, event: str) -> List[Emit]:
        return [e for e in self.emits if e.event == event]
