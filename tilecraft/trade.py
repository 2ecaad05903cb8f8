# tilecraft/trade.py
"""Peer-to-peer resource trading between two nearby players.

A session exists per unordered pair of player ids. Offers are clamped to
the offerer's inventory, any change clears readiness and confirmation, and
settlement swaps both offers in one step or not at all.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from world.types import RESOURCES, manhattan
from .config import get_setting
from .events import Outbox
from .items import can_afford
from .store import PlayerRecord, WorldStore

logger = logging.getLogger(__name__)

PairKey = Tuple[int, int]


def pair_key(a: int, b: int) -> PairKey:
    return (a, b) if a < b else (b, a)


def zero_offer() -> Dict[str, int]:
    return {r: 0 for r in RESOURCES}


@dataclass
class TradeSession:
    a: int
    b: int
    offers: Dict[int, Dict[str, int]] = field(default_factory=dict)
    ready: Dict[int, bool] = field(default_factory=dict)
    confirmed: Dict[int, bool] = field(default_factory=dict)

    def __post_init__(self):
        for pid in (self.a, self.b):
            self.offers.setdefault(pid, zero_offer())
            self.ready.setdefault(pid, False)
            self.confirmed.setdefault(pid, False)

    @property
    def key(self) -> PairKey:
        return pair_key(self.a, self.b)

    def other(self, pid: int) -> int:
        return self.b if pid == self.a else self.a

    def clear_confirmations(self) -> None:
        for pid in (self.a, self.b):
            self.confirmed[pid] = False

    def clear_readiness(self) -> None:
        for pid in (self.a, self.b):
            self.ready[pid] = False
        self.clear_confirmations()


class TradeCoordinator:
    def __init__(self, store: WorldStore):
        self.store = store
        self.sessions: Dict[PairKey, TradeSession] = {}

    @staticmethod
    def max_distance() -> int:
        return int(get_setting('trade', 'max_distance', 3))

    def session_for(self, a: int, b: int) -> Optional[TradeSession]:
        return self.sessions.get(pair_key(a, b))

    def sessions_of(self, pid: int):
        return [s for s in self.sessions.values() if pid in (s.a, s.b)]

    def _reachable(self, p: Optional[PlayerRecord]) -> bool:
        return bool(p and p['isActive'] and p.get('socketId'))

    def _in_range(self, p: PlayerRecord, q: PlayerRecord) -> bool:
        return manhattan(p['x'], p['y'], q['x'], q['y']) <= self.max_distance()

    def payload(self, s: TradeSession) -> Dict[str, Any]:
        players = []
        for pid in (s.a, s.b):
            p = self.store.player(pid)
            players.append({'id': pid, 'name': p['name'] if p else f'Player {pid}'})
        return {
            'players': players,
            'offers': {str(pid): dict(o) for pid, o in s.offers.items()},
            'ready': {str(pid): v for pid, v in s.ready.items()},
            'confirmed': {str(pid): v for pid, v in s.confirmed.items()},
        }

    def _to_both(self, out: Outbox, s: TradeSession, event: str, extra: Optional[Dict[str, Any]] = None) -> None:
        data = self.payload(s)
        if extra:
            data.update(extra)
        for pid in (s.a, s.b):
            p = self.store.player(pid)
            if self._reachable(p):
                out.unicast(p['socketId'], event, data)

    # invite / reply

    def request(self, actor: PlayerRecord, target_id: int) -> Outbox:
        out = Outbox()
        sid = actor.get('socketId')
        target = self.store.player(target_id)
        if target_id == actor['id']:
            return out.reject(sid, 'trade_request', 'self_trade')
        if not self._reachable(target):
            return out.reject(sid, 'trade_request', 'target_unavailable')
        if self.session_for(actor['id'], target_id):
            return out.reject(sid, 'trade_request', 'session_exists')
        if not self._in_range(actor, target):
            return out.reject(sid, 'trade_request', 'too_far')
        out.unicast(target['socketId'], 'trade_invite', {'fromId': actor['id'], 'fromName': actor['name']})
        return out

    def decline(self, actor: PlayerRecord, from_id: int) -> Outbox:
        out = Outbox()
        requester = self.store.player(from_id)
        if self._reachable(requester):
            out.unicast(requester['socketId'], 'trade_declined', {'byId': actor['id'], 'byName': actor['name']})
        return out

    def accept(self, actor: PlayerRecord, from_id: int) -> Outbox:
        out = Outbox()
        sid = actor.get('socketId')
        requester = self.store.player(from_id)
        if from_id == actor['id']:
            return out.reject(sid, 'trade_accept', 'self_trade')
        if not self._reachable(actor) or not self._reachable(requester):
            return out.reject(sid, 'trade_accept', 'target_unavailable')
        if self.session_for(actor['id'], from_id):
            return out.reject(sid, 'trade_accept', 'session_exists')
        if not self._in_range(actor, requester):
            return out.reject(sid, 'trade_accept', 'too_far')
        s = TradeSession(a=from_id, b=actor['id'])
        self.sessions[s.key] = s
        logger.info('Trade opened between %s and %s', requester['name'], actor['name'])
        self._to_both(out, s, 'trade_open')
        return out

    # negotiation

    def _session_or_reject(self, out: Outbox, actor: PlayerRecord, partner_id: int, action: str) -> Optional[TradeSession]:
        s = self.session_for(actor['id'], partner_id)
        if s is None or partner_id == actor['id']:
            out.reject(actor.get('socketId'), action, 'no_session')
            return None
        return s

    def offer(self, actor: PlayerRecord, partner_id: int, offer: Dict[str, int]) -> Outbox:
        out = Outbox()
        s = self._session_or_reject(out, actor, partner_id, 'trade_offer')
        if s is None:
            return out
        inv = actor['inventory']
        s.offers[actor['id']] = {r: max(0, min(int(offer.get(r, 0)), int(inv.get(r, 0)))) for r in RESOURCES}
        s.clear_readiness()
        self._to_both(out, s, 'trade_update')
        return out

    def set_ready(self, actor: PlayerRecord, partner_id: int, ready: bool) -> Outbox:
        out = Outbox()
        s = self._session_or_reject(out, actor, partner_id, 'trade_ready')
        if s is None:
            return out
        if s.ready[actor['id']] != ready:
            s.ready[actor['id']] = ready
            s.clear_confirmations()
        self._to_both(out, s, 'trade_update')
        return out

    def confirm(self, actor: PlayerRecord, partner_id: int) -> Outbox:
        out = Outbox()
        s = self._session_or_reject(out, actor, partner_id, 'trade_confirm')
        if s is None:
            return out
        if not (s.ready[s.a] and s.ready[s.b]):
            return out.reject(actor.get('socketId'), 'trade_confirm', 'not_ready')
        s.confirmed[actor['id']] = True
        if s.confirmed[s.a] and s.confirmed[s.b]:
            return self._settle(s)
        self._to_both(out, s, 'trade_update')
        return out

    def _settle(self, s: TradeSession) -> Outbox:
        out = Outbox()
        pa, pb = self.store.player(s.a), self.store.player(s.b)
        oa, ob = s.offers[s.a], s.offers[s.b]
        if (pa is None or pb is None
                or not can_afford(pa['inventory'], oa)
                or not can_afford(pb['inventory'], ob)):
            return self.close(s, 'insufficient_resources')
        for r in RESOURCES:
            pa['inventory'][r] = int(pa['inventory'].get(r, 0)) - oa[r] + ob[r]
            pb['inventory'][r] = int(pb['inventory'].get(r, 0)) - ob[r] + oa[r]
        del self.sessions[s.key]
        for p in (pa, pb):
            out.broadcast('inventory_updated', {'playerId': p['id'], 'inventory': dict(p['inventory'])})
        self._to_both(out, s, 'trade_complete', {
            'inventories': {str(p['id']): dict(p['inventory']) for p in (pa, pb)},
        })
        out.persist = True
        logger.info('Trade settled between %s and %s', pa['name'], pb['name'])
        return out

    # teardown

    def close(self, s: TradeSession, reason: str, by: Optional[int] = None) -> Outbox:
        out = Outbox()
        self.sessions.pop(s.key, None)
        extra: Dict[str, Any] = {'reason': reason}
        if by is not None:
            extra['byId'] = by
        self._to_both(out, s, 'trade_cancelled', extra)
        logger.info('Trade between %s and %s cancelled: %s', s.a, s.b, reason)
        return out

    def cancel(self, actor: PlayerRecord, partner_id: int) -> Outbox:
        out = Outbox()
        s = self._session_or_reject(out, actor, partner_id, 'trade_cancel')
        if s is None:
            return out
        return self.close(s, 'cancelled', by=actor['id'])

    def drop_player(self, pid: int) -> Outbox:
        """Cancel every session of a departing player."""
        out = Outbox()
        for s in self.sessions_of(pid):
            out.extend(self.close(s, 'partner_disconnected', by=pid))
        return out
