# tilecraft/engine.py
"""Server-authoritative world transitions.

Every client intent goes through one pipeline: resolve the acting player
from its connection, parse the payload, check liveness, apply the shared
action cooldown, then run the intent's own validation chain against the
map generator and the store. Handlers mutate the store only once all their
checks pass and return an Outbox describing what to tell whom.
"""
from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from world.types import OPEN, in_bounds, manhattan
from .cooldowns import ActionCooldown
from .events import Outbox
from .intents import IntentError, parse_intent
from .items import can_afford, choose_cost, get_block_type, meets_tier, next_tier, pay
from .progression import build_xp, default_skills, grant_xp, harvest_xp, harvest_yield, skill_for_resource
from .sessions import SessionManager
from .store import PlayerRecord, WorldStore, is_alive, max_hp, public_player
from .trade import TradeCoordinator

logger = logging.getLogger(__name__)

# Tool each resource must be harvested with, and the minimum pickaxe tier
HARVEST_TOOL = {'wood': 'axe', 'stone': 'pickaxe', 'gold': 'pickaxe', 'diamond': 'pickaxe'}
MIN_PICKAXE_TIER = {'gold': 'stone'}


@dataclass(frozen=True)
class Rule:
    handler: str
    requires_alive: bool = True
    # new intents inherit the action cooldown unless exempted here
    gated: bool = True


RULES: Dict[str, Rule] = {
    'player_move': Rule('_move'),
    'place_block': Rule('_place_block'),
    'harvest': Rule('_harvest'),
    'upgrade_tool': Rule('_upgrade_tool'),
    'player_respawn': Rule('_respawn', requires_alive=False, gated=False),
    'set_map_seed': Rule('_set_map_seed', gated=False),
    'reset_blocks': Rule('_reset_blocks', gated=False),
    'reset_levels': Rule('_reset_levels', gated=False),
    'trade_request': Rule('_trade_request', gated=False),
    'trade_accept': Rule('_trade_accept', gated=False),
    'trade_decline': Rule('_trade_decline', requires_alive=False, gated=False),
    'trade_offer': Rule('_trade_offer', requires_alive=False, gated=False),
    'trade_ready': Rule('_trade_ready', requires_alive=False, gated=False),
    'trade_confirm': Rule('_trade_confirm', requires_alive=False, gated=False),
    'trade_cancel': Rule('_trade_cancel', requires_alive=False, gated=False),
}


class GameEngine:
    def __init__(self, store: WorldStore, clock: Callable[[], float] = time.monotonic,
                 cooldown_seconds: Optional[float] = None):
        self.store = store
        self.cooldown = ActionCooldown(clock=clock, seconds=cooldown_seconds)
        self.trades = TradeCoordinator(store)
        self.sessions = SessionManager(store, self.trades, self.cooldown)

    @property
    def lock(self):
        return self.store.lock

    # --- connections ---

    def connect(self, sid: str) -> Outbox:
        with self.lock:
            return self.sessions.connect(sid)

    def disconnect(self, sid: str) -> Outbox:
        with self.lock:
            return self.sessions.disconnect(sid)

    # --- intent pipeline ---

    def handle(self, sid: str, kind: str, data: Any = None) -> Outbox:
        with self.lock:
            actor = self.sessions.player_for(sid)
            rule = RULES.get(kind)
            if actor is None or rule is None:
                logger.debug('Ignoring %s from unbound connection %s', kind, sid)
                return Outbox()
            try:
                intent = parse_intent(kind, data)
            except IntentError as e:
                logger.debug('Malformed %s from %s: %s', kind, actor['name'], e)
                return self._refuse(actor, kind, 'malformed')
            if rule.requires_alive and not (actor['isActive'] and is_alive(actor)):
                return self._refuse(actor, kind, 'not_alive')
            if rule.gated and not self.cooldown.ready(actor['id']):
                return self._refuse(actor, kind, 'cooldown')
            out = getattr(self, rule.handler)(actor, intent)
            if rule.gated and out.accepted:
                self.cooldown.stamp(actor['id'])
            return out

    def _refuse(self, actor: PlayerRecord, kind: str, reason: str) -> Outbox:
        logger.debug('Rejected %s from %s: %s', kind, actor['name'], reason)
        if kind == 'player_move':
            # authoritative correction back to the true position
            return self._position(Outbox(), actor)
        return Outbox().reject(actor.get('socketId'), kind, reason)

    def _position(self, out: Outbox, actor: PlayerRecord) -> Outbox:
        out.unicast(actor.get('socketId'), 'player_position',
                    {'playerId': actor['id'], 'x': actor['x'], 'y': actor['y']})
        return out

    def _stats(self, out: Outbox, actor: PlayerRecord) -> None:
        out.broadcast('player_stats', {
            'playerId': actor['id'],
            'inventory': dict(actor['inventory']),
            'skills': {k: dict(v) for k, v in actor['skills'].items()},
        })

    # --- world intents ---

    def _move(self, actor: PlayerRecord, intent) -> Outbox:
        out = Outbox()
        x, y = intent['x'], intent['y']
        if (x, y) == (actor['x'], actor['y']):
            return self._position(out, actor)
        if not self.store.is_free(x, y, exclude=actor['id']):
            return self._refuse(actor, 'player_move', 'blocked')
        actor['x'], actor['y'] = x, y
        out.accepted = True
        out.broadcast('player_moved', {'playerId': actor['id'], 'x': x, 'y': y})
        return self._position(out, actor)

    def _place_block(self, actor: PlayerRecord, intent) -> Outbox:
        out = Outbox()
        sid = actor.get('socketId')
        x, y = intent['x'], intent['y']
        store = self.store
        if not in_bounds(x, y):
            return out.reject(sid, 'place_block', 'out_of_bounds')
        if store.player_at(x, y) is not None:
            return out.reject(sid, 'place_block', 'occupied')

        if store.block_at(x, y) is not None:
            del store.blocks[(x, y)]
            out.accepted = True
            out.persist = True
            out.broadcast('block_removed', {'x': x, 'y': y, 'playerId': actor['id']})
            return out

        btype = intent['type']
        if get_block_type(btype) is None:
            return out.reject(sid, 'place_block', 'unknown_block')
        if store.effective_type(x, y) != OPEN:
            return out.reject(sid, 'place_block', 'resource')
        cost = choose_cost(btype, actor['inventory'])
        if cost is None:
            return out.reject(sid, 'place_block', 'insufficient_resources')

        pay(actor['inventory'], cost.get('resources') or {})
        block = {'x': x, 'y': y, 'type': btype}
        if cost.get('material'):
            block['material'] = cost['material']
        store.blocks[(x, y)] = block
        grant_xp(actor['skills']['building'], build_xp(btype))

        out.accepted = True
        out.persist = True
        out.broadcast('block_added', {'block': dict(block), 'playerId': actor['id']})
        out.unicast(sid, 'inventory_updated', {'playerId': actor['id'], 'inventory': dict(actor['inventory'])})
        self._stats(out, actor)
        return out

    def _harvest(self, actor: PlayerRecord, intent) -> Outbox:
        out = Outbox()
        sid = actor.get('socketId')
        x, y, tool = intent['x'], intent['y'], intent['tool']
        store = self.store
        # orthogonal neighbours only
        if not in_bounds(x, y) or manhattan(actor['x'], actor['y'], x, y) != 1:
            return out.reject(sid, 'harvest', 'not_adjacent')
        kind = store.effective_type(x, y)
        if kind == OPEN:
            return out.reject(sid, 'harvest', 'nothing_to_harvest')
        if store.block_at(x, y) is not None:
            return out.reject(sid, 'harvest', 'blocked')
        if store.player_at(x, y, exclude=actor['id']) is not None:
            return out.reject(sid, 'harvest', 'occupied')
        if tool != HARVEST_TOOL[kind]:
            return out.reject(sid, 'harvest', 'wrong_tool')
        required = MIN_PICKAXE_TIER.get(kind)
        if required and not meets_tier(actor['tools'].get('pickaxe', ''), required):
            return out.reject(sid, 'harvest', 'tool_tier')

        skill = actor['skills'][skill_for_resource(kind)]
        actor['inventory'][kind] = int(actor['inventory'].get(kind, 0)) + harvest_yield(kind, skill['level'])
        grant_xp(skill, harvest_xp(kind))
        store.mark_harvested(x, y)

        out.accepted = True
        out.persist = True
        out.broadcast('resource_harvested', {
            'x': x, 'y': y, 'type': kind, 'playerId': actor['id'],
            'inventory': dict(actor['inventory']),
            'skills': {k: dict(v) for k, v in actor['skills'].items()},
        })
        # keep the amount of each resource on the map roughly constant
        spot = store.random_free_cell(avoid=(x, y))
        if spot is not None:
            store.spawn_resource(spot[0], spot[1], kind)
            out.broadcast('resource_spawned', {'x': spot[0], 'y': spot[1], 'type': kind})
        return out

    def _upgrade_tool(self, actor: PlayerRecord, intent) -> Outbox:
        out = Outbox()
        sid = actor.get('socketId')
        tool = intent['tool']
        near_bench = any(
            b.get('type') == 'workbench' and manhattan(actor['x'], actor['y'], bx, by) == 1
            for (bx, by), b in self.store.blocks.items()
        )
        if not near_bench:
            return out.reject(sid, 'upgrade_tool', 'no_workbench')
        tier = next_tier(actor['tools'].get(tool, ''))
        if tier is None:
            return out.reject(sid, 'upgrade_tool', 'max_tier')
        cost = tier.get('upgrade_cost') or {}
        if not can_afford(actor['inventory'], cost):
            return out.reject(sid, 'upgrade_tool', 'insufficient_resources')
        pay(actor['inventory'], cost)
        actor['tools'][tool] = tier['id']
        out.accepted = True
        out.persist = True
        out.broadcast('tools_updated', {'playerId': actor['id'], 'tools': dict(actor['tools'])})
        self._stats(out, actor)
        return out

    def _respawn(self, actor: PlayerRecord, intent) -> Outbox:
        out = Outbox()
        actor['x'], actor['y'] = self.store.find_spawn_cell(exclude=actor['id'])
        actor['hp'] = max_hp()
        actor['isActive'] = True
        out.accepted = True
        out.persist = True
        out.broadcast('player_respawned', {
            'playerId': actor['id'],
            'oldId': actor['id'],
            'player': public_player(actor),
        })
        return out

    # --- administrative intents ---

    def _set_map_seed(self, actor: PlayerRecord, intent) -> Outbox:
        out = Outbox()
        store = self.store
        seed = store.set_seed(intent['seed'])
        logger.info('%s changed the map seed to %d', actor['name'], seed)
        out.accepted = True
        out.persist = True
        out.broadcast('map_seed_changed', {'seed': seed, 'harvested': [], 'spawnedResources': []})
        # the new layout may put resources under active players
        for p in sorted(store.active_players(), key=lambda p: p['id']):
            if store.effective_type(p['x'], p['y']) == OPEN:
                continue
            p['x'], p['y'] = store.find_spawn_cell(exclude=p['id'])
            out.broadcast('player_moved', {'playerId': p['id'], 'x': p['x'], 'y': p['y']})
            out.unicast(p.get('socketId'), 'player_position', {'playerId': p['id'], 'x': p['x'], 'y': p['y']})
        return out

    def _reset_blocks(self, actor: PlayerRecord, intent) -> Outbox:
        out = Outbox()
        self.store.blocks.clear()
        logger.info('%s reset all blocks', actor['name'])
        out.accepted = True
        out.persist = True
        out.broadcast('blocks_reset', {'blocks': []})
        return out

    def _reset_levels(self, actor: PlayerRecord, intent) -> Outbox:
        out = Outbox()
        for p in self.store.players.values():
            p['skills'] = default_skills()
        logger.info('%s reset all skill levels', actor['name'])
        out.accepted = True
        out.persist = True
        out.broadcast('levels_reset', {
            'skills': {str(pid): p['skills'] for pid, p in self.store.players.items()},
        })
        return out

    # --- trade intents ---

    def _trade_request(self, actor, intent) -> Outbox:
        return self.trades.request(actor, intent['targetId'])

    def _trade_accept(self, actor, intent) -> Outbox:
        return self.trades.accept(actor, intent['fromId'])

    def _trade_decline(self, actor, intent) -> Outbox:
        return self.trades.decline(actor, intent['fromId'])

    def _trade_offer(self, actor, intent) -> Outbox:
        return self.trades.offer(actor, intent['partnerId'], intent['offer'])

    def _trade_ready(self, actor, intent) -> Outbox:
        return self.trades.set_ready(actor, intent['partnerId'], intent['ready'])

    def _trade_confirm(self, actor, intent) -> Outbox:
        return self.trades.confirm(actor, intent['partnerId'])

    def _trade_cancel(self, actor, intent) -> Outbox:
        return self.trades.cancel(actor, intent['partnerId'])

    # --- maintenance ---

    def reset_world(self) -> Outbox:
        """Fresh map and no blocks; connected players stay, in new spots."""
        out = Outbox()
        with self.lock:
            for s in list(self.trades.sessions.values()):
                out.extend(self.trades.close(s, 'world_reset'))
            self.store.reset_world()
            for p in sorted(self.store.active_players(), key=lambda p: p['id']):
                p['x'], p['y'] = self.store.find_spawn_cell(exclude=p['id'])
                p['hp'] = max_hp()
            out.persist = True
            out.broadcast('world_reset', {'gameState': self.store.to_dict(public=True)})
        return out

    def health(self) -> Dict[str, Any]:
        with self.lock:
            players = list(self.store.players.values())
            active = sum(1 for p in players if p['isActive'])
            return {
                'message': 'Tilecraft server is running',
                'totalPlayers': len(players),
                'activePlayers': active,
                'inactivePlayers': len(players) - active,
                'activeConnections': self.sessions.connection_count(),
            }
