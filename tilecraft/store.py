# tilecraft/store.py
"""Canonical world state: players, blocks, cell overrides and the map seed.

All mutation happens through the engine while holding `WorldStore.lock`.
The store also owns the flat-file snapshot (load, sanitize, save).
"""
from __future__ import annotations
import json
import logging
import math
import os
import random
import tempfile
import threading
from typing import Any, Dict, List, Optional, Tuple, TypedDict

from world import provider
from world.mapgen import normalize_seed
from world.types import CENTER, GRID_SIZE, OPEN, RESOURCES, Cell, SpawnedCell, clamp_coord, in_bounds, manhattan
from .config import get_setting
from .items import MAX_ITEM_SLOTS, TOOL_KINDS, add_item, starting_tier, tier_index
from .progression import SKILL_NAMES, default_skills

logger = logging.getLogger(__name__)

Coord = Tuple[int, int]


class PlayerRecord(TypedDict, total=False):
    id: int
    name: str
    x: int
    y: int
    color: str
    isActive: bool
    socketId: Optional[str]
    hp: int
    inventory: Dict[str, int]
    tools: Dict[str, str]
    items: List[Any]
    skills: Dict[str, Dict[str, int]]


class BlockRecord(TypedDict, total=False):
    x: int
    y: int
    type: str
    material: str


def new_seed(rng: Optional[random.Random] = None) -> int:
    return (rng or random).randint(1, 0xFFFFFFFF)


def max_hp() -> int:
    return int(get_setting('players', 'max_hp', 100))


def empty_inventory() -> Dict[str, int]:
    return {r: 0 for r in RESOURCES}


def default_tools() -> Dict[str, str]:
    return {k: starting_tier() for k in TOOL_KINDS}


def make_player(player_id: int, x: int, y: int, color: str, socket_id: Optional[str] = None) -> PlayerRecord:
    return {
        'id': player_id,
        'name': f'Player {player_id}',
        'x': x,
        'y': y,
        'color': color,
        'isActive': socket_id is not None,
        'socketId': socket_id,
        'hp': max_hp(),
        'inventory': empty_inventory(),
        'tools': default_tools(),
        'items': [],
        'skills': default_skills(),
    }


def is_alive(player: PlayerRecord) -> bool:
    return int(player.get('hp', 0)) > 0


def public_player(player: PlayerRecord) -> Dict[str, Any]:
    """Wire view of a player; the connection id stays server-side."""
    out = json.loads(json.dumps(player))
    out.pop('socketId', None)
    return out


# --- Sanitization -----------------------------------------------------------

def _num(v: Any, default: int) -> int:
    if isinstance(v, bool) or v is None:
        return default
    if isinstance(v, (int, float)):
        return int(v) if math.isfinite(v) else default
    if isinstance(v, str):
        try:
            f = float(v)
        except ValueError:
            return default
        return int(f) if math.isfinite(f) else default
    return default


def _cell(raw: Any) -> Optional[Coord]:
    if not isinstance(raw, dict):
        return None
    if raw.get('x') is None or raw.get('y') is None:
        return None
    return clamp_coord(_num(raw.get('x'), 0)), clamp_coord(_num(raw.get('y'), 0))


def _sanitize_player(pid: int, raw: Dict[str, Any], colors: List[str]) -> PlayerRecord:
    inv_raw = raw.get('inventory') if isinstance(raw.get('inventory'), dict) else {}
    inventory = {r: max(0, _num(inv_raw.get(r), 0)) for r in RESOURCES}

    tools_raw = raw.get('tools') if isinstance(raw.get('tools'), dict) else {}
    tools = {}
    for kind in TOOL_KINDS:
        tier = tools_raw.get(kind)
        tools[kind] = tier if isinstance(tier, str) and tier_index(tier) >= 0 else starting_tier()

    items: List[Any] = []
    for it in raw.get('items') if isinstance(raw.get('items'), list) else []:
        if not add_item(items, it):
            break

    skills_raw = raw.get('skills') if isinstance(raw.get('skills'), dict) else {}
    skills = default_skills()
    for name in SKILL_NAMES:
        s = skills_raw.get(name)
        if isinstance(s, dict):
            skills[name] = {'level': max(1, _num(s.get('level'), 1)), 'xp': max(0, _num(s.get('xp'), 0))}

    color = raw.get('color')
    if not isinstance(color, str) or not color:
        color = random.choice(colors)
    name = raw.get('name')
    if not isinstance(name, str) or not name:
        name = f'Player {pid}'

    return {
        'id': pid,
        'name': name,
        'x': clamp_coord(_num(raw.get('x'), CENTER[0])),
        'y': clamp_coord(_num(raw.get('y'), CENTER[1])),
        'color': color,
        # live connections never survive a restart
        'isActive': False,
        'socketId': None,
        'hp': min(max_hp(), _num(raw.get('hp'), max_hp())),
        'inventory': inventory,
        'tools': tools,
        'items': items,
        'skills': skills,
    }


def sanitize_state(raw: Any) -> Dict[str, Any]:
    """Coerce a loaded document into the persisted layout, repairing what it can."""
    if not isinstance(raw, dict):
        raw = {}
    colors = get_setting('players', 'colors') or ['#FFFFFF']

    players: Dict[str, PlayerRecord] = {}
    raw_players = raw.get('players') if isinstance(raw.get('players'), dict) else {}
    for key, rec in raw_players.items():
        if not isinstance(rec, dict):
            continue
        pid = _num(key, -1)
        if pid <= 0:
            pid = _num(rec.get('id'), -1)
        if pid <= 0 or str(pid) in players:
            continue
        players[str(pid)] = _sanitize_player(pid, rec, colors)

    highest = max((int(k) for k in players), default=0)
    next_id = max(_num(raw.get('nextPlayerId'), 1), highest + 1, 1)

    blocks: List[BlockRecord] = []
    seen = set()
    for b in raw.get('blocks') if isinstance(raw.get('blocks'), list) else []:
        cell = _cell(b)
        if cell is None or cell in seen:
            continue
        seen.add(cell)
        rec: BlockRecord = {'x': cell[0], 'y': cell[1], 'type': b.get('type') if isinstance(b.get('type'), str) else 'wall'}
        if isinstance(b.get('material'), str):
            rec['material'] = b['material']
        blocks.append(rec)

    seed_raw = raw.get('mapSeed')
    if isinstance(seed_raw, (int, float)) and not isinstance(seed_raw, bool) and math.isfinite(seed_raw):
        seed = normalize_seed(int(seed_raw))
    else:
        seed = new_seed()

    harvested: List[Cell] = []
    for c in raw.get('harvested') if isinstance(raw.get('harvested'), list) else []:
        cell = _cell(c)
        if cell is not None:
            harvested.append({'x': cell[0], 'y': cell[1]})

    spawned: List[SpawnedCell] = []
    for c in raw.get('spawnedResources') if isinstance(raw.get('spawnedResources'), list) else []:
        cell = _cell(c)
        if cell is not None and c.get('type') in RESOURCES:
            spawned.append({'x': cell[0], 'y': cell[1], 'type': c['type']})

    return {
        'players': players,
        'nextPlayerId': next_id,
        'blocks': blocks,
        'mapSeed': seed,
        'harvested': harvested,
        'spawnedResources': spawned,
    }


# --- Store ------------------------------------------------------------------

class WorldStore:
    def __init__(self, path: Optional[str] = None, rng: Optional[random.Random] = None):
        self.path = path or get_setting('persistence', 'database_file', 'database.json')
        self.rng = rng or random.Random()
        self.lock = threading.RLock()
        self.players: Dict[int, PlayerRecord] = {}
        self.next_player_id = 1
        self.blocks: Dict[Coord, BlockRecord] = {}
        self.map_seed = new_seed(self.rng)
        # coordinate -> override type; 'open' marks a harvested cell
        self.overrides: Dict[Coord, str] = {}
        self._save_lock = threading.Lock()
        self._version = 0
        self._written = 0

    # cells

    def base_type(self, x: int, y: int) -> str:
        return provider.base_type(self.map_seed, x, y)

    def effective_type(self, x: int, y: int) -> str:
        return self.overrides.get((x, y)) or self.base_type(x, y)

    def block_at(self, x: int, y: int) -> Optional[BlockRecord]:
        return self.blocks.get((x, y))

    def player_at(self, x: int, y: int, exclude: Optional[int] = None) -> Optional[PlayerRecord]:
        for p in self.players.values():
            if p['isActive'] and p['id'] != exclude and p['x'] == x and p['y'] == y:
                return p
        return None

    def is_free(self, x: int, y: int, exclude: Optional[int] = None) -> bool:
        """Open ground with no block and no other active player on it."""
        return (in_bounds(x, y)
                and (x, y) not in self.blocks
                and self.effective_type(x, y) == OPEN
                and self.player_at(x, y, exclude) is None)

    def mark_harvested(self, x: int, y: int) -> None:
        if self.base_type(x, y) == OPEN:
            # a harvested spawn on base-open ground needs no override
            self.overrides.pop((x, y), None)
        else:
            self.overrides[(x, y)] = OPEN

    def spawn_resource(self, x: int, y: int, kind: str) -> None:
        self.overrides[(x, y)] = kind

    def find_spawn_cell(self, exclude: Optional[int] = None) -> Coord:
        cx, cy = CENTER
        best = None
        for y in range(GRID_SIZE):
            for x in range(GRID_SIZE):
                if not self.is_free(x, y, exclude):
                    continue
                key = (manhattan(x, y, cx, cy), y, x)
                if best is None or key < best:
                    best = key
        if best is None:
            return CENTER
        return best[2], best[1]

    def random_free_cell(self, avoid: Optional[Coord] = None) -> Optional[Coord]:
        candidates = [(x, y) for y in range(GRID_SIZE) for x in range(GRID_SIZE)
                      if (x, y) != avoid and self.is_free(x, y)]
        if not candidates:
            return None
        return self.rng.choice(candidates)

    def set_seed(self, seed: int) -> int:
        self.map_seed = normalize_seed(seed)
        # overrides describe the previous layout
        self.overrides.clear()
        provider.invalidate()
        return self.map_seed

    def harvested_cells(self) -> List[Cell]:
        return [{'x': x, 'y': y} for (x, y), t in self.overrides.items() if t == OPEN]

    def spawned_cells(self) -> List[SpawnedCell]:
        return [{'x': x, 'y': y, 'type': t} for (x, y), t in self.overrides.items() if t != OPEN]

    # players

    def player(self, player_id: int) -> Optional[PlayerRecord]:
        return self.players.get(player_id)

    def active_players(self) -> List[PlayerRecord]:
        return [p for p in self.players.values() if p['isActive']]

    def inactive_players(self) -> List[PlayerRecord]:
        return sorted((p for p in self.players.values() if not p['isActive']), key=lambda p: p['id'])

    def allocate_player(self, socket_id: Optional[str] = None) -> PlayerRecord:
        pid = self.next_player_id
        self.next_player_id += 1
        x, y = self.find_spawn_cell()
        colors = get_setting('players', 'colors') or ['#FFFFFF']
        player = make_player(pid, x, y, self.rng.choice(colors), socket_id)
        self.players[pid] = player
        return player

    def cleanup_inactive_players(self, retention: Optional[int] = None) -> List[int]:
        if retention is None:
            retention = int(get_setting('players', 'inactive_retention', 5))
        with self.lock:
            inactive = self.inactive_players()
            excess = inactive[:max(0, len(inactive) - retention)]
            for p in excess:
                del self.players[p['id']]
        removed = [p['id'] for p in excess]
        if removed:
            logger.info('Cleaned up %d old inactive players', len(removed))
        return removed

    def reset_world(self) -> None:
        self.blocks.clear()
        self.set_seed(new_seed(self.rng))
        for p in self.inactive_players():
            del self.players[p['id']]

    # persistence

    def to_dict(self, public: bool = False) -> Dict[str, Any]:
        if public:
            players = {str(pid): public_player(p) for pid, p in self.players.items()}
        else:
            players = {str(pid): json.loads(json.dumps(p)) for pid, p in self.players.items()}
        return {
            'players': players,
            'nextPlayerId': self.next_player_id,
            'blocks': [dict(b) for b in self.blocks.values()],
            'mapSeed': self.map_seed,
            'harvested': self.harvested_cells(),
            'spawnedResources': self.spawned_cells(),
        }

    def apply(self, state: Dict[str, Any]) -> None:
        """Install a sanitized state document."""
        with self.lock:
            self.players = {int(k): p for k, p in state['players'].items()}
            self.next_player_id = state['nextPlayerId']
            self.blocks = {(b['x'], b['y']): b for b in state['blocks']}
            self.map_seed = state['mapSeed']
            provider.invalidate()
            self.overrides = {}
            for c in state['harvested']:
                self.mark_harvested(c['x'], c['y'])
            # spawns win over a harvested entry for the same cell
            for c in state['spawnedResources']:
                self.spawn_resource(c['x'], c['y'], c['type'])

    def load(self) -> bool:
        if not os.path.exists(self.path):
            logger.info('No database found at %s, starting with fresh state', self.path)
            return False
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning('Could not read %s (%s); starting with fresh state', self.path, e)
            return False
        self.apply(sanitize_state(raw))
        logger.info('Game state loaded from %s', self.path)
        logger.info('Loaded %d players (all marked inactive)', len(self.players))
        return True

    def snapshot(self) -> Tuple[int, str]:
        with self.lock:
            self._version += 1
            return self._version, json.dumps(self.to_dict(), indent=2)

    def save(self) -> bool:
        try:
            version, text = self.snapshot()
        except (TypeError, ValueError) as e:
            logger.error('Error serializing game state: %s', e)
            return False
        with self._save_lock:
            if version <= self._written:
                # a newer snapshot is already on disk
                return True
            tmp = None
            try:
                directory = os.path.dirname(os.path.abspath(self.path))
                os.makedirs(directory, exist_ok=True)
                fd, tmp = tempfile.mkstemp(prefix='.tilecraft-', suffix='.json', dir=directory)
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    f.write(text)
                os.replace(tmp, self.path)
            except OSError as e:
                logger.error('Error saving game state to %s: %s', self.path, e)
                if tmp and os.path.exists(tmp):
                    os.unlink(tmp)
                return False
            self._written = version
        logger.info('Game state saved to %s', self.path)
        return True
