# Tilecraft/tilecraft/config.py
import json
import os
from typing import Any, Dict, List

_base_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
_config_dir = os.path.join(_base_dir, 'config')

_game_config: Dict[str, Any] = {}
_block_types: List[Dict[str, Any]] = []
_tool_tiers: List[Dict[str, Any]] = []

DEFAULT_COLORS = ['#FF6B6B', '#4ECDC4', '#45B7D1', '#96CEB4', '#FFEAA7', '#DDA0DD', '#98D8C8', '#F7DC6F']


def _load_json(path: str, default):
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, ValueError):
        return default


def reload_all() -> None:
    global _game_config, _block_types, _tool_tiers
    loaded = _load_json(os.path.join(_config_dir, 'game_config.json'), {})
    _game_config = loaded if isinstance(loaded, dict) else {}
    _apply_defaults(_game_config)
    _block_types = _load_json(os.path.join(_config_dir, 'block_types.json'), [])
    _tool_tiers = _load_json(os.path.join(_config_dir, 'tool_tiers.json'), [])


def _section(cfg: Dict[str, Any], key: str) -> Dict[str, Any]:
    sec = cfg.get(key)
    if not isinstance(sec, dict):
        sec = {}
    cfg[key] = sec
    return sec


def _apply_defaults(cfg: Dict[str, Any]) -> None:
    server = _section(cfg, 'server')
    server.setdefault('host', '0.0.0.0')
    server.setdefault('port', 3000)
    server.setdefault('cors_allowed_origins', '*')
    # Railway-style deployments pass the port through the environment
    if os.environ.get('PORT'):
        try:
            server['port'] = int(os.environ['PORT'])
        except ValueError:
            pass

    persistence = _section(cfg, 'persistence')
    persistence.setdefault('database_file', 'database.json')
    persistence.setdefault('save_interval_seconds', 300)
    if os.environ.get('DATABASE_FILE'):
        persistence['database_file'] = os.environ['DATABASE_FILE']

    players = _section(cfg, 'players')
    players.setdefault('max_hp', 100)
    players.setdefault('inactive_retention', 5)
    if not isinstance(players.get('colors'), list) or not players.get('colors'):
        players['colors'] = list(DEFAULT_COLORS)

    actions = _section(cfg, 'actions')
    actions.setdefault('cooldown_ms', 950)

    trade = _section(cfg, 'trade')
    trade.setdefault('max_distance', 3)

    harvest = _section(cfg, 'harvest')
    xp = harvest.get('xp')
    if not isinstance(xp, dict):
        xp = {}
    xp.setdefault('wood', 10)
    xp.setdefault('stone', 12)
    xp.setdefault('gold', 20)
    xp.setdefault('diamond', 35)
    harvest['xp'] = xp
    harvest.setdefault('bonus_every_levels', 5)
    harvest.setdefault('rare_bonus_cap', 1)

    building = _section(cfg, 'building')
    bxp = building.get('xp')
    if not isinstance(bxp, dict):
        bxp = {}
    bxp.setdefault('wall', 8)
    bxp.setdefault('workbench', 25)
    building['xp'] = bxp

    logging_cfg = _section(cfg, 'logging')
    logging_cfg.setdefault('level', 'INFO')


def get_game_config() -> Dict[str, Any]:
    if not _game_config:
        reload_all()
    return _game_config


def get_setting(section: str, key: str, default=None):
    sec = get_game_config().get(section) or {}
    return sec.get(key, default)


def get_block_types() -> List[Dict[str, Any]]:
    if not _game_config:
        reload_all()
    return _block_types


def get_tool_tiers() -> List[Dict[str, Any]]:
    if not _game_config:
        reload_all()
    return _tool_tiers
