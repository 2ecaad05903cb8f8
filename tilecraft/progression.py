from __future__ import annotations
from typing import Dict, Tuple, TypedDict

from .config import get_game_config

SKILL_NAMES: Tuple[str, ...] = ('mining', 'woodcutting', 'building')


class SkillState(TypedDict):
    level: int
    xp: int


def default_skills() -> Dict[str, SkillState]:
    return {name: {'level': 1, 'xp': 0} for name in SKILL_NAMES}


def xp_to_next(level: int) -> int:
    return level * 100


def grant_xp(skill: SkillState, amount: int) -> int:
    """Add xp and roll over as many level-ups as it pays for.

    Returns the number of levels gained.
    """
    skill['xp'] = int(skill.get('xp', 0)) + max(0, int(amount))
    gained = 0
    while skill['xp'] >= xp_to_next(skill['level']):
        skill['xp'] -= xp_to_next(skill['level'])
        skill['level'] += 1
        gained += 1
    return gained


def skill_for_resource(resource: str) -> str:
    return 'woodcutting' if resource == 'wood' else 'mining'


def harvest_xp(resource: str) -> int:
    xp = (get_game_config().get('harvest') or {}).get('xp') or {}
    return int(xp.get(resource, 0))


def build_xp(block_type: str) -> int:
    xp = (get_game_config().get('building') or {}).get('xp') or {}
    return int(xp.get(block_type, 0))


def harvest_yield(resource: str, level: int) -> int:
    cfg = get_game_config().get('harvest') or {}
    every = max(1, int(cfg.get('bonus_every_levels', 5)))
    bonus = max(0, int(level)) // every
    if resource in ('gold', 'diamond'):
        bonus = min(bonus, int(cfg.get('rare_bonus_cap', 1)))
    return 1 + bonus
