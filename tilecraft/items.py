# Tilecraft/tilecraft/items.py
from typing import Any, Dict, List, Literal, Optional, Tuple, TypedDict
from .config import get_block_types, get_tool_tiers

ToolKind = Literal['pickaxe', 'axe']
TOOL_KINDS: Tuple[str, ...] = ('pickaxe', 'axe')

# Hotbar capacity of a player's `items` list
MAX_ITEM_SLOTS = 9


class CostOption(TypedDict, total=False):
    material: str
    resources: Dict[str, int]


class BlockType(TypedDict, total=False):
    id: str
    name: str
    # Alternatives in preference order; the first affordable one is charged
    costs: List[CostOption]


class ToolTier(TypedDict, total=False):
    id: str
    name: str
    # Cost to upgrade *into* this tier (absent on the starting tier)
    upgrade_cost: Dict[str, int]


_FALLBACK_BLOCKS: List[Dict[str, Any]] = [
    {'id': 'wall', 'name': 'Wall', 'costs': [
        {'material': 'wood', 'resources': {'wood': 4}},
        {'material': 'stone', 'resources': {'stone': 4}},
    ]},
    {'id': 'workbench', 'name': 'Workbench', 'costs': [
        {'resources': {'wood': 10, 'stone': 5}},
    ]},
]

_FALLBACK_TIERS: List[Dict[str, Any]] = [
    {'id': 'wood', 'name': 'Wooden'},
    {'id': 'stone', 'name': 'Stone', 'upgrade_cost': {'stone': 5, 'wood': 2}},
    {'id': 'iron', 'name': 'Iron', 'upgrade_cost': {'stone': 8, 'gold': 3}},
    {'id': 'diamond', 'name': 'Diamond', 'upgrade_cost': {'gold': 5, 'diamond': 3}},
]

BLOCK_DB: Dict[str, BlockType] = {}
TOOL_TIERS: List[ToolTier] = []


def register_block(block: BlockType) -> None:
    BLOCK_DB[block['id']] = block


def get_block_type(block_id: str) -> Optional[BlockType]:
    return BLOCK_DB.get(block_id)


def _clean_resources(raw: Any) -> Dict[str, int]:
    out: Dict[str, int] = {}
    if not isinstance(raw, dict):
        return out
    for k, v in raw.items():
        if isinstance(v, (int, float)) and not isinstance(v, bool) and v > 0:
            out[str(k)] = int(v)
    return out


def _load_blocks(entries: List[Dict[str, Any]]) -> None:
    BLOCK_DB.clear()
    for it in entries:
        if not isinstance(it, dict) or not it.get('id'):
            continue
        costs: List[CostOption] = []
        for opt in it.get('costs') or []:
            if not isinstance(opt, dict):
                continue
            co: CostOption = {'resources': _clean_resources(opt.get('resources'))}
            if isinstance(opt.get('material'), str) and opt['material']:
                co['material'] = opt['material']
            costs.append(co)
        register_block({
            'id': str(it['id']),
            'name': str(it.get('name') or it['id']),
            'costs': costs,
        })


def _load_tiers(entries: List[Dict[str, Any]]) -> None:
    TOOL_TIERS.clear()
    for it in entries:
        if not isinstance(it, dict) or not it.get('id'):
            continue
        tier: ToolTier = {'id': str(it['id']), 'name': str(it.get('name') or it['id'])}
        cost = _clean_resources(it.get('upgrade_cost'))
        if cost:
            tier['upgrade_cost'] = cost
        TOOL_TIERS.append(tier)


def load_catalogue() -> None:
    blocks = get_block_types()
    _load_blocks(blocks if isinstance(blocks, list) and blocks else _FALLBACK_BLOCKS)
    tiers = get_tool_tiers()
    _load_tiers(tiers if isinstance(tiers, list) and tiers else _FALLBACK_TIERS)


# Populate on import
load_catalogue()


def tier_names() -> List[str]:
    return [t['id'] for t in TOOL_TIERS]


def starting_tier() -> str:
    return TOOL_TIERS[0]['id']


def tier_index(tier: str) -> int:
    """Position of a tier in the upgrade order, -1 if unknown."""
    names = tier_names()
    return names.index(tier) if tier in names else -1


def meets_tier(current: str, required: str) -> bool:
    return tier_index(current) >= tier_index(required) >= 0


def next_tier(current: str) -> Optional[ToolTier]:
    idx = tier_index(current)
    if idx < 0 or idx + 1 >= len(TOOL_TIERS):
        return None
    return TOOL_TIERS[idx + 1]


def can_afford(inventory: Dict[str, int], resources: Dict[str, int]) -> bool:
    return all(int(inventory.get(k, 0)) >= v for k, v in resources.items())


def pay(inventory: Dict[str, int], resources: Dict[str, int]) -> None:
    for k, v in resources.items():
        inventory[k] = int(inventory.get(k, 0)) - v


def choose_cost(block_id: str, inventory: Dict[str, int]) -> Optional[CostOption]:
    """Pick the first affordable cost option for a block, or None."""
    bt = get_block_type(block_id)
    if not bt:
        return None
    for opt in bt.get('costs') or []:
        if can_afford(inventory, opt.get('resources') or {}):
            return opt
    return None


def add_item(items: List[Any], item: Any) -> bool:
    if len(items) >= MAX_ITEM_SLOTS:
        return False
    items.append(item)
    return True
