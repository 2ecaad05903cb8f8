from __future__ import annotations
import math
from typing import Any, Callable, Dict, Literal, Optional, TypedDict, Union

from world.types import RESOURCES, clamp_coord
from .items import TOOL_KINDS, ToolKind

# Client -> server intent models, tagged by `kind` (the Socket.IO event name)


class IntentError(ValueError):
    """Malformed client payload; a validation rejection, never fatal."""


class MoveIntent(TypedDict):
    kind: Literal['player_move']
    x: int
    y: int


class PlaceBlockIntent(TypedDict):
    kind: Literal['place_block']
    x: int
    y: int
    type: str


class HarvestIntent(TypedDict):
    kind: Literal['harvest']
    x: int
    y: int
    tool: str


class UpgradeToolIntent(TypedDict):
    kind: Literal['upgrade_tool']
    tool: ToolKind


class SetMapSeedIntent(TypedDict):
    kind: Literal['set_map_seed']
    seed: int


class BareIntent(TypedDict):
    kind: Literal['reset_blocks', 'reset_levels', 'player_respawn']


class TradeTargetIntent(TypedDict):
    kind: Literal['trade_request']
    targetId: int


class TradeReplyIntent(TypedDict):
    kind: Literal['trade_accept', 'trade_decline']
    fromId: int


class TradeOfferIntent(TypedDict):
    kind: Literal['trade_offer']
    partnerId: int
    offer: Dict[str, int]


class TradeReadyIntent(TypedDict):
    kind: Literal['trade_ready']
    partnerId: int
    ready: bool


class TradePartnerIntent(TypedDict):
    kind: Literal['trade_confirm', 'trade_cancel']
    partnerId: int


Intent = Union[
    MoveIntent, PlaceBlockIntent, HarvestIntent, UpgradeToolIntent, SetMapSeedIntent,
    BareIntent, TradeTargetIntent, TradeReplyIntent, TradeOfferIntent, TradeReadyIntent,
    TradePartnerIntent,
]


def as_int(v: Any, field: str) -> int:
    # bools are ints in Python but never valid coordinates or ids
    if isinstance(v, bool):
        raise IntentError(f"{field}: expected integer")
    if isinstance(v, int):
        return v
    if isinstance(v, float) and math.isfinite(v) and v.is_integer():
        return int(v)
    raise IntentError(f"{field}: expected integer")


def _payload(data: Any) -> Dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise IntentError("payload must be an object")
    return data


def _move(data: Dict[str, Any]) -> MoveIntent:
    return {
        'kind': 'player_move',
        'x': clamp_coord(as_int(data.get('x'), 'x')),
        'y': clamp_coord(as_int(data.get('y'), 'y')),
    }


def _place(data: Dict[str, Any]) -> PlaceBlockIntent:
    btype = data.get('type') or 'wall'
    if not isinstance(btype, str):
        raise IntentError("type: expected string")
    return {'kind': 'place_block', 'x': as_int(data.get('x'), 'x'), 'y': as_int(data.get('y'), 'y'), 'type': btype}


def _harvest(data: Dict[str, Any]) -> HarvestIntent:
    tool = data.get('tool')
    if not isinstance(tool, str):
        raise IntentError("tool: expected string")
    return {'kind': 'harvest', 'x': as_int(data.get('x'), 'x'), 'y': as_int(data.get('y'), 'y'), 'tool': tool}


def _upgrade(data: Dict[str, Any]) -> UpgradeToolIntent:
    tool = data.get('tool')
    if tool not in TOOL_KINDS:
        raise IntentError("tool: unknown tool kind")
    return {'kind': 'upgrade_tool', 'tool': tool}


def _seed(data: Dict[str, Any]) -> SetMapSeedIntent:
    return {'kind': 'set_map_seed', 'seed': as_int(data.get('seed'), 'seed')}


def _bare(kind: str) -> Callable[[Dict[str, Any]], BareIntent]:
    def parse(data: Dict[str, Any]) -> BareIntent:
        return {'kind': kind}  # type: ignore[typeddict-item]
    return parse


def _trade_request(data: Dict[str, Any]) -> TradeTargetIntent:
    return {'kind': 'trade_request', 'targetId': as_int(data.get('targetId'), 'targetId')}


def _trade_reply(kind: str) -> Callable[[Dict[str, Any]], TradeReplyIntent]:
    def parse(data: Dict[str, Any]) -> TradeReplyIntent:
        return {'kind': kind, 'fromId': as_int(data.get('fromId'), 'fromId')}  # type: ignore[typeddict-item]
    return parse


def _trade_offer(data: Dict[str, Any]) -> TradeOfferIntent:
    raw = data.get('offer')
    if not isinstance(raw, dict):
        raise IntentError("offer: expected object")
    offer: Dict[str, int] = {}
    for r in RESOURCES:
        v = raw.get(r, 0)
        if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
            v = 0
        offer[r] = max(0, int(v))
    return {'kind': 'trade_offer', 'partnerId': as_int(data.get('partnerId'), 'partnerId'), 'offer': offer}


def _flag(v: Any, field: str) -> bool:
    if not isinstance(v, bool):
        raise IntentError(f"{field}: expected boolean")
    return v


def _trade_ready(data: Dict[str, Any]) -> TradeReadyIntent:
    return {
        'kind': 'trade_ready',
        'partnerId': as_int(data.get('partnerId'), 'partnerId'),
        'ready': _flag(data.get('ready', True), 'ready'),
    }


def _trade_partner(kind: str) -> Callable[[Dict[str, Any]], TradePartnerIntent]:
    def parse(data: Dict[str, Any]) -> TradePartnerIntent:
        return {'kind': kind, 'partnerId': as_int(data.get('partnerId'), 'partnerId')}  # type: ignore[typeddict-item]
    return parse


PARSERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    'player_move': _move,
    'place_block': _place,
    'harvest': _harvest,
    'upgrade_tool': _upgrade,
    'set_map_seed': _seed,
    'reset_blocks': _bare('reset_blocks'),
    'reset_levels': _bare('reset_levels'),
    'player_respawn': _bare('player_respawn'),
    'trade_request': _trade_request,
    'trade_accept': _trade_reply('trade_accept'),
    'trade_decline': _trade_reply('trade_decline'),
    'trade_offer': _trade_offer,
    'trade_ready': _trade_ready,
    'trade_confirm': _trade_partner('trade_confirm'),
    'trade_cancel': _trade_partner('trade_cancel'),
}

INTENT_KINDS = tuple(PARSERS)


def parse_intent(kind: str, data: Any) -> Intent:
    parser: Optional[Callable] = PARSERS.get(kind)
    if parser is None:
        raise IntentError(f"unknown intent: {kind}")
    return parser(_payload(data))
