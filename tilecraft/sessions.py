# tilecraft/sessions.py
import logging
from typing import Dict, Optional

from .cooldowns import ActionCooldown
from .events import Outbox
from .store import PlayerRecord, WorldStore, max_hp, public_player
from .trade import TradeCoordinator

logger = logging.getLogger(__name__)


class SessionManager:
    """Binds Socket.IO connections to player records."""

    def __init__(self, store: WorldStore, trades: TradeCoordinator, cooldown: ActionCooldown):
        self.store = store
        self.trades = trades
        self.cooldown = cooldown
        self.connections: Dict[str, int] = {}  # sid -> player id

    def player_for(self, sid: str) -> Optional[PlayerRecord]:
        pid = self.connections.get(sid)
        return self.store.player(pid) if pid is not None else None

    def connection_count(self) -> int:
        return len(self.connections)

    def connect(self, sid: str) -> Outbox:
        out = Outbox()
        store = self.store
        inactive = store.inactive_players()
        if inactive:
            player = inactive[0]
            player['x'], player['y'] = store.find_spawn_cell(exclude=player['id'])
            player['hp'] = max_hp()
            player['isActive'] = True
            player['socketId'] = sid
            event = 'player_reactivated'
            logger.info('Reactivated existing player: %s', player['name'])
        else:
            player = store.allocate_player(sid)
            event = 'player_joined'
            logger.info('Created new player: %s', player['name'])
        self.connections[sid] = player['id']
        # welcome first, so the client initializes before any delta arrives
        out.unicast(sid, 'welcome', {'gameState': store.to_dict(public=True), 'playerId': player['id']})
        out.broadcast(event, {'player': public_player(player)}, skip=sid)
        return out

    def disconnect(self, sid: str) -> Outbox:
        out = Outbox()
        pid = self.connections.pop(sid, None)
        player = self.store.player(pid) if pid is not None else None
        if player is None:
            return out
        player['isActive'] = False
        player['socketId'] = None
        self.cooldown.forget(player['id'])
        out.broadcast('player_left', {'playerId': player['id']}, skip=sid)
        out.extend(self.trades.drop_player(player['id']))
        logger.info('Player %s marked as inactive', player['name'])
        return out
