import json
import os
import random

import pytest

from helpers import clear_cell
from tilecraft import server
from tilecraft.engine import GameEngine
from tilecraft.store import WorldStore


@pytest.fixture
def live(monkeypatch, tmp_path, clock):
    store = WorldStore(str(tmp_path / 'database.json'), rng=random.Random(1))
    store.set_seed(1337)
    eng = GameEngine(store, clock=clock, cooldown_seconds=0.95)
    monkeypatch.setattr(server, 'store', store)
    monkeypatch.setattr(server, 'engine', eng)
    return eng


def _named(received, name):
    return [r['args'][0] for r in received if r['name'] == name]


def test_connect_receives_welcome_first(live):
    client = server.socketio.test_client(server.app)
    received = client.get_received()
    assert received[0]['name'] == 'welcome'
    welcome = received[0]['args'][0]
    assert welcome['playerId'] == 1
    assert '1' in welcome['gameState']['players']
    client.disconnect()
    assert live.store.player(1)['isActive'] is False


def test_move_is_broadcast_to_other_clients(live):
    first = server.socketio.test_client(server.app)
    second = server.socketio.test_client(server.app)
    first.get_received()
    second.get_received()

    p = live.store.player(1)
    clear_cell(live.store, 2, 1)
    clear_cell(live.store, 2, 2)
    p['x'], p['y'] = 2, 2
    first.emit('player_move', {'x': 2, 'y': 1})

    assert _named(second.get_received(), 'player_moved') == [{'playerId': 1, 'x': 2, 'y': 1}]
    assert _named(first.get_received(), 'player_position') == [{'playerId': 1, 'x': 2, 'y': 1}]


def test_join_is_not_echoed_to_joiner(live):
    first = server.socketio.test_client(server.app)
    second = server.socketio.test_client(server.app)
    assert not _named(second.get_received(), 'player_joined')
    assert _named(first.get_received(), 'player_joined')[0]['player']['id'] == 2


def test_accepted_build_is_persisted(live):
    client = server.socketio.test_client(server.app)
    client.get_received()
    p = live.store.player(1)
    clear_cell(live.store, 12, 11)
    p['x'], p['y'] = 12, 12
    p['inventory']['wood'] = 4
    client.emit('place_block', {'x': 12, 'y': 11, 'type': 'wall'})

    assert os.path.exists(live.store.path)
    with open(live.store.path, encoding='utf-8') as f:
        doc = json.load(f)
    assert {'x': 12, 'y': 11, 'type': 'wall', 'material': 'wood'} in doc['blocks']
    assert doc['players']['1']['inventory']['wood'] == 0


def test_rejection_goes_only_to_sender(live):
    first = server.socketio.test_client(server.app)
    second = server.socketio.test_client(server.app)
    first.get_received()
    second.get_received()
    first.emit('place_block', {'x': 99, 'y': 0})
    assert _named(first.get_received(), 'action_rejected') == [{'action': 'place_block', 'reason': 'out_of_bounds'}]
    assert second.get_received() == []


def test_health_route(live):
    client = server.socketio.test_client(server.app)
    resp = server.app.test_client().get('/')
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['activePlayers'] == 1
    assert body['activeConnections'] == 1
    client.disconnect()


def test_reset_route_broadcasts_world_reset(live):
    client = server.socketio.test_client(server.app)
    client.get_received()
    live.store.blocks[(1, 1)] = {'x': 1, 'y': 1, 'type': 'wall'}
    resp = server.app.test_client().get('/reset')
    assert resp.status_code == 200
    assert resp.get_json()['gameState']['blocks'] == []
    assert _named(client.get_received(), 'world_reset')


def test_autosave_tick_writes_snapshot(live):
    for _ in range(8):
        live.store.allocate_player(None)
    server.autosave_tick()
    assert len(live.store.players) == 5
    assert os.path.exists(live.store.path)
