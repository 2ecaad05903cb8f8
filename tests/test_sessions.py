from helpers import events, join


def test_first_connection_creates_player_and_welcomes(engine):
    out = engine.connect('sid-a')
    welcome = [e for e in out.emits if e.event == 'welcome']
    assert len(welcome) == 1 and welcome[0].to == 'sid-a'
    assert welcome[0].data['playerId'] == 1
    state = welcome[0].data['gameState']
    assert set(state) >= {'players', 'blocks', 'mapSeed', 'harvested', 'spawnedResources'}
    # connection ids never leave the server
    assert 'socketId' not in state['players']['1']

    joined = out.named('player_joined')
    assert joined[0].skip == 'sid-a'
    p = engine.store.player(1)
    assert p['isActive'] and p['socketId'] == 'sid-a'
    assert p['name'] == 'Player 1'
    assert p['hp'] == 100


def test_spawned_players_never_share_a_cell(engine):
    for i in range(10):
        engine.connect(f'sid-{i}')
    cells = [(p['x'], p['y']) for p in engine.store.active_players()]
    assert len(set(cells)) == len(cells)
    for x, y in cells:
        assert engine.store.effective_type(x, y) == 'open'


def test_disconnect_marks_inactive_and_broadcasts_left(engine):
    join(engine, 'sid-a')
    out = engine.disconnect('sid-a')
    assert events(out, 'player_left') == [{'playerId': 1}]
    p = engine.store.player(1)
    assert p['isActive'] is False
    assert p['socketId'] is None
    assert engine.sessions.player_for('sid-a') is None


def test_reconnect_reuses_inactive_player_and_keeps_inventory(engine):
    p = join(engine, 'sid-a')
    p['inventory']['wood'] = 9
    p['hp'] = 0
    engine.disconnect('sid-a')

    out = engine.connect('sid-b')
    assert out.named('player_reactivated')
    assert not out.named('player_joined')
    again = engine.sessions.player_for('sid-b')
    assert again['id'] == 1
    assert again['inventory']['wood'] == 9
    assert again['hp'] == 100
    assert again['isActive'] is True


def test_reuse_picks_lowest_inactive_id(engine):
    for sid in ('a', 'b', 'c'):
        engine.connect(sid)
    engine.disconnect('c')
    engine.disconnect('b')
    engine.connect('d')
    assert engine.sessions.player_for('d')['id'] == 2


def test_unknown_disconnect_is_ignored(engine):
    assert engine.disconnect('ghost').emits == []
