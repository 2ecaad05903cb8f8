import json
import random

from helpers import clear_area
from tilecraft.items import MAX_ITEM_SLOTS
from tilecraft.store import WorldStore, sanitize_state
from world.types import CENTER, GRID_SIZE, OPEN


def test_sanitize_empty_document_gets_defaults():
    state = sanitize_state({})
    assert state['players'] == {}
    assert state['nextPlayerId'] == 1
    assert state['blocks'] == []
    assert 1 <= state['mapSeed'] <= 0xFFFFFFFF
    assert state['harvested'] == []
    assert state['spawnedResources'] == []


def test_sanitize_non_dict_document():
    assert sanitize_state(['not', 'a', 'state'])['players'] == {}


def test_sanitize_forces_players_inactive_and_coerces_fields():
    raw = {
        'players': {
            '3': {
                'id': 3, 'name': 'Player 3', 'x': 40, 'y': -2, 'isActive': True, 'socketId': 'abc',
                'inventory': {'wood': '7', 'stone': None, 'gold': -4, 'diamond': 2.9},
                'skills': {'mining': {'level': '3', 'xp': 'lots'}},
                'tools': {'pickaxe': 'stone', 'axe': 'plastic'},
                'items': list(range(20)),
            },
        },
        'nextPlayerId': 2,
    }
    state = sanitize_state(raw)
    p = state['players']['3']
    assert p['isActive'] is False
    assert p['socketId'] is None
    assert (p['x'], p['y']) == (GRID_SIZE - 1, 0)
    assert p['inventory'] == {'wood': 7, 'stone': 0, 'gold': 0, 'diamond': 2}
    assert p['skills']['mining'] == {'level': 3, 'xp': 0}
    assert p['skills']['building'] == {'level': 1, 'xp': 0}
    assert p['tools'] == {'pickaxe': 'stone', 'axe': 'wood'}
    assert len(p['items']) == MAX_ITEM_SLOTS
    # next id always passes every existing id
    assert state['nextPlayerId'] == 4


def test_sanitize_drops_duplicate_blocks_and_clamps_cells():
    raw = {
        'blocks': [
            {'x': 1, 'y': 1, 'type': 'wall', 'material': 'wood'},
            {'x': 1, 'y': 1, 'type': 'workbench'},
            {'x': 99, 'y': 3, 'type': 'wall'},
            {'y': 5},
            'garbage',
        ],
        'harvested': [{'x': -5, 'y': 2}, {'x': 'a'}],
        'spawnedResources': [{'x': 2, 'y': 30, 'type': 'gold'}, {'x': 1, 'y': 1, 'type': 'lava'}],
        'mapSeed': 1337,
    }
    state = sanitize_state(raw)
    assert state['blocks'] == [
        {'x': 1, 'y': 1, 'type': 'wall', 'material': 'wood'},
        {'x': GRID_SIZE - 1, 'y': 3, 'type': 'wall'},
    ]
    assert state['harvested'] == [{'x': 0, 'y': 2}]
    assert state['spawnedResources'] == [{'x': 2, 'y': GRID_SIZE - 1, 'type': 'gold'}]
    assert state['mapSeed'] == 1337


def test_load_corrupt_file_keeps_fresh_state(tmp_path):
    path = tmp_path / 'database.json'
    path.write_text('{not json', encoding='utf-8')
    store = WorldStore(str(path))
    assert store.load() is False
    assert store.players == {}


def test_load_missing_file(tmp_path):
    store = WorldStore(str(tmp_path / 'nope.json'))
    assert store.load() is False


def test_save_then_load_preserves_world(tmp_path, store):
    store.allocate_player('sid-1')
    store.blocks[(3, 3)] = {'x': 3, 'y': 3, 'type': 'wall', 'material': 'stone'}
    store.spawn_resource(4, 4, 'diamond')
    assert store.save() is True

    fresh = WorldStore(store.path)
    assert fresh.load() is True
    assert fresh.map_seed == 1337
    assert fresh.next_player_id == 2
    assert fresh.blocks[(3, 3)]['material'] == 'stone'
    assert fresh.effective_type(4, 4) == 'diamond'
    assert fresh.players[1]['isActive'] is False
    assert fresh.players[1]['socketId'] is None


def test_saved_file_uses_flat_layout(store):
    store.allocate_player('sid-1')
    store.save()
    with open(store.path, encoding='utf-8') as f:
        doc = json.load(f)
    assert set(doc) == {'players', 'nextPlayerId', 'blocks', 'mapSeed', 'harvested', 'spawnedResources'}
    assert '1' in doc['players']


def test_save_io_error_is_logged_not_raised(tmp_path, caplog):
    blocker = tmp_path / 'file'
    blocker.write_text('x', encoding='utf-8')
    store = WorldStore(str(blocker / 'sub' / 'database.json'))
    assert store.save() is False
    assert 'Error saving game state' in caplog.text


def test_spawn_wins_over_harvested_for_same_cell(tmp_path):
    seed = 1337
    store = WorldStore(str(tmp_path / 'db.json'))
    store.apply(sanitize_state({
        'mapSeed': seed,
        'harvested': [{'x': 5, 'y': 5}],
        'spawnedResources': [{'x': 5, 'y': 5, 'type': 'gold'}],
    }))
    assert store.effective_type(5, 5) == 'gold'


def test_harvest_then_spawn_overrides(store):
    store.spawn_resource(2, 2, 'wood')
    assert store.effective_type(2, 2) == 'wood'
    store.mark_harvested(2, 2)
    assert store.effective_type(2, 2) == OPEN


def test_find_spawn_cell_prefers_center(store):
    clear_area(store, CENTER[0] - 1, CENTER[1] - 1, CENTER[0] + 1, CENTER[1] + 1)
    assert store.find_spawn_cell() == CENTER
    p = store.allocate_player('a')
    assert (p['x'], p['y']) == CENTER
    # next nearest cell by distance, then row, then column
    assert store.find_spawn_cell() == (CENTER[0], CENTER[1] - 1)


def test_random_free_cell_avoids_blocks_players_and_resources(store):
    store.rng = random.Random(3)
    for _ in range(50):
        cell = store.random_free_cell(avoid=(0, 0))
        assert cell != (0, 0)
        assert store.is_free(*cell)


def test_cleanup_keeps_newest_inactive_players(store):
    for i in range(8):
        store.allocate_player(None)
    active = store.allocate_player('live')
    removed = store.cleanup_inactive_players(retention=5)
    assert removed == [1, 2, 3]
    assert sorted(store.players) == [4, 5, 6, 7, 8, active['id']]
    # ids are never handed out twice
    assert store.allocate_player(None)['id'] == 10


def test_set_seed_clears_overrides(store):
    store.spawn_resource(1, 1, 'gold')
    store.set_seed(99)
    assert store.overrides == {}
    assert store.map_seed == 99
