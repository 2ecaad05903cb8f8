# Tilecraft/tilecraft/server.py
import logging
import os
from flask import Flask, jsonify, request
from flask_socketio import SocketIO
from .config import get_setting
from .engine import GameEngine
from .events import Outbox
from .intents import INTENT_KINDS
from .store import WorldStore

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'secret!')
# Handlers run on worker threads; the world lock serializes them
socketio = SocketIO(app, cors_allowed_origins=get_setting('server', 'cors_allowed_origins', '*'),
                    async_mode='threading')

# Authoritative world, shared by every connection
store = WorldStore()
engine = GameEngine(store)

_autosave_task = None


def deliver(out: Outbox) -> None:
    for e in out.emits:
        if e.to:
            socketio.emit(e.event, e.data, to=e.to)
        elif e.skip:
            socketio.emit(e.event, e.data, skip_sid=e.skip)
        else:
            socketio.emit(e.event, e.data)


def _run(fn, *args) -> Outbox:
    # emit while still holding the lock so every client sees application order
    with engine.lock:
        out = fn(*args)
        deliver(out)
    if out.persist:
        engine.store.save()
    return out


@socketio.on('connect')
def on_connect(auth=None):
    logger.info('New user connected: %s', request.sid)
    _run(engine.connect, request.sid)


@socketio.on('disconnect')
def on_disconnect(reason=None):
    logger.info('User disconnected: %s', request.sid)
    _run(engine.disconnect, request.sid)


def _intent_handler(kind: str):
    def handler(data=None):
        _run(engine.handle, request.sid, kind, data)
    handler.__name__ = f'on_{kind}'
    return handler


for _kind in INTENT_KINDS:
    socketio.on_event(_kind, _intent_handler(_kind))


@app.route('/')
def health():
    return jsonify(engine.health())


@app.route('/reset')
def reset():
    _run(engine.reset_world)
    with engine.lock:
        state = engine.store.to_dict(public=True)
    return jsonify({'message': 'Game state has been reset', 'gameState': state})


def autosave_tick() -> None:
    engine.store.cleanup_inactive_players()
    engine.store.save()


def _autosave_loop():
    interval = float(get_setting('persistence', 'save_interval_seconds', 300))
    while True:
        socketio.sleep(interval)
        autosave_tick()


def start_autosave():
    global _autosave_task
    if _autosave_task is None:
        _autosave_task = socketio.start_background_task(_autosave_loop)
    return _autosave_task


def run_server():
    start_autosave()
    host = get_setting('server', 'host', '0.0.0.0')
    port = int(get_setting('server', 'port', 3000))
    logger.info('Game state auto-saves every %s minutes',
                float(get_setting('persistence', 'save_interval_seconds', 300)) / 60)
    socketio.run(app, host=host, port=port, allow_unsafe_werkzeug=True)
