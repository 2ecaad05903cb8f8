class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def clear_cell(store, x, y):
    """Make a cell plain open ground."""
    store.blocks.pop((x, y), None)
    store.mark_harvested(x, y)


def clear_area(store, x0, y0, x1, y1):
    for y in range(y0, y1 + 1):
        for x in range(x0, x1 + 1):
            clear_cell(store, x, y)


def join(engine, sid, x=None, y=None):
    """Connect a client and optionally pin its player to a cell."""
    engine.connect(sid)
    player = engine.sessions.player_for(sid)
    if x is not None:
        clear_cell(engine.store, x, y)
        player['x'], player['y'] = x, y
    return player


def events(out, name):
    return [e.data for e in out.named(name)]
