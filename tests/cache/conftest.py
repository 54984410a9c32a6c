import pytest


class FakeObserver:
    """Stands in for a watchdog observer; events are injected by the tests."""

    def __init__(self):
        self.scheduled = []
        self.alive = False
        self.stopped = False

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append(path)

    def start(self):
        self.alive = True

    def stop(self):
        self.alive = False
        self.stopped = True

    def is_alive(self):
        return self.alive

    def join(self, timeout=None):
        pass


@pytest.fixture
def observers():
    """Observer factory that remembers every observer it created."""
    created = []

    def factory():
        observer = FakeObserver()
        created.append(observer)
        return observer

    factory.created = created
    return factory


class TextCodec:
    """Counts parser calls so tests can tell cache hits from re-parses."""

    def __init__(self):
        self.parsed = []

    def parse(self, path, fh):
        self.parsed.append(path)
        return {"text": fh.read() if fh is not None else None}

    def write(self, path, fh, value):
        fh.write(value["text"])
        return value


@pytest.fixture
def codec():
    return TextCodec()
