import os
import time

from watchdog.observers.polling import PollingObserver

from hostconf.cache import FileCache
from hostconf.registry import Registry
from hostconf.watch import RawEvent, VersionTable, WatchDispatcher


def make_dispatcher(registry, observers, on_overflow=lambda: None, **kwargs):
    watch = WatchDispatcher(registry, VersionTable(), on_overflow, observer_factory=observers, **kwargs)
    watch.start()
    return watch


class TestVersionTable:

    def test_unknown_path_is_zero(self):
        assert VersionTable().get("/etc/hosts") == 0

    def test_bump_is_monotonic(self):
        versions = VersionTable()
        assert versions.bump("/etc/hosts") == 1
        assert versions.bump("/etc/hosts") == 2
        assert versions.get("/etc/hosts") == 2
        assert len(versions) == 1


class TestDispatch:

    def test_watches_directories_not_files(self, tmp_path, observers):
        reg = Registry()
        reg.register("hosts", str(tmp_path / "hosts"))
        reg.register("hostname", str(tmp_path / "hostname"))
        reg.register("missing", str(tmp_path / "nodir" / "x"))

        watch = make_dispatcher(reg, observers)

        assert observers.created[0].scheduled == [str(tmp_path)]
        assert watch.directories == {str(tmp_path), str(tmp_path / "nodir")}
        assert watch.watches(str(tmp_path / "hosts"))
        assert not watch.watches(str(tmp_path / "nodir" / "x"))

    def test_fixed_and_pattern_name_in_same_directory(self, tmp_path, observers):
        reg = Registry()
        reg.register("vz-main", str(tmp_path / "100.conf"))
        reg.register_pattern(str(tmp_path), r"\d+\.conf")
        watch = make_dispatcher(reg, observers)
        before = watch.versions.get(str(tmp_path / "100.conf"))

        watch.dispatch(RawEvent("modified", str(tmp_path / "100.conf"), "", False))

        assert watch.versions.get(str(tmp_path / "100.conf")) > before

    def test_directory_events_are_ignored(self, tmp_path, observers):
        reg = Registry()
        reg.register("hosts", str(tmp_path / "hosts"))
        watch = make_dispatcher(reg, observers)

        watch.dispatch(RawEvent("created", str(tmp_path / "subdir"), "", True))

        assert watch.active

    def test_deleted_watched_directory_disables_session(self, tmp_path, observers):
        reg = Registry()
        reg.register("hosts", str(tmp_path / "hosts"))
        watch = make_dispatcher(reg, observers)

        watch.dispatch(RawEvent("deleted", str(tmp_path), "", True))

        assert not watch.active
        assert observers.created[0].stopped

    def test_dead_observer_disables_session(self, tmp_path, observers):
        reg = Registry()
        reg.register("hosts", str(tmp_path / "hosts"))
        watch = make_dispatcher(reg, observers)

        observers.created[0].alive = False
        watch.poll()

        assert not watch.active

    def test_poll_in_forked_child_disables_session(self, tmp_path, observers, monkeypatch):
        reg = Registry()
        reg.register("hosts", str(tmp_path / "hosts"))
        watch = make_dispatcher(reg, observers)
        parent_pid = os.getpid()

        monkeypatch.setattr("hostconf.watch.os.getpid", lambda: parent_pid + 1)
        watch.poll()

        assert not watch.active
        # the observer belongs to the parent, the child only forgets it
        assert not observers.created[0].stopped

    def test_overflow_calls_back(self, tmp_path, observers):
        flushed = []
        reg = Registry()
        reg.register("hosts", str(tmp_path / "hosts"))
        watch = make_dispatcher(reg, observers, on_overflow=lambda: flushed.append(True), queue_size=2)

        for name in ("a", "b", "c", "d"):
            watch.handler.on_any_event(_FakeEvent("modified", str(tmp_path / name)))
        watch.poll()

        assert flushed == [True]
        assert watch.active

    def test_irrelevant_event_types_are_dropped(self, tmp_path, observers):
        reg = Registry()
        reg.register("hosts", str(tmp_path / "hosts"))
        watch = make_dispatcher(reg, observers)
        before = watch.versions.get(str(tmp_path / "hosts"))

        watch.handler.on_any_event(_FakeEvent("opened", str(tmp_path / "hosts")))
        watch.poll()

        assert watch.versions.get(str(tmp_path / "hosts")) == before


class _FakeEvent:
    def __init__(self, event_type, src_path, dest_path="", is_directory=False):
        self.event_type = event_type
        self.src_path = src_path
        self.dest_path = dest_path
        self.is_directory = is_directory


class TestRealObserver:
    """One end-to-end run with watchdog's polling observer."""

    def test_modification_is_noticed(self, tmp_path):
        hosts = tmp_path / "hosts"
        hosts.write_text("127.0.0.1 localhost\n")
        cache = FileCache()
        cache.register("etchosts", str(hosts), lambda path, fh: fh.read())
        cache.init_watch(observer_factory=lambda: PollingObserver(timeout=0.1))
        try:
            start = cache.versions.get(str(hosts))
            assert cache.read("etchosts") == "127.0.0.1 localhost\n"

            time.sleep(0.2)
            hosts.write_text("127.0.0.1 localhost\n192.0.2.1 node1\n")

            deadline = time.monotonic() + 5
            while cache.poll_changes(str(hosts)) == start and time.monotonic() < deadline:
                time.sleep(0.1)

            assert cache.versions.get(str(hosts)) > start
            assert cache.read("etchosts") == "127.0.0.1 localhost\n192.0.2.1 node1\n"
        finally:
            cache.close_watch()

