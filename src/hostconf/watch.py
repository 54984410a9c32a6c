"""
hostconf change notification.

A WatchDispatcher owns the one watchdog observer of the process. The
observer thread only queues raw events; versions are bumped in the
caller's thread when `poll()` drains that queue, so cache state is never
touched concurrently.
"""

import logging
import os
import queue
import threading
from typing import Callable, Dict, Iterable, NamedTuple, Optional, Set

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from . import constants
from .registry import Registry

logger = logging.getLogger(__name__)

# create / modify / attribute change / moved from / moved to / delete
RELEVANT_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED, EVENT_TYPE_DELETED}


class RawEvent(NamedTuple):
    event_type: str
    src_path: str
    dest_path: str
    is_directory: bool


class VersionTable:
    """Monotonic change counter per absolute path."""

    def __init__(self):
        self._versions: Dict[str, int] = {}

    def get(self, path: str) -> int:
        return self._versions.get(path, 0)

    def bump(self, path: str) -> int:
        self._versions[path] = self._versions.get(path, 0) + 1
        return self._versions[path]

    def __len__(self) -> int:
        return len(self._versions)


class _QueueingHandler(FileSystemEventHandler):
    """Runs in the observer thread; never touches cache state."""

    def __init__(self, events: "queue.Queue[RawEvent]", overflow: threading.Event):
        super().__init__()
        self._events = events
        self._overflow = overflow

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in RELEVANT_EVENTS:
            return
        raw = RawEvent(
            event.event_type,
            os.fsdecode(event.src_path),
            os.fsdecode(getattr(event, "dest_path", "") or ""),
            event.is_directory,
        )
        try:
            self._events.put_nowait(raw)
        except queue.Full:
            self._overflow.set()


class WatchDispatcher:
    """
    Maps watched directories to the tracked names inside them and turns
    filesystem events into version bumps.

    Args:
        registry: the (closed) file registry
        versions: version table to bump; kept across sessions so versions stay monotonic
        on_overflow: called when events were lost and every cached value must go
        observer_factory: creates the watchdog observer (injectable for tests)
        queue_size: pending events tolerated before declaring an overflow
    """

    def __init__(self, registry: Registry, versions: VersionTable,
                 on_overflow: Callable[[], None],
                 observer_factory: Callable[[], object] = Observer,
                 queue_size: int = constants.DEFAULT_WATCH_QUEUE_SIZE):
        self.registry = registry
        self.versions = versions
        self._on_overflow = on_overflow
        self._observer_factory = observer_factory
        self._events: "queue.Queue[RawEvent]" = queue.Queue(maxsize=queue_size)
        self._overflow = threading.Event()
        self.handler = _QueueingHandler(self._events, self._overflow)
        self._observer = None
        self._pid: Optional[int] = None
        self._active = False
        # dir -> {basename: canonical path}
        self._files: Dict[str, Dict[str, str]] = {}
        self._pattern_dirs: Set[str] = set()
        # directories that did not exist at session start
        self._unwatched: Set[str] = set()
        # registered files whose file or working copy lives in such a directory
        self._blind: Set[str] = set()

    @property
    def active(self) -> bool:
        return self._active

    def watches(self, path: str) -> bool:
        """Whether changes of `path` are reported; if not, cached values must not be trusted."""
        return self._active and path not in self._blind and os.path.dirname(path) not in self._unwatched

    @property
    def pid(self) -> Optional[int]:
        return self._pid

    @property
    def directories(self) -> Set[str]:
        return set(self._files) | self._pattern_dirs

    def _build_dirmap(self):
        self._files = {}
        for path in self.registry.files:
            self._files.setdefault(os.path.dirname(path), {})[os.path.basename(path)] = path
            shadow = self.registry.shadow_of(path)
            if shadow:
                # changes of the working copy bump the canonical file
                self._files.setdefault(os.path.dirname(shadow), {})[os.path.basename(shadow)] = path
        self._pattern_dirs = {desc.directory for desc in self.registry.patterns()}

    def start(self):
        """Create the session, watch every relevant directory and pre-seed versions."""
        self._build_dirmap()
        self._pid = os.getpid()
        self._observer = self._observer_factory()
        self._unwatched = set()

        for directory in sorted(self.directories):
            if not os.path.isdir(directory):
                logger.warning(f"Not watching missing directory '{directory}'")
                self._unwatched.add(directory)
                continue
            self._observer.schedule(self.handler, directory, recursive=False)
            logger.debug(f"Watching directory '{directory}'")

        self._blind = {path for d in self._unwatched for path in self._files.get(d, {}).values()}
        self._observer.start()
        self._active = True
        self._seed()
        logger.info(f"Watch session started in process {self._pid} ({len(self.directories)} directories)")

    def _seed(self):
        # existence at start counts as a change relative to "never read"
        for names in self._files.values():
            for path in set(names.values()):
                self.versions.bump(path)
        for directory in self._pattern_dirs - self._unwatched:
            try:
                entries = os.listdir(directory)
            except OSError as e:
                logger.debug(f"Unable to list pattern directory '{directory}': {e}")
                continue
            for name in entries:
                for path in self.registry.pattern_matches(directory, name):
                    self.versions.bump(path)

    def stop(self):
        """Drop the session. Safe to call on an already disabled dispatcher."""
        observer = self._observer
        self._observer = None
        self._active = False
        if observer is not None and self._pid == os.getpid():
            observer.stop()
            if observer.is_alive():
                observer.join(timeout=5)
        logger.debug("Watch session stopped")

    def disable(self, reason: str):
        logger.error(f"{reason} - disabling change notification")
        self._active = False
        if self._pid == os.getpid():
            self.stop()
        else:
            # the observer thread lives in another process, only forget it
            self._observer = None

    def poll(self):
        """Drain pending events without blocking and apply them."""
        if not self._active:
            return
        if self._pid != os.getpid():
            self.disable("got watch poll request in wrong process")
            return
        if self._observer is not None and not self._observer.is_alive():
            self.disable("watch observer thread died")
            return

        while self._active:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                break
            self.dispatch(event)

        if self._overflow.is_set():
            self._overflow.clear()
            logger.info("got watch queue overflow - flushing cache")
            self._on_overflow()

    def dispatch(self, event: RawEvent):
        if self._pid != os.getpid():
            self.disable("got watch event in wrong process")
            return

        if event.is_directory:
            if event.event_type in (EVENT_TYPE_DELETED, EVENT_TYPE_MOVED) \
                    and os.path.normpath(event.src_path) in self.directories:
                self.disable(f"watched directory '{event.src_path}' went away")
            return

        paths = [event.src_path]
        if event.event_type == EVENT_TYPE_MOVED and event.dest_path:
            paths.append(event.dest_path)
        for path in paths:
            self._bump(os.path.dirname(path), os.path.basename(path))

    def _bump(self, directory: str, name: str):
        if not name:
            return
        directory = os.path.normpath(directory)
        touched: Iterable[str] = []
        if directory in self._pattern_dirs:
            touched = self.registry.pattern_matches(directory, name)
        fixed = self._files.get(directory, {}).get(name)
        if fixed:
            touched = [*touched, fixed]
        for path in touched:
            version = self.versions.bump(path)
            logger.debug(f"Version of '{path}' is now {version}")
