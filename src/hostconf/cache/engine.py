import copy
import logging
import os
from typing import Any, Callable, NamedTuple, Optional

from .. import constants
from ..exceptions import CodecNotImplementedError, HostConfError, HostConfIOError
from ..io.atomic import atomic_write, file_set_contents, lock_file, lock_name, remove_file
from ..io.diff import compute_diff
from ..registry import Descriptor, Registry
from ..watch import VersionTable, WatchDispatcher

logger = logging.getLogger(__name__)


class FileResult(NamedTuple):
    """Result of a full read/write: the data plus the pending working-copy diff."""
    data: Any
    changes: Optional[str]


def clone_value(value: Any) -> Any:
    """The copy handed to callers so they can never alias cached state."""
    if value is None or isinstance(value, (str, bytes, int, float, bool)):
        return value
    return copy.deepcopy(value)


def _open_or_none(path: str):
    try:
        return open(path, "r", encoding=constants.FILE_ENCODING, errors=constants.FILE_ERRORS)
    except OSError:
        return None


class FileCache:
    """
    Read/write/update API over registered host files.

    Parsed values are cached per descriptor and served again as long as
    the watch session reports no change for the file.
    """

    def __init__(self, registry: Optional[Registry] = None,
                 default_perm: int = constants.DEFAULT_PERM,
                 lock_timeout: float = constants.DEFAULT_LOCK_TIMEOUT):
        self.registry = registry if registry is not None else Registry()
        self.versions = VersionTable()
        self.default_perm = default_perm
        self.lock_timeout = lock_timeout
        self._watch: Optional[WatchDispatcher] = None

    # ------------------------------------------------------------
    #
    # Registration
    #
    # ------------------------------------------------------------

    def register(self, id: str, path: str, parser=None, writer=None, updater=None, **options) -> Descriptor:
        return self.registry.register(id, path, parser, writer, updater, **options)

    def register_pattern(self, directory: str, regex: str, parser=None, writer=None, updater=None,
                         **options) -> Descriptor:
        return self.registry.register_pattern(directory, regex, parser, writer, updater, **options)

    def register_codec(self, id: str, path: str, codec, **options) -> Descriptor:
        """Register a Codec object; operations it does not implement stay unsupported."""
        return self.registry.register(
            id, path,
            getattr(codec, "parse", None),
            getattr(codec, "write", None),
            getattr(codec, "update", None),
            **options,
        )

    # ------------------------------------------------------------
    #
    # Watch session
    #
    # ------------------------------------------------------------

    def init_watch(self, observer_factory: Optional[Callable[[], object]] = None,
                   queue_size: int = constants.DEFAULT_WATCH_QUEUE_SIZE) -> WatchDispatcher:
        """Start the change-notification session; registration is closed from now on."""
        if self._watch is not None and self._watch.active:
            raise HostConfError("only one watch session allowed")

        kwargs = {"queue_size": queue_size}
        if observer_factory is not None:
            kwargs["observer_factory"] = observer_factory
        self.registry.close()
        watch = WatchDispatcher(self.registry, self.versions, self.flush, **kwargs)
        try:
            watch.start()
        except Exception:
            self.registry.reopen()
            raise
        self._watch = watch
        return watch

    def close_watch(self):
        """Drop the session, e.g. right after a fork."""
        if self._watch is not None:
            self._watch.stop()
            self._watch = None
        self.registry.reopen()

    @property
    def watching(self) -> bool:
        return self._watch is not None and self._watch.active

    def _watched(self, path: str) -> bool:
        return self._watch is not None and self._watch.watches(path)

    def poll_changes(self, path: str) -> int:
        if self._watch is not None:
            self._watch.poll()
        return self.versions.get(path)

    def flush(self):
        """Forget every cached value, version and diff."""
        for desc in self.registry.descriptors():
            desc.clear()
        logger.debug("Flushed file cache")

    # ------------------------------------------------------------
    #
    # Operations
    #
    # ------------------------------------------------------------

    def _result(self, desc: Descriptor, full: bool):
        data = desc.data if desc.options.noclone else clone_value(desc.data)
        return FileResult(data, desc.diff) if full else data

    def read(self, key: str, full: bool = False):
        """
        Return the parsed content of a registered file.

        Args:
            key: logical id or path
            full: return a FileResult with the pending working-copy diff

        Returns:
            The parsed value (a private copy), or None if the file does not
            exist and the registration does not ask for the parser anyway.
        """
        desc, path = self.registry.lookup(key)
        opts = desc.options

        cver = self.poll_changes(path)

        fh = None
        shadow = None
        copy_path = self.registry.shadow_of(path)
        if copy_path:
            fh = _open_or_none(copy_path)
            if fh is not None:
                shadow = copy_path
        if fh is None:
            fh = _open_or_none(path)

        if fh is None:
            desc.clear()
            if not opts.always_call_parser:
                return None

        try:
            if (not opts.nocache and self._watched(path) and cver
                    and desc.data is not None and desc.version is not None
                    and (opts.readonce or desc.version == cver)):
                logger.debug(f"Cache hit for '{path}' (version {cver})")
                return self._result(desc, full)

            diff = compute_diff(path, shadow) if shadow else None

            logger.debug(f"Parsing '{shadow or path}' (version {cver})")
            data = desc.parser(path, fh)
        finally:
            if fh is not None:
                fh.close()

        if not opts.nocache:
            desc.version = cver
        desc.data = data
        desc.diff = diff
        return self._result(desc, full)

    def write(self, key: str, data: Any, full: bool = False):
        """
        Atomically replace a registered file (its working copy, if it has one).

        Returns:
            What the writer returned, or a FileResult with the diff against
            the canonical file when `full` is set.
        """
        desc, path = self.registry.lookup(key)
        shadow = self.registry.shadow_of(path)
        target = shadow or path
        perm = desc.options.perm if desc.options.perm is not None else self.default_perm

        try:
            res = atomic_write(target, lambda fh: desc.writer(path, fh, data), perm)
        finally:
            # the watch may never see this write (e.g. unwatched working copy)
            desc.version = None

        logger.info(f"Wrote '{target}'")
        if not full:
            return res
        diff = compute_diff(path, shadow) if shadow else None
        return FileResult(res, diff)

    def update(self, key: str, data: Any, *args: Any) -> None:
        """
        Merge `data` into a registered file under its advisory lock.

        The updater gets the current content (None if the file is missing)
        and returns the new content, or None to delete the file.
        """
        desc, path = self.registry.lookup(key)
        if desc.updater is None:
            raise CodecNotImplementedError(f"unable to update/merge data of '{path}'")

        with lock_file(lock_name(path), self.lock_timeout):
            fh = _open_or_none(path)
            try:
                new = desc.updater(path, fh, data, *args)
            finally:
                if fh is not None:
                    fh.close()

            try:
                if new:
                    perm = desc.options.perm if desc.options.perm is not None else self.default_perm
                    file_set_contents(path, new, perm)
                else:
                    remove_file(path)
                    logger.info(f"Removed '{path}' (updater returned no content)")
            finally:
                desc.version = None

        logger.info(f"Updated '{path}'")
        return None

    def discard_changes(self, key: str, full: bool = False):
        """Delete the working copy (if any) and re-read the canonical file."""
        desc, path = self.registry.lookup(key)
        shadow = self.registry.shadow_of(path)
        if shadow:
            try:
                os.unlink(shadow)
                logger.info(f"Discarded working copy '{shadow}'")
            except FileNotFoundError:
                pass
            except OSError as e:
                raise HostConfIOError(f"unable to remove '{shadow}' - {e.strerror}", path=shadow) from e
            desc.version = None
        return self.read(path, full)
