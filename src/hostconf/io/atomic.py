"""
Crash-safe file persistence.

- Write through a `<target>.tmp.<pid>` sibling and rename it into place (atomic_write)
- Write a complete string the same way (file_set_contents)
- Guard read-modify-write cycles with an advisory `<target>.lock` (lock_file)
- Wrap OSError into hostconf exceptions carrying the path (wrap_io_error)
"""

import errno
import fcntl
import functools
import logging
import os
import time
from contextlib import contextmanager
from typing import Any, Callable, IO, Iterator, Optional

from .. import constants
from ..exceptions import HostConfIOError, LockTimeoutError

logger = logging.getLogger(__name__)


def wrap_io_error(func):
    """
    Decorator to wrap IO errors into hostconf exceptions.

    The first positional argument of the wrapped function is taken as the
    path the error is reported against.
    """

    @functools.wraps(func)
    def wrapper(path, *args, **kwargs):
        try:
            return func(path, *args, **kwargs)
        except HostConfIOError:
            raise
        except OSError as e:
            raise HostConfIOError(f"{func.__name__} '{path}' failed - {e.strerror or e}", path=path) from e

    return wrapper


def tmp_name(target: str) -> str:
    return f"{target}{constants.TMP_SUFFIX}.{os.getpid()}"


def lock_name(target: str) -> str:
    return f"{target}{constants.LOCK_SUFFIX}"


def _unlink_quiet(path: str):
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Unable to remove temporary file '{path}': {e}")


def atomic_write(target: str, writer: Callable[[IO[str]], Any], perm: int = constants.DEFAULT_PERM) -> Any:
    """
    Persist a file by writing a temporary sibling and renaming it over the target.

    Args:
        target: File to replace
        writer: Callable receiving the open text handle; its return value is passed through
        perm: File mode of the new file

    Returns:
        Whatever `writer` returned

    The target is never touched unless the writer and close succeeded; the
    temporary file is removed on every failure path.
    """
    tmp = tmp_name(target)
    try:
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, perm)
    except OSError as e:
        raise HostConfIOError(f"unable to open file '{tmp}' - {e.strerror}", path=tmp) from e

    try:
        with os.fdopen(fd, "w", encoding=constants.FILE_ENCODING, errors=constants.FILE_ERRORS) as fh:
            os.fchmod(fh.fileno(), perm)
            result = writer(fh)
    except OSError as e:
        _unlink_quiet(tmp)
        raise HostConfIOError(f"writing file '{tmp}' failed - {e.strerror or e}", path=tmp) from e
    except BaseException:
        _unlink_quiet(tmp)
        raise

    try:
        os.rename(tmp, target)
    except OSError as e:
        _unlink_quiet(tmp)
        raise HostConfIOError(f"close (rename) atomic file '{target}' failed - {e.strerror}", path=target) from e

    logger.debug(f"Atomically replaced '{target}' (mode {perm:o})")
    return result


def file_set_contents(target: str, content: str, perm: Optional[int] = None) -> None:
    """Atomically replace `target` with `content`."""
    atomic_write(target, lambda fh: fh.write(content), constants.DEFAULT_PERM if perm is None else perm)


@wrap_io_error
def remove_file(path: str) -> bool:
    """Remove a file, tolerating its absence. Returns whether it existed."""
    try:
        os.unlink(path)
    except FileNotFoundError:
        return False
    return True


@contextmanager
def lock_file(path: str, timeout: float = constants.DEFAULT_LOCK_TIMEOUT,
              poll_interval: float = constants.LOCK_POLL_INTERVAL) -> Iterator[int]:
    """
    Hold an exclusive advisory lock on `path` for the duration of the block.

    The lock file is created if needed and left in place afterwards. Waiting
    is bounded by `timeout` seconds, after which LockTimeoutError is raised.
    """
    try:
        fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o600)
    except OSError as e:
        raise HostConfIOError(f"can't open lock '{path}' - {e.strerror}", path=path) from e

    try:
        deadline = time.monotonic() + timeout
        attempt = 0
        while True:
            attempt += 1
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except OSError as e:
                # raise on unrelated IOErrors
                if e.errno not in (errno.EAGAIN, errno.EACCES):
                    raise HostConfIOError(f"can't lock '{path}' - {e.strerror}", path=path) from e
            if time.monotonic() >= deadline:
                logger.error(f"Failed to acquire lock '{path}' after {attempt} attempts")
                raise LockTimeoutError(f"can't lock file '{path}' - got timeout", path=path)
            time.sleep(poll_interval)

        logger.debug(f"Acquired lock '{path}'")
        try:
            yield fd
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            logger.debug(f"Released lock '{path}'")
    finally:
        os.close(fd)
