"""
hostconf IO Module

- atomic_write / file_set_contents: temp-file-plus-rename persistence
- lock_file: advisory, timeout-bounded exclusive lock on a sibling lock file
- compute_diff: unified diff between a canonical file and its working copy

Usage:
    from hostconf.io import atomic_write, lock_file

    with lock_file("/etc/hosts.lock", timeout=10):
        atomic_write("/etc/hosts", lambda fh: fh.write(text))
"""

from .atomic import (
    atomic_write,
    file_set_contents,
    lock_file,
    lock_name,
    remove_file,
    tmp_name,
    wrap_io_error,
)
from .diff import compute_diff

__all__ = [
    'atomic_write',
    'file_set_contents',
    'lock_file',
    'lock_name',
    'remove_file',
    'tmp_name',
    'wrap_io_error',
    'compute_diff',
]
