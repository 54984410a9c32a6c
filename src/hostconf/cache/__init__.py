"""
hostconf Cache Module

The cache system consists of three main components:
- Registry: descriptors of every registered file and file pattern
- WatchDispatcher: turns filesystem events into per-path versions
- FileCache: read/write/update/discard_changes on top of both
"""

from .engine import FileCache, FileResult, clone_value

__all__ = [
    'FileCache',
    'FileResult',
    'clone_value',
]
