"""
hostconf Codec Base Class

A codec is the parse/serialize(/merge) capability set of one file format.
FileCache.register_codec() binds `parse`, `write` and, when a subclass
defines it, `update`. The base implementations fail loudly so a file that
was registered read-only cannot be written by accident.
"""

from abc import ABC
from typing import Any, IO, Optional

from ..exceptions import CodecNotImplementedError


class Codec(ABC):
    """
    Abstract class describing one file format.

    Subclasses override `parse` and/or `write`, and may add
    `update(path, fh, value, *args)` returning the new file content (or
    None to delete the file).
    """

    def parse(self, path: str, fh: Optional[IO[str]]) -> Any:
        """
        Parse an open file.

        Args:
            path: canonical path of the file, even when reading a working copy
            fh: readable handle, or None if the file is absent and the file was
                registered with `always_call_parser`
        """
        raise CodecNotImplementedError(f"undefined config reader for '{path}'")

    def write(self, path: str, fh: IO[str], value: Any) -> Any:
        """
        Serialize `value` into `fh`.

        Returns:
            The value as it was written; it may be a normalized form of `value`.
        """
        raise CodecNotImplementedError(f"undefined config writer for '{path}'")
