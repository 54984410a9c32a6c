"""
hostconf File Registry

This module holds the descriptors of every file the cache knows about:
fixed files keyed by path (and by a logical id), and file families keyed
by `directory + regex` which materialize a private descriptor per concrete
path on first lookup.

Dependencies:
- exceptions: registration and lookup errors
"""

import copy
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError

from .exceptions import (
    CodecNotImplementedError,
    DuplicateRegistrationError,
    NotRegisteredError,
    RegistrationClosedError,
    UnsupportedOptionError,
)

logger = logging.getLogger(__name__)

Parser = Callable[..., Any]
Writer = Callable[..., Any]
Updater = Callable[..., Any]


def default_parser(path: str, fh) -> Any:
    raise CodecNotImplementedError(f"undefined config reader for '{path}'")


def default_writer(path: str, fh, data: Any) -> Any:
    raise CodecNotImplementedError(f"undefined config writer for '{path}'")


class CacheOptions(BaseModel):
    """Per-registration cache behaviour flags."""
    readonce: bool = False
    nocache: bool = False
    shadow: Optional[str] = None
    perm: Optional[int] = None
    # reads return the cached object itself
    noclone: bool = False
    # call the parser even when the file does not exist, so it can supply a default
    always_call_parser: bool = False
    model_config = ConfigDict(extra="forbid", frozen=True)


def parse_options(**options: Any) -> CacheOptions:
    try:
        return CacheOptions(**options)
    except ValidationError as e:
        unknown = [err["loc"][0] for err in e.errors() if err["type"] == "extra_forbidden"]
        if unknown:
            raise UnsupportedOptionError(f"unsupported option(s) {', '.join(map(str, unknown))}") from e
        raise UnsupportedOptionError(f"invalid cache options: {e}") from e


@dataclass
class Descriptor:
    """
    Registration record for one file (or the template of a file family).

    The codec functions and options are fixed at registration; `data`,
    `version` and `diff` are the mutable cache state owned by the engine.
    """
    id: Optional[str]
    parser: Parser
    writer: Writer
    updater: Optional[Updater] = None
    options: CacheOptions = field(default_factory=CacheOptions)
    directory: Optional[str] = None
    regex: Optional[str] = None

    data: Any = None
    version: Optional[int] = None
    diff: Optional[str] = None

    def clear(self):
        self.data = None
        self.version = None
        self.diff = None

    def materialize(self) -> "Descriptor":
        """Private copy of a pattern template, with empty cache state."""
        clone = copy.copy(self)
        clone.clear()
        return clone


class Registry:
    """
    Maps logical ids, canonical paths and file patterns to descriptors.

    Keys are only added while the registry is open; the engine closes it
    when the change-notification session starts.
    """

    def __init__(self):
        self._files: Dict[str, Descriptor] = {}
        self._ids: Dict[str, str] = {}
        self._patterns: Dict[str, Descriptor] = {}
        self._compiled: Dict[str, re.Pattern] = {}
        self._materialized: Dict[str, Descriptor] = {}
        self._shadows: Dict[str, str] = {}
        self._closed = False
        logger.debug(f"Initialized {self.__class__.__name__}")

    # --- Lifecycle ---

    def close(self):
        self._closed = True

    def reopen(self):
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self, what: str):
        if self._closed:
            raise RegistrationClosedError(f"can't register {what} after the watch session started")

    # --- Registration ---

    def register(self, id: str, path: str, parser: Optional[Parser] = None,
                 writer: Optional[Writer] = None, updater: Optional[Updater] = None,
                 **options: Any) -> Descriptor:
        self._check_open(f"file '{path}'")
        path = os.path.normpath(path)
        if path in self._files:
            raise DuplicateRegistrationError(f"file '{path}' already added")
        if id in self._ids:
            raise DuplicateRegistrationError(f"ID '{id}' already used")

        desc = Descriptor(
            id=id,
            parser=parser or default_parser,
            writer=writer or default_writer,
            updater=updater,
            options=parse_options(**options),
        )
        if desc.options.shadow:
            self._shadows[path] = os.path.normpath(desc.options.shadow)

        self._ids[id] = path
        self._files[path] = desc
        logger.debug(f"Registered file: {id} -> {path}")
        return desc

    def register_pattern(self, directory: str, regex: str, parser: Optional[Parser] = None,
                         writer: Optional[Writer] = None, updater: Optional[Updater] = None,
                         **options: Any) -> Descriptor:
        self._check_open("pattern")
        directory = os.path.normpath(directory)
        uid = f"{directory}/{regex}"
        if uid in self._patterns:
            raise DuplicateRegistrationError(f"regular expression '{uid}' already added")

        desc = Descriptor(
            id=None,
            parser=parser or default_parser,
            writer=writer or default_writer,
            updater=updater,
            options=parse_options(**options),
            directory=directory,
            regex=regex,
        )
        self._patterns[uid] = desc
        self._compiled[uid] = re.compile(rf"^{re.escape(directory)}/+({regex})$")
        logger.debug(f"Registered pattern: {uid}")
        return desc

    def add_shadow(self, path: str, shadow: str):
        """Edit `path` through the working copy `shadow`."""
        self._check_open(f"shadow for '{path}'")
        self._shadows[os.path.normpath(path)] = os.path.normpath(shadow)

    # --- Lookup ---

    def lookup(self, key: str) -> Tuple[Descriptor, str]:
        """
        Resolve an id or a path to its descriptor and canonical path.

        Paths below a registered pattern get a private descriptor the first
        time they are seen.
        """
        if key in self._ids:
            path = self._ids[key]
            return self._files[path], path

        path = os.path.normpath(key)
        if path in self._files:
            return self._files[path], path
        if path in self._materialized:
            return self._materialized[path], path

        for uid, template in self._patterns.items():
            match = self._compiled[uid].match(key)
            if match:
                path = os.path.join(template.directory, match.group(1))
                desc = self._materialized.get(path)
                if desc is None:
                    desc = template.materialize()
                    self._materialized[path] = desc
                    logger.debug(f"Materialized descriptor for '{path}' from pattern '{uid}'")
                return desc, path

        raise NotRegisteredError(f"file '{key}' not added")

    def shadow_of(self, path: str) -> Optional[str]:
        return self._shadows.get(path)

    # --- Introspection ---

    @property
    def files(self) -> Dict[str, Descriptor]:
        return self._files

    @property
    def ids(self) -> Dict[str, str]:
        return self._ids

    @property
    def shadows(self) -> Dict[str, str]:
        return self._shadows

    def patterns(self) -> List[Descriptor]:
        return list(self._patterns.values())

    def pattern_matches(self, directory: str, name: str) -> List[str]:
        """Concrete paths for `name` in `directory` matched by any registered pattern."""
        return [
            os.path.join(directory, name)
            for desc in self._patterns.values()
            if desc.directory == directory and re.fullmatch(desc.regex, name)
        ]

    def descriptors(self) -> Iterator[Descriptor]:
        yield from self._files.values()
        yield from self._materialized.values()

