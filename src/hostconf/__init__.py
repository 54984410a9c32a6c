"""
hostconf - host configuration file cache

Cached, change-aware, atomically persisted access to the configuration
files of a host.

Main modules:
- registry: file and file-pattern registrations with their codecs
- cache: read / write / update / discard_changes with per-file versions
- watch: filesystem change notification feeding the cache
- io: atomic writes, advisory locks and working-copy diffs
- codecs: file formats, including /etc/network/interfaces
- files: the default host file set
- config: runtime settings

Quick start example:
```python
from hostconf import create_host_cache

cache = create_host_cache()
cache.init_watch()
config = cache.read("interfaces")
cache.write("interfaces", config)
```
"""

from .cache import FileCache, FileResult
from .codecs import Codec, InterfacesCodec, nodename
from .codecs.network import Interface, NetworkConfig
from .config import Settings, load_settings
from .files import create_host_cache, register_host_files
from .registry import CacheOptions, Descriptor, Registry
from .watch import VersionTable, WatchDispatcher
from .exceptions import (
    HostConfError,
    RegistrationError,
    NotRegisteredError,
    CodecNotImplementedError,
    HostConfIOError,
    LockTimeoutError,
    ConfigurationError,
    CodecError,
    InterfaceValidationError,
)

__version__ = "0.3.0"

__all__ = [
    # Version
    '__version__',
    # Cache
    'FileCache',
    'FileResult',
    'Registry',
    'Descriptor',
    'CacheOptions',
    'VersionTable',
    'WatchDispatcher',
    # Codecs
    'Codec',
    'InterfacesCodec',
    'Interface',
    'NetworkConfig',
    'nodename',
    # Setup
    'Settings',
    'load_settings',
    'create_host_cache',
    'register_host_files',
    # Exceptions
    'HostConfError',
    'RegistrationError',
    'NotRegisteredError',
    'CodecNotImplementedError',
    'HostConfIOError',
    'LockTimeoutError',
    'ConfigurationError',
    'CodecError',
    'InterfaceValidationError',
]
