"""
Default registrations of the host files hostconf manages.

Every path is mapped below `Settings.root`, so the whole set can be
pointed at a scratch tree (tests, chroots, image builds).
"""

import logging
import os
from typing import Optional

from . import constants
from .cache import FileCache
from .codecs import (
    ActiveTasksCodec,
    AptAuthCodec,
    HostnameCodec,
    HostsCodec,
    InitiatorNameCodec,
    InterfacesCodec,
    ResolvConfCodec,
    TimezoneCodec,
)
from .config import Settings

logger = logging.getLogger(__name__)


def register_host_files(cache: FileCache, settings: Settings) -> FileCache:
    p = settings.host_path

    cache.register_codec("hostname", p(constants.HOSTNAME_FILE), HostnameCodec())
    cache.register_codec("etchosts", p(constants.HOSTS_FILE), HostsCodec())
    cache.register_codec("resolvconf", p(constants.RESOLV_CONF_FILE), ResolvConfCodec())
    cache.register_codec(
        "timezone", p(constants.TIMEZONE_FILE),
        TimezoneCodec(p(settings.zoneinfo_dir), p(constants.LOCALTIME_LINK)),
    )
    cache.register_codec(
        "interfaces", p(constants.INTERFACES_FILE),
        InterfacesCodec(settings.proc_net_dev, settings.sys_class_net, p(settings.ifupdown2_marker)),
        shadow=p(constants.INTERFACES_SHADOW),
    )
    cache.register_codec("initiatorname", p(constants.INITIATORNAME_FILE), InitiatorNameCodec())
    cache.register_codec(
        "active", p(os.path.join(settings.task_dir, constants.ACTIVE_TASKS_NAME)),
        ActiveTasksCodec(), always_call_parser=True,
    )
    cache.register_codec("apt-auth", p(constants.APT_AUTH_FILE), AptAuthCodec(), perm=0o640)

    logger.debug(f"Registered {len(cache.registry.files)} host files below '{settings.root}'")
    return cache


def create_host_cache(settings: Optional[Settings] = None) -> FileCache:
    """A FileCache with every default host file registered."""
    settings = settings or Settings()
    cache = FileCache(default_perm=settings.default_perm, lock_timeout=settings.lock_timeout)
    return register_host_files(cache, settings)
