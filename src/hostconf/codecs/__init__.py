"""
hostconf Codecs

- base: the Codec capability set (parse / write / update)
- simple: hostname, hosts, resolv.conf, timezone, iSCSI initiator name,
  active task list, apt auth
- network: /etc/network/interfaces
"""

from .base import Codec
from .network import InterfacesCodec
from .simple import (
    ActiveTasksCodec,
    AptAuthCodec,
    HostnameCodec,
    HostsCodec,
    InitiatorNameCodec,
    ResolvConfCodec,
    TimezoneCodec,
    nodename,
    upid_decode,
)

__all__ = [
    'Codec',
    'InterfacesCodec',
    'ActiveTasksCodec',
    'AptAuthCodec',
    'HostnameCodec',
    'HostsCodec',
    'InitiatorNameCodec',
    'ResolvConfCodec',
    'TimezoneCodec',
    'nodename',
    'upid_decode',
]
