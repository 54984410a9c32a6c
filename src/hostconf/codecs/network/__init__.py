"""
hostconf Network Interfaces Codec

- parser: /etc/network/interfaces text -> NetworkConfig
- writer: cross-interface validation and NetworkConfig -> text
- ovs: the `ovs_options` key=value micro-syntax
- kernel: existing/active devices of the running system
"""

from .codec import InterfacesCodec
from .model import AddressFamily, Interface, NetworkConfig, Passthrough
from .parser import parse_interfaces
from .writer import check_mtu, write_interfaces

__all__ = [
    'InterfacesCodec',
    'AddressFamily',
    'Interface',
    'NetworkConfig',
    'Passthrough',
    'parse_interfaces',
    'write_interfaces',
    'check_mtu',
]
