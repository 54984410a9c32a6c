"""
Helpers for the `ovs_options` value: space separated `key=value` pairs.
"""

from typing import Dict, Optional

from .model import Interface


def parse_ovs_options(value: Optional[str]) -> Dict[str, str]:
    options: Dict[str, str] = {}
    for token in (value or "").split():
        key, sep, val = token.partition("=")
        if key and sep and val:
            options[key] = val
    return options


def format_ovs_options(options: Dict[str, str]) -> Optional[str]:
    if not options:
        return None
    return " ".join(f"{k}={v}" for k, v in options.items())


def extract_ovs_option(iface: Interface, name: str) -> Optional[str]:
    """Remove `name` from the interface's ovs_options and return its value."""
    options = parse_ovs_options(iface.ovs_options)
    value = options.pop(name, None)
    iface.ovs_options = format_ovs_options(options)
    return value


def set_ovs_option(iface: Interface, **params: Optional[str]) -> None:
    """Set (or with a falsy value, remove) keys in the interface's ovs_options."""
    options = parse_ovs_options(iface.ovs_options)
    for key, value in params.items():
        if value:
            options[key] = str(value)
        else:
            options.pop(key, None)
    iface.ovs_options = format_ovs_options(options)
