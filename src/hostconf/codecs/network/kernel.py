"""
Snapshots of the running kernel's network devices.
"""

import logging
import os
import re
from typing import List

from ... import constants

logger = logging.getLogger(__name__)

_PROC_NET_DEV_LINE = re.compile(rf"^\s*({constants.PHYSICAL_NIC_PATTERN}):")


def physical_interfaces(proc_net_dev: str = constants.PROC_NET_DEV) -> List[str]:
    """Names of the physical NICs listed in /proc/net/dev."""
    try:
        with open(proc_net_dev, "r", encoding="utf-8") as fh:
            lines = fh.readlines()
    except OSError as e:
        logger.warning(f"Unable to read '{proc_net_dev}': {e}")
        return []

    names = []
    for line in lines:
        m = _PROC_NET_DEV_LINE.match(line)
        if m:
            names.append(m.group(1))
    return names


def active_interfaces(sys_class_net: str = constants.SYS_CLASS_NET) -> List[str]:
    """Names of the devices that are administratively up."""
    try:
        names = sorted(os.listdir(sys_class_net))
    except OSError as e:
        logger.warning(f"Unable to list '{sys_class_net}': {e}")
        return []

    active = []
    for name in names:
        try:
            with open(os.path.join(sys_class_net, name, "flags"), "r", encoding="utf-8") as fh:
                flags = int(fh.read().strip(), 16)
        except (OSError, ValueError):
            continue
        if flags & constants.IFF_UP:
            active.append(name)
    return active
