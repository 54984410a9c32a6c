import logging
import os
from typing import IO, Any, Optional

from typing_extensions import override

from ... import constants
from ..base import Codec
from .kernel import active_interfaces, physical_interfaces
from .model import NetworkConfig
from .parser import parse_interfaces
from .writer import write_interfaces

logger = logging.getLogger(__name__)


class InterfacesCodec(Codec):
    """
    /etc/network/interfaces, merged with the kernel's view of which
    NICs exist and which devices are up.
    """

    def __init__(self, proc_net_dev: str = constants.PROC_NET_DEV,
                 sys_class_net: str = constants.SYS_CLASS_NET,
                 ifupdown2_marker: str = constants.IFUPDOWN2_MARKER):
        self.proc_net_dev = proc_net_dev
        self.sys_class_net = sys_class_net
        self.ifupdown2_marker = ifupdown2_marker

    @property
    def ifupdown2(self) -> bool:
        return os.path.exists(self.ifupdown2_marker)

    @override
    def parse(self, path: str, fh: Optional[IO[str]]) -> NetworkConfig:
        return parse_interfaces(
            fh if fh is not None else [],
            existing=physical_interfaces(self.proc_net_dev),
            active=active_interfaces(self.sys_class_net),
        )

    @override
    def write(self, path: str, fh: IO[str], value: Any) -> NetworkConfig:
        config = value if isinstance(value, NetworkConfig) else NetworkConfig.model_validate(value)
        raw, normalized = write_interfaces(config, self.ifupdown2)
        fh.write(raw)
        logger.debug(f"Serialized {len(normalized.ifaces)} interfaces for '{path}'")
        return normalized
