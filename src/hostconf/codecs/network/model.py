"""
Network configuration model produced by the interfaces parser.

Option fields carry their on-disk key as pydantic alias, so the writer
can emit any option it has no dedicated layout for under the key it was
read from.
"""

from typing import Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class AddressFamily(BaseModel):
    """Per-family (`inet` / `inet6`) settings of one interface."""
    method: Optional[str] = None
    address: Optional[str] = None
    netmask: Optional[str] = None
    broadcast: Optional[str] = None
    gateway: Optional[str] = None
    cidr: Optional[str] = None
    # unrecognized option lines, kept verbatim
    options: List[str] = Field(default_factory=list)


class Interface(BaseModel):
    """
    One interface of /etc/network/interfaces.

    `exists` and `active` come from the running kernel, not from the file.
    Unknown attributes set by callers are kept and written back sorted by key.
    """
    type: str = "unknown"
    exists: bool = False
    active: bool = False
    autostart: bool = False
    priority: Optional[int] = None
    families: List[str] = Field(default_factory=list)
    inet: AddressFamily = Field(default_factory=AddressFamily)
    inet6: AddressFamily = Field(default_factory=AddressFamily)
    comments: Optional[str] = None

    mtu: Optional[str] = None

    bridge_ports: Optional[str] = None
    bridge_stp: Optional[str] = None
    bridge_fd: Optional[str] = None
    bridge_vids: Optional[str] = None
    bridge_vlan_aware: bool = False
    bridge_access: Optional[str] = Field(None, alias="bridge-access")
    bridge_learning: Optional[str] = Field(None, alias="bridge-learning")
    bridge_arp_nd_suppress: Optional[str] = Field(None, alias="bridge-arp-nd-suppress")
    bridge_unicast_flood: Optional[str] = Field(None, alias="bridge-unicast-flood")
    bridge_multicast_flood: Optional[str] = Field(None, alias="bridge-multicast-flood")

    slaves: Optional[str] = None
    bond_mode: Optional[str] = None
    bond_miimon: Optional[str] = None
    bond_xmit_hash_policy: Optional[str] = None
    bond_primary: Optional[str] = Field(None, alias="bond-primary")

    ovs_type: Optional[str] = None
    ovs_options: Optional[str] = None
    ovs_bridge: Optional[str] = None
    ovs_bonds: Optional[str] = None
    ovs_ports: Optional[str] = None
    ovs_tag: Optional[str] = None

    link_type: Optional[str] = Field(None, alias="link-type")
    uplink_id: Optional[str] = Field(None, alias="uplink-id")

    vlan_protocol: Optional[str] = Field(None, alias="vlan-protocol")
    vlan_raw_device: Optional[str] = Field(None, alias="vlan-raw-device")
    vlan_id: Optional[str] = Field(None, alias="vlan-id")

    vxlan_id: Optional[str] = Field(None, alias="vxlan-id")
    vxlan_svcnodeip: Optional[str] = Field(None, alias="vxlan-svcnodeip")
    vxlan_physdev: Optional[str] = Field(None, alias="vxlan-physdev")
    vxlan_local_tunnelip: Optional[str] = Field(None, alias="vxlan-local-tunnelip")
    vxlan_remoteip: Optional[List[str]] = Field(None, alias="vxlan-remoteip")

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def family(self, name: str) -> AddressFamily:
        if name == "inet6":
            return self.inet6
        return self.inet

    def option_items(self) -> Iterator[Tuple[str, object]]:
        """(on-disk key, value) of every option field, including caller-added extras."""
        for key, attr in OPTION_KEYS.items():
            yield key, getattr(self, attr)
        for key, value in (self.model_extra or {}).items():
            yield key, value


class Passthrough(BaseModel):
    """A top-level line the parser does not interpret, with its position."""
    priority: int
    line: str


class NetworkConfig(BaseModel):
    ifaces: Dict[str, Interface] = Field(default_factory=dict)
    passthrough: List[Passthrough] = Field(default_factory=list)


_NON_OPTION_FIELDS = {
    "type", "exists", "active", "autostart", "priority",
    "families", "inet", "inet6", "comments",
}

# on-disk key -> attribute name
OPTION_KEYS: Dict[str, str] = {
    (info.alias or name): name
    for name, info in Interface.model_fields.items()
    if name not in _NON_OPTION_FIELDS
}
