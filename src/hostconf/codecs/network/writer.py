"""
hostconf /etc/network/interfaces writer

Validates a NetworkConfig as a whole (port ownership, bond/bridge/vlan/
vxlan consistency, MTU ordering) and serializes it back into the ifupdown
text format. The caller's config is never modified; the writer works on a
deep copy and hands the normalized copy back.
"""

import functools
import logging
import re
from typing import Dict, List, Optional, Set, Tuple

from ... import constants
from ...exceptions import InterfaceValidationError
from .model import AddressFamily, Interface, NetworkConfig
from .ovs import set_ovs_option
from .parser import netmask_bits

logger = logging.getLogger(__name__)

OVS_MEMBER_TYPES = ("OVSPort", "OVSIntPort", "OVSBond")

_PHYSICAL_NIC_PREFIX_RE = re.compile(rf"^{constants.PHYSICAL_NIC_PATTERN}")


def split_list(value: Optional[str]) -> List[str]:
    """Split a port list on any mix of `;`, `,` and whitespace."""
    return [p for p in re.split(r"[;,\s]+", value or "") if p]


def _to_int(value) -> Optional[int]:
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _is_set(value) -> bool:
    return value not in (None, "", "0", 0, False, [])


def _mtu(ifaces: Dict[str, Interface], name: str) -> Optional[int]:
    value = ifaces[name].mtu
    if not _is_set(value):
        return None
    mtu = _to_int(value)
    if mtu is None:
        raise InterfaceValidationError(f"interface '{name}' - invalid mtu '{value}'", iface=name, field="mtu")
    return mtu


def check_mtu(ifaces: Dict[str, Interface], parent: str, child: str):
    """The child's MTU must not exceed the parent's (default 1500, bonds inherit the child's)."""
    cmtu = _mtu(ifaces, child)
    if not cmtu:
        return
    pmtu = _mtu(ifaces, parent)
    if ifaces[parent].type == "bond" and not pmtu:
        pmtu = cmtu
    if not pmtu:
        pmtu = constants.DEFAULT_MTU
    if pmtu < cmtu:
        raise InterfaceValidationError(
            f"interface '{parent}' - mtu {pmtu} is lower than '{child}' - mtu {cmtu}",
            iface=child, field="mtu",
        )


class InterfacesWriter:
    """
    Validate and serialize one NetworkConfig.

    Args:
        config: the configuration to write; it is deep-copied
        ifupdown2: whether ifupdown2 is installed, which changes OVS autostart
            lines and allows custom vlan interface names
    """

    def __init__(self, config: NetworkConfig, ifupdown2: bool = False):
        self.config = config.model_copy(deep=True)
        self.ifupdown2 = ifupdown2

    @property
    def ifaces(self) -> Dict[str, Interface]:
        return self.config.ifaces

    # ------------------------------------------------------------
    #
    # Validation
    #
    # ------------------------------------------------------------

    def validate(self):
        used_ports = self._collect_ports()
        self._drop_unused_ovs_ports(used_ports)
        self._check_ovs_bridges()
        self._check_ovs_bonds()
        self._check_bonds()
        self._check_vxlans()
        self._check_vlans()
        self._check_uplinks()
        self._check_bridges()

    def _names(self) -> List[str]:
        return sorted(self.ifaces)

    def _collect_ports(self) -> Dict[str, str]:
        used_ports: Dict[str, str] = {}
        for name in self._names():
            iface = self.ifaces[name]
            for fam in (iface.inet, iface.inet6):
                if fam.address is None:
                    fam.address = fam.cidr
                fam.cidr = None

            ports: List[str] = []
            for value in (iface.bridge_ports, iface.ovs_ports, iface.slaves, iface.ovs_bonds):
                ports.extend(split_list(value))
            for port in ports:
                owner = used_ports.get(port)
                if owner and owner != name:
                    raise InterfaceValidationError(
                        f"port '{port}' is already used on interface '{owner}'", iface=name,
                    )
                used_ports[port] = name
        return used_ports

    def _drop_unused_ovs_ports(self, used_ports: Dict[str, str]):
        for name in self._names():
            iface = self.ifaces[name]
            if iface.type not in OVS_MEMBER_TYPES:
                continue
            bridge = used_ports.get(name)
            if not bridge or bridge not in self.ifaces:
                if _PHYSICAL_NIC_PREFIX_RE.match(name):
                    logger.debug(f"Demoting unattached OVS port '{name}' to a plain NIC")
                    self.ifaces[name] = Interface(
                        type="eth",
                        exists=True,
                        families=["inet"],
                        inet=AddressFamily(method="manual"),
                        inet6=AddressFamily(method="manual"),
                    )
                else:
                    logger.debug(f"Dropping unattached OVS port '{name}'")
                    del self.ifaces[name]
            elif self.ifaces[bridge].type != "OVSBridge":
                logger.debug(f"Dropping OVS port '{name}' attached to non-OVS '{bridge}'")
                del self.ifaces[name]

    def _check_ovs_bridges(self):
        for name in self._names():
            iface = self.ifaces[name]
            if iface.type != "OVSBridge" or not iface.ovs_ports:
                continue
            for port in iface.ovs_ports.split():
                member = self.ifaces.get(port)
                if member is None:
                    raise InterfaceValidationError(
                        f"OVS bridge '{name}' - unable to find port '{port}'", iface=name, field="ovs_ports",
                    )
                member.autostart = False
                if member.type == "eth":
                    member.type = "OVSPort"
                    member.ovs_bridge = name
                elif member.type in OVS_MEMBER_TYPES:
                    member.ovs_bridge = name
                else:
                    raise InterfaceValidationError(
                        f"interface '{port}' is not defined as OVS port/bond", iface=port, field="ovs_ports",
                    )
                check_mtu(self.ifaces, name, port)

    def _check_ovs_bonds(self):
        for name in self._names():
            iface = self.ifaces[name]
            if iface.type != "OVSBond" or not iface.ovs_bonds:
                continue
            for port in iface.ovs_bonds.split():
                slave = self.ifaces.get(port)
                if slave is None:
                    raise InterfaceValidationError(
                        f"OVS bond '{name}' - unable to find slave '{port}'", iface=name, field="ovs_bonds",
                    )
                slave.autostart = True
                if slave.type != "eth":
                    raise InterfaceValidationError(
                        f"OVS bond '{name}' - wrong interface type on slave '{port}' ('{slave.type}' != 'eth')",
                        iface=name, field="ovs_bonds",
                    )
                check_mtu(self.ifaces, name, port)

    def _check_bonds(self):
        for name in self._names():
            iface = self.ifaces[name]
            if iface.type != "bond" or not iface.slaves:
                continue
            primary_is_slave = False
            for port in iface.slaves.split():
                slave = self.ifaces.get(port)
                if slave is None:
                    raise InterfaceValidationError(
                        f"bond '{name}' - unable to find slave '{port}'", iface=name, field="slaves",
                    )
                slave.autostart = True
                if slave.type not in ("eth", "bond"):
                    raise InterfaceValidationError(
                        f"bond '{name}' - wrong interface type on slave '{port}' ('{slave.type}' != 'eth or bond')",
                        iface=name, field="slaves",
                    )
                check_mtu(self.ifaces, name, port)
                if iface.bond_primary and iface.bond_primary == port:
                    primary_is_slave = True
            if iface.bond_primary and not primary_is_slave:
                raise InterfaceValidationError(
                    f"bond '{name}' - bond-primary interface is not a slave", iface=name, field="bond-primary",
                )

    def _check_vxlans(self):
        vxlans: Dict[str, str] = {}
        for name in self._names():
            iface = self.ifaces[name]
            if iface.type == "vxlan" and iface.vxlan_id:
                owner = vxlans.get(iface.vxlan_id)
                if owner:
                    raise InterfaceValidationError(
                        f"iface {name} - duplicate vxlan-id {iface.vxlan_id} already used in {owner}",
                        iface=name, field="vxlan-id",
                    )
                vxlans[iface.vxlan_id] = name

            endpoints = [iface.vxlan_svcnodeip, iface.vxlan_remoteip, iface.vxlan_local_tunnelip]
            if sum(1 for ep in endpoints if ep is not None) > 1:
                raise InterfaceValidationError(
                    f"iface {name} - vxlan-svcnodeip, vxlan-remoteip and vxlan-localtunnelip are mutually exclusive",
                    iface=name,
                )
            if (iface.vxlan_svcnodeip is None) != (iface.vxlan_physdev is None):
                raise InterfaceValidationError(
                    f"iface {name} - vxlan-svcnodeip and vxlan-physdev must be define together", iface=name,
                )

    def _check_vlans(self):
        for name in self._names():
            iface = self.ifaces[name]
            if iface.type != "vlan":
                continue

            m = re.match(r"^(\S+)\.(\d+)$", name)
            if m:
                parent, vlan_id = m.group(1), m.group(2)
                iface.vlan_raw_device = None
                iface.vlan_id = None
            else:
                if not iface.vlan_raw_device:
                    raise InterfaceValidationError("missing vlan-raw-device option", iface=name,
                                                   field="vlan-raw-device")
                parent = iface.vlan_raw_device
                m = re.match(r"^vlan(\d+)$", name)
                if m:
                    vlan_id = m.group(1)
                    iface.vlan_id = None
                else:
                    if not self.ifupdown2:
                        raise InterfaceValidationError("custom vlan interface name need ifupdown2", iface=name)
                    if not iface.vlan_id:
                        raise InterfaceValidationError("missing vlan-id option", iface=name, field="vlan-id")
                    vlan_id = iface.vlan_id

            if iface.vlan_protocol and iface.vlan_protocol not in constants.VLAN_PROTOCOLS:
                raise InterfaceValidationError(
                    f"{name}: wrong vlan-protocol {iface.vlan_protocol}", iface=name, field="vlan-protocol",
                )

            number = _to_int(vlan_id)
            if number is None or number > constants.MAX_VLAN_ID:
                raise InterfaceValidationError(
                    f"vlan '{name}' - vlan-id {vlan_id} should be <= {constants.MAX_VLAN_ID}",
                    iface=name, field="vlan-id",
                )
            parent_iface = self.ifaces.get(parent)
            if parent_iface is None:
                raise InterfaceValidationError(f"vlan '{name}' - unable to find parent '{parent}'", iface=name)
            if parent_iface.type not in ("eth", "bridge", "bond", "vlan"):
                raise InterfaceValidationError(
                    f"vlan '{name}' - wrong interface type on parent '{parent}' "
                    f"('{parent_iface.type}' != 'eth|bond|bridge|vlan' )",
                    iface=name,
                )
            check_mtu(self.ifaces, parent, name)

    def _check_uplinks(self):
        uplinks: Dict[str, str] = {}
        for name in self._names():
            iface = self.ifaces[name]
            uplink_id = iface.uplink_id
            if not uplink_id:
                continue
            if iface.type not in ("eth", "bond"):
                raise InterfaceValidationError(
                    f"iface '{name}' - uplink-id {uplink_id} is only allowed on physical and linux bond interfaces",
                    iface=name, field="uplink-id",
                )
            if uplink_id in uplinks:
                raise InterfaceValidationError(
                    f"iface '{name}' - uplink-id {uplink_id} is already assigned on '{uplinks[uplink_id]}'",
                    iface=name, field="uplink-id",
                )
            uplinks[uplink_id] = name

    def _check_bridges(self):
        # implicit `<parent>.<vid>` ports only exist for these checks, they are not written
        final = dict(self.ifaces)
        bridge_ports: Dict[str, str] = {}
        bridges: Dict[str, Interface] = {}

        for name in self._names():
            iface = self.ifaces[name]
            if iface.type != "bridge":
                continue
            for port in (iface.bridge_ports or "").split():
                m = re.match(r"^(\S+)\.(\d+)$", port)
                if m and port not in final:
                    parent = final.get(m.group(1))
                    final[port] = Interface(
                        type="vlan",
                        inet=AddressFamily(method="manual"),
                        inet6=AddressFamily(method="manual"),
                        mtu=parent.mtu if parent is not None else None,
                    )
                member = final.get(port)
                if member is None:
                    raise InterfaceValidationError(
                        f"bridge '{name}' - unable to find bridge port '{port}'", iface=name, field="bridge_ports",
                    )
                if (member.inet.method == "static" and member.inet.address != "0.0.0.0") or \
                        (member.inet6.method == "static" and member.inet6.address != "::"):
                    raise InterfaceValidationError(
                        f"iface {port} - ip address can't be set on interface if bridged in {name}",
                        iface=port, field="address",
                    )
                check_mtu(final, port, name)
                bridge_ports[port] = name
            bridges[name] = iface

        for name in self._names():
            iface = self.ifaces[name]
            for key in constants.BRIDGE_PORT_OPTIONS:
                if _is_set(getattr(iface, key.replace("-", "_"))) and name not in bridge_ports:
                    raise InterfaceValidationError(
                        f"iface {name} - {key}: bridge port specific options can be used only on "
                        f"interfaces attached to a bridge",
                        iface=name, field=key,
                    )
            if _is_set(iface.bridge_access):
                bridge = bridges.get(bridge_ports.get(name))
                if bridge is None or not bridge.bridge_vlan_aware:
                    raise InterfaceValidationError(
                        f"iface {name} - bridge-access option can be only used if interface is in a vlan aware bridge",
                        iface=name, field="bridge-access",
                    )

    # ------------------------------------------------------------
    #
    # Serialization
    #
    # ------------------------------------------------------------

    def _type_priority(self, name: str) -> Optional[int]:
        root, *rest = re.split(r"[.:]", name)
        iface = self.ifaces.get(root)
        if iface is None or iface.type not in constants.IF_TYPE_PRIORITY:
            return None
        return constants.IF_TYPE_PRIORITY[iface.type] + len(rest)

    def _compare(self, a: str, b: str) -> int:
        tp1 = self._type_priority(a)
        tp2 = self._type_priority(b)
        # an unknown type on either side leaves only the file position
        if tp1 is None or tp2 is None:
            tp1 = tp2 = 0
        p1 = tp1 + (self.ifaces[a].priority or constants.DEFAULT_IFACE_PRIORITY)
        p2 = tp2 + (self.ifaces[b].priority or constants.DEFAULT_IFACE_PRIORITY)
        if p1 != p2:
            return -1 if p1 < p2 else 1
        return (a > b) - (a < b)

    def order(self) -> List[str]:
        return sorted(self._names(), key=functools.cmp_to_key(self._compare))

    def render(self) -> str:
        self.validate()

        passthrough = list(self.config.passthrough)
        raw = constants.INTERFACES_HEADER

        for name in self.order():
            iface = self.ifaces[name]
            priority = iface.priority or 0
            if passthrough and passthrough[0].priority < priority:
                while passthrough and passthrough[0].priority < priority:
                    raw += passthrough.pop(0).line + "\n"
                raw += "\n"

            if iface.autostart:
                if iface.type == "OVSBridge" and not self.ifupdown2:
                    # 'auto' would race with the systemd ifup@ unit
                    raw += f"allow-ovs {name}\n"
                else:
                    raw += f"auto {name}\n"

            comment_family = "inet" if "inet" in iface.families else "inet6"
            comment_block_done = False
            for i, family in enumerate(iface.families):
                with_comments = family == comment_family and not comment_block_done
                if with_comments:
                    comment_block_done = True
                raw += self._render_block(name, iface, family, i == 0, with_comments)

        for entry in passthrough:
            raw += entry.line + "\n"
        return raw

    def _render_block(self, name: str, iface: Interface, family: str, first: bool, with_comments: bool) -> str:
        fam = iface.family(family)
        if not fam.method:
            return ""

        raw = f"iface {name} {family} {fam.method}\n"

        if fam.address:
            address = fam.address
            if not re.search(r"/\d+$", address) and fam.netmask:
                if fam.netmask.isdigit():
                    address += f"/{fam.netmask}"
                else:
                    bits = netmask_bits(fam.netmask)
                    if bits:
                        address += f"/{bits}"
            raw += f"\taddress {address}\n"
        if fam.gateway:
            raw += f"\tgateway {fam.gateway}\n"
        if fam.broadcast:
            raw += f"\tbroadcast {fam.broadcast}\n"

        if first:
            prefix, body, done = self._render_type_options(name, iface)
            raw = prefix + raw + body
            for key, value in sorted(iface.option_items(), key=lambda kv: kv[0]):
                if key in done or not _is_set(value):
                    continue
                if isinstance(value, list):
                    raw += "".join(f"\t{key} {v}\n" for v in value)
                elif isinstance(value, bool):
                    raw += f"\t{key} yes\n"
                else:
                    raw += f"\t{key} {value}\n"

        for option in fam.options:
            raw += f"\t{option}\n"

        if with_comments and iface.comments:
            for line in iface.comments.splitlines():
                raw += f"#{line}\n"

        return raw + "\n"

    def _render_type_options(self, name: str, iface: Interface) -> Tuple[str, str, Set[str]]:
        """Type specific option lines: (lines before the block, lines inside it, keys handled)."""
        prefix = ""
        raw = ""
        done: Set[str] = set()

        if iface.type == "bridge":
            ports = re.sub(r"[;,\s]+", " ", iface.bridge_ports or "") or "none"
            raw += f"\tbridge-ports {ports}\n"

            stp = iface.bridge_stp if iface.bridge_stp is not None else "off"
            no_stp = stp == "off"
            raw += f"\tbridge-stp {stp}\n"

            # forwarding delay must be 2 <= FD <= 30 if STP is enabled
            if iface.bridge_fd is not None:
                fd = _to_int(iface.bridge_fd)
                low, high = constants.BRIDGE_FD_RANGE
                if no_stp or (fd is not None and low <= fd <= high):
                    raw += f"\tbridge-fd {iface.bridge_fd}\n"
                else:
                    logger.warning(
                        f"'{name}': ignoring 'bridge_fd' value '{iface.bridge_fd}', outside of allowed range {low}-{high}"
                    )
            elif no_stp:
                raw += "\tbridge-fd 0\n"

            if iface.bridge_vlan_aware:
                vids = iface.bridge_vids if iface.bridge_vids is not None else constants.DEFAULT_BRIDGE_VIDS
                raw += "\tbridge-vlan-aware yes\n"
                raw += f"\tbridge-vids {vids}\n"

            if iface.mtu:
                raw += f"\tmtu {iface.mtu}\n"
            done.update(("bridge_ports", "bridge_stp", "bridge_fd", "bridge_vlan_aware", "bridge_vids", "mtu"))

        elif iface.type == "bond":
            iface.slaves = re.sub(r"[;,\s]+", " ", iface.slaves or "")
            raw += f"\tbond-slaves {iface.slaves or 'none'}\n"

            miimon = iface.bond_miimon if iface.bond_miimon is not None else constants.DEFAULT_BOND_MIIMON
            raw += f"\tbond-miimon {miimon}\n"
            mode = iface.bond_mode if iface.bond_mode is not None else constants.DEFAULT_BOND_MODE
            raw += f"\tbond-mode {mode}\n"

            if iface.bond_mode in ("balance-xor", "802.3ad") and iface.bond_xmit_hash_policy:
                raw += f"\tbond-xmit-hash-policy {iface.bond_xmit_hash_policy}\n"
            if iface.bond_mode == "active-backup" and iface.bond_primary:
                raw += f"\tbond-primary {iface.bond_primary}\n"

            if iface.mtu:
                raw += f"\tmtu {iface.mtu}\n"
            done.update(("slaves", "bond_miimon", "bond_mode", "bond_xmit_hash_policy", "bond-primary", "mtu"))

        elif iface.type == "vxlan":
            for key in ("vxlan-id", "vxlan-svcnodeip", "vxlan-physdev", "vxlan-local-tunnelip"):
                value = getattr(iface, key.replace("-", "_"))
                if value is not None:
                    raw += f"\t{key} {value}\n"
                done.add(key)
            for remote in iface.vxlan_remoteip or []:
                raw += f"\tvxlan-remoteip {remote}\n"
            done.add("vxlan-remoteip")

            if iface.mtu:
                raw += f"\tmtu {iface.mtu}\n"
            done.add("mtu")

        elif iface.type == "OVSBridge":
            raw += f"\tovs_type {iface.type}\n"
            if iface.ovs_ports:
                raw += f"\tovs_ports {iface.ovs_ports}\n"
            if iface.mtu:
                raw += f"\tovs_mtu {iface.mtu}\n"
            done.update(("ovs_type", "ovs_ports", "mtu"))

        elif iface.type in OVS_MEMBER_TYPES:
            # started by the bridge
            iface.autostart = False

            if iface.ovs_tag is not None:
                set_ovs_option(iface, tag=iface.ovs_tag)
            done.add("ovs_tag")

            if iface.type == "OVSBond":
                if not iface.bond_mode:
                    iface.bond_mode = "active-backup"
                if iface.bond_mode not in constants.OVS_BOND_MODES:
                    raise InterfaceValidationError(
                        f"OVS does not support bond mode '{iface.bond_mode}'", iface=name, field="bond_mode",
                    )
                if iface.bond_mode == "lacp-balance-slb":
                    set_ovs_option(iface, lacp="active")
                    set_ovs_option(iface, bond_mode="balance-slb")
                elif iface.bond_mode == "lacp-balance-tcp":
                    set_ovs_option(iface, lacp="active")
                    set_ovs_option(iface, bond_mode="balance-tcp")
                else:
                    set_ovs_option(iface, lacp=None)
                    set_ovs_option(iface, bond_mode=iface.bond_mode)
                done.add("bond_mode")

                if iface.ovs_bonds:
                    raw += f"\tovs_bonds {iface.ovs_bonds}\n"
                done.add("ovs_bonds")

            raw += f"\tovs_type {iface.type}\n"
            done.add("ovs_type")

            if iface.ovs_bridge:
                if self.ifupdown2:
                    prefix = f"auto {name}\n"
                else:
                    prefix = f"allow-{iface.ovs_bridge} {name}\n"
                raw += f"\tovs_bridge {iface.ovs_bridge}\n"
                done.add("ovs_bridge")

            if iface.mtu:
                raw += f"\tovs_mtu {iface.mtu}\n"
            done.add("mtu")

        return prefix, raw, done


def write_interfaces(config: NetworkConfig, ifupdown2: bool = False) -> Tuple[str, NetworkConfig]:
    """
    Validate and serialize a network configuration.

    Returns:
        (file content, normalized copy of the configuration)

    Raises:
        InterfaceValidationError: the configuration is inconsistent; nothing is written
    """
    writer = InterfacesWriter(config, ifupdown2)
    raw = writer.render()
    return raw, writer.config
