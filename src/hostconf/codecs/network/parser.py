"""
hostconf /etc/network/interfaces parser

Turns the ifupdown text format into a NetworkConfig:
- `auto` / `allow-auto` / `allow-ovs` / `allow-hotplug` mark interfaces for autostart
- `iface NAME FAMILY METHOD` blocks fill in per-interface and per-family fields
- every other top-level line is kept verbatim, together with its position

Types (bridge, bond, vlan, OVS*, ...) are derived afterwards from the
interface names and options.
"""

import ipaddress
import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from ... import constants
from .model import AddressFamily, Interface, NetworkConfig, Passthrough
from .ovs import extract_ovs_option

logger = logging.getLogger(__name__)

# alternative spellings -> canonical option key
OPTION_ALIASES = {
    "ovs_mtu": "mtu",
    "bond-slaves": "slaves",
    "bond_slaves": "slaves",
    "bond-xmit-hash-policy": "bond_xmit_hash_policy",
    "bond-mode": "bond_mode",
    "bond-miimon": "bond_miimon",
    "bridge-vlan-aware": "bridge_vlan_aware",
    "bridge-fd": "bridge_fd",
    "bridge-stp": "bridge_stp",
    "bridge-ports": "bridge_ports",
    "bridge-vids": "bridge_vids",
}

# options stored as-is on the interface: on-disk key -> attribute
SIMPLE_OPTIONS = {
    key: key.replace("-", "_")
    for key in (
        "mtu",
        "ovs_type",
        "ovs_options",
        "ovs_bridge",
        "ovs_bonds",
        "ovs_ports",
        "bridge_fd",
        "bridge_vids",
        "bridge-access",
        "bridge-learning",
        "bridge-arp-nd-suppress",
        "bridge-unicast-flood",
        "bridge-multicast-flood",
        "bond_miimon",
        "bond_xmit_hash_policy",
        "bond-primary",
        "link-type",
        "uplink-id",
        "vlan-protocol",
        "vlan-raw-device",
        "vlan-id",
        "vxlan-id",
        "vxlan-svcnodeip",
        "vxlan-physdev",
        "vxlan-local-tunnelip",
    )
}

FAMILY_FIELDS = ("address", "netmask", "broadcast", "gateway")

_AUTO_RE = re.compile(r"^\s*(allow-auto|auto|allow-ovs|allow-hotplug)\s+(.*)$")
_IFACE_RE = re.compile(r"^\s*iface\s+(\S+)\s+(inet6?)\s+(\S+)\s*$")
_BLOCK_END_RE = re.compile(r"^\s*(?:(?:iface|mapping|auto|source|source-directory)\s|allow-)")
_COMMENT_RE = re.compile(r"^\s*#(.*?)\s*$")
_OPTION_RE = re.compile(r"^\s*((\S+)\s+(.+))$")
_STP_ON_RE = re.compile(r"^\s*(on|yes)\s*$", re.IGNORECASE)

_CIDR_RE = re.compile(r"^(.+)/(\d+)$")


def address_is_cidr(address: str) -> bool:
    return _CIDR_RE.match(address) is not None


def cidr_split(cidr: str) -> Tuple[str, str]:
    m = _CIDR_RE.match(cidr)
    return m.group(1), m.group(2)


def netmask_bits(netmask: str) -> Optional[int]:
    """Prefix length of a dotted IPv4 netmask, None if it is not a valid mask."""
    try:
        value = int(ipaddress.IPv4Address(netmask))
    except ValueError:
        return None
    bits = bin(value).count("1")
    if bits == 0 or value != (0xFFFFFFFF << (32 - bits)) & 0xFFFFFFFF:
        return None
    return bits


def get_cidr(address: str, netmask: Optional[str]) -> Optional[str]:
    if address_is_cidr(address):
        return address
    if not netmask:
        return None
    if netmask.isdigit():
        return f"{address}/{netmask}"
    bits = netmask_bits(netmask)
    if bits:
        return f"{address}/{bits}"
    return None


def _merge_device_list(current: Optional[str], value: str) -> str:
    devs = " ".join(sorted({p for p in value.split() if p != "none"}))
    if current:
        return f"{current} {devs}" if devs else current
    return devs


class _Reader:
    """Line source with one-line push-back, for the block look-ahead."""

    def __init__(self, lines: Iterable[str]):
        self._lines = iter(lines)
        self._pushed: Optional[str] = None

    def next(self) -> Optional[str]:
        if self._pushed is not None:
            line, self._pushed = self._pushed, None
            return line
        for line in self._lines:
            return line.rstrip("\n")
        return None

    def push(self, line: str):
        self._pushed = line


class InterfacesParser:
    """
    One-shot parser for an interfaces file.

    Args:
        existing: physical NICs present in the running kernel
        active: devices that are currently up
    """

    def __init__(self, existing: Iterable[str] = (), active: Iterable[str] = ()):
        self.existing = list(existing)
        self.active = list(active)
        self.ifaces: Dict[str, Interface] = {}
        self.passthrough: List[Passthrough] = []
        self._comments6: Dict[str, str] = {}
        # 1 is reserved for lo
        self._priority = 2

    def parse(self, lines: Iterable[str]) -> NetworkConfig:
        for name in self.existing:
            self.ifaces[name] = Interface(exists=True)

        reader = _Reader(lines)
        while True:
            line = reader.next()
            if line is None:
                break
            if re.match(r"^\s*#", line):
                continue

            m = _AUTO_RE.match(line)
            if m:
                for name in m.group(2).split():
                    self._iface(name).autostart = True
                continue

            m = _IFACE_RE.match(line)
            if m:
                self._parse_block(reader, m.group(1), m.group(2), m.group(3))
                continue

            if re.search(r"\w", line):
                self.passthrough.append(Passthrough(priority=self._next_priority(), line=line))

        for name in self.active:
            if name in self.ifaces:
                self.ifaces[name].active = True

        if "lo" not in self.ifaces:
            self.ifaces["lo"] = Interface(
                priority=1,
                autostart=True,
                inet=AddressFamily(method="loopback"),
            )

        for name in list(self.ifaces):
            self._finalize(name, self.ifaces[name])

        self.passthrough = self._clean_passthrough()
        logger.debug(f"Parsed {len(self.ifaces)} interfaces, {len(self.passthrough)} passthrough lines")
        return NetworkConfig(ifaces=self.ifaces, passthrough=self.passthrough)

    def _iface(self, name: str) -> Interface:
        if name not in self.ifaces:
            self.ifaces[name] = Interface()
        return self.ifaces[name]

    def _next_priority(self) -> int:
        priority = self._priority
        self._priority += 1
        return priority

    def _parse_block(self, reader: _Reader, name: str, family: str, method: str):
        iface = self._iface(name)
        if not iface.priority:
            iface.priority = self._next_priority()
        iface.families.append(family)

        fam = AddressFamily(method=method)
        comments = None

        while True:
            line = reader.next()
            if line is None:
                break
            line = line.rstrip()

            m = _COMMENT_RE.match(line)
            if m:
                comments = (comments or "") + f"{m.group(1)}\n"
                continue
            if _BLOCK_END_RE.match(line):
                reader.push(line)
                break
            m = _OPTION_RE.match(line)
            if not m:
                reader.push(line)
                break
            self._apply_option(iface, fam, m.group(1), m.group(2), m.group(3))

        setattr(iface, family, fam)
        if family == "inet6":
            if comments is not None:
                self._comments6[name] = comments
            else:
                self._comments6.pop(name, None)
        else:
            iface.comments = comments

    def _apply_option(self, iface: Interface, fam: AddressFamily, option: str, key: str, value: str):
        key = OPTION_ALIASES.get(key, key)

        if key in FAMILY_FIELDS:
            setattr(fam, key, value)
        elif key in SIMPLE_OPTIONS:
            setattr(iface, SIMPLE_OPTIONS[key], value)
        elif key in ("slaves", "bridge_ports"):
            setattr(iface, key, _merge_device_list(getattr(iface, key), value))
        elif key == "bridge_stp":
            iface.bridge_stp = "on" if _STP_ON_RE.match(value) else "off"
        elif key == "bridge_vlan_aware":
            iface.bridge_vlan_aware = True
        elif key == "bond_mode":
            for mode, number in constants.BOND_MODES.items():
                if str(number) == value:
                    value = mode
                    break
            iface.bond_mode = value
        elif key == "vxlan-remoteip":
            iface.vxlan_remoteip = [*(iface.vxlan_remoteip or []), value]
        else:
            fam.options.append(option)

    def _inherit_existence(self, iface: Interface, parent: Optional[str]):
        if parent in self.ifaces:
            iface.exists = self.ifaces[parent].exists
        else:
            # placeholder for the referenced device; it has no block of its own
            self.ifaces[parent] = Interface(exists=False)
            iface.exists = False

    def _finalize(self, name: str, iface: Interface):
        iface.type = self._derive_type(name, iface)
        self._map_cidr(iface.inet, "32", update_netmask=True)
        self._map_cidr(iface.inet6, "128", update_netmask=False)

        if not iface.inet.method:
            iface.inet.method = "manual"
        if not iface.inet6.method:
            iface.inet6.method = "manual"

        comments6 = self._comments6.pop(name, None)
        if comments6:
            iface.comments = (iface.comments or "") + comments6

        if not iface.families:
            iface.families = ["inet"]

    def _derive_type(self, name: str, iface: Interface) -> str:
        if re.match(r"^bond\d+$", name):
            if not iface.ovs_type:
                return "bond"
            if iface.ovs_type == "OVSBond":
                iface.bond_mode = extract_ovs_option(iface, "bond_mode")
                lacp = extract_ovs_option(iface, "lacp")
                if lacp == "active" and iface.bond_mode == "balance-slb":
                    iface.bond_mode = "lacp-balance-slb"
                # balance-tcp needs lacp
                if iface.bond_mode == "balance-tcp":
                    iface.bond_mode = "lacp-balance-tcp"
                self._extract_tag(iface)
                return "OVSBond"
            return "unknown"

        if re.match(r"^vmbr\d+$", name):
            if not iface.ovs_type:
                if iface.bridge_stp is None:
                    iface.bridge_stp = "off"
                if iface.bridge_fd is None and iface.bridge_stp == "off":
                    iface.bridge_fd = "0"
                return "bridge"
            if iface.ovs_type == "OVSBridge":
                return "OVSBridge"
            return "unknown"

        m = re.match(r"^(\S+):\d+$", name)
        if m:
            self._inherit_existence(iface, m.group(1))
            return "alias"

        m = re.match(r"^(\S+)\.(\d+)$", name)
        if m or iface.vlan_raw_device:
            dev, vid = (m.group(1), m.group(2)) if m else (None, None)
            if dev is not None and not iface.vlan_raw_device:
                iface.vlan_raw_device = dev
            if not (vid and int(vid)):
                m = re.match(r"^vlan(\d+)$", name)
                vid = m.group(1) if m else None
            # VLAN id 0 is not valid
            if vid and int(vid):
                iface.vlan_id = vid
            self._inherit_existence(iface, iface.vlan_raw_device)
            return "vlan"

        if constants.PHYSICAL_NIC_RE.match(name):
            if not iface.ovs_type:
                return "eth"
            if iface.ovs_type == "OVSPort":
                self._extract_tag(iface)
                return "OVSPort"
            return "unknown"

        if name == "lo":
            return "loopback"

        if iface.vxlan_id:
            return "vxlan"
        if iface.ovs_type is not None:
            if iface.ovs_type == "OVSIntPort":
                self._extract_tag(iface)
                return "OVSIntPort"
            return "unknown"
        if iface.link_type == "dummy":
            return "dummy"
        return "unknown"

    @staticmethod
    def _extract_tag(iface: Interface):
        tag = extract_ovs_option(iface, "tag")
        if tag is not None:
            iface.ovs_tag = tag

    @staticmethod
    def _map_cidr(fam: AddressFamily, host_bits: str, update_netmask: bool):
        address = fam.address
        if not address:
            return
        if address_is_cidr(address):
            fam.cidr = address
            fam.address, fam.netmask = cidr_split(address)
            return
        cidr = get_cidr(address, fam.netmask)
        if cidr:
            fam.cidr = cidr
            if update_netmask:
                fam.netmask = cidr_split(cidr)[1]
        else:
            # no mask, else we'd got a cidr above
            fam.cidr = f"{address}/{host_bits}"

    def _clean_passthrough(self) -> List[Passthrough]:
        # OVS bridges generate "allow-BRIDGE PORT" lines; drop those the model re-creates
        cleaned = []
        for entry in self.passthrough:
            if re.match(r"^allow-ovs\s+", entry.line):
                continue
            m = re.match(r"^allow-(\S+)\s+(.*)$", entry.line)
            if not m:
                cleaned.append(entry)
                continue
            bridge = m.group(1)
            ports = m.group(2).split()
            if bridge in self.ifaces:
                in_ovs_ports = set((self.ifaces[bridge].ovs_ports or "").split())
                ports = [p for p in ports if p not in in_ovs_ports]
            if ports:
                cleaned.append(Passthrough(priority=entry.priority, line=f"allow-{bridge} {' '.join(ports)}"))
        return cleaned


def parse_interfaces(lines: Iterable[str], existing: Iterable[str] = (),
                     active: Iterable[str] = ()) -> NetworkConfig:
    """
    Parse interfaces file content.

    Args:
        lines: the file content, e.g. an open file handle
        existing: physical NICs present in the running kernel
        active: devices that are currently up

    Returns:
        NetworkConfig: interfaces keyed by name plus the passthrough lines
    """
    return InterfacesParser(existing, active).parse(lines)
