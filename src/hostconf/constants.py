import re

# --- Log and Debug ---
# Short aliases for module names to keep CLI/env concise
LOG_ALIAS_MAP = {
    "cache": "hostconf.cache",
    "cc": "hostconf.cache",
    "watch": "hostconf.watch",
    "wt": "hostconf.watch",
    "rty": "hostconf.registry",
    "io": "hostconf.io",
    "atomic": "hostconf.io.atomic",
    "net": "hostconf.codecs.network",
    "parser": "hostconf.codecs.network.parser",
    "writer": "hostconf.codecs.network.writer",
    "codecs": "hostconf.codecs",
    "conf": "hostconf.config",
    "cli": "hostconf.cli",
}

# Top-level modules within hostconf for auto-prefixing
KNOWN_TOP_MODULES = {
    "cache",
    "codecs",
    "io",
    "utils",
    "config",
    "registry",
    "watch",
    "files",
    "cli",
}

LOG_LEVELS_ENV = "HOSTCONF_LOG_LEVELS"


# --- Cache and Persistence Defaults ---
DEFAULT_PERM = 0o644
DEFAULT_LOCK_TIMEOUT = 10
DEFAULT_WATCH_QUEUE_SIZE = 16384
LOCK_POLL_INTERVAL = 0.1

TMP_SUFFIX = ".tmp"
LOCK_SUFFIX = ".lock"

# On-disk text; undecodable bytes survive a read/write cycle
FILE_ENCODING = "utf-8"
FILE_ERRORS = "surrogateescape"


# --- Host Paths ---
HOSTNAME_FILE = "/etc/hostname"
HOSTS_FILE = "/etc/hosts"
RESOLV_CONF_FILE = "/etc/resolv.conf"
TIMEZONE_FILE = "/etc/timezone"
LOCALTIME_LINK = "/etc/localtime"
INTERFACES_FILE = "/etc/network/interfaces"
INTERFACES_SHADOW = "/etc/network/interfaces.new"
INITIATORNAME_FILE = "/etc/iscsi/initiatorname.iscsi"
APT_AUTH_FILE = "/etc/apt/auth.conf"
TASK_DIR = "/var/log/hostconf/tasks"
ACTIVE_TASKS_NAME = "active"

ZONEINFO_DIR = "/usr/share/zoneinfo"
PROC_NET_DEV = "/proc/net/dev"
SYS_CLASS_NET = "/sys/class/net"
IFUPDOWN2_MARKER = "/usr/share/ifupdown2/ifupdown2"

DEFAULT_CONFIG_FILE = "/etc/hostconf/hostconf.yml"


# --- Network Interfaces ---
PHYSICAL_NIC_PATTERN = r"(?:eth\d+|en[^:.]+|ib[^:.]+)"
PHYSICAL_NIC_RE = re.compile(rf"^{PHYSICAL_NIC_PATTERN}$")

IFF_UP = 0x1

# Linux bonding driver modes, name -> legacy numeric form
BOND_MODES = {
    "balance-rr": 0,
    "active-backup": 1,
    "balance-xor": 2,
    "broadcast": 3,
    "802.3ad": 4,
    "balance-tlb": 5,
    "balance-alb": 6,
}

OVS_BOND_MODES = {
    "active-backup",
    "balance-slb",
    "lacp-balance-slb",
    "lacp-balance-tcp",
}

VLAN_PROTOCOLS = {"802.1q", "802.1ad"}
MAX_VLAN_ID = 4094
DEFAULT_MTU = 1500
DEFAULT_BRIDGE_VIDS = "2-4094"
DEFAULT_BOND_MIIMON = 100
DEFAULT_BOND_MODE = "balance-rr"
BRIDGE_FD_RANGE = (2, 30)

# Serialization base priority per interface type
IF_TYPE_PRIORITY = {
    "loopback": 100000,
    "dummy": 100000,
    "eth": 200000,
    "OVSPort": 200000,
    "OVSIntPort": 300000,
    "OVSBond": 400000,
    "bond": 400000,
    "bridge": 500000,
    "OVSBridge": 500000,
    "vlan": 600000,
    "vxlan": 600000,
}
DEFAULT_IFACE_PRIORITY = 50000

BRIDGE_PORT_OPTIONS = (
    "bridge-learning",
    "bridge-arp-nd-suppress",
    "bridge-unicast-flood",
    "bridge-multicast-flood",
    "bridge-access",
)

INTERFACES_HEADER = """\
# network interface settings; autogenerated
# Please do NOT modify this file directly, unless you know what
# you're doing.
#
# If you want to manage parts of the network configuration manually,
# please utilize the 'source' or 'source-directory' directives to do
# so.
# hostconf will preserve these directives, but will NOT read its network
# configuration from sourced files, so do not attempt to move any of
# the managed interfaces into external files!

"""
