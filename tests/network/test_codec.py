import io

import pytest

from hostconf.codecs.network import InterfacesCodec, NetworkConfig
from hostconf.codecs.network.kernel import active_interfaces, physical_interfaces
from hostconf.constants import INTERFACES_HEADER
from hostconf.exceptions import InterfaceValidationError

PROC_NET_DEV = """\
Inter-|   Receive                                                |  Transmit
 face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed
    lo:  123456     100    0    0    0     0          0         0   123456     100    0    0    0     0       0          0
  eth0: 9876543    5000    0    0    0     0          0         0  1234567    4000    0    0    0     0       0          0
enp3s0:       0       0    0    0    0     0          0         0        0       0    0    0    0     0       0          0
 vmbr0:       0       0    0    0    0     0          0         0        0       0    0    0    0     0       0          0
 tap100i0:    0       0    0    0    0     0          0         0        0       0    0    0    0     0       0          0
"""


@pytest.fixture
def kernel(tmp_path):
    """A fake /proc/net/dev and /sys/class/net."""
    proc_net_dev = tmp_path / "net_dev"
    proc_net_dev.write_text(PROC_NET_DEV)

    sys_class_net = tmp_path / "class_net"
    for name, flags in (("lo", "0x9"), ("eth0", "0x1003"), ("enp3s0", "0x1002"), ("vmbr0", "0x1003")):
        (sys_class_net / name).mkdir(parents=True)
        (sys_class_net / name / "flags").write_text(f"{flags}\n")
    # a device without readable flags is skipped
    (sys_class_net / "bogus").mkdir()

    return str(proc_net_dev), str(sys_class_net)


class TestKernel:

    def test_physical_interfaces(self, kernel):
        proc_net_dev, _ = kernel
        assert physical_interfaces(proc_net_dev) == ["eth0", "enp3s0"]

    def test_active_interfaces(self, kernel):
        _, sys_class_net = kernel
        assert active_interfaces(sys_class_net) == ["eth0", "lo", "vmbr0"]

    def test_missing_sources_are_empty(self, tmp_path, caplog):
        assert physical_interfaces(str(tmp_path / "nope")) == []
        assert active_interfaces(str(tmp_path / "nope")) == []
        assert "Unable to" in caplog.text


class TestInterfacesCodec:

    def make_codec(self, kernel, tmp_path, ifupdown2=False):
        marker = tmp_path / "ifupdown2"
        if ifupdown2:
            marker.write_text("")
        proc_net_dev, sys_class_net = kernel
        return InterfacesCodec(proc_net_dev, sys_class_net, str(marker))

    def test_parse_merges_kernel_state(self, kernel, tmp_path):
        codec = self.make_codec(kernel, tmp_path)

        config = codec.parse("/etc/network/interfaces", io.StringIO("auto lo\niface lo inet loopback\n"))

        assert set(config.ifaces) == {"lo", "eth0", "enp3s0"}
        assert config.ifaces["eth0"].exists
        assert config.ifaces["eth0"].active
        assert not config.ifaces["enp3s0"].active
        assert config.ifaces["lo"].active

    def test_parse_missing_file(self, kernel, tmp_path):
        config = self.make_codec(kernel, tmp_path).parse("/etc/network/interfaces", None)
        assert config.ifaces["lo"].priority == 1

    def test_write_accepts_plain_dicts(self, kernel, tmp_path):
        codec = self.make_codec(kernel, tmp_path)
        out = io.StringIO()

        normalized = codec.write("/etc/network/interfaces", out, {
            "ifaces": {
                "lo": {"type": "loopback", "autostart": True, "families": ["inet"], "inet": {"method": "loopback"}},
            },
        })

        assert isinstance(normalized, NetworkConfig)
        assert out.getvalue() == INTERFACES_HEADER + "auto lo\niface lo inet loopback\n\n"

    def test_ifupdown2_marker(self, kernel, tmp_path):
        assert not self.make_codec(kernel, tmp_path).ifupdown2
        assert self.make_codec(kernel, tmp_path, ifupdown2=True).ifupdown2

    def test_invalid_config_writes_nothing(self, kernel, tmp_path):
        codec = self.make_codec(kernel, tmp_path)
        out = io.StringIO()
        config = codec.parse("/etc/network/interfaces", io.StringIO("iface vmbr0 inet manual\n\tbridge-ports eth9\n"))

        with pytest.raises(InterfaceValidationError):
            codec.write("/etc/network/interfaces", out, config)
        assert out.getvalue() == ""
