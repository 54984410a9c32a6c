import pytest

from hostconf.codecs.network import Interface
from hostconf.codecs.network.ovs import (
    extract_ovs_option,
    format_ovs_options,
    parse_ovs_options,
    set_ovs_option,
)


class TestOvsOptions:

    def test_parse(self):
        assert parse_ovs_options("tag=10 bond_mode=balance-slb other_config:lacp-time=fast") == {
            "tag": "10",
            "bond_mode": "balance-slb",
            "other_config:lacp-time": "fast",
        }

    @pytest.mark.parametrize("value", [None, "", "   ", "novalue", "=x", "key="])
    def test_parse_skips_incomplete_pairs(self, value):
        assert parse_ovs_options(value) == {}

    def test_format(self):
        assert format_ovs_options({"tag": "10", "lacp": "active"}) == "tag=10 lacp=active"
        assert format_ovs_options({}) is None

    def test_extract_removes_the_key(self):
        iface = Interface(ovs_options="tag=10 lacp=active")
        assert extract_ovs_option(iface, "tag") == "10"
        assert iface.ovs_options == "lacp=active"
        assert extract_ovs_option(iface, "tag") is None

    def test_extract_last_key_clears_options(self):
        iface = Interface(ovs_options="tag=10")
        extract_ovs_option(iface, "tag")
        assert iface.ovs_options is None

    def test_set_and_remove(self):
        iface = Interface()
        set_ovs_option(iface, tag="10", lacp="active")
        assert parse_ovs_options(iface.ovs_options) == {"tag": "10", "lacp": "active"}

        set_ovs_option(iface, lacp=None)
        assert iface.ovs_options == "tag=10"

        set_ovs_option(iface, tag="")
        assert iface.ovs_options is None
