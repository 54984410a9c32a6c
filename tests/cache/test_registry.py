import pytest

from hostconf.exceptions import (
    CodecNotImplementedError,
    DuplicateRegistrationError,
    NotRegisteredError,
    RegistrationClosedError,
    UnsupportedOptionError,
)
from hostconf.registry import CacheOptions, Registry, default_parser, default_writer


def parse_text(path, fh):
    return fh.read()


class TestRegistration:

    def test_register_and_lookup_by_id_and_path(self):
        reg = Registry()
        desc = reg.register("hostname", "/etc/hostname", parse_text)

        assert reg.lookup("hostname") == (desc, "/etc/hostname")
        assert reg.lookup("/etc/hostname") == (desc, "/etc/hostname")
        assert reg.lookup("/etc//hostname") == (desc, "/etc/hostname")

    def test_missing_codec_functions_fail_loudly(self):
        reg = Registry()
        desc = reg.register("initiatorname", "/etc/iscsi/initiatorname.iscsi")
        assert desc.parser is default_parser
        assert desc.writer is default_writer
        assert desc.updater is None
        with pytest.raises(CodecNotImplementedError, match="undefined config writer"):
            desc.writer("/etc/iscsi/initiatorname.iscsi", None, "x")

    def test_duplicate_path_is_rejected(self):
        reg = Registry()
        reg.register("a", "/etc/hosts")
        with pytest.raises(DuplicateRegistrationError, match="already added"):
            reg.register("b", "/etc/hosts")

    def test_duplicate_id_is_rejected(self):
        reg = Registry()
        reg.register("hosts", "/etc/hosts")
        with pytest.raises(DuplicateRegistrationError, match="already used"):
            reg.register("hosts", "/etc/hosts.allow")

    def test_unknown_option_is_rejected(self):
        reg = Registry()
        with pytest.raises(UnsupportedOptionError, match="cachetime"):
            reg.register("hosts", "/etc/hosts", cachetime=5)

    def test_options_are_recorded(self):
        reg = Registry()
        desc = reg.register("apt-auth", "/etc/apt/auth.conf", perm=0o640, noclone=True)
        assert desc.options == CacheOptions(perm=0o640, noclone=True)

    def test_shadow_option_registers_working_copy(self):
        reg = Registry()
        reg.register("interfaces", "/etc/network/interfaces", shadow="/etc/network/interfaces.new")
        assert reg.shadow_of("/etc/network/interfaces") == "/etc/network/interfaces.new"

    def test_add_shadow(self):
        reg = Registry()
        reg.register("hosts", "/etc/hosts")
        reg.add_shadow("/etc/hosts", "/etc/hosts.new")
        assert reg.shadows == {"/etc/hosts": "/etc/hosts.new"}

    def test_registration_is_closed_during_watch(self):
        reg = Registry()
        reg.close()
        with pytest.raises(RegistrationClosedError):
            reg.register("hosts", "/etc/hosts")
        with pytest.raises(RegistrationClosedError):
            reg.register_pattern("/etc/pve/qemu-server", r"\d+\.conf")
        reg.reopen()
        reg.register("hosts", "/etc/hosts")

    def test_unknown_key(self):
        with pytest.raises(NotRegisteredError, match="not added"):
            Registry().lookup("/etc/shadow")


class TestPatterns:

    def test_duplicate_pattern_is_rejected(self):
        reg = Registry()
        reg.register_pattern("/etc/vz", r"\d+\.conf", parse_text)
        with pytest.raises(DuplicateRegistrationError):
            reg.register_pattern("/etc/vz", r"\d+\.conf", parse_text)

    def test_lookup_materializes_private_descriptor(self):
        reg = Registry()
        template = reg.register_pattern("/etc/vz", r"\d+\.conf", parse_text, perm=0o600)

        desc, path = reg.lookup("/etc/vz/100.conf")

        assert path == "/etc/vz/100.conf"
        assert desc is not template
        assert desc.parser is parse_text
        assert desc.options.perm == 0o600
        assert desc.data is None

    def test_same_path_reuses_materialized_descriptor(self):
        reg = Registry()
        reg.register_pattern("/etc/vz", r"\d+\.conf", parse_text)
        first, _ = reg.lookup("/etc/vz/100.conf")
        first.data = "cached"
        second, _ = reg.lookup("/etc/vz//100.conf")
        assert second is first

    def test_different_paths_get_different_descriptors(self):
        reg = Registry()
        reg.register_pattern("/etc/vz", r"\d+\.conf", parse_text)
        a, _ = reg.lookup("/etc/vz/100.conf")
        b, _ = reg.lookup("/etc/vz/101.conf")
        assert a is not b

    @pytest.mark.parametrize("key", ["/etc/vz/abc.conf", "/etc/vz/sub/100.conf", "/etc/vzz/100.conf"])
    def test_non_matching_paths(self, key):
        reg = Registry()
        reg.register_pattern("/etc/vz", r"\d+\.conf", parse_text)
        with pytest.raises(NotRegisteredError):
            reg.lookup(key)

    def test_pattern_matches(self):
        reg = Registry()
        reg.register_pattern("/etc/vz", r"\d+\.conf", parse_text)
        assert reg.pattern_matches("/etc/vz", "100.conf") == ["/etc/vz/100.conf"]
        assert reg.pattern_matches("/etc/vz", "100.conf.tmp") == []
        assert reg.pattern_matches("/etc", "100.conf") == []

    def test_descriptors_include_materialized(self):
        reg = Registry()
        fixed = reg.register("hosts", "/etc/hosts")
        reg.register_pattern("/etc/vz", r"\d+\.conf", parse_text)
        mat, _ = reg.lookup("/etc/vz/7.conf")
        assert list(reg.descriptors()) == [fixed, mat]
