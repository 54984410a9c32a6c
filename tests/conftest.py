import pytest

from hostconf.config import Settings


@pytest.fixture
def host_root(tmp_path):
    """A minimal host tree with the directories the default files live in."""
    root = tmp_path / "host"
    for d in ("etc/network", "etc/apt", "etc/iscsi", "var/log/hostconf/tasks", "usr/share/zoneinfo/Europe"):
        (root / d).mkdir(parents=True)
    (root / "usr/share/zoneinfo/Europe/Vienna").write_bytes(b"TZif")
    return root


@pytest.fixture
def settings(host_root, tmp_path):
    # kernel state comes from (absent) files of the scratch tree, not the test machine
    return Settings(
        root=str(host_root),
        proc_net_dev=str(tmp_path / "proc_net_dev"),
        sys_class_net=str(tmp_path / "sys_class_net"),
        lock_timeout=1,
    )
