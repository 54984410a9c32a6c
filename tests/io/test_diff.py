from hostconf.io.diff import compute_diff


class TestComputeDiff:

    def test_identical_files_have_no_diff(self, tmp_path):
        a = tmp_path / "interfaces"
        b = tmp_path / "interfaces.new"
        a.write_text("auto lo\niface lo inet loopback\n")
        b.write_text("auto lo\niface lo inet loopback\n")
        assert compute_diff(str(a), str(b)) is None

    def test_whitespace_only_changes_are_ignored(self, tmp_path):
        a = tmp_path / "interfaces"
        b = tmp_path / "interfaces.new"
        a.write_text("iface lo inet loopback\n\taddress 127.0.0.1\n")
        b.write_text("iface  lo inet   loopback  \n    address 127.0.0.1\n")
        assert compute_diff(str(a), str(b)) is None

    def test_changed_line_shows_in_unified_diff(self, tmp_path):
        a = tmp_path / "interfaces"
        b = tmp_path / "interfaces.new"
        a.write_text("iface eth0 inet manual\n")
        b.write_text("iface eth0 inet dhcp\n")

        diff = compute_diff(str(a), str(b))

        assert diff.startswith(f"--- {a}\n+++ {b}\n")
        assert "-iface eth0 inet manual\n" in diff
        assert "+iface eth0 inet dhcp\n" in diff

    def test_missing_canonical_counts_as_empty(self, tmp_path):
        b = tmp_path / "interfaces.new"
        b.write_text("auto lo\n")
        diff = compute_diff(str(tmp_path / "interfaces"), str(b))
        assert "+auto lo\n" in diff

    def test_missing_final_newline_is_terminated(self, tmp_path):
        a = tmp_path / "a"
        b = tmp_path / "b"
        a.write_text("one")
        b.write_text("two")
        diff = compute_diff(str(a), str(b))
        assert diff.endswith("+two\n")
