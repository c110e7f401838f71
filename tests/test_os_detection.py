"""
Tests for operating-system detection.

Nothing here runs the real ``lsb_release`` or reads the real /etc.
"""

from unittest.mock import patch

from autows.core.context import ResolverContext
from autows.core.models import OsIdentity, WorkspaceConfig
from autows.core.services.osdeps import detection

_MOD = "autows.core.services.osdeps.detection"


class TestOsIdentity:
    def test_normalized(self):
        identity = OsIdentity.of(" Ubuntu ", ["Bionic", "18.04", ""])
        assert identity == ("ubuntu", ("bionic", "18.04"))

    def test_parse_env_form(self):
        assert OsIdentity.parse("debian:wheezy,7") == ("debian", ("wheezy", "7"))
        assert OsIdentity.parse("arch") == ("arch", ())
        assert OsIdentity.parse(":7") is None

    def test_str(self):
        assert str(OsIdentity.of("debian", ["wheezy", "7"])) == "debian (wheezy, 7)"
        assert str(OsIdentity.of("arch")) == "arch"


class TestReleaseFiles:
    def test_debian_version(self, tmp_path):
        (tmp_path / "debian_version").write_text("7.11\n")
        assert detection.os_from_release_files(tmp_path) == ("debian", ("7.11",))

    def test_sid_adds_aliases(self, tmp_path):
        (tmp_path / "debian_version").write_text("bookworm/sid\n")
        identity = detection.os_from_release_files(tmp_path)
        assert identity.versions == ("bookworm/sid", "unstable", "sid")

    def test_gentoo_takes_the_last_token(self, tmp_path):
        (tmp_path / "gentoo-release").write_text("Gentoo Base System release 2.7\n")
        assert detection.os_from_release_files(tmp_path) == ("gentoo", ("2.7",))

    def test_arch(self, tmp_path):
        (tmp_path / "arch-release").write_text("")
        assert detection.os_from_release_files(tmp_path) == ("arch", ())

    def test_nothing(self, tmp_path):
        assert detection.os_from_release_files(tmp_path) is None


class TestCascade:
    def test_config_wins(self, tmp_path):
        config = WorkspaceConfig(operating_system=("fedora", ["38"]))
        with patch(f"{_MOD}.os_from_lsb") as lsb:
            identity = detection.detect_operating_system(config, environ={}, etc_dir=tmp_path)
        assert identity == ("fedora", ("38",))
        lsb.assert_not_called()

    def test_environment(self, tmp_path):
        env = {"AUTOWS_OPERATING_SYSTEM": "ubuntu:focal,20.04"}
        with patch(f"{_MOD}.os_from_lsb") as lsb:
            identity = detection.detect_operating_system(None, environ=env, etc_dir=tmp_path)
        assert identity == ("ubuntu", ("focal", "20.04"))
        lsb.assert_not_called()

    def test_lsb_release(self, tmp_path):
        with patch(f"{_MOD}.os_from_lsb", return_value=OsIdentity.of("ubuntu", ["jammy", "22.04"])):
            identity = detection.detect_operating_system(None, environ={}, etc_dir=tmp_path)
        assert identity.family == "ubuntu"

    def test_lsb_debian_is_ignored(self, tmp_path):
        (tmp_path / "debian_version").write_text("trixie/sid\n")
        with patch(f"{_MOD}.os_from_lsb", return_value=OsIdentity.of("debian", ["n/a", "testing"])):
            identity = detection.detect_operating_system(None, environ={}, etc_dir=tmp_path)
        assert identity.versions == ("trixie/sid", "unstable", "sid")

    def test_unknown(self, tmp_path):
        with patch(f"{_MOD}.os_from_lsb", return_value=None):
            assert detection.detect_operating_system(None, environ={}, etc_dir=tmp_path) is None


class TestLsbRelease:
    def test_not_installed(self):
        with patch(f"{_MOD}.shutil.which", return_value=None):
            assert detection.os_from_lsb() is None

    def test_parses_output(self):
        outputs = {"-i": "Ubuntu\n", "-c": "jammy\n", "-r": "22.04\n"}

        def fake_run(cmd, **kwargs):
            class R:
                returncode = 0
                stdout = outputs[cmd[1]]
            return R()

        with patch(f"{_MOD}.shutil.which", return_value="/usr/bin/lsb_release"), \
             patch(f"{_MOD}.subprocess.run", side_effect=fake_run):
            assert detection.os_from_lsb() == ("ubuntu", ("jammy", "22.04"))

    def test_failure(self):
        with patch(f"{_MOD}.shutil.which", return_value="/usr/bin/lsb_release"), \
             patch(f"{_MOD}.subprocess.run", side_effect=OSError("boom")):
            assert detection.os_from_lsb() is None


class TestCaching:
    def test_detects_once(self, tmp_path):
        context = ResolverContext()
        (tmp_path / "arch-release").write_text("")
        with patch(f"{_MOD}.os_from_lsb", return_value=None) as lsb:
            first = detection.operating_system(context, environ={}, etc_dir=tmp_path)
            second = detection.operating_system(context, environ={}, etc_dir=tmp_path)
        assert first == second == ("arch", ())
        assert lsb.call_count == 1

    def test_unknown_is_cached(self, tmp_path):
        context = ResolverContext()
        with patch(f"{_MOD}.os_from_lsb", return_value=None) as lsb:
            assert detection.operating_system(context, environ={}, etc_dir=tmp_path) is None
            assert detection.operating_system(context, environ={}, etc_dir=tmp_path) is None
        assert lsb.call_count == 1

    def test_reset_forces_detection(self, tmp_path):
        context = ResolverContext()
        context.set_operating_system(OsIdentity.of("arch"))
        context.reset()
        with patch(f"{_MOD}.os_from_lsb", return_value=None):
            assert detection.operating_system(context, environ={}, etc_dir=tmp_path) is None

    def test_detected_identity_is_stored_in_config(self, tmp_path):
        context = ResolverContext()
        config = WorkspaceConfig()
        (tmp_path / "debian_version").write_text("7.11\n")
        with patch(f"{_MOD}.os_from_lsb", return_value=None):
            detection.operating_system(context, config, environ={}, etc_dir=tmp_path)
        assert config.operating_system == ("debian", ["7.11"])
