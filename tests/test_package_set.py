"""
Tests for package-set descriptions — source.yml parsing and loading.
"""

from pathlib import Path

import pytest

from autows.core.config.package_set_loader import (
    load_package_set,
    name_of,
    normalize_vcs_list,
    number_to_nth,
    parse_packages,
    raw_description_file,
    resolve_definition,
)
from autows.core.errors import ConfigError, InternalError, InvalidYAMLFormatting
from autows.core.models import PackageSetRecord, VCSDefinition, VcsEntry

FILE = "/path/to/file"


class TestPackageSetRecord:
    def test_defaults(self):
        pkg_set = PackageSetRecord(name="test")
        assert not pkg_set.main
        assert pkg_set.version_control == []
        assert pkg_set.overrides == []
        assert pkg_set.imports == []

    def test_local_if_its_vcs_is(self):
        assert PackageSetRecord(name="a", vcs=VCSDefinition(type="local", url="/a")).is_local
        assert not PackageSetRecord(name="a", vcs=VCSDefinition(type="git", url="u")).is_local


class TestResolveDefinition:
    def test_relative_local_dir(self, tmp_path):
        (tmp_path / "dir").mkdir()
        vcs, options = resolve_definition(tmp_path, "dir")
        assert vcs == VCSDefinition(type="local", url=str((tmp_path / "dir").resolve()))
        assert options == {"auto_imports": True}

    def test_absolute_local_dir(self, tmp_path):
        (tmp_path / "dir").mkdir()
        vcs, _ = resolve_definition(Path("/elsewhere"), str(tmp_path / "dir"))
        assert vcs.url == str((tmp_path / "dir").resolve())

    def test_missing_relative_dir(self, tmp_path):
        with pytest.raises(ValueError) as exc_info:
            resolve_definition(tmp_path, "dir")
        assert str(exc_info.value) == (
            "'dir' is neither a remote source specification, nor an existing local directory"
        )

    def test_missing_full_path(self, tmp_path):
        with pytest.raises(ValueError) as exc_info:
            resolve_definition(tmp_path, "/full/dir")
        assert str(exc_info.value) == (
            "'/full/dir' is neither a remote source specification, nor an existing local directory"
        )

    def test_remote(self, tmp_path):
        vcs, options = resolve_definition(
            tmp_path, {"type": "git", "url": "https://url", "branch": "b", "auto_imports": False}
        )
        assert vcs == VCSDefinition(type="git", url="https://url", options={"branch": "b"})
        assert options == {"auto_imports": False}

    def test_invalid_spec(self, tmp_path):
        with pytest.raises(ConfigError, match="invalid package set specification"):
            resolve_definition(tmp_path, 42)


class TestNameOf:
    def test_name_on_disk(self, tmp_path, write_file):
        write_file(tmp_path / "source.yml", "name: name_of_package_set\n")
        assert name_of(VCSDefinition(type="git", url="https://url"), tmp_path) == "name_of_package_set"

    def test_vcs_when_not_present(self, tmp_path):
        vcs = VCSDefinition(type="git", url="https://url")
        assert name_of(vcs, tmp_path / "missing") == "git:https://url"


class TestNormalizeVcsList:
    def test_hash_instead_of_list(self):
        with pytest.raises(InvalidYAMLFormatting) as exc_info:
            normalize_vcs_list("version_control", FILE, {"test": {"type": "git"}})
        assert str(exc_info.value) == (
            "wrong format for the version_control section of /path/to/file, "
            "you forgot the '-' in front of the package names"
        )

    def test_neither_list_nor_hash(self):
        with pytest.raises(InvalidYAMLFormatting) as exc_info:
            normalize_vcs_list("version_control", FILE, "test")
        assert str(exc_info.value) == "wrong format for the version_control section of /path/to/file"

    @pytest.mark.parametrize("number, expected", [
        (1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"), (11, "11th"), (12, "12th"),
        (21, "21st"), (25, "25th"), (112, "112th"),
    ])
    def test_number_to_nth(self, number, expected):
        assert number_to_nth(number) == expected

    def test_entry_not_a_hash(self):
        with pytest.raises(InvalidYAMLFormatting) as exc_info:
            normalize_vcs_list("version_control", FILE, [None])
        assert str(exc_info.value) == (
            "wrong format for the 1st entry (None) of the version_control section of /path/to/file, "
            "expected a package name, followed by a colon, and one importer option per following line"
        )

    def test_keys_at_the_same_level(self):
        entries = normalize_vcs_list(
            "version_control", FILE, [{"package_name": None, "type": "git", "url": "https://url"}]
        )
        assert entries == [VcsEntry(
            key="package_name", fields={"type": "git", "url": "https://url"}, source=FILE,
        )]

    def test_nested_keys(self):
        entries = normalize_vcs_list(
            "version_control", FILE, [{"package_name": {"type": "git", "url": "https://url"}}]
        )
        assert entries[0].key == "package_name"
        assert entries[0].fields == {"type": "git", "url": "https://url"}
        assert not entries[0].pattern

    def test_none_shorthand(self):
        entries = normalize_vcs_list("version_control", FILE, [{"package_name": "none"}])
        assert entries[0].fields == {"type": "none"}

    def test_regexp_names(self):
        entries = normalize_vcs_list("version_control", FILE, [{"test.*": {"type": "git"}}])
        assert entries[0].key == "^test.*"
        assert entries[0].pattern
        assert entries[0].matches("test/package")
        assert not entries[0].matches("other/test")

    def test_plain_names_with_dots_and_dashes(self):
        entries = normalize_vcs_list("overrides", FILE, [{"gui/vizkit3d-1.0": {"branch": "b"}}])
        assert not entries[0].pattern
        assert entries[0].matches("gui/vizkit3d-1.0")

    def test_name_without_specification(self):
        with pytest.raises(InvalidYAMLFormatting) as exc_info:
            normalize_vcs_list("version_control", FILE, [{"test": None}])
        assert str(exc_info.value) == (
            "expected 'test:' followed by version control options, but got nothing, "
            "in the 1st entry of the version_control section of /path/to/file"
        )

    def test_inconsistent_hash(self):
        with pytest.raises(InvalidYAMLFormatting) as exc_info:
            normalize_vcs_list("version_control", FILE, [{"test": "with_value", "type": "git"}])
        assert str(exc_info.value) == (
            "cannot make sense of the 1st entry in the version_control section of /path/to/file: "
            "{'test': 'with_value', 'type': 'git'}"
        )

    def test_shorthand_other_than_none(self):
        with pytest.raises(ConfigError) as exc_info:
            normalize_vcs_list("version_control", FILE, [{"package_name": "local"}])
        assert str(exc_info.value) == (
            "invalid VCS specification in the version_control section of /path/to/file: "
            "'package_name: local'. One can only use this shorthand to declare the absence "
            "of a VCS with the 'none' keyword"
        )


class TestRawDescriptionFile:
    def test_missing_source_yml(self):
        with pytest.raises(ConfigError) as exc_info:
            raw_description_file(Path("/path/to/package_set"), package_set_name="name_of_package_set")
        assert str(exc_info.value) == (
            "package set name_of_package_set present in /path/to/package_set should have "
            "a source.yml file, but does not"
        )

    def test_empty_file(self, tmp_path):
        (tmp_path / "source.yml").write_text("")
        with pytest.raises(ConfigError) as exc_info:
            raw_description_file(tmp_path)
        assert str(exc_info.value) == f"{tmp_path}/source.yml does not have a 'name' field"

    def test_no_name_field(self, tmp_path, write_file):
        write_file(tmp_path / "source.yml", "version_control: []\n")
        with pytest.raises(ConfigError) as exc_info:
            raw_description_file(tmp_path)
        assert str(exc_info.value) == f"{tmp_path}/source.yml does not have a 'name' field"


class TestParsePackages:
    def test_short_and_long_forms(self):
        packages = parse_packages(
            ["base/types", {"name": "tools/viewer", "class": "autotools", "srcdir": "gui/viewer",
                            "depends": "base/types"}],
            FILE, "rock.core", Path("/ws"),
        )
        types, viewer = packages
        assert (types.name, types.srcdir, types.class_name) == ("base/types", "/ws/base/types", "cmake")
        assert types.package_set == "rock.core"
        assert viewer.srcdir == "/ws/gui/viewer"
        assert viewer.class_name == "autotools"
        assert viewer.dependencies == ["base/types"]

    def test_missing_section(self):
        assert parse_packages(None, FILE, "s", Path("/ws")) == []

    def test_not_a_list(self):
        with pytest.raises(InvalidYAMLFormatting, match="wrong format for the packages section"):
            parse_packages({"a": None}, FILE, "s", Path("/ws"))

    def test_entry_without_name(self):
        with pytest.raises(ConfigError, match="invalid package definition"):
            parse_packages([{"class": "cmake"}], FILE, "s", Path("/ws"))


class TestLoadPackageSet:
    def test_not_fetched(self, tmp_path):
        with pytest.raises(InternalError) as exc_info:
            load_package_set(
                VCSDefinition(type="git", url="https://url"),
                config_dir=tmp_path, remotes_dir=tmp_path / "remotes", root_dir=tmp_path,
            )
        assert str(exc_info.value) == "source git:https://url has not been fetched yet, cannot load description for it"

    def test_fetched_without_description(self, tmp_path):
        (tmp_path / "remotes" / "git_https___url").mkdir(parents=True)
        with pytest.raises(ConfigError) as exc_info:
            load_package_set(
                VCSDefinition(type="git", url="https://url"),
                config_dir=tmp_path, remotes_dir=tmp_path / "remotes", root_dir=tmp_path,
            )
        assert str(exc_info.value) == (
            f"package set git:https://url present in {tmp_path}/remotes/git_https___url should have "
            "a source.yml file, but does not"
        )

    def test_local_set(self, tmp_path, write_file):
        set_dir = tmp_path / "conf" / "my_set"
        write_file(set_dir / "source.yml", """\
            name: my.set
            imports:
              - other_set
              - type: git
                url: https://example.com/remote
                auto_imports: false
            version_control:
              - base/.*:
                  type: git
                  url: https://example.com/base
            overrides:
              - pkg_set:git:https://example.com/remote:
                  branch: devel
            packages:
              - base/types
        """)
        write_file(set_dir / "my.osdeps", "boost: ignore\n")
        (tmp_path / "conf" / "other_set").mkdir()

        loaded = load_package_set(
            VCSDefinition(type="local", url=str(set_dir)),
            config_dir=tmp_path / "conf", remotes_dir=tmp_path / "remotes", root_dir=tmp_path,
            explicit=True,
        )
        record = loaded.record
        assert record.name == "my.set"
        assert record.explicit
        assert record.raw_local_dir == str(set_dir)
        assert record.osdeps_files == [str(set_dir / "my.osdeps")]
        assert record.version_control[0].key == "^base/.*"
        assert list(record.overrides_for("pkg_set:git:https://example.com/remote")) == [{"branch": "devel"}]

        assert [p.name for p in loaded.packages] == ["base/types"]
        assert loaded.packages[0].srcdir == str(tmp_path / "base/types")

        (local_vcs, local_opts), (remote_vcs, remote_opts) = loaded.imports
        assert local_vcs.type == "local"
        assert local_opts == {"auto_imports": True}
        assert remote_vcs.url == "https://example.com/remote"
        assert remote_opts == {"auto_imports": False}

    def test_bad_import_names_the_file(self, tmp_path, write_file):
        write_file(tmp_path / "s" / "source.yml", """\
            name: s
            imports:
              - does_not_exist
        """)
        with pytest.raises(ConfigError, match="source.yml: 'does_not_exist' is neither"):
            load_package_set(
                VCSDefinition(type="local", url=str(tmp_path / "s")),
                config_dir=tmp_path, remotes_dir=tmp_path / "remotes", root_dir=tmp_path,
            )
