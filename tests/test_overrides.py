"""
Tests for override folding, package-set ordering and repository ids.
"""

from pathlib import Path

import pytest

from autows.core.errors import ConfigError
from autows.core.models import PackageRecord, PackageSetRecord, VCSDefinition, merge_raw_vcs
from autows.core.services.overrides import (
    OverrideResolver,
    overrides_key,
    raw_local_dir_of,
    repository_id_of,
    sort_package_sets_by_import_order,
)

GIT_SET = VCSDefinition(type="git", url="https://example.com/set.git")


def _set(name, imports=(), **kwargs):
    return PackageSetRecord(name=name, imports=list(imports), **kwargs)


class TestMergeRawVcs:
    def test_fields_are_inherited(self):
        merged = merge_raw_vcs({"type": "git", "url": "u", "branch": "master"}, {"branch": "next"})
        assert merged == {"type": "git", "url": "u", "branch": "next"}

    def test_same_type_keeps_fields(self):
        merged = merge_raw_vcs({"type": "git", "url": "u", "branch": "b"}, {"type": "git", "url": "v"})
        assert merged == {"type": "git", "url": "v", "branch": "b"}

    def test_type_change_replaces(self):
        merged = merge_raw_vcs({"type": "git", "url": "u", "branch": "b"}, {"type": "local", "url": "/p"})
        assert merged == {"type": "local", "url": "/p"}

    def test_inputs_untouched(self):
        old = {"type": "git", "url": "u"}
        merge_raw_vcs(old, {"branch": "x"})
        assert old == {"type": "git", "url": "u"}


class TestVCSDefinition:
    def test_from_raw(self):
        vcs = VCSDefinition.from_raw({"type": "git", "url": "u", "branch": "b"})
        assert (vcs.type, vcs.url, vcs.options) == ("git", "u", {"branch": "b"})
        assert vcs.to_raw() == {"type": "git", "url": "u", "branch": "b"}

    def test_missing_type(self):
        with pytest.raises(ConfigError, match="the type of VCS is not specified"):
            VCSDefinition.from_raw({"url": "u"}, source="a.yml")

    def test_missing_url(self):
        with pytest.raises(ConfigError, match="has no URL"):
            VCSDefinition.from_raw({"type": "git"})

    def test_none_needs_no_url(self):
        assert VCSDefinition.from_raw({"type": "none"}).is_none

    def test_update(self):
        vcs = VCSDefinition(type="git", url="u").update({"branch": "b"})
        assert vcs.options == {"branch": "b"}

    def test_str(self):
        assert str(VCSDefinition.none()) == "none"
        assert str(VCSDefinition(type="git", url="u", options={"tag": "v1", "branch": "b"})) == (
            "git:u branch=b tag=v1"
        )


class TestRepositoryIds:
    def test_git(self):
        assert repository_id_of(GIT_SET) == "git:https://example.com/set.git"

    def test_local(self):
        assert repository_id_of(VCSDefinition(type="local", url="/ws/sets/a")) == "/ws/sets/a"

    def test_without_importer_fingerprint(self):
        vcs = VCSDefinition(type="archive", url="https://example.com/a.tar.gz")
        assert repository_id_of(vcs) == "archive:https://example.com/a.tar.gz"

    def test_raw_local_dir(self):
        path = raw_local_dir_of(Path("/ws/.autows/remotes"), GIT_SET)
        assert path == Path("/ws/.autows/remotes/git_https___example_com_set_git")
        local = raw_local_dir_of(Path("/ws/.autows/remotes"), VCSDefinition(type="local", url="/ws/a"))
        assert local == Path("/ws/a")

    def test_overrides_key(self):
        assert overrides_key(GIT_SET) == "pkg_set:git:https://example.com/set.git"
        assert overrides_key(VCSDefinition(type="local", url="/ws/a")) == "pkg_set:local:/ws/a"


class TestImportOrder:
    def test_imports_come_first(self):
        a, b, c = _set("a", ["b"]), _set("b", ["c"]), _set("c")
        assert [s.name for s in sort_package_sets_by_import_order([a, b, c])] == ["c", "b", "a"]

    def test_root_last(self):
        main = _set("main", ["a"])
        a, b = _set("a"), _set("b")
        ordered = sort_package_sets_by_import_order([main, a, b], root=main)
        assert [s.name for s in ordered] == ["a", "b", "main"]

    def test_root_by_name(self):
        main, a = _set("main"), _set("a")
        assert [s.name for s in sort_package_sets_by_import_order([main, a], "main")] == ["a", "main"]

    def test_unknown_imports_are_ignored(self):
        assert [s.name for s in sort_package_sets_by_import_order([_set("a", ["ghost"])])] == ["a"]

    def test_shared_import_listed_once(self):
        sets = [_set("a", ["common"]), _set("b", ["common"]), _set("common")]
        assert [s.name for s in sort_package_sets_by_import_order(sets)] == ["common", "a", "b"]

    def test_cycle(self):
        with pytest.raises(ConfigError, match="cycle in package set imports: a -> b -> a"):
            sort_package_sets_by_import_order([_set("a", ["b"]), _set("b", ["a"])])


class TestOverrideResolver:
    @pytest.fixture
    def sets(self):
        base = _set("base")
        base.add_version_control_entry("drivers/.*", {"type": "git", "url": "https://x/drivers"}, pattern=True)
        base.add_version_control_entry("drivers/camera", {"branch": "camera"})
        middle = _set("middle")
        middle.add_overrides_entry("drivers/camera", {"branch": "middle"})
        top = _set("top")
        top.add_overrides_entry("drivers/.*", {"type": "svn", "url": "https://y/svn"}, pattern=True)
        return [base, middle, top]

    @pytest.fixture
    def camera(self):
        return PackageRecord(name="drivers/camera", package_set="base")

    def test_version_control_entries_fold_in_order(self, sets, camera):
        vcs = OverrideResolver(sets[:1]).importer_definition_for(camera)
        assert vcs == VCSDefinition(type="git", url="https://x/drivers", options={"branch": "camera"})

    def test_overrides_of_later_sets(self, sets, camera):
        vcs = OverrideResolver(sets[:2]).importer_definition_for(camera)
        assert vcs.options == {"branch": "middle"}

    def test_type_change_in_override(self, sets, camera):
        vcs = OverrideResolver(sets).importer_definition_for(camera)
        assert vcs == VCSDefinition(type="svn", url="https://y/svn")

    def test_mainline_truncates(self, sets, camera):
        vcs = OverrideResolver(sets).importer_definition_for(camera, mainline="middle")
        assert vcs.type == "git"
        assert vcs.options == {"branch": "middle"}

    def test_own_set_overrides_do_not_apply(self, sets, camera):
        sets[0].add_overrides_entry("drivers/camera", {"branch": "ignored"})
        vcs = OverrideResolver(sets[:1]).importer_definition_for(camera)
        assert vcs.options == {"branch": "camera"}

    def test_earlier_sets_do_not_override(self):
        early = _set("early")
        early.add_overrides_entry("pkg", {"branch": "early"})
        own = _set("own")
        own.add_version_control_entry("pkg", {"type": "git", "url": "u"})
        vcs = OverrideResolver([early, own]).importer_definition_for(PackageRecord(name="pkg", package_set="own"))
        assert vcs.options == {}

    def test_package_definition_is_the_base(self):
        own = _set("own")
        later = _set("later")
        later.add_overrides_entry("pkg", {"branch": "b"})
        pkg = PackageRecord(name="pkg", package_set="own", vcs=VCSDefinition(type="git", url="u"))
        vcs = OverrideResolver([own, later]).importer_definition_for(pkg)
        assert vcs == VCSDefinition(type="git", url="u", options={"branch": "b"})

    def test_package_without_set_gets_every_override(self, sets):
        pkg = PackageRecord(name="drivers/laser", vcs=VCSDefinition(type="git", url="u"))
        vcs = OverrideResolver(sets).importer_definition_for(pkg)
        assert vcs.type == "svn"

    def test_no_definition(self, sets):
        pkg = PackageRecord(name="tools/viewer", package_set="base")
        with pytest.raises(ConfigError, match="package tools/viewer has no version control definition"):
            OverrideResolver(sets).importer_definition_for(pkg)
        assert OverrideResolver(sets).importer_definition_for(pkg, require_existing=False).is_none

    def test_unknown_mainline(self, sets, camera):
        with pytest.raises(ConfigError, match="mainline nowhere is not a registered package set"):
            OverrideResolver(sets).importer_definition_for(camera, mainline="nowhere")

    def test_package_set_definition(self):
        main = _set("main")
        main.add_overrides_entry(overrides_key(GIT_SET), {"branch": "devel"})
        vcs = OverrideResolver([_set("a"), main]).package_set_definition_for(GIT_SET)
        assert vcs.options == {"branch": "devel"}

        vcs = OverrideResolver([_set("a"), main]).package_set_definition_for(GIT_SET, mainline="a")
        assert vcs == GIT_SET
