"""Tests for build entries and setups."""

import pytest

from buildtools.model import BuildEntry
from buildtools.model import BuildOptions
from buildtools.model import BuildSetup
from buildtools.model import BuildTarget
from buildtools.model import ScriptingBackend
from buildtools.model import StrippingLevel
from buildtools.model import available_vr_sdks
from buildtools.model import vr_mask_to_sdks
from buildtools.model import vr_sdks_to_mask


def _setup(*names, root="/out"):
    setup = BuildSetup()
    setup.root_directory = root
    for name in names:
        setup.add_entry().build_name = name
    return setup


class TestReady:
    def test_empty_setup_is_not_ready(self):
        assert not BuildSetup().is_ready()

    def test_root_without_entries_is_not_ready(self):
        assert not _setup().is_ready()

    def test_entries_without_root_is_not_ready(self):
        assert not _setup("Win", root="").is_ready()

    def test_only_disabled_entries_is_not_ready(self):
        setup = _setup("Win", "Mac")
        for entry in setup.entries:
            entry.enabled = False
        assert not setup.is_ready()

    def test_root_and_one_enabled_entry_is_ready(self):
        setup = _setup("Win", "Mac")
        setup.entries[0].enabled = False
        assert setup.is_ready()


class TestEntries:
    def test_add_entry_appends_one_default_record(self):
        setup = _setup("Win")
        entry = setup.add_entry()
        assert len(setup.entries) == 2
        assert setup.entries[-1] is entry
        assert entry.to_dict() == BuildEntry().to_dict()

    def test_default_entry_values(self):
        entry = BuildEntry()
        assert entry.build_name == "New Build"
        assert entry.target == BuildTarget.StandaloneWindows64
        assert entry.enabled
        assert entry.use_default_build_scenes
        assert entry.custom_scenes == []
        assert entry.stripping_level == StrippingLevel.Disabled
        assert entry.scripting_backend == ScriptingBackend.Mono2x

    def test_entries_do_not_share_scene_lists(self):
        a, b = BuildEntry(), BuildEntry()
        a.custom_scenes.append("Assets/Scenes/Main.unity")
        assert b.custom_scenes == []

    def test_delete_entry_keeps_order_of_the_rest(self):
        setup = _setup("A", "B", "C", "D")
        setup.delete_entry(setup.entries[1])
        assert [entry.build_name for entry in setup.entries] == ["A", "C", "D"]

    def test_delete_entry_removes_the_exact_record(self):
        setup = _setup()
        first, second = setup.add_entry(), setup.add_entry()
        setup.delete_entry(second)
        assert setup.entries == [first]
        assert setup.entries[0] is first

    def test_delete_unknown_entry_raises(self):
        setup = _setup("A")
        with pytest.raises(ValueError):
            setup.delete_entry(BuildEntry())
        assert len(setup.entries) == 1


class TestOptions:
    def test_release_build_has_no_options(self):
        assert BuildEntry().options() == BuildOptions.NONE

    def test_debug_build(self):
        entry = BuildEntry()
        entry.debug_build = True
        assert entry.options() == BuildOptions.Development | BuildOptions.AllowDebugging
        assert int(entry.options()) == 513

    def test_strict_mode(self):
        entry = BuildEntry()
        entry.strict_mode = True
        assert entry.options() == BuildOptions.StrictMode

    def test_symlink_only_applies_to_ios(self):
        entry = BuildEntry(target=BuildTarget.Android)
        entry.ios_symlink_libraries = True
        assert entry.options() == BuildOptions.NONE
        entry.target = BuildTarget.iOS
        assert entry.options() == BuildOptions.SymlinkLibraries

    def test_define_symbols_are_split_and_trimmed(self):
        entry = BuildEntry()
        entry.scripting_define_symbols = " STEAM ; ;DEMO;"
        assert entry.define_symbols() == ["STEAM", "DEMO"]


class TestVr:
    def test_mask_round_trip_for_standalone(self):
        mask = vr_sdks_to_mask(BuildTarget.StandaloneWindows64, ["openvr", "Oculus"])
        assert mask == 0b0110
        assert vr_mask_to_sdks(BuildTarget.StandaloneWindows64, mask) == ["Oculus", "OpenVR"]

    def test_unknown_sdk_raises(self):
        with pytest.raises(ValueError, match="not available"):
            vr_sdks_to_mask(BuildTarget.iOS, ["Oculus"])

    def test_webgl_has_no_sdks(self):
        assert available_vr_sdks(BuildTarget.WebGL) == []

    def test_entry_reports_no_sdks_without_vr_support(self):
        entry = BuildEntry()
        entry.vr_sdk_flags = 0b10
        assert entry.vr_sdks() == []
        entry.supports_vr = True
        assert entry.vr_sdks() == ["Oculus"]


class TestSerialization:
    def test_setup_survives_a_dict_round_trip(self):
        setup = _setup("Win", "Droid")
        setup.abort_batch_on_failure = True
        setup.entries[1].target = BuildTarget.Android
        setup.entries[1].use_default_build_scenes = False
        setup.entries[1].custom_scenes = ["Assets/Scenes/Main.unity"]

        restored = BuildSetup.from_dict(setup.to_dict())

        assert restored.to_dict() == setup.to_dict()
        assert restored.entries[1].target == BuildTarget.Android

    def test_enums_are_stored_by_name(self):
        data = BuildEntry(target=BuildTarget.iOS).to_dict()
        assert data["target"] == "iOS"
        assert data["scripting_backend"] == "Mono2x"

    def test_unknown_keys_are_ignored_and_missing_keys_default(self):
        entry = BuildEntry.from_dict({"build_name": "Old", "legacy_flag": 3})
        assert entry.build_name == "Old"
        assert entry.target == BuildTarget.StandaloneWindows64
        assert not hasattr(entry, "legacy_flag")

    def test_restore_replaces_state_in_place(self):
        setup = _setup("A")
        snapshot = setup.to_dict()
        setup.add_entry()
        setup.root_directory = "/elsewhere"
        setup.restore(snapshot)
        assert setup.root_directory == "/out"
        assert [entry.build_name for entry in setup.entries] == ["A"]
