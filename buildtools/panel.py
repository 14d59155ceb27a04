import enum
import pathlib

from typing import List
from typing import Optional

from buildtools import store
from buildtools.errors import EnhancedBuildsError
from buildtools.errors import NotReadyError
from buildtools.errors import SetupLoadError
from buildtools.history import History
from buildtools.model import BuildEntry
from buildtools.model import BuildSetup
from buildtools.model import BuildTarget
from buildtools.model import ScriptingBackend
from buildtools.model import StrippingLevel
from buildtools.model import available_vr_sdks
from buildtools.model import vr_mask_to_sdks
from buildtools.model import vr_sdks_to_mask
from buildtools.process import BatchReport
from buildtools.process import BuildProcess

WINDOW_TITLE = "Enhanced Builds"
NOT_READY_HINT = "Define a Root directory and at least one active build entry"

BOOL_FIELDS = [
    "debug_build",
    "use_default_build_scenes",
    "strict_mode",
    "ios_symlink_libraries",
    "supports_vr",
    "enabled",
    "gui_show_options",
    "gui_show_custom_scenes",
    "gui_show_advanced_options",
    "gui_show_vr_options",
]
STRING_FIELDS = ["build_name", "scripting_define_symbols", "asset_bundle_manifest_path"]
ENUM_FIELDS = {
    "target": BuildTarget,
    "stripping_level": StrippingLevel,
    "scripting_backend": ScriptingBackend,
}
SECTIONS = {
    "options": "gui_show_options",
    "scenes": "gui_show_custom_scenes",
    "advanced": "gui_show_advanced_options",
    "vr": "gui_show_vr_options",
}

def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in ["1", "true", "yes", "on"]:
        return True
    if lowered in ["0", "false", "no", "off"]:
        return False
    raise ValueError(f"`{value}` is not a boolean (use on/off, true/false, yes/no or 1/0)")

def parse_enum(enumtype, value) -> enum.Enum:
    if isinstance(value, enumtype):
        return value
    for member in enumtype:
        if member.value.lower() == str(value).strip().lower():
            return member
    raise ValueError(f"`{value}` is not one of {', '.join(member.value for member in enumtype)}")

class EditorPanel:
    """Everything the Enhanced Builds window can do, minus the window.

    Holds at most one loaded BuildSetup, the project-relative path it came from and its History.
    Each mutation records a snapshot first, which also marks the setup dirty; save() persists it.
    """

    def __init__(self, project: store.Project, prefs: store.Prefs, setups_dir: str = store.SETUPS_REL_DIRECTORY):
        self.project = project
        self.prefs = prefs
        self.setups_dir = setups_dir
        self.setup: Optional[BuildSetup] = None
        self.path: Optional[str] = None
        self.history: Optional[History] = None

    # ---- loading

    def _attach(self, setup: BuildSetup, relpath: str) -> None:
        self.setup = setup
        self.path = relpath
        self.history = History(setup)

    def open(self) -> bool:
        """Restore the last used setup. Returns False (nothing loaded) when there isn't one to restore."""
        if not self.prefs.has_key(store.PREFS_KEY):
            return False

        relpath = self.prefs.get_string(store.PREFS_KEY)
        abspath = self.project.absolute(relpath)
        if not abspath.is_file():
            print(f"SETUP: last build file {relpath} is gone")
            return False

        try:
            setup = store.load_setup(abspath)
        except SetupLoadError as e:
            print(f"SETUP: {e}")
            return False

        self._attach(setup, relpath)
        return True

    def create_new(self) -> str:
        setup, relpath = store.create_setup(self.project, self.setups_dir)
        self._attach(setup, relpath)
        self.prefs.set_string(store.PREFS_KEY, relpath)
        return relpath

    def select_build_file(self, abspath) -> bool:
        relpath = self.project.relative(abspath)
        if relpath is None:
            return False

        try:
            setup = store.load_setup(self.project.absolute(relpath))
        except (OSError, SetupLoadError) as e:
            print(f"SETUP: can't use {relpath}: {e}")
            return False

        self._attach(setup, relpath)
        self.prefs.set_string(store.PREFS_KEY, relpath)
        return True

    def show_in_library(self) -> pathlib.Path:
        self.current()
        return self.project.absolute(self.path)

    def save(self) -> bool:
        if self.setup is None or not self.history.dirty:
            return False
        store.save_setup(self.setup, self.project.absolute(self.path))
        self.history.mark_clean()
        return True

    def current(self) -> BuildSetup:
        if self.setup is None:
            raise EnhancedBuildsError("Select or Create a new Build Setup")
        return self.setup

    def entry(self, index: int) -> BuildEntry:
        setup = self.current()
        if index < 0 or index >= len(setup.entries):
            raise IndexError(f"No build entry {index} (this setup has {len(setup.entries)})")
        return setup.entries[index]

    def _record(self, label: str) -> BuildSetup:
        setup = self.current()
        self.history.record(label)
        return setup

    # ---- setup-level edits

    def choose_root_directory(self, path) -> bool:
        if not path:
            return False
        self._record("Set Build Setup Root Directory").root_directory = str(pathlib.Path(path).expanduser().resolve())
        return True

    def set_abort_on_failure(self, value) -> None:
        self._record("Set Abort Batch On Failure").abort_batch_on_failure = parse_bool(value)

    def add_entry(self) -> BuildEntry:
        return self._record("Add Build Setup Entry").add_entry()

    def remove_entry(self, index: int) -> None:
        entry = self.entry(index)
        self._record("Removed Build Setup Entry").delete_entry(entry)

    # ---- entry edits

    def toggle_enabled(self, index: int, value = None) -> bool:
        entry = self.entry(index)
        enabled = (not entry.enabled) if value is None else parse_bool(value)
        self._record("Toggle Build Setup Entry")
        entry.enabled = enabled
        return enabled

    def toggle_expanded(self, index: int, section: str = "options", value = None) -> bool:
        if section not in SECTIONS:
            raise ValueError(f"Unknown section `{section}` (valid sections: {', '.join(SECTIONS)})")
        return self.set_field(index, SECTIONS[section], (not getattr(self.entry(index), SECTIONS[section])) if value is None else value)

    def coerce(self, entry: BuildEntry, field: str, value):
        if field in BOOL_FIELDS:
            return parse_bool(value)
        if field in STRING_FIELDS:
            return "" if value is None else str(value)
        if field in ENUM_FIELDS:
            return parse_enum(ENUM_FIELDS[field], value)
        if field == "vr_sdk_flags":
            if isinstance(value, int):
                return value
            text = str(value).strip()
            if text.isdigit():
                return int(text)
            return vr_sdks_to_mask(entry.target, [sdk.strip() for sdk in text.split(",") if sdk.strip()])
        if field == "custom_scenes":
            raise ValueError("Scenes are edited with the scene commands, not set directly")
        raise ValueError(f"Unknown field `{field}`")

    def set_field(self, index: int, field: str, value):
        entry = self.entry(index)
        coerced = self.coerce(entry, field, value)
        self._record(f"Set Build Setup Entry {field}")
        setattr(entry, field, coerced)
        return coerced

    # ---- scenes

    def add_scene(self, index: int, path: str = "") -> int:
        entry = self.entry(index)
        self._record("Add Build Setup Entry Custom scene")
        entry.custom_scenes.append(path)
        return len(entry.custom_scenes) - 1

    def remove_scene(self, index: int, scene_index: int) -> None:
        entry = self.entry(index)
        self._scene_index(entry, scene_index)
        self._record("Remove Build Setup Entry Custom scene")
        del entry.custom_scenes[scene_index]

    def set_scene(self, index: int, scene_index: int, path: str) -> None:
        entry = self.entry(index)
        self._scene_index(entry, scene_index)
        self._record("Set Build Setup Entry Custom scene")
        entry.custom_scenes[scene_index] = path

    def select_scene(self, index: int, scene_index: int, abspath) -> bool:
        """Point a scene slot at a file picked from disk. Files outside the project's Assets are ignored."""
        entry = self.entry(index)
        self._scene_index(entry, scene_index)
        relpath = self.project.relative(abspath)
        if relpath is None:
            return False
        self.set_scene(index, scene_index, relpath)
        return True

    def _scene_index(self, entry: BuildEntry, scene_index: int) -> None:
        if scene_index < 0 or scene_index >= len(entry.custom_scenes):
            raise IndexError(f"No scene {scene_index} in `{entry.build_name}` (it has {len(entry.custom_scenes)})")

    # ---- history

    def undo(self) -> Optional[str]:
        self.current()
        return self.history.undo()

    def redo(self) -> Optional[str]:
        self.current()
        return self.history.redo()

    # ---- building

    def is_ready(self) -> bool:
        return self.setup is not None and self.setup.is_ready()

    def build(self, builder) -> BatchReport:
        setup = self.current()
        if not setup.is_ready():
            raise NotReadyError(NOT_READY_HINT)
        return BuildProcess(self.project, builder).build(setup)

    # ---- drawing

    def render(self) -> List[str]:
        lines = ["Build Setup Editor", ""]
        if self.setup is None:
            lines += ["Select or Create a new Build Setup"]
            return lines

        setup = self.setup
        lines += [
            f"Current Build File: {self.path}",
            "-" * 40,
            "Loaded Build Setup",
            "",
            f"Root Directory: {setup.root_directory}",
            f"Abort batch on failure: {'on' if setup.abort_batch_on_failure else 'off'}",
            "",
            f"Builds ({len(setup.entries)})",
        ]

        if not setup.entries:
            lines.append("This Built List is Empty")

        for i, entry in enumerate(setup.entries):
            lines.append(f"{i:>3} [{'x' if entry.enabled else ' '}] {'v' if entry.gui_show_options else '>'} {entry.build_name}")
            if entry.gui_show_options:
                lines += ["        " + line for line in self.render_entry(entry)]

        lines += ["-" * 40]
        if setup.is_ready():
            lines.append("Ready to build")
        else:
            lines.append(NOT_READY_HINT)
        return lines

    def render_entry(self, entry: BuildEntry) -> List[str]:
        lines = [
            f"Build Name: {entry.build_name}",
            f"Target: {entry.target.value}",
            f"Debug Build: {'on' if entry.debug_build else 'off'}",
            f"Scripting Define Symbols: {entry.scripting_define_symbols}",
            f"Use Default Build Scenes: {'on' if entry.use_default_build_scenes else 'off'}",
        ]

        if not entry.use_default_build_scenes:
            lines.append(f"{'v' if entry.gui_show_custom_scenes else '>'} Custom Scenes ({len(entry.custom_scenes)})")
            if entry.gui_show_custom_scenes:
                lines += [f"    Scene {i}: {scene}" for i, scene in enumerate(entry.custom_scenes)]

        lines.append(f"{'v' if entry.gui_show_advanced_options else '>'} Advanced Options")
        if entry.gui_show_advanced_options:
            lines += [
                f"    Stripping Level: {entry.stripping_level.value}",
                f"    Strict Mode: {'on' if entry.strict_mode else 'off'}",
                f"    AssetBundle Manifest Path: {entry.asset_bundle_manifest_path}",
            ]
            if entry.target == BuildTarget.iOS:
                lines.append(f"    XCode - Symlink Library: {'on' if entry.ios_symlink_libraries else 'off'}")
            lines.append(f"    Scripting Backend: {entry.scripting_backend.value}")

        lines.append(f"VR Support: {'on' if entry.supports_vr else 'off'}")
        if entry.supports_vr:
            lines.append(f"{'v' if entry.gui_show_vr_options else '>'} VR Options")
            if entry.gui_show_vr_options:
                if available_vr_sdks(entry.target):
                    lines.append(f"    VR SDKs: {', '.join(vr_mask_to_sdks(entry.target, entry.vr_sdk_flags)) or 'Nothing'} (available: {', '.join(available_vr_sdks(entry.target))})")
                else:
                    lines.append("    No VR SDK available for the current build target.")
        return lines
