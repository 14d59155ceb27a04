import copy
import enum

from typing import Dict
from typing import List
from typing import Optional

class BuildTarget(enum.Enum):
    StandaloneWindows = "StandaloneWindows"
    StandaloneWindows64 = "StandaloneWindows64"
    StandaloneOSX = "StandaloneOSX"
    StandaloneLinux64 = "StandaloneLinux64"
    iOS = "iOS"
    Android = "Android"
    WebGL = "WebGL"
    tvOS = "tvOS"
    PS4 = "PS4"
    XboxOne = "XboxOne"
    Switch = "Switch"

class StrippingLevel(enum.Enum):
    Disabled = "Disabled"
    Low = "Low"
    Medium = "Medium"
    High = "High"
    Minimal = "Minimal"

class ScriptingBackend(enum.Enum):
    Mono2x = "Mono2x"
    IL2CPP = "IL2CPP"
    WinRTDotNET = "WinRTDotNET"

class BuildOptions(enum.IntFlag):
    # values match UnityEditor.BuildOptions so the receiver can cast straight across
    NONE = 0
    Development = 1
    AllowDebugging = 512
    SymlinkLibraries = 1024
    StrictMode = 2097152

# BuildPipeline.GetBuildTargetGroup
TARGET_GROUPS: Dict[BuildTarget, str] = {
    BuildTarget.StandaloneWindows: "Standalone",
    BuildTarget.StandaloneWindows64: "Standalone",
    BuildTarget.StandaloneOSX: "Standalone",
    BuildTarget.StandaloneLinux64: "Standalone",
    BuildTarget.iOS: "iOS",
    BuildTarget.Android: "Android",
    BuildTarget.WebGL: "WebGL",
    BuildTarget.tvOS: "tvOS",
    BuildTarget.PS4: "PS4",
    BuildTarget.XboxOne: "XboxOne",
    BuildTarget.Switch: "Switch",
}

# PlayerSettings.GetAvailableVirtualRealitySDKs, per target group; order defines the mask bits
VR_SDKS: Dict[str, List[str]] = {
    "Standalone": ["None", "Oculus", "OpenVR", "MockHMD"],
    "Android": ["None", "Oculus", "daydream", "cardboard", "MockHMD"],
    "iOS": ["None", "cardboard"],
    "PS4": ["PlayStationVR"],
}

def target_group(target: BuildTarget) -> str:
    return TARGET_GROUPS[target]

def available_vr_sdks(target: BuildTarget) -> List[str]:
    return list(VR_SDKS.get(target_group(target), []))

def vr_mask_to_sdks(target: BuildTarget, mask: int) -> List[str]:
    return [sdk for bit, sdk in enumerate(available_vr_sdks(target)) if mask & (1 << bit)]

def vr_sdks_to_mask(target: BuildTarget, sdks: List[str]) -> int:
    """Inverse of vr_mask_to_sdks; names are matched case-insensitively and unknown names raise."""
    available = [sdk.lower() for sdk in available_vr_sdks(target)]
    mask = 0
    for sdk in sdks:
        if sdk.lower() not in available:
            raise ValueError(f"VR SDK `{sdk}` is not available for {target.value} (available: {', '.join(available_vr_sdks(target)) or 'none'})")
        mask |= 1 << available.index(sdk.lower())
    return mask

def checked(key: str, value, default):
    """Returns `value` if it has the same JSON type as `default`, otherwise raises ValueError."""
    # bool is an int subclass; keep the two apart so `"enabled": 1` and `"vr_sdk_flags": true` both fail
    if isinstance(default, bool) or isinstance(value, bool):
        ok = isinstance(value, bool) and isinstance(default, bool)
    else:
        ok = isinstance(value, type(default))
    if not ok:
        raise ValueError(f"`{key}` should be {type(default).__name__}, got {type(value).__name__} ({value!r})")
    return value

class BuildEntry:
    build_name = "New Build"
    target = BuildTarget.StandaloneWindows64
    debug_build = False
    scripting_define_symbols = ""
    use_default_build_scenes = True
    custom_scenes = None
    stripping_level = StrippingLevel.Disabled
    scripting_backend = ScriptingBackend.Mono2x
    strict_mode = False
    asset_bundle_manifest_path = ""
    ios_symlink_libraries = False
    supports_vr = False
    vr_sdk_flags = 0
    enabled = True

    # presentation only; persisted so the panel reopens the way it was left
    gui_show_options = True
    gui_show_custom_scenes = False
    gui_show_advanced_options = False
    gui_show_vr_options = False

    def __init__(self, build_name: Optional[str] = None, target: Optional[BuildTarget] = None):
        self.custom_scenes = []
        if build_name is not None:
            self.build_name = build_name
        if target is not None:
            self.target = target

    def options(self) -> BuildOptions:
        options = BuildOptions.NONE
        if self.debug_build:
            options |= BuildOptions.Development | BuildOptions.AllowDebugging
        if self.strict_mode:
            options |= BuildOptions.StrictMode
        if self.target == BuildTarget.iOS and self.ios_symlink_libraries:
            options |= BuildOptions.SymlinkLibraries
        return options

    def define_symbols(self) -> List[str]:
        return [symbol.strip() for symbol in self.scripting_define_symbols.split(";") if symbol.strip()]

    def vr_sdks(self) -> List[str]:
        if not self.supports_vr:
            return []
        return vr_mask_to_sdks(self.target, self.vr_sdk_flags)

    def to_dict(self) -> Dict:
        return {
            "build_name": self.build_name,
            "target": self.target.value,
            "debug_build": self.debug_build,
            "scripting_define_symbols": self.scripting_define_symbols,
            "use_default_build_scenes": self.use_default_build_scenes,
            "custom_scenes": list(self.custom_scenes),
            "stripping_level": self.stripping_level.value,
            "scripting_backend": self.scripting_backend.value,
            "strict_mode": self.strict_mode,
            "asset_bundle_manifest_path": self.asset_bundle_manifest_path,
            "ios_symlink_libraries": self.ios_symlink_libraries,
            "supports_vr": self.supports_vr,
            "vr_sdk_flags": self.vr_sdk_flags,
            "enabled": self.enabled,
            "gui_show_options": self.gui_show_options,
            "gui_show_custom_scenes": self.gui_show_custom_scenes,
            "gui_show_advanced_options": self.gui_show_advanced_options,
            "gui_show_vr_options": self.gui_show_vr_options,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'BuildEntry':
        entry = cls()
        for key, value in data.items():
            if key == "target":
                entry.target = BuildTarget(value)
            elif key == "stripping_level":
                entry.stripping_level = StrippingLevel(value)
            elif key == "scripting_backend":
                entry.scripting_backend = ScriptingBackend(value)
            elif key == "custom_scenes":
                entry.custom_scenes = [checked("custom_scenes", scene, "") for scene in checked(key, value, [])]
            elif key in ENTRY_FIELDS:
                setattr(entry, key, checked(key, value, getattr(cls, key)))
            # anything else is from a newer or older version of the tool; drop it
        return entry

class BuildSetup:
    root_directory = ""
    abort_batch_on_failure = False
    entries = None

    def __init__(self):
        self.entries = []

    def is_ready(self) -> bool:
        return self.root_directory != "" and any(entry.enabled for entry in self.entries)

    def enabled_entries(self) -> List[BuildEntry]:
        return [entry for entry in self.entries if entry.enabled]

    def add_entry(self) -> BuildEntry:
        entry = BuildEntry()
        self.entries.append(entry)
        return entry

    def delete_entry(self, entry: BuildEntry) -> None:
        # identity, not equality: two default entries compare the same field-for-field
        for i, candidate in enumerate(self.entries):
            if candidate is entry:
                del self.entries[i]
                return
        raise ValueError(f"entry `{entry.build_name}` is not part of this setup")

    def to_dict(self) -> Dict:
        return {
            "root_directory": self.root_directory,
            "abort_batch_on_failure": self.abort_batch_on_failure,
            "entries": [entry.to_dict() for entry in self.entries],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'BuildSetup':
        setup = cls()
        setup.root_directory = checked("root_directory", data.get("root_directory", cls.root_directory), cls.root_directory)
        setup.abort_batch_on_failure = checked("abort_batch_on_failure", data.get("abort_batch_on_failure", cls.abort_batch_on_failure), cls.abort_batch_on_failure)
        setup.entries = [BuildEntry.from_dict(checked("entries", entry, {})) for entry in checked("entries", data.get("entries", []), [])]
        return setup

    def restore(self, data: Dict) -> None:
        restored = BuildSetup.from_dict(copy.deepcopy(data))
        self.root_directory = restored.root_directory
        self.abort_batch_on_failure = restored.abort_batch_on_failure
        self.entries = restored.entries

ENTRY_FIELDS = list(BuildEntry().to_dict().keys())
