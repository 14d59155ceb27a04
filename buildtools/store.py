import json
import os
import pathlib

from typing import Dict
from typing import Optional
from typing import Tuple

from buildtools.errors import SetupLoadError
from buildtools.model import BuildSetup

PREFS_KEY = "ObjectPath"
SETUPS_REL_DIRECTORY = "Assets/BuildSetups"
SETUP_BASENAME = "BuildSetup"
SETUP_EXTENSION = ".json"

class Project:
    """A Unity project on disk. Paths handed around the tool are relative to `root`, starting with `Assets/`."""

    def __init__(self, root):
        self.root = pathlib.Path(root).resolve()
        self.data_path = self.root.joinpath("Assets")

    def absolute(self, relpath: str) -> pathlib.Path:
        return self.root.joinpath(relpath)

    def relative(self, abspath) -> Optional[str]:
        # Only files under Assets/ are addressable by the editor; anything else is refused
        try:
            rel = pathlib.Path(abspath).resolve().relative_to(self.data_path)
        except ValueError:
            return None
        return pathlib.PurePosixPath("Assets", *rel.parts).as_posix()

    def library_dir(self) -> pathlib.Path:
        return self.root.joinpath("Library", "EnhancedBuilds")

class Prefs:
    """String preferences persisted as a flat JSON object."""

    def __init__(self, path):
        self.path = pathlib.Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.is_file():
            return {}
        try:
            with open(self.path, "r", encoding = "utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError):
            print(f"PREFS: ignoring unreadable preferences file {self.path}")
            return {}
        return data if isinstance(data, dict) else {}

    def has_key(self, key: str) -> bool:
        return key in self._read()

    def get_string(self, key: str, default: str = "") -> str:
        return str(self._read().get(key, default))

    def set_string(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents = True, exist_ok = True)
        with open(self.path, "w", encoding = "utf-8") as f:
            json.dump(data, f, indent = 2)

def load_setup(path) -> BuildSetup:
    try:
        with open(path, "r", encoding = "utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SetupLoadError(f"{path} is not a valid build setup: {e}") from e

    if not isinstance(data, dict):
        raise SetupLoadError(f"{path} is not a valid build setup: expected an object, got {type(data).__name__}")

    try:
        return BuildSetup.from_dict(data)
    except (ValueError, TypeError, AttributeError) as e:
        raise SetupLoadError(f"{path} is not a valid build setup: {e}") from e

def save_setup(setup: BuildSetup, path) -> None:
    path = pathlib.Path(path)
    path.parent.mkdir(parents = True, exist_ok = True)

    # write-then-rename so a crash mid-write never leaves a half-written asset behind
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding = "utf-8") as f:
        json.dump(setup.to_dict(), f, indent = 2)
        f.write("\n")
    os.replace(tmp, path)

def unique_setup_path(project: Project, setups_dir: str = SETUPS_REL_DIRECTORY) -> str:
    # Same scheme as AssetDatabase.GenerateUniqueAssetPath: "Name", "Name 1", "Name 2", ...
    candidate = f"{setups_dir}/{SETUP_BASENAME}{SETUP_EXTENSION}"
    counter = 1
    while project.absolute(candidate).exists():
        candidate = f"{setups_dir}/{SETUP_BASENAME} {counter}{SETUP_EXTENSION}"
        counter += 1
    return candidate

def create_setup(project: Project, setups_dir: str = SETUPS_REL_DIRECTORY) -> Tuple[BuildSetup, str]:
    setup = BuildSetup()
    relpath = unique_setup_path(project, setups_dir)
    save_setup(setup, project.absolute(relpath))
    print(f"SETUP: created {relpath}")
    return setup, relpath
