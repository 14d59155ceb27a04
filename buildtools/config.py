import json
import os
import pathlib

from typing import Dict
from typing import Optional

from buildtools.store import Project
from buildtools.store import SETUPS_REL_DIRECTORY

DEFAULT_CONFIG = "config/enhancedbuilds.json"

class Settings:
    unity_path = None
    prefs_path = None
    setups_directory = SETUPS_REL_DIRECTORY
    container_image = None
    s3_bucket = None
    aws_access_key_id = None
    aws_secret_access_key = None

    KEYS = [
        "unity_path",
        "prefs_path",
        "setups_directory",
        "container_image",
        "s3_bucket",
        "aws_access_key_id",
        "aws_secret_access_key",
    ]

    # environment wins over the file so CI can inject secrets without touching the repo
    ENVIRONMENT = {
        "UNITY_PATH": "unity_path",
        "AWS_ACCESS_KEY_ID": "aws_access_key_id",
        "AWS_SECRET_ACCESS_KEY": "aws_secret_access_key",
    }

    def __init__(self, values: Optional[Dict] = None):
        for key, value in (values or {}).items():
            if key not in self.KEYS:
                raise Exception(f"Unknown setting `{key}` (valid settings: {', '.join(self.KEYS)})")
            setattr(self, key, value)

    def prefs_file(self, project: Project) -> pathlib.Path:
        if self.prefs_path:
            return pathlib.Path(self.prefs_path)
        return project.library_dir().joinpath("prefs.json")

def load_settings(project: Project, path: Optional[str] = None, environ = None) -> Settings:
    if environ is None:
        environ = os.environ

    values = {}
    if path is not None:
        configpath = pathlib.Path(path)
        if not configpath.is_file():
            raise Exception(f"Config file {configpath} not found")
    else:
        configpath = project.root.joinpath(DEFAULT_CONFIG)

    if configpath.is_file():
        with open(configpath, "r") as f:
            values = json.load(f)
        if not isinstance(values, dict):
            raise Exception(f"Config file {configpath} must contain a JSON object")

    for variable, key in Settings.ENVIRONMENT.items():
        if environ.get(variable):
            values[key] = environ[variable]

    return Settings(values)
