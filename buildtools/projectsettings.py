# Readers for the handful of values we need out of ProjectSettings/*.asset.
# Those files are Unity-flavoured YAML with custom tags; a line scan is more robust than a YAML parser here.

import re

from typing import List
from typing import Optional

from buildtools.store import Project

def _read(project: Project, name: str) -> Optional[str]:
    path = project.root.joinpath("ProjectSettings", name)
    if not path.is_file():
        return None
    with open(path, "r", encoding = "utf-8", errors = "replace") as f:
        return f.read()

def default_scenes(project: Project) -> List[str]:
    """Enabled scenes from EditorBuildSettings, in build order."""
    text = _read(project, "EditorBuildSettings.asset")
    if text is None:
        return []

    scenes = []
    enabled = None
    for line in text.splitlines():
        match = re.match(r"\s*-?\s*enabled:\s*(\d+)", line)
        if match:
            enabled = match.group(1) != "0"
            continue

        match = re.match(r"\s*path:\s*(.+?)\s*$", line)
        if match and enabled is not None:
            if enabled:
                scenes.append(match.group(1))
            enabled = None
    return scenes

def product_name(project: Project) -> Optional[str]:
    text = _read(project, "ProjectSettings.asset")
    if text is None:
        return None

    match = re.search(r"^\s*productName:\s*(.+?)\s*$", text, re.MULTILINE)
    if match is None:
        return None

    # Unity quotes names with YAML-significant characters: productName: 'Skyward: Reforged'
    name = match.group(1)
    if len(name) >= 2 and name[0] == name[-1] and name[0] in "'\"":
        name = name[1:-1]
        if match.group(1)[0] == "'":
            name = name.replace("''", "'")
    return name or None

def editor_version(project: Project) -> Optional[str]:
    text = _read(project, "ProjectVersion.txt")
    if text is None:
        return None

    match = re.search(r"^m_EditorVersion:\s*(\S+)", text, re.MULTILINE)
    if match is None:
        return None
    return match.group(1)
