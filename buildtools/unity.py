import json
import os
import pathlib
import platform
import re
import shutil
import subprocess

import psutil

from typing import List
from typing import Optional

from buildtools import projectsettings
from buildtools.errors import EditorBusyError
from buildtools.errors import EditorNotFoundError
from buildtools.process import BuildRequest
from buildtools.process import BuildResult
from buildtools.store import Project

EXECUTE_METHOD = "EnhancedBuildsBatch.Run"
RECEIVER_SOURCE = pathlib.Path(__file__).parent.joinpath("receiver", "EnhancedBuildsBatch.cs")
RECEIVER_REL_DIRECTORY = "Assets/Editor/EnhancedBuilds"

# the editor log gets long; a failed build is usually explained by its last few errors
MAX_DIAGNOSTIC_LINES = 20
ERROR_PATTERNS = [
    re.compile(r"error CS\d+"),
    re.compile(r"^Error building Player"),
    re.compile(r"^Build Finished, Result: Failure"),
    re.compile(r"^BuildFailedException"),
    re.compile(r"^\[EnhancedBuilds\] ERROR"),
    re.compile(r"^Aborting batchmode due to failure"),
]

def hub_editor_paths(version: str) -> List[pathlib.Path]:
    system = platform.system()
    if system == "Windows":
        return [pathlib.Path(f"C:/Program Files/Unity/Hub/Editor/{version}/Editor/Unity.exe")]
    elif system == "Darwin":
        return [pathlib.Path(f"/Applications/Unity/Hub/Editor/{version}/Unity.app/Contents/MacOS/Unity")]
    else:
        return [
            pathlib.Path.home().joinpath(f"Unity/Hub/Editor/{version}/Editor/Unity"),
            pathlib.Path(f"/opt/unity/editors/{version}/Editor/Unity"),
        ]

def find_editor(project: Project, unity_path: Optional[str] = None) -> str:
    if unity_path:
        if not os.path.isfile(unity_path) and shutil.which(unity_path) is None:
            raise EditorNotFoundError(f"Unity editor `{unity_path}` doesn't exist")
        return unity_path

    version = projectsettings.editor_version(project)
    if version is None:
        raise EditorNotFoundError("No Unity editor configured and ProjectSettings/ProjectVersion.txt is missing; set `unity_path` or UNITY_PATH")

    for candidate in hub_editor_paths(version):
        if candidate.is_file():
            return str(candidate)

    raise EditorNotFoundError(f"Unity {version} isn't installed in any of the usual Hub locations; set `unity_path` or UNITY_PATH")

def editor_processes(project: Project) -> List[psutil.Process]:
    """Unity editor processes that have `project` open."""
    target_names = ["unity.exe", "unity"]
    projectroot = str(project.root).replace("\\", "/").lower()

    found = []
    for proc in psutil.process_iter(["pid", "name", "cmdline"]):
        try:
            name = (proc.info["name"] or "").lower()
            if name not in target_names:
                continue
            cmdline = " ".join(proc.info.get("cmdline") or []).replace("\\", "/").lower()
            if projectroot in cmdline:
                found.append(proc)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return found

def terminate_tree(pid: int) -> None:
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return

    procs = parent.children(recursive = True) + [parent]
    for proc in procs:
        try:
            proc.terminate()
        except psutil.NoSuchProcess:
            pass
    _, alive = psutil.wait_procs(procs, timeout = 10)
    for proc in alive:
        proc.kill()

def diagnostics(logpath) -> Optional[str]:
    logpath = pathlib.Path(logpath)
    if not logpath.is_file():
        return None

    with open(logpath, "r", encoding = "utf-8", errors = "replace") as f:
        lines = [line.rstrip() for line in f if any(pattern.search(line) for pattern in ERROR_PATTERNS)]
    if not lines:
        return None
    return "\n".join(lines[-MAX_DIAGNOSTIC_LINES:])

def install_receiver(project: Project) -> pathlib.Path:
    destination = project.absolute(RECEIVER_REL_DIRECTORY).joinpath(RECEIVER_SOURCE.name)
    destination.parent.mkdir(parents = True, exist_ok = True)
    shutil.copyfile(RECEIVER_SOURCE, destination)
    print(f"UNITY: installed build receiver to {destination}")
    return destination

class UnityBuilder:
    """Builds players by running the Unity editor in batch mode against the project."""

    def __init__(self, project: Project, unity_path: Optional[str] = None):
        self.project = project
        self.unity_path = unity_path
        self.checked = False

    def editor(self) -> str:
        if self.unity_path is None:
            self.unity_path = find_editor(self.project)
        return self.unity_path

    def check_idle(self) -> None:
        # batchmode refuses to open a project that another editor has locked, and says so badly
        busy = editor_processes(self.project)
        if busy:
            raise EditorBusyError(f"Unity is already running with {self.project.root} open (pid {', '.join(str(proc.pid) for proc in busy)}); close it and try again")

    def paths(self, request: BuildRequest):
        workdir = self.project.library_dir()
        safename = re.sub(r"[^A-Za-z0-9_.-]+", "_", request.name)
        return workdir.joinpath(f"request_{safename}.json"), workdir.joinpath(f"build_{safename}.log")

    def write_request(self, request: BuildRequest, requestpath: pathlib.Path) -> None:
        requestpath.parent.mkdir(parents = True, exist_ok = True)
        with open(requestpath, "w") as f:
            json.dump(request.to_dict(), f, indent = 2)

    def command(self, request: BuildRequest, requestpath, logpath) -> List[str]:
        return [
            self.editor(),
            "-batchmode",
            "-quit",
            "-nographics",
            "-projectPath", str(self.project.root),
            "-buildTarget", request.target.value,
            "-executeMethod", EXECUTE_METHOD,
            "-enhancedBuildsRequest", str(requestpath),
            "-logFile", str(logpath),
        ]

    def run(self, command: List[str]) -> int:
        proc = subprocess.Popen(command, cwd = str(self.project.root))
        try:
            return proc.wait()
        except KeyboardInterrupt:
            print(f"UNITY: interrupted, stopping editor (pid {proc.pid})")
            terminate_tree(proc.pid)
            raise

    def build(self, request: BuildRequest) -> BuildResult:
        if not self.checked:
            self.check_idle()
            self.checked = True

        requestpath, logpath = self.paths(request)
        self.write_request(request, requestpath)
        pathlib.Path(request.location).parent.mkdir(parents = True, exist_ok = True)

        returncode = self.run(self.command(request, requestpath, logpath))
        if returncode == 0:
            return BuildResult(request.name, True, location = request.location)

        message = diagnostics(logpath) or f"Unity exited with code {returncode}; see {logpath}"
        return BuildResult(request.name, False, message = message, location = request.location)
