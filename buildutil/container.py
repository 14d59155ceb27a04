import math
import multiprocessing
import pathlib
import subprocess

import docker
import psutil

from typing import List
from typing import Optional

from buildtools.process import BuildRequest
from buildtools.store import Project
from buildtools.unity import EXECUTE_METHOD
from buildtools.unity import UnityBuilder

PROJECT_MOUNT = "/project"
OUTPUT_MOUNT = "/output"
CONTAINER_EDITOR = "unity-editor" # the wrapper script shipped in the unityci/editor images

def resources(memory_limit: Optional[int] = None):
    cpus = multiprocessing.cpu_count()

    # use 75% of the computer's memory at most
    memory = round(psutil.virtual_memory().total / (1 << 30) / 4 * 3)

    # but if we have something specified, cut it down
    if memory_limit:
        memory = min(memory, int(memory_limit))

    print(f"Using {memory}GB of RAM")

    # chop off 8gb, then assume 2gb per CPU
    # il2cpp is the hungry one here; mono builds get away with a lot less
    max_cpus = max(1, math.floor((memory - 8) / 2))

    if cpus > max_cpus:
        print(f"Reducing CPU count to deal with limited memory; maxing out at {max_cpus} CPUs")
        cpus = max_cpus

    return cpus, memory

def ensure_image(image: str) -> None:
    dockerenv = docker.from_env()
    if dockerenv.info()["OSType"].lower() != "linux":
        raise Exception("Docker isn't set to Linux containers; the Unity editor images are Linux-only. Switch it over and try again.")

    try:
        dockerenv.images.get(image)
        print(f"CONTAINER: found image {image}")
    except docker.errors.ImageNotFound:
        print(f"CONTAINER: pulling image {image} (this can take a while)")
        dockerenv.images.pull(image)

class ContainerBuilder(UnityBuilder):
    """UnityBuilder that runs the editor inside a docker image instead of on the host.

    The project is mounted at /project and the setup's root directory at /output; every path that
    ends up in the request or on the command line is rewritten to its in-container location.
    """

    def __init__(self, project: Project, image: str, output_root, memory_limit: Optional[int] = None, unity_path: str = CONTAINER_EDITOR):
        super().__init__(project, unity_path)
        self.image = image
        self.output_root = pathlib.Path(output_root).resolve()
        self.memory_limit = memory_limit
        self.prepared = False

    def check_idle(self) -> None:
        # the container gets its own copy of the editor, but a host editor still holds the project lock
        super().check_idle()
        if not self.prepared:
            ensure_image(self.image)
            self.prepared = True

    def container_path(self, path) -> str:
        path = pathlib.Path(path).resolve()
        for hostroot, mount in [(self.output_root, OUTPUT_MOUNT), (self.project.root, PROJECT_MOUNT)]:
            try:
                rel = path.relative_to(hostroot)
            except ValueError:
                continue
            return str(pathlib.PurePosixPath(mount, *rel.parts))
        raise Exception(f"{path} is outside both the project and the output directory, so the container can't see it")

    def write_request(self, request: BuildRequest, requestpath: pathlib.Path) -> None:
        hostlocation = request.location
        request.location = self.container_path(hostlocation)
        try:
            super().write_request(request, requestpath)
        finally:
            request.location = hostlocation

    def command(self, request: BuildRequest, requestpath, logpath) -> List[str]:
        cpus, memory = resources(self.memory_limit)

        command = [
            "docker", "run",
            "--rm",
            "-v", f"{self.project.root}:{PROJECT_MOUNT}",
            "-v", f"{self.output_root}:{OUTPUT_MOUNT}",
            f"--cpus={cpus}",
            f"--memory={memory}g",
            self.image,
        ]

        command += [
            self.editor(),
            "-batchmode",
            "-quit",
            "-nographics",
            "-projectPath", PROJECT_MOUNT,
            "-buildTarget", request.target.value,
            "-executeMethod", EXECUTE_METHOD,
            "-enhancedBuildsRequest", self.container_path(requestpath),
            "-logFile", self.container_path(logpath),
        ]
        return command

    def run(self, command: List[str]) -> int:
        # docker run proxies the interrupt through to the editor in the container
        return subprocess.call(command, cwd = str(self.project.root))
