import datetime
import getpass
import json
import os
import pathlib
import platform

import dateutil.parser

from typing import Dict
from typing import List
from typing import Optional

from buildtools import projectsettings
from buildtools.errors import EnhancedBuildsError
from buildtools.errors import NotReadyError
from buildtools.model import BuildEntry
from buildtools.model import BuildSetup
from buildtools.model import BuildTarget
from buildtools.model import target_group
from buildtools.store import Project
from buildutil.prof import Context
from buildutil.simple_utc import utcnow

REPORT_NAME = "enhancedbuilds_report.json"

EXTENSIONS = {
    BuildTarget.StandaloneWindows: ".exe",
    BuildTarget.StandaloneWindows64: ".exe",
    BuildTarget.StandaloneOSX: ".app",
    BuildTarget.StandaloneLinux64: ".x86_64",
    BuildTarget.Android: ".apk",
    # iOS, WebGL, tvOS and the consoles build into a folder
}

class BuildRequest:
    """Everything the host build API needs for one player build."""

    def __init__(self, name: str, scenes: List[str], location: str, target: BuildTarget, options: int,
            define_symbols: List[str], scripting_backend: str, stripping_level: str,
            vr_supported: bool = False, vr_sdks: Optional[List[str]] = None, asset_bundle_manifest_path: str = ""):
        self.name = name
        self.scenes = scenes
        self.location = location
        self.target = target
        self.options = options
        self.define_symbols = define_symbols
        self.scripting_backend = scripting_backend
        self.stripping_level = stripping_level
        self.vr_supported = vr_supported
        self.vr_sdks = vr_sdks or []
        self.asset_bundle_manifest_path = asset_bundle_manifest_path

    def to_dict(self) -> Dict:
        # key names are what EnhancedBuildsBatch.cs deserializes with JsonUtility
        return {
            "buildName": self.name,
            "scenes": list(self.scenes),
            "locationPathName": self.location,
            "target": self.target.value,
            "targetGroup": target_group(self.target),
            "options": int(self.options),
            "scriptingDefineSymbols": ";".join(self.define_symbols),
            "scriptingBackend": self.scripting_backend,
            "strippingLevel": self.stripping_level,
            "vrSupported": self.vr_supported,
            "vrSdks": list(self.vr_sdks),
            "assetBundleManifestPath": self.asset_bundle_manifest_path,
        }

class BuildResult:
    def __init__(self, name: str, success: bool, message: Optional[str] = None, location: Optional[str] = None,
            started: Optional[datetime.datetime] = None, finished: Optional[datetime.datetime] = None):
        self.name = name
        self.success = success
        self.message = message
        self.location = location
        self.started = started
        self.finished = finished

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "success": self.success,
            "message": self.message,
            "location": self.location,
            "started": self.started.isoformat() if self.started else None,
            "finished": self.finished.isoformat() if self.finished else None,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'BuildResult':
        return cls(
            name = data["name"],
            success = data["success"],
            message = data.get("message"),
            location = data.get("location"),
            started = dateutil.parser.parse(data["started"]) if data.get("started") else None,
            finished = dateutil.parser.parse(data["finished"]) if data.get("finished") else None)

    def duration(self) -> Optional[datetime.timedelta]:
        if self.started is None or self.finished is None:
            return None
        return self.finished - self.started

class BatchReport:
    def __init__(self, batch_id: str, started: Optional[datetime.datetime] = None):
        self.batch_id = batch_id
        self.started = started
        self.finished = None
        self.aborted = False
        self.results: List[BuildResult] = []

    def attempted(self) -> int:
        return len(self.results)

    def failures(self) -> List[BuildResult]:
        return [result for result in self.results if not result.success]

    def success(self) -> bool:
        return len(self.failures()) == 0

    def to_dict(self) -> Dict:
        return {
            "batch_id": self.batch_id,
            "started": self.started.isoformat() if self.started else None,
            "finished": self.finished.isoformat() if self.finished else None,
            "aborted": self.aborted,
            "results": [result.to_dict() for result in self.results],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'BatchReport':
        report = cls(data["batch_id"], dateutil.parser.parse(data["started"]) if data.get("started") else None)
        report.finished = dateutil.parser.parse(data["finished"]) if data.get("finished") else None
        report.aborted = data.get("aborted", False)
        report.results = [BuildResult.from_dict(result) for result in data.get("results", [])]
        return report

    def write(self, directory) -> pathlib.Path:
        path = pathlib.Path(directory).joinpath(REPORT_NAME)
        path.parent.mkdir(parents = True, exist_ok = True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent = 2)
        return path

def load_report(directory) -> BatchReport:
    path = pathlib.Path(directory).joinpath(REPORT_NAME)
    if not path.is_file():
        raise Exception(f"No build report at {path}; run a build first")
    with open(path, "r") as f:
        return BatchReport.from_dict(json.load(f))

def batch_id(environ = None) -> str:
    if environ is None:
        environ = os.environ

    if "BUILD-NUMBER" in environ:
        return f"jenkins-{environ['BUILD-NUMBER']}"
    return f"custom.{getpass.getuser()}.{platform.node()}.{os.getpid()}"

def output_location(setup: BuildSetup, entry: BuildEntry, product: Optional[str]) -> str:
    filename = (product or entry.build_name) + EXTENSIONS.get(entry.target, "")
    return str(pathlib.Path(setup.root_directory).joinpath(entry.build_name, filename))

class BuildProcess:
    """Runs one build per enabled entry, in list order, through `builder`.

    `builder` is anything with a `build(BuildRequest) -> BuildResult` method. Failed builds are results,
    not exceptions; with abort_batch_on_failure set the batch stops at the first one.
    """

    def __init__(self, project: Project, builder, environ = None):
        self.project = project
        self.builder = builder
        self.environ = environ

    def request_for(self, setup: BuildSetup, entry: BuildEntry) -> BuildRequest:
        if entry.use_default_build_scenes:
            scenes = projectsettings.default_scenes(self.project)
        else:
            scenes = [scene for scene in entry.custom_scenes if scene.strip()]

        return BuildRequest(
            name = entry.build_name,
            scenes = scenes,
            location = output_location(setup, entry, projectsettings.product_name(self.project)),
            target = entry.target,
            options = entry.options(),
            define_symbols = entry.define_symbols(),
            scripting_backend = entry.scripting_backend.value,
            stripping_level = entry.stripping_level.value,
            vr_supported = entry.supports_vr,
            vr_sdks = entry.vr_sdks(),
            asset_bundle_manifest_path = entry.asset_bundle_manifest_path)

    def requests(self, setup: BuildSetup) -> List[BuildRequest]:
        return [self.request_for(setup, entry) for entry in setup.enabled_entries()]

    def build(self, setup: BuildSetup, write_report: bool = True) -> BatchReport:
        if not setup.is_ready():
            raise NotReadyError("Define a Root directory and at least one active build entry")

        report = BatchReport(batch_id(self.environ), utcnow())
        enabled = setup.enabled_entries()
        print(f"BUILD: batch {report.batch_id}, {len(enabled)} of {len(setup.entries)} entries enabled")

        with Context(f"batch {report.batch_id}"):
            for index, entry in enumerate(enabled):
                request = self.request_for(setup, entry)
                print(f"BUILD: [{index + 1}/{len(enabled)}] {request.name} ({request.target.value}) -> {request.location}")

                started = utcnow()
                with Context(request.name):
                    try:
                        result = self.builder.build(request)
                    except EnhancedBuildsError:
                        # editor missing or busy: every remaining entry would fail the same way
                        raise
                    except Exception as e:
                        result = BuildResult(request.name, False, message = f"{type(e).__name__}: {e}")
                result.started = result.started or started
                result.finished = result.finished or utcnow()
                result.location = result.location or request.location
                report.results.append(result)

                if result.success:
                    print(f"BUILD: {request.name} succeeded")
                    continue

                print(f"BUILD: {request.name} FAILED")
                if result.message:
                    print(result.message)

                if setup.abort_batch_on_failure:
                    remaining = len(enabled) - index - 1
                    if remaining > 0:
                        print(f"BUILD: aborting batch, skipping {remaining} remaining entries")
                    report.aborted = remaining > 0
                    break

        report.finished = utcnow()

        failures = report.failures()
        if failures:
            print(f"BUILD: {len(failures)} of {report.attempted()} builds failed: {', '.join(result.name for result in failures)}")
        else:
            print(f"BUILD: all {report.attempted()} builds succeeded")

        if write_report:
            path = report.write(setup.root_directory)
            print(f"BUILD: report written to {path}")

        return report
