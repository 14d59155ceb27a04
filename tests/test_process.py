"""Tests for running a batch of builds."""

import datetime

import pytest

from buildtools import process
from buildtools.errors import EditorBusyError
from buildtools.errors import NotReadyError
from buildtools.model import BuildSetup
from buildtools.model import BuildTarget
from buildutil.simple_utc import simple_utc

from conftest import FakeBuilder


class RaisingBuilder(FakeBuilder):
    """Raises `error` from build() for the named entries instead of returning a result."""

    def __init__(self, error, raising):
        super().__init__()
        self.error = error
        self.raising = set(raising)

    def build(self, request):
        result = super().build(request)
        if request.name in self.raising:
            raise self.error
        return result


def _setup(root, *names, abort=False):
    setup = BuildSetup()
    setup.root_directory = str(root)
    setup.abort_batch_on_failure = abort
    for name in names:
        setup.add_entry().build_name = name
    return setup


def _run(project, setup, builder):
    return process.BuildProcess(project, builder, environ = {"BUILD-NUMBER": "7"}).build(setup, write_report = False)


class TestBatch:
    def test_disabled_entries_are_skipped(self, project, tmp_path):
        setup = _setup(tmp_path, "A", "B", abort=True)
        setup.entries[1].enabled = False
        builder = FakeBuilder(failing = ["A"])

        report = _run(project, setup, builder)

        assert builder.names() == ["A"]
        assert report.attempted() == 1
        assert not report.success()
        assert not report.aborted

    def test_abort_stops_at_first_failure(self, project, tmp_path):
        setup = _setup(tmp_path, "A", "B", "C", "D", abort=True)
        builder = FakeBuilder(failing = ["B"])

        report = _run(project, setup, builder)

        assert builder.names() == ["A", "B"]
        assert report.aborted
        assert [result.success for result in report.results] == [True, False]

    def test_without_abort_every_enabled_entry_runs(self, project, tmp_path):
        setup = _setup(tmp_path, "A", "B", "C", "D")
        builder = FakeBuilder(failing = ["A", "C"])

        report = _run(project, setup, builder)

        assert builder.names() == ["A", "B", "C", "D"]
        assert [result.name for result in report.failures()] == ["A", "C"]
        assert not report.aborted

    def test_failure_on_last_entry_is_not_an_abort(self, project, tmp_path):
        setup = _setup(tmp_path, "A", "B", abort=True)
        report = _run(project, setup, FakeBuilder(failing = ["B"]))
        assert report.attempted() == 2
        assert not report.aborted

    def test_builder_errors_are_failed_results(self, project, tmp_path):
        root = tmp_path / "out"
        setup = _setup(root, "A", "B")
        builder = RaisingBuilder(OSError("[Errno 2] No such file or directory: 'Unity'"), ["A"])

        report = process.BuildProcess(project, builder).build(setup)

        assert builder.names() == ["A", "B"]
        assert [result.success for result in report.results] == [False, True]
        assert "OSError" in report.results[0].message
        assert process.load_report(root).attempted() == 2

    def test_builder_errors_respect_abort(self, project, tmp_path):
        setup = _setup(tmp_path, "A", "B", abort=True)
        builder = RaisingBuilder(PermissionError("output is read-only"), ["A"])

        report = _run(project, setup, builder)

        assert builder.names() == ["A"]
        assert report.aborted

    def test_editor_problems_stop_the_batch(self, project, tmp_path):
        setup = _setup(tmp_path, "A", "B")
        builder = RaisingBuilder(EditorBusyError("Unity is already running"), ["A"])

        with pytest.raises(EditorBusyError):
            _run(project, setup, builder)
        assert builder.names() == ["A"]

    def test_not_ready_runs_nothing(self, project):
        builder = FakeBuilder()
        with pytest.raises(NotReadyError):
            _run(project, _setup("", "A"), builder)
        assert builder.requests == []

    def test_results_are_stamped(self, project, tmp_path):
        report = _run(project, _setup(tmp_path, "A"), FakeBuilder())
        result = report.results[0]
        assert result.started is not None
        assert result.finished >= result.started
        assert result.location == str(tmp_path / "A" / "Skyward.exe")
        assert report.batch_id == "jenkins-7"

    def test_report_is_written_to_the_root(self, project, tmp_path):
        root = tmp_path / "out"
        setup = _setup(root, "A", "B")
        process.BuildProcess(project, FakeBuilder(failing = ["B"])).build(setup)

        loaded = process.load_report(root)
        assert [result.name for result in loaded.results] == ["A", "B"]
        assert loaded.results[1].message == "error CS0246: B is broken"
        assert loaded.results[0].started.tzinfo is not None


class TestRequests:
    def test_default_scenes_come_from_build_settings(self, project, tmp_path):
        setup = _setup(tmp_path, "Win")
        request = process.BuildProcess(project, FakeBuilder()).requests(setup)[0]
        assert request.scenes == ["Assets/Scenes/Boot.unity", "Assets/Scenes/Main.unity"]

    def test_custom_scenes_drop_blanks(self, project, tmp_path):
        setup = _setup(tmp_path, "Win")
        entry = setup.entries[0]
        entry.use_default_build_scenes = False
        entry.custom_scenes = ["Assets/Scenes/Main.unity", "", "  "]
        request = process.BuildProcess(project, FakeBuilder()).request_for(setup, entry)
        assert request.scenes == ["Assets/Scenes/Main.unity"]

    def test_request_carries_entry_settings(self, project, tmp_path):
        setup = _setup(tmp_path, "Droid")
        entry = setup.entries[0]
        entry.target = BuildTarget.Android
        entry.debug_build = True
        entry.scripting_define_symbols = "STEAM;DEMO"
        entry.supports_vr = True
        entry.vr_sdk_flags = 0b10

        data = process.BuildProcess(project, FakeBuilder()).request_for(setup, entry).to_dict()

        assert data["buildName"] == "Droid"
        assert data["target"] == "Android"
        assert data["targetGroup"] == "Android"
        assert data["options"] == 513
        assert data["scriptingDefineSymbols"] == "STEAM;DEMO"
        assert data["vrSupported"] is True
        assert data["vrSdks"] == ["Oculus"]
        assert data["locationPathName"].endswith("Skyward.apk")

    def test_only_enabled_entries_become_requests(self, project, tmp_path):
        setup = _setup(tmp_path, "A", "B", "C")
        setup.entries[1].enabled = False
        requests = process.BuildProcess(project, FakeBuilder()).requests(setup)
        assert [request.name for request in requests] == ["A", "C"]


class TestOutputLocation:
    def test_uses_product_name_and_extension(self, tmp_path):
        setup = _setup(tmp_path, "Mac")
        setup.entries[0].target = BuildTarget.StandaloneOSX
        assert process.output_location(setup, setup.entries[0], "Skyward") == str(tmp_path / "Mac" / "Skyward.app")

    def test_falls_back_to_build_name_without_extension(self, tmp_path):
        setup = _setup(tmp_path, "Web")
        setup.entries[0].target = BuildTarget.WebGL
        assert process.output_location(setup, setup.entries[0], None) == str(tmp_path / "Web" / "Web")


class TestBatchId:
    def test_ci_build_number(self):
        assert process.batch_id({"BUILD-NUMBER": "42"}) == "jenkins-42"

    def test_local_builds_are_labelled_custom(self):
        assert process.batch_id({}).startswith("custom.")


class TestReport:
    def test_duration(self):
        started = datetime.datetime(2024, 5, 1, 12, 0, tzinfo = simple_utc())
        result = process.BuildResult("A", True, started = started, finished = started + datetime.timedelta(minutes = 3))
        assert result.duration() == datetime.timedelta(minutes = 3)
        assert process.BuildResult("A", True).duration() is None

    def test_missing_report(self, tmp_path):
        with pytest.raises(Exception, match="No build report"):
            process.load_report(tmp_path)
