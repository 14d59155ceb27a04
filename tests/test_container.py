"""Tests for building inside a docker container."""

import json
import types

import pytest

from buildutil import container
from buildtools.model import BuildTarget
from buildtools.process import BuildRequest


def _fake_machine(monkeypatch, gigabytes, cpus):
    monkeypatch.setattr(container.psutil, "virtual_memory", lambda: types.SimpleNamespace(total = gigabytes << 30))
    monkeypatch.setattr(container.multiprocessing, "cpu_count", lambda: cpus)


class TestResources:
    def test_uses_three_quarters_of_memory(self, monkeypatch):
        _fake_machine(monkeypatch, 64, 8)
        assert container.resources() == (8, 48)

    def test_memory_limit_caps_memory_and_cpus(self, monkeypatch):
        _fake_machine(monkeypatch, 64, 16)
        assert container.resources(16) == (4, 16)

    def test_small_machines_still_get_one_cpu(self, monkeypatch):
        _fake_machine(monkeypatch, 8, 4)
        assert container.resources() == (1, 6)


@pytest.fixture
def builder(project, tmp_path, monkeypatch):
    _fake_machine(monkeypatch, 32, 4)
    return container.ContainerBuilder(project, "unityci/editor:2021.3.16f1-windows-mono-1", tmp_path / "out")


def _request(tmp_path):
    return BuildRequest(
        name = "Win",
        scenes = ["Assets/Scenes/Main.unity"],
        location = str(tmp_path / "out" / "Win" / "Skyward.exe"),
        target = BuildTarget.StandaloneWindows64,
        options = 0,
        define_symbols = [],
        scripting_backend = "Mono2x",
        stripping_level = "Disabled")


class TestPaths:
    def test_output_paths_map_to_the_output_mount(self, builder, tmp_path):
        assert builder.container_path(tmp_path / "out" / "Win" / "Skyward.exe") == "/output/Win/Skyward.exe"

    def test_project_paths_map_to_the_project_mount(self, builder, project):
        assert builder.container_path(project.library_dir() / "build_Win.log") == "/project/Library/EnhancedBuilds/build_Win.log"

    def test_other_paths_are_refused(self, builder, tmp_path):
        with pytest.raises(Exception, match="outside both"):
            builder.container_path(tmp_path / "elsewhere")

    def test_request_file_uses_container_location(self, builder, tmp_path):
        request = _request(tmp_path)
        requestpath, _ = builder.paths(request)
        builder.write_request(request, requestpath)

        assert json.loads(requestpath.read_text())["locationPathName"] == "/output/Win/Skyward.exe"
        assert request.location == str(tmp_path / "out" / "Win" / "Skyward.exe")


class TestCommand:
    def test_docker_run(self, builder, project, tmp_path):
        request = _request(tmp_path)
        requestpath, logpath = builder.paths(request)
        command = builder.command(request, requestpath, logpath)

        assert command[:3] == ["docker", "run", "--rm"]
        assert f"{project.root}:/project" in command
        assert f"{(tmp_path / 'out').resolve()}:/output" in command
        assert "--cpus=4" in command
        assert "--memory=24g" in command

        editor = command.index("unityci/editor:2021.3.16f1-windows-mono-1") + 1
        assert command[editor] == "unity-editor"
        assert command[command.index("-projectPath") + 1] == "/project"
        assert command[command.index("-enhancedBuildsRequest") + 1] == "/project/Library/EnhancedBuilds/request_Win.json"
        assert command[command.index("-logFile") + 1] == "/project/Library/EnhancedBuilds/build_Win.log"

    def test_image_is_prepared_once(self, builder, monkeypatch):
        pulled = []
        monkeypatch.setattr(container, "ensure_image", lambda image: pulled.append(image))
        monkeypatch.setattr(container.UnityBuilder, "check_idle", lambda self: None)

        builder.check_idle()
        builder.check_idle()

        assert pulled == ["unityci/editor:2021.3.16f1-windows-mono-1"]
