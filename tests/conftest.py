import pytest

from buildtools import store
from buildtools.panel import EditorPanel
from buildtools.process import BuildResult

EDITOR_BUILD_SETTINGS = """%YAML 1.1
%TAG !u! tag:unity3d.com,2011:
--- !u!1045 &1
EditorBuildSettings:
  m_ObjectHideFlags: 0
  serializedVersion: 2
  m_Scenes:
  - enabled: 1
    path: Assets/Scenes/Boot.unity
    guid: 0f1e2d3c4b5a69788796a5b4c3d2e1f0
  - enabled: 0
    path: Assets/Scenes/Sandbox.unity
    guid: 11111111111111111111111111111111
  - enabled: 1
    path: Assets/Scenes/Main.unity
    guid: 22222222222222222222222222222222
  m_configObjects: {}
"""

PROJECT_SETTINGS = """%YAML 1.1
%TAG !u! tag:unity3d.com,2011:
--- !u!129 &1
PlayerSettings:
  m_ObjectHideFlags: 0
  serializedVersion: 23
  companyName: Skybox Studio
  productName: Skyward
  defaultCursor: {fileID: 0}
"""

PROJECT_VERSION = """m_EditorVersion: 2021.3.16f1
m_EditorVersionWithRevision: 2021.3.16f1 (4016570cf34f)
"""

class FakeBuilder:
    """Stands in for the Unity editor: records requests, fails the named builds."""

    def __init__(self, failing = ()):
        self.failing = set(failing)
        self.requests = []

    def build(self, request):
        self.requests.append(request)
        if request.name in self.failing:
            return BuildResult(request.name, False, message = f"error CS0246: {request.name} is broken")
        return BuildResult(request.name, True)

    def names(self):
        return [request.name for request in self.requests]

@pytest.fixture
def project_dir(tmp_path):
    root = tmp_path / "Skyward"
    (root / "Assets" / "Scenes").mkdir(parents=True)
    (root / "Assets" / "Scenes" / "Boot.unity").write_text("")
    (root / "Assets" / "Scenes" / "Main.unity").write_text("")
    (root / "ProjectSettings").mkdir()
    (root / "ProjectSettings" / "EditorBuildSettings.asset").write_text(EDITOR_BUILD_SETTINGS)
    (root / "ProjectSettings" / "ProjectSettings.asset").write_text(PROJECT_SETTINGS)
    (root / "ProjectSettings" / "ProjectVersion.txt").write_text(PROJECT_VERSION)
    return root

@pytest.fixture
def project(project_dir):
    return store.Project(project_dir)

@pytest.fixture
def prefs(project):
    return store.Prefs(project.library_dir() / "prefs.json")

@pytest.fixture
def panel(project, prefs):
    return EditorPanel(project, prefs)

@pytest.fixture
def fake_builder():
    return FakeBuilder()
