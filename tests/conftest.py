import os

# Keep test runs from writing daily log files into the working tree
os.environ.setdefault("LOG_DIR", "")

import pytest
from fastapi.testclient import TestClient

from gateway.core.config import GatewaySettings
from gateway.core.constants import EXPORT_CONFIG_FILE, PROJECT_MARKER_FILE


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def settings(workspace):
    return GatewaySettings(workspace_root=workspace, log_dir="")


@pytest.fixture
def client(settings):
    from main import create_app
    return TestClient(create_app(settings))


@pytest.fixture
def make_project(workspace):
    """Create <workspace>/<project_id> with a marker and optional export config."""
    def _make(project_id="p1", marker=True, export_config=False):
        project = workspace / project_id
        project.mkdir(parents=True, exist_ok=True)
        if marker:
            (project / PROJECT_MARKER_FILE).write_text("[application]\n")
        if export_config:
            (project / EXPORT_CONFIG_FILE).write_text('[preset.0]\nname="Linux/X11"\n')
        return project
    return _make
