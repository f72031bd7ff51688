"""
Workspace Service Tests
=======================
WorkspaceGateway operations with the execution primitive mocked.
No git or godot binary is ever started.
"""
import asyncio
from dataclasses import replace
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from gateway.core.errors import (
    CommandExecutionError,
    InvalidRequestError,
    OperationFailedError,
    ProjectNotFoundError,
)
from gateway.executor.command_runner import CommandResult
from gateway.services.workspace_service import WorkspaceGateway

RUN = "gateway.services.workspace_service.run_command"


@pytest.fixture
def gateway(settings):
    return WorkspaceGateway(settings)


async def _fake_clone(argv, cwd=None, timeout=None):
    target = Path(argv[-1])
    target.mkdir()
    (target / "fresh.txt").write_text("new")
    return CommandResult(stdout="", stderr="Cloning into '...'")


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
class TestProjectPath:

    def test_maps_to_subdirectory(self, gateway, workspace):
        assert gateway.project_path("p1") == workspace / "p1"

    @pytest.mark.parametrize("project_id", ["..", "../escape", "a/../../b", "/etc", ".", "a\x00b"])
    def test_rejects_ids_outside_workspace(self, gateway, project_id):
        with pytest.raises(InvalidRequestError):
            gateway.project_path(project_id)


# ---------------------------------------------------------------------------
# Provision
# ---------------------------------------------------------------------------
class TestProvision:

    def test_replaces_existing_directory(self, gateway, workspace):
        old = workspace / "p1"
        (old / "nested").mkdir(parents=True)
        (old / "nested" / "stale.txt").write_text("old")

        with patch(RUN, new_callable=AsyncMock, side_effect=_fake_clone):
            outcome = asyncio.run(gateway.provision("https://example.com/r.git", "p1"))

        assert sorted(p.name for p in old.iterdir()) == ["fresh.txt"]
        assert outcome.message == f"Repository https://example.com/r.git cloned successfully into {old}"

    def test_passes_branch_and_timeout(self, settings, workspace):
        gateway = WorkspaceGateway(replace(settings, process_timeout=42.0))
        with patch(RUN, new_callable=AsyncMock, return_value=CommandResult()) as mock_run:
            asyncio.run(gateway.provision("https://example.com/r.git", "p1", branch="dev"))

        argv = mock_run.call_args.args[0]
        assert argv[argv.index("--branch") + 1] == "dev"
        assert mock_run.call_args.kwargs["timeout"] == 42.0

    def test_clone_failure_is_wrapped(self, gateway):
        failure = CommandExecutionError("Command failed with exit code 128", stderr="fatal: not found", stdout="")
        with patch(RUN, new_callable=AsyncMock, side_effect=failure):
            with pytest.raises(OperationFailedError) as exc_info:
                asyncio.run(gateway.provision("https://example.com/missing.git", "p1"))

        assert exc_info.value.message == "Failed to clone repository"
        assert exc_info.value.details == {
            "error": "Command failed with exit code 128",
            "stderr": "fatal: not found",
            "stdout": "",
        }

    def test_pre_clean_failure_is_wrapped(self, gateway, workspace):
        (workspace / "p1").mkdir()
        with patch("gateway.services.workspace_service.shutil.rmtree", side_effect=PermissionError("denied")), \
             patch(RUN, new_callable=AsyncMock) as mock_run:
            with pytest.raises(OperationFailedError) as exc_info:
                asyncio.run(gateway.provision("https://example.com/r.git", "p1"))

        assert exc_info.value.details["error"] == "denied"
        mock_run.assert_not_awaited()


# ---------------------------------------------------------------------------
# Run tests
# ---------------------------------------------------------------------------
class TestRunTests:

    def test_runs_in_project_directory(self, gateway, make_project):
        project = make_project("p1")
        with patch(RUN, new_callable=AsyncMock, return_value=CommandResult(stdout="ok")) as mock_run:
            outcome = asyncio.run(gateway.run_tests("p1", ["--script", "res://t.gd"]))

        assert mock_run.call_args.kwargs["cwd"] == project
        assert outcome.result.stdout == "ok"

    def test_missing_marker_is_not_found(self, gateway, make_project):
        make_project("p1", marker=False)
        with patch(RUN, new_callable=AsyncMock) as mock_run:
            with pytest.raises(ProjectNotFoundError):
                asyncio.run(gateway.run_tests("p1", ["--script", "x.gd"]))
        mock_run.assert_not_awaited()

    def test_empty_args_rejected(self, gateway, make_project):
        make_project("p1")
        with patch(RUN, new_callable=AsyncMock) as mock_run:
            with pytest.raises(InvalidRequestError):
                asyncio.run(gateway.run_tests("p1", []))
        mock_run.assert_not_awaited()

    def test_tool_failure_is_wrapped(self, gateway, make_project):
        make_project("p1")
        failure = CommandExecutionError("Command failed with exit code 1", stderr="SCRIPT ERROR", stdout="1 failed")
        with patch(RUN, new_callable=AsyncMock, side_effect=failure):
            with pytest.raises(OperationFailedError) as exc_info:
                asyncio.run(gateway.run_tests("p1", ["--script", "x.gd"]))
        assert exc_info.value.message == "Failed to execute tests"
        assert exc_info.value.details["stdout"] == "1 failed"


# ---------------------------------------------------------------------------
# Build
# ---------------------------------------------------------------------------
class TestBuild:

    def test_creates_custom_build_dir(self, gateway, make_project):
        project = make_project("p1", export_config=True)
        with patch(RUN, new_callable=AsyncMock, return_value=CommandResult()) as mock_run:
            outcome = asyncio.run(gateway.build("p1", "Web", "index", build_dir="build/web"))

        assert (project / "build" / "web").is_dir()
        assert str(project / "build" / "web" / "index") in mock_run.call_args.args[0]
        assert outcome.message.startswith('Build successful for preset "Web".')

    def test_default_build_dir_from_settings(self, settings, make_project):
        project = make_project("p1", export_config=True)
        gateway = WorkspaceGateway(replace(settings, default_build_dir="out"))
        with patch(RUN, new_callable=AsyncMock, return_value=CommandResult()):
            asyncio.run(gateway.build("p1", "Web", "index"))
        assert (project / "out").is_dir()

    def test_missing_export_config_creates_nothing(self, gateway, make_project):
        project = make_project("p1", export_config=False)
        with patch(RUN, new_callable=AsyncMock) as mock_run:
            with pytest.raises(InvalidRequestError) as exc_info:
                asyncio.run(gateway.build("p1", "Web", "index"))

        assert "export_presets.cfg not found" in exc_info.value.message
        assert not (project / "build").exists()
        mock_run.assert_not_awaited()

    def test_marker_checked_before_export_config(self, gateway, make_project):
        make_project("p1", marker=False, export_config=True)
        with patch(RUN, new_callable=AsyncMock):
            with pytest.raises(ProjectNotFoundError):
                asyncio.run(gateway.build("p1", "Web", "index"))

    @pytest.mark.parametrize("build_dir, output_name", [
        ("../../elsewhere", "game"),
        ("/tmp", "game"),
        ("build", "../../../game"),
    ])
    def test_rejects_paths_leaving_project(self, gateway, make_project, build_dir, output_name):
        make_project("p1", export_config=True)
        with patch(RUN, new_callable=AsyncMock) as mock_run:
            with pytest.raises(InvalidRequestError):
                asyncio.run(gateway.build("p1", "Web", output_name, build_dir=build_dir))
        mock_run.assert_not_awaited()

    def test_rejects_build_dir_symlinked_outside_project(self, gateway, make_project, tmp_path):
        project = make_project("p1", export_config=True)
        outside = tmp_path / "outside"
        outside.mkdir()
        (project / "build").symlink_to(outside, target_is_directory=True)

        with patch(RUN, new_callable=AsyncMock) as mock_run:
            with pytest.raises(InvalidRequestError):
                asyncio.run(gateway.build("p1", "Linux/X11", "game"))

        assert list(outside.iterdir()) == []
        mock_run.assert_not_awaited()

    def test_symlink_inside_project_is_allowed(self, gateway, make_project):
        project = make_project("p1", export_config=True)
        (project / "exports").mkdir()
        (project / "build").symlink_to(project / "exports", target_is_directory=True)

        with patch(RUN, new_callable=AsyncMock, return_value=CommandResult()) as mock_run:
            asyncio.run(gateway.build("p1", "Linux/X11", "game"))
        mock_run.assert_awaited_once()


# ---------------------------------------------------------------------------
# Reclaim
# ---------------------------------------------------------------------------
class TestReclaim:

    def test_removes_then_reports_missing(self, gateway, make_project):
        project = make_project("p1")
        outcome = asyncio.run(gateway.reclaim("p1"))
        assert outcome.message == "Successfully cleaned up project: p1"
        assert not project.exists()

        with pytest.raises(ProjectNotFoundError):
            asyncio.run(gateway.reclaim("p1"))

    def test_deletion_failure_is_wrapped(self, gateway, make_project):
        make_project("p1")
        with patch("gateway.services.workspace_service.shutil.rmtree", side_effect=OSError("busy")):
            with pytest.raises(OperationFailedError) as exc_info:
                asyncio.run(gateway.reclaim("p1"))
        assert exc_info.value.message == "Failed to cleanup project directory"
        assert exc_info.value.details == {"error": "busy", "stderr": "", "stdout": ""}


# ---------------------------------------------------------------------------
# Per-project locking
# ---------------------------------------------------------------------------
def test_cleanup_waits_for_running_tests(gateway, make_project):
    project = make_project("p1")

    async def scenario():
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_run(argv, cwd=None, timeout=None):
            started.set()
            await release.wait()
            return CommandResult(stdout="done")

        with patch(RUN, new_callable=AsyncMock, side_effect=slow_run):
            test_task = asyncio.create_task(gateway.run_tests("p1", ["--script", "x.gd"]))
            await started.wait()
            cleanup_task = asyncio.create_task(gateway.reclaim("p1"))
            await asyncio.sleep(0.05)
            present_while_running = project.exists()
            release.set()
            await test_task
            await cleanup_task
        return present_while_running

    assert asyncio.run(scenario()) is True
    assert not project.exists()
    assert len(gateway.locks) == 0


def test_check_workspace_root(settings, tmp_path):
    assert WorkspaceGateway(settings).check_workspace_root() is True
    missing = WorkspaceGateway(replace(settings, workspace_root=tmp_path / "missing"))
    assert missing.check_workspace_root() is False
    assert not (tmp_path / "missing").exists()
