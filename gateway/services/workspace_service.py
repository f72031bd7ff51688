"""
Workspace Service
=================
Manages the per-project workspace lifecycle and delegates every operation
to exactly one external command.

Lifecycle per project:
    absent → present (cloned) → [tested | built]* → absent

Philosophy:
    - Existence of <workspace_root>/<projectId> IS the project's state.
      There is no registry and nothing is recorded about past runs.
    - Preconditions are checked before any side effect. A request error
      never spawns a process or touches the filesystem.
    - Tool output is passed through untouched; failures are wrapped, not
      interpreted.
"""
import asyncio
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from gateway.core.config import GatewaySettings
from gateway.core.constants import EXPORT_CONFIG_FILE, PROJECT_MARKER_FILE
from gateway.core.errors import (
    CommandExecutionError,
    InvalidRequestError,
    OperationFailedError,
    ProjectNotFoundError,
)
from gateway.executor.command_builder import (
    build_clone_command,
    build_export_command,
    build_test_command,
)
from gateway.executor.command_runner import CommandResult, run_command
from gateway.state.project_locks import ProjectLockRegistry

logger = logging.getLogger(__name__)


@dataclass
class OperationOutcome:
    """Confirmation message plus the captured output, when a tool ran."""
    message: str
    result: Optional[CommandResult] = None


def _remove_tree(path: Path) -> None:
    """Delete ``path`` recursively; a missing path is not an error."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif os.path.lexists(path):
        path.unlink()


def _contained_path(base: str, relative: str, allow_base: bool = False) -> Optional[str]:
    """
    Join ``relative`` onto ``base`` and make sure the result stays inside it.
    Returns the normalised absolute path, or None when it escapes.
    """
    if "\x00" in relative:
        return None
    candidate = os.path.normpath(os.path.join(base, relative))
    if os.path.commonpath([base, candidate]) != base:
        return None
    if candidate == base and not allow_base:
        return None
    return candidate


def _resolves_inside(base: Path, path: str) -> bool:
    """True when ``path``, with symlinks followed, still lies inside ``base``."""
    real_base = os.path.realpath(base)
    real_path = os.path.realpath(path)
    return os.path.commonpath([real_base, real_path]) == real_base


class WorkspaceGateway:
    """
    Clone, test, export and clean up projects under a single workspace root.

    One instance is created per application with explicit settings; it holds
    no per-project state besides the lock registry.
    """

    def __init__(self, settings: GatewaySettings,
                 locks: Optional[ProjectLockRegistry] = None) -> None:
        self.settings = settings
        self.workspace_root = os.path.abspath(settings.workspace_root)
        self.locks = locks or ProjectLockRegistry(enabled=settings.project_locking)

    # -------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------
    def project_path(self, project_id: str) -> Path:
        """Directory for ``project_id``. Identifiers escaping the root are rejected."""
        path = _contained_path(self.workspace_root, project_id)
        if path is None:
            raise InvalidRequestError(
                f"Invalid projectId {project_id!r}: must name a directory inside the workspace"
            )
        return Path(path)

    def _require_project(self, project_path: Path) -> None:
        if not (project_path / PROJECT_MARKER_FILE).is_file():
            raise ProjectNotFoundError(f"Project not found or invalid at {project_path}")

    # -------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------
    async def provision(self, repo_url: str, project_id: str,
                        branch: Optional[str] = None) -> OperationOutcome:
        """
        Replace the project directory with a fresh shallow clone.

        Any existing directory is removed first; there is no rollback if
        the clone then fails.
        """
        project_path = self.project_path(project_id)

        async with self.locks.hold(str(project_path)):
            try:
                logger.info("Cleaning up existing directory (if any): %s", project_path)
                await asyncio.to_thread(_remove_tree, project_path)

                argv = build_clone_command(
                    repo_url, project_path, branch=branch,
                    git_binary=self.settings.git_binary,
                )
                await run_command(argv, timeout=self.settings.process_timeout)
            except CommandExecutionError as e:
                logger.error("Clone failed for %s: %s", project_id, e.error)
                raise OperationFailedError.from_command_error("Failed to clone repository", e) from e
            except OSError as e:
                logger.error("Clone pre-clean failed for %s: %s", project_id, e)
                raise OperationFailedError.from_os_error("Failed to clone repository", e) from e

        return OperationOutcome(
            message=f"Repository {repo_url} cloned successfully into {project_path}"
        )

    async def run_tests(self, project_id: str, test_args: Sequence[str]) -> OperationOutcome:
        """
        Run the engine headlessly inside the project with ``test_args``.

        Parameters
        ----------
        project_id : str
            Project whose directory becomes the working directory.
        test_args : Sequence[str]
            Non-empty ordered argument tokens placed between the fixed
            headless prefix and the quit flag.

        Returns
        -------
        OperationOutcome
            Message plus the raw stdout/stderr of the run.
        """
        if not test_args:
            raise InvalidRequestError("Missing or invalid testCommandArgs array")

        project_path = self.project_path(project_id)

        async with self.locks.hold(str(project_path)):
            self._require_project(project_path)

            argv = build_test_command(
                test_args,
                godot_binary=self.settings.godot_binary,
                rendering_driver=self.settings.rendering_driver,
            )
            try:
                result = await run_command(
                    argv, cwd=project_path, timeout=self.settings.process_timeout,
                )
            except CommandExecutionError as e:
                logger.error("Test execution failed for %s: %s", project_id, e.error)
                raise OperationFailedError.from_command_error("Failed to execute tests", e) from e

        return OperationOutcome(message="Tests executed successfully", result=result)

    async def build(self, project_id: str, export_preset: str, output_name: str,
                    build_dir: Optional[str] = None) -> OperationOutcome:
        """
        Export a release build of ``export_preset`` to
        ``<project>/<build_dir>/<output_name>``.

        Both the project marker and the export configuration must exist
        before the build directory is created or the engine is started.
        """
        project_path = self.project_path(project_id)
        if build_dir is None:
            build_dir = self.settings.default_build_dir

        absolute_build_dir = _contained_path(str(project_path), build_dir, allow_base=True)
        if absolute_build_dir is None:
            raise InvalidRequestError(f"Invalid buildDir {build_dir!r}: must stay inside the project")
        output_path = _contained_path(str(project_path), os.path.join(build_dir, output_name))
        if output_path is None or output_path == absolute_build_dir:
            raise InvalidRequestError(f"Invalid outputName {output_name!r}: must stay inside the project")

        async with self.locks.hold(str(project_path)):
            self._require_project(project_path)
            if not (project_path / EXPORT_CONFIG_FILE).is_file():
                raise InvalidRequestError(
                    f"{EXPORT_CONFIG_FILE} not found in project root: {project_path}"
                )
            # A cloned repo may ship the build dir as a symlink pointing elsewhere
            for candidate in (absolute_build_dir, output_path):
                if not _resolves_inside(project_path, candidate):
                    raise InvalidRequestError(
                        f"Invalid buildDir {build_dir!r}: resolves outside the project through a symlink"
                    )

            argv = build_export_command(
                export_preset, output_path,
                godot_binary=self.settings.godot_binary,
                rendering_driver=self.settings.rendering_driver,
            )
            try:
                logger.info("Ensuring build directory exists: %s", absolute_build_dir)
                os.makedirs(absolute_build_dir, exist_ok=True)
                result = await run_command(
                    argv, cwd=project_path, timeout=self.settings.process_timeout,
                )
            except CommandExecutionError as e:
                logger.error("Build failed for %s: %s", project_id, e.error)
                raise OperationFailedError.from_command_error("Failed to build project", e) from e
            except OSError as e:
                logger.error("Could not create build directory for %s: %s", project_id, e)
                raise OperationFailedError.from_os_error("Failed to build project", e) from e

        return OperationOutcome(
            message=f'Build successful for preset "{export_preset}". Output at: {output_path}',
            result=result,
        )

    async def reclaim(self, project_id: str) -> OperationOutcome:
        """Delete the project directory. A second call on the same id is a 404."""
        project_path = self.project_path(project_id)

        async with self.locks.hold(str(project_path)):
            if not project_path.exists():
                raise ProjectNotFoundError(f"Project directory not found: {project_path}")

            try:
                logger.info("Attempting to remove directory: %s", project_path)
                await asyncio.to_thread(_remove_tree, project_path)
            except OSError as e:
                logger.error("Cleanup failed for %s: %s", project_id, e)
                raise OperationFailedError.from_os_error("Failed to cleanup project directory", e) from e

        return OperationOutcome(message=f"Successfully cleaned up project: {project_id}")

    # -------------------------------------------------------------------
    # Startup checks
    # -------------------------------------------------------------------
    def check_workspace_root(self) -> bool:
        """Warn when the workspace root is missing; it is never created here."""
        if not os.path.isdir(self.workspace_root):
            logger.warning(
                "Workspace directory %s does not exist! It should be created before serving requests.",
                self.workspace_root,
            )
            return False
        return True
