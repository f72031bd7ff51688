"""
Configuration
=============
Loads environment variables from .env file using python-dotenv and
freezes them into a GatewaySettings object that is handed to the gateway
at construction time.

Environment Variables:
    WORKSPACE_DIR            — Root directory holding one folder per project (default: /workspace)
    LISTEN_HOST              — Interface uvicorn binds to (default: 0.0.0.0)
    PORT                     — Listening port (default: 3000)
    GIT_BINARY               — Version-control client executable (default: git)
    GODOT_BINARY             — Engine executable used for tests and exports (default: godot)
    GODOT_RENDERING_DRIVER   — Value passed to --rendering-driver (default: opengl3)
    DEFAULT_BUILD_DIR        — Build output folder inside a project (default: build)
    PROCESS_TIMEOUT_SECONDS  — Kill a child process after N seconds (default: unset, wait forever)
    ENABLE_PROJECT_LOCKS     — Serialize operations per projectId (default: true)
    LOG_LEVEL                — Root log level (default: INFO)
    LOG_DIR                  — Directory for daily log files, empty disables (default: logs)

Timeout Philosophy:
    The gateway never times out a git or godot run unless told to. A hung
    engine holds its request open; PROCESS_TIMEOUT_SECONDS opts into a
    hard ceiling after which the child is killed and the request fails.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_WORKSPACE_DIR = "/workspace"
DEFAULT_PORT = 3000

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class GatewaySettings:
    """
    Immutable runtime configuration for the workspace gateway.

    Fields
    ------
    workspace_root : Path
        Base directory under which every project directory lives.
    host : str
        Bind address for the HTTP server.
    port : int
        Listening port for the HTTP server.
    git_binary : str
        Executable used for shallow clones.
    godot_binary : str
        Executable used for headless test runs and exports.
    rendering_driver : str
        Rendering driver forced on every engine invocation.
    default_build_dir : str
        Relative build directory used when a build request omits one.
    process_timeout : float | None
        Seconds before a child process is killed. None disables the limit.
    project_locking : bool
        Whether operations on the same projectId are serialized.
    log_level : str
        Root logger level name.
    log_dir : str
        Directory for the daily log file. Empty string disables file logging.
    """
    workspace_root: Path = Path(DEFAULT_WORKSPACE_DIR)
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    git_binary: str = "git"
    godot_binary: str = "godot"
    rendering_driver: str = "opengl3"
    default_build_dir: str = "build"
    process_timeout: Optional[float] = None
    project_locking: bool = True
    log_level: str = "INFO"
    log_dir: str = "logs"


def _parse_timeout(raw: Optional[str]) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    value = float(raw)
    if value <= 0:
        raise ValueError(f"PROCESS_TIMEOUT_SECONDS must be positive, got {raw!r}")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> GatewaySettings:
    """
    Build GatewaySettings from the process environment.

    Parameters
    ----------
    environ : Mapping[str, str] | None
        Source of variables. Defaults to ``os.environ``.

    Returns
    -------
    GatewaySettings
        Frozen settings. Invalid numeric values raise ValueError.
    """
    env = os.environ if environ is None else environ

    return GatewaySettings(
        workspace_root=Path(env.get("WORKSPACE_DIR", DEFAULT_WORKSPACE_DIR)),
        host=env.get("LISTEN_HOST", "0.0.0.0"),
        port=int(env.get("PORT", DEFAULT_PORT)),
        git_binary=env.get("GIT_BINARY", "git"),
        godot_binary=env.get("GODOT_BINARY", "godot"),
        rendering_driver=env.get("GODOT_RENDERING_DRIVER", "opengl3"),
        default_build_dir=env.get("DEFAULT_BUILD_DIR", "build"),
        process_timeout=_parse_timeout(env.get("PROCESS_TIMEOUT_SECONDS")),
        project_locking=env.get("ENABLE_PROJECT_LOCKS", "true").strip().lower() in _TRUE_VALUES,
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        log_dir=env.get("LOG_DIR", "logs"),
    )
