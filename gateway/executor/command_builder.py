"""
Command Builder
===============
Maps gateway operations to the argument vectors of the external tools.

Builder never executes commands. It only returns argv lists that the
Command Runner spawns without a shell. Every caller-supplied value is a
discrete argv entry, so spaces, quotes and shell metacharacters in a
repository URL, branch, preset or output name reach the tool verbatim.

Deterministic: same inputs → same argv, always.
"""
from pathlib import Path
from typing import Optional, Sequence, Union

from gateway.core.constants import (
    CLONE_DEPTH,
    EXPORT_RELEASE_FLAG,
    HEADLESS_FLAG,
    QUIT_FLAG,
    RENDERING_DRIVER_FLAG,
)

PathLike = Union[str, Path]


def build_clone_command(
    repo_url: str,
    target_path: PathLike,
    branch: Optional[str] = None,
    git_binary: str = "git",
) -> list[str]:
    """
    Shallow clone of ``repo_url`` straight into ``target_path``.

    ``--`` separates options from positionals so a URL starting with a
    dash is never read as a git option.
    """
    argv = [git_binary, "clone", "--depth", str(CLONE_DEPTH)]
    if branch:
        argv += ["--branch", branch]
    argv += ["--", repo_url, str(target_path)]
    return argv


def _engine_prefix(godot_binary: str, rendering_driver: str) -> list[str]:
    return [godot_binary, HEADLESS_FLAG, RENDERING_DRIVER_FLAG, rendering_driver]


def build_test_command(
    test_args: Sequence[str],
    godot_binary: str = "godot",
    rendering_driver: str = "opengl3",
) -> list[str]:
    """
    Headless engine run with caller-supplied arguments, always followed by
    the quit flag so the engine exits once the script is done.

    Parameters
    ----------
    test_args : Sequence[str]
        Ordered argument tokens, e.g. ``["--script", "res://test/run_tests.gd"]``.
    godot_binary : str
        Engine executable.
    rendering_driver : str
        Driver forced for CI compatibility.

    Returns
    -------
    list[str]
        ``[godot, --headless, --rendering-driver, <driver>, *test_args, --quit]``
    """
    return _engine_prefix(godot_binary, rendering_driver) + list(test_args) + [QUIT_FLAG]


def build_export_command(
    export_preset: str,
    output_path: PathLike,
    godot_binary: str = "godot",
    rendering_driver: str = "opengl3",
) -> list[str]:
    """
    Headless release export of ``export_preset`` to ``output_path``.

    The engine appends the platform extension to ``output_path`` itself.
    """
    return _engine_prefix(godot_binary, rendering_driver) + [
        EXPORT_RELEASE_FLAG,
        export_preset,
        str(output_path),
        QUIT_FLAG,
    ]
