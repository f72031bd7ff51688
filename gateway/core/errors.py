"""
Errors
======
Two-tier error taxonomy for the gateway.

Request errors (InvalidRequestError, ProjectNotFoundError) are raised before
anything touches the filesystem or spawns a process.

Execution errors (OperationFailedError) wrap whatever the external tool or
the filesystem reported, verbatim, as ``{error, stderr, stdout}``.
"""
from typing import Optional


class CommandExecutionError(Exception):
    """
    Raised by the execution primitive when a child process fails to spawn,
    exits non-zero, or is killed on timeout.
    """

    def __init__(self, error: str, stderr: str = "", stdout: str = "") -> None:
        super().__init__(error)
        self.error = error
        self.stderr = stderr
        self.stdout = stdout

    @property
    def details(self) -> dict:
        return {"error": self.error, "stderr": self.stderr, "stdout": self.stdout}


class GatewayError(Exception):
    """Base class for errors rendered as ``{"error": ...}`` JSON responses."""

    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidRequestError(GatewayError):
    status_code = 400


class ProjectNotFoundError(GatewayError):
    status_code = 404


class OperationFailedError(GatewayError):
    status_code = 500

    @classmethod
    def from_command_error(cls, message: str, exc: CommandExecutionError) -> "OperationFailedError":
        return cls(message, details=exc.details)

    @classmethod
    def from_os_error(cls, message: str, exc: OSError) -> "OperationFailedError":
        return cls(message, details={"error": str(exc), "stderr": "", "stdout": ""})
