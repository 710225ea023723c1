"""
Errors — failure taxonomy for a single benchmark iteration.

Every error is terminal for the current run; nothing here is retried.
Each class also derives from the builtin a caller would naturally catch.
"""
from typing import Optional, Sequence


class HarnessError(Exception):
    """Base class for all publish_bench failures."""


class ConfigurationError(HarnessError, ValueError):
    """Invalid request detected before any subprocess is spawned."""


class UnsupportedPublishModeError(ConfigurationError):
    """The project is not allowed to publish in the requested mode."""


class BuildFailedError(HarnessError, RuntimeError):
    """The build tool exited non-zero."""

    def __init__(
        self,
        message: str,
        exit_code: int,
        command: Sequence[str] = (),
        output: str = "",
    ):
        super().__init__(message)
        self.exit_code = exit_code
        self.command = list(command)
        self.output = output


class ArtifactNotFoundError(HarnessError, FileNotFoundError):
    """The build reported success but produced no runnable artifact."""


class SecretsStoreMissingError(HarnessError, FileNotFoundError):
    """The project declares a user-secrets id but the store file is absent."""


class ProcessLaunchError(HarnessError, RuntimeError):
    """The app process could not be started."""


class AppExitError(HarnessError, RuntimeError):
    """The app process exited with a non-zero code."""

    def __init__(self, message: str, exit_code: int, stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


class AppTimeoutError(HarnessError, RuntimeError):
    """The app process did not exit in time and its process tree was killed."""

    def __init__(
        self,
        message: str,
        timeout: float,
        stdout: str = "",
        stderr: str = "",
        exit_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.timeout = timeout
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code


def format_streams(message: str, stdout: str, stderr: str) -> str:
    """Render a failure message followed by both captured streams."""
    return (
        f"{message}\n"
        f"Standard output:\n{stdout}\n"
        f"Standard error:\n{stderr}\n"
    )
