"""
dotnet CLI invocation.

Runs ``dotnet publish`` / ``dotnet clean`` as a subprocess.  Success has no
return value: the artifact materialises on disk.  Any non-zero exit raises
BuildFailedError carrying the exit code, the full argv, and the tool output.
"""
import logging
import subprocess
import time
from typing import List, Optional, Sequence

from publish_bench.core.paths import dotnet_executable_name
from publish_bench.errors import BuildFailedError

logger = logging.getLogger(__name__)

# Build logs can be long; keep the tail in error messages
_OUTPUT_TAIL_CHARS = 8000


class DotNetCli:
    """Thin wrapper around the ``dotnet`` executable."""

    def __init__(self, executable: Optional[Sequence[str]] = None, timeout: Optional[int] = 600):
        """
        Args:
            executable: Command prefix for the tool, e.g. ``["dotnet"]``.
                Defaults to the platform's dotnet executable on PATH.
            timeout: Seconds before a build is abandoned (None waits forever).
        """
        if executable is None:
            executable = [dotnet_executable_name()]
        elif isinstance(executable, str):
            executable = [executable]
        self.executable: List[str] = list(executable)
        self.timeout = timeout

    def publish(self, args: Sequence[str]) -> None:
        self._run("publish", args)

    def clean(self, args: Sequence[str]) -> None:
        self._run("clean", args)

    def _run(self, verb: str, args: Sequence[str]) -> None:
        cmd = self.executable + [verb] + list(args)
        logger.info("Running: %s", subprocess.list2cmdline(cmd))

        t0 = time.monotonic()
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise BuildFailedError(
                f"dotnet {verb} timed out after {self.timeout}s",
                exit_code=-1,
                command=cmd,
            ) from None
        except OSError as e:
            raise BuildFailedError(
                f"dotnet {verb} could not be started: {e}",
                exit_code=-1,
                command=cmd,
            ) from e

        duration = time.monotonic() - t0
        output = (result.stdout or "") + (result.stderr or "")

        if result.returncode != 0:
            tail = output[-_OUTPUT_TAIL_CHARS:]
            raise BuildFailedError(
                f"dotnet {verb} failed with exit code {result.returncode}\n"
                f"Command: {subprocess.list2cmdline(cmd)}\n"
                f"{tail}",
                exit_code=result.returncode,
                command=cmd,
                output=output,
            )

        logger.info("dotnet %s succeeded in %.1fs", verb, duration)
