"""
App process runner — launch a published app, capture its streams, classify
the exit.

stdout and stderr are drained by two reader threads while the main thread
waits for exit.  Reading them one after the other (or only after exit) hangs
as soon as the app fills the pipe buffer of the stream nobody is reading.
"""
from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Dict, List, Mapping, Optional

from publish_bench.core.paths import dotnet_executable_name, is_windows_host
from publish_bench.core.secrets import JWT_SIGNING_KEY_ENV
from publish_bench.errors import (
    AppExitError,
    AppTimeoutError,
    ProcessLaunchError,
    format_streams,
)

logger = logging.getLogger(__name__)

SHUTDOWN_ENV_VAR = "SHUTDOWN_ON_START"
_READ_CHUNK = 64 * 1024
# After a kill, give readers this long to see EOF
_DRAIN_GRACE_SECONDS = 5.0


@dataclass(frozen=True)
class RunOutcome:
    """Result of one app run that exited with code 0."""

    exit_code: int
    stdout: bytes
    stderr: bytes
    started_at: datetime
    duration_ms: int

    @property
    def stdout_text(self) -> str:
        return _decode(self.stdout)

    @property
    def stderr_text(self) -> str:
        return _decode(self.stderr)


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def build_command(
    app_path: Path, is_native: bool, host_runtime: Optional[str] = None,
) -> List[str]:
    """Run native apps directly; hand managed ones to the host runtime."""
    if is_native:
        return [str(app_path)]
    return [host_runtime or dotnet_executable_name(), str(app_path)]


def build_environment(extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Inherited environment + shutdown switch + *extra* bindings.

    A signing key the harness itself inherited is dropped; the app only sees
    one when the secrets store supplied it.
    """
    env = dict(os.environ)
    env.pop(JWT_SIGNING_KEY_ENV, None)
    env[SHUTDOWN_ENV_VAR] = "true"
    if extra:
        env.update(extra)
    return env


def _drain(stream: IO[bytes], sink: List[bytes]) -> None:
    try:
        for chunk in iter(lambda: stream.read(_READ_CHUNK), b""):
            sink.append(chunk)
    finally:
        stream.close()


def kill_process_tree(proc: subprocess.Popen) -> None:
    """Forcibly terminate *proc* and everything it spawned."""
    if is_windows_host():
        subprocess.run(
            ["taskkill", "/T", "/F", "/PID", str(proc.pid)],
            capture_output=True,
        )
        if proc.poll() is None:
            proc.kill()
        return

    # Started with start_new_session, so the group id is the pid
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


def run_app(
    app_path: Path,
    is_native: bool,
    env: Optional[Mapping[str, str]] = None,
    host_runtime: Optional[str] = None,
    timeout: Optional[float] = None,
) -> RunOutcome:
    """
    Launch the app, wait for it to exit, and return its outcome.

    Parameters
    ----------
    app_path : Path
        The located app (native executable or managed ``.dll``).
    is_native : bool
        False launches ``host_runtime <app_path>`` instead of the app itself.
    env : mapping, optional
        Extra environment bindings merged over the inherited environment.
    host_runtime : str, optional
        Runtime used for managed apps.  Defaults to ``dotnet``.
    timeout : float, optional
        Seconds to wait before killing the process tree.  None waits forever.

    Raises
    ------
    ProcessLaunchError
        The process could not be started.
    AppExitError
        The app exited non-zero; the message embeds stdout and stderr.
    AppTimeoutError
        The app was still running after *timeout* seconds.
    """
    app_path = Path(app_path)
    cmd = build_command(app_path, is_native, host_runtime)
    cwd = app_path.parent

    popen_kwargs = {}
    if timeout is not None:
        if is_windows_host():
            popen_kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            popen_kwargs["start_new_session"] = True

    logger.info("Launching %s (cwd=%s)", subprocess.list2cmdline(cmd), cwd)
    try:
        proc = subprocess.Popen(
            cmd,
            cwd=str(cwd),
            env=build_environment(env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            **popen_kwargs,
        )
    except OSError as e:
        raise ProcessLaunchError(
            f"Failed to start application process: {e}\n"
            f"Command: {subprocess.list2cmdline(cmd)}\n"
            f"Working directory: {cwd}"
        ) from e

    started_at = datetime.now(timezone.utc)
    t0 = time.monotonic()

    out_chunks: List[bytes] = []
    err_chunks: List[bytes] = []
    readers = [
        threading.Thread(target=_drain, args=(proc.stdout, out_chunks), name="drain-stdout", daemon=True),
        threading.Thread(target=_drain, args=(proc.stderr, err_chunks), name="drain-stderr", daemon=True),
    ]
    for reader in readers:
        reader.start()

    timed_out = False
    try:
        proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        timed_out = True
        logger.warning("App did not exit within %ss, killing process tree", timeout)
        kill_process_tree(proc)
        proc.wait()

    for reader in readers:
        reader.join(_DRAIN_GRACE_SECONDS if timed_out else None)

    duration_ms = int((time.monotonic() - t0) * 1000)
    stdout = b"".join(out_chunks)
    stderr = b"".join(err_chunks)
    logger.debug(
        "App exited with %s after %d ms (stdout=%d bytes, stderr=%d bytes)",
        proc.returncode, duration_ms, len(stdout), len(stderr),
    )

    if timed_out:
        raise AppTimeoutError(
            format_streams(
                f"Application process did not exit within {timeout}s and was killed",
                _decode(stdout),
                _decode(stderr),
            ),
            timeout=timeout,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
            exit_code=proc.returncode,
        )

    if proc.returncode != 0:
        raise AppExitError(
            format_streams(
                f"Application process failed on exit ({proc.returncode})",
                _decode(stdout),
                _decode(stderr),
            ),
            exit_code=proc.returncode,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
        )

    return RunOutcome(
        exit_code=proc.returncode,
        stdout=stdout,
        stderr=stderr,
        started_at=started_at,
        duration_ms=duration_ms,
    )
