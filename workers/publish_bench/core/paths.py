"""
Path resolution for projects, publish output, and the produced app.

Layout convention::

    <projects_dir>/
      <project>/
        <project>.csproj
    <artifacts_root>/
      <project>/
        matrix_receipt.json
        <run_id>/            # one directory per publish, never shared
          <project>[.exe]    # app host or native AOT image
          <project>.dll      # managed entry point
          output.txt         # captured stdout of the last run
          run_receipt.json
"""

from __future__ import annotations

import os
import platform
from pathlib import Path
from typing import Optional

OUTPUT_FILE_NAME = "output.txt"
RUN_RECEIPT_NAME = "run_receipt.json"
MATRIX_RECEIPT_NAME = "matrix_receipt.json"
MANAGED_EXTENSION = ".dll"

_RID_OS = {"windows": "win", "linux": "linux", "darwin": "osx"}
_RID_ARCH = {
    "x86_64": "x64",
    "amd64": "x64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
}


def is_windows_host() -> bool:
    return os.name == "nt"


def host_runtime_identifier() -> str:
    """Runtime identifier (``<os>-<arch>``) of the machine we run on."""
    system = platform.system().lower()
    machine = platform.machine().lower()
    rid_os = _RID_OS.get(system, system)
    rid_arch = _RID_ARCH.get(machine, machine)
    return f"{rid_os}-{rid_arch}"


def dotnet_executable_name(is_windows: Optional[bool] = None) -> str:
    if is_windows is None:
        is_windows = is_windows_host()
    return "dotnet.exe" if is_windows else "dotnet"


def project_file_path(projects_dir: Path, project_name: str) -> Path:
    return Path(projects_dir) / project_name / f"{project_name}.csproj"


def publish_dir(artifacts_root: Path, project_name: str, run_id: str) -> Path:
    return Path(artifacts_root) / project_name / run_id


def native_artifact_path(
    output_dir: Path, project_name: str, is_windows: Optional[bool] = None,
) -> Path:
    if is_windows is None:
        is_windows = is_windows_host()
    suffix = ".exe" if is_windows else ""
    return Path(output_dir) / f"{project_name}{suffix}"


def managed_artifact_path(output_dir: Path, project_name: str) -> Path:
    return Path(output_dir) / f"{project_name}{MANAGED_EXTENSION}"


def output_file_path(artifact_path: Path) -> Path:
    return Path(artifact_path).parent / OUTPUT_FILE_NAME


def run_receipt_path(artifact_path: Path) -> Path:
    return Path(artifact_path).parent / RUN_RECEIPT_NAME


def matrix_receipt_path(artifacts_root: Path, project_name: str) -> Path:
    return Path(artifacts_root) / project_name / MATRIX_RECEIPT_NAME


def user_secrets_path(secrets_id: str, is_windows: Optional[bool] = None) -> Path:
    """Location of the per-user secrets store for *secrets_id*."""
    if is_windows is None:
        is_windows = is_windows_host()
    if is_windows:
        app_data = os.environ.get("APPDATA") or str(Path.home() / "AppData" / "Roaming")
        return Path(app_data) / "Microsoft" / "UserSecrets" / secrets_id / "secrets.json"
    return Path.home() / ".microsoft" / "usersecrets" / secrets_id / "secrets.json"
