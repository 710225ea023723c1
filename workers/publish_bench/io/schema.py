"""
Receipt schema — JSON records of publish-and-run results.

Two outputs:
  1. run_receipt.json    — one publish + run of one scenario.
  2. matrix_receipt.json — every scenario requested for one project.

Runtime contract fields (present in every output):
  package_name, harness_version, schema_version, profile_id.
"""
from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from publish_bench import HARNESS_VERSION, PACKAGE_NAME, SCHEMA_VERSION


# =============================================================================
# Enums
# =============================================================================

class RunStatus(str, Enum):
    """Status of a single scenario run."""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"


class FailureReason(str, Enum):
    """Why a scenario run failed."""
    CONFIGURATION = "CONFIGURATION"
    UNSUPPORTED_PUBLISH_MODE = "UNSUPPORTED_PUBLISH_MODE"
    BUILD_FAILED = "BUILD_FAILED"
    NO_ARTIFACT = "NO_ARTIFACT"
    SECRETS_MISSING = "SECRETS_MISSING"
    LAUNCH_FAILED = "LAUNCH_FAILED"
    APP_EXIT_NONZERO = "APP_EXIT_NONZERO"
    APP_TIMEOUT = "APP_TIMEOUT"


# =============================================================================
# Artifact metadata
# =============================================================================

class ElfMeta(BaseModel):
    """ELF header facts; only filled when the app is an ELF image."""
    elf_type: str = ""  # ET_EXEC, ET_DYN, etc.
    arch: str = ""  # EM_X86_64, etc.
    build_id: Optional[str] = None


class ArtifactMeta(BaseModel):
    """Metadata for the app produced by a publish."""
    path: str
    is_native: bool
    sha256: str
    size_bytes: int
    publish_dir_bytes: int = 0
    elf: Optional[ElfMeta] = None


# =============================================================================
# Run receipt
# =============================================================================

class AppRun(BaseModel):
    """Outcome of launching the app once."""
    exit_code: int
    started_at: str  # ISO 8601
    duration_ms: int
    stdout_bytes: int
    stderr_bytes: int
    output_path: Optional[str] = None  # None when output.txt could not be written
    env_injected: List[str] = []  # names only, never values


class RunReceipt(BaseModel):
    """Record of one publish + run of one scenario."""
    package_name: str = PACKAGE_NAME
    harness_version: str = HARNESS_VERSION
    schema_version: str = SCHEMA_VERSION
    profile_id: str

    project: str
    scenario: str
    trim_policy: str
    run_id: str
    runtime_identifier: str
    configuration: str

    status: RunStatus = RunStatus.FAILED
    failure_reason: Optional[FailureReason] = None
    error_message: Optional[str] = None

    publish_args: List[str] = []
    publish_duration_ms: int = 0
    artifact: Optional[ArtifactMeta] = None
    run: Optional[AppRun] = None

    created_at: str = Field(default_factory=lambda: now_iso())
    finished_at: Optional[str] = None


# =============================================================================
# Matrix receipt
# =============================================================================

class MatrixReceipt(BaseModel):
    """
    All scenarios requested for one project.

    One file per project: matrix_receipt.json
    """
    package_name: str = PACKAGE_NAME
    harness_version: str = HARNESS_VERSION
    schema_version: str = SCHEMA_VERSION
    profile_id: str

    project: str
    runtime_identifier: str
    requested: List[str]
    status: str = "RUNNING"  # RUNNING, SUCCESS, PARTIAL, FAILED
    runs: List[RunReceipt] = []

    created_at: str = Field(default_factory=lambda: now_iso())
    finished_at: Optional[str] = None

    def compute_status(self) -> str:
        """Derive matrix status from run results."""
        if not self.runs:
            return "FAILED"
        statuses = [r.status for r in self.runs]
        if all(s == RunStatus.SUCCESS for s in statuses):
            return "SUCCESS"
        if any(s == RunStatus.SUCCESS for s in statuses):
            return "PARTIAL"
        return "FAILED"


# =============================================================================
# Helpers
# =============================================================================

def hash_file(path: Path) -> str:
    """SHA-256 of a file."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def now_iso() -> str:
    """Current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()
