"""
Artifact location — find the app a publish produced.

Probe order:
  1. ``<output>/<project>`` (``.exe`` on Windows): app host or native AOT.
  2. ``<output>/<project>.dll``: managed entry point, needs ``dotnet`` to run.

Neither present after a successful publish means the publish arguments or
the tool invocation are wrong, so it is fatal and never retried.
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile

from publish_bench.core.paths import managed_artifact_path, native_artifact_path
from publish_bench.errors import ArtifactNotFoundError
from publish_bench.io.schema import ArtifactMeta, ElfMeta, hash_file

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocatedArtifact:
    path: Path
    is_native: bool


def locate_artifact(
    output_dir: Path, project_name: str, is_windows: Optional[bool] = None,
) -> LocatedArtifact:
    """Return the app to launch, preferring the native executable."""
    native = native_artifact_path(output_dir, project_name, is_windows)
    if native.is_file():
        return LocatedArtifact(path=native, is_native=True)

    managed = managed_artifact_path(output_dir, project_name)
    if managed.is_file():
        return LocatedArtifact(path=managed, is_native=False)

    raise ArtifactNotFoundError(
        f"Publish succeeded but no app was found: "
        f"neither '{native}' nor '{managed}' exists"
    )


# =============================================================================
# Artifact metadata
# =============================================================================

def read_elf_meta(path: Path) -> Optional[ElfMeta]:
    """ELF header facts, or None when *path* is not an ELF image."""
    try:
        with open(path, "rb") as f:
            elf = ELFFile(f)
            build_id = None
            section = elf.get_section_by_name(".note.gnu.build-id")
            if section is not None:
                for note in section.iter_notes():
                    if note["n_type"] == "NT_GNU_BUILD_ID":
                        build_id = note["n_desc"]
            return ElfMeta(
                elf_type=elf.header["e_type"],
                arch=elf.header["e_machine"],
                build_id=build_id,
            )
    except ELFError:
        return None


def directory_size(directory: Path) -> int:
    """Total size in bytes of all regular files under *directory*."""
    total = 0
    for root, _dirs, files in os.walk(directory):
        for name in files:
            fpath = Path(root) / name
            if not fpath.is_symlink():
                total += fpath.stat().st_size
    return total


def describe_artifact(artifact: LocatedArtifact) -> ArtifactMeta:
    """Size, hash, and (for ELF images) header metadata of the app."""
    path = artifact.path
    elf = read_elf_meta(path) if artifact.is_native else None
    meta = ArtifactMeta(
        path=str(path),
        is_native=artifact.is_native,
        sha256=hash_file(path),
        size_bytes=path.stat().st_size,
        publish_dir_bytes=directory_size(path.parent),
        elf=elf,
    )
    logger.debug(
        "Artifact %s: %d bytes (publish dir %d bytes)",
        path, meta.size_bytes, meta.publish_dir_bytes,
    )
    return meta
