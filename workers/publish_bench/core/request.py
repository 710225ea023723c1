"""
Request — immutable inputs and results that flow through one benchmark run.

A BuildRequest is created once per iteration and never mutated.  Publishing
it yields exactly one PublishResult (or an error).
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from publish_bench.core import paths
from publish_bench.errors import ConfigurationError
from publish_bench.policy.profile import Profile
from publish_bench.policy.scenarios import Scenario, TrimPolicy


@dataclass(frozen=True)
class ProjectIdentity:
    name: str
    project_path: Path
    user_secrets_id: Optional[str] = None


@dataclass(frozen=True)
class BuildRequest:
    """Everything needed to publish one project in one scenario."""

    project: ProjectIdentity
    scenario: Scenario
    trim_policy: TrimPolicy
    run_id: str
    runtime_identifier: str
    configuration: str = "Release"

    @classmethod
    def create(
        cls,
        project: ProjectIdentity,
        scenario: Scenario,
        profile: Profile,
        runtime_identifier: str,
        run_id: Optional[str] = None,
        configuration: str = "Release",
    ) -> "BuildRequest":
        """Derive the trim policy from *profile* and fill in a run id."""
        if not project.name:
            raise ConfigurationError("Project name must not be empty")
        return cls(
            project=project,
            scenario=scenario,
            trim_policy=profile.trim_policy_for(project.name, scenario),
            run_id=run_id or new_run_id(),
            runtime_identifier=runtime_identifier,
            configuration=configuration,
        )

    def output_dir(self, artifacts_root: Path) -> Path:
        return paths.publish_dir(artifacts_root, self.project.name, self.run_id)


@dataclass(frozen=True)
class PublishResult:
    """A located app produced by a successful publish."""

    app_path: Path
    is_native: bool
    user_secrets_id: Optional[str] = None
    publish_args: Tuple[str, ...] = field(default_factory=tuple)


def new_run_id() -> str:
    """Random run id; keeps concurrent publishes out of each other's way."""
    return uuid.uuid4().hex[:16]
