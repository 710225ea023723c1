"""
Profile — read-only policy data for the harness.

The profile holds every project-specific opinion (which projects may be
published for native AOT, how aggressively each project can be trimmed) so
that argument composition stays free of project names.  Adding a project is
a profile change, not a code change.
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Mapping, Tuple

from publish_bench.errors import ConfigurationError
from publish_bench.policy.scenarios import Scenario, TrimPolicy, scenario_spec


@dataclass(frozen=True)
class TrimRule:
    """Classify projects whose name contains *fragment*."""

    fragment: str
    policy: TrimPolicy
    case_sensitive: bool = False

    def matches(self, project_name: str) -> bool:
        if self.case_sensitive:
            return self.fragment in project_name
        return self.fragment.lower() in project_name.lower()


@dataclass(frozen=True)
class Profile:
    """AOT allow-list and trim classification for the sample projects."""

    profile_id: str
    aot_projects: FrozenSet[str]

    # Exact-name classification wins over rules
    trim_overrides: Mapping[str, TrimPolicy] = field(default_factory=dict)
    # First matching rule wins
    trim_rules: Tuple[TrimRule, ...] = ()
    default_trim: TrimPolicy = TrimPolicy.DEFAULT

    @classmethod
    def v0(cls) -> "Profile":
        """The built-in profile for the bundled sample projects."""
        return cls(
            profile_id="dotnet-samples-v0",
            aot_projects=frozenset({
                "HelloWorld.Console",
                "HelloWorld.Web",
                "HelloWorld.Web.Stripped",
                "HelloWorld.HttpListener",
                "TrimmedTodo.Console.ApiClient",
            }),
            trim_rules=(
                TrimRule("EfCore", TrimPolicy.PARTIAL),
                TrimRule("Dapper", TrimPolicy.PARTIAL),
                TrimRule("MinimalApi.Sqlite", TrimPolicy.PARTIAL),
                TrimRule("Console", TrimPolicy.DEFAULT, case_sensitive=True),
                TrimRule("HelloWorld", TrimPolicy.FULL, case_sensitive=True),
            ),
            default_trim=TrimPolicy.DEFAULT,
        )

    @classmethod
    def from_file(cls, path: Path) -> "Profile":
        """
        Load a profile from JSON::

            {
              "profile_id": "...",
              "aot_projects": ["HelloWorld.Console"],
              "trim_overrides": {"My.App": "Full"},
              "trim_rules": [{"fragment": "EfCore", "policy": "Partial",
                              "case_sensitive": false}],
              "default_trim": "Default"
            }
        """
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return cls(
                profile_id=raw.get("profile_id", path.stem),
                aot_projects=frozenset(raw.get("aot_projects", [])),
                trim_overrides={
                    name: TrimPolicy(value)
                    for name, value in raw.get("trim_overrides", {}).items()
                },
                trim_rules=tuple(
                    TrimRule(
                        fragment=r["fragment"],
                        policy=TrimPolicy(r["policy"]),
                        case_sensitive=r.get("case_sensitive", False),
                    )
                    for r in raw.get("trim_rules", [])
                ),
                default_trim=TrimPolicy(raw.get("default_trim", "Default")),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise ConfigurationError(f"Invalid profile file '{path}': {e}") from e

    def supports_aot(self, project_name: str) -> bool:
        return project_name in self.aot_projects

    def classify(self, project_name: str) -> TrimPolicy:
        """Trim level a project tolerates when a scenario trims."""
        if project_name in self.trim_overrides:
            return self.trim_overrides[project_name]
        for rule in self.trim_rules:
            if rule.matches(project_name):
                return rule.policy
        return self.default_trim

    def trim_policy_for(self, project_name: str, scenario: Scenario) -> TrimPolicy:
        """TrimPolicy for *project_name* under *scenario*."""
        if not scenario_spec(scenario).trimmed:
            return TrimPolicy.NONE
        return self.classify(project_name)
