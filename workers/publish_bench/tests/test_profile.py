"""
test_profile — scenario table, trim classification, and profile loading.

Invariants:
  - Scenarios that do not trim always get TrimPolicy NONE.
  - Classification is data driven: overrides, then ordered rules, then default.
"""
import json

import pytest

from publish_bench.errors import ConfigurationError
from publish_bench.policy.profile import Profile, TrimRule
from publish_bench.policy.scenarios import SCENARIOS, Scenario, TrimPolicy, scenario_spec


class TestScenario:

    def test_table_covers_every_scenario(self):
        assert set(SCENARIOS) == set(Scenario)

    @pytest.mark.parametrize("name", ["SelfContained", "selfcontained", "SELF_CONTAINED", " AOT "])
    def test_parse_is_case_insensitive(self, name):
        assert Scenario.parse(name) in (Scenario.SELF_CONTAINED, Scenario.AOT)

    @pytest.mark.parametrize("name", ["AheadOfTime", "aheadoftime", "AOT"])
    def test_parse_ahead_of_time_alias(self, name):
        assert Scenario.parse(name) is Scenario.AOT

    def test_parse_unknown_raises(self):
        with pytest.raises(ConfigurationError, match="Unrecognized publish scenario"):
            Scenario.parse("Turbo")

    def test_scenario_spec_unknown_raises(self):
        with pytest.raises(ConfigurationError):
            scenario_spec("Turbo")

    def test_aot_is_not_single_file(self):
        spec = scenario_spec(Scenario.AOT)
        assert spec.aot and spec.trimmed and not spec.single_file


class TestTrimMode:

    def test_values(self):
        assert TrimPolicy.DEFAULT.trim_mode() == ""
        assert TrimPolicy.PARTIAL.trim_mode() == "partial"
        assert TrimPolicy.FULL.trim_mode() == "full"

    def test_none_has_no_mode(self):
        with pytest.raises(ConfigurationError):
            TrimPolicy.NONE.trim_mode()


V0_CLASSIFICATION = [
    ("TrimmedTodo.MinimalApi.EfCore.Sqlite", TrimPolicy.PARTIAL),
    ("TrimmedTodo.MinimalApi.Dapper.Sqlite", TrimPolicy.PARTIAL),
    ("TrimmedTodo.MinimalApi.Sqlite", TrimPolicy.PARTIAL),
    ("trimmedtodo.efcore", TrimPolicy.PARTIAL),
    ("HelloWorld.Console", TrimPolicy.DEFAULT),
    ("TrimmedTodo.Console.ApiClient", TrimPolicy.DEFAULT),
    ("HelloWorld.Web", TrimPolicy.FULL),
    ("HelloWorld.HttpListener", TrimPolicy.FULL),
    ("TrimmedTodo.WebApi", TrimPolicy.DEFAULT),
    # Console and HelloWorld rules are case-sensitive
    ("helloworld.web", TrimPolicy.DEFAULT),
]
V0_PROJECTS = [name for name, _ in V0_CLASSIFICATION]


class TestClassification:

    @pytest.mark.parametrize("project, expected", V0_CLASSIFICATION)
    def test_v0_rules(self, profile, project, expected):
        assert profile.classify(project) == expected

    @pytest.mark.parametrize("scenario", [
        s for s in Scenario if not SCENARIOS[s].trimmed
    ])
    def test_untrimmed_scenarios_get_none(self, profile, scenario):
        assert profile.trim_policy_for("HelloWorld.Web", scenario) == TrimPolicy.NONE

    def test_trimmed_scenario_uses_classification(self, profile):
        assert profile.trim_policy_for("HelloWorld.Web", Scenario.TRIMMED) == TrimPolicy.FULL
        assert profile.trim_policy_for("HelloWorld.Web", Scenario.AOT) == TrimPolicy.FULL

    def test_override_wins_over_rules(self):
        profile = Profile(
            profile_id="test",
            aot_projects=frozenset(),
            trim_overrides={"HelloWorld.Web": TrimPolicy.PARTIAL},
            trim_rules=(TrimRule("HelloWorld", TrimPolicy.FULL),),
        )
        assert profile.classify("HelloWorld.Web") == TrimPolicy.PARTIAL
        assert profile.classify("HelloWorld.Other") == TrimPolicy.FULL

    def test_aot_allow_list(self, profile):
        assert profile.supports_aot("HelloWorld.Console")
        assert not profile.supports_aot("TrimmedTodo.MinimalApi.EfCore.Sqlite")


class TestProfileFile:

    def test_from_file(self, tmp_path):
        path = tmp_path / "profile.json"
        path.write_text(json.dumps({
            "profile_id": "custom",
            "aot_projects": ["My.Console"],
            "trim_overrides": {"My.Web": "Full"},
            "trim_rules": [{"fragment": "Sqlite", "policy": "Partial"}],
            "default_trim": "Default",
        }))
        profile = Profile.from_file(path)

        assert profile.profile_id == "custom"
        assert profile.supports_aot("My.Console")
        assert profile.classify("My.Web") == TrimPolicy.FULL
        assert profile.classify("My.sqlite.Api") == TrimPolicy.PARTIAL
        assert profile.classify("Anything") == TrimPolicy.DEFAULT

    def test_v0_survives_json(self, tmp_path):
        v0 = Profile.v0()
        path = tmp_path / "v0.json"
        path.write_text(json.dumps({
            "profile_id": v0.profile_id,
            "aot_projects": sorted(v0.aot_projects),
            "trim_overrides": {k: p.value for k, p in v0.trim_overrides.items()},
            "trim_rules": [
                {"fragment": r.fragment, "policy": r.policy.value, "case_sensitive": r.case_sensitive}
                for r in v0.trim_rules
            ],
            "default_trim": v0.default_trim.value,
        }))
        loaded = Profile.from_file(path)

        assert loaded == v0
        for project in V0_PROJECTS:
            assert loaded.classify(project) == v0.classify(project)
            assert loaded.supports_aot(project) == v0.supports_aot(project)

    def test_invalid_policy_raises(self, tmp_path):
        path = tmp_path / "profile.json"
        path.write_text(json.dumps({"default_trim": "Aggressive"}))
        with pytest.raises(ConfigurationError, match="Invalid profile file"):
            Profile.from_file(path)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigurationError):
            Profile.from_file(tmp_path / "nope.json")
