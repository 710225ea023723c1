"""
Scenarios — the closed set of publish scenarios and what each one asks for.

The table is the single place that says which publish switches a scenario
turns on; argument composition reads it and never matches on names.
"""
from dataclasses import dataclass
from enum import Enum, unique
from typing import Dict

from publish_bench.errors import ConfigurationError


@unique
class Scenario(str, Enum):
    DEFAULT = "Default"
    NO_APP_HOST = "NoAppHost"
    READY_TO_RUN = "ReadyToRun"
    SELF_CONTAINED = "SelfContained"
    SELF_CONTAINED_READY_TO_RUN = "SelfContainedReadyToRun"
    SINGLE_FILE = "SingleFile"
    SINGLE_FILE_READY_TO_RUN = "SingleFileReadyToRun"
    TRIMMED = "Trimmed"
    TRIMMED_READY_TO_RUN = "TrimmedReadyToRun"
    AOT = "AOT"

    @classmethod
    def parse(cls, name: str) -> "Scenario":
        """Case-insensitive lookup by value, member name or alias."""
        wanted = name.strip().lower()
        if wanted in _SCENARIO_ALIASES:
            return cls(_SCENARIO_ALIASES[wanted])
        for scenario in cls:
            if wanted in (scenario.value.lower(), scenario.name.lower()):
                return scenario
        raise ConfigurationError(f"Unrecognized publish scenario '{name}'")


_SCENARIO_ALIASES: Dict[str, str] = {
    "aheadoftime": "AOT",
}


@unique
class TrimPolicy(str, Enum):
    NONE = "None"
    DEFAULT = "Default"
    PARTIAL = "Partial"
    FULL = "Full"

    def trim_mode(self) -> str:
        """Value for the TrimMode property; Default leaves the SDK's choice."""
        if self is TrimPolicy.NONE:
            raise ConfigurationError("TrimPolicy None has no TrimMode value")
        if self is TrimPolicy.DEFAULT:
            return ""
        return self.value.lower()


@dataclass(frozen=True)
class ScenarioSpec:
    """Publish switches requested by one scenario."""

    self_contained: bool = False
    single_file: bool = False
    ready_to_run: bool = False
    use_app_host: bool = True
    trimmed: bool = False     # trim level comes from the project profile
    aot: bool = False


SCENARIOS: Dict[Scenario, ScenarioSpec] = {
    Scenario.DEFAULT: ScenarioSpec(),
    Scenario.NO_APP_HOST: ScenarioSpec(use_app_host=False),
    Scenario.READY_TO_RUN: ScenarioSpec(ready_to_run=True),
    Scenario.SELF_CONTAINED: ScenarioSpec(self_contained=True),
    Scenario.SELF_CONTAINED_READY_TO_RUN: ScenarioSpec(
        self_contained=True, ready_to_run=True,
    ),
    Scenario.SINGLE_FILE: ScenarioSpec(self_contained=True, single_file=True),
    Scenario.SINGLE_FILE_READY_TO_RUN: ScenarioSpec(
        self_contained=True, single_file=True, ready_to_run=True,
    ),
    Scenario.TRIMMED: ScenarioSpec(
        self_contained=True, single_file=True, trimmed=True,
    ),
    Scenario.TRIMMED_READY_TO_RUN: ScenarioSpec(
        self_contained=True, single_file=True, ready_to_run=True, trimmed=True,
    ),
    Scenario.AOT: ScenarioSpec(self_contained=True, trimmed=True, aot=True),
}


def scenario_spec(scenario: Scenario) -> ScenarioSpec:
    """Look up the switches for *scenario*."""
    try:
        return SCENARIOS[Scenario(scenario)]
    except (KeyError, ValueError):
        raise ConfigurationError(f"Unrecognized publish scenario '{scenario}'") from None
