"""
Publish-argument composition — BuildRequest → dotnet publish argv.

Pure functions; nothing here touches the filesystem or spawns processes.
Rules enforced for every scenario:

  - ``--self-contained`` whenever the scenario trims or asks for it,
    otherwise ``--no-self-contained``.
  - Switches that are off are passed with an explicit empty value
    (``-p:PublishSingleFile=``) so they override a value set in the
    project file; omitting them would let the project default win.
  - Native AOT excludes single-file and PublishTrimmed, carries its own
    TrimMode, and is only allowed for projects in the profile's allow-list.
"""
from pathlib import Path
from typing import List

from publish_bench.core.request import BuildRequest
from publish_bench.errors import ConfigurationError, UnsupportedPublishModeError
from publish_bench.policy.profile import Profile
from publish_bench.policy.scenarios import TrimPolicy, scenario_spec


def _prop(name: str, value: str) -> str:
    return f"-p:{name}={value}"


def _flag(enabled: bool) -> str:
    return "true" if enabled else ""


def compose_publish_args(request: BuildRequest, profile: Profile) -> List[str]:
    """
    Scenario-specific arguments for ``dotnet publish``.

    Raises ConfigurationError for an unknown scenario or an AOT request
    without trimming, and UnsupportedPublishModeError for an AOT request
    on a project outside the allow-list.
    """
    spec = scenario_spec(request.scenario)

    if spec.aot:
        return _compose_aot(request, profile)

    trimmed = request.trim_policy != TrimPolicy.NONE
    args = [
        "--runtime", request.runtime_identifier,
        "--self-contained" if spec.self_contained or trimmed else "--no-self-contained",
        _prop("PublishSingleFile", _flag(spec.single_file)),
        _prop("PublishReadyToRun", _flag(spec.ready_to_run)),
        _prop("PublishAot", "false"),
    ]

    if trimmed:
        args.append(_prop("PublishTrimmed", "true"))
        args.append(_prop("TrimMode", request.trim_policy.trim_mode()))
    else:
        args.append(_prop("PublishTrimmed", "false"))

    if not spec.use_app_host:
        args.append(_prop("UseAppHost", "false"))

    return args


def _compose_aot(request: BuildRequest, profile: Profile) -> List[str]:
    project_name = request.project.name
    if not profile.supports_aot(project_name):
        raise UnsupportedPublishModeError(
            f"The project '{project_name}' does not support publishing for AOT."
        )
    if request.trim_policy == TrimPolicy.NONE:
        raise ConfigurationError(
            "TrimPolicy 'None' is not supported when publishing for AOT."
        )

    return [
        "--runtime", request.runtime_identifier,
        "--self-contained",
        _prop("PublishAot", "true"),
        _prop("PublishSingleFile", ""),
        _prop("PublishTrimmed", ""),
        _prop("TrimMode", request.trim_policy.trim_mode()),
    ]


def compose_command(request: BuildRequest, output_dir: Path, profile: Profile) -> List[str]:
    """Full argument vector for ``dotnet publish`` (without the verb)."""
    scenario_args = compose_publish_args(request, profile)
    return [
        str(request.project.project_path),
        "--configuration", request.configuration,
        "--output", str(output_dir),
        "--disable-build-servers",
        *scenario_args,
    ]
