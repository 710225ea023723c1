"""
Benchmark runner — top-level orchestration: project + scenario → receipt.

Pipeline per scenario:
    resolve paths → compose publish args → dotnet publish → locate app
    → resolve secrets → run app → persist output → write receipt

``run_scenario`` raises on the first failure.  ``run_matrix`` runs several
scenarios one after another and records failures in the matrix receipt
instead of stopping.
"""
import argparse
import logging
import shutil
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from publish_bench.config import Settings
from publish_bench.core import paths
from publish_bench.core.args import compose_command, compose_publish_args
from publish_bench.core.dotnet_cli import DotNetCli
from publish_bench.core.locator import LocatedArtifact, describe_artifact, locate_artifact
from publish_bench.core.process import RunOutcome, run_app
from publish_bench.core.request import BuildRequest, ProjectIdentity, PublishResult
from publish_bench.core.secrets import read_user_secrets_id, resolve_secret_env
from publish_bench.errors import (
    AppExitError,
    AppTimeoutError,
    ArtifactNotFoundError,
    BuildFailedError,
    ConfigurationError,
    HarnessError,
    ProcessLaunchError,
    SecretsStoreMissingError,
    UnsupportedPublishModeError,
)
from publish_bench.io.schema import (
    AppRun,
    FailureReason,
    MatrixReceipt,
    RunReceipt,
    RunStatus,
    now_iso,
)
from publish_bench.io.writer import persist_output, write_matrix_receipt, write_run_receipt
from publish_bench.policy.profile import Profile
from publish_bench.policy.scenarios import Scenario

logger = logging.getLogger(__name__)

# Most specific first
_FAILURE_REASONS: List[Tuple[type, FailureReason]] = [
    (UnsupportedPublishModeError, FailureReason.UNSUPPORTED_PUBLISH_MODE),
    (ConfigurationError, FailureReason.CONFIGURATION),
    (BuildFailedError, FailureReason.BUILD_FAILED),
    (ArtifactNotFoundError, FailureReason.NO_ARTIFACT),
    (SecretsStoreMissingError, FailureReason.SECRETS_MISSING),
    (ProcessLaunchError, FailureReason.LAUNCH_FAILED),
    (AppTimeoutError, FailureReason.APP_TIMEOUT),
    (AppExitError, FailureReason.APP_EXIT_NONZERO),
]


def failure_reason(error: HarnessError) -> FailureReason:
    for cls, reason in _FAILURE_REASONS:
        if isinstance(error, cls):
            return reason
    return FailureReason.CONFIGURATION


class PublishBenchmark:
    """
    Publishes sample projects and runs the produced apps.

    One instance can serve many runs; it only holds read-only configuration.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        profile: Optional[Profile] = None,
        dotnet: Optional[DotNetCli] = None,
        secrets_dir: Optional[Path] = None,
    ):
        """
        Args:
            settings: Harness settings (defaults read from the environment).
            profile: AOT allow-list and trim rules.  Defaults to the file in
                ``PROFILE_PATH`` or, failing that, ``Profile.v0()``.
            dotnet: Build tool wrapper.  Defaults to ``DOTNET_PATH``.
            secrets_dir: Overrides the user-secrets root (``<dir>/<id>/secrets.json``).
        """
        self.settings = settings or Settings()
        if profile is None:
            if self.settings.PROFILE_PATH:
                profile = Profile.from_file(Path(self.settings.PROFILE_PATH))
            else:
                profile = Profile.v0()
        self.profile = profile
        self.dotnet = dotnet or DotNetCli(
            [self.settings.DOTNET_PATH], timeout=self.settings.BUILD_TIMEOUT,
        )
        self.projects_dir = Path(self.settings.PROJECTS_DIR)
        self.artifacts_root = Path(self.settings.ARTIFACTS_ROOT)
        self.secrets_dir = secrets_dir

    # -----------------------------------------------------------------
    # Request construction
    # -----------------------------------------------------------------

    def resolve_project(self, project_name: str) -> ProjectIdentity:
        if not project_name:
            raise ConfigurationError("Project name must not be empty")
        project_path = paths.project_file_path(self.projects_dir, project_name)
        if not project_path.is_file():
            raise ConfigurationError(f"Project at '{project_path}' could not be found")
        return ProjectIdentity(
            name=project_name,
            project_path=project_path,
            user_secrets_id=read_user_secrets_id(project_path),
        )

    def make_request(
        self,
        project_name: str,
        scenario: Scenario,
        run_id: Optional[str] = None,
        runtime_identifier: Optional[str] = None,
    ) -> BuildRequest:
        if not isinstance(scenario, Scenario):
            scenario = Scenario.parse(scenario)
        return BuildRequest.create(
            project=self.resolve_project(project_name),
            scenario=scenario,
            profile=self.profile,
            runtime_identifier=runtime_identifier or self.settings.RUNTIME_IDENTIFIER,
            run_id=run_id,
            configuration=self.settings.BUILD_CONFIGURATION,
        )

    # -----------------------------------------------------------------
    # Pipeline stages
    # -----------------------------------------------------------------

    def clean(self, request: BuildRequest) -> None:
        """``dotnet clean`` the project and drop this run's output directory."""
        self.dotnet.clean([
            str(request.project.project_path),
            "--configuration", request.configuration,
            "--runtime", request.runtime_identifier,
        ])
        output_dir = request.output_dir(self.artifacts_root)
        if output_dir.exists():
            shutil.rmtree(output_dir)
            logger.info("Removed %s", output_dir)

    def publish(self, request: BuildRequest) -> PublishResult:
        """Publish *request* and locate the produced app."""
        output_dir = request.output_dir(self.artifacts_root)
        # Validates scenario constraints before anything is spawned
        cmd = compose_command(request, output_dir, self.profile)

        self.dotnet.publish(cmd)

        located = locate_artifact(output_dir, request.project.name)
        logger.info(
            "Published %s (%s): %s",
            request.project.name, request.scenario.value, located.path,
        )
        return PublishResult(
            app_path=located.path,
            is_native=located.is_native,
            user_secrets_id=request.project.user_secrets_id,
            publish_args=tuple(compose_publish_args(request, self.profile)),
        )

    def secret_env(self, result: PublishResult, project_name: str = ""):
        secrets_path = None
        if self.secrets_dir is not None and result.user_secrets_id:
            secrets_path = self.secrets_dir / result.user_secrets_id / "secrets.json"
        return resolve_secret_env(result.user_secrets_id, project_name, secrets_path)

    def run(
        self,
        result: PublishResult,
        project_name: str = "",
        timeout: Optional[float] = None,
    ) -> Tuple[RunOutcome, List[str]]:
        """Run the published app; returns the outcome and injected env names."""
        env = self.secret_env(result, project_name)
        outcome = run_app(
            result.app_path,
            result.is_native,
            env=env,
            host_runtime=self.settings.DOTNET_PATH,
            timeout=timeout if timeout is not None else self.settings.APP_TIMEOUT,
        )
        return outcome, sorted(env)

    # -----------------------------------------------------------------
    # Full runs
    # -----------------------------------------------------------------

    def _run_recorded(
        self,
        project_name: str,
        scenario: Scenario,
        run_id: Optional[str] = None,
        runtime_identifier: Optional[str] = None,
        clean: bool = False,
        timeout: Optional[float] = None,
    ) -> Tuple[RunReceipt, Optional[HarnessError]]:
        """Run one scenario; failures are recorded, not raised."""
        receipt = RunReceipt(
            profile_id=self.profile.profile_id,
            project=project_name,
            scenario=str(getattr(scenario, "value", scenario)),
            trim_policy="",
            run_id=run_id or "",
            runtime_identifier=runtime_identifier or self.settings.RUNTIME_IDENTIFIER,
            configuration=self.settings.BUILD_CONFIGURATION,
        )
        app_path: Optional[Path] = None

        try:
            request = self.make_request(project_name, scenario, run_id, runtime_identifier)
            receipt.trim_policy = request.trim_policy.value
            receipt.run_id = request.run_id
            receipt.publish_args = compose_publish_args(request, self.profile)

            if clean:
                self.clean(request)

            t0 = time.monotonic()
            result = self.publish(request)
            receipt.publish_duration_ms = int((time.monotonic() - t0) * 1000)
            app_path = result.app_path
            receipt.artifact = describe_artifact(
                LocatedArtifact(path=result.app_path, is_native=result.is_native)
            )

            outcome, env_names = self.run(result, project_name, timeout)
            output_path = persist_output(outcome, app_path)
            receipt.run = AppRun(
                exit_code=outcome.exit_code,
                started_at=outcome.started_at.isoformat(),
                duration_ms=outcome.duration_ms,
                stdout_bytes=len(outcome.stdout),
                stderr_bytes=len(outcome.stderr),
                output_path=str(output_path) if output_path else None,
                env_injected=env_names,
            )
            receipt.status = RunStatus.SUCCESS
            error = None

        except HarnessError as e:
            error = e
            receipt.failure_reason = failure_reason(e)
            receipt.status = (
                RunStatus.TIMEOUT if isinstance(e, AppTimeoutError) else RunStatus.FAILED
            )
            receipt.error_message = str(e)
            logger.error("%s / %s failed: %s", project_name, receipt.scenario, e)

        receipt.finished_at = now_iso()
        if app_path is not None:
            write_run_receipt(receipt, paths.run_receipt_path(app_path))
        return receipt, error

    def run_scenario(
        self,
        project_name: str,
        scenario: Scenario,
        run_id: Optional[str] = None,
        runtime_identifier: Optional[str] = None,
        clean: bool = False,
        timeout: Optional[float] = None,
    ) -> RunReceipt:
        """Publish and run one scenario.  Raises the first HarnessError."""
        receipt, error = self._run_recorded(
            project_name, scenario, run_id, runtime_identifier, clean, timeout,
        )
        if error is not None:
            raise error
        return receipt

    def run_matrix(
        self,
        project_name: str,
        scenarios: Optional[Sequence[Scenario]] = None,
        run_id_prefix: Optional[str] = None,
        runtime_identifier: Optional[str] = None,
        clean: bool = False,
        timeout: Optional[float] = None,
    ) -> MatrixReceipt:
        """
        Run *scenarios* (default: all) sequentially for one project.

        Each scenario publishes into its own run directory named after the
        scenario (prefixed with *run_id_prefix* when given).
        """
        scenarios = list(scenarios or Scenario)
        matrix = MatrixReceipt(
            profile_id=self.profile.profile_id,
            project=project_name,
            runtime_identifier=runtime_identifier or self.settings.RUNTIME_IDENTIFIER,
            requested=[s.value for s in scenarios],
        )
        logger.info("Starting matrix for %s: %d scenarios", project_name, len(scenarios))

        for scenario in scenarios:
            run_id = f"{run_id_prefix}-{scenario.value}" if run_id_prefix else scenario.value
            receipt, _ = self._run_recorded(
                project_name, scenario, run_id, runtime_identifier, clean, timeout,
            )
            matrix.runs.append(receipt)

        matrix.status = matrix.compute_status()
        matrix.finished_at = now_iso()
        write_matrix_receipt(
            matrix, paths.matrix_receipt_path(self.artifacts_root, project_name),
        )
        logger.info("Matrix for %s finished: %s", project_name, matrix.status)
        return matrix


# ── CLI ──────────────────────────────────────────────────────────────────────

def _print_receipt(receipt: RunReceipt) -> None:
    line = f"  {receipt.scenario:<24} {receipt.status.value:<8}"
    if receipt.artifact:
        line += f" size={receipt.artifact.size_bytes}"
    if receipt.run:
        line += f" exit={receipt.run.exit_code} run={receipt.run.duration_ms}ms"
    if receipt.failure_reason:
        line += f" reason={receipt.failure_reason.value}"
    print(line)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point for publish_bench."""
    parser = argparse.ArgumentParser(
        description="Publish a .NET sample project and run the app",
    )
    parser.add_argument("project", help="Project name (directory under PROJECTS_DIR)")
    parser.add_argument(
        "-r", "--runtime",
        default=None,
        help="Target runtime identifier (default: RUNTIME_IDENTIFIER or the host RID)",
    )
    parser.add_argument(
        "-s", "--scenario",
        action="append",
        default=None,
        help="Publish scenario; repeat for several (default: Default)",
    )
    parser.add_argument("--all", action="store_true", help="Run every publish scenario")
    parser.add_argument("--run-id", default=None, help="Run id (prefix when running several)")
    parser.add_argument("--clean", action="store_true", help="dotnet clean before publishing")
    parser.add_argument("--timeout", type=float, default=None, help="Seconds before the app is killed")
    parser.add_argument("--projects-dir", type=Path, default=None, help="Overrides PROJECTS_DIR")
    parser.add_argument("--artifacts-root", type=Path, default=None, help="Overrides ARTIFACTS_ROOT")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    settings = Settings()
    if args.projects_dir is not None:
        settings.PROJECTS_DIR = str(args.projects_dir)
    if args.artifacts_root is not None:
        settings.ARTIFACTS_ROOT = str(args.artifacts_root)

    try:
        bench = PublishBenchmark(settings=settings)
        if args.all:
            scenarios = list(Scenario)
        else:
            scenarios = [Scenario.parse(s) for s in (args.scenario or ["Default"])]
    except ConfigurationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    if len(scenarios) == 1:
        print(f"Publishing {args.project} ({scenarios[0].value})...")
        try:
            receipt = bench.run_scenario(
                args.project, scenarios[0],
                run_id=args.run_id,
                runtime_identifier=args.runtime,
                clean=args.clean,
                timeout=args.timeout,
            )
        except HarnessError as e:
            print(f"FAILED: {e}", file=sys.stderr)
            return 1
        _print_receipt(receipt)
        if receipt.artifact:
            print(f"App: {receipt.artifact.path}")
        return 0

    print(f"Running {len(scenarios)} scenarios for {args.project}...")
    matrix = bench.run_matrix(
        args.project, scenarios,
        run_id_prefix=args.run_id,
        runtime_identifier=args.runtime,
        clean=args.clean,
        timeout=args.timeout,
    )
    for receipt in matrix.runs:
        _print_receipt(receipt)
    print(f"Matrix status: {matrix.status}")
    return 0 if matrix.status == "SUCCESS" else 1


if __name__ == "__main__":
    sys.exit(main())
