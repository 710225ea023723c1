"""
Shared pytest fixtures for publish_bench tests.

The build tool is replaced by a small Python script (``fake_dotnet.py``)
that mimics ``dotnet publish``: it writes an app into ``--output`` and
records the arguments it received.  Apps are Python scripts, so managed
apps are launched with ``sys.executable`` standing in for ``dotnet``.

Behaviour of the fake tool is steered through environment variables:
  FAKE_DOTNET_MODE   managed (default) | native | none | fail
  FAKE_APP_EXIT      exit code of the produced app (default 0)
"""
import os
import stat
import sys
import textwrap
from pathlib import Path

import pytest

from publish_bench.config import Settings
from publish_bench.core.dotnet_cli import DotNetCli
from publish_bench.core.request import BuildRequest, ProjectIdentity
from publish_bench.policy.profile import Profile
from publish_bench.policy.scenarios import Scenario, TrimPolicy
from publish_bench.runner import PublishBenchmark

posix_only = pytest.mark.skipif(os.name == "nt", reason="needs shebang executables")

# App body: reports what the harness handed it, then exits.
APP_SOURCE = textwrap.dedent("""\
    import os
    import sys

    print("Hello from app")
    print("shutdown=" + os.environ.get("SHUTDOWN_ON_START", ""))
    print("jwt=" + os.environ.get("JWT_SIGNING_KEY", "<none>"))
    print("cwd=" + os.getcwd())
    sys.stderr.write("app stderr line\\n")
    sys.exit(int(os.environ.get("FAKE_APP_EXIT", "0")))
""")

FAKE_DOTNET_SOURCE = textwrap.dedent("""\
    import json
    import os
    import stat
    import sys
    from pathlib import Path

    APP_SOURCE = {app_source!r}
    PYTHON = {python!r}

    verb, args = sys.argv[1], sys.argv[2:]
    marker = os.environ.get("FAKE_DOTNET_MARKER")
    if marker:
        with open(marker, "a") as f:
            f.write(verb + "\\n")

    if verb == "clean":
        sys.exit(0)

    mode = os.environ.get("FAKE_DOTNET_MODE", "managed")
    if mode == "fail":
        print("error MSB0000: simulated build failure")
        sys.exit(3)

    project = Path(args[0]).stem
    output = Path(args[args.index("--output") + 1])
    output.mkdir(parents=True, exist_ok=True)
    (output / "publish_args.json").write_text(json.dumps(args))

    if mode == "managed":
        (output / (project + ".dll")).write_text(APP_SOURCE)
    elif mode == "native":
        exe = output / project
        exe.write_text("#!" + PYTHON + "\\n" + APP_SOURCE)
        exe.chmod(exe.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    sys.exit(0)
""")


def write_project(projects_dir: Path, name: str, user_secrets_id: str = None) -> Path:
    """Create ``<projects_dir>/<name>/<name>.csproj``."""
    secrets = f"<UserSecretsId>{user_secrets_id}</UserSecretsId>" if user_secrets_id else ""
    path = projects_dir / name / f"{name}.csproj"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        '<Project Sdk="Microsoft.NET.Sdk.Web">\n'
        "  <PropertyGroup>\n"
        "    <TargetFramework>net8.0</TargetFramework>\n"
        f"    {secrets}\n"
        "  </PropertyGroup>\n"
        "</Project>\n"
    )
    return path


def make_executable(path: Path) -> Path:
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def profile() -> Profile:
    return Profile.v0()


@pytest.fixture
def make_request():
    """Factory for BuildRequest objects with an explicit trim policy."""

    def _make(
        name: str = "HelloWorld.Console",
        scenario: Scenario = Scenario.DEFAULT,
        trim_policy: TrimPolicy = TrimPolicy.NONE,
        rid: str = "linux-x64",
        run_id: str = "run1",
    ) -> BuildRequest:
        return BuildRequest(
            project=ProjectIdentity(name=name, project_path=Path("src") / name / f"{name}.csproj"),
            scenario=scenario,
            trim_policy=trim_policy,
            run_id=run_id,
            runtime_identifier=rid,
        )

    return _make


@pytest.fixture
def managed_app(tmp_path) -> Path:
    """An app published as a managed entry point (run via the host runtime)."""
    out = tmp_path / "publish"
    out.mkdir()
    app = out / "Sample.App.dll"
    app.write_text(APP_SOURCE)
    return app


@pytest.fixture
def fake_dotnet(tmp_path) -> Path:
    path = tmp_path / "fake_dotnet.py"
    path.write_text(FAKE_DOTNET_SOURCE.format(app_source=APP_SOURCE, python=sys.executable))
    return path


@pytest.fixture
def bench_dirs(tmp_path):
    projects = tmp_path / "projects"
    artifacts = tmp_path / "artifacts"
    projects.mkdir()
    return projects, artifacts


@pytest.fixture
def bench(bench_dirs, fake_dotnet, tmp_path, monkeypatch) -> PublishBenchmark:
    """PublishBenchmark wired to the fake build tool and a private secrets dir."""
    projects, artifacts = bench_dirs
    monkeypatch.setenv("FAKE_DOTNET_MARKER", str(tmp_path / "dotnet_calls.txt"))
    monkeypatch.delenv("FAKE_DOTNET_MODE", raising=False)
    monkeypatch.delenv("FAKE_APP_EXIT", raising=False)
    settings = Settings(
        PROJECTS_DIR=str(projects),
        ARTIFACTS_ROOT=str(artifacts),
        DOTNET_PATH=sys.executable,
        RUNTIME_IDENTIFIER="linux-x64",
        PROFILE_PATH=None,
        APP_TIMEOUT=60,
    )
    return PublishBenchmark(
        settings=settings,
        profile=Profile.v0(),
        dotnet=DotNetCli([sys.executable, str(fake_dotnet)], timeout=120),
        secrets_dir=tmp_path / "usersecrets",
    )
