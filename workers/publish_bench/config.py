"""
Harness configuration
"""
from typing import Optional

from pydantic_settings import BaseSettings

from publish_bench.core.paths import dotnet_executable_name, host_runtime_identifier


class Settings(BaseSettings):
    """Harness settings"""

    # Layout
    PROJECTS_DIR: str = "src"
    ARTIFACTS_ROOT: str = ".artifacts/publish"

    # Toolchain
    DOTNET_PATH: str = dotnet_executable_name()
    BUILD_CONFIGURATION: str = "Release"
    RUNTIME_IDENTIFIER: str = host_runtime_identifier()
    BUILD_TIMEOUT: int = 600  # seconds

    # Policy: JSON file overriding the built-in profile
    PROFILE_PATH: Optional[str] = None

    # App run: None waits forever
    APP_TIMEOUT: Optional[float] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
