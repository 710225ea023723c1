"""
User-secrets resolution — environment bindings for the app process.

A project that declares ``<UserSecretsId>`` expects a JWT signing key
created by ``dotnet user-jwts create``.  The key is read from the per-user
secrets store and handed to the app as ``JWT_SIGNING_KEY``.
"""
import json
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, Optional

from publish_bench.core.paths import user_secrets_path
from publish_bench.errors import ConfigurationError, SecretsStoreMissingError

logger = logging.getLogger(__name__)

SIGNING_KEYS_KEY = "Authentication:Schemes:Bearer:SigningKeys"
SIGNING_KEY_ISSUER = "dotnet-user-jwts"
JWT_SIGNING_KEY_ENV = "JWT_SIGNING_KEY"


def read_user_secrets_id(project_file: Path) -> Optional[str]:
    """Value of the first ``<UserSecretsId>`` element, or None."""
    try:
        root = ET.parse(project_file).getroot()
    except ET.ParseError as e:
        raise ConfigurationError(f"Could not parse project file '{project_file}': {e}") from e

    for elem in root.iter():
        # Tolerate an MSBuild namespace on old-style project files
        if elem.tag.rsplit("}", 1)[-1] == "UserSecretsId":
            value = (elem.text or "").strip()
            return value or None
    return None


def _signing_keys(secrets: Dict[str, Any]) -> Any:
    """The SigningKeys array, flat (colon-joined key) or nested."""
    if SIGNING_KEYS_KEY in secrets:
        return secrets[SIGNING_KEYS_KEY]

    node: Any = secrets
    for part in SIGNING_KEYS_KEY.split(":"):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def resolve_secret_env(
    user_secrets_id: Optional[str],
    project_name: str = "",
    secrets_path: Optional[Path] = None,
) -> Dict[str, str]:
    """
    Environment bindings derived from the project's user secrets.

    Returns an empty dict when no secrets id is declared, or when the store
    exists but holds no signing key from ``dotnet-user-jwts``.  Raises
    SecretsStoreMissingError when an id is declared but the store is absent.
    """
    if not user_secrets_id:
        return {}

    path = secrets_path or user_secrets_path(user_secrets_id)
    if not path.is_file():
        where = f"the '{project_name}' directory" if project_name else "the project directory"
        raise SecretsStoreMissingError(
            f"Could not find user secrets json file at path '{path}'. "
            f"Project has a UserSecretsId but has not been initialized for JWT authentication. "
            f"Please run 'dotnet user-jwts create' in {where}."
        )

    try:
        secrets = json.loads(path.read_text(encoding="utf-8-sig"))
    except ValueError as e:
        raise ConfigurationError(f"User secrets file '{path}' is not valid JSON: {e}") from e

    keys = _signing_keys(secrets) if isinstance(secrets, dict) else None
    if not isinstance(keys, list):
        logger.info("No signing keys in %s", path)
        return {}

    for entry in keys:
        if isinstance(entry, dict) and entry.get("Issuer") == SIGNING_KEY_ISSUER:
            value = entry.get("Value")
            if value and not isinstance(value, str):
                raise ConfigurationError(
                    f"User secrets file '{path}' has a non-string '{SIGNING_KEY_ISSUER}' signing key"
                )
            if value:
                return {JWT_SIGNING_KEY_ENV: value}

    logger.info("No '%s' signing key in %s", SIGNING_KEY_ISSUER, path)
    return {}
