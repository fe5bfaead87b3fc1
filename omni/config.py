"""Omni configuration.

Two layers:
- ``Credentials``: the seven secrets written by ``omni setup`` to a flat
  ``NAME=value`` file and read back on every invocation (``ConfigStore``).
- ``Settings``: non-secret runtime knobs read from ``OMNI_*`` environment
  variables.

Both are plain values handed to the command handlers; nothing here is a
process-wide singleton.
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, Field

from omni.errors import (
    ConfigIncompleteError,
    ConfigInvalidValueError,
    ConfigMissingError,
)
from omni.observability import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".omni" / ".env"


class Credentials(BaseModel):
    """Raw credentials for both external services.

    Replaced as a whole by ``omni setup``; never edited field by field.
    """
    vault_client_id: str = Field(..., repr=False)
    vault_client_secret: str = Field(..., repr=False)
    vault_master_password: str = Field(..., repr=False)
    erp_base_url: str
    erp_api_key: str = Field(..., repr=False)
    erp_username: str
    erp_password: str = Field(..., repr=False)

    class Config:
        frozen = True


# Field name -> persisted variable name, in file order.
ENV_NAMES: Dict[str, str] = {
    "vault_client_id": "BW_CLIENTID",
    "vault_client_secret": "BW_CLIENTSECRET",
    "vault_master_password": "MASTER_PASSWORD",
    "erp_base_url": "EPICOR_BASE_URL",
    "erp_api_key": "EPICOR_API_KEY",
    "erp_username": "EPICOR_USERNAME",
    "erp_password": "EPICOR_PASSWORD",
}


def _quote(value: str) -> str:
    """Single-quote a value so python-dotenv reads it back verbatim."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class ConfigStore:
    """Flat ``NAME=value`` secrets file.

    Usage:
        store = ConfigStore(Path("~/.omni/.env").expanduser())
        store.save(credentials)
        credentials = store.load()
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def save(self, credentials: Credentials) -> None:
        """Overwrite the secrets file with ``credentials``.

        Writes a temp file beside the target and renames it into place, so an
        interrupted save never leaves a half-written file behind.

        Raises:
            ConfigInvalidValueError: A value contains a line break.
        """
        lines = []
        for field_name, env_name in ENV_NAMES.items():
            value = getattr(credentials, field_name)
            if "\n" in value or "\r" in value:
                raise ConfigInvalidValueError(env_name, "values cannot contain line breaks")
            lines.append(f"{env_name}={_quote(value)}\n")
        content = "".join(lines)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".omni-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            # Restrictive permissions on the secrets file
            try:
                os.chmod(tmp, 0o600)
            except OSError:
                pass  # Windows doesn't support chmod the same way
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

        logger.info("Configuration saved", extra_fields={"path": str(self.path)})

    def load(self) -> Credentials:
        """Read the secrets file.

        Raises:
            ConfigMissingError: The file does not exist.
            ConfigIncompleteError: Any of the seven values is absent or empty.
        """
        if not self.path.is_file():
            raise ConfigMissingError(self.path)

        values = dotenv_values(self.path, interpolate=False)
        missing = [name for name in ENV_NAMES.values() if not values.get(name)]
        if missing:
            raise ConfigIncompleteError(self.path, missing)

        logger.debug("Configuration loaded", extra_fields={"path": str(self.path)})
        return Credentials(**{field: values[env] for field, env in ENV_NAMES.items()})


@dataclass
class Settings:
    """Runtime settings (no secrets)."""
    config_path: Path = DEFAULT_CONFIG_PATH
    bw_identity_url: str = "https://identity.bitwarden.com"
    bw_api_url: str = "http://localhost:8087"  # `bw serve`
    epicor_company: str = "100"
    epicor_library: str = "Omni"
    timeout_seconds: float = 30.0
    log_level: str = "WARNING"
    log_json: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``OMNI_*`` environment variables.

        Reads:
        - OMNI_CONFIG: secrets file path
        - OMNI_BW_IDENTITY_URL / OMNI_BW_API_URL: vault endpoints
        - OMNI_EPICOR_COMPANY / OMNI_EPICOR_LIBRARY: Epicor function path
        - OMNI_HTTP_TIMEOUT: request timeout in seconds
        - OMNI_LOG_LEVEL / OMNI_LOG_JSON: logging
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        timeout = env.get("OMNI_HTTP_TIMEOUT")
        try:
            timeout_seconds = float(timeout) if timeout else defaults.timeout_seconds
        except ValueError:
            raise ValueError(f"OMNI_HTTP_TIMEOUT must be a number, got {timeout!r}")

        config_path = env.get("OMNI_CONFIG")
        return cls(
            config_path=Path(config_path).expanduser() if config_path else defaults.config_path,
            bw_identity_url=env.get("OMNI_BW_IDENTITY_URL", defaults.bw_identity_url).rstrip("/"),
            bw_api_url=env.get("OMNI_BW_API_URL", defaults.bw_api_url).rstrip("/"),
            epicor_company=env.get("OMNI_EPICOR_COMPANY", defaults.epicor_company),
            epicor_library=env.get("OMNI_EPICOR_LIBRARY", defaults.epicor_library),
            timeout_seconds=timeout_seconds,
            log_level=env.get("OMNI_LOG_LEVEL", defaults.log_level).upper(),
            log_json=env.get("OMNI_LOG_JSON", "").lower() in ("1", "true", "yes"),
        )
