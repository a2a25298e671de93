"""Runtime settings for device sessions and change auditing.

Sources, lowest priority first:
1. Built-in defaults
2. YAML settings file (explicit path, or the first one found on the search path)
3. Environment variables

Environment variables:
- JUNOS_SEND_PORT: NETCONF port (default: 830)
- JUNOS_SEND_TIMEOUT: Connect/RPC timeout in seconds (default: 30)
- JUNOS_SEND_RETRIES: Connection attempts per device (default: 3)
- JUNOS_SEND_HOSTKEY_VERIFY: Set to "1" to verify SSH host keys
- JUNOS_SEND_AUDIT_DIR: Directory for the change audit log

Example settings file:

```yaml
port: 830
timeout: 60
retries: 2
hostkey_verify: true
audit_dir: ~/.junos-send
```
"""
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Union

import yaml

from ..devices.base import SessionConfig

logger = logging.getLogger(__name__)

class SettingsError(Exception):
    """Raised when a settings file or variable has an invalid value."""
    pass


@dataclass
class Settings:
    """Settings shared by every device in a run."""
    port: int = 830
    timeout: int = 30
    retries: int = 3
    retry_delay: float = 2
    hostkey_verify: bool = False
    audit_dir: str = "~/.junos-send"

    def session_config(self, host: str) -> SessionConfig:
        """Connection settings for one device."""
        return SessionConfig(
            host=host,
            port=self.port,
            timeout=self.timeout,
            retries=self.retries,
            retry_delay=self.retry_delay,
            hostkey_verify=self.hostkey_verify,
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Settings":
        """Load settings from a YAML file; unknown keys are ignored with a warning."""
        path = Path(path).expanduser()
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise SettingsError(f"{path}: expected a mapping of settings")

        known = {f.name for f in fields(cls)}
        for key in sorted(set(data) - known):
            logger.warning(f"{path}: ignoring unknown setting '{key}'")

        try:
            return cls(**{k: v for k, v in data.items() if k in known})._checked()
        except (TypeError, ValueError) as e:
            raise SettingsError(f"{path}: {e}") from e

    def apply_env(self) -> "Settings":
        """Override fields from environment variables."""
        try:
            if "JUNOS_SEND_PORT" in os.environ:
                self.port = int(os.environ["JUNOS_SEND_PORT"])
            if "JUNOS_SEND_TIMEOUT" in os.environ:
                self.timeout = int(os.environ["JUNOS_SEND_TIMEOUT"])
            if "JUNOS_SEND_RETRIES" in os.environ:
                self.retries = int(os.environ["JUNOS_SEND_RETRIES"])
        except ValueError as e:
            raise SettingsError(f"Invalid numeric environment setting: {e}") from e

        if "JUNOS_SEND_HOSTKEY_VERIFY" in os.environ:
            self.hostkey_verify = os.environ["JUNOS_SEND_HOSTKEY_VERIFY"] == "1"
        if "JUNOS_SEND_AUDIT_DIR" in os.environ:
            self.audit_dir = os.environ["JUNOS_SEND_AUDIT_DIR"]
        return self._checked()

    def _checked(self) -> "Settings":
        if not 0 < int(self.port) < 65536:
            raise SettingsError(f"port out of range: {self.port}")
        if int(self.retries) < 1:
            raise SettingsError(f"retries must be at least 1: {self.retries}")
        if int(self.timeout) < 1:
            raise SettingsError(f"timeout must be positive: {self.timeout}")
        return self


def find_settings_file() -> Optional[Path]:
    """First settings file found on the search path, if any."""
    search_paths = [
        Path.cwd() / "junos-send.yaml",
        Path.home() / ".config" / "junos-send" / "settings.yaml",
    ]
    for path in search_paths:
        if path.is_file():
            return path
    return None


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """Build settings from defaults, an optional file and the environment."""
    path = Path(path) if path else find_settings_file()
    if path:
        logger.debug(f"Loading settings from {path}")
        settings = Settings.from_file(path)
    else:
        settings = Settings()
    return settings.apply_env()
