from __future__ import annotations

from dataclasses import dataclass

from cyberrisk_cli.exceptions import ConfigError

STORAGE_FILE = "file"
STORAGE_REMOTE = "remote"


@dataclass
class AppConfig:
    storage: str = STORAGE_FILE
    register_path: str = "risk-register.json"
    api_url: str = ""
    bearer_token: str = ""
    export_dir: str = "exports"

    def __post_init__(self) -> None:
        if self.storage not in (STORAGE_FILE, STORAGE_REMOTE):
            raise ConfigError(
                f"Unknown storage '{self.storage}'. Use '{STORAGE_FILE}' or '{STORAGE_REMOTE}'."
            )
        if self.storage == STORAGE_FILE and not self.register_path:
            raise ConfigError("Register path cannot be empty.")
        if self.storage == STORAGE_REMOTE:
            if not self.api_url:
                raise ConfigError("API URL cannot be empty.")
            if not self.api_url.startswith("https://"):
                raise ConfigError("API URL must start with https://")
            if not self.api_url.endswith("/"):
                self.api_url = self.api_url + "/"
