from __future__ import annotations

import configparser
from pathlib import Path

from cyberrisk_cli.exceptions import ConfigError
from cyberrisk_cli.models.config import STORAGE_FILE, STORAGE_REMOTE, AppConfig

CONFIG_FILENAME = ".cyberrisk-cli.ini"
_SECTION = "cyberrisk"
_REQUIRED_KEYS = {
    STORAGE_FILE: ("register_path",),
    STORAGE_REMOTE: ("api_url",),
}


def config_exists(directory: Path) -> bool:
    return (directory / CONFIG_FILENAME).is_file()


def write_config(directory: Path, config: AppConfig) -> None:
    cp = configparser.ConfigParser(interpolation=None)
    cp[_SECTION] = {
        "storage": config.storage,
        "register_path": config.register_path,
        "api_url": config.api_url,
        "bearer_token": config.bearer_token,
        "export_dir": config.export_dir,
    }
    path = directory / CONFIG_FILENAME
    with open(path, "w", encoding="utf-8") as f:
        cp.write(f)


def read_config(directory: Path) -> AppConfig:
    path = directory / CONFIG_FILENAME
    if not path.is_file():
        raise ConfigError(
            "Configuration not found. Run cyberrisk-cli --init first."
        )

    cp = configparser.ConfigParser(interpolation=None)
    try:
        cp.read(str(path), encoding="utf-8")
    except configparser.Error as exc:
        raise ConfigError(
            f"Invalid configuration format in {CONFIG_FILENAME}. "
            "Run cyberrisk-cli --init to reconfigure."
        ) from exc

    if not cp.has_section(_SECTION):
        raise ConfigError(
            f"Invalid configuration: missing [{_SECTION}] section in {CONFIG_FILENAME}."
        )

    storage = cp.get(_SECTION, "storage", fallback=STORAGE_FILE).strip() or STORAGE_FILE
    if storage not in _REQUIRED_KEYS:
        raise ConfigError(
            f"Invalid configuration: unknown storage '{storage}' in {CONFIG_FILENAME}."
        )

    for key in _REQUIRED_KEYS[storage]:
        if not cp.has_option(_SECTION, key) or not cp.get(_SECTION, key).strip():
            raise ConfigError(
                f"Invalid configuration: missing or empty '{key}' in {CONFIG_FILENAME}. "
                "Run cyberrisk-cli --init to reconfigure."
            )

    return AppConfig(
        storage=storage,
        register_path=cp.get(_SECTION, "register_path", fallback="").strip(),
        api_url=cp.get(_SECTION, "api_url", fallback="").strip(),
        bearer_token=cp.get(_SECTION, "bearer_token", fallback="").strip(),
        export_dir=cp.get(_SECTION, "export_dir", fallback="exports").strip() or "exports",
    )
