"""Config loader for the ccapproval server.

Search order: explicit path -> ./ccapproval.toml -> platform config.
Environment variables override file values; CLI overrides are applied last.
Uses stdlib tomllib (Python 3.11+).
"""

from __future__ import annotations

import os
import platform
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ccapproval.config.settings import Settings

_TRUTHY = {"1", "true", "yes", "on"}


def get_platform_config_path() -> Path:
    """Return the platform-specific config.toml path."""
    system = platform.system().lower()
    if system == "darwin":
        return Path.home() / "Library" / "Application Support" / "ccapproval" / "config.toml"
    if system == "windows":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / "ccapproval" / "config.toml"
        return Path.home() / "AppData" / "Roaming" / "ccapproval" / "config.toml"

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / "ccapproval" / "config.toml"
    return Path.home() / ".config" / "ccapproval" / "config.toml"


def get_config_search_paths() -> list[Path]:
    """Return config search paths in priority order."""
    return [Path("./ccapproval.toml"), get_platform_config_path()]


def _find_config_file() -> Path | None:
    for path in get_config_search_paths():
        if path.exists():
            return path
    return None


def _parse_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as f:
        return tomllib.load(f)


def _is_truthy(value: str) -> bool:
    return value.strip().lower() in _TRUTHY


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name)
    if not isinstance(section, dict):
        section = {}
        data[name] = section
    return section


def apply_environment(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Overlay environment variables onto raw settings data."""
    slack = _section(data, "slack")
    for env_name, key in (
        ("SLACK_BOT_TOKEN", "bot_token"),
        ("SLACK_APP_TOKEN", "app_token"),
        ("SLACK_CHANNEL_NAME", "channel"),
        ("SLACK_CHANNEL", "channel"),
        ("SLACK_MENTION", "mention"),
    ):
        value = environ.get(env_name)
        if value:
            slack[key] = value

    if "CCAPPROVAL_DEBUG" in environ:
        # An empty value still counts as set.
        raw = environ["CCAPPROVAL_DEBUG"]
        data["debug"] = raw == "" or _is_truthy(raw)

    timeout = environ.get("CCAPPROVAL_TIMEOUT")
    if timeout:
        try:
            _section(data, "approval")["timeout_seconds"] = float(timeout)
        except ValueError as e:
            raise ValueError(f"CCAPPROVAL_TIMEOUT must be a number of seconds: {timeout!r}") from e

    gate_all = environ.get("CCAPPROVAL_GATE_ALL_TOOLS")
    if gate_all is not None:
        _section(data, "policy")["gate_all_tools"] = _is_truthy(gate_all)

    data_dir = environ.get("CCAPPROVAL_DATA_DIR")
    if data_dir:
        _section(data, "storage")["data_dir"] = data_dir

    return data


def merge_cli_overrides(settings: Settings, overrides: Mapping[str, Any]) -> Settings:
    """Apply CLI overrides to already-loaded settings."""
    if overrides.get("channel") is not None:
        settings.slack.channel = str(overrides["channel"]).strip().lstrip("#")

    if overrides.get("timeout_seconds") is not None:
        settings.approval.timeout_seconds = float(overrides["timeout_seconds"])

    if overrides.get("gate_all_tools") is not None:
        settings.policy.gate_all_tools = bool(overrides["gate_all_tools"])

    if overrides.get("api_enabled") is not None:
        settings.api.enabled = bool(overrides["api_enabled"])

    if overrides.get("api_port") is not None:
        settings.api.port = int(overrides["api_port"])

    if overrides.get("debug"):
        settings.debug = True

    return settings


def load_settings(
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load settings from TOML, the environment, and CLI overrides.

    Args:
        config_path: Explicit path to config file. If None, searches default locations.
        environ: Environment mapping; defaults to ``os.environ``.
        cli_overrides: Optional CLI overrides to apply after loading.

    Raises:
        FileNotFoundError: If an explicit config_path is provided but does not exist.
        RuntimeError: If the config file cannot be parsed.
    """
    path: Path | None
    if config_path:
        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found at explicitly provided path: {config_path}. "
                "Ensure the file exists or omit the argument to use default search paths."
            )
        path = config_path
    else:
        path = _find_config_file()

    data: dict[str, Any] = {}
    if path is not None:
        try:
            data = _parse_toml(path)
        except Exception as e:
            raise RuntimeError(f"Failed to parse configuration file at {path}: {e}") from e

        storage = data.get("storage")
        if isinstance(storage, dict) and "data_dir" in storage:
            data_dir = Path(storage["data_dir"]).expanduser()
            # Resolve relative paths against the config file location
            if not data_dir.is_absolute():
                data_dir = path.parent / data_dir
            storage["data_dir"] = data_dir

    apply_environment(data, os.environ if environ is None else environ)
    settings = Settings.model_validate(data)

    if cli_overrides:
        settings = merge_cli_overrides(settings, cli_overrides)
    return settings
