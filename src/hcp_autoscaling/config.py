"""Config file loading and auto-discovery for hcp-node-autoscaling.

Finds ``hcp-autoscaling.yaml`` (explicit path, ``HCP_AUTOSCALING_CONFIG``, or
the nearest one above the cwd), parses it, and resolves the kubeconfig path
against the config file's location.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from hcp_autoscaling.migrate.verifier import DEFAULT_POLL_INTERVAL, DEFAULT_SYNC_TIMEOUT

CONFIG_FILENAME = "hcp-autoscaling.yaml"
CONFIG_ENV_VAR = "HCP_AUTOSCALING_CONFIG"
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(frozen=True)
class AutoscalingConfig:
    """Parsed hcp-node-autoscaling configuration."""

    config_path: Path | None = None
    kubeconfig: str | None = None
    management_context: str | None = None
    service_context: str | None = None
    manifestwork_namespace: str | None = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    sync_timeout: float = DEFAULT_SYNC_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL


def find_config(start: Path | None = None) -> Path | None:
    """Nearest ``hcp-autoscaling.yaml`` in *start* (default: cwd) or any ancestor."""
    origin = (start or Path.cwd()).resolve()
    for directory in (origin, *origin.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def _existing(path: str | Path) -> Path:
    resolved = Path(path).expanduser().resolve()
    if not resolved.is_file():
        raise FileNotFoundError(f"Config file not found: {resolved}")
    return resolved


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
) -> AutoscalingConfig:
    """Load the settings for one run.

    An explicit *path* must exist. Without one, discovery tries the
    ``HCP_AUTOSCALING_CONFIG`` environment variable (which must also name an
    existing file) and then the nearest ``hcp-autoscaling.yaml`` above the
    cwd. When nothing is found every setting keeps its default.
    """
    if path is not None:
        return _parse_config(_existing(path))
    if not auto_discover:
        return AutoscalingConfig()

    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return _parse_config(_existing(from_env))

    discovered = find_config()
    return _parse_config(discovered) if discovered is not None else AutoscalingConfig()


def _positive(data: dict, key: str, default: float, config_path: Path) -> float:
    value = data.get(key, default)
    try:
        number = float(value)
    except (TypeError, ValueError):
        msg = f"{key} must be a number in {config_path}, got {value!r}"
        raise ValueError(msg) from None
    if number <= 0:
        msg = f"{key} must be positive in {config_path}, got {value!r}"
        raise ValueError(msg)
    return number


def _parse_config(config_path: Path) -> AutoscalingConfig:
    """Read and parse a YAML config file."""
    text = config_path.read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}

    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ValueError(msg)

    kubeconfig = data.get("kubeconfig")
    if kubeconfig is not None:
        kubeconfig = str((config_path.parent / Path(kubeconfig).expanduser()).resolve())

    return AutoscalingConfig(
        config_path=config_path,
        kubeconfig=kubeconfig,
        management_context=data.get("management_context"),
        service_context=data.get("service_context"),
        manifestwork_namespace=data.get("manifestwork_namespace"),
        poll_interval=_positive(data, "poll_interval", DEFAULT_POLL_INTERVAL, config_path),
        sync_timeout=_positive(data, "sync_timeout", DEFAULT_SYNC_TIMEOUT, config_path),
        log_level=str(data.get("log_level", DEFAULT_LOG_LEVEL)).upper(),
    )
