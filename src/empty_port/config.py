"""
Defaults for the empty-port command line.

Sources, later wins:
  1. built-in defaults (127.0.0.1, tcp, 10s wait, 1s connect timeout)
  2. .empty-port.yaml (or the file given with --config / EMPTY_PORT_CONFIG)
  3. EMPTY_PORT_HOST, EMPTY_PORT_PROTOCOL, EMPTY_PORT_MAX_WAIT, EMPTY_PORT_TIMEOUT

Example .empty-port.yaml:
  host: "::1"
  protocol: udp
  max_wait: 30
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from .probe import CONNECT_TIMEOUT, DEFAULT_HOST, TCP, normalize_protocol
from .waiter import DEFAULT_MAX_WAIT

CONFIG_FILENAME = ".empty-port.yaml"
ENV_PREFIX = "EMPTY_PORT_"

_KEYS = ("host", "protocol", "max_wait", "timeout")
_FLOAT_KEYS = ("max_wait", "timeout")

DEFAULTS: dict[str, Any] = {
    "host": DEFAULT_HOST,
    "protocol": TCP,
    "max_wait": DEFAULT_MAX_WAIT,
    "timeout": CONNECT_TIMEOUT,
}


def load_config_file(path: Path) -> dict[str, Any]:
    """Load a YAML config file. Missing file or empty => {}. Bad YAML or non-mapping => ValueError."""
    if not path.exists():
        return {}
    try:
        import yaml
    except ImportError:
        raise RuntimeError(f"PyYAML required to read {path.name}. pip install pyyaml") from None
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"{path}: invalid YAML: {e}") from None
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must be a YAML object")
    return {k: raw[k] for k in _KEYS if raw.get(k) is not None}


def load_env(env: dict[str, str] | None = None) -> dict[str, str]:
    """EMPTY_PORT_* variables, lower-cased without the prefix; empty values skipped."""
    env = env if env is not None else os.environ
    result: dict[str, str] = {}
    for key in _KEYS:
        value = env.get(ENV_PREFIX + key.upper())
        if value is not None and value != "":
            result[key] = value
    return result


def _coerce(config: dict[str, Any]) -> dict[str, Any]:
    for key in _FLOAT_KEYS:
        try:
            config[key] = float(config[key])
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be a number, got {config[key]!r}") from None
    config["host"] = str(config["host"])
    config["protocol"] = normalize_protocol(str(config["protocol"]))
    return config


def get_config(path: Path | None = None, env: dict[str, str] | None = None) -> dict[str, Any]:
    """Merge defaults, the config file (default: .empty-port.yaml in cwd) and env."""
    config = dict(DEFAULTS)
    config.update(load_config_file(path if path is not None else Path.cwd() / CONFIG_FILENAME))
    config.update(load_env(env))
    return _coerce(config)
