# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Configuration for tcbuilds.

Resolution order (later wins):
  1. built-in defaults (`DEFAULTS`)
  2. YAML config file (`--config` or $TCBUILDS_CONFIG)
  3. environment ($TEAMCITY_AUTH for the credential)
  4. command-line flags

Durations accept plain seconds ("300") or Go-style strings ("5m", "1h30m", "250ms").
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .exceptions import ConfigError

_logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = "TCBUILDS_CONFIG"
ENV_AUTH = "TEAMCITY_AUTH"
ENV_LOG_LEVEL = "LOG_LEVEL"

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULTS: Dict[str, Any] = {
    "base": "https://build2.syncthing.net",
    "branch": "master",
    "listen": "127.0.0.1:8123",
    "project": "",
    "auth": "",
    "cache": "5m",
    "title": "",
    "template": "",
    "timeout": "30s",
    "workers": 1,
}

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ms|h|m|s)")
_DURATION_UNITS_S = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_duration(value: Any) -> float:
    """Parse a duration into seconds."""
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        secs = float(value)
    else:
        text = str(value or "").strip()
        if not text:
            raise ConfigError("Empty duration")
        try:
            secs = float(text)
        except ValueError:
            pos = 0
            secs = 0.0
            for m in _DURATION_PART_RE.finditer(text):
                if m.start() != pos:
                    break
                secs += float(m.group(1)) * _DURATION_UNITS_S[m.group(2)]
                pos = m.end()
            if pos != len(text) or pos == 0:
                raise ConfigError(f"Invalid duration: {text!r} (expected e.g. 300, 90s, 5m, 1h30m)")
    if secs < 0:
        raise ConfigError(f"Negative duration: {value!r}")
    return secs


def parse_listen(value: str) -> Tuple[str, int]:
    """Split `host:port` (host may be empty, IPv6 hosts in brackets)."""
    text = str(value or "").strip()
    host, sep, port_s = text.rpartition(":")
    if not sep:
        raise ConfigError(f"Invalid listen address: {text!r} (expected host:port)")
    host = host.strip("[]")
    try:
        port = int(port_s)
    except ValueError as e:
        raise ConfigError(f"Invalid port in listen address: {text!r}") from e
    if not 0 <= port <= 65535:
        raise ConfigError(f"Port out of range in listen address: {text!r}")
    return (host, port)


def get_log_level(environ: Optional[Mapping[str, str]] = None) -> Optional[int]:
    """Log level from $LOG_LEVEL, or None when unset/invalid."""
    env = os.environ if environ is None else environ
    level_str = str(env.get(ENV_LOG_LEVEL, "") or "").upper()
    if level_str not in VALID_LOG_LEVELS:
        return None
    return getattr(logging, level_str)


def load_config_file(path: Path) -> Dict[str, Any]:
    """Load a YAML mapping of config keys; unknown keys are an error."""
    p = Path(path).expanduser()
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read config file {p}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {p}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {p} must contain a mapping, got {type(raw).__name__}")
    unknown = sorted(str(k) for k in raw if k not in DEFAULTS)
    if unknown:
        raise ConfigError(f"Unknown keys in config file {p}: {', '.join(unknown)}")
    _logger.debug(f"Loaded config file {p}: {sorted(raw)}")
    return dict(raw)


@dataclass(frozen=True)
class Settings:
    base: str
    branch: str
    host: str
    port: int
    project: str = ""
    auth: str = ""
    cache_s: float = 300.0
    title: str = ""
    template: Optional[Path] = None
    timeout_s: float = 30.0
    workers: int = 1

    @property
    def listen(self) -> str:
        return f"{self.host}:{self.port}"


def resolve_settings(
    cli_values: Mapping[str, Any],
    *,
    file_values: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Merge defaults, config file, environment and flags into `Settings`.

    `cli_values` holds flag values; None means "not given on the command line".
    """
    env = os.environ if environ is None else environ
    merged: Dict[str, Any] = dict(DEFAULTS)
    merged.update({k: v for k, v in (file_values or {}).items() if v is not None})
    if env.get(ENV_AUTH):
        merged["auth"] = env[ENV_AUTH]
    merged.update({k: v for k, v in cli_values.items() if k in DEFAULTS and v is not None})

    base = str(merged["base"] or "").strip().rstrip("/")
    if not base:
        raise ConfigError("The TeamCity base URL must not be empty")
    branch = str(merged["branch"] or "").strip()
    if not branch:
        raise ConfigError("The branch must not be empty")

    try:
        workers = int(merged["workers"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid workers value: {merged['workers']!r}") from e
    if workers < 1:
        raise ConfigError(f"workers must be at least 1, got {workers}")

    timeout_s = parse_duration(merged["timeout"])
    if timeout_s <= 0:
        raise ConfigError("timeout must be greater than zero")

    host, port = parse_listen(merged["listen"])
    template = str(merged["template"] or "").strip()
    return Settings(
        base=base,
        branch=branch,
        host=host,
        port=port,
        project=str(merged["project"] or "").strip(),
        auth=str(merged["auth"] or ""),
        cache_s=parse_duration(merged["cache"]),
        title=str(merged["title"] or ""),
        template=Path(template).expanduser() if template else None,
        timeout_s=timeout_s,
        workers=workers,
    )
