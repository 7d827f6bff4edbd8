# src/quizai/config_loader.py

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict
import yaml


class ConfigError(ValueError):
    pass


def _require(d: Dict[str, Any], dotted: str, typ: type) -> Any:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            raise ConfigError(f"Missing config key: {dotted}")
        cur = cur[k]
    if typ is str and not isinstance(cur, str):
        raise ConfigError(f"'{dotted}' must be a string")
    if typ is float and (isinstance(cur, bool) or not isinstance(cur, (int, float))):
        raise ConfigError(f"'{dotted}' must be a number")
    return cur


def load_config(path: Path) -> Dict[str, Any]:
    if not path or not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    raw = yaml.safe_load(path.read_text())
    if not isinstance(raw, dict) or not raw:
        raise ConfigError(f"Config is empty or invalid YAML: {path}")

    # Validate required keys (no defaults here)
    _require(raw, "storage.backend", str)   # 'file' or 'memory'
    _require(raw, "storage.path", str)      # settings file, relative to repo root
    _require(raw, "http.timeout", float)    # seconds
    _require(raw, "logging.level", str)

    # Normalise enumerations
    backend = str(raw["storage"]["backend"]).lower()
    if backend not in ("file", "memory"):
        raise ConfigError(f"Unknown storage.backend '{backend}' (expected 'file' or 'memory').")
    raw["storage"]["backend"] = backend

    if raw["http"]["timeout"] <= 0:
        raise ConfigError("'http.timeout' must be positive")

    level = str(raw["logging"]["level"]).upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigError(f"Unknown logging.level '{level}'.")
    raw["logging"]["level"] = level

    secrets = raw.get("secrets")
    if secrets is not None and not isinstance(secrets, dict):
        raise ConfigError("'secrets' must be a mapping")

    # Leave paths as provided; resolve them later in bootstrap
    return raw
