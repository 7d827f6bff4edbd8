from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from dotenv import load_dotenv

from .config_loader import load_config
from .config_store import ConfigStore
from .core.provider_client import ProviderClient
from .secrets.sources import SecretsResolver
from .storage.kv import JsonFileStore, MemoryStore

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.WARNING), format=LOG_FORMAT)
    # httpx logs every request at INFO; keep it quiet unless debugging
    logging.getLogger("httpx").setLevel(logging.DEBUG if level.upper() == "DEBUG" else logging.WARNING)


def build_app(
    config_path: Path,
    repo_root: Optional[Path] = None,
    *,
    http_client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """
    Composition root: load YAML, build the settings store and the provider client.
    Returns: dict with cfg, paths, config_store, client.
    """
    load_dotenv()
    cfg = load_config(config_path)
    config_dir = config_path.resolve().parent
    repo_root = repo_root or Path(__file__).resolve().parents[2]

    configure_logging(cfg["logging"]["level"])

    # ----- Settings storage -----
    backend = cfg["storage"]["backend"]
    settings_path = Path(cfg["storage"]["path"])
    if not settings_path.is_absolute():
        settings_path = (repo_root / settings_path).resolve()
    store = JsonFileStore(settings_path) if backend == "file" else MemoryStore()

    # ----- Secrets -----
    secrets_cfg = cfg.get("secrets") or {}
    resolver = SecretsResolver(
        method=secrets_cfg.get("method", "env"),
        mapping=secrets_cfg.get("mapping") or {},
    )

    config_store = ConfigStore(store, secrets=resolver)
    client = ProviderClient(config_store, http_client=http_client, timeout=float(cfg["http"]["timeout"]))

    return {
        "cfg": cfg,
        "paths": {"config_dir": config_dir, "repo_root": repo_root, "settings_path": settings_path},
        "config_store": config_store,
        "client": client,
    }
