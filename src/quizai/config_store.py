# src/quizai/config_store.py

from __future__ import annotations
import json
import logging
from dataclasses import replace
from typing import Any, List, Mapping, Optional, Union

from .core.errors import PersistenceError, UnsupportedProviderError
from .core.models import DISCLOSURE_POLICIES, SUPPORTED_PROVIDERS, ProviderConfig
from .core.ports import KeyValueStore
from .secrets.sources import SecretsResolver

logger = logging.getLogger(__name__)

CONFIG_KEY = "ai_config"

PROVIDER_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "deepseek": "https://api.deepseek.com/v1",
    "qwen": "https://dashscope.aliyuncs.com/api/v1",
    "custom": "",
}


def mask_secret(value: str) -> str:
    if not value:
        return "(not set)"
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:3]}...{value[-4:]}"


def resolve_endpoint(provider: str, override: Optional[str] = None) -> str:
    """The override wins; otherwise the provider's well-known base URL ('' for custom)."""
    if override:
        return override
    try:
        return PROVIDER_BASE_URLS[provider]
    except KeyError:
        raise UnsupportedProviderError(f"Unsupported AI provider: '{provider}'") from None


def validate_config(config: Union[ProviderConfig, Mapping[str, Any]]) -> List[str]:
    """
    Returns every problem at once; empty list means the config is usable.
    Accepts a partial mapping (e.g. a settings form) or a ProviderConfig.
    """
    data = config.to_dict() if isinstance(config, ProviderConfig) else dict(config)
    provider = str(data.get("provider") or "").strip()
    errors: List[str] = []

    if not provider:
        errors.append("Please choose an AI provider")
    elif provider not in SUPPORTED_PROVIDERS:
        errors.append(f"Unknown AI provider '{provider}' (expected one of {', '.join(SUPPORTED_PROVIDERS)})")

    if not str(data.get("credential") or "").strip():
        errors.append("Please enter an API key")

    if not str(data.get("model") or "").strip():
        errors.append("Please choose a model")

    if provider == "custom" and not str(data.get("endpoint") or "").strip():
        errors.append("A custom provider needs an API endpoint URL")

    policy = data.get("disclosure_policy")
    if policy is not None and policy not in DISCLOSURE_POLICIES:
        errors.append(f"Unknown disclosure policy '{policy}' (expected one of {', '.join(DISCLOSURE_POLICIES)})")

    return errors


class ConfigStore:
    """
    The AI settings record, kept as JSON under one key of a KeyValueStore.
    - get() never fails: missing or corrupt data means defaults
    - set() raises PersistenceError when the store cannot be written
    - an optional SecretsResolver fills a blank credential (not persisted)
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        key: str = CONFIG_KEY,
        secrets: Optional[SecretsResolver] = None,
    ):
        self._store = store
        self._key = key
        self._secrets = secrets

    def get(self) -> ProviderConfig:
        config = ProviderConfig.from_dict({**ProviderConfig().to_dict(), **self._load_saved()})
        if not config.credential and self._secrets is not None:
            found = self._secrets.secret(config.provider)
            if found:
                config = replace(config, credential=found)
        return config

    def set(self, config: ProviderConfig) -> None:
        payload = json.dumps(config.to_dict(), ensure_ascii=False)
        try:
            self._store.set(self._key, payload)
        except OSError as e:
            raise PersistenceError(f"Failed to save AI settings: {e}") from e

    def is_configured(self, config: Optional[ProviderConfig] = None) -> bool:
        config = config or self.get()
        return bool(config.credential)

    resolve_endpoint = staticmethod(resolve_endpoint)
    validate = staticmethod(validate_config)

    # Internal helpers

    def _load_saved(self) -> dict:
        try:
            raw = self._store.get(self._key)
        except (OSError, PersistenceError) as e:
            logger.warning("Could not read AI settings, using defaults: %s", e)
            return {}
        if not raw:
            return {}
        try:
            saved = json.loads(raw)
        except ValueError:
            logger.warning("Stored AI settings are corrupt, using defaults")
            return {}
        if not isinstance(saved, dict):
            logger.warning("Stored AI settings are not an object, using defaults")
            return {}
        return saved
