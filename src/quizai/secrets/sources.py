# src/quizai/secrets/sources.py

from __future__ import annotations
from typing import Protocol, Optional, Dict, Iterable, List, Union
import getpass
import os

import keyring
from keyring.errors import KeyringError

# Where each provider's key lives when the mapping does not say otherwise
DEFAULT_SERVICES: Dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "qwen": "DASHSCOPE_API_KEY",
    "custom": "QUIZAI_API_KEY",
}


class SecretSource(Protocol):
    def get(self, service: str) -> Optional[str]: ...


class EnvSource:
    def get(self, service: str) -> Optional[str]:
        # 1) exact env var name
        val = os.getenv(service)
        if val and val.strip():
            return val.strip()
        # 2) derived name, e.g. "deepseek" -> DEEPSEEK_API_KEY
        derived = f"{service.upper()}_API_KEY"
        val = os.getenv(derived)
        if val and val.strip():
            return val.strip()
        return None


class SystemKeyringSource:
    """OS keyring (macOS Keychain, Secret Service, Windows Credential Locker)."""

    def get(self, service: str) -> Optional[str]:
        try:
            cred = keyring.get_credential(service, None)
            if cred and cred.password:
                return cred.password.strip()
            for account in ("API_KEY", "default", getpass.getuser()):
                val = keyring.get_password(service, account)
                if val:
                    return val.strip()
        except KeyringError:
            return None
        return None


_ALLOWED_METHODS = {"env", "keyring"}


def _normalise_methods(method: Union[str, Iterable[str]]) -> List[str]:
    methods = [method] if isinstance(method, str) else list(method)
    norm = []
    for m in methods:
        key = str(m).strip().lower()
        if key not in _ALLOWED_METHODS:
            raise ValueError(f"Unknown secrets method '{m}'. Allowed: {sorted(_ALLOWED_METHODS)}")
        if key not in norm:
            norm.append(key)
    return norm


def build_secret_sources(method: Union[str, Iterable[str]]) -> List[SecretSource]:
    sources: List[SecretSource] = []
    for name in _normalise_methods(method):
        if name == "env":
            sources.append(EnvSource())
        elif name == "keyring":
            sources.append(SystemKeyringSource())
    return sources


class SecretsResolver:
    """
    Look up a provider's API key using one or more methods in order.
    mapping: per-provider map of names -> service/env-key
      e.g. { "qwen": { "api_key": "DASHSCOPE_API_KEY" } }
    """
    def __init__(self, method: Union[str, Iterable[str]], mapping: Dict[str, Dict[str, str]] | None = None):
        self._sources = build_secret_sources(method)
        self._map = mapping or {}

    def secret(self, provider: str, name: str = "api_key") -> Optional[str]:
        service = self._map.get(provider, {}).get(name) or DEFAULT_SERVICES.get(provider, provider)
        for src in self._sources:
            val = src.get(service)
            if val:
                return val
        return None
