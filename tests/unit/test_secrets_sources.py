# tests/unit/test_secrets_sources.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest
from keyring.errors import KeyringError

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

import quizai.secrets.sources as src
from quizai.secrets.sources import (
    SecretsResolver,
    build_secret_sources,
)


def test_method_string_and_list(monkeypatch):
    # exact env var name via mapping
    monkeypatch.setenv("DASHSCOPE_API_KEY", "sk-env")
    r1 = SecretsResolver(method="env", mapping={"qwen": {"api_key": "DASHSCOPE_API_KEY"}})
    assert r1.secret("qwen") == "sk-env"

    # service name -> derived env var
    r2 = SecretsResolver(method=["env"], mapping={"qwen": {"api_key": "dashscope"}})
    assert r2.secret("qwen") == "sk-env"


def test_default_services(monkeypatch):
    for name in src.DEFAULT_SERVICES.values():
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DEEPSEEK_API_KEY", " sk-ds ")
    r = SecretsResolver(method="env")
    assert r.secret("deepseek") == "sk-ds"
    assert r.secret("openai") is None


def test_unknown_method_raises():
    with pytest.raises(ValueError):
        build_secret_sources("nope")


def test_keyring_then_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")

    # Fake keyring that returns a value first
    class FakeKeyring:
        def get_credential(self, service, _):
            class Cred:
                password = "sk-from-keyring"
            return Cred()
        def get_password(self, *args, **kwargs):
            return None

    monkeypatch.setattr(src, "keyring", FakeKeyring(), raising=True)

    r = SecretsResolver(method=["keyring", "env"])
    assert r.secret("openai") == "sk-from-keyring"

    # Now make keyring miss -> env wins
    class KR2:
        def get_credential(self, *_): return None
        def get_password(self, *_): return None
    monkeypatch.setattr(src, "keyring", KR2(), raising=True)

    r2 = SecretsResolver(method=["keyring", "env"])
    assert r2.secret("openai") == "sk-from-env"


def test_keyring_backend_failure_is_a_miss(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    class Broken:
        def get_credential(self, *_):
            raise KeyringError("no backend")
        def get_password(self, *_):
            raise KeyringError("no backend")

    monkeypatch.setattr(src, "keyring", Broken(), raising=True)
    assert SecretsResolver(method="keyring").secret("openai") is None
