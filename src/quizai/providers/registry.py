from __future__ import annotations
from typing import Callable, Dict, List, Type
from importlib import import_module

from quizai.core.errors import UnsupportedProviderError


class ProviderRegistry:
    _classes: Dict[str, Type] = {}

    @classmethod
    def register(cls, *names: str) -> Callable[[Type], Type]:
        """One adapter class may serve several provider names sharing a wire format."""
        def deco(klass: Type) -> Type:
            for name in names:
                cls._classes[name.lower()] = klass
            return klass
        return deco

    @classmethod
    def get(cls, name: str) -> Type:
        key = (name or "").lower()
        if key not in cls._classes:
            raise UnsupportedProviderError(f"Unsupported AI provider: '{name}'")
        return cls._classes[key]

    @classmethod
    def create(cls, name: str):
        return cls.get(name)()

    @classmethod
    def names(cls) -> List[str]:
        return sorted(cls._classes)

    @classmethod
    def ensure_imports(cls) -> None:
        """
        Import built-in adapters so their @register decorators run.
        Call once before get().
        """
        import_module("quizai.providers.openai_compat")
        import_module("quizai.providers.qwen")
