from __future__ import annotations
from typing import Any, Dict, List, Optional, Protocol

from .models import Message, ProviderRequest, TokenUsage


class Provider(Protocol):
    """
    One wire format spoken by an LLM backend.
    Providers are stateless: they only translate between the normalized
    message list and the backend's JSON, the client does the HTTP.
    """

    def build_request(
        self,
        messages: List[Message],
        *,
        model: str,
        credential: str,
        base_url: str,
        stream: bool = False,
    ) -> ProviderRequest:
        ...

    def extract_text(self, data: Dict[str, Any]) -> str:
        """Answer text from a complete response body; '' when absent."""
        ...

    def extract_usage(self, data: Dict[str, Any]) -> Optional[TokenUsage]:
        ...

    def extract_stream_fragment(self, frame: Dict[str, Any]) -> str:
        """Text carried by one decoded streaming frame; '' when none."""
        ...


class KeyValueStore(Protocol):
    """
    Minimal local key/value storage the settings record lives in.
    set() raises PersistenceError when the write fails.
    """

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...
