# src/quizai/providers/openai_compat.py
from __future__ import annotations
from typing import Any, Dict, List, Optional

from quizai.core.models import Message, ProviderRequest, TokenUsage
from quizai.providers.base import MAX_TOKENS, TEMPERATURE, auth_headers, join_url, text_at, usage_from
from quizai.providers.registry import ProviderRegistry


@ProviderRegistry.register("openai", "deepseek", "custom")
class OpenAICompatibleProvider:
    """
    Chat Completions wire format. DeepSeek and user-supplied endpoints speak the
    same dialect, so they share this adapter.
    - request:  POST {base}/chat/completions {model, messages, temperature, max_tokens[, stream]}
    - answer:   choices[0].message.content
    - stream:   choices[0].delta.content per frame
    """

    path = "/chat/completions"

    def build_request(
        self,
        messages: List[Message],
        *,
        model: str,
        credential: str,
        base_url: str,
        stream: bool = False,
    ) -> ProviderRequest:
        body: Dict[str, Any] = {
            "model": model,
            "messages": list(messages),
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
        }
        if stream:
            body["stream"] = True
        return ProviderRequest(
            url=join_url(base_url, self.path),
            body=body,
            headers=auth_headers(credential),
        )

    def extract_text(self, data: Dict[str, Any]) -> str:
        return text_at(data, "choices", 0, "message", "content")

    def extract_usage(self, data: Dict[str, Any]) -> Optional[TokenUsage]:
        return usage_from(data, "prompt_tokens", "completion_tokens")

    def extract_stream_fragment(self, frame: Dict[str, Any]) -> str:
        return text_at(frame, "choices", 0, "delta", "content")
