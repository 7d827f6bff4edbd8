from __future__ import annotations
from typing import Any, Dict, List, Optional

from quizai.core.models import Message, ProviderRequest, TokenUsage
from quizai.providers.base import MAX_TOKENS, TEMPERATURE, auth_headers, join_url, text_at, usage_from
from quizai.providers.registry import ProviderRegistry


@ProviderRegistry.register("qwen")
class QwenProvider:
    """
    DashScope text-generation API.
    Messages are nested under "input", sampling options under "parameters".
    Streaming is switched on by a header rather than a body flag, and each SSE
    frame carries only the new text because incremental_output is set.
    """

    path = "/services/aigc/text-generation/generation"

    def build_request(
        self,
        messages: List[Message],
        *,
        model: str,
        credential: str,
        base_url: str,
        stream: bool = False,
    ) -> ProviderRequest:
        parameters: Dict[str, Any] = {"temperature": TEMPERATURE, "max_tokens": MAX_TOKENS}
        headers = auth_headers(credential)
        if stream:
            parameters["incremental_output"] = True
            headers["X-DashScope-SSE"] = "enable"
        return ProviderRequest(
            url=join_url(base_url, self.path),
            body={"model": model, "input": {"messages": list(messages)}, "parameters": parameters},
            headers=headers,
        )

    def extract_text(self, data: Dict[str, Any]) -> str:
        return text_at(data, "output", "choices", 0, "message", "content")

    def extract_usage(self, data: Dict[str, Any]) -> Optional[TokenUsage]:
        return usage_from(data, "input_tokens", "output_tokens")

    def extract_stream_fragment(self, frame: Dict[str, Any]) -> str:
        return text_at(frame, "output", "choices", 0, "message", "content")
