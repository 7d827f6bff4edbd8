from __future__ import annotations
import json
import logging
from typing import Iterator, List, Optional, Tuple

import httpx

from quizai.config_store import ConfigStore, resolve_endpoint
from quizai.core.context import build_context, build_messages, format_question
from quizai.core.errors import ApiError, NotConfiguredError, TransportError
from quizai.core.models import ChatResult, ProviderRequest, Question
from quizai.core.ports import Provider
from quizai.providers.registry import ProviderRegistry
from quizai.streaming.stream import CancelToken, StreamResult

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "The AI service is not configured yet. Add an API key in the AI settings first."


def _iter_body(response: httpx.Response) -> Iterator[bytes]:
    try:
        yield from response.iter_bytes()
    except httpx.TransportError as e:
        raise TransportError(f"Stream interrupted: {e}") from e


class ProviderClient:
    """
    Sends one question to the configured LLM backend.

    Every call reads the settings fresh from the ConfigStore, builds the
    [system, user] message pair, lets the provider adapter shape the request,
    and issues exactly one POST. Nothing is retried.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        *,
        http_client: Optional[httpx.Client] = None,
        timeout: float = 60.0,
    ):
        self.config_store = config_store
        self._http = http_client or httpx.Client(timeout=timeout)
        ProviderRegistry.ensure_imports()

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "ProviderClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ----- plain calls -----

    def chat(self, user_question: str, context: Optional[str] = None) -> ChatResult:
        provider, request = self._prepare(user_question, context, stream=False)
        response = self._send(request)
        status = response.status_code
        parts: List[bytes] = []
        try:
            for part in response.iter_bytes():
                parts.append(part)
        except httpx.HTTPError as e:
            body = b"".join(parts).decode("utf-8", errors="replace")
            logger.warning("AI response from %s broke off mid-body: %s", request.url, e)
            raise ApiError(f"API response could not be read ({status}): {e}", status=status, body=body) from e
        finally:
            response.close()

        raw = b"".join(parts)
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ApiError(
                f"API returned an unreadable body ({status})",
                status=status,
                body=raw.decode("utf-8", errors="replace"),
            ) from e
        if not isinstance(data, dict):
            data = {}
        return ChatResult(text=provider.extract_text(data), usage=provider.extract_usage(data))

    def chat_stream(
        self,
        user_question: str,
        context: Optional[str] = None,
        *,
        cancel: Optional[CancelToken] = None,
    ) -> StreamResult:
        provider, request = self._prepare(user_question, context, stream=True)
        cancel = cancel or CancelToken()
        cancel.raise_if_cancelled()
        response = self._send(request)
        return StreamResult.start(
            _iter_body(response),
            provider.extract_stream_fragment,
            cancel=cancel,
            on_close=response.close,
        )

    # ----- quiz helpers -----

    def ask_about_question(self, user_question: str, title: str, body: str) -> ChatResult:
        return self.chat(user_question, format_question(title, body))

    def ask_about_question_stream(self, user_question: str, title: str, body: str, **kwargs) -> StreamResult:
        return self.chat_stream(user_question, format_question(title, body), **kwargs)

    def ask_about_question_with_context(
        self, user_question: str, question: Question, is_submitted: bool
    ) -> ChatResult:
        policy = self.config_store.get().disclosure_policy
        return self.chat(user_question, build_context(question, is_submitted, policy))

    def ask_about_question_with_context_stream(
        self, user_question: str, question: Question, is_submitted: bool, **kwargs
    ) -> StreamResult:
        policy = self.config_store.get().disclosure_policy
        return self.chat_stream(user_question, build_context(question, is_submitted, policy), **kwargs)

    # ----- internals -----

    def _prepare(
        self, user_question: str, context: Optional[str], *, stream: bool
    ) -> Tuple[Provider, ProviderRequest]:
        config = self.config_store.get()
        if not self.config_store.is_configured(config):
            raise NotConfiguredError(NOT_CONFIGURED)

        provider = ProviderRegistry.create(config.provider)
        base_url = resolve_endpoint(config.provider, config.endpoint)
        if not base_url:
            raise NotConfiguredError("The custom AI provider needs an API endpoint URL in the AI settings.")

        messages = build_messages(user_question, context)
        request = provider.build_request(
            messages,
            model=config.model,
            credential=config.credential,
            base_url=base_url,
            stream=stream,
        )
        logger.info("AI request provider=%s model=%s stream=%s url=%s", config.provider, config.model, stream, request.url)
        return provider, request

    def _send(self, request: ProviderRequest) -> httpx.Response:
        """POST and return once headers arrive; the caller reads and closes the body."""
        try:
            http_request = self._http.build_request("POST", request.url, json=request.body, headers=request.headers)
            response = self._http.send(http_request, stream=True)
        except (httpx.TransportError, httpx.InvalidURL) as e:
            logger.warning("AI request to %s failed: %s", request.url, e)
            raise TransportError(f"Could not reach the AI service at {request.url}: {e}") from e

        if response.is_success:
            return response

        status = response.status_code
        try:
            body = response.read().decode("utf-8", errors="replace")
        except httpx.HTTPError:
            body = ""
        finally:
            response.close()
        logger.warning("AI request to %s returned %s", request.url, status)
        raise ApiError(f"API call failed ({status}): {body}", status=status, body=body)
