from __future__ import annotations
from typing import Optional


class QuizAIError(Exception):
    """Base class for everything this package raises on purpose."""


class NotConfiguredError(QuizAIError):
    """
    The AI service cannot be used yet (no API key, or a custom provider without
    an endpoint). Raised before any network call; the fix is to edit settings.
    """


class PersistenceError(QuizAIError):
    """Writing the settings record to local storage failed."""


class ProviderError(QuizAIError):
    """Base class for provider-level failures."""


class ApiError(ProviderError):
    """
    The provider answered with a non-2xx status, or with a body that could not
    be read. Carries the HTTP status (if any) and the raw body text.
    """

    def __init__(self, message: str, *, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class TransportError(ProviderError):
    """Network or connection failure; no HTTP response was received."""


class UnsupportedProviderError(ProviderError):
    """A provider name reached dispatch that no adapter handles."""


class StreamCancelledError(ProviderError):
    """The caller cancelled a streaming answer."""


class DecodeError(ProviderError):
    """
    One streaming frame could not be decoded. Soft: the decoder logs and skips
    the frame, it never reaches the caller.
    """
