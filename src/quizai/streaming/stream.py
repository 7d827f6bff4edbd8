from __future__ import annotations
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from quizai.core.errors import StreamCancelledError
from quizai.streaming.sse import iter_fragments

logger = logging.getLogger(__name__)


class CancelToken:
    """Shared flag checked before every read of a streaming body."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise StreamCancelledError("Stream was cancelled")


class SharedBody:
    """
    Reads a response body once and replays it to several readers.

    Each reader() has its own cursor over the chunks pulled from the transport.
    Only one reader fetches at a time, and it does so without holding the lock,
    so buffered chunks, release() and finish() never wait on the network.
    Chunks every reader has moved past are dropped; while a reader slot is
    still unopened nothing is dropped, so a late reader starts from the top.

    The transport is closed (on_close) exactly once: when the body is
    exhausted, a read fails, the token is cancelled, finish() is called, or
    every reader has been released. A read failure is re-raised to every
    reader that reaches it.
    """

    def __init__(
        self,
        source: Iterable[bytes],
        *,
        readers: int = 2,
        cancel: Optional[CancelToken] = None,
        on_close: Optional[Callable[[], None]] = None,
    ):
        self._source = iter(source)
        self._cancel = cancel or CancelToken()
        self._on_close = on_close
        self._chunks: List[bytes] = []
        self._offset = 0  # absolute index of self._chunks[0]
        self._cursors: Dict[int, int] = {}
        self._unopened = readers
        self._next_slot = 0
        self._fetching = False
        self._exhausted = False
        self._error: Optional[BaseException] = None
        self._closed = False
        self._cond = threading.Condition()

    @property
    def closed(self) -> bool:
        return self._closed

    def reader(self) -> Iterator[bytes]:
        with self._cond:
            slot = self._next_slot
            self._next_slot += 1
            self._unopened = max(0, self._unopened - 1)
            self._cursors[slot] = 0
        return self._read(slot)

    def finish(self) -> None:
        """Stop reading the transport; readers see end-of-body past what is buffered."""
        with self._cond:
            self._exhausted = True
            self._close_locked()
            self._cond.notify_all()

    def release(self) -> None:
        """Give up a reader slot that will never be opened."""
        with self._cond:
            self._unopened = max(0, self._unopened - 1)
            self._after_leave_locked()

    # Internal helpers

    def _read(self, slot: int) -> Iterator[bytes]:
        try:
            while True:
                chunk = self._next_for(slot)
                if chunk is None:
                    return
                yield chunk
        finally:
            with self._cond:
                self._cursors.pop(slot, None)
                self._after_leave_locked()

    def _next_for(self, slot: int) -> Optional[bytes]:
        while True:
            with self._cond:
                while True:
                    pos = self._cursors[slot] - self._offset
                    if pos < len(self._chunks):
                        chunk = self._chunks[pos]
                        self._cursors[slot] += 1
                        self._trim_locked()
                        return chunk
                    if self._exhausted:
                        return None
                    if self._error is None and self._cancel.cancelled:
                        logger.info("Streaming answer cancelled after %d chunk(s)", self._offset + len(self._chunks))
                        self._error = StreamCancelledError("Stream was cancelled")
                        self._close_locked()
                        self._cond.notify_all()
                    if self._error is not None:
                        raise self._error
                    if not self._fetching:
                        self._fetching = True
                        break
                    self._cond.wait()

            try:
                chunk = next(self._source)
            except StopIteration:
                with self._cond:
                    self._fetching = False
                    self._exhausted = True
                    self._close_locked()
                    self._cond.notify_all()
                return None
            except Exception as e:
                with self._cond:
                    self._fetching = False
                    self._cond.notify_all()
                    if self._exhausted:
                        return None
                    if self._error is None:
                        self._error = e
                    self._close_locked()
                raise

            with self._cond:
                self._fetching = False
                # finish() may have landed while the read was in flight
                if not self._exhausted:
                    self._chunks.append(chunk)
                self._cond.notify_all()

    def _trim_locked(self) -> None:
        if self._unopened or not self._cursors:
            return
        drop = min(self._cursors.values()) - self._offset
        if drop > 0:
            del self._chunks[:drop]
            self._offset += drop

    def _after_leave_locked(self) -> None:
        self._trim_locked()
        if not self._cursors and not self._unopened:
            self._close_locked()
        self._cond.notify_all()

    def _close_locked(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close()


class StreamResult:
    """
    A streaming answer seen two ways over the same response:
    - chunks: single-pass iterator of text fragments, pulled by the caller
    - full_text: Future resolving to the concatenation of every fragment,
      decoded by a background thread

    Neither view waits for the other. Use as a context manager (or call close())
    when abandoning the stream early; cancel() may be called from any thread.
    """

    def __init__(self, chunks: Iterator[str], full_text: "Future[str]", cancel: CancelToken):
        self.chunks = chunks
        self.full_text = full_text
        self._cancel = cancel

    @classmethod
    def start(
        cls,
        source: Iterable[bytes],
        extract: Callable[[Dict[str, Any]], str],
        *,
        cancel: Optional[CancelToken] = None,
        on_close: Optional[Callable[[], None]] = None,
    ) -> "StreamResult":
        cancel = cancel or CancelToken()
        body = SharedBody(source, readers=2, cancel=cancel, on_close=on_close)

        future: "Future[str]" = Future()

        def run() -> None:
            if not future.set_running_or_notify_cancel():
                body.release()
                return
            try:
                text = "".join(iter_fragments(body.reader(), extract))
            except Exception as e:
                future.set_exception(e)
                return
            # Both decoders stop at the same frame, so nothing past this point is needed.
            body.finish()
            future.set_result(text)

        threading.Thread(target=run, name="quizai-full-text", daemon=True).start()
        return cls(iter_fragments(body.reader(), extract), future, cancel)

    def __iter__(self) -> Iterator[str]:
        return self.chunks

    def cancel(self) -> None:
        self._cancel.cancel()

    def close(self) -> None:
        self._cancel.cancel()
        close = getattr(self.chunks, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "StreamResult":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
