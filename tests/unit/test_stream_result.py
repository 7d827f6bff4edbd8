# tests/unit/test_stream_result.py

from __future__ import annotations
import json
import sys
import threading
import time
from concurrent.futures import wait
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from quizai.core.errors import StreamCancelledError, TransportError
from quizai.streaming.stream import CancelToken, SharedBody, StreamResult


# -------- helpers --------

class CountingSource:
    """Byte source that records how often it was pulled."""

    def __init__(self, chunks, fail_after=None):
        self.chunks = list(chunks)
        self.pulls = 0
        self.fail_after = fail_after

    def __iter__(self):
        for chunk in self.chunks:
            if self.fail_after is not None and self.pulls >= self.fail_after:
                raise TransportError("connection reset")
            self.pulls += 1
            yield chunk


class Closer:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


def _frame(text: str) -> bytes:
    return ("data: " + json.dumps({"choices": [{"delta": {"content": text}}]}) + "\n").encode()


def _extract(frame):
    return frame["choices"][0]["delta"]["content"]


# -------- SharedBody --------

def test_two_readers_see_same_bytes_from_one_pull():
    src = CountingSource([b"a", b"b", b"c"])
    closer = Closer()
    body = SharedBody(src, readers=2, on_close=closer)

    first = list(body.reader())
    second = list(body.reader())

    assert first == second == [b"a", b"b", b"c"]
    assert src.pulls == 3
    assert closer.calls == 1
    assert body.closed


def test_interleaved_readers():
    body = SharedBody(CountingSource([b"1", b"2"]), readers=2)
    r1, r2 = body.reader(), body.reader()
    assert next(r1) == b"1"
    assert next(r2) == b"1"
    assert next(r2) == b"2"
    assert next(r1) == b"2"
    assert list(r1) == [] and list(r2) == []


def test_abandoning_every_reader_closes_transport():
    closer = Closer()
    body = SharedBody(CountingSource([b"1", b"2", b"3"]), readers=2, on_close=closer)
    r1, r2 = body.reader(), body.reader()
    next(r1)
    next(r2)
    r1.close()
    assert closer.calls == 0
    r2.close()
    assert closer.calls == 1


def test_finish_ends_readers_after_buffered_data():
    closer = Closer()
    src = CountingSource([b"1", b"2", b"3"])
    body = SharedBody(src, readers=2, on_close=closer)
    r1 = body.reader()
    assert next(r1) == b"1"
    body.finish()
    assert closer.calls == 1
    assert list(body.reader()) == [b"1"]
    assert src.pulls == 1


def test_cancel_is_checked_on_transport_reads():
    token = CancelToken()
    closer = Closer()
    body = SharedBody(CountingSource([b"1", b"2"]), cancel=token, on_close=closer)
    r1, r2 = body.reader(), body.reader()
    assert next(r1) == b"1"
    token.cancel()
    # already-buffered data is still replayed
    assert next(r2) == b"1"
    with pytest.raises(StreamCancelledError):
        next(r1)
    with pytest.raises(StreamCancelledError):
        next(r2)
    assert closer.calls == 1


def test_read_failure_reaches_each_reader():
    closer = Closer()
    body = SharedBody(CountingSource([b"1", b"2"], fail_after=1), on_close=closer)
    r1, r2 = body.reader(), body.reader()
    assert next(r1) == b"1"
    with pytest.raises(TransportError):
        next(r1)
    assert next(r2) == b"1"
    with pytest.raises(TransportError):
        next(r2)
    assert closer.calls == 1



def test_chunks_both_readers_passed_are_dropped():
    body = SharedBody(CountingSource([b"1", b"2", b"3"]), readers=2)
    r1, r2 = body.reader(), body.reader()
    assert [next(r1), next(r1)] == [b"1", b"2"]
    assert len(body._chunks) == 2
    assert next(r2) == b"1"
    assert len(body._chunks) == 1
    assert list(r2) == [b"2", b"3"]
    assert list(r1) == [b"3"]
    assert body._chunks == []


def test_nothing_dropped_until_every_reader_opened():
    body = SharedBody(CountingSource([b"1", b"2"]), readers=2)
    assert list(body.reader()) == [b"1", b"2"]
    assert list(body.reader()) == [b"1", b"2"]


# -------- StreamResult --------

def test_chunks_and_full_text_agree():
    data = [_frame("Hel"), _frame("lo "), b"data: {oops}\n", _frame("world"), b"data: [DONE]\n"]
    closer = Closer()
    result = StreamResult.start(iter(data), _extract, on_close=closer)

    assert list(result.chunks) == ["Hel", "lo ", "world"]
    assert result.full_text.result(timeout=5) == "Hello world"
    assert closer.calls == 1


def test_full_text_without_reading_chunks():
    closer = Closer()
    result = StreamResult.start(iter([_frame("a"), _frame("b")]), _extract, on_close=closer)
    assert result.full_text.result(timeout=5) == "ab"
    # transport released even though the chunk view was never touched
    assert closer.calls == 1
    assert list(result) == ["a", "b"]


def test_full_text_fails_when_transport_fails():
    src = CountingSource([_frame("a"), _frame("b")], fail_after=1)
    result = StreamResult.start(iter(src), _extract)
    with pytest.raises(TransportError):
        result.full_text.result(timeout=5)


def test_context_manager_closes_early():
    closer = Closer()
    with StreamResult.start(iter([_frame("a"), _frame("b")]), _extract, on_close=closer) as result:
        assert next(iter(result)) == "a"
    # the background decoder either finished or saw the cancellation
    done, _ = wait([result.full_text], timeout=5)
    assert done
    assert closer.calls == 1


class StallingSource:
    """Yields one frame, then blocks until let_go is set."""

    def __init__(self):
        self.stalled = threading.Event()
        self.let_go = threading.Event()

    def __iter__(self):
        yield _frame("first")
        self.stalled.set()
        self.let_go.wait(5)
        yield _frame("second")


def test_buffered_fragment_not_held_behind_other_views_read():
    src = StallingSource()
    result = StreamResult.start(iter(src), _extract)
    # the full-text thread has taken "first" and is now blocked on the network
    assert src.stalled.wait(5)
    try:
        began = time.monotonic()
        assert next(iter(result)) == "first"
        assert time.monotonic() - began < 1.0
    finally:
        src.let_go.set()
    assert next(iter(result)) == "second"
    assert result.full_text.result(timeout=5) == "firstsecond"


def test_close_does_not_wait_for_blocked_read():
    src = StallingSource()
    closer = Closer()
    result = StreamResult.start(iter(src), _extract, on_close=closer)
    assert src.stalled.wait(5)
    try:
        assert next(iter(result)) == "first"
        began = time.monotonic()
        result.close()
        assert time.monotonic() - began < 1.0
    finally:
        src.let_go.set()
    with pytest.raises(StreamCancelledError):
        result.full_text.result(timeout=5)
    assert closer.calls == 1
