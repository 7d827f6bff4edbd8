# tests/unit/test_sse_decoder.py

from __future__ import annotations
import json
import sys
from pathlib import Path

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from quizai.streaming.sse import iter_fragments, iter_frames


def _delta(text: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": text}}]}, ensure_ascii=False) + "\n"


def _extract(frame):
    return frame["choices"][0]["delta"].get("content") or ""


STREAM = (
    ": keep-alive comment\n"
    + _delta("Binär")
    + "\n"
    + _delta("suche ist ")
    + "event: ping\n"
    + _delta("O(log n) ✓")
    + "data: [DONE]\n"
).encode("utf-8")


def _split_every(data: bytes, size: int):
    return [data[i:i + size] for i in range(0, len(data), size)]


def test_single_chunk():
    assert list(iter_fragments([STREAM], _extract)) == ["Binär", "suche ist ", "O(log n) ✓"]


def test_any_chunk_boundary_gives_same_fragments():
    expected = list(iter_fragments([STREAM], _extract))
    # every two-way split, including inside "ä" and "✓" and mid-line
    for cut in range(1, len(STREAM)):
        assert list(iter_fragments([STREAM[:cut], STREAM[cut:]], _extract)) == expected
    for size in (1, 2, 3, 7):
        assert list(iter_fragments(_split_every(STREAM, size), _extract)) == expected


def test_done_stops_even_with_more_bytes_buffered():
    data = (_delta("one") + "data: [DONE]\n" + _delta("two")).encode()
    assert list(iter_fragments([data], _extract)) == ["one"]


def test_malformed_frame_is_skipped():
    data = (_delta("first") + "data: {not-json}\n" + "data: [1, 2]\n" + _delta("second")).encode()
    assert list(iter_fragments([data], _extract)) == ["first", "second"]


def test_incomplete_last_line_is_not_emitted():
    data = (_delta("kept") + _delta("dropped")[:-1]).encode()
    assert list(iter_fragments([data], _extract)) == ["kept"]


def test_crlf_and_missing_space_prefix():
    data = (_delta("a").replace("\n", "\r\n") + 'data:{"choices":[{"delta":{"content":"x"}}]}\n').encode()
    assert list(iter_fragments([data], _extract)) == ["a"]


def test_empty_fragments_are_not_emitted():
    data = (_delta("") + "data: " + json.dumps({"choices": [{"delta": {}}]}) + "\n" + _delta("z")).encode()
    assert list(iter_fragments([data], _extract)) == ["z"]


class _TrackingSource:
    def __init__(self, chunks):
        self._it = iter(chunks)
        self.closed = False

    def __iter__(self):
        return self

    def __next__(self):
        return next(self._it)

    def close(self):
        self.closed = True


def test_reader_closed_on_done_eof_and_abandon():
    done = _TrackingSource([(_delta("a") + "data: [DONE]\n").encode(), _delta("b").encode()])
    assert list(iter_fragments(done, _extract)) == ["a"]
    assert done.closed

    eof = _TrackingSource([_delta("a").encode()])
    assert list(iter_frames(eof)) == [{"choices": [{"delta": {"content": "a"}}]}]
    assert eof.closed

    abandoned = _TrackingSource([_delta("a").encode(), _delta("b").encode()])
    gen = iter_fragments(abandoned, _extract)
    assert next(gen) == "a"
    gen.close()
    assert abandoned.closed
