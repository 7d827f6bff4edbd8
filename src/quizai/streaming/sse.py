# src/quizai/streaming/sse.py
from __future__ import annotations
import codecs
import json
import logging
from contextlib import closing
from typing import Any, Callable, Dict, Iterable, Iterator

from quizai.core.errors import DecodeError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def parse_frame(payload: str) -> Dict[str, Any]:
    try:
        frame = json.loads(payload)
    except ValueError as e:
        raise DecodeError(f"Malformed stream frame: {e}") from e
    if not isinstance(frame, dict):
        raise DecodeError("Stream frame is not a JSON object")
    return frame


def iter_frames(byte_chunks: Iterable[bytes]) -> Iterator[Dict[str, Any]]:
    """
    Decode raw SSE bytes into JSON frames.
    - bytes are decoded incrementally, so a character split across two network
      chunks comes out whole
    - only complete lines are looked at; the unterminated tail waits for the
      next chunk and is dropped at end of stream
    - 'data: [DONE]' ends the sequence
    - malformed frames are logged and skipped
    The byte iterator is closed however the loop ends.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    chunks = iter(byte_chunks)
    try:
        for chunk in chunks:
            buffer += decoder.decode(chunk)
            lines = buffer.split("\n")
            buffer = lines.pop()
            for line in lines:
                line = line.strip()
                if not line or not line.startswith(DATA_PREFIX):
                    continue
                payload = line[len(DATA_PREFIX):]
                if payload == DONE_SENTINEL:
                    return
                try:
                    frame = parse_frame(payload)
                except DecodeError as e:
                    logger.debug("Skipping stream frame: %s", e)
                    continue
                yield frame
    finally:
        close = getattr(chunks, "close", None)
        if close is not None:
            close()


def iter_fragments(
    byte_chunks: Iterable[bytes],
    extract: Callable[[Dict[str, Any]], str],
) -> Iterator[str]:
    """Non-empty text fragments, in arrival order."""
    with closing(iter_frames(byte_chunks)) as frames:
        for frame in frames:
            piece = extract(frame)
            if piece:
                yield piece
