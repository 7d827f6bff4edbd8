from __future__ import annotations
from typing import Any, Dict, Optional

from quizai.core.models import TokenUsage

TEMPERATURE = 0.7
MAX_TOKENS = 2000


def join_url(base_url: str, path: str) -> str:
    return base_url.rstrip("/") + path


def auth_headers(credential: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {credential}",
        "Content-Type": "application/json",
    }


def dig(data: Any, *path: Any) -> Any:
    """Walk nested dicts/lists; None as soon as a step is missing."""
    cur = data
    for step in path:
        if isinstance(step, int):
            if not isinstance(cur, list) or not -len(cur) <= step < len(cur):
                return None
        elif not isinstance(cur, dict) or step not in cur:
            return None
        cur = cur[step]
    return cur


def text_at(data: Any, *path: Any) -> str:
    value = dig(data, *path)
    return value if isinstance(value, str) else ""


def usage_from(data: Any, prompt_key: str, completion_key: str) -> Optional[TokenUsage]:
    usage = dig(data, "usage")
    if not isinstance(usage, dict):
        return None
    return TokenUsage(
        prompt_tokens=int(usage.get(prompt_key) or 0),
        completion_tokens=int(usage.get(completion_key) or 0),
        total_tokens=int(usage.get("total_tokens") or 0),
    )
