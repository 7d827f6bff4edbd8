from __future__ import annotations
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Literal, Mapping, Optional, TypedDict, Union

Role = Literal["system", "user", "assistant"]
ProviderName = Literal["openai", "deepseek", "qwen", "custom"]
DisclosurePolicy = Literal["never", "after_submit", "always"]

SUPPORTED_PROVIDERS = ("openai", "deepseek", "qwen", "custom")
DISCLOSURE_POLICIES = ("never", "after_submit", "always")

# Shown by the CLI / settings form; any model name is accepted.
SUGGESTED_MODELS: Dict[str, List[str]] = {
    "openai": ["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"],
    "deepseek": ["deepseek-chat", "deepseek-coder"],
    "qwen": ["qwen-turbo", "qwen-plus", "qwen-max", "qwen-max-longcontext"],
}


class Message(TypedDict):
    role: Role
    content: str


@dataclass
class ProviderConfig:
    """
    Settings the client reads once per action.
    provider/disclosure_policy are plain strings so that a stale value from an
    older settings record still loads; validation and dispatch reject it.
    """
    provider: str = "openai"
    credential: str = ""
    model: str = "gpt-4o-mini"
    endpoint: Optional[str] = None
    disclosure_policy: str = "after_submit"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProviderConfig":
        known = {f.name for f in fields(cls)}
        defaults = cls()
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                continue
            if key == "endpoint":
                kwargs[key] = str(value) if value else None
            elif value is None:
                kwargs[key] = getattr(defaults, key)
            else:
                kwargs[key] = str(value)
        return cls(**kwargs)


@dataclass
class Question:
    title: str
    body: str
    correct_answer: Union[str, List[str]] = ""
    options: List[str] = field(default_factory=list)
    explanation: Optional[str] = None
    id: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    type: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Question":
        # Quiz exports use "content" / "correctAnswer"; accept both spellings.
        answer = data.get("correct_answer", data.get("correctAnswer", ""))
        return cls(
            title=str(data.get("title", "")),
            body=str(data.get("body", data.get("content", ""))),
            correct_answer=list(answer) if isinstance(answer, (list, tuple)) else str(answer or ""),
            options=[str(o) for o in (data.get("options") or [])],
            explanation=data.get("explanation") or None,
            id=data.get("id"),
            category=data.get("category"),
            difficulty=data.get("difficulty"),
            type=data.get("type"),
            tags=[str(t) for t in (data.get("tags") or [])],
        )


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class ChatResult:
    text: str
    usage: Optional[TokenUsage] = None


@dataclass(frozen=True)
class ProviderRequest:
    """Everything needed to issue one provider call: POST <url> with JSON <body>."""
    url: str
    body: Dict[str, Any]
    headers: Dict[str, str]
