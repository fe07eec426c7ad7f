"""Conversation turn and assistant reply definitions."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime


class Role(enum.StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Turn:
    """One message in the conversation log."""

    role: Role
    content: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> Turn:
        return cls(
            role=Role(d["role"]),
            content=d["content"],
            timestamp=datetime.fromisoformat(d["timestamp"]),
        )


@dataclass(frozen=True)
class WindowSnapshot:
    """Read-only view of a conversation window."""

    turns: tuple[Turn, ...]
    summary: str
    total_turns: int  # retained turns only, not a lifetime count

    def to_dict(self) -> dict:
        return {
            "turns": [t.to_dict() for t in self.turns],
            "summary": self.summary,
            "total_turns": self.total_turns,
        }


CLARIFY_ACTION = "ask_clarification"


@dataclass
class AssistantReply:
    """The model's decision for a single user message."""

    action: str
    parameters: dict = field(default_factory=dict)
    explanation: str = ""
    missing_info: list[str] = field(default_factory=list)
    validation_summary: str = ""

    @property
    def needs_clarification(self) -> bool:
        return self.action == CLARIFY_ACTION

    def to_dict(self) -> dict:
        d = {
            "action": self.action,
            "parameters": self.parameters,
            "explanation": self.explanation,
        }
        if self.missing_info:
            d["missing_info"] = self.missing_info
        if self.validation_summary:
            d["validation_summary"] = self.validation_summary
        return d

    @classmethod
    def from_dict(cls, d: dict) -> AssistantReply:
        if not isinstance(d, dict):
            raise ValueError(f"expected a JSON object, got {type(d).__name__}")
        action = d.get("action")
        if not action or not isinstance(action, str):
            raise ValueError("reply has no 'action'")
        parameters = d.get("parameters") or {}
        if not isinstance(parameters, dict):
            raise ValueError("'parameters' must be an object")
        for key in ("explanation", "validation_summary"):
            if d.get(key) is not None and not isinstance(d[key], str):
                raise ValueError(f"'{key}' must be a string")
        missing_info = d.get("missing_info") or []
        if not isinstance(missing_info, list):
            raise ValueError("'missing_info' must be a list")
        return cls(
            action=action,
            parameters=parameters,
            explanation=d.get("explanation") or "",
            missing_info=[str(item) for item in missing_info],
            validation_summary=d.get("validation_summary") or "",
        )
