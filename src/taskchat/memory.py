"""Bounded conversation window with a running summary of evicted turns."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from taskchat.models import Role, Turn, WindowSnapshot

logger = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 15
DEFAULT_SUMMARY_KEYWORDS = ("created", "scheduled", "deleted", "updated")

SUMMARY_LEAD_IN = "\nPrevious session: "
SUMMARY_SEPARATOR = "; "
SUMMARY_TERMINATOR = "."


class ConversationWindow:
    """Keeps the most recent turns of a conversation and a digest of older ones.

    Turns pushed out of the window are filtered by keyword and the survivors
    are appended to ``summary``. The summary is append-only until ``clear()``;
    it is never re-compressed, so a very long session grows it without bound.

    Not thread-safe: it is meant to be driven by a single conversation loop.
    """

    def __init__(
        self,
        max_turns: int = DEFAULT_MAX_TURNS,
        keywords: Iterable[str] = DEFAULT_SUMMARY_KEYWORDS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if isinstance(max_turns, bool) or not isinstance(max_turns, int) or max_turns < 1:
            raise ValueError(f"max_turns must be a positive integer, got {max_turns!r}")
        self.max_turns = max_turns
        self.keywords = tuple(keywords)
        self._clock = clock
        self._turns: list[Turn] = []
        self.summary = ""

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def record(self, role: Role | str, content: str) -> None:
        """Append a turn, evicting the oldest ones if the window overflows."""
        role = Role(role)
        if not isinstance(content, str):
            raise TypeError(f"content must be a string, got {type(content).__name__}")

        now = self._clock()
        if self._turns and now < self._turns[-1].timestamp:
            now = self._turns[-1].timestamp
        self._turns.append(Turn(role=role, content=content, timestamp=now))

        overflow = len(self._turns) - self.max_turns
        if overflow > 0:
            evicted = self._turns[:overflow]
            del self._turns[:overflow]
            logger.debug("Evicted %d turn(s) from conversation window", len(evicted))
            self._summarize(evicted)

    def _summarize(self, evicted: list[Turn]) -> None:
        actions = [t for t in evicted if any(k in t.content for k in self.keywords)]
        if not actions:
            return
        self.summary += (
            SUMMARY_LEAD_IN
            + SUMMARY_SEPARATOR.join(t.content for t in actions)
            + SUMMARY_TERMINATOR
        )
        logger.debug("Summary grew to %d chars", len(self.summary))

    def render(self) -> str:
        """Return the context block to embed in the next prompt."""
        context = ""
        if self.summary:
            context += f"Summary of earlier conversation: {self.summary}\n\n"
        if self._turns:
            context += "Recent conversation:\n"
            for t in self._turns:
                context += f"{t.role.value}: {t.content}\n"
        return context

    def snapshot(self) -> WindowSnapshot:
        return WindowSnapshot(
            turns=tuple(self._turns),
            summary=self.summary,
            total_turns=len(self._turns),
        )

    def clear(self) -> None:
        self._turns.clear()
        self.summary = ""
