"""Append-only conversation state replayed to the model every round."""

from __future__ import annotations

from collections.abc import Iterable

from langchain_core.messages import BaseMessage, SystemMessage


class Transcript:
    """Ordered list of turns for one loop invocation.

    Turns are only ever appended. `replay` returns what the model sees on the
    next round; today that is the system prompt plus every turn, unwindowed.
    """

    def __init__(
        self,
        *,
        system_prompt: str | None = None,
        history: Iterable[BaseMessage] | None = None,
    ) -> None:
        self._system_prompt = system_prompt
        self._turns: list[BaseMessage] = list(history or [])

    def append(self, message: BaseMessage) -> None:
        self._turns.append(message)

    def extend(self, messages: Iterable[BaseMessage]) -> None:
        for message in messages:
            self.append(message)

    @property
    def turns(self) -> list[BaseMessage]:
        return list(self._turns)

    def replay(self) -> list[BaseMessage]:
        messages: list[BaseMessage] = []
        if self._system_prompt:
            messages.append(SystemMessage(content=self._system_prompt))
        messages.extend(self._turns)
        return messages

    def __len__(self) -> int:
        return len(self._turns)
