"""
Bounded conversation history.

Turns are kept in causal order and evicted from the oldest end once the
log grows past `max_length`. The eviction policy is fixed per instance:

- PAIR (default): drop the two oldest turns at a time, so a user question
  is never separated from the assistant reply that follows it
- SINGLE: drop one turn at a time (legacy behaviour; can orphan a reply)
"""
from enum import Enum
from typing import Dict, List, Optional

from configs import MAX_HISTORY_LENGTH, HISTORY_EVICTION
from verisql.models import Role, Turn


class EvictionPolicy(str, Enum):
    PAIR = "pair"
    SINGLE = "single"


class ConversationHistory:
    """Ordered, bounded log of role/content turns for one conversation."""

    def __init__(self, max_length: int = MAX_HISTORY_LENGTH, eviction=HISTORY_EVICTION):
        eviction = EvictionPolicy(eviction)
        minimum = 2 if eviction == EvictionPolicy.PAIR else 1
        if max_length < minimum:
            raise ValueError(f"max_length must be >= {minimum} for {eviction.value} eviction, got {max_length}")

        self.max_length = max_length
        self.eviction = eviction
        self._turns: List[Turn] = []

    def append(self, role: Role, content: str) -> Turn:
        turn = Turn(role=role, content=content)
        self._turns.append(turn)
        self._evict()
        return turn

    def _evict(self) -> None:
        step = 2 if self.eviction == EvictionPolicy.PAIR else 1
        while len(self._turns) > self.max_length:
            del self._turns[:step]

    def as_list(self) -> List[Turn]:
        return list(self._turns)

    def as_messages(self) -> List[Dict[str, str]]:
        return [turn.to_message() for turn in self._turns]

    def last(self) -> Optional[Turn]:
        return self._turns[-1] if self._turns else None

    def clear(self) -> None:
        self._turns.clear()

    def __len__(self) -> int:
        return len(self._turns)
