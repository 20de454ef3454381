"""Conversation data models."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from models.course import Course

USER = "user"
ASSISTANT = "assistant"


@dataclass
class Turn:
    """Represents a single message in a conversation."""
    role: str  # "user" or "assistant"
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    course: Optional[Course] = None  # Course the assistant answered about

    def as_message(self) -> dict:
        """Chat-completion message for this turn."""
        return {"role": self.role, "content": self.content}


@dataclass
class Session:
    """Represents a client-identified conversation thread."""
    session_id: str
    turns: List[Turn] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    last_seen: float = 0.0  # monotonic clock reading of the last access

    def recent(self, max_turns: int) -> List[Turn]:
        """Return the last ``max_turns`` turns in order."""
        if max_turns <= 0:
            return []
        return self.turns[-max_turns:]

    @property
    def last_course(self) -> Optional[Course]:
        """Most recent course the assistant answered about, if any."""
        for turn in reversed(self.turns):
            if turn.course is not None:
                return turn.course
        return None
