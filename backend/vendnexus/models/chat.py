from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from ..time_utils import to_utc_z

ChatRole = Literal["user", "model"]


@dataclass(frozen=True)
class ChatMessage:
    """One turn of the assistant transcript. Lives only as long as the session."""
    id: str
    role: ChatRole
    text: str
    timestamp: int
    has_audio: bool = False

    def to_history(self) -> dict:
        return {"role": self.role, "text": self.text}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "text": self.text,
            "timestamp": self.timestamp,
            "timestamp_iso": to_utc_z(self.timestamp),
            "has_audio": self.has_audio,
        }
