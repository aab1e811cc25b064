"""Real-time update events emitted by the session engine."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

ENGINE_TOPIC = "time_clock.engine"


class UpdateType(Enum):
    """Kinds of real-time updates."""

    CLOCK_IN = "CLOCK_IN"
    CLOCK_OUT = "CLOCK_OUT"
    BREAK_START = "BREAK_START"
    BREAK_END = "BREAK_END"
    PROGRESS_UPDATE = "PROGRESS_UPDATE"


@dataclass
class RealTimeUpdate:
    """Tagged event delivered to local listeners and other instances.

    Attributes:
        type: Update kind
        timestamp: When the update was produced
        user_id: User the update concerns
        payload: Operation-specific data (CLOCK_IN carries the new entry)
        origin: Id of the engine instance that produced the update
    """

    type: UpdateType
    timestamp: datetime
    user_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    origin: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "user_id": self.user_id,
            "payload": self.payload,
            "origin": self.origin,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RealTimeUpdate":
        return cls(
            type=UpdateType(data["type"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            user_id=data["user_id"],
            payload=data.get("payload") or {},
            origin=data.get("origin"),
        )

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), default=str).encode("utf-8")

    @classmethod
    def from_bytes(cls, message: bytes) -> "RealTimeUpdate":
        """Decode a broadcast message.

        Raises:
            ValueError: If the message is not a valid update
        """
        try:
            return cls.from_dict(json.loads(message.decode("utf-8")))
        except (KeyError, TypeError, UnicodeDecodeError) as e:
            raise ValueError(f"Malformed update message: {e}") from e
