"""
Live-update event envelope.

Every message sent over a board's SSE stream is a BoardEvent. The envelope
fields (type, board_id, timestamp) are written here and nowhere else.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict

from fastapi.encoders import jsonable_encoder

ENVELOPE_FIELDS = frozenset({"type", "board_id", "timestamp"})

HEARTBEAT_FRAME = ": heartbeat\n\n"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class BoardEvent:
    """
    One event on a board's stream.

    Attributes:
        type: Event type (e.g. "card_created", "vote_changed")
        board_id: Board the event belongs to
        data: Event-specific payload; must not repeat envelope fields
        timestamp: Epoch milliseconds, set on creation

    Example:
        >>> BoardEvent("card_deleted", "b1", {"card_id": "c1"}).encode()
        'data: {"type": "card_deleted", "board_id": "b1", "timestamp": ..., "card_id": "c1"}\\n\\n'
    """

    type: str
    board_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: int = field(default_factory=now_ms)

    def __post_init__(self) -> None:
        clashing = ENVELOPE_FIELDS.intersection(self.data)
        if clashing:
            raise ValueError(f"Event payload repeats envelope fields: {sorted(clashing)}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "board_id": self.board_id,
            "timestamp": self.timestamp,
            **self.data,
        }

    def encode(self) -> str:
        """Serialize as an SSE ``data:`` frame."""
        return f"data: {json.dumps(jsonable_encoder(self.to_dict()))}\n\n"


def encode_named_event(event: str, data: Dict[str, Any]) -> str:
    """Frame a named SSE event (``event: <name>``), used for stream handshakes."""
    return f"event: {event}\ndata: {json.dumps(jsonable_encoder(data))}\n\n"
