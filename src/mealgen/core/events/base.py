from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Event:
    """
    Base class for every event published on the EventBus.

    - event_id / timestamp_utc identify the concrete emission
    - sequence is the engine-assigned ordering key (replay correctness)
    """

    event_type: ClassVar[str] = "event"

    event_id: UUID
    timestamp_utc: datetime
    sequence: int

    @classmethod
    def create(cls, *, sequence: int, **fields: Any):
        if sequence <= 0:
            raise ValueError("sequence must be > 0")
        return cls(
            event_id=uuid4(),
            timestamp_utc=datetime.now(timezone.utc),
            sequence=sequence,
            **fields,
        )
