# src/mealgen/storage/jsonl.py
from __future__ import annotations

import os
from dataclasses import asdict, dataclass, is_dataclass
from enum import Enum
from pathlib import Path
from typing import IO, Any, Mapping, Optional, Sequence

import orjson

from mealgen.core.events.base import Event
from mealgen.core.events.bus import ALL_EVENTS


class JsonlEventStore:
    """
    Append-only JSONL event journal.

    - One event per line (JSON object), publish order preserved.
    - fsync on demand for crash safety.
    """

    def __init__(self, *, path: Path, fsync: bool = False) -> None:
        self._path = path
        self._fsync = fsync
        self._fh: Optional[IO[bytes]] = None

        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def open(self) -> None:
        if self._fh is not None:
            return
        self._fh = self._path.open("ab")

    def close(self) -> None:
        if self._fh is None:
            return
        try:
            self._fh.flush()
            if self._fsync:
                os.fsync(self._fh.fileno())
        finally:
            self._fh.close()
            self._fh = None

    def append(self, event: Event) -> None:
        self.open()
        assert self._fh is not None

        self._fh.write(orjson.dumps(event_to_dict(event), default=_default, option=orjson.OPT_SORT_KEYS))
        self._fh.write(b"\n")
        self._fh.flush()
        if self._fsync:
            os.fsync(self._fh.fileno())

    def iter_events(self) -> list[Mapping[str, Any]]:
        """
        Read the whole journal back (diagnostics / tests).
        """
        if not self._path.exists():
            return []
        out: list[Mapping[str, Any]] = []
        with self._path.open("rb") as fh:
            for line in fh:
                s = line.strip()
                if not s:
                    continue
                out.append(orjson.loads(s))
        return out


@dataclass(slots=True)
class EventLogComponent:
    """
    EventBus component: journals every event it sees.
    """

    store: JsonlEventStore

    def subscriptions(self) -> Sequence[tuple[str, Any]]:
        return [(ALL_EVENTS, self._on_event)]

    def _on_event(self, e: Event) -> None:
        self.store.append(e)


def event_to_dict(event: Event) -> dict[str, Any]:
    # nested dataclasses (ProgressSnapshot) flatten through asdict
    d = asdict(event) if is_dataclass(event) else dict(event.__dict__)
    d["event_type"] = event.event_type
    return d


def _default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)
