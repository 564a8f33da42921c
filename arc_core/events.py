"""
Lifecycle event records and the ordered event log.

The simulator reports the two points of an instance's life that the ARC
playground observed through print statements in `init` and `deinit`. Events
compare by kind and label only, so tests can assert on sequences such as
``[Initialized("John"), Deallocated("John")]`` without knowing node ids.
"""

from __future__ import annotations

import json
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Callable, Deque, Iterable, Iterator, List, Tuple, Union

from .enums import EventKind


@dataclass(frozen=True)
class Initialized:
    label: str
    node_id: int = field(default=-1, compare=False)

    kind = EventKind.INITIALIZED

    def describe(self) -> str:
        return f"{self.label} is initialized"


@dataclass(frozen=True)
class Deallocated:
    label: str
    node_id: int = field(default=-1, compare=False)

    kind = EventKind.DEALLOCATED

    def describe(self) -> str:
        return f"{self.label} is being deallocated"


Event = Union[Initialized, Deallocated]
Listener = Callable[[Event], None]

_TYPE_MAP = {
    "Initialized": Initialized,
    "Deallocated": Deallocated,
}


class EventLog:
    """
    Ordered record of lifecycle events.

    Args:
        maxlen: Optional bound on retained history; oldest events are dropped
    """

    def __init__(self, maxlen: int | None = None):
        self._events: Deque[Event] = deque(maxlen=maxlen)

    def append(self, event: Event) -> None:
        self._events.append(event)

    def extend(self, events: Iterable[Event]) -> None:
        self._events.extend(events)

    def clear(self) -> None:
        self._events.clear()

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __getitem__(self, index: int) -> Event:
        return self._events[index]

    def __eq__(self, other) -> bool:
        if isinstance(other, EventLog):
            return list(self._events) == list(other._events)
        if isinstance(other, (list, tuple)):
            return list(self._events) == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"EventLog({list(self._events)!r})"

    def to_list(self) -> List[Event]:
        return list(self._events)

    def pairs(self) -> List[Tuple[str, str]]:
        """Return events as ``(type_name, label)`` tuples."""
        return [(type(e).__name__, e.label) for e in self._events]

    def of_kind(self, kind: EventKind) -> List[Event]:
        return [e for e in self._events if e.kind is kind]

    def since(self, mark: int) -> List[Event]:
        """Return events recorded after `mark`, an earlier ``len(log)``."""
        return list(self._events)[mark:]

    # ----- JSONL persistence -----
    def to_jsonl(self, path: str) -> None:
        """Write one JSON object per event with a ``type`` discriminator."""
        with open(path, "w", encoding="utf-8") as f:
            for e in self._events:
                obj = {"type": type(e).__name__}
                obj.update(asdict(e))
                f.write(json.dumps(obj) + "\n")

    @classmethod
    def from_jsonl(cls, path: str) -> "EventLog":
        """Read a log written by `to_jsonl`; unknown record types are skipped."""
        log = cls()
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                obj = json.loads(line)
                typ = obj.pop("type", None)
                event_cls = _TYPE_MAP.get(typ)
                if event_cls is None:
                    continue
                log.append(event_cls(**obj))
        return log
