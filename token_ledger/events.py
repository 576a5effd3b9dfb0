"""
token_ledger.events: ledger events and the append-only event log.

Events are frozen dataclasses. Mutating calls stage them in the journal; they
reach the `EventLog` only when the call commits, so a reverted call leaves no
trace in the log. Within a call, events keep their emission order; across
calls, `log_index` strictly increases.

Event set
---------
- Transfer(sender, receiver, value)        mint: sender = null; burn: receiver = null
- Approval(owner, spender, value)
- RoleGranted(role, account, sender)
- RoleRevoked(role, account, sender)
- Initialized(version)
- Upgraded(implementation)
- AdminChanged(previous_admin, new_admin)
- OwnershipTransferred(previous_owner, new_owner)
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, fields
from typing import Any, ClassVar, Dict, Iterable, Iterator, List, Optional, Type

from .address import Address

__all__ = [
    "Event",
    "Transfer",
    "Approval",
    "RoleGranted",
    "RoleRevoked",
    "Initialized",
    "Upgraded",
    "AdminChanged",
    "OwnershipTransferred",
    "EventRecord",
    "EventLog",
    "event_from_dict",
]


def _jsonable(v: Any) -> Any:
    if isinstance(v, (bytes, bytearray)):
        return "0x" + bytes(v).hex()
    return v


@dataclass(frozen=True)
class Event:
    EVENT_NAME: ClassVar[str] = ""

    def args(self) -> Dict[str, Any]:
        return asdict(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.EVENT_NAME,
            "args": {k: _jsonable(v) for k, v in self.args().items()},
        }


@dataclass(frozen=True)
class Transfer(Event):
    EVENT_NAME: ClassVar[str] = "Transfer"

    sender: Address
    receiver: Address
    value: int


@dataclass(frozen=True)
class Approval(Event):
    EVENT_NAME: ClassVar[str] = "Approval"

    owner: Address
    spender: Address
    value: int


@dataclass(frozen=True)
class RoleGranted(Event):
    EVENT_NAME: ClassVar[str] = "RoleGranted"

    role: bytes
    account: Address
    sender: Address


@dataclass(frozen=True)
class RoleRevoked(Event):
    EVENT_NAME: ClassVar[str] = "RoleRevoked"

    role: bytes
    account: Address
    sender: Address


@dataclass(frozen=True)
class Initialized(Event):
    EVENT_NAME: ClassVar[str] = "Initialized"

    version: int


@dataclass(frozen=True)
class Upgraded(Event):
    EVENT_NAME: ClassVar[str] = "Upgraded"

    implementation: str


@dataclass(frozen=True)
class AdminChanged(Event):
    EVENT_NAME: ClassVar[str] = "AdminChanged"

    previous_admin: Address
    new_admin: Address


@dataclass(frozen=True)
class OwnershipTransferred(Event):
    EVENT_NAME: ClassVar[str] = "OwnershipTransferred"

    previous_owner: Address
    new_owner: Address


_EVENT_TYPES: Dict[str, Type[Event]] = {
    cls.EVENT_NAME: cls
    for cls in (
        Transfer,
        Approval,
        RoleGranted,
        RoleRevoked,
        Initialized,
        Upgraded,
        AdminChanged,
        OwnershipTransferred,
    )
}


def event_from_dict(d: Dict[str, Any]) -> Event:
    """Inverse of `Event.to_dict()`."""
    cls = _EVENT_TYPES.get(d.get("event", ""))
    if cls is None:
        raise ValueError(f"unknown event {d.get('event')!r}")
    raw = d.get("args") or {}
    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        v = raw[f.name]
        if f.type in ("bytes", bytes) and isinstance(v, str):
            v = bytes.fromhex(v[2:] if v.startswith("0x") else v)
        kwargs[f.name] = v
    return cls(**kwargs)


@dataclass(frozen=True)
class EventRecord:
    """A committed event with its position in the log and its emitter."""

    log_index: int
    emitter: Address
    event: Event

    @property
    def name(self) -> str:
        return self.event.EVENT_NAME

    def to_dict(self) -> Dict[str, Any]:
        out = self.event.to_dict()
        out["log_index"] = self.log_index
        out["emitter"] = self.emitter
        return out


class EventLog:
    """Append-only, thread-safe in-memory event log."""

    def __init__(self) -> None:
        self._records: List[EventRecord] = []
        self._lock = threading.Lock()

    def extend(self, emitter: Address, events: Iterable[Event]) -> List[EventRecord]:
        out: List[EventRecord] = []
        with self._lock:
            for ev in events:
                rec = EventRecord(log_index=len(self._records), emitter=emitter, event=ev)
                self._records.append(rec)
                out.append(rec)
        return out

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[EventRecord]:
        return iter(list(self._records))

    def records(
        self,
        *,
        name: Optional[str] = None,
        emitter: Optional[Address] = None,
        from_index: int = 0,
    ) -> List[EventRecord]:
        with self._lock:
            snapshot = self._records[from_index:]
        return [
            r
            for r in snapshot
            if (name is None or r.name == name) and (emitter is None or r.emitter == emitter)
        ]

    def to_list(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self._records]

    @classmethod
    def from_list(cls, items: Iterable[Dict[str, Any]]) -> "EventLog":
        log = cls()
        for d in items:
            log._records.append(
                EventRecord(
                    log_index=int(d["log_index"]),
                    emitter=d["emitter"],
                    event=event_from_dict(d),
                )
            )
        return log
