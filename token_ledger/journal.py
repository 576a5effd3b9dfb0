"""
token_ledger.journal: journaled key/value storage with checkpoints.

Writes and staged events go to the top overlay; reads consult overlays from
top to bottom and then the base mapping. `commit()` merges the top overlay
into its parent, or into the base when it is the outermost checkpoint (staged
events are then handed to the sink). `revert()` discards the top overlay and
its events.

Every ledger call runs inside exactly one outermost checkpoint, which is what
makes calls all-or-nothing:

    storage = ContractStorage(address)
    with storage.transaction() as j:
        j.set("bal:0x..", 5)
        j.emit(Transfer(...))
    # committed; any exception inside the block reverts both

Keys are short prefixed strings (``bal:<addr>``, ``allow:<owner>:<spender>``,
``role:<role-hex>:<addr>``) and values are JSON scalars, so a store can be
persisted with `ContractStorage.to_dict()`.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import (Any, Callable, Dict, Iterator, List, MutableMapping,
                    Optional, Tuple)

from .address import Address
from .events import Event, EventLog

__all__ = ["Journal", "ContractStorage"]

_DELETED = object()


@dataclass
class _Overlay:
    writes: Dict[str, Any] = field(default_factory=dict)
    events: List[Event] = field(default_factory=list)


class Journal:
    """
    A copy-on-write write journal with nested checkpoints.

    Parameters
    ----------
    base : MutableMapping[str, Any]
        The persisted mapping. Only touched by an outermost commit.
    sink : Callable[[List[Event]], None], optional
        Receives the events of each outermost commit, in emission order.
    """

    def __init__(
        self,
        base: MutableMapping[str, Any],
        sink: Optional[Callable[[List[Event]], None]] = None,
    ) -> None:
        self._base = base
        self._sink = sink
        self._layers: List[_Overlay] = []

    # ------------------------------------------------------------------ #
    # Checkpointing
    # ------------------------------------------------------------------ #

    def depth(self) -> int:
        return len(self._layers)

    def begin(self) -> int:
        self._layers.append(_Overlay())
        return len(self._layers)

    def commit(self) -> None:
        if not self._layers:
            raise RuntimeError("commit without an open checkpoint")
        top = self._layers.pop()
        if self._layers:
            parent = self._layers[-1]
            parent.writes.update(top.writes)
            parent.events.extend(top.events)
            return
        for k, v in top.writes.items():
            if v is _DELETED:
                self._base.pop(k, None)
            else:
                self._base[k] = v
        if top.events and self._sink is not None:
            self._sink(top.events)

    def revert(self) -> None:
        if not self._layers:
            raise RuntimeError("revert without an open checkpoint")
        self._layers.pop()

    # ------------------------------------------------------------------ #
    # Reads / writes
    # ------------------------------------------------------------------ #

    def get(self, key: str, default: Any = None) -> Any:
        for layer in reversed(self._layers):
            if key in layer.writes:
                v = layer.writes[key]
                return default if v is _DELETED else v
        return self._base.get(key, default)

    def _top(self) -> _Overlay:
        if not self._layers:
            raise RuntimeError("state writes require an open checkpoint")
        return self._layers[-1]

    def set(self, key: str, value: Any) -> None:
        self._top().writes[key] = value

    def delete(self, key: str) -> None:
        self._top().writes[key] = _DELETED

    def emit(self, event: Event) -> None:
        self._top().events.append(event)

    def items(self, prefix: str = "") -> Iterator[Tuple[str, Any]]:
        """Merged view of all live keys starting with `prefix`, sorted by key."""
        merged: Dict[str, Any] = {k: v for k, v in self._base.items() if k.startswith(prefix)}
        for layer in self._layers:
            for k, v in layer.writes.items():
                if k.startswith(prefix):
                    merged[k] = v
        for k in sorted(merged):
            v = merged[k]
            if v is not _DELETED:
                yield k, v


class ContractStorage:
    """
    State owned by one deployed address: the persisted key/value mapping,
    its journal, the committed event log and the call lock.
    """

    def __init__(
        self,
        address: Address,
        data: Optional[Dict[str, Any]] = None,
        events: Optional[EventLog] = None,
    ) -> None:
        self.address = address
        self.data: Dict[str, Any] = dict(data or {})
        self.events = events if events is not None else EventLog()
        self.journal = Journal(self.data, sink=self._flush)
        self.lock = threading.RLock()

    def _flush(self, events: List[Event]) -> None:
        self.events.extend(self.address, events)

    @contextmanager
    def transaction(self) -> Iterator[Journal]:
        """Run a block atomically: commit on success, revert on any exception."""
        with self.lock:
            self.journal.begin()
            try:
                yield self.journal
            except BaseException:
                self.journal.revert()
                raise
            else:
                self.journal.commit()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "data": dict(sorted(self.data.items())),
            "events": self.events.to_list(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ContractStorage":
        return cls(
            d["address"],
            data=d.get("data") or {},
            events=EventLog.from_list(d.get("events") or []),
        )
