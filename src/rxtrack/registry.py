"""Bookkeeping for live subscriptions.

This module holds the record type and the registry the tracker feeds. It is
intentionally free of any reactive-library imports so that it can be used
with any subscribe function the tracker wraps.
"""

from __future__ import annotations

import itertools
import threading
import time
import traceback
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

_serials = itertools.count(1)


@dataclass(frozen=True, eq=False)
class SubscriptionRecord:
    """One tracked attachment of an observer to an observable.

    Records compare by identity: two records for the same handle are still
    distinct entries.

    Attributes:
        handle: The disposer returned by subscribe. Not owned by the record.
        chain_id: Id shared by every record created by one root subscribe call.
        captured_context: Call-site stack, when stack capture is enabled.
        serial: Process-unique key used by the registry index.
        created_at: Wall-clock time the record was created.
    """

    handle: Any
    chain_id: int
    captured_context: traceback.StackSummary | None = None
    serial: int = field(default_factory=lambda: next(_serials))
    created_at: float = field(default_factory=time.time)


class SubscriptionRegistry:
    """Insertion-ordered set of live subscription records.

    Adds and removes are at-most-once per record. Removing a record that is
    not present is a silent no-op, since teardown can fire after an error path
    already removed it. Once sealed, the registry ignores all mutation so its
    contents stay available for inspection.
    """

    def __init__(self) -> None:
        self._index: dict[int, SubscriptionRecord] = {}
        self._lock = threading.Lock()
        self._sealed = False

    def add(self, record: SubscriptionRecord) -> bool:
        """Add a record.

        Args:
            record: Record to add.

        Returns:
            True if the record was added, False if it was already present
            or the registry is sealed.
        """
        with self._lock:
            if self._sealed or record.serial in self._index:
                return False
            self._index[record.serial] = record
            return True

    def remove(self, record: SubscriptionRecord) -> bool:
        """Remove a record.

        Args:
            record: Record to remove.

        Returns:
            True if the record was present and removed.
        """
        with self._lock:
            if self._sealed:
                return False
            return self._index.pop(record.serial, None) is not None

    def snapshot(self) -> tuple[SubscriptionRecord, ...]:
        """Return a point-in-time copy of the records in insertion order."""
        with self._lock:
            return tuple(self._index.values())

    def chains(self) -> dict[int, list[SubscriptionRecord]]:
        """Group a snapshot of the records by chain id."""
        grouped: dict[int, list[SubscriptionRecord]] = defaultdict(list)
        for record in self.snapshot():
            grouped[record.chain_id].append(record)
        return dict(grouped)

    def seal(self) -> None:
        """Freeze the current contents."""
        with self._lock:
            self._sealed = True

    @property
    def sealed(self) -> bool:
        """Whether the registry still accepts mutation."""
        return self._sealed

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    def __contains__(self, record: object) -> bool:
        if not isinstance(record, SubscriptionRecord):
            return False
        with self._lock:
            return self._index.get(record.serial) is record
