"""
Intentions and the planner's intention queue

The queue is a stable priority queue: lower kind ordinal first, ties in
arrival order. A pending set keyed by (kind, target) keeps at most one
outstanding intention per key, from the moment it is offered until the
key is released (completion, conversion or an unresolved round).
"""

import heapq
import itertools
import threading
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Hashable, List, Optional, Set, Tuple

from farm_world.catalog import DiseaseType, ItemType


class IntentionType(IntEnum):
    """Kinds of intentions, most urgent first"""
    TREAT = 0
    WATER = 1
    SCAN = 2
    HARVEST = 3
    SELL = 4
    BUY = 5


DIAGNOSTIC = 'diagnose'


@dataclass
class Intention:
    """A pending unit of work"""
    kind: IntentionType
    field_id: Optional[int] = None
    item: Optional[ItemType] = None
    quantity: int = 0
    disease: Optional[DiseaseType] = None
    purpose: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    attempts: int = 0

    @property
    def priority(self) -> int:
        return int(self.kind)

    @property
    def target(self) -> Hashable:
        """Field id for field work, item for trading; diagnostic scans have their own slot"""
        if self.kind in (IntentionType.BUY, IntentionType.SELL):
            return self.item
        if self.purpose:
            return (self.field_id, self.purpose)
        return self.field_id

    @property
    def key(self) -> Tuple[IntentionType, Hashable]:
        return (self.kind, self.target)

    @property
    def is_diagnostic(self) -> bool:
        return self.purpose == DIAGNOSTIC

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.name,
            'priority': self.priority,
            'field_id': self.field_id,
            'item': self.item.name if self.item else None,
            'quantity': self.quantity,
            'disease': self.disease.name if self.disease else None,
            'purpose': self.purpose,
            'attempts': self.attempts,
        }

    def __str__(self):
        if self.kind in (IntentionType.BUY, IntentionType.SELL):
            return f"{self.kind.name} {self.quantity}x {self.item.name if self.item else '?'}"
        label = f"{self.kind.name} Field-{self.field_id}"
        return f"{label} ({self.purpose})" if self.purpose else label


class IntentionQueue:
    """Stable priority queue of intentions with pending-set de-duplication"""

    def __init__(self):
        self._lock = threading.RLock()
        self._heap: List[Tuple[int, int, Intention]] = []
        self._counter = itertools.count()
        self._pending: Set[Tuple[IntentionType, Hashable]] = set()

        # Statistics
        self.offered = 0
        self.duplicates = 0

    def offer(self, intention: Intention) -> bool:
        """
        Enqueue an intention unless its key is already pending.

        Returns:
            True if enqueued, False if suppressed as a duplicate
        """
        with self._lock:
            if intention.key in self._pending:
                self.duplicates += 1
                return False
            self._pending.add(intention.key)
            self._push(intention)
            self.offered += 1
            return True

    def push_back(self, intention: Intention):
        """Re-enqueue an intention whose key is still held (failed dispatch)"""
        with self._lock:
            intention.attempts += 1
            self._pending.add(intention.key)
            self._push(intention)

    def pop(self) -> Optional[Intention]:
        """Take the most urgent intention; its key stays pending"""
        with self._lock:
            if not self._heap:
                return None
            return heapq.heappop(self._heap)[2]

    def release(self, key: Tuple[IntentionType, Hashable]) -> bool:
        """Free a pending key so the same work can be intended again"""
        with self._lock:
            if key in self._pending:
                self._pending.discard(key)
                return True
            return False

    def is_pending(self, key: Tuple[IntentionType, Hashable]) -> bool:
        with self._lock:
            return key in self._pending

    def pending_keys(self) -> Set[Tuple[IntentionType, Hashable]]:
        with self._lock:
            return set(self._pending)

    def snapshot(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Queued intentions in execution order (optionally the first `limit`)"""
        with self._lock:
            ordered = [entry[2] for entry in sorted(self._heap, key=lambda e: (e[0], e[1]))]
        if limit is not None:
            ordered = ordered[:limit]
        return [intention.to_dict() for intention in ordered]

    def _push(self, intention: Intention):
        heapq.heappush(self._heap, (intention.priority, next(self._counter), intention))

    def __len__(self):
        with self._lock:
            return len(self._heap)
