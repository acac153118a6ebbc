"""Approval item repositories.

A repository is addressed by item id and offers one mutating primitive,
``save``: an atomic compare-and-set on the item's version token that also
appends exactly one history entry. Every state change in the system
(human actions, batch members, scheduler escalations) goes through it.
"""
import abc
import threading
import uuid
from dataclasses import replace
from datetime import datetime

from app.core.exceptions import ConcurrentModification, NotFound
from app.rules.types import OPEN_STATUSES, ApprovalItem, HistoryEntry, ItemStatus


class ItemRepository(abc.ABC):

    @abc.abstractmethod
    def add(
        self, item: ApprovalItem, actor_name: str | None = None, actor_role: str | None = None,
    ) -> ApprovalItem:
        """Persist a newly created item (version 1, empty history)."""

    @abc.abstractmethod
    def get(self, item_id: uuid.UUID) -> ApprovalItem:
        """Return the item with its full history. Raises NotFound."""

    @abc.abstractmethod
    def save(self, item: ApprovalItem, entry: HistoryEntry, expected_version: int) -> ApprovalItem:
        """Commit ``item`` and append ``entry`` iff the stored version is ``expected_version``.

        Raises:
            NotFound: unknown item id.
            ConcurrentModification: the stored version moved on.
        """

    @abc.abstractmethod
    def list_items(
        self,
        status: ItemStatus | None = None,
        category: str | None = None,
    ) -> list[ApprovalItem]:
        """Return items, optionally narrowed by status/category, oldest first."""

    @abc.abstractmethod
    def list_overdue(self, now: datetime) -> list[ApprovalItem]:
        """Return open items whose due date has passed."""


class InMemoryItemRepository(ItemRepository):
    """Thread-safe dict-backed repository (tests, demos, single-process runs)."""

    def __init__(self):
        self._items: dict[uuid.UUID, ApprovalItem] = {}
        self._lock = threading.Lock()

    def add(
        self, item: ApprovalItem, actor_name: str | None = None, actor_role: str | None = None,
    ) -> ApprovalItem:
        with self._lock:
            if item.id in self._items:
                raise ValueError(f"Approval item {item.id} already exists.")
            self._items[item.id] = item
        return item

    def get(self, item_id: uuid.UUID) -> ApprovalItem:
        with self._lock:
            item = self._items.get(item_id)
        if item is None:
            raise NotFound(item_id)
        return item

    def save(self, item: ApprovalItem, entry: HistoryEntry, expected_version: int) -> ApprovalItem:
        with self._lock:
            current = self._items.get(item.id)
            if current is None:
                raise NotFound(item.id)
            if current.version != expected_version:
                raise ConcurrentModification(item.id, expected_version)
            # History is append-only: rebuild from the stored trail, never from the caller's copy
            stored = replace(
                item,
                history=current.history + (entry,),
                version=expected_version + 1,
            )
            self._items[item.id] = stored
        return stored

    def list_items(self, status=None, category=None) -> list[ApprovalItem]:
        with self._lock:
            items = list(self._items.values())
        if status is not None:
            items = [i for i in items if i.status == status]
        if category is not None:
            items = [i for i in items if i.category.lower() == category.lower()]
        return sorted(items, key=lambda i: i.submitted_at)

    def list_overdue(self, now: datetime) -> list[ApprovalItem]:
        with self._lock:
            items = list(self._items.values())
        overdue = [i for i in items if i.status in OPEN_STATUSES and now > i.due_at]
        return sorted(overdue, key=lambda i: i.due_at)
