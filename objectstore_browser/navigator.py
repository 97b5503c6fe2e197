from __future__ import annotations
"""Folder illusion over a flat key space: context, breadcrumbs, selection, filter."""
import threading
from typing import Iterable, NamedTuple, Optional, Sequence

from .models import DELIMITER, Breadcrumb, ObjectEntry

ROOT_LABEL = "Buckets"


class NavigationContext(NamedTuple):
    """Identifies the listing a request was issued for."""

    generation: int
    bucket: Optional[str]
    prefix: str


def filter_entries(entries: Sequence[ObjectEntry], query: str) -> Sequence[ObjectEntry]:
    """Return entries whose key contains ``query``, ignoring case.

    An empty query returns ``entries`` itself.
    """
    if not query:
        return entries
    needle = query.lower()
    return [entry for entry in entries if needle in entry.key.lower()]


class NamespaceNavigator:
    """Tracks the current bucket and prefix along with the derived listing state.

    The listing is never edited in place; it is only replaced by
    :meth:`apply_listing` or emptied. Any change of bucket or prefix drops the
    listing, the selection and the filter query.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._generation = 0
        self._bucket: str | None = None
        self._prefix = ""
        self._entries: list[ObjectEntry] = []
        self._selection: set[str] = set()
        self._query = ""

    @property
    def bucket(self) -> str | None:
        return self._bucket

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def context(self) -> NavigationContext:
        with self._lock:
            return NavigationContext(self._generation, self._bucket, self._prefix)

    @property
    def entries(self) -> list[ObjectEntry]:
        with self._lock:
            return list(self._entries)

    @property
    def selection(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._selection)

    @property
    def query(self) -> str:
        return self._query

    def reset(self) -> None:
        self._set_location(None, "")

    def open_bucket(self, name: str) -> None:
        if not name:
            raise ValueError("Bucket name cannot be empty")
        self._set_location(name, "")

    def enter_folder(self, key: str) -> None:
        if self._bucket is None:
            raise ValueError("No bucket is open")
        if not key.endswith(DELIMITER):
            raise ValueError(f"'{key}' is not a folder")
        self._set_location(self._bucket, key)

    def breadcrumbs(self) -> list[Breadcrumb]:
        labels = [ROOT_LABEL]
        if self._bucket is not None:
            labels.append(self._bucket)
            labels.extend(segment for segment in self._prefix.split(DELIMITER) if segment)
        return [Breadcrumb(label=label, index=index) for index, label in enumerate(labels)]

    def navigate_to_breadcrumb(self, index: int) -> None:
        crumbs = self.breadcrumbs()
        if not 0 <= index < len(crumbs):
            raise IndexError(f"Breadcrumb {index} does not exist")
        if index == 0:
            self._set_location(None, "")
        elif index == 1:
            self._set_location(self._bucket, "")
        else:
            segments = [crumb.label for crumb in crumbs[2 : index + 1]]
            self._set_location(self._bucket, DELIMITER.join(segments) + DELIMITER)

    def _set_location(self, bucket: str | None, prefix: str) -> None:
        with self._lock:
            self._generation += 1
            self._bucket = bucket
            self._prefix = prefix if bucket is not None else ""
            self._entries = []
            self._selection.clear()
            self._query = ""

    def is_current(self, context: NavigationContext) -> bool:
        return context == self.context

    def apply_listing(self, context: NavigationContext, entries: Iterable[ObjectEntry]) -> bool:
        """Install a fetched listing unless the user has moved on since it was requested."""

        with self._lock:
            if context != self.context:
                return False
            self._entries = list(entries)
            self._selection.clear()
            self._query = ""
            return True

    def discard_listing(self, context: NavigationContext) -> None:
        with self._lock:
            if context == self.context:
                self._entries = []
                self._selection.clear()

    def set_query(self, query: str) -> None:
        self._query = query or ""

    def visible_entries(self) -> Sequence[ObjectEntry]:
        with self._lock:
            return filter_entries(list(self._entries), self._query)

    def select(self, key: str) -> None:
        with self._lock:
            if key not in {entry.key for entry in self._entries}:
                raise KeyError(key)
            self._selection.add(key)

    def deselect(self, key: str) -> None:
        with self._lock:
            self._selection.discard(key)

    def toggle(self, key: str) -> None:
        with self._lock:
            if key in self._selection:
                self._selection.discard(key)
            else:
                self.select(key)

    def toggle_all_visible(self) -> None:
        """Select every visible entry, or clear the selection if all are selected."""

        with self._lock:
            visible = {entry.key for entry in self.visible_entries()}
            if visible and self._selection == visible:
                self._selection.clear()
            else:
                self._selection = visible

    def clear_selection(self) -> None:
        with self._lock:
            self._selection.clear()
