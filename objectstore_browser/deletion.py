from __future__ import annotations
"""Expands a folder/file selection into concrete keys and deletes them in batches."""
import logging
from typing import Iterable, Iterator

from .errors import DeleteError
from .models import DELIMITER, DeleteOutcome, Session
from .services import MAX_DELETE_BATCH, PAGE_SIZE, ObjectStoreService

LOGGER = logging.getLogger(__name__)


def resolve_keys(
    service: ObjectStoreService,
    session: Session,
    *,
    bucket_name: str,
    selection: Iterable[str],
    page_size: int = PAGE_SIZE,
) -> set[str]:
    """Return the deduplicated set of object keys covered by ``selection``.

    Folder keys (ending in ``/``) expand to every key stored under them;
    file keys are taken as-is. Raises :class:`ListingError` if any folder
    cannot be listed completely.
    """
    resolved: set[str] = set()
    for key in selection:
        if key.endswith(DELIMITER):
            found = service.list_all_keys(session, bucket_name=bucket_name, prefix=key, page_size=page_size)
            LOGGER.debug("Folder '%s' resolved to %d key(s)", key, len(found))
            resolved.update(found)
        else:
            resolved.add(key)
    return resolved


def chunked(keys: Iterable[str], size: int) -> Iterator[list[str]]:
    if size <= 0:
        raise ValueError("size must be greater than zero")
    ordered = sorted(keys)
    for start in range(0, len(ordered), size):
        yield ordered[start : start + size]


class BulkDeleter:
    """Deletes a resolved key set one store-sized batch at a time."""

    def __init__(self, service: ObjectStoreService, batch_size: int = MAX_DELETE_BATCH):
        self._service = service
        self._batch_size = min(max(int(batch_size), 1), MAX_DELETE_BATCH)

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def delete(self, session: Session, *, bucket_name: str, keys: Iterable[str]) -> DeleteOutcome:
        unique = set(keys)
        outcome = DeleteOutcome(requested=len(unique))
        if not unique:
            return outcome

        for number, batch in enumerate(chunked(unique, self._batch_size), start=1):
            try:
                deleted, failed = self._service.delete_keys(session, bucket_name=bucket_name, keys=batch)
            except DeleteError as exc:
                LOGGER.warning("Delete batch %d in '%s' failed: %s", number, bucket_name, exc)
                outcome.failed_keys.update(batch)
                outcome.errors.append(str(exc))
                continue
            confirmed = set(deleted) - set(failed)
            outcome.deleted += len(confirmed)
            outcome.failed_keys.update(failed)
            outcome.errors.extend(f"{key}: {message}" for key, message in failed.items())
            LOGGER.debug(
                "Delete batch %d in '%s': %d deleted, %d failed",
                number,
                bucket_name,
                len(confirmed),
                len(failed),
            )
        return outcome
