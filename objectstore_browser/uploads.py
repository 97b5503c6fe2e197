from __future__ import annotations
"""Concurrent upload bookkeeping: one task per local file, progress snapshots."""
import logging
import os
import threading
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, Optional

from boto3.s3.transfer import TransferConfig

from .errors import UploadError
from .models import Session, UploadResult, UploadTask
from .services import ObjectStoreService

LOGGER = logging.getLogger(__name__)

SettledFn = Callable[[UploadResult], None]


def progress_percent(transferred: int, total: int | None) -> int:
    if not total or total <= 0:
        return 0
    return max(0, min(100, transferred * 100 // total))


def _file_size(path: str) -> int | None:
    try:
        return os.path.getsize(path)
    except OSError:
        return None


class UploadTracker:
    """Runs every upload on its own thread and keeps the live task table.

    Only the tracker mutates :class:`UploadTask` instances; callers get
    copies from :meth:`snapshot`. A task leaves the table as soon as its
    transfer settles.
    """

    def __init__(self, service: ObjectStoreService, transfer_config: TransferConfig | None = None):
        self._service = service
        self._transfer_config = transfer_config
        self._lock = threading.Lock()
        self._tasks: dict[str, UploadTask] = {}
        self._threads: list[threading.Thread] = []

    @property
    def transfer_config(self) -> TransferConfig | None:
        return self._transfer_config

    @transfer_config.setter
    def transfer_config(self, config: TransferConfig | None) -> None:
        # Uploads already running keep the config they started with.
        self._transfer_config = config

    def start(
        self,
        session: Session,
        *,
        bucket_name: str,
        prefix: str,
        paths: Iterable[str],
        on_settled: Optional[SettledFn] = None,
    ) -> list[UploadTask]:
        started: list[UploadTask] = []
        config = self._transfer_config
        for path in paths:
            file_name = Path(path).name
            task = UploadTask(
                id=uuid.uuid4().hex,
                file_name=file_name,
                target_key=f"{prefix}{file_name}",
                bucket=bucket_name,
                prefix=prefix,
                total_bytes=_file_size(path),
            )
            thread = threading.Thread(
                target=self._run,
                args=(session, task.id, str(path), config, on_settled),
                name=f"upload-{file_name}",
                daemon=True,
            )
            with self._lock:
                self._tasks[task.id] = task
                # Unstarted threads have no ident yet.
                self._threads = [known for known in self._threads if known.ident is None or known.is_alive()]
                self._threads.append(thread)
            LOGGER.debug("Starting upload of '%s' to '%s/%s'", path, bucket_name, task.target_key)
            started.append(replace(task))
            thread.start()
        return started

    def _run(
        self,
        session: Session,
        task_id: str,
        path: str,
        config: TransferConfig | None,
        on_settled: Optional[SettledFn],
    ) -> None:
        task = self.get(task_id)
        error: UploadError | None = None
        try:
            self._service.upload_file(
                session,
                bucket_name=task.bucket,
                key=task.target_key,
                source_path=path,
                progress_callback=lambda transferred: self._record_progress(task_id, transferred),
                transfer_config=config,
            )
        except UploadError as exc:
            LOGGER.warning("Upload of '%s' failed: %s", task.file_name, exc)
            error = exc
        except Exception as exc:
            LOGGER.exception("Unexpected upload error for '%s'", task.file_name)
            error = UploadError(str(exc), file_name=task.file_name, target_key=task.target_key)
        else:
            self._record_progress(task_id, task.total_bytes or 0, complete=True)
        finally:
            with self._lock:
                settled = self._tasks.pop(task_id, task)
                settled.terminal = True
                final = replace(settled)
        if on_settled:
            on_settled(UploadResult(task=final, error=error))

    def _record_progress(self, task_id: str, transferred: int, *, complete: bool = False) -> None:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return
            percent = 100 if complete else progress_percent(transferred, task.total_bytes)
            task.progress_percent = max(task.progress_percent, percent)

    def get(self, task_id: str) -> UploadTask:
        with self._lock:
            return replace(self._tasks[task_id])

    def snapshot(self) -> list[UploadTask]:
        with self._lock:
            return [replace(task) for task in self._tasks.values()]

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._tasks)

    def join(self, timeout: float | None = None) -> None:
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)
        with self._lock:
            self._threads = [thread for thread in self._threads if thread.ident is None or thread.is_alive()]
