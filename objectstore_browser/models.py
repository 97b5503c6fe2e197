from __future__ import annotations
"""Data models shared by the session, navigator, delete and upload layers."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

DEFAULT_REGION = "us-east-1"
DELIMITER = "/"


@dataclass(frozen=True)
class ConnectionParams:
    """Validated parameters used to build a store client."""

    endpoint_url: str
    access_key: str
    secret_key: str = field(repr=False)
    region: str = DEFAULT_REGION
    path_style: bool = True


@dataclass(frozen=True)
class Session:
    """A live store connection. Replaced wholesale on reconnect."""

    params: ConnectionParams
    client: Any = field(repr=False, compare=False)


@dataclass(frozen=True)
class ObjectEntry:
    """A folder (common prefix) or file shown in the current listing."""

    key: str
    is_folder: bool = False
    size: Optional[int] = None
    last_modified: Optional[datetime] = None

    @property
    def name(self) -> str:
        trimmed = self.key[:-1] if self.is_folder else self.key
        name = trimmed.rsplit(DELIMITER, 1)[-1]
        return f"{name}{DELIMITER}" if self.is_folder else name


@dataclass(frozen=True)
class Breadcrumb:
    label: str
    index: int


@dataclass
class UploadTask:
    """Progress of a single in-flight upload."""

    id: str
    file_name: str
    target_key: str
    bucket: str
    prefix: str
    total_bytes: Optional[int] = None
    progress_percent: int = 0
    terminal: bool = False


@dataclass(frozen=True)
class UploadResult:
    task: UploadTask
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class DeleteOutcome:
    """Aggregate result of a bulk delete."""

    requested: int = 0
    deleted: int = 0
    failed_keys: set[str] = field(default_factory=set)
    errors: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed_keys


@dataclass(frozen=True)
class DownloadedObject:
    key: str
    file_name: str
    body: bytes = field(repr=False)
    content_type: Optional[str] = None
