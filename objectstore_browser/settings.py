from __future__ import annotations
"""Application settings persistence helpers."""

from dataclasses import asdict, dataclass
import json
import logging
from pathlib import Path

from boto3.s3.transfer import TransferConfig

from .models import DEFAULT_REGION

LOGGER = logging.getLogger(__name__)

MIB = 1024 * 1024
MAX_DELETE_BATCH_SIZE = 1000
MAX_LIST_PAGE_SIZE = 1000


@dataclass
class AppSettings:
    """Simple container for persistent app settings."""

    region: str = DEFAULT_REGION
    list_page_size: int = MAX_LIST_PAGE_SIZE
    delete_batch_size: int = MAX_DELETE_BATCH_SIZE
    upload_multipart_threshold: int = 8 * MIB
    upload_chunk_size: int = 8 * MIB
    upload_max_concurrency: int = 4
    last_connection: str = ""

    def transfer_config(self) -> TransferConfig:
        return TransferConfig(
            multipart_threshold=self.upload_multipart_threshold,
            multipart_chunksize=self.upload_chunk_size,
            max_concurrency=self.upload_max_concurrency,
        )


def _positive_int(value: object, default: int, maximum: int | None = None) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number <= 0:
        return default
    if maximum is not None:
        number = min(number, maximum)
    return number


class SettingsStorage:
    """JSON-backed persistence for :class:`AppSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".objectstore_browser_settings.json"
        self._path = Path(storage_path)

    def load(self) -> AppSettings:
        if not self._path.exists():
            return AppSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("Ignoring unreadable settings file %s", self._path)
            return AppSettings()
        if not isinstance(data, dict):
            return AppSettings()

        defaults = AppSettings()
        region = data.get("region")
        last_connection = data.get("last_connection")
        return AppSettings(
            region=region.strip() if isinstance(region, str) and region.strip() else defaults.region,
            list_page_size=_positive_int(data.get("list_page_size"), defaults.list_page_size, MAX_LIST_PAGE_SIZE),
            delete_batch_size=_positive_int(
                data.get("delete_batch_size"), defaults.delete_batch_size, MAX_DELETE_BATCH_SIZE
            ),
            upload_multipart_threshold=_positive_int(
                data.get("upload_multipart_threshold"), defaults.upload_multipart_threshold
            ),
            upload_chunk_size=_positive_int(data.get("upload_chunk_size"), defaults.upload_chunk_size),
            upload_max_concurrency=_positive_int(data.get("upload_max_concurrency"), defaults.upload_max_concurrency),
            last_connection=last_connection if isinstance(last_connection, str) else "",
        )

    def save(self, settings: AppSettings) -> None:
        payload = asdict(settings)
        payload["list_page_size"] = min(max(int(settings.list_page_size), 1), MAX_LIST_PAGE_SIZE)
        payload["delete_batch_size"] = min(max(int(settings.delete_batch_size), 1), MAX_DELETE_BATCH_SIZE)
        for name in ("upload_multipart_threshold", "upload_chunk_size", "upload_max_concurrency"):
            payload[name] = max(int(payload[name]), 1)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            LOGGER.warning("Could not write settings to %s", self._path)
