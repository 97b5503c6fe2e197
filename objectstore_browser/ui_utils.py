from __future__ import annotations
"""UI-agnostic helpers for formatting listing values."""
from datetime import datetime

DEFAULT_DOWNLOAD_NAME = "download"


def format_size(size: int | None) -> str:
    if size is None:
        return "-"
    suffixes = ["B", "KB", "MB", "GB", "TB"]
    value = float(max(size, 0))
    for suffix in suffixes:
        if value < 1024 or suffix == suffixes[-1]:
            return f"{value:.1f} {suffix}" if suffix != "B" else f"{int(value)} {suffix}"
        value /= 1024
    return f"{size} B"


def format_last_modified(last_modified: object) -> str:
    if not last_modified:
        return "-"
    if isinstance(last_modified, datetime):
        return last_modified.strftime("%Y-%m-%d %H:%M:%S %Z").strip() or last_modified.isoformat()
    return str(last_modified)


def suggest_download_filename(key: str) -> str:
    cleaned = key.strip().rstrip("/")
    if not cleaned:
        return DEFAULT_DOWNLOAD_NAME
    return cleaned.rsplit("/", 1)[-1] or DEFAULT_DOWNLOAD_NAME
