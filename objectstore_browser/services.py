from __future__ import annotations
"""Store gateway: every call against the object store goes through here."""
import logging
import threading
from pathlib import Path
from typing import Callable, Iterable, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.client import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
)

from .errors import (
    ConnectionFailureKind,
    DeleteError,
    DownloadError,
    ListingError,
    StoreConnectionError,
    UploadError,
)
from .models import DELIMITER, ConnectionParams, DownloadedObject, ObjectEntry, Session
from .ui_utils import suggest_download_filename

LOGGER = logging.getLogger(__name__)

PAGE_SIZE = 1000
MAX_DELETE_BATCH = 1000

_NETWORK_ERRORS = (BotoConnectionError, HTTPClientError)


def _describe(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code") or "ClientError"
        message = error.get("Message")
        return f"{code}: {message}" if message else code
    return str(exc) or type(exc).__name__


def classify_connection_failure(exc: Exception) -> ConnectionFailureKind:
    """Tell an unreachable endpoint apart from a rejected credential."""

    if isinstance(exc, _NETWORK_ERRORS) or isinstance(exc, ValueError):
        return ConnectionFailureKind.NETWORK
    return ConnectionFailureKind.AUTHENTICATION


class ObjectStoreService:
    """Encapsulates store calls independent of any UI technology."""

    def __init__(self, client_factory: Callable[..., object] | None = None):
        self._client_factory = client_factory or boto3.client

    def connect(self, params: ConnectionParams) -> Session:
        """Create a client and validate it with a lightweight listing call.

        Raises:
            StoreConnectionError: with ``kind`` NETWORK when the endpoint
                cannot be reached, AUTHENTICATION otherwise.
        """
        LOGGER.debug("Connecting to %s (region %s)", params.endpoint_url, params.region)
        try:
            client = self._create_client(params)
            client.list_buckets()
        except (BotoCoreError, ClientError, ValueError) as exc:
            kind = classify_connection_failure(exc)
            LOGGER.warning("Connection to %s failed (%s): %s", params.endpoint_url, kind.value, exc)
            raise StoreConnectionError(kind, f"Connection failed: {_describe(exc)}") from exc
        return Session(params=params, client=client)

    def _create_client(self, params: ConnectionParams):
        addressing_style = "path" if params.path_style else "auto"
        config = Config(signature_version="s3v4", s3={"addressing_style": addressing_style})
        return self._client_factory(
            "s3",
            endpoint_url=params.endpoint_url,
            region_name=params.region,
            aws_access_key_id=params.access_key,
            aws_secret_access_key=params.secret_key,
            config=config,
        )

    def list_buckets(self, session: Session) -> list[str]:
        """Return the available bucket names."""

        try:
            response = session.client.list_buckets()
        except (BotoCoreError, ClientError) as exc:
            raise ListingError(f"Could not fetch buckets: {_describe(exc)}") from exc
        return [bucket["Name"] for bucket in response.get("Buckets", [])]

    def list_entries(
        self,
        session: Session,
        *,
        bucket_name: str,
        prefix: str = "",
        page_size: int = PAGE_SIZE,
    ) -> list[ObjectEntry]:
        """Return one hierarchy level: folders first, then files.

        The object whose key equals ``prefix`` is a folder marker and is not
        returned as a file.
        """
        folders: list[ObjectEntry] = []
        files: list[ObjectEntry] = []
        for page in self._iter_pages(session, bucket_name, prefix=prefix, delimiter=DELIMITER, page_size=page_size):
            folders.extend(
                ObjectEntry(key=common["Prefix"], is_folder=True) for common in page.get("CommonPrefixes", [])
            )
            files.extend(
                ObjectEntry(
                    key=obj["Key"],
                    size=obj.get("Size"),
                    last_modified=obj.get("LastModified"),
                )
                for obj in page.get("Contents", [])
                if obj["Key"] != prefix
            )
        return folders + files

    def list_all_keys(
        self,
        session: Session,
        *,
        bucket_name: str,
        prefix: str,
        page_size: int = PAGE_SIZE,
    ) -> list[str]:
        """Return every key under ``prefix`` using a flat, fully paginated listing."""

        keys: list[str] = []
        for page in self._iter_pages(session, bucket_name, prefix=prefix, delimiter=None, page_size=page_size):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
        return keys

    def _iter_pages(
        self,
        session: Session,
        bucket_name: str,
        *,
        prefix: str,
        delimiter: str | None,
        page_size: int,
    ):
        request_token: str | None = None
        pages_fetched = 0
        while True:
            list_params = {"Bucket": bucket_name, "MaxKeys": max(1, min(page_size, PAGE_SIZE))}
            if prefix:
                list_params["Prefix"] = prefix
            if delimiter:
                list_params["Delimiter"] = delimiter
            if request_token:
                list_params["ContinuationToken"] = request_token

            try:
                response = session.client.list_objects_v2(**list_params)
            except (BotoCoreError, ClientError) as exc:
                raise ListingError(
                    f"Could not list objects in {bucket_name}: {_describe(exc)}",
                    bucket=bucket_name,
                    prefix=prefix,
                    pages_fetched=pages_fetched,
                ) from exc
            pages_fetched += 1
            LOGGER.debug("Fetched page %d for '%s/%s'", pages_fetched, bucket_name, prefix)
            yield response

            request_token = response.get("NextContinuationToken")
            if not (response.get("IsTruncated") and request_token):
                break

    def delete_keys(
        self,
        session: Session,
        *,
        bucket_name: str,
        keys: Iterable[str],
    ) -> tuple[list[str], dict[str, str]]:
        """Issue one batched delete and return ``(deleted, failed)``.

        ``failed`` maps each key the store refused to its error message.

        Raises:
            DeleteError: when the request itself fails; every key in the
                batch is then unconfirmed.
        """
        batch = list(keys)
        if len(batch) > MAX_DELETE_BATCH:
            raise ValueError(f"A delete batch holds at most {MAX_DELETE_BATCH} keys")
        try:
            response = session.client.delete_objects(
                Bucket=bucket_name,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": False},
            )
        except (BotoCoreError, ClientError) as exc:
            raise DeleteError(f"Failed to delete {len(batch)} key(s): {_describe(exc)}", batch) from exc
        deleted = [item["Key"] for item in response.get("Deleted", [])]
        failed = {
            item["Key"]: item.get("Message") or item.get("Code") or "unknown error"
            for item in response.get("Errors", [])
        }
        return deleted, failed

    def upload_file(
        self,
        session: Session,
        *,
        bucket_name: str,
        key: str,
        source_path: str,
        progress_callback: Optional[Callable[[int], None]] = None,
        transfer_config: TransferConfig | None = None,
    ) -> None:
        """Upload a local file; large files go through multipart transfer.

        ``progress_callback`` receives the cumulative number of bytes sent.
        """
        callback = self._build_transfer_callback(progress_callback)
        try:
            session.client.upload_file(
                source_path,
                bucket_name,
                key,
                Callback=callback,
                Config=transfer_config,
            )
        except (S3UploadFailedError, BotoCoreError, ClientError, OSError) as exc:
            # The managed transfer wraps the store's ClientError.
            cause = exc.__cause__ or exc.__context__
            detail = _describe(cause if isinstance(cause, ClientError) else exc)
            raise UploadError(
                f"Failed to upload \"{Path(source_path).name}\": {detail}",
                file_name=Path(source_path).name,
                target_key=key,
            ) from exc

    def get_object(self, session: Session, *, bucket_name: str, key: str) -> DownloadedObject:
        """Fetch an object body into memory along with its content type."""

        try:
            response = session.client.get_object(Bucket=bucket_name, Key=key)
            body = response["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise DownloadError(f"Failed to download \"{key}\": {_describe(exc)}", key=key) from exc
        return DownloadedObject(
            key=key,
            file_name=suggest_download_filename(key),
            body=body,
            content_type=response.get("ContentType"),
        )

    def _build_transfer_callback(self, progress_callback: Optional[Callable[[int], None]]):
        if not progress_callback:
            return None

        transferred = 0
        lock = threading.Lock()

        # boto3 invokes this from its transfer threads during multipart uploads.
        def _callback(bytes_amount: int) -> None:
            nonlocal transferred
            with lock:
                transferred += bytes_amount
                total = transferred
            progress_callback(total)

        return _callback
