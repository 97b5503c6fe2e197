from __future__ import annotations
"""Controller layer: owns the live session and everything derived from it."""
import logging
from typing import Callable, Iterable, Optional, Sequence

from .deletion import BulkDeleter, resolve_keys
from .errors import ListingError, NotConnectedError, ObjectStoreError
from .models import ConnectionParams, DeleteOutcome, DownloadedObject, ObjectEntry, Session, UploadResult, UploadTask
from .navigator import NamespaceNavigator
from .profiles import ConnectionProfile, ProfileStorage, new_profile_id
from .services import ObjectStoreService
from .settings import AppSettings
from .uploads import UploadTracker

LOGGER = logging.getLogger(__name__)


class BrowserController:
    """Coordinates user actions with the :class:`ObjectStoreService`.

    Exactly one :class:`Session` is live at a time. Reconnecting or
    disconnecting drops the bucket list, the navigator context, the selection
    and the filter query. Uploads already in flight keep running, but their
    results are not applied to a context that no longer exists.
    """

    def __init__(
        self,
        service: ObjectStoreService | None = None,
        storage: ProfileStorage | None = None,
        settings: AppSettings | None = None,
    ):
        self._service = service or ObjectStoreService()
        self._storage = storage or ProfileStorage()
        self._settings = settings or AppSettings()
        self._session: Session | None = None
        self._buckets: list[str] = []
        self._navigator = NamespaceNavigator()
        self._uploads = UploadTracker(self._service, self._settings.transfer_config())
        self._deleter = BulkDeleter(self._service, self._settings.delete_batch_size)
        self._profiles: list[ConnectionProfile] = self._storage.load()
        self._selected_profile: str | None = None

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def navigator(self) -> NamespaceNavigator:
        return self._navigator

    @property
    def buckets(self) -> list[str]:
        return list(self._buckets)

    @property
    def uploads(self) -> list[UploadTask]:
        return self._uploads.snapshot()

    @property
    def upload_tracker(self) -> UploadTracker:
        return self._uploads

    @property
    def selected_profile(self) -> str | None:
        return self._selected_profile

    def apply_settings(self, settings: AppSettings) -> None:
        """Use ``settings`` for every listing, delete and upload started from now on."""

        self._settings = settings
        self._deleter = BulkDeleter(self._service, settings.delete_batch_size)
        self._uploads.transfer_config = settings.transfer_config()

    # Session lifecycle

    def connect(self, params: ConnectionParams, *, save_as: str | None = None) -> Session:
        """Validate ``params`` against the store and make them the live session.

        When ``save_as`` is given the connection is stored as a named profile,
        but only once the store accepted it.
        """
        if save_as is not None and not save_as.strip():
            raise ValueError("Please enter a name for the connection to save it.")
        session = self._service.connect(params)
        if save_as is not None:
            self.save_connection(save_as, params)
        self._reset_state()
        self._session = session
        self._selected_profile = None
        LOGGER.debug("Connected to %s", params.endpoint_url)
        return session

    def test_connection(self, params: ConnectionParams) -> None:
        """Check ``params`` without touching the live session."""

        self._service.connect(params)

    def connect_with_profile(self, profile_id: str) -> Session:
        profile = self.get_profile(profile_id)
        session = self.connect(profile.to_params(self._settings.region))
        self._selected_profile = profile.id
        return session

    def disconnect(self) -> None:
        self._reset_state()
        self._session = None
        self._selected_profile = None
        LOGGER.debug("Disconnected")

    def _reset_state(self) -> None:
        self._buckets = []
        self._navigator.reset()

    def _require_session(self) -> Session:
        if self._session is None:
            raise NotConnectedError("Not connected to the object store")
        return self._session

    def _require_bucket(self) -> str:
        bucket = self._navigator.bucket
        if bucket is None:
            raise ValueError("No bucket is open")
        return bucket

    # Navigation

    def refresh_buckets(self) -> list[str]:
        session = self._require_session()
        buckets = self._service.list_buckets(session)
        if session is self._session:
            self._buckets = buckets
        return list(buckets)

    def open_bucket(self, name: str) -> None:
        self._require_session()
        self._navigator.open_bucket(name)

    def enter_folder(self, key: str) -> None:
        self._require_session()
        self._navigator.enter_folder(key)

    def navigate_to_breadcrumb(self, index: int) -> None:
        self._require_session()
        self._navigator.navigate_to_breadcrumb(index)

    def refresh_listing(self) -> Sequence[ObjectEntry]:
        """List the current bucket/prefix and install the result.

        A result that arrives after the user navigated elsewhere is dropped.
        A failed listing empties the current view before the error propagates.
        """
        session = self._require_session()
        context = self._navigator.context
        if context.bucket is None:
            return []
        try:
            entries = self._service.list_entries(
                session,
                bucket_name=context.bucket,
                prefix=context.prefix,
                page_size=self._settings.list_page_size,
            )
        except ListingError:
            self._navigator.discard_listing(context)
            raise
        if not self._navigator.apply_listing(context, entries):
            LOGGER.debug("Discarding stale listing for '%s/%s'", context.bucket, context.prefix)
        return self._navigator.visible_entries()

    def _refresh_after_change(self, session: Session, bucket: str, prefix: str) -> None:
        if session is not self._session:
            return
        if self._navigator.bucket != bucket or self._navigator.prefix != prefix:
            return
        try:
            self.refresh_listing()
        except ObjectStoreError as exc:
            # A disconnect can land between the session check and the refresh.
            LOGGER.warning("Refresh after change failed: %s", exc)

    # Actions on the selection

    def delete_selected(self) -> DeleteOutcome:
        """Delete every selected file and everything stored under selected folders."""

        session = self._require_session()
        bucket = self._require_bucket()
        prefix = self._navigator.prefix
        selection = self._navigator.selection
        keys = resolve_keys(
            self._service,
            session,
            bucket_name=bucket,
            selection=selection,
            page_size=self._settings.list_page_size,
        )
        outcome = self._deleter.delete(session, bucket_name=bucket, keys=keys)
        LOGGER.debug(
            "Deleted %d of %d key(s) from '%s' (%d failed)",
            outcome.deleted,
            outcome.requested,
            bucket,
            len(outcome.failed_keys),
        )
        if outcome.requested:
            self._refresh_after_change(session, bucket, prefix)
        return outcome

    def start_uploads(
        self,
        paths: Iterable[str],
        *,
        on_settled: Optional[Callable[[UploadResult], None]] = None,
    ) -> list[UploadTask]:
        """Start one concurrent upload per file into the current folder."""

        session = self._require_session()
        bucket = self._require_bucket()
        prefix = self._navigator.prefix

        def _settled(result: UploadResult) -> None:
            if result.succeeded:
                self._refresh_after_change(session, result.task.bucket, result.task.prefix)
            if on_settled:
                on_settled(result)

        return self._uploads.start(
            session,
            bucket_name=bucket,
            prefix=prefix,
            paths=list(paths),
            on_settled=_settled,
        )

    def download(self, key: str) -> DownloadedObject:
        session = self._require_session()
        bucket = self._require_bucket()
        return self._service.get_object(session, bucket_name=bucket, key=key)

    # Saved connections

    def list_profiles(self) -> list[ConnectionProfile]:
        return list(self._profiles)

    def get_profile(self, profile_id: str) -> ConnectionProfile:
        for profile in self._profiles:
            if profile.id == profile_id:
                return profile
        raise ValueError(f"Profile '{profile_id}' does not exist")

    def save_connection(self, name: str, params: ConnectionParams) -> ConnectionProfile:
        """Save ``params`` under ``name``; an exact name match updates that profile."""

        for idx, existing in enumerate(self._profiles):
            if existing.name == name:
                profile = ConnectionProfile(
                    id=existing.id,
                    name=name,
                    endpoint_url=params.endpoint_url,
                    access_key=params.access_key,
                    secret_key=params.secret_key,
                )
                self._profiles[idx] = profile
                break
        else:
            profile = ConnectionProfile(
                id=new_profile_id(),
                name=name,
                endpoint_url=params.endpoint_url,
                access_key=params.access_key,
                secret_key=params.secret_key,
            )
            self._profiles.append(profile)
        self._storage.save(self._profiles)
        return profile

    def delete_profile(self, profile_id: str) -> None:
        before = len(self._profiles)
        self._profiles = [p for p in self._profiles if p.id != profile_id]
        if len(self._profiles) == before:
            raise ValueError(f"Profile '{profile_id}' does not exist")
        if self._selected_profile == profile_id:
            self._selected_profile = None
        self._storage.save(self._profiles)
