from __future__ import annotations
"""View-agnostic presenter that wraps controller operations."""
from dataclasses import replace
import logging
from pathlib import Path
import threading
from typing import Callable, Iterable, Sequence

from .controller import BrowserController
from .errors import ObjectStoreError, StoreConnectionError
from .models import Breadcrumb, ConnectionParams, DeleteOutcome, ObjectEntry, UploadResult, UploadTask
from .profiles import ConnectionProfile
from .settings import AppSettings, SettingsStorage

DispatchFn = Callable[[Callable[[], None]], None]
NotifyFn = Callable[[str, str], None]
ErrorFn = Callable[[str], None]
DoneFn = Callable[[], None]

INFO = "info"
SUCCESS = "success"
ERROR = "error"

LOGGER = logging.getLogger(__name__)


def _format_error(exc: Exception) -> str:
    return str(exc)


def _ignore_notification(message: str, severity: str) -> None:
    LOGGER.debug("[%s] %s", severity, message)


class BrowserPresenter:
    """Runs store operations in the background and reports through callbacks.

    Every outcome is also sent to ``notify(message, severity)`` so a view can
    show transient messages without inspecting results.
    """

    def __init__(
        self,
        *,
        controller: BrowserController | None = None,
        settings_storage: SettingsStorage | None = None,
        dispatch: DispatchFn | None = None,
        notify: NotifyFn | None = None,
    ) -> None:
        self._settings_storage = settings_storage or SettingsStorage()
        self._settings = self._settings_storage.load()
        if controller is None:
            controller = BrowserController(settings=self._settings)
        else:
            controller.apply_settings(self._settings)
        self._controller = controller
        self._dispatch = dispatch or (lambda func: func())
        self._notify_sink = notify or _ignore_notification

    @property
    def settings(self) -> AppSettings:
        return replace(self._settings)

    @property
    def is_connected(self) -> bool:
        return self._controller.is_connected

    @property
    def buckets(self) -> list[str]:
        return self._controller.buckets

    @property
    def uploads(self) -> list[UploadTask]:
        return self._controller.uploads

    @property
    def selection(self) -> frozenset[str]:
        return self._controller.navigator.selection

    def visible_entries(self) -> Sequence[ObjectEntry]:
        return self._controller.navigator.visible_entries()

    def breadcrumbs(self) -> list[Breadcrumb]:
        return self._controller.navigator.breadcrumbs()

    def set_query(self, query: str) -> None:
        self._controller.navigator.set_query(query)

    def toggle_selection(self, key: str) -> None:
        self._controller.navigator.toggle(key)

    def toggle_all_visible(self) -> None:
        self._controller.navigator.toggle_all_visible()

    def save_settings(self, settings: AppSettings) -> None:
        self._settings = settings
        self._settings_storage.save(settings)
        self._controller.apply_settings(settings)

    def _notify(self, message: str, severity: str) -> None:
        self._dispatch(lambda: self._notify_sink(message, severity))

    def _run(self, name: str, work: Callable[[], None]) -> None:
        threading.Thread(target=work, name=name, daemon=True).start()

    # Connections

    def test_connection(
        self,
        params: ConnectionParams,
        *,
        on_result: Callable[[str, str], None],
    ) -> None:
        def task() -> None:
            try:
                self._controller.test_connection(params)
            except StoreConnectionError as exc:
                message = f"Error: {exc.kind.value}. {exc.hint}"
                self._dispatch(lambda: on_result(message, ERROR))
            else:
                self._dispatch(lambda: on_result("Success! Connection is working.", SUCCESS))

        self._run("test-connection", task)

    def connect(
        self,
        params: ConnectionParams,
        *,
        save_as: str | None = None,
        on_success: Callable[[list[str]], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> None:
        if save_as is not None and not save_as.strip():
            self._notify("Please enter a name for the connection to save it.", ERROR)
            return
        LOGGER.debug("Connecting to %s", params.endpoint_url)

        def task() -> None:
            try:
                self._controller.connect(params, save_as=save_as)
            except StoreConnectionError as exc:
                LOGGER.warning("Connection error for %s: %s", params.endpoint_url, exc)
                self._notify(_format_error(exc), ERROR)
                self._dispatch(lambda message=_format_error(exc): on_error(message))
            except Exception as exc:
                LOGGER.exception("Unexpected connection error for %s", params.endpoint_url)
                self._notify(f"Connection failed: {_format_error(exc)}", ERROR)
                self._dispatch(lambda message=_format_error(exc): on_error(message))
            else:
                if save_as:
                    self._notify(f"Connection \"{save_as}\" saved!", SUCCESS)
                self._fetch_buckets(on_success, on_error)
            finally:
                if on_done:
                    self._dispatch(on_done)

        self._run("connect", task)

    def connect_with_profile(
        self,
        profile_id: str,
        *,
        on_success: Callable[[list[str]], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> None:
        def task() -> None:
            try:
                profile = self._controller.get_profile(profile_id)
                self._controller.connect_with_profile(profile_id)
            except StoreConnectionError as exc:
                LOGGER.warning("Connection error for profile %s: %s", profile_id, exc)
                self._notify(_format_error(exc), ERROR)
                self._dispatch(lambda message=_format_error(exc): on_error(message))
            except Exception as exc:
                LOGGER.exception("Unexpected connection error for profile %s", profile_id)
                self._notify(f"Connection failed: {_format_error(exc)}", ERROR)
                self._dispatch(lambda message=_format_error(exc): on_error(message))
            else:
                self._remember_connection(profile.name)
                self._fetch_buckets(on_success, on_error)
            finally:
                if on_done:
                    self._dispatch(on_done)

        self._run("connect-profile", task)

    def disconnect(self) -> None:
        self._controller.disconnect()
        self._notify("Disconnected.", INFO)

    def _remember_connection(self, name: str) -> None:
        self._settings = replace(self._settings, last_connection=name or "")
        self._settings_storage.save(self._settings)
        self._controller.apply_settings(self._settings)

    def _fetch_buckets(self, on_success: Callable[[list[str]], None], on_error: ErrorFn) -> None:
        try:
            buckets = self._controller.refresh_buckets()
        except ObjectStoreError as exc:
            LOGGER.warning("Bucket refresh error: %s", exc)
            self._notify("Could not fetch buckets.", ERROR)
            self._dispatch(lambda message=_format_error(exc): on_error(message))
        else:
            LOGGER.debug("Bucket refresh returned %d bucket(s)", len(buckets))
            self._dispatch(lambda: on_success(buckets))

    def refresh_buckets(
        self,
        *,
        on_success: Callable[[list[str]], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> None:
        def task() -> None:
            try:
                self._fetch_buckets(on_success, on_error)
            finally:
                if on_done:
                    self._dispatch(on_done)

        self._run("refresh-buckets", task)

    # Navigation

    def open_bucket(self, name: str, **callbacks) -> None:
        self._controller.open_bucket(name)
        self.refresh_listing(**callbacks)

    def enter_folder(self, key: str, **callbacks) -> None:
        self._controller.enter_folder(key)
        self.refresh_listing(**callbacks)

    def navigate_to_breadcrumb(self, index: int, **callbacks) -> None:
        self._controller.navigate_to_breadcrumb(index)
        if self._controller.navigator.bucket is None:
            callback = callbacks.get("on_success")
            if callback:
                self._dispatch(lambda: callback([]))
            return
        self.refresh_listing(**callbacks)

    def refresh_listing(
        self,
        *,
        on_success: Callable[[Sequence[ObjectEntry]], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> None:
        bucket = self._controller.navigator.bucket

        def task() -> None:
            try:
                entries = self._controller.refresh_listing()
            except ObjectStoreError as exc:
                LOGGER.warning("List objects error for bucket '%s': %s", bucket, exc)
                self._notify(f"Could not list objects in {bucket}.", ERROR)
                self._dispatch(lambda message=_format_error(exc): on_error(message))
            except Exception as exc:
                LOGGER.exception("Unexpected list objects error for bucket '%s'", bucket)
                self._notify(f"Could not list objects in {bucket}.", ERROR)
                self._dispatch(lambda message=_format_error(exc): on_error(message))
            else:
                LOGGER.debug("Listed %d entries for bucket '%s'", len(entries), bucket)
                self._dispatch(lambda: on_success(entries))
            finally:
                if on_done:
                    self._dispatch(on_done)

        self._run("list-objects", task)

    # Actions

    def delete_selected(
        self,
        *,
        on_success: Callable[[DeleteOutcome], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> None:
        def task() -> None:
            try:
                outcome = self._controller.delete_selected()
            except ObjectStoreError as exc:
                LOGGER.warning("Delete error: %s", exc)
                self._notify("Failed to delete items.", ERROR)
                self._dispatch(lambda message=_format_error(exc): on_error(message))
            except Exception as exc:
                LOGGER.exception("Unexpected delete error")
                self._notify("Failed to delete items.", ERROR)
                self._dispatch(lambda message=_format_error(exc): on_error(message))
            else:
                if outcome.failed_keys:
                    self._notify(
                        f"{outcome.deleted} item(s) deleted, {len(outcome.failed_keys)} failed.",
                        ERROR,
                    )
                elif outcome.requested:
                    self._notify(f"{outcome.deleted} item(s) deleted successfully.", SUCCESS)
                self._dispatch(lambda: on_success(outcome))
            finally:
                if on_done:
                    self._dispatch(on_done)

        self._run("delete", task)

    def upload_files(
        self,
        paths: Iterable[str],
        *,
        on_settled: Callable[[UploadResult], None] | None = None,
    ) -> list[UploadTask]:
        def settled(result: UploadResult) -> None:
            if result.succeeded:
                self._notify(f"File \"{result.task.file_name}\" uploaded successfully.", SUCCESS)
            else:
                self._notify(f"Failed to upload \"{result.task.file_name}\".", ERROR)
            if on_settled:
                self._dispatch(lambda: on_settled(result))

        return self._controller.start_uploads(paths, on_settled=settled)

    def download(
        self,
        key: str,
        destination_dir: str | Path,
        *,
        on_success: Callable[[Path], None] | None = None,
        on_error: ErrorFn | None = None,
    ) -> None:
        def task() -> None:
            try:
                downloaded = self._controller.download(key)
                target = Path(destination_dir) / downloaded.file_name
                target.write_bytes(downloaded.body)
            except (ObjectStoreError, OSError) as exc:
                LOGGER.warning("Download error for '%s': %s", key, exc)
                self._notify(f"Failed to download \"{key}\".", ERROR)
                if on_error:
                    self._dispatch(lambda message=_format_error(exc): on_error(message))
            else:
                if on_success:
                    self._dispatch(lambda: on_success(target))

        self._run("download", task)

    # Saved connections

    def list_profiles(self) -> list[ConnectionProfile]:
        return self._controller.list_profiles()

    def save_connection(self, name: str, params: ConnectionParams) -> ConnectionProfile:
        profile = self._controller.save_connection(name, params)
        self._notify(f"Connection \"{name}\" saved!", SUCCESS)
        return profile

    def delete_profile(self, profile_id: str) -> None:
        self._controller.delete_profile(profile_id)
        self._notify("Connection deleted.", INFO)

    def maybe_auto_connect_profile(self) -> ConnectionProfile | None:
        name = self._settings.last_connection
        if not name:
            return None
        for profile in self._controller.list_profiles():
            if profile.name == name:
                return profile
        return None
