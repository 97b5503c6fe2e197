from __future__ import annotations
"""Saved connection profiles and their persistence."""
from dataclasses import dataclass
import json
import logging
from pathlib import Path
import uuid

import keyring
from keyring.errors import KeyringError

from .models import DEFAULT_REGION, ConnectionParams

LOGGER = logging.getLogger(__name__)

KEYRING_SERVICE = "objectstore-browser"


def new_profile_id() -> str:
    return uuid.uuid4().hex


@dataclass
class ConnectionProfile:
    """Represents a saved store connection."""

    id: str
    name: str
    endpoint_url: str
    access_key: str
    secret_key: str

    def to_params(self, region: str = DEFAULT_REGION) -> ConnectionParams:
        return ConnectionParams(
            endpoint_url=self.endpoint_url,
            access_key=self.access_key,
            secret_key=self.secret_key,
            region=region,
        )


class KeychainStore:
    """Encapsulates OS keychain access for secrets, keyed by profile id."""

    def __init__(self, service_name: str = KEYRING_SERVICE):
        self._service_name = service_name

    def get_secret(self, profile_id: str) -> str:
        if not profile_id:
            return ""
        try:
            return keyring.get_password(self._service_name, profile_id) or ""
        except KeyringError:
            LOGGER.warning("Keychain lookup failed for profile %s", profile_id)
            return ""

    def set_secret(self, profile_id: str, secret_key: str) -> None:
        if not profile_id:
            return
        if not secret_key:
            self.delete_secret(profile_id)
            return
        try:
            keyring.set_password(self._service_name, profile_id, secret_key)
        except KeyringError:
            LOGGER.warning("Could not store secret for profile %s in the keychain", profile_id)

    def delete_secret(self, profile_id: str) -> None:
        if not profile_id:
            return
        try:
            keyring.delete_password(self._service_name, profile_id)
        except KeyringError:
            return


class ProfileStorage:
    """JSON-backed store for connection profiles; secrets go to the keychain."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".objectstore_browser_connections.json"
        self._path = Path(storage_path)
        self._keychain = KeychainStore()

    def load(self) -> list[ConnectionProfile]:
        data = self._read_data()
        profiles: list[ConnectionProfile] = []
        sanitized: list[dict[str, str]] = []
        saw_plaintext = False
        rewrite = False
        for entry in data:
            try:
                name = entry["name"]
                endpoint_url = entry["endpoint_url"]
                access_key = entry["access_key"]
            except (KeyError, TypeError):
                continue
            profile_id = str(entry.get("id") or "")
            if not profile_id:
                profile_id = new_profile_id()
                rewrite = True
            secret_key = entry.get("secret_key", "")
            if secret_key:
                saw_plaintext = True
                self._keychain.set_secret(profile_id, secret_key)
            else:
                secret_key = self._keychain.get_secret(profile_id)
            profiles.append(
                ConnectionProfile(
                    id=profile_id,
                    name=name,
                    endpoint_url=endpoint_url,
                    access_key=access_key,
                    secret_key=secret_key,
                )
            )
            sanitized.append(self._public_fields(profiles[-1]))
        if saw_plaintext or rewrite:
            self._write_data(sanitized)
        return profiles

    def save(self, profiles: list[ConnectionProfile]) -> None:
        data = []
        for profile in profiles:
            self._keychain.set_secret(profile.id, profile.secret_key)
            data.append(self._public_fields(profile))
        existing_ids = {str(entry.get("id")) for entry in self._read_data() if entry.get("id")}
        for stale_id in existing_ids - {profile.id for profile in profiles}:
            self._keychain.delete_secret(stale_id)
        self._write_data(data)

    @staticmethod
    def _public_fields(profile: ConnectionProfile) -> dict[str, str]:
        return {
            "id": profile.id,
            "name": profile.name,
            "endpoint_url": profile.endpoint_url,
            "access_key": profile.access_key,
        }

    def _read_data(self) -> list[dict]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return []
        if not isinstance(data, list):
            return []
        return [entry for entry in data if isinstance(entry, dict)]

    def _write_data(self, data: list[dict[str, str]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
