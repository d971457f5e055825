# Client, code and credential storage.
# Created: 2026-10-18
#
# One record per client id. In-memory by default; with a persist_path every
# write is flushed to a JSON file so registrations and tokens survive restarts.

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

from oauthbridge.connectors.mapping import now_ms
from oauthbridge.connectors.models import ConnectorCredentials
from oauthbridge.oauth2.models import (
    AuthorizationCode,
    ClientRecord,
    Credentials,
    OAuthClientInformation,
)

logger = logging.getLogger(__name__)

CODE_TTL_MS = 10 * 60 * 1000


class OAuthStorage:
    """Key-indexed store for clients and their authorization state.

    Writes for the same client id are last-write-wins; there is no locking.
    """

    def __init__(self, persist_path: Path | None = None):
        self._records: dict[str, ClientRecord] = {}
        self._access_index: dict[str, str] = {}  # access_token → client_id
        self._refresh_index: dict[str, str] = {}  # refresh_token → client_id
        self._persist_path = persist_path
        self._load()

    # -- persistence -------------------------------------------------------

    def _load(self) -> None:
        path = self._persist_path
        if path is None or not path.exists():
            return
        try:
            data = json.loads(path.read_text())
            for entry in data:
                record = _record_from_dict(entry)
                self._records[record.client.client_id] = record
                self._index(record)
            logger.debug("Loaded %d OAuth clients from %s", len(self._records), path)
        except (json.JSONDecodeError, OSError, KeyError, TypeError) as exc:
            logger.warning("Failed to load OAuth state from %s: %s", path, exc)

    def _save(self) -> None:
        path = self._persist_path
        if path is None:
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        data = [_record_to_dict(r) for r in self._records.values()]
        path.write_text(json.dumps(data, indent=2))
        try:
            path.chmod(0o600)
        except OSError:
            pass

    def _index(self, record: ClientRecord) -> None:
        creds = record.credentials
        if creds is None:
            return
        client_id = record.client.client_id
        self._access_index[creds.access_token] = client_id
        self._refresh_index[creds.refresh_token] = client_id

    def _unindex(self, record: ClientRecord) -> None:
        creds = record.credentials
        if creds is None:
            return
        self._access_index.pop(creds.access_token, None)
        self._refresh_index.pop(creds.refresh_token, None)

    # -- clients -----------------------------------------------------------

    def create_client(self, client: OAuthClientInformation) -> None:
        """Insert or replace a client, keeping any existing authorization state."""
        record = self._records.get(client.client_id)
        if record is None:
            self._records[client.client_id] = ClientRecord(client=client)
        else:
            record.client = client
        self._save()

    def get_client_by_id(self, client_id: str) -> OAuthClientInformation | None:
        record = self._records.get(client_id)
        return record.client if record else None

    # -- authorization codes -----------------------------------------------

    def record_authorization_code(
        self, client_id: str, code: str, code_challenge: str | None = None
    ) -> None:
        """Store the live code for a client, replacing any previous one."""
        record = self._records.get(client_id)
        if record is None:
            raise KeyError(client_id)
        record.code = AuthorizationCode(
            client_id=client_id,
            code=code,
            code_challenge=code_challenge or None,
            created_at_ms=now_ms(),
        )
        self._save()

    def get_authorization_code(self, client_id: str, code: str) -> AuthorizationCode | None:
        record = self._records.get(client_id)
        if record is None or record.code is None or record.code.code != code:
            return None
        return record.code

    def mark_code_ready(self, client_id: str, code: str) -> None:
        auth_code = self.get_authorization_code(client_id, code)
        if auth_code is not None:
            auth_code.ready = True
            self._save()

    def mark_code_used(self, client_id: str, code: str) -> None:
        auth_code = self.get_authorization_code(client_id, code)
        if auth_code is not None:
            auth_code.used = True
            self._save()

    # -- credentials -------------------------------------------------------

    def get_by_access_token(self, token: str) -> ClientRecord | None:
        client_id = self._access_index.get(token)
        return self._records.get(client_id) if client_id else None

    def get_by_refresh_token(self, token: str) -> ClientRecord | None:
        client_id = self._refresh_index.get(token)
        return self._records.get(client_id) if client_id else None

    def update_credentials(
        self,
        client_id: str,
        credentials: Credentials | None = None,
        connector_credentials: ConnectorCredentials | None = None,
    ) -> None:
        """Replace either or both credential sets in a single write.

        A side passed as None keeps its stored value.
        """
        record = self._records.get(client_id)
        if record is None:
            raise KeyError(client_id)
        if credentials is not None:
            self._unindex(record)
            record.credentials = credentials
            self._index(record)
        if connector_credentials is not None:
            record.connector_credentials = connector_credentials
        self._save()

    def cleanup_expired(self) -> None:
        """Drop used or stale authorization codes."""
        now = now_ms()
        changed = False
        for record in self._records.values():
            code = record.code
            if code is not None and (code.used or now - code.created_at_ms > CODE_TTL_MS):
                record.code = None
                changed = True
        if changed:
            self._save()


def _record_to_dict(record: ClientRecord) -> dict[str, Any]:
    return {
        "client": record.client.model_dump(),
        "code": asdict(record.code) if record.code else None,
        "credentials": asdict(record.credentials) if record.credentials else None,
        "connector_credentials": (
            asdict(record.connector_credentials) if record.connector_credentials else None
        ),
    }


def _record_from_dict(entry: dict[str, Any]) -> ClientRecord:
    return ClientRecord(
        client=OAuthClientInformation(**entry["client"]),
        code=AuthorizationCode(**entry["code"]) if entry.get("code") else None,
        credentials=Credentials(**entry["credentials"]) if entry.get("credentials") else None,
        connector_credentials=(
            ConnectorCredentials(**entry["connector_credentials"])
            if entry.get("connector_credentials")
            else None
        ),
    )
