# csfle/transport.py

"""
HTTP access to the NoteVault API.

The transport only moves JSON around; it never sees plaintext of encrypted
notes because SyncClient encrypts before calling it.
"""

import logging

import requests

from .errors import TransportError

logger = logging.getLogger(__name__)


class HttpTransport:

    def __init__(self, base_url, token=None, timeout=10.0, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.set_token(token)

    def set_token(self, token):
        self.session.headers["Authorization"] = f"Bearer {token}"

    # ---------------------------------------------------------
    # Low level
    # ---------------------------------------------------------

    def _request(self, method, path, payload=None, params=None):
        url = f"{self.base_url}{path}"

        try:
            res = self.session.request(
                method,
                url,
                json=payload,
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        try:
            body = res.json() if res.content else {}
        except ValueError:
            body = {}

        if res.status_code >= 400:
            message = None
            if isinstance(body, dict):
                message = body.get("error") or body.get("detail")
            raise TransportError(
                message or f"{method} {path} returned {res.status_code}",
                status_code=res.status_code,
                payload=body if isinstance(body, dict) else {"data": body},
            )

        return body

    # ---------------------------------------------------------
    # Encryption profile
    # ---------------------------------------------------------

    def get_profile(self):
        return self._request("GET", "/api/users/encryption/")

    def initialize_profile(self, encryption: dict):
        return self._request("PATCH", "/api/users/encryption/", {"encryption": encryption})

    def provision_stable_key(self, encryption_key=None):
        payload = {"encryptionKey": encryption_key} if encryption_key else {}
        return self._request("POST", "/api/users/encryption/stable-key/", payload)

    def reset_profile(self):
        return self._request("POST", "/api/users/encryption/reset/", {"confirm": True})

    # ---------------------------------------------------------
    # Notes
    # ---------------------------------------------------------

    def list_notes(self, params=None):
        return self._request("GET", "/api/notes/", params=params)

    def get_note(self, note_id):
        return self._request("GET", f"/api/notes/{note_id}/")

    def create_note(self, payload: dict):
        return self._request("POST", "/api/notes/", payload)

    def update_note(self, note_id, payload: dict):
        return self._request("PUT", f"/api/notes/{note_id}/", payload)

    def delete_note(self, note_id):
        return self._request("DELETE", f"/api/notes/{note_id}/")

    def toggle_favorite(self, note_id):
        return self._request("PATCH", f"/api/notes/{note_id}/favorite/")

    def toggle_archive(self, note_id):
        return self._request("PATCH", f"/api/notes/{note_id}/archive/")

    def get_history(self, note_id):
        return self._request("GET", f"/api/notes/{note_id}/history/")

    def restore_version(self, note_id, version):
        return self._request("POST", f"/api/notes/{note_id}/restore/{version}/")

    def bulk(self, action, note_ids):
        return self._request("POST", "/api/notes/bulk/", {"action": action, "noteIds": list(note_ids)})

    def stats(self):
        return self._request("GET", "/api/notes/stats/summary/")
