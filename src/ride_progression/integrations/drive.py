"""
Google Drive storage for the sync snapshot.

The snapshot lives in a single JSON file found by name. Only three
operations are needed: find-by-name, download-by-id and create-or-update.
Token acquisition (the OAuth consent flow) is owned by the caller and
plugged in as a ``TokenProvider``.
"""

import json
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from .base import (
    AuthenticationError,
    IntegrationClient,
    IntegrationError,
    RateLimitError,
    error_message,
    get_retry_after,
)

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str]]

FILES_URL = "https://www.googleapis.com/drive/v3/files"
UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
FILE_FIELDS = "id,name,modifiedTime"


class DriveClient(IntegrationClient):
    """
    Minimal Google Drive v3 client scoped to one backup file.

    A 401 from any call drops the held token, so the next ``authenticate``
    asks the token provider again instead of retrying a stale token.
    """

    provider = "google_drive"

    def __init__(
        self,
        token_provider: TokenProvider,
        filename: str = "ride-progression-backup.json",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self._token_provider = token_provider
        self.filename = filename
        self.access_token: Optional[str] = None

    def get_auth_headers(self) -> Dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    async def authenticate(self) -> str:
        """Return the held token, asking the provider for one if needed."""
        if self.access_token:
            return self.access_token
        try:
            token = await self._token_provider()
        except IntegrationError:
            raise
        except Exception as e:
            raise AuthenticationError(f"Google sign-in failed: {e}", self.provider) from e
        if not token:
            raise AuthenticationError("Google sign-in returned no access token", self.provider)
        self.access_token = token
        return token

    def clear_token(self) -> None:
        self.access_token = None

    def sign_out(self) -> None:
        """Forget the token. Revocation on Google's side is up to the token provider."""
        self.clear_token()

    def _check(self, response: httpx.Response, action: str) -> None:
        if response.status_code in (200, 201):
            return
        if response.status_code == 401:
            self.clear_token()
            raise AuthenticationError("Session expired. Please try again.", self.provider)
        if response.status_code == 429:
            raise RateLimitError(
                "Too many requests. Please wait a moment.",
                self.provider,
                get_retry_after(response),
            )
        raise IntegrationError(
            f"{action} error: {response.status_code} {error_message(response)}",
            self.provider,
            str(response.status_code),
        )

    async def find_backup_file(self) -> Optional[Dict[str, Any]]:
        """Metadata of the backup file, or None if it does not exist yet."""
        params = {
            "q": f"name='{self.filename}' and trashed=false",
            "fields": f"files({FILE_FIELDS})",
        }
        response = await self._send("GET", FILES_URL, params=params)
        self._check(response, "Drive API")
        files = response.json().get("files") or []
        return files[0] if files else None

    async def download_backup(self, file_id: str) -> Dict[str, Any]:
        response = await self._send("GET", f"{FILES_URL}/{file_id}", params={"alt": "media"})
        self._check(response, "Download")
        data = response.json()
        if not isinstance(data, dict):
            raise IntegrationError("Remote backup is not a JSON object", self.provider, "invalid")
        return data

    async def create_backup(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Upload a new backup file (multipart: metadata + content)."""
        boundary = uuid.uuid4().hex
        metadata = json.dumps({"name": self.filename, "mimeType": "application/json"})
        content = json.dumps(data, indent=2)
        body = (
            f"--{boundary}\r\n"
            "Content-Type: application/json; charset=UTF-8\r\n\r\n"
            f"{metadata}\r\n"
            f"--{boundary}\r\n"
            "Content-Type: application/json\r\n\r\n"
            f"{content}\r\n"
            f"--{boundary}--"
        ).encode("utf-8")

        response = await self._send(
            "POST",
            UPLOAD_URL,
            params={"uploadType": "multipart", "fields": FILE_FIELDS},
            content=body,
            headers_extra={"Content-Type": f"multipart/related; boundary={boundary}"},
        )
        self._check(response, "Upload")
        return response.json()

    async def update_backup(self, file_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Replace the content of the existing backup file."""
        response = await self._send(
            "PATCH",
            f"{UPLOAD_URL}/{file_id}",
            params={"uploadType": "media", "fields": FILE_FIELDS},
            content=json.dumps(data, indent=2).encode("utf-8"),
            headers_extra={"Content-Type": "application/json"},
        )
        self._check(response, "Update")
        return response.json()
