"""Tests for the Google Drive backup client."""

import httpx
import pytest

from ride_progression.integrations.base import AuthenticationError, IntegrationError, RateLimitError
from ride_progression.integrations.drive import DriveClient


class TestDriveAuthentication:
    @pytest.mark.asyncio
    async def test_token_requested_once(self, fake_drive):
        calls = []

        async def provider():
            calls.append(1)
            return "ya29.abc"

        async with DriveClient(provider, transport=httpx.MockTransport(fake_drive.handler)) as drive:
            await drive.authenticate()
            await drive.authenticate()
            await drive.find_backup_file()

        assert len(calls) == 1
        assert fake_drive.requests[0].headers["authorization"] == "Bearer ya29.abc"

    @pytest.mark.asyncio
    async def test_empty_token_rejected(self):
        async def provider():
            return ""

        with pytest.raises(AuthenticationError):
            await DriveClient(provider).authenticate()

    @pytest.mark.asyncio
    async def test_sign_out_forgets_token(self, drive_client):
        await drive_client.authenticate()
        drive_client.sign_out()
        assert drive_client.access_token is None
        assert drive_client.get_auth_headers() == {}


class TestDriveFiles:
    """Tests for locating, creating and updating the backup file."""

    @pytest.mark.asyncio
    async def test_find_missing_file(self, drive_client, fake_drive):
        await drive_client.authenticate()
        assert await drive_client.find_backup_file() is None
        query = fake_drive.requests[0].url.params["q"]
        assert query == "name='backup.json' and trashed=false"

    @pytest.mark.asyncio
    async def test_create_then_download(self, drive_client, fake_drive):
        await drive_client.authenticate()
        created = await drive_client.create_backup({"history": [], "ftp": 240})

        assert created["id"] == fake_drive.file_id
        assert fake_drive.requests[0].url.params["uploadType"] == "multipart"
        assert await drive_client.download_backup(created["id"]) == {"history": [], "ftp": 240}

    @pytest.mark.asyncio
    async def test_update_replaces_content(self, drive_client, fake_drive):
        fake_drive.file = {"ftp": 200}
        await drive_client.authenticate()

        await drive_client.update_backup(fake_drive.file_id, {"ftp": 260})

        assert fake_drive.file == {"ftp": 260}
        assert fake_drive.requests[0].method == "PATCH"
        assert fake_drive.requests[0].url.params["uploadType"] == "media"

    @pytest.mark.asyncio
    async def test_non_object_backup_rejected(self, drive_client, fake_drive):
        fake_drive.file = ["not", "an", "object"]
        await drive_client.authenticate()
        with pytest.raises(IntegrationError):
            await drive_client.download_backup(fake_drive.file_id)


class TestDriveErrors:
    @pytest.mark.asyncio
    async def test_unauthorized_clears_token(self, drive_client, fake_drive):
        fake_drive.fail_with = 401
        await drive_client.authenticate()

        with pytest.raises(AuthenticationError, match="Session expired"):
            await drive_client.find_backup_file()
        assert drive_client.access_token is None

    @pytest.mark.asyncio
    async def test_rate_limited(self, drive_client, fake_drive):
        fake_drive.fail_with = 429
        fake_drive.retry_after = 12
        await drive_client.authenticate()

        with pytest.raises(RateLimitError) as exc_info:
            await drive_client.find_backup_file()
        assert exc_info.value.retry_after == 12

    @pytest.mark.asyncio
    async def test_other_error_includes_message(self, drive_client, fake_drive):
        fake_drive.fail_with = 500
        await drive_client.authenticate()

        with pytest.raises(IntegrationError, match="nope"):
            await drive_client.find_backup_file()
