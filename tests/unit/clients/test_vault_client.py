"""Unit tests for VaultClient path mapping and error handling."""

import json

import httpx
import pytest

from converge.clients import VaultClient
from converge.errors import ClientError
from converge.settings import VaultSettings


def _client(handler, kv_version: int = 2) -> VaultClient:
    return VaultClient(
        settings=VaultSettings(server="https://vault.example/", token="s.token", kv_version=kv_version),
        transport=httpx.MockTransport(handler),
    )


class TestKv2:

    @pytest.mark.asyncio
    async def test_read_maps_to_data_path(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"data": {"data": {"user": "alice"}, "metadata": {}}})

        async with _client(handler) as vault:
            assert await vault.read_secret("app-sre/creds/smtp") == {"user": "alice"}

        assert seen[0].url.path == "/v1/app-sre/data/creds/smtp"
        assert seen[0].headers["X-Vault-Token"] == "s.token"

    @pytest.mark.asyncio
    async def test_read_missing_returns_none(self):
        async with _client(lambda r: httpx.Response(404)) as vault:
            assert await vault.read_secret("app-sre/missing") is None

    @pytest.mark.asyncio
    async def test_read_server_error_raises(self):
        async with _client(lambda r: httpx.Response(500)) as vault:
            with pytest.raises(ClientError, match="HTTP 500"):
                await vault.read_secret("app-sre/creds")

    @pytest.mark.asyncio
    async def test_list_uses_metadata_path(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"data": {"keys": ["alice", "bob"]}})

        async with _client(handler) as vault:
            assert await vault.list_secrets("app-sre/reencrypt") == ["alice", "bob"]

        assert seen[0].method == "GET"
        assert seen[0].url.path == "/v1/app-sre/metadata/reencrypt"
        assert seen[0].url.params["list"] == "true"

    @pytest.mark.asyncio
    async def test_list_missing_is_empty(self):
        async with _client(lambda r: httpx.Response(404)) as vault:
            assert await vault.list_secrets("app-sre/nothing") == []

    @pytest.mark.asyncio
    async def test_list_non_string_key_raises(self):
        async with _client(lambda r: httpx.Response(200, json={"data": {"keys": [1]}})) as vault:
            with pytest.raises(ClientError, match="unexpected type"):
                await vault.list_secrets("app-sre/reencrypt")

    @pytest.mark.asyncio
    async def test_write_wraps_payload(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        async with _client(handler) as vault:
            await vault.write_secret("app-sre/out/alice", {"password": "x"})

        assert seen[0].url.path == "/v1/app-sre/data/out/alice"
        assert json.loads(seen[0].content) == {"data": {"password": "x"}}

    @pytest.mark.asyncio
    async def test_delete_uses_metadata_and_ignores_missing(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(404)

        async with _client(handler) as vault:
            await vault.delete_secret("app-sre/reencrypt/alice")

        assert seen[0].method == "DELETE"
        assert seen[0].url.path == "/v1/app-sre/metadata/reencrypt/alice"

    @pytest.mark.asyncio
    async def test_path_without_mount_rejected(self):
        async with _client(lambda r: httpx.Response(200)) as vault:
            with pytest.raises(ClientError, match="expected mount/path"):
                await vault.read_secret("creds")

    @pytest.mark.asyncio
    async def test_connection_error_raises_client_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as vault:
            with pytest.raises(ClientError, match="refused"):
                await vault.read_secret("app-sre/creds")


class TestKv1:

    @pytest.mark.asyncio
    async def test_raw_paths_and_payloads(self):
        seen = []

        def handler(request):
            seen.append(request)
            if request.method == "GET":
                return httpx.Response(200, json={"data": {"user": "alice"}})
            return httpx.Response(204)

        async with _client(handler, kv_version=1) as vault:
            assert await vault.read_secret("secret/creds") == {"user": "alice"}
            await vault.write_secret("secret/creds", {"user": "bob"})

        assert seen[0].url.path == "/v1/secret/creds"
        assert seen[1].url.path == "/v1/secret/creds"
        assert json.loads(seen[1].content) == {"user": "bob"}
