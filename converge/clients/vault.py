"""Vault KV client over the HTTP API.

Paths are given as ``{mount}/{rest}``. With KV version 2 the client maps
reads and writes to ``{mount}/data/{rest}`` and listings and deletes to
``{mount}/metadata/{rest}``.
"""

from typing import Any, Dict, List, Optional

import httpx

from converge.errors import ClientError
from converge.logging import get_component_logger
from converge.protocols import LoggerProtocol
from converge.settings import VaultSettings


class VaultClient:
    """SecretStoreProtocol implementation using token auth."""

    def __init__(
        self,
        settings: Optional[VaultSettings] = None,
        logger: Optional[LoggerProtocol] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or VaultSettings()
        self._logger = get_component_logger("vault_client", logger)
        self._http = httpx.AsyncClient(
            base_url=self.settings.server.rstrip("/"),
            headers={"X-Vault-Token": self.settings.token},
            timeout=self.settings.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "VaultClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _api_path(self, path: str, kind: str) -> str:
        path = path.strip("/")
        if self.settings.kv_version == 1:
            return f"/v1/{path}"
        mount, _, rest = path.partition("/")
        if not rest:
            raise ClientError(f"invalid secret path {path!r}, expected mount/path")
        return f"/v1/{mount}/{kind}/{rest}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.request(method, path, **kwargs)
        except httpx.RequestError as e:
            self._logger.error("vault_connection_error", path=path, error=str(e))
            raise ClientError(f"vault request to {path} failed: {e}") from e

    @staticmethod
    def _check(response: httpx.Response, action: str, path: str) -> None:
        if response.is_error:
            raise ClientError(f"error while {action} {path}: HTTP {response.status_code}")

    async def read_secret(self, path: str) -> Optional[Dict[str, Any]]:
        """Read a secret. Returns None when the path does not exist."""
        self._logger.debug("vault_read_secret", path=path)
        response = await self._request("GET", self._api_path(path, "data"))
        if response.status_code == 404:
            return None
        self._check(response, "reading secret", path)
        data = response.json().get("data") or {}
        if self.settings.kv_version == 2:
            return data.get("data")
        return data

    async def list_secrets(self, path: str) -> List[str]:
        """List keys below path. A missing path lists as empty."""
        self._logger.debug("vault_list_secrets", path=path)
        response = await self._request(
            "GET", self._api_path(path, "metadata"), params={"list": "true"}
        )
        if response.status_code == 404:
            return []
        self._check(response, "listing secrets", path)
        keys = (response.json().get("data") or {}).get("keys") or []
        for key in keys:
            if not isinstance(key, str):
                raise ClientError(f"unexpected type for secret {path!r}: {type(key).__name__}")
        return list(keys)

    async def write_secret(self, path: str, data: Dict[str, Any]) -> None:
        self._logger.debug("vault_write_secret", path=path)
        payload = {"data": data} if self.settings.kv_version == 2 else data
        response = await self._request("POST", self._api_path(path, "data"), json=payload)
        self._check(response, "writing secret", path)

    async def delete_secret(self, path: str) -> None:
        self._logger.debug("vault_delete_secret", path=path)
        response = await self._request("DELETE", self._api_path(path, "metadata"))
        if response.status_code == 404:
            return
        self._check(response, "deleting secret", path)


__all__ = ["VaultClient"]
