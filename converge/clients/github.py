"""Minimal GitHub REST client for user lookups."""

from typing import Any, Dict, Optional

import httpx

from converge.errors import ClientError
from converge.logging import get_component_logger
from converge.protocols import LoggerProtocol
from converge.settings import GithubSettings


class GithubClient:
    """Token-authenticated GitHub API client."""

    def __init__(
        self,
        token: str,
        settings: Optional[GithubSettings] = None,
        logger: Optional[LoggerProtocol] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or GithubSettings()
        self._logger = get_component_logger("github_client", logger)
        base_url = self.settings.api
        if not base_url.endswith("/"):
            base_url += "/"
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
            },
            timeout=self.settings.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "GithubClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def get_user(self, login: str) -> Dict[str, Any]:
        """Fetch a user by login.

        Raises:
            ClientError: If the user does not exist or the API fails
        """
        self._logger.debug("github_get_user", user=login)
        try:
            response = await self._http.get(f"users/{login}")
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ClientError(
                f"GET {e.request.url}: {e.response.status_code} "
                f"{e.response.reason_phrase}"
            ) from e
        except httpx.RequestError as e:
            raise ClientError(f"github request for user {login} failed: {e}") from e
        return response.json()


__all__ = ["GithubClient"]
