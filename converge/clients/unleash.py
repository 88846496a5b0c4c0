"""Unleash feature toggle client (client API, single feature lookups)."""

from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from converge.errors import ClientError
from converge.logging import get_component_logger
from converge.protocols import LoggerProtocol
from converge.settings import UnleashSettings


class Strategy(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    name: str = ""
    constraints: List[Dict[str, Any]] = Field(default_factory=list)
    parameters: Dict[str, Any] = Field(default_factory=dict)


class Feature(BaseModel):
    """A feature toggle as returned by ``/client/features/{name}``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    description: str = ""
    enabled: bool = False
    strategies: List[Strategy] = Field(default_factory=list)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    strategy: str = ""
    parameters: Dict[str, Any] = Field(default_factory=dict)
    variants: List[Dict[str, Any]] = Field(default_factory=list)


class UnleashClient:
    """FeatureClientProtocol implementation."""

    def __init__(
        self,
        settings: Optional[UnleashSettings] = None,
        logger: Optional[LoggerProtocol] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or UnleashSettings()
        self._logger = get_component_logger("unleash_client", logger)
        self._http = httpx.AsyncClient(
            headers={"Authorization": self.settings.client_access_token},
            timeout=self.settings.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "UnleashClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def get_feature(self, name: str) -> Feature:
        self._logger.debug("unleash_get_feature", feature=name)
        url = f"{self.settings.api_url.rstrip('/')}/client/features/{name}"
        try:
            response = await self._http.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ClientError(
                f"error getting feature {name}: HTTP {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise ClientError(f"error getting feature {name}: {e}") from e
        try:
            return Feature.model_validate(response.json())
        except ValueError as e:
            raise ClientError(f"invalid feature payload for {name}") from e

    async def is_enabled(self, name: str) -> bool:
        feature = await self.get_feature(name)
        return feature.enabled


__all__ = ["Feature", "Strategy", "UnleashClient"]
