"""GraphQL client for the configuration source (qontract-server).

Every response is checked against the schema allowlist of the integration
that issued the query: ``extensions.schemas`` must be a subset of the
schemas registered for that integration in ``integrations_v1``.
"""

import asyncio
from typing import Any, Dict, List, Optional

import httpx

from converge.errors import ClientError, SchemaNotAllowedError
from converge.logging import get_component_logger
from converge.protocols import LoggerProtocol
from converge.settings import GraphQLSettings

INTEGRATIONS_QUERY = """
query integrations {
    integrations: integrations_v1 {
        name
        description
        schemas
    }
}
"""

_RETRYABLE_STATUS = (429, 500, 502, 503, 504)


def compare_server_url(server: str, sha: str) -> str:
    """URL of the bundle with the given sha, served next to /graphql."""
    return server.replace("/graphql", f"/graphqlsha/{sha}")


class QontractClient:
    """GraphQL client bound to one integration name.

    Args:
        integration: Integration name used for the schema allowlist
        settings: GraphQL settings (read from the environment if None)
        logger: Logger for dependency injection
        transport: Optional httpx transport (tests use httpx.MockTransport)
        retry_backoff: Base delay in seconds between retries
    """

    def __init__(
        self,
        integration: str,
        settings: Optional[GraphQLSettings] = None,
        logger: Optional[LoggerProtocol] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_backoff: float = 0.5,
    ):
        self.integration = integration
        self.settings = settings or GraphQLSettings()
        self._logger = get_component_logger("qontract_client", logger).bind(integration=integration)
        self._retry_backoff = retry_backoff

        headers = {"Content-Type": "application/json"}
        if self.settings.token:
            headers["Authorization"] = self.settings.token

        self._http = httpx.AsyncClient(
            headers=headers,
            timeout=self.settings.timeout,
            transport=transport,
        )
        self._compare_url: Optional[str] = None
        if self.settings.compare_sha:
            self._compare_url = compare_server_url(self.settings.server, self.settings.compare_sha)
        self._allowed_schemas: Optional[List[str]] = None

    @property
    def has_compare(self) -> bool:
        return self._compare_url is not None

    async def __aenter__(self) -> "QontractClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def query(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        compare: bool = False,
    ) -> Dict[str, Any]:
        """Run a query and return its ``data``.

        Args:
            query: GraphQL query document
            variables: Query variables
            compare: Query the comparison bundle (COMPARE_SHA) instead

        Raises:
            ClientError: On transport errors, GraphQL errors, or a missing
                compare bundle
            SchemaNotAllowedError: If the response used a schema the
                integration may not read
        """
        if compare:
            if self._compare_url is None:
                raise ClientError("compare client not initialized")
            url = self._compare_url
        else:
            url = self.settings.server

        body = await self._post(url, query, variables)
        await self._ensure_schemas(body)
        return body.get("data") or {}

    async def allowed_schemas(self) -> List[str]:
        """Schemas registered for this integration, fetched once per client."""
        if self._allowed_schemas is None:
            body = await self._post(self.settings.server, INTEGRATIONS_QUERY, None)
            allowed: List[str] = []
            for integration in (body.get("data") or {}).get("integrations") or []:
                if integration.get("name") == self.integration:
                    allowed = list(integration.get("schemas") or [])
            self._allowed_schemas = allowed
        return self._allowed_schemas

    async def _ensure_schemas(self, body: Dict[str, Any]) -> None:
        extensions = body.get("extensions") or {}
        used = extensions.get("schemas")
        if used is None:
            raise ClientError("missing correct extensions from graphql response")
        allowed = await self.allowed_schemas()
        for schema in used:
            if schema not in allowed:
                raise SchemaNotAllowedError(schema, self.integration)

    async def _post(
        self,
        url: str,
        query: str,
        variables: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        retries = self.settings.retries
        for attempt in range(retries + 1):
            try:
                response = await self._http.post(url, json=payload)
                response.raise_for_status()
                body = response.json()
                break

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status not in _RETRYABLE_STATUS or attempt == retries:
                    self._logger.error("graphql_http_error", url=url, status=status, error=str(e))
                    raise ClientError(f"graphql request failed with status {status}") from e
                self._logger.warning("graphql_retry", attempt=attempt + 1, status=status)
            except httpx.RequestError as e:
                if attempt == retries:
                    self._logger.error("graphql_connection_error", url=url, error=str(e))
                    raise ClientError(f"graphql request failed: {e}") from e
                self._logger.warning("graphql_retry", attempt=attempt + 1, error=str(e))

            await asyncio.sleep(self._retry_backoff * (2 ** attempt))
        else:
            raise RuntimeError("Unreachable")

        errors = body.get("errors")
        if errors:
            messages = "; ".join(str(err.get("message", err)) for err in errors)
            raise ClientError(f"graphql errors: {messages}")
        return body


__all__ = ["QontractClient", "INTEGRATIONS_QUERY", "compare_server_url"]
