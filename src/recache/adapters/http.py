"""HTTP transport for GraphQL servers."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, cast

from graphql import DocumentNode, print_ast

from recache.errors import GraphQLRequestError, TransportError
from recache.types import ExecutionResult


class HttpTransport:
    """Async transport that POSTs documents to a GraphQL endpoint."""

    def __init__(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float = 30.0,
    ) -> None:
        import httpx

        self._url = url
        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json", **(headers or {})},
            timeout=timeout,
        )

    async def _request(self, body: dict[str, Any]) -> dict[str, Any]:
        """Make a POST request to the endpoint."""
        response = await self._client.post(self._url, json=body)
        if not response.is_success:
            try:
                errors = response.json().get("errors") or []
                error = errors[0]["message"] if errors else "Request failed"
            except Exception:
                error = f"HTTP {response.status_code}"
            raise TransportError(error)
        return cast(dict[str, Any], response.json())

    async def execute(
        self, document: DocumentNode, variables: Mapping[str, Any] | None
    ) -> ExecutionResult:
        """Execute a document remotely."""
        body: dict[str, Any] = {"query": print_ast(document)}
        if variables:
            body["variables"] = dict(variables)
        payload = await self._request(body)
        errors = tuple(
            GraphQLRequestError(error.get("message", "Unknown error"), error)
            for error in payload.get("errors") or ()
        )
        return ExecutionResult(data=payload.get("data"), errors=errors)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
