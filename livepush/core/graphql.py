"""Minimal GraphQL-over-HTTP client for the content and subscription stores."""
import logging

import httpx

from .errors import StoreError

log = logging.getLogger(__name__)


class GraphQLClient:
    """POSTs `{query, variables}` and returns the `data` object.

    One instance per upstream; the underlying httpx.Client keeps connections
    open for the life of the process and is closed from the app lifespan.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self._http = httpx.Client(headers=headers or {}, timeout=timeout, transport=transport)

    def request(self, query: str, variables: dict | None = None) -> dict:
        try:
            response = self._http.post(self.url, json={"query": query, "variables": variables or {}})
        except httpx.HTTPError as e:
            raise StoreError(f"GraphQL request to {self.url} failed: {e}") from e
        if response.status_code >= 400:
            raise StoreError(
                f"GraphQL endpoint {self.url} returned HTTP {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as e:
            raise StoreError(f"GraphQL endpoint {self.url} returned invalid JSON") from e
        errors = body.get("errors")
        if errors:
            message = "; ".join(str(err.get("message", err)) for err in errors)
            raise StoreError(f"GraphQL error from {self.url}: {message}", errors=errors)
        return body.get("data") or {}

    def close(self) -> None:
        self._http.close()
