"""Async GraphQL client for the Stash API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Protocol

import httpx

from .cancellation import CancellationToken
from .errors import AbortedError, ResponseError, TransportError
from .models.settings import Settings

logger = logging.getLogger(__name__)

Variables = Mapping[str, Any]


class GraphQLClient(Protocol):
    """What the engine needs from a GraphQL transport.

    Both calls return the ``data`` mapping and raise ``AbortedError``,
    ``TransportError`` or ``ResponseError``.
    """

    async def query(
        self,
        document: str,
        variables: Variables | None = None,
        token: CancellationToken | None = None,
    ) -> dict[str, Any]: ...

    async def mutate(
        self,
        document: str,
        variables: Variables | None = None,
        token: CancellationToken | None = None,
    ) -> dict[str, Any]: ...


def _error_messages(errors: object) -> list[str]:
    if not isinstance(errors, list):
        return [str(errors)]
    out: list[str] = []
    for err in errors:
        if isinstance(err, dict):
            out.append(str(err.get("message") or err))
        else:
            out.append(str(err))
    return out


def unwrap_response(body: object) -> dict[str, Any]:
    """Return the ``data`` member of a GraphQL response body.

    Raises:
        ResponseError: The body carries a non-empty ``errors`` list.
        TransportError: The body is not a GraphQL response object.
    """
    if not isinstance(body, dict):
        raise TransportError("Stash returned a non-object body")
    errors = body.get("errors")
    if errors:
        raise ResponseError(_error_messages(errors))
    data = body.get("data")
    return data if isinstance(data, dict) else {}


class StashGraphQLClient:
    """Async client for ``<base_url>/graphql``."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, cfg: Settings) -> StashGraphQLClient:
        return cls(cfg.STASH_URL, cfg.STASH_API_KEY, cfg.STASH_TIMEOUT_S)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/graphql"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["ApiKey"] = self.api_key
        return headers

    async def query(
        self,
        document: str,
        variables: Variables | None = None,
        token: CancellationToken | None = None,
    ) -> dict[str, Any]:
        return await self._execute(document, variables, token)

    async def mutate(
        self,
        document: str,
        variables: Variables | None = None,
        token: CancellationToken | None = None,
    ) -> dict[str, Any]:
        return await self._execute(document, variables, token)

    async def _execute(
        self,
        document: str,
        variables: Variables | None,
        token: CancellationToken | None,
    ) -> dict[str, Any]:
        payload = {"query": document, "variables": dict(variables or {})}
        if token is None:
            return unwrap_response(await self._post(payload))

        token.raise_if_cancelled()
        request = asyncio.ensure_future(self._post(payload))
        waiter = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {request, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            request.cancel()
            raise
        finally:
            waiter.cancel()

        if request not in done:
            request.cancel()
            try:
                await request
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.debug("Request failed after abort", exc_info=True)
            raise AbortedError()
        return unwrap_response(request.result())

    async def _post(self, payload: dict[str, Any]) -> object:
        async with httpx.AsyncClient(
            timeout=self.timeout, headers=self._headers(), transport=self._transport
        ) as client:
            try:
                response = await client.post(self.endpoint, json=payload)
            except httpx.HTTPError as exc:
                raise TransportError(f"Stash request failed: {exc}") from exc

        if response.status_code >= 400:
            # GraphQL validation errors come back as 4xx with an errors body
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("errors"):
                raise ResponseError(_error_messages(body["errors"]))
            snippet = response.text[:300].replace("\n", " ")
            raise TransportError(
                f"Stash HTTP {response.status_code}: {snippet}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError("Stash returned a non-JSON body") from exc


__all__ = ["GraphQLClient", "StashGraphQLClient", "unwrap_response", "Variables"]
