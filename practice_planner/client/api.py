"""
HTTP client for the practice planner API.

Thin async wrapper around httpx: one method per endpoint, JSON in and
domain models out, and a parser for the Server-Sent Events stream.
"""

import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import httpx

from ..core.practice.models import PracticeSet

logger = logging.getLogger(__name__)


class PracticeApiError(Exception):
    """The API rejected a request. `detail` is the server's message."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


async def parse_sse(lines: AsyncIterator[str]) -> AsyncIterator[dict[str, Any]]:
    """
    Decode an SSE line stream into change envelopes.

    Comment lines (keepalives) are skipped; a blank line ends a message.
    """
    data: list[str] = []
    async for line in lines:
        if not line:
            if data:
                yield json.loads("\n".join(data))
                data = []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if name == "data":
            data.append(value[1:] if value.startswith(" ") else value)
    if data:
        yield json.loads("\n".join(data))


class PracticeApiClient:
    """
    Async client bound to one user.

    Usage:
        async with PracticeApiClient(base_url, api_key, user_id) as api:
            sets = await api.list_sets(practice_id)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        user_id: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"X-API-Key": api_key, "X-User-Id": user_id},
            timeout=timeout,
            transport=transport,
        )

    async def list_sets(self, practice_id: str, location_id: Optional[str] = None) -> list[PracticeSet]:
        params = {"location_id": location_id} if location_id else None
        response = await self._client.get(f"/api/v1/practices/{practice_id}/sets", params=params)
        return [PracticeSet.from_dict(item) for item in self._json(response)]

    async def apply_batch(self, updates: list[dict[str, Any]]) -> list[PracticeSet]:
        response = await self._client.post("/api/v1/sets/batch", json={"updates": updates})
        return [PracticeSet.from_dict(item) for item in self._json(response)]

    async def delete_batch(self, set_ids: list[str]) -> bool:
        response = await self._client.post("/api/v1/sets/batch-delete", json={"ids": set_ids})
        return bool(self._json(response)["success"])

    async def get_summary(self, practice_id: str) -> dict[str, Any]:
        response = await self._client.get(f"/api/v1/practices/{practice_id}/summary")
        return self._json(response)

    async def validate(self, practice_id: str) -> list[dict[str, Any]]:
        response = await self._client.get(f"/api/v1/practices/{practice_id}/validation")
        return self._json(response)

    async def stream_events(
        self,
        practice_id: Optional[str] = None,
        club_id: Optional[str] = None,
        on_open: Optional[Callable[[], Awaitable[Any]]] = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """
        Yield change envelopes until the server closes the stream.

        `on_open` is awaited once the server has accepted the stream and
        before any event is read, which is the moment to (re)load state.
        """
        if (practice_id is None) == (club_id is None):
            raise ValueError("Pass exactly one of practice_id or club_id")
        path = (
            f"/api/v1/events/practices/{practice_id}"
            if practice_id is not None
            else f"/api/v1/events/clubs/{club_id}"
        )

        async with self._client.stream("GET", path, timeout=None) as response:
            if response.status_code >= 400:
                await response.aread()
                self._raise_for_status(response)
            logger.info("Event stream opened", extra={"path": path})
            if on_open is not None:
                await on_open()
            async for envelope in parse_sse(response.aiter_lines()):
                yield envelope

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "PracticeApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _json(self, response: httpx.Response) -> Any:
        self._raise_for_status(response)
        return response.json()

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        try:
            body = response.json()
        except ValueError:
            body = None
        detail = body.get("detail", response.text) if isinstance(body, dict) else response.text
        logger.warning(
            "API request failed",
            extra={
                "method": response.request.method,
                "url": str(response.request.url),
                "status_code": response.status_code,
                "detail": detail,
            },
        )
        raise PracticeApiError(response.status_code, str(detail))
