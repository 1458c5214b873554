"""Shared plumbing for the REST collection clients.

Learn: The backend is a plain json-server style REST API: one URL per
collection, query-string equality filters, PATCH for partial updates.
Every request goes through _request() so that connection errors and
non-success statuses surface as one TransportError type instead of a
zoo of httpx exceptions.
"""

from typing import Any, Optional, TypeVar

import httpx
import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from civicportal.config import settings
from civicportal.errors import TransportError

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)


def create_http_client(
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
    **kwargs: Any,
) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the REST backend."""
    return httpx.AsyncClient(
        base_url=base_url or settings.api_base_url,
        timeout=timeout or settings.request_timeout_seconds,
        headers={"Accept": "application/json"},
        **kwargs,
    )


class RestCollection:
    """One REST collection, e.g. /users."""

    path: str = ""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def _request(
        self,
        method: str,
        url: str,
        *,
        allow_missing: bool = False,
        **kwargs: Any,
    ) -> Optional[Any]:
        """Send a request and return decoded JSON.

        With allow_missing, a 404 returns None instead of raising.
        """
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("rest.unreachable", method=method, url=url, error=str(e))
            raise TransportError() from e

        if allow_missing and response.status_code == 404:
            return None
        if response.is_error:
            logger.warning(
                "rest.error_status",
                method=method,
                url=url,
                status=response.status_code,
            )
            raise TransportError(status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            logger.warning("rest.invalid_json", method=method, url=url)
            raise TransportError() from e

    @staticmethod
    def _parse(model: type[ModelT], record: Any) -> ModelT:
        """Validate a backend record; a malformed one is a backend failure."""
        try:
            return model.model_validate(record)
        except PydanticValidationError as e:
            logger.warning("rest.invalid_record", model=model.__name__, errors=e.error_count())
            raise TransportError() from e

    def _item_url(self, item_id: Any) -> str:
        return f"{self.path}/{item_id}"

    async def query(self, **params: Any) -> list[dict]:
        data = await self._request("GET", self.path, params=params or None)
        if not isinstance(data, list):
            raise TransportError()
        return data

    async def fetch(self, item_id: Any) -> Optional[dict]:
        return await self._request("GET", self._item_url(item_id), allow_missing=True)

    async def insert(self, record: dict) -> dict:
        return await self._request("POST", self.path, json=record)

    async def patch(self, item_id: Any, changes: dict) -> dict:
        return await self._request("PATCH", self._item_url(item_id), json=changes)
