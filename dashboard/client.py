"""Remote customer source.

Thin async adapter over the customer REST API. Every call either returns a
parsed value or raises `NetworkFailure` (`InvalidPayload` for bodies that do
not match the expected shape); nothing here retries or caches.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from dashboard.config import DashboardSettings
from dashboard.errors import InvalidPayload, NetworkFailure
from dashboard.filters import normalize_options
from dashboard.query_state import QueryState
from dashboard.results import PageResult
from dashboard.schemas import (
    CustomerPageResponse,
    FilterOptionsResponse,
    LoginTrendPoint,
    SummaryResponse,
)


logger = logging.getLogger(__name__)

DEFAULT_DATE_HEADER = "X-Default-Date"

M = TypeVar("M", bound=BaseModel)


def build_async_client(
    settings: Optional[DashboardSettings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create the shared `httpx.AsyncClient` for the customer API."""
    settings = settings or DashboardSettings()
    return httpx.AsyncClient(
        base_url=settings.api_base_url,
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        headers={"Accept": "application/json", "User-Agent": settings.user_agent},
        follow_redirects=True,
        transport=transport,
    )


@dataclass(frozen=True)
class LoginTrends:
    points: Tuple[LoginTrendPoint, ...]
    # Date the server suggests when the request carried none.
    default_date: Optional[date]


class CustomerApi:
    def __init__(self, http: httpx.AsyncClient):
        self._http = http

    async def _get(self, path: str, params: Optional[Sequence[Tuple[str, str]]] = None) -> httpx.Response:
        try:
            response = await self._http.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise NetworkFailure(f"Request failed with status code {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise NetworkFailure(str(exc) or type(exc).__name__) from exc
        return response

    @staticmethod
    def _parse(response: httpx.Response, model: Type[M]) -> M:
        try:
            body: Any = response.json()
        except ValueError as exc:
            raise InvalidPayload(f"{response.request.url.path}: response is not JSON") from exc
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            raise InvalidPayload(f"{response.request.url.path}: unexpected payload ({exc.error_count()} errors)") from exc

    async def fetch_page(self, state: QueryState) -> PageResult:
        response = await self._get("/customers", params=state.to_params())
        return PageResult.from_response(self._parse(response, CustomerPageResponse))

    async def fetch_filter_options(self, source: str) -> List[str]:
        response = await self._get(f"/customers/filters/{quote(source, safe='')}")
        return list(normalize_options(self._parse(response, FilterOptionsResponse).data))

    async def fetch_summary(self, dimension: str) -> List[Dict[str, Any]]:
        response = await self._get(f"/customers/summary/{quote(dimension, safe='')}")
        return self._parse(response, SummaryResponse).data

    async def fetch_login_trends(self, day: Optional[date] = None) -> LoginTrends:
        params = [("date", day.isoformat())] if day is not None else None
        response = await self._get("/customers/trends/login", params=params)
        rows = self._parse(response, SummaryResponse).data
        try:
            points = tuple(LoginTrendPoint.model_validate(r) for r in rows)
        except ValidationError as exc:
            raise InvalidPayload(f"login trends: unexpected payload ({exc.error_count()} errors)") from exc
        return LoginTrends(points=points, default_date=_parse_header_date(response.headers.get(DEFAULT_DATE_HEADER)))


def _parse_header_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        logger.warning("ignoring malformed %s header: %r", DEFAULT_DATE_HEADER, value)
        return None
