import asyncio
import math
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from httpx import ASGITransport

from dashboard.client import CustomerApi, build_async_client
from dashboard.config import DashboardSettings
from dashboard.errors import NetworkFailure
from dashboard.query_state import QueryState
from dashboard.results import PageResult
from dashboard.schemas import CustomerPageResponse

GENDERS = ["Male", "Female"]
LOCATION_TYPES = ["Urban", "Rural"]
BRANDS = ["Samsung", "Apple", "Xiaomi"]
INTERESTS = ["Gaming", "Music", "Sports", "Travel", "Food"]

# Query keys the fake server maps onto stored column names.
FILTER_COLUMNS = {
    "gender": "gender",
    "locationType": "Location Type",
    "brandDevice": "Brand Device",
    "digitalInterest": "Digital Interest",
}
RESERVED_PARAMS = {"page", "limit", "sortBy", "sortOrder", "search"}
DEFAULT_TREND_DATE = "2023-12-29"


def make_customers(n: int = 25) -> List[Dict[str, Any]]:
    rows = []
    for i in range(n):
        rows.append(
            {
                "Number": i + 1,
                "Name of Location": f"Location {i % 4}",
                "Login Hour": f"{(8 + i) % 24:02d}:00",
                "Date": f"12/{(i % 28) + 1:02d}/2023",
                "Name": f"Customer {i + 1:02d}",
                "Age": 18 + (i * 3) % 50,
                "gender": GENDERS[i % 2],
                "Email": f"customer{i + 1}@example.com",
                "No Telp": f"0812{i:06d}",
                "Brand Device": BRANDS[i % 3],
                "Digital Interest": INTERESTS[i % 5],
                "Location Type": LOCATION_TYPES[(i // 2) % 2],
            }
        )
    return rows


def _age_group(age: int) -> str:
    if age < 20:
        return "0-19"
    if age >= 60:
        return "60+"
    lo = age // 10 * 10
    return f"{lo}-{lo + 9}"


def create_fake_api(customers: List[Dict[str, Any]]) -> FastAPI:
    """In-process stand-in for the customer REST API."""
    app = FastAPI()
    app.state.fail_paths = set()
    app.state.requests = []

    def _guard(request: Request) -> None:
        app.state.requests.append((request.url.path, request.query_params))
        if request.url.path in app.state.fail_paths:
            raise HTTPException(status_code=500, detail="boom")

    @app.get("/api/customers")
    def list_customers(
        request: Request,
        page: int = 1,
        limit: int = 10,
        sortBy: Optional[str] = None,
        sortOrder: str = "asc",
        search: str = "",
    ):
        _guard(request)
        rows = list(customers)
        for key, value in request.query_params.items():
            if key in RESERVED_PARAMS:
                continue
            column = FILTER_COLUMNS.get(key, key)
            rows = [r for r in rows if str(r.get(column)) == value]
        if search:
            needle = search.lower()
            rows = [r for r in rows if any(needle in str(v).lower() for v in r.values())]
        if sortBy:
            rows.sort(key=lambda r: r.get(sortBy), reverse=sortOrder == "desc")
        total = len(rows)
        start = (page - 1) * limit
        return {
            "data": rows[start : start + limit],
            "pagination": {
                "currentPage": page,
                "totalPages": math.ceil(total / limit),
                "totalItems": total,
                "limit": limit,
            },
        }

    @app.get("/api/customers/filters/{field_name}")
    def filter_values(field_name: str, request: Request):
        _guard(request)
        if not customers or field_name not in customers[0]:
            raise HTTPException(status_code=404, detail="unknown field")
        return {"data": list(dict.fromkeys(str(r[field_name]) for r in customers))}

    @app.get("/api/customers/summary/{dimension}")
    def summary(dimension: str, request: Request):
        _guard(request)
        counts: Dict[tuple, int] = {}
        for r in customers:
            if dimension == "gender":
                key = (r["gender"],)
            elif dimension == "gender-age":
                key = (r["gender"], _age_group(r["Age"]))
            elif dimension == "brand-device":
                key = (r["Brand Device"],)
            else:
                raise HTTPException(status_code=404, detail="unknown dimension")
            counts[key] = counts.get(key, 0) + 1
        if dimension == "gender":
            data = [{"gender": k[0], "count": c} for k, c in counts.items()]
        elif dimension == "gender-age":
            data = [{"gender": k[0], "ageGroup": k[1], "count": c} for k, c in counts.items()]
        else:
            data = [{"brand": k[0], "count": c} for k, c in counts.items()]
        return {"data": data}

    @app.get("/api/customers/trends/login")
    def login_trends(request: Request, date: Optional[str] = None):
        _guard(request)
        day = date or DEFAULT_TREND_DATE
        m, d, y = day[5:7], day[8:10], day[0:4]
        wanted = f"{m}/{d}/{y}"
        hours: Dict[int, int] = {}
        for r in customers:
            if r["Date"] == wanted:
                h = int(r["Login Hour"][:2])
                hours[h] = hours.get(h, 0) + 1
        body = {"data": [{"hour": h, "loginCount": c} for h, c in sorted(hours.items())]}
        headers = {} if date else {"X-Default-Date": DEFAULT_TREND_DATE}
        return JSONResponse(content=body, headers=headers)

    return app


@pytest.fixture
def customers():
    return make_customers()


@pytest.fixture
def fake_app(customers):
    return create_fake_api(customers)


@pytest.fixture
def settings():
    return DashboardSettings(api_base_url="http://test/api", http_timeout_seconds=5)


@pytest_asyncio.fixture
async def api(fake_app, settings):
    async with build_async_client(settings, transport=ASGITransport(app=fake_app)) as http:
        yield CustomerApi(http)


class ScriptedApi:
    """Customer source whose page fetches park until the test settles them."""

    def __init__(self):
        self.calls: List[QueryState] = []
        self._futures: List[asyncio.Future] = []
        self.options: Dict[str, List[str]] = {
            "gender": ["Male", "Female"],
            "Location Type": ["Urban", "Rural"],
            "Brand Device": ["Samsung", "Apple"],
            "Digital Interest": ["Gaming"],
        }
        self.failing_options = set()

    async def fetch_page(self, state: QueryState) -> PageResult:
        fut = asyncio.get_running_loop().create_future()
        self.calls.append(state)
        self._futures.append(fut)
        return await fut

    async def fetch_filter_options(self, source: str) -> List[str]:
        if source in self.failing_options:
            raise NetworkFailure("Request failed with status code 500")
        return list(self.options.get(source, []))

    async def started(self, n: int) -> None:
        for _ in range(100):
            if len(self.calls) >= n:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"expected {n} fetches, saw {len(self.calls)}")

    def resolve(self, index: int, result: PageResult) -> None:
        self._futures[index].set_result(result)

    def fail(self, index: int, exc: Exception) -> None:
        self._futures[index].set_exception(exc)


@pytest.fixture
def scripted_api():
    return ScriptedApi()


def _page(
    current_page: int = 1,
    total_items: int = 25,
    limit: int = 10,
    rows: Optional[List[Dict[str, Any]]] = None,
    tag: str = "",
) -> PageResult:
    if rows is None:
        start = (current_page - 1) * limit
        count = max(0, min(limit, total_items - start))
        rows = [{"Name": f"{tag}row{start + i + 1}"} for i in range(count)]
    return PageResult.from_response(
        CustomerPageResponse.model_validate({
            "data": rows,
            "pagination": {
                "currentPage": current_page,
                "totalPages": math.ceil(total_items / limit),
                "totalItems": total_items,
                "limit": limit,
            },
        })
    )


@pytest.fixture
def make_page():
    return _page


async def spin(times: int = 10) -> None:
    for _ in range(times):
        await asyncio.sleep(0)


@pytest.fixture
def settle_loop():
    return spin
