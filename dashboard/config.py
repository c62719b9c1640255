"""Dashboard settings.

Everything environment-dependent (API location, timeouts, paging defaults,
the filter key mapping) is read here through pydantic-settings so the rest of
the package never touches `os.environ`.
"""

from __future__ import annotations

import logging
from datetime import date
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dashboard.filters import DEFAULT_FILTER_FIELDS, FilterField


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class DashboardSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CUSTOMER_DASHBOARD_",
        extra="ignore",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    api_base_url: str = Field(
        default="http://localhost:5000/api",
        min_length=1,
        description="Base URL of the customer REST API.",
    )
    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Timeout per request (seconds).",
    )
    user_agent: str = Field(default="customer-dashboard/0.1", min_length=1)

    default_page_size: int = Field(default=10, ge=1)
    page_size_options: List[int] = Field(default_factory=lambda: [10, 25, 50, 100])
    cancel_superseded_fetches: bool = Field(
        default=False,
        description="Cancel in-flight table requests once a newer one is issued.",
    )

    # Query keys sent to /customers do not always match the option source
    # names under /customers/filters/{name}; the server owns that contract.
    filter_fields: List[FilterField] = Field(default_factory=lambda: list(DEFAULT_FILTER_FIELDS))

    default_login_date: Optional[date] = Field(
        default=None,
        description="Date for the login trends chart; the API suggests one when unset.",
    )
    log_level: str = Field(default="INFO")

    @field_validator("page_size_options")
    @classmethod
    def _positive_sizes(cls, value: List[int]) -> List[int]:
        sizes = sorted({int(v) for v in value if int(v) >= 1})
        if not sizes:
            raise ValueError("page_size_options needs at least one positive size")
        return sizes


@lru_cache(maxsize=1)
def get_settings() -> DashboardSettings:
    return DashboardSettings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
