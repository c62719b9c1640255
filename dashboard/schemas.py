from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PaginationModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_page: int = Field(alias="currentPage", ge=1)
    total_pages: int = Field(alias="totalPages", ge=0)
    total_items: int = Field(alias="totalItems", ge=0)
    limit: int = Field(ge=1)


class CustomerPageResponse(BaseModel):
    data: List[Dict[str, Any]] = Field(default_factory=list)
    pagination: PaginationModel


class FilterOptionsResponse(BaseModel):
    data: List[Optional[str]] = Field(default_factory=list)


class GenderCount(BaseModel):
    gender: Optional[str] = None
    count: int = 0


class GenderAgeCount(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    gender: Optional[str] = None
    age_group: Optional[str] = Field(default=None, alias="ageGroup")
    count: int = 0


class BrandCount(BaseModel):
    brand: Optional[str] = None
    count: int = 0


class LoginTrendPoint(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    hour: int
    login_count: int = Field(default=0, alias="loginCount")


class SummaryResponse(BaseModel):
    data: List[Dict[str, Any]] = Field(default_factory=list)
