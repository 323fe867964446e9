from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SortOrderEnum(str, Enum):
    ASC = "asc"
    DESC = "desc"


class QueryParams(BaseModel):
    """
    Listing parameters recognized by the query builder.

    Every declared field is a control key. Any other key is kept in
    `filters` as a candidate exact-match predicate; the builder drops the
    ones that do not name a column. Malformed control values are ignored
    instead of rejected, so a bad `page=abc` falls back to the default.
    """

    model_config = ConfigDict(
        extra="allow", alias_generator=to_camel, populate_by_name=True
    )

    page: int | None = None
    limit: int | None = None
    sort_by: str | None = None
    sort_order: SortOrderEnum | None = None
    search_term: str | None = None
    select_fields: str | None = Field(None, alias="fields")
    min_price: Decimal | None = None
    max_price: Decimal | None = None

    @field_validator("page", "limit", mode="before")
    @classmethod
    def lenient_int(cls, value):
        try:
            return int(value) if value not in (None, "") else None
        except (TypeError, ValueError):
            return None

    @field_validator("min_price", "max_price", mode="before")
    @classmethod
    def lenient_decimal(cls, value):
        if value in (None, ""):
            return None
        try:
            value = Decimal(str(value))
        except InvalidOperation:
            return None
        return value if value.is_finite() else None

    @field_validator("sort_order", mode="before")
    @classmethod
    def lenient_sort_order(cls, value):
        if isinstance(value, str) and value.lower() in ("asc", "desc"):
            return value.lower()
        return None

    @field_validator("sort_by", "search_term", "select_fields", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
        return value or None

    @property
    def filters(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class PaginationMeta(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total: int
    page: int
    limit: int
    total_pages: int


class GenericResponse(BaseModel):
    meta: PaginationMeta
    data: list[dict[str, Any]]
