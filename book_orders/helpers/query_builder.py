import logging
import math
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic.alias_generators import to_snake
from sqlalchemy import ColumnElement, and_, func, inspect, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from book_orders.models.app_models import Base
from book_orders.schemas.query_schemas import PaginationMeta, QueryParams, SortOrderEnum

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
MAX_OFFSET = 2**63 - 1
DEFAULT_SORT_FIELD = "created_at"

_TRUE_VALUES = {"true", "1", "yes"}
_FALSE_VALUES = {"false", "0", "no"}


class _Uncoercible(Exception):
    pass


def _coerce(value: Any, python_type: type) -> Any:
    """Convert a raw query value to the python type of the target column."""
    if isinstance(value, python_type) and not isinstance(value, bool):
        return value
    text = str(value).strip()
    try:
        if python_type is bool:
            if text.lower() in _TRUE_VALUES:
                return True
            if text.lower() in _FALSE_VALUES:
                return False
            raise _Uncoercible(text)
        if python_type is datetime:
            return datetime.fromisoformat(text)
        if python_type is date:
            return date.fromisoformat(text)
        if python_type in (Decimal, float):
            number = python_type(text)
            if not math.isfinite(number):
                raise _Uncoercible(text)
            return number
        if python_type is uuid.UUID:
            return uuid.UUID(text)
        return python_type(text)
    except (ValueError, TypeError, InvalidOperation) as e:
        raise _Uncoercible(text) from e


@dataclass(frozen=True)
class QueryBuilder:
    """
    Assembles a listing query for one model out of untyped request parameters.

    Every stage returns a new builder, so a chain can be branched or reused
    without one request leaking clauses into another. Nothing touches the
    database until one of the terminal coroutines runs:

        builder = (
            QueryBuilder.from_query(Order, request_query, range_field="amount")
            .range()
            .search(["payment_method"])
            .filter()
            .sort()
            .paginate()
            .fields()
        )
        orders = await builder.execute(session, selectinload(Order.items))
        meta = await builder.count_total(session)

    Attributes:
        model: Mapped class the query targets.
        params: Validated request parameters.
        range_field: Column bounded by `minPrice`/`maxPrice`.
        clauses: Accumulated WHERE predicates, shared by data and count queries.
        ordering: ORDER BY expressions set by `sort()`.
        page, limit: Pagination window, applied only once `paginate()` ran.
        selected_fields: Column names kept by `fields()`, None for all columns.
    """

    model: type[Base]
    params: QueryParams
    range_field: str = "price"
    clauses: tuple[ColumnElement[bool], ...] = ()
    ordering: tuple[ColumnElement[Any], ...] = ()
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    paginated: bool = False
    selected_fields: tuple[str, ...] | None = None

    @classmethod
    def from_query(
        cls,
        model: type[Base],
        query: Mapping[str, Any] | QueryParams | None,
        range_field: str = "price",
    ) -> "QueryBuilder":
        if not isinstance(query, QueryParams):
            query = QueryParams.model_validate(dict(query or {}))
        return cls(model=model, params=query, range_field=range_field)

    # column lookup

    @property
    def _columns(self) -> dict[str, Any]:
        return {prop.key: prop for prop in inspect(self.model).column_attrs}

    def _attribute(self, name: str | None) -> InstrumentedAttribute | None:
        if not name:
            return None
        key = to_snake(name.strip())
        if key not in self._columns:
            return None
        return getattr(self.model, key)

    @property
    def _primary_keys(self) -> list[InstrumentedAttribute]:
        return [
            getattr(self.model, inspect(self.model).get_property_by_column(col).key)
            for col in inspect(self.model).primary_key
        ]

    # stages

    def range(self) -> "QueryBuilder":
        column = self._attribute(self.range_field)
        low, high = self.params.min_price, self.params.max_price
        if column is None or (low is None and high is None):
            return self
        bounds = []
        if low is not None:
            bounds.append(column >= low)
        if high is not None:
            bounds.append(column <= high)
        return replace(self, clauses=self.clauses + tuple(bounds))

    def search(self, fields: list[str]) -> "QueryBuilder":
        term = self.params.search_term
        columns = [c for c in (self._attribute(f) for f in fields or []) if c is not None]
        if not term or not columns:
            return self
        clause = or_(*(column.icontains(term, autoescape=True) for column in columns))
        return replace(self, clauses=self.clauses + (clause,))

    def filter(self) -> "QueryBuilder":
        predicates = []
        for key, raw in self.params.filters.items():
            column = self._attribute(key)
            if column is None or raw is None:
                logger.debug("Dropping unknown filter %r on %s", key, self.model.__name__)
                continue
            try:
                python_type = column.type.python_type
            except NotImplementedError:
                python_type = str
            try:
                value = _coerce(raw, python_type)
            except _Uncoercible:
                logger.debug("Dropping filter %r: cannot read %r as %s", key, raw, python_type)
                continue
            predicates.append(column == value)
        if not predicates:
            return self
        return replace(self, clauses=self.clauses + (and_(*predicates),))

    def constrain(self, *clauses: ColumnElement[bool]) -> "QueryBuilder":
        """Add caller-owned predicates, e.g. restricting rows to the current user."""
        return replace(self, clauses=self.clauses + clauses)

    def sort(self) -> "QueryBuilder":
        sort_by = self.params.sort_by or ""
        descending = sort_by.startswith("-")
        column = self._attribute(sort_by.lstrip("-"))
        if column is None:
            column = self._attribute(DEFAULT_SORT_FIELD)
            descending = self.params.sort_order != SortOrderEnum.ASC
            if column is None:
                return replace(self, ordering=tuple(self._primary_keys))
        elif self.params.sort_order is not None:
            descending = self.params.sort_order == SortOrderEnum.DESC
        primary = column.desc() if descending else column.asc()
        tie_breakers = [pk for pk in self._primary_keys if pk is not column]
        return replace(self, ordering=(primary, *tie_breakers))

    def paginate(self) -> "QueryBuilder":
        page = self.params.page if self.params.page and self.params.page > 0 else DEFAULT_PAGE
        limit = self.params.limit if self.params.limit and self.params.limit > 0 else DEFAULT_LIMIT
        limit = min(limit, MAX_LIMIT)
        # OFFSET is a signed 64-bit integer in the database
        if (page - 1) * limit > MAX_OFFSET:
            page = DEFAULT_PAGE
        return replace(self, page=page, limit=limit, paginated=True)

    def fields(self) -> "QueryBuilder":
        requested = self.params.select_fields
        if not requested:
            return replace(self, selected_fields=None)
        names = []
        for name in requested.split(","):
            column = self._attribute(name)
            if column is not None and column.key not in names:
                names.append(column.key)
        if not names:
            return replace(self, selected_fields=None)
        for pk in self._primary_keys:
            if pk.key not in names:
                names.insert(0, pk.key)
        return replace(self, selected_fields=tuple(names))

    # terminal operations

    async def execute(self, async_session: AsyncSession, *options) -> list[Any]:
        """
        Run the data query.

        Args:
            async_session (AsyncSession): Session used for the read.
            *options: Loader options merged into the statement, such as
                `selectinload(Order.items)` to include relations.

        Returns:
            list: The matching records in query order.
        """
        stmt = select(self.model).where(*self.clauses).order_by(*self.ordering)
        if options:
            stmt = stmt.options(*options)
        if self.paginated:
            stmt = stmt.offset((self.page - 1) * self.limit).limit(self.limit)
        result = await async_session.execute(stmt)
        return list(result.scalars().unique().all())

    async def count_total(self, async_session: AsyncSession) -> PaginationMeta:
        """Count the rows matching the accumulated predicates, ignoring pagination."""
        stmt = select(func.count()).select_from(self.model).where(*self.clauses)
        total = (await async_session.execute(stmt)).scalar_one()
        return PaginationMeta(
            total=total,
            page=self.page,
            limit=self.limit,
            total_pages=math.ceil(total / self.limit),
        )
