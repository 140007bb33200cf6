"""
Search, sort, filter and paginate SQLAlchemy selects from request parameters.

Only fields named in an allow-list are reachable, so clients cannot sort or
filter on internal columns. Invalid filter conditions (unknown field or
operator, unconvertible value) are skipped rather than failing the request.

Filter syntax (``&`` separated pairs):
- ``field[op]=value`` or ``field_op=value``
- ``or_`` / ``and_`` key prefixes choose how a condition joins its group
- ``logic=or`` makes OR the default for conditions without a prefix
- ``groupN=<id>`` puts the following conditions into group ``<id>``;
  groups are ANDed with the root group

Operators: eq ne gt gte lt lte contains notcontains startswith endswith in
notin isnull isnotnull range.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Literal
from urllib.parse import parse_qsl

from sqlalchemy import Select, and_, false, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from app.core.logging import get_logger
from app.models.base import to_naive_utc
from app.schemas.query import PagingParams, SearchParams, SortParams
from app.schemas.response import PagedList

logger = get_logger(__name__)

LogicalOperator = Literal["and", "or"]

FILTER_OPERATORS = frozenset(
    {
        "eq",
        "ne",
        "gt",
        "gte",
        "lt",
        "lte",
        "contains",
        "notcontains",
        "startswith",
        "endswith",
        "in",
        "notin",
        "isnull",
        "isnotnull",
        "range",
    }
)
_NULL_OPERATORS = frozenset({"isnull", "isnotnull"})


@dataclass(frozen=True)
class FilterCondition:
    field: str
    operator: str
    value: str
    logic: LogicalOperator = "and"
    explicit_logic: bool = False
    group: int = 0


# ===== Parsing =====


def _parse_condition(
    key: str, value: str, default_logic: LogicalOperator, group: int
) -> FilterCondition | None:
    logic = default_logic
    explicit = False
    lowered = key.lower()
    if lowered.startswith("or_"):
        logic, explicit, key = "or", True, key[3:]
    elif lowered.startswith("and_"):
        logic, explicit, key = "and", True, key[4:]

    if "[" in key and "]" in key:
        field_name = key[: key.index("[")]
        operator = key[key.index("[") + 1 : key.index("]")].lower()
    elif "_" in key:
        field_name, _, operator = key.rpartition("_")
        operator = operator.lower()
    else:
        return None

    if not field_name or operator not in FILTER_OPERATORS:
        return None
    return FilterCondition(field_name, operator, value, logic, explicit, group)


def parse_filter_pairs(pairs: Iterable[tuple[str, str]]) -> list[FilterCondition]:
    """Parse ``(key, value)`` pairs into filter conditions."""
    pairs = list(pairs)
    default_logic: LogicalOperator = "and"
    for key, value in pairs:
        if key.lower() == "logic" and value.strip().lower() == "or":
            default_logic = "or"

    conditions: list[FilterCondition] = []
    group = 0
    for key, value in pairs:
        key = key.strip()
        if not key or key.lower() == "logic":
            continue

        is_null_check = any(f"[{op}]" in key.lower() for op in _NULL_OPERATORS) or any(
            key.lower().endswith(f"_{op}") for op in _NULL_OPERATORS
        )
        if not value.strip() and not is_null_check:
            continue

        if key.lower().startswith("group") and len(key) > 5:
            try:
                group = int(value)
                continue
            except ValueError:
                pass

        condition = _parse_condition(key, value, default_logic, group)
        if condition is not None:
            conditions.append(condition)
    return conditions


def parse_filter_string(filters: str | None) -> list[FilterCondition]:
    """Parse a ``field[op]=value&...`` expression."""
    if not filters or not filters.strip():
        return []
    return parse_filter_pairs(parse_qsl(filters, keep_blank_values=True))


# ===== Building =====


def _resolve_column(model: Any, name: str, allowed: Sequence[str]) -> Any | None:
    lookup = {field.lower(): field for field in allowed}
    attr = lookup.get(name.strip().lower())
    return getattr(model, attr) if attr else None


def _python_type(column: Any) -> type:
    try:
        return column.type.python_type
    except NotImplementedError:
        return str


def _convert(raw: str, target: type) -> Any:
    raw = raw.strip()
    if target is bool:
        lowered = raw.lower()
        if lowered in ("true", "1"):
            return True
        if lowered in ("false", "0"):
            return False
        raise ValueError(f"Invalid boolean: {raw}")
    if target is int:
        return int(raw)
    if target is float:
        return float(raw)
    if target is datetime:
        return to_naive_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    if target is date:
        return date.fromisoformat(raw)
    return raw


def _condition_clause(column: Any, condition: FilterCondition) -> ColumnElement[bool]:
    op = condition.operator
    target = _python_type(column)

    if op == "isnull":
        return column.is_(None)
    if op == "isnotnull":
        return column.is_not(None)

    if op in ("in", "notin"):
        values = []
        for part in condition.value.split(","):
            if not part.strip():
                continue
            try:
                values.append(_convert(part, target))
            except ValueError:
                continue
        if not values:
            return false()
        clause = column.in_(values)
        return ~clause if op == "notin" else clause

    if op == "range":
        parts = [p for p in condition.value.split(",") if p.strip()]
        if len(parts) != 2:
            raise ValueError("Range requires exactly two comma separated values")
        return and_(column >= _convert(parts[0], target), column <= _convert(parts[1], target))

    if op in ("contains", "notcontains", "startswith", "endswith"):
        needle = condition.value.lower()
        haystack = func.lower(column)
        if op == "startswith":
            return haystack.startswith(needle, autoescape=True)
        if op == "endswith":
            return haystack.endswith(needle, autoescape=True)
        clause = haystack.contains(needle, autoescape=True)
        return ~clause if op == "notcontains" else clause

    value = _convert(condition.value, target)
    comparisons = {
        "eq": column == value,
        "ne": column != value,
        "gt": column > value,
        "gte": column >= value,
        "lt": column < value,
        "lte": column <= value,
    }
    return comparisons[op]


def _combine(clauses: list[tuple[FilterCondition, ColumnElement[bool]]]) -> ColumnElement[bool] | None:
    if not clauses:
        return None

    ors = [c for cond, c in clauses if cond.logic == "or"]
    ands = [c for cond, c in clauses if cond.logic == "and"]

    if ors and ands:
        explicit_and = any(cond.explicit_logic for cond, _ in clauses if cond.logic == "and")
        if not explicit_and:
            # Mixed without an explicit and_: everything is ORed
            return or_(*(c for _, c in clauses))
        return and_(or_(*ors), and_(*ands))
    if ors:
        return or_(*ors)
    return and_(*ands)


def apply_filters(
    stmt: Select[Any],
    model: Any,
    conditions: list[FilterCondition],
    allowed_fields: Sequence[str],
) -> Select[Any]:
    """Add a WHERE clause for the parsed conditions."""
    groups: dict[int, list[tuple[FilterCondition, ColumnElement[bool]]]] = {}
    for condition in conditions:
        column = _resolve_column(model, condition.field, allowed_fields)
        if column is None:
            logger.debug("filter_field_ignored", field=condition.field)
            continue
        try:
            clause = _condition_clause(column, condition)
        except (ValueError, TypeError) as e:
            logger.debug("filter_condition_ignored", field=condition.field, error=str(e))
            continue
        groups.setdefault(condition.group, []).append((condition, clause))

    expressions = [
        expr for _, group in sorted(groups.items()) if (expr := _combine(group)) is not None
    ]
    if not expressions:
        return stmt
    return stmt.where(and_(*expressions))


def apply_search(
    stmt: Select[Any],
    model: Any,
    params: SearchParams,
    searchable_fields: Sequence[str],
) -> Select[Any]:
    """Match ``search_term`` against any of the requested (or all searchable) fields."""
    term = (params.search_term or "").strip()
    if not term:
        return stmt

    names = params.search_fields or list(searchable_fields)
    columns = [
        column
        for name in names
        if (column := _resolve_column(model, name, searchable_fields)) is not None
    ]
    if not columns:
        return stmt

    clauses = []
    for column in columns:
        target = column if params.case_sensitive else func.lower(column)
        needle = term if params.case_sensitive else term.lower()
        if params.exact_match:
            clauses.append(target == needle)
        elif params.starts_with:
            clauses.append(target.startswith(needle, autoescape=True))
        else:
            clauses.append(target.contains(needle, autoescape=True))
    return stmt.where(or_(*clauses))


def apply_sort(
    stmt: Select[Any],
    model: Any,
    params: SortParams,
    sortable_fields: Sequence[str],
    default_field: str = "id",
) -> Select[Any]:
    """Order by the requested field, falling back to ``default_field`` ascending."""
    column = None
    if params.sort_by:
        column = _resolve_column(model, params.sort_by, sortable_fields)
        if column is None:
            logger.debug("sort_field_ignored", field=params.sort_by)
    if column is None:
        return stmt.order_by(getattr(model, default_field))
    return stmt.order_by(column.desc() if params.is_descending else column.asc())


async def paginate(db: AsyncSession, stmt: Select[Any], paging: PagingParams) -> PagedList[Any]:
    """Run ``stmt`` for one page and count the total across all pages."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar_one()

    result = await db.execute(stmt.offset(paging.offset).limit(paging.page_size))
    items = list(result.scalars().all())
    return PagedList(
        items=items,
        page_number=paging.page_number,
        page_size=paging.page_size,
        total_count=int(total),
    )
