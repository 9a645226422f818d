# utils/query.py
"""
Query translation for the list / fetch endpoints.

Raw ``where``, ``select``, ``sort``, ``skip``, ``limit`` and ``count``
request parameters are turned into a :class:`QueryDescriptor` holding a
compiled SQLAlchemy filter clause, an ``ORDER BY`` list, a projection and
the paging bounds. Everything is validated here so that a malformed request
is rejected before the store is touched.

Filters use the Mongo-style document syntax the API has always accepted
(``{"completed": false}``, ``{"_id": {"$in": [...]}}``). A field outside
the model's ``api_fields`` map is treated as absent from every document,
so it matches only tests for absence; unknown sort keys are skipped.
"""
import json
import operator
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from dateutil import parser as date_parser
from sqlalchemy import Boolean, DateTime, JSON, String, TypeDecorator, and_, cast, false, func, not_, or_, true

from utils.errors import invalid_param
from utils.ids import is_valid_object_id, to_utc

_COMPARISONS = {
    "$eq": operator.eq,
    "$ne": operator.ne,
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$lt": operator.lt,
    "$lte": operator.le,
}

# largest value the store accepts for OFFSET / LIMIT
_MAX_BOUND = 2 ** 63 - 1

_DIRECTIONS = {
    1: "asc", -1: "desc",
    "1": "asc", "-1": "desc",
    "asc": "asc", "ascending": "asc",
    "desc": "desc", "descending": "desc",
}


@dataclass
class QueryDescriptor:
    where: Any = field(default_factory=true)
    order_by: List[Any] = field(default_factory=list)
    projection: Optional[Dict[str, bool]] = None
    skip: int = 0
    limit: Optional[int] = None
    count: bool = False


def translate(params: Mapping[str, str], model, default_limit: Optional[int] = None) -> QueryDescriptor:
    """Build a descriptor for ``model`` from request query parameters.

    ``default_limit`` applies only when ``limit`` is absent; an explicit
    ``limit=0`` means no limit.
    """
    descriptor = QueryDescriptor()

    if params.get("where"):
        descriptor.where = compile_filter(model, _parse_json("where", params["where"]))
    if params.get("select"):
        descriptor.projection = parse_projection(params["select"])
    if params.get("sort"):
        descriptor.order_by = compile_sort(model, _parse_json("sort", params["sort"]))

    if params.get("skip") is not None:
        descriptor.skip = parse_non_negative_int("skip", params["skip"])

    limit = default_limit
    if params.get("limit") is not None:
        limit = parse_non_negative_int("limit", params["limit"])
    descriptor.limit = limit or None

    descriptor.count = str(params.get("count")) == "true"
    return descriptor


def _parse_json(name: str, raw: str):
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        raise invalid_param(name, f'The "{name}" query parameter must be valid JSON')


def parse_non_negative_int(name: str, raw) -> int:
    text = str(raw).strip()
    try:
        number = float(text) if text else 0.0
    except ValueError:
        number = None
    if number is None or not number.is_integer() or not 0 <= number <= _MAX_BOUND:
        raise invalid_param(name, f'The "{name}" query parameter must be a non-negative integer')
    return int(number)


# ---- projection ----

def parse_projection(raw: str) -> Dict[str, bool]:
    obj = _parse_json("select", raw)
    if not isinstance(obj, dict):
        raise invalid_param("select", 'The "select" query parameter must be a JSON object')
    projection = {}
    for name, flag in obj.items():
        if isinstance(flag, str) or flag not in (0, 1):
            raise invalid_param("select", f'Projection value for "{name}" must be 0 or 1')
        projection[name] = bool(flag)
    modes = {flag for name, flag in projection.items() if name != "_id"}
    if len(modes) > 1:
        raise invalid_param("select", "Cannot mix inclusion and exclusion in a projection")
    return projection


def project(doc: dict, projection: Optional[Dict[str, bool]]) -> dict:
    if not projection:
        return doc
    fields = {k: v for k, v in projection.items() if k != "_id"}
    keep_id = projection.get("_id", True)
    inclusive = any(fields.values()) if fields else keep_id
    if inclusive:
        return {k: v for k, v in doc.items() if (keep_id if k == "_id" else fields.get(k))}
    return {k: v for k, v in doc.items() if projection.get(k, True)}


# ---- sort ----

def compile_sort(model, obj) -> list:
    """Unknown fields are skipped, as the store would have sorted them as missing."""
    if not isinstance(obj, dict):
        raise invalid_param("sort", 'The "sort" query parameter must be a JSON object')
    order_by = []
    for name, direction in obj.items():
        key = direction.lower() if isinstance(direction, str) else direction
        if isinstance(direction, bool) or not isinstance(key, (str, int)) or key not in _DIRECTIONS:
            raise invalid_param("sort", f'Invalid sort direction for "{name}"')
        column = _column(model, name)
        if column is None:
            continue
        order_by.append(column.asc() if _DIRECTIONS[key] == "asc" else column.desc())
    return order_by


# ---- filter ----

_LOGICAL = {
    "$and": lambda parts: and_(*parts),
    "$or": lambda parts: or_(*parts),
    "$nor": lambda parts: not_(or_(*parts)),
}


def compile_filter(model, obj):
    if not isinstance(obj, dict):
        raise invalid_param("where", 'The "where" query parameter must be a JSON object')
    clauses = []
    for key, value in obj.items():
        if key in _LOGICAL:
            if not isinstance(value, list) or not value:
                raise invalid_param("where", f'"{key}" expects a non-empty array')
            clauses.append(_LOGICAL[key]([compile_filter(model, part) for part in value]))
        elif key.startswith("$"):
            raise invalid_param("where", f'Unsupported operator "{key}"')
        else:
            clauses.append(_field_clause(model, key, value))
    return and_(true(), *clauses)


def _column(model, name):
    attr = model.api_fields.get(name) if isinstance(name, str) else None
    return getattr(model, attr) if attr else None


def _column_type(model, name: str):
    col_type = model.__table__.c[model.api_fields[name]].type
    # SQLModel wraps some columns (timezone-aware datetimes) in a decorator
    return col_type.impl if isinstance(col_type, TypeDecorator) else col_type


def _is_operator_object(value) -> bool:
    return isinstance(value, dict) and bool(value) and all(k.startswith("$") for k in value)


def _field_clause(model, name: str, value):
    column = _column(model, name)
    if column is None:
        return _missing_clause(name, value)
    col_type = _column_type(model, name)
    if isinstance(col_type, JSON):
        return _array_clause(column, name, value)
    if _is_operator_object(value):
        return and_(*[_operator_clause(column, col_type, name, op, arg, value) for op, arg in value.items()])
    return _equals(column, _coerce(col_type, name, value))


def _equals(column, value):
    return column.is_(None) if value is None else column == value


def _missing_clause(name: str, value):
    """A field no document stores only matches tests for absence."""
    if not _is_operator_object(value):
        return true() if value is None else false()
    clauses = []
    for op, arg in value.items():
        if op == "$eq":
            clauses.append(true() if arg is None else false())
        elif op == "$ne":
            clauses.append(false() if arg is None else true())
        elif op in ("$in", "$nin"):
            if not isinstance(arg, list):
                raise invalid_param("where", f'"{op}" on "{name}" expects an array')
            hit = any(item is None for item in arg)
            clauses.append(true() if hit == (op == "$in") else false())
        elif op == "$exists":
            clauses.append(false() if arg else true())
        elif op == "$not":
            clauses.append(not_(_missing_clause(name, arg)))
        elif op == "$options":
            clauses.append(true())
        elif op in _COMPARISONS or op in ("$regex", "$all", "$size"):
            clauses.append(false())
        else:
            raise invalid_param("where", f'Unsupported operator "{op}" on "{name}"')
    return and_(*clauses)


def _regex(column, col_type, name: str, pattern, options):
    if not isinstance(pattern, str) or not isinstance(options, str):
        raise invalid_param("where", f'"$regex" on "{name}" expects a string pattern')
    if set(options) - set("imsx"):
        raise invalid_param("where", f'Unsupported "$options" on "{name}"')
    try:
        re.compile(pattern)
    except re.error:
        raise invalid_param("where", f'Invalid "$regex" on "{name}"')
    if not isinstance(col_type, String):
        return false()
    return column.regexp_match(pattern, flags=options or None)


def _operator_clause(column, col_type, name: str, op: str, arg, siblings):
    if op in ("$eq", "$ne"):
        value = _coerce(col_type, name, arg)
        if value is None:
            return column.is_(None) if op == "$eq" else column.isnot(None)
        return _COMPARISONS[op](column, value)
    if op in _COMPARISONS:
        value = _coerce(col_type, name, arg)
        if value is None:
            return false()
        return _COMPARISONS[op](column, value)
    if op in ("$in", "$nin", "$all"):
        if not isinstance(arg, list):
            raise invalid_param("where", f'"{op}" on "{name}" expects an array')
        values = [_coerce(col_type, name, item) for item in arg if item is not None]
        if op == "$all":
            # a scalar holds every value only when they are all the same one
            return and_(*[column == v for v in values]) if values else false()
        clause = column.in_(values) if values else false()
        return clause if op == "$in" else not_(clause)
    if op == "$exists":
        # every column is always present on stored documents
        return true() if arg else false()
    if op == "$regex":
        return _regex(column, col_type, name, arg, siblings.get("$options", ""))
    if op == "$options":
        if "$regex" not in siblings:
            raise invalid_param("where", f'"$options" on "{name}" needs "$regex"')
        return true()
    if op == "$size":
        _size(name, arg)
        return false()
    if op == "$not":
        if not _is_operator_object(arg):
            raise invalid_param("where", f'"$not" on "{name}" expects an operator object')
        return not_(and_(*[_operator_clause(column, col_type, name, o, a, arg) for o, a in arg.items()]))
    raise invalid_param("where", f'Unsupported operator "{op}" on "{name}"')


def _size(name: str, arg) -> int:
    if isinstance(arg, bool) or not isinstance(arg, (int, float)) or arg < 0 or int(arg) != arg:
        raise invalid_param("where", f'"$size" on "{name}" expects a non-negative integer')
    return int(arg)


def _contains(column, task_id):
    if not is_valid_object_id(task_id):
        return false()
    return cast(column, String).like(f'%"{task_id}"%')


def _array_clause(column, name: str, value):
    if not _is_operator_object(value):
        if value is None:
            return false()
        if not isinstance(value, str):
            raise invalid_param("where", f'"{name}" only supports matching a single id')
        return _contains(column, value)

    clauses = []
    for op, arg in value.items():
        if op in ("$eq", "$ne") and isinstance(arg, str):
            clause = _contains(column, arg)
            clauses.append(clause if op == "$eq" else not_(clause))
        elif op in ("$in", "$nin") and isinstance(arg, list):
            matches = [_contains(column, item) for item in arg]
            clause = or_(*matches) if matches else false()
            clauses.append(clause if op == "$in" else not_(clause))
        elif op == "$all" and isinstance(arg, list):
            clauses.append(and_(*[_contains(column, item) for item in arg]) if arg else false())
        elif op == "$size":
            clauses.append(func.json_array_length(column) == _size(name, arg))
        elif op == "$exists":
            clauses.append(true() if arg else false())
        elif op == "$not" and _is_operator_object(arg):
            clauses.append(not_(_array_clause(column, name, arg)))
        else:
            raise invalid_param("where", f'Unsupported operator "{op}" on "{name}"')
    return and_(*clauses)


def _coerce(col_type, name: str, value):
    if value is None:
        return None
    bad = invalid_param("where", f'Invalid value for "{name}"')
    if isinstance(col_type, DateTime):
        if isinstance(value, bool):
            raise bad
        if isinstance(value, (int, float)):
            # epoch milliseconds, as a JS Date would take it
            try:
                return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                raise bad
        if isinstance(value, str):
            try:
                return to_utc(date_parser.parse(value))
            except (ValueError, OverflowError):
                raise bad
        raise bad
    if isinstance(col_type, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
        raise bad
    if isinstance(value, (dict, list)):
        raise bad
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
