"""
Document collections stored as JSONB rows in Postgres.

Each collection is one table:

    id          uuid primary key (generated)
    data        jsonb            (the document body)
    created_at  timestamptz
    updated_at  timestamptz

Documents come back as plain dicts: the JSONB body merged with `id`,
`createdAt` and `updatedAt`.

Filters are Mongo-like:
- {"email": "a@b.c"}                      equality
- {"age": {"$gte": 18, "$lt": 65}}        operators: $eq $ne $gt $gte $lt $lte $in
- {"profile.city": "Paris"}               dotted paths reach into nested objects

Field names and values are always bound as parameters; only the table name
and the operator/direction keywords are interpolated, and both are validated.
JSONB parameters are plain Python values; `core.db` registers the codecs.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from typing import Any, Mapping

from core import db

_TABLE_NAME_RE = re.compile(r"^[a-z_][a-z0-9_]*$")
_FIELD_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Document keys backed by real columns instead of the JSONB body.
_COLUMNS = {
    "id": "id",
    "_id": "id",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

_OPERATORS = {
    "$eq": "=",
    "$ne": "IS DISTINCT FROM",
    "$gt": ">",
    "$gte": ">=",
    "$lt": "<",
    "$lte": "<=",
}

_RETURNING = "id, data, created_at, updated_at"


class DocumentQueryError(ValueError):
    pass


def parse_id(value: Any) -> uuid.UUID | None:
    """
    Coerce a document id to a UUID, or None when it cannot be one.
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


class QueryParams:
    """Collects positional arguments and hands out $n placeholders."""

    def __init__(self, start: int = 1) -> None:
        self.args: list[Any] = []
        self._start = start

    def add(self, value: Any) -> str:
        self.args.append(value)
        return f"${self._start + len(self.args) - 1}"


def _is_operator_spec(value: Any) -> bool:
    return isinstance(value, Mapping) and bool(value) and all(str(k).startswith("$") for k in value)


def _path_expr(field: str, params: QueryParams) -> str:
    path = [part for part in field.split(".") if part]
    if not path:
        raise DocumentQueryError("Empty field name in query.")
    return f"(data #> {params.add(path)}::text[])"


def _column_arg(column: str, value: Any) -> Any:
    if column == "id":
        return parse_id(value)
    if column in {"created_at", "updated_at"} and isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


def _column_condition(column: str, op: str, value: Any, params: QueryParams) -> str:
    if op == "$in":
        values = [_column_arg(column, v) for v in (value or [])]
        if column == "id":
            values = [v for v in values if v is not None]
        return f"{column} = ANY({params.add(values)})"

    arg = _column_arg(column, value)
    if column == "id" and arg is None:
        # A malformed id can never match a uuid column.
        return "TRUE" if op == "$ne" else "FALSE"
    if value is None:
        return f"{column} IS NOT NULL" if op == "$ne" else f"{column} IS NULL"
    return f"{column} {_OPERATORS[op]} {params.add(arg)}"


def _data_condition(field: str, op: str, value: Any, params: QueryParams) -> str:
    expr = _path_expr(field, params)
    if op == "$in":
        return f"{expr} = ANY({params.add(list(value or []))}::jsonb[])"
    if value is None and op in {"$eq", "$ne"}:
        missing = f"({expr} IS NULL OR {expr} = 'null'::jsonb)"
        return f"NOT {missing}" if op == "$ne" else missing
    return f"{expr} {_OPERATORS[op]} {params.add(value)}::jsonb"


def build_where(filter: Mapping[str, Any] | None, params: QueryParams) -> str:
    """
    Translate a filter mapping into a SQL boolean expression.
    """
    conditions: list[str] = []
    for field, spec in (filter or {}).items():
        ops = spec.items() if _is_operator_spec(spec) else [("$eq", spec)]
        for op, value in ops:
            if op != "$in" and op not in _OPERATORS:
                raise DocumentQueryError(f"Unsupported filter operator: {op}")
            if op == "$in" and not isinstance(value, (list, tuple, set)):
                raise DocumentQueryError(f"$in expects a list for field {field!r}.")
            column = _COLUMNS.get(field)
            if column is not None:
                conditions.append(_column_condition(column, op, value, params))
            else:
                conditions.append(_data_condition(field, op, value, params))
    return " AND ".join(conditions) if conditions else "TRUE"


def build_order_by(sort: Mapping[str, int] | None, params: QueryParams) -> str:
    """
    Translate an ordered {field: 1 | -1} mapping into an ORDER BY list.

    `id` is always appended as a tie-breaker so pages are stable.
    """
    terms: list[str] = []
    for field, direction in (sort or {}).items():
        keyword = "DESC" if int(direction) < 0 else "ASC"
        column = _COLUMNS.get(field)
        expr = column if column is not None else _path_expr(field, params)
        terms.append(f"{expr} {keyword}")
    terms.append("id ASC")
    return ", ".join(terms)


def _row_to_document(row: dict[str, Any] | None) -> dict[str, Any] | None:
    if row is None:
        return None
    document = dict(row.get("data") or {})
    document["id"] = str(row["id"])
    document["createdAt"] = row["created_at"]
    document["updatedAt"] = row["updated_at"]
    return document


def _body(document: Mapping[str, Any]) -> dict[str, Any]:
    # Column-backed keys are owned by the table, never by the JSONB body.
    return {k: v for (k, v) in document.items() if k not in _COLUMNS}


class DocumentCollection:
    """
    One JSONB-backed collection. Implements the `DocumentStore` protocol
    used by `common.base_crud.BaseCrudService`.
    """

    def __init__(self, name: str, *, unique_fields: tuple[str, ...] = ()) -> None:
        if not _TABLE_NAME_RE.match(name or ""):
            raise ValueError(f"Invalid collection name: {name!r}")
        for field in unique_fields:
            if not _FIELD_NAME_RE.match(field):
                raise ValueError(f"Invalid unique field name: {field!r}")
        self.name = name
        self.unique_fields = tuple(unique_fields)

    @property
    def _table(self) -> str:
        return f'"{self.name}"'

    async def ensure_table(self) -> None:
        await db.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
                data jsonb NOT NULL DEFAULT '{{}}'::jsonb,
                created_at timestamptz NOT NULL DEFAULT now(),
                updated_at timestamptz NOT NULL DEFAULT now()
            )
            """
        )
        await db.execute(
            f'CREATE INDEX IF NOT EXISTS "{self.name}_data_gin" ON {self._table} USING gin (data)'
        )
        await db.execute(
            f'CREATE INDEX IF NOT EXISTS "{self.name}_created_at_idx" ON {self._table} (created_at)'
        )
        for field in self.unique_fields:
            # Unique violations surface as asyncpg.UniqueViolationError.
            await db.execute(
                f'CREATE UNIQUE INDEX IF NOT EXISTS "{self.name}_{field}_key" '
                f"ON {self._table} ((data ->> '{field}'))"
            )

    async def insert(self, document: Mapping[str, Any]) -> dict[str, Any]:
        row = await db.fetch_one(
            f"""
            INSERT INTO {self._table} (data)
            VALUES ($1::jsonb)
            RETURNING {_RETURNING}
            """,
            _body(document),
        )
        if row is None:
            raise RuntimeError(f"Failed to insert into {self.name}.")
        return _row_to_document(row)

    async def find_many(
        self,
        filter: Mapping[str, Any] | None = None,
        *,
        sort: Mapping[str, int] | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        params = QueryParams()
        where = build_where(filter, params)
        order_by = build_order_by(sort, params)
        sql = f"SELECT {_RETURNING} FROM {self._table} WHERE {where} ORDER BY {order_by}"
        if skip:
            sql += f" OFFSET {params.add(int(skip))}"
        if limit is not None:
            sql += f" LIMIT {params.add(int(limit))}"
        rows = await db.fetch_all(sql, *params.args)
        return [_row_to_document(r) for r in rows]

    async def count(self, filter: Mapping[str, Any] | None = None) -> int:
        params = QueryParams()
        where = build_where(filter, params)
        total = await db.fetch_val(
            f"SELECT count(*) FROM {self._table} WHERE {where}",
            *params.args,
        )
        return int(total or 0)

    async def find_one(self, filter: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
        rows = await self.find_many(filter, limit=1)
        return rows[0] if rows else None

    async def find_by_id(self, id: Any) -> dict[str, Any] | None:
        doc_id = parse_id(id)
        if doc_id is None:
            return None
        row = await db.fetch_one(
            f"SELECT {_RETURNING} FROM {self._table} WHERE id = $1",
            doc_id,
        )
        return _row_to_document(row)

    async def update_and_return(self, id: Any, patch: Mapping[str, Any]) -> dict[str, Any] | None:
        """
        Shallow-merge `patch` into the document body; returns the updated document.
        """
        doc_id = parse_id(id)
        if doc_id is None:
            return None
        row = await db.fetch_one(
            f"""
            UPDATE {self._table}
            SET data = data || $2::jsonb,
                updated_at = now()
            WHERE id = $1
            RETURNING {_RETURNING}
            """,
            doc_id,
            _body(patch),
        )
        return _row_to_document(row)

    async def delete_and_return(self, id: Any) -> dict[str, Any] | None:
        doc_id = parse_id(id)
        if doc_id is None:
            return None
        row = await db.fetch_one(
            f"DELETE FROM {self._table} WHERE id = $1 RETURNING {_RETURNING}",
            doc_id,
        )
        return _row_to_document(row)
