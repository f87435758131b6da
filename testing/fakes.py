"""
In-memory stand-in for the Supabase client.

Implements the slice of the postgrest query builder the repositories use
(select/insert/update/upsert/delete, the comparison filters, or_, order,
limit, range, count) plus rpc() and storage buckets. Tables and views are
plain lists of dicts seeded by the tests.
"""

import re
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}")


@dataclass
class FakeResponse:
    data: Any
    count: int | None = None


def _coerce(value: Any) -> Any:
    """Timestamps compare as instants; everything else as-is."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and _DATETIME.match(value):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return value
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return value


def _equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return left == right
    left, right = _coerce(left), _coerce(right)
    if left == right:
        return True
    return left is not None and right is not None and str(left) == str(right)


def _compare(left: Any, right: Any, op: str) -> bool:
    if left is None:
        return False
    left, right = _coerce(left), _coerce(right)
    if isinstance(left, datetime) != isinstance(right, datetime):
        left, right = str(left), str(right)
    try:
        if op == "gt":
            return left > right
        if op == "gte":
            return left >= right
        if op == "lt":
            return left < right
        if op == "lte":
            return left <= right
    except TypeError:
        return False
    raise ValueError(f"unsupported operator {op}")


def _ilike(value: Any, pattern: str) -> bool:
    if value is None:
        return False
    regex, index = "", 0
    while index < len(pattern):
        char = pattern[index]
        if char == "\\" and index + 1 < len(pattern):
            regex += re.escape(pattern[index + 1])
            index += 2
            continue
        regex += ".*" if char == "%" else "." if char == "_" else re.escape(char)
        index += 1
    return re.fullmatch(regex, str(value), flags=re.IGNORECASE | re.DOTALL) is not None


def _matches(row: dict, column: str, op: str, value: Any) -> bool:
    current = row.get(column)
    if op == "eq":
        return _equals(current, value)
    if op == "neq":
        return not _equals(current, value)
    if op == "in":
        return any(_equals(current, item) for item in value)
    if op == "ilike":
        return _ilike(current, value)
    if op == "is":
        return current is None if value in (None, "null") else _equals(current, value)
    return _compare(current, value, op)


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.operation = "select"
        self.payload: Any = None
        self.on_conflict = "id"
        self.count_mode: str | None = None
        self.filters: list = []
        self.orders: list[tuple[str, bool]] = []
        self.limit_value: int | None = None
        self.offset = 0

    # ── operations ──

    def select(self, columns: str = "*", count: str | None = None):
        self.operation = "select"
        self.count_mode = count
        return self

    def insert(self, data):
        self.operation, self.payload = "insert", data
        return self

    def update(self, data: dict):
        self.operation, self.payload = "update", data
        return self

    def upsert(self, data, on_conflict: str = "id"):
        self.operation, self.payload, self.on_conflict = "upsert", data, on_conflict
        return self

    def delete(self):
        self.operation = "delete"
        return self

    # ── filters ──

    def _filter(self, column: str, op: str, value: Any):
        self.filters.append(lambda row: _matches(row, column, op, value))
        return self

    def eq(self, column, value):
        return self._filter(column, "eq", value)

    def neq(self, column, value):
        return self._filter(column, "neq", value)

    def gt(self, column, value):
        return self._filter(column, "gt", value)

    def gte(self, column, value):
        return self._filter(column, "gte", value)

    def lt(self, column, value):
        return self._filter(column, "lt", value)

    def lte(self, column, value):
        return self._filter(column, "lte", value)

    def in_(self, column, values):
        return self._filter(column, "in", list(values))

    def ilike(self, column, pattern):
        return self._filter(column, "ilike", pattern)

    def is_(self, column, value):
        return self._filter(column, "is", value)

    def or_(self, expression: str):
        clauses = []
        for part in expression.split(","):
            column, op, value = part.split(".", 2)
            clauses.append((column, op, value))
        self.filters.append(lambda row: any(_matches(row, c, o, v) for c, o, v in clauses))
        return self

    # ── modifiers ──

    def order(self, column: str, desc: bool = False):
        self.orders.append((column, desc))
        return self

    def limit(self, count: int):
        self.limit_value = count
        return self

    def range(self, start: int, end: int):
        self.offset = start
        self.limit_value = end - start + 1
        return self

    # ── execution ──

    def _selected(self) -> list[dict]:
        return [row for row in self.db.tables[self.table] if all(f(row) for f in self.filters)]

    def execute(self) -> FakeResponse:
        self.db.calls.append((self.table, self.operation))
        if self.table in self.db.failing:
            raise RuntimeError(f"{self.table} unavailable")

        if self.operation == "insert":
            rows = self.payload if isinstance(self.payload, list) else [self.payload]
            return FakeResponse([self.db.add(self.table, row) for row in rows])

        if self.operation == "upsert":
            rows = self.payload if isinstance(self.payload, list) else [self.payload]
            result = []
            for row in rows:
                existing = next(
                    (r for r in self.db.tables[self.table] if _equals(r.get(self.on_conflict), row.get(self.on_conflict))),
                    None,
                )
                if existing is not None and row.get(self.on_conflict) is not None:
                    existing.update(row)
                    result.append(dict(existing))
                else:
                    result.append(self.db.add(self.table, row))
            return FakeResponse(result)

        selected = self._selected()

        if self.operation == "update":
            for row in selected:
                row.update(self.payload)
            return FakeResponse([dict(row) for row in selected])

        if self.operation == "delete":
            self.db.tables[self.table] = [r for r in self.db.tables[self.table] if r not in selected]
            return FakeResponse([dict(row) for row in selected])

        rows = [dict(row) for row in selected]
        for column, desc in reversed(self.orders):
            present = [r for r in rows if r.get(column) is not None]
            missing = [r for r in rows if r.get(column) is None]
            present.sort(key=lambda r: _coerce(r.get(column)), reverse=desc)
            rows = present + missing
        total = len(rows)
        rows = rows[self.offset:]
        if self.limit_value is not None:
            rows = rows[: self.limit_value]
        return FakeResponse(rows, total if self.count_mode else None)


class FakeRpc:
    def __init__(self, db: "FakeSupabase", name: str, params: dict):
        self.db, self.name, self.params = db, name, params

    def execute(self) -> FakeResponse:
        self.db.calls.append((self.name, "rpc"))
        result = self.db.rpc_results.get(self.name, [])
        if isinstance(result, Exception):
            raise result
        return FakeResponse(result(self.params) if callable(result) else result)


class FakeBucket:
    def __init__(self, storage: "FakeStorage", name: str):
        self.storage, self.name = storage, name

    def upload(self, path: str, content: bytes, options: dict | None = None):
        self.storage.objects[(self.name, path)] = content
        return {"path": path}

    def get_public_url(self, path: str) -> str:
        return f"https://storage.test/storage/v1/object/public/{self.name}/{path}"

    def remove(self, paths: list[str]):
        for path in paths:
            self.storage.objects.pop((self.name, path), None)
        return paths


class FakeStorage:
    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self, bucket)


class FakeSupabase:
    """Drop-in for supabase.Client in repository and route tests."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = defaultdict(list)
        self.rpc_results: dict[str, Any] = {}
        self.failing: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.storage = FakeStorage()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: dict | None = None) -> FakeRpc:
        return FakeRpc(self, name, params or {})

    def add(self, table: str, row: dict) -> dict:
        stored = dict(row)
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        self.tables[table].append(stored)
        return dict(stored)

    def seed(self, table: str, *rows: dict) -> list[dict]:
        return [self.add(table, row) for row in rows]

    def row(self, table: str, row_id: str) -> dict | None:
        return next((r for r in self.tables[table] if r.get("id") == row_id), None)
