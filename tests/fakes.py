# =============================================================================
# tests/fakes.py - In-Memory Supabase Fake
# =============================================================================
# A small stand-in for the supabase-py client covering the query builder
# calls the services make: select/insert/update/upsert/delete with eq, neq,
# in_, is_, gte/lte/gt/lt, contains, or_ (ilike terms), order, range and
# limit, plus a Storage bucket that records uploads and removals.
#
# Usage:
#   fake = FakeSupabase()
#   fake.seed("publishing_queue_logs", [{"id": "j1", "user_id": USER_ID, ...}])
#   with patch.object(SupabaseClient, "_instance", fake): ...
# =============================================================================

import copy
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable


@dataclass
class FakeResponse:
    data: list[dict[str, Any]]
    count: int | None = None


def _ilike_regex(pattern: str) -> re.Pattern:
    """Translate an ilike pattern (with backslash escapes) to a regex."""
    out = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "%":
            out.append(".*")
        elif ch == "_":
            out.append(".")
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("^" + "".join(out) + "$", re.IGNORECASE | re.DOTALL)


def _ilike(value: Any, pattern: str) -> bool:
    if value is None:
        return False
    return bool(_ilike_regex(pattern).match(str(value)))


def _parse_or(expression: str) -> list[Callable[[dict[str, Any]], bool]]:
    """Parse "col.ilike.%x%,col2.eq.y" into row predicates."""
    predicates = []
    for part in expression.split(","):
        column, op, value = part.split(".", 2)
        if op == "ilike":
            predicates.append(lambda row, c=column, v=value: _ilike(row.get(c), v))
        elif op == "eq":
            predicates.append(lambda row, c=column, v=value: str(row.get(c)) == v)
        else:
            raise NotImplementedError(f"or_ operator {op}")
    return predicates


def _sort_key(value: Any):
    # None sorts last ascending, like Postgres NULLS LAST
    return (value is None, value if value is not None else "")


class FakeQuery:
    """One chained query against a FakeSupabase table."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.action = "select"
        self.columns = "*"
        self.count_mode: str | None = None
        self.payload: Any = None
        self.on_conflict: str | None = None
        self.filters: list[Callable[[dict[str, Any]], bool]] = []
        self.orders: list[tuple[str, bool]] = []
        self.offset = 0
        self.max_rows: int | None = None

    # -- actions -------------------------------------------------------------

    def select(self, columns: str = "*", count: str | None = None) -> "FakeQuery":
        self.columns = columns
        self.count_mode = count
        return self

    def insert(self, data) -> "FakeQuery":
        self.action = "insert"
        self.payload = data
        return self

    def update(self, data: dict[str, Any]) -> "FakeQuery":
        self.action = "update"
        self.payload = data
        return self

    def upsert(self, data, on_conflict: str | None = None, **kwargs) -> "FakeQuery":
        self.action = "upsert"
        self.payload = data
        self.on_conflict = on_conflict
        return self

    def delete(self) -> "FakeQuery":
        self.action = "delete"
        return self

    # -- filters -------------------------------------------------------------

    def _add(self, predicate) -> "FakeQuery":
        self.filters.append(predicate)
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        return self._add(lambda row: row.get(column) == value)

    def neq(self, column: str, value: Any) -> "FakeQuery":
        return self._add(lambda row: row.get(column) != value)

    def in_(self, column: str, values: list[Any]) -> "FakeQuery":
        values = list(values)
        return self._add(lambda row: row.get(column) in values)

    def is_(self, column: str, value: Any) -> "FakeQuery":
        if value in ("null", None):
            return self._add(lambda row: row.get(column) is None)
        return self._add(lambda row: row.get(column) is value)

    def gte(self, column: str, value: Any) -> "FakeQuery":
        return self._add(lambda row: row.get(column) is not None and row.get(column) >= value)

    def lte(self, column: str, value: Any) -> "FakeQuery":
        return self._add(lambda row: row.get(column) is not None and row.get(column) <= value)

    def gt(self, column: str, value: Any) -> "FakeQuery":
        return self._add(lambda row: row.get(column) is not None and row.get(column) > value)

    def lt(self, column: str, value: Any) -> "FakeQuery":
        return self._add(lambda row: row.get(column) is not None and row.get(column) < value)

    def ilike(self, column: str, pattern: str) -> "FakeQuery":
        return self._add(lambda row: _ilike(row.get(column), pattern))

    def contains(self, column: str, values: list[Any]) -> "FakeQuery":
        return self._add(lambda row: all(v in (row.get(column) or []) for v in values))

    def match(self, criteria: dict[str, Any]) -> "FakeQuery":
        return self._add(lambda row: all(row.get(k) == v for k, v in criteria.items()))

    def or_(self, expression: str) -> "FakeQuery":
        predicates = _parse_or(expression)
        return self._add(lambda row: any(p(row) for p in predicates))

    # -- modifiers -----------------------------------------------------------

    def order(self, column: str, desc: bool = False, **kwargs) -> "FakeQuery":
        self.orders.append((column, desc))
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self.offset = start
        self.max_rows = end - start + 1
        return self

    def limit(self, count: int) -> "FakeQuery":
        self.max_rows = count
        return self

    # -- execution -----------------------------------------------------------

    def _matching(self) -> list[dict[str, Any]]:
        return [row for row in self.db.rows(self.table) if all(f(row) for f in self.filters)]

    def _project(self, row: dict[str, Any]) -> dict[str, Any]:
        if self.columns.strip() == "*":
            return copy.deepcopy(row)
        names = [name.strip() for name in self.columns.split(",")]
        return {name: copy.deepcopy(row.get(name)) for name in names}

    def execute(self) -> FakeResponse:
        self.db.calls.append((self.table, self.action))
        if self.table in self.db.failing_tables:
            raise RuntimeError(f"{self.table} unavailable")

        if self.action == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            return FakeResponse([copy.deepcopy(self.db.add(self.table, item)) for item in items])

        if self.action == "upsert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            keys = [k.strip() for k in (self.on_conflict or "id").split(",")]
            stored = []
            for item in items:
                existing = next(
                    (row for row in self.db.rows(self.table) if all(row.get(k) == item.get(k) for k in keys)),
                    None,
                )
                if existing is not None:
                    existing.update(copy.deepcopy(item))
                    stored.append(copy.deepcopy(existing))
                else:
                    stored.append(copy.deepcopy(self.db.add(self.table, item)))
            return FakeResponse(stored)

        rows = self._matching()

        if self.action == "update":
            for row in rows:
                row.update(copy.deepcopy(self.payload))
            return FakeResponse([copy.deepcopy(row) for row in rows])

        if self.action == "delete":
            doomed = {id(row) for row in rows}
            self.db.tables[self.table] = [row for row in self.db.rows(self.table) if id(row) not in doomed]
            return FakeResponse([copy.deepcopy(row) for row in rows])

        for column, desc in reversed(self.orders):
            present = [row for row in rows if row.get(column) is not None]
            missing = [row for row in rows if row.get(column) is None]
            present.sort(key=lambda row: _sort_key(row.get(column)), reverse=desc)
            rows = present + missing
        total = len(rows)
        rows = rows[self.offset:]
        if self.max_rows is not None:
            rows = rows[:self.max_rows]
        return FakeResponse(
            [self._project(row) for row in rows],
            count=total if self.count_mode else None,
        )


class FakeBucket:
    def __init__(self, storage: "FakeStorage", name: str):
        self.storage = storage
        self.name = name

    def upload(self, path: str, file: bytes, file_options: dict[str, Any] | None = None):
        if self.storage.fail_uploads:
            raise RuntimeError("upload rejected")
        self.storage.objects[path] = file
        return {"Key": f"{self.name}/{path}"}

    def remove(self, paths: list[str]):
        for path in paths:
            self.storage.objects.pop(path, None)
            self.storage.removed.append(path)
        return [{"name": path} for path in paths]

    def create_signed_url(self, path: str, expires_in: int):
        return {"signedURL": f"https://storage.test/{self.name}/{path}?expires={expires_in}"}


class FakeStorage:
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.removed: list[str] = []
        self.fail_uploads = False

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self, bucket)

    def list_buckets(self):
        return [{"name": "file-library"}]


class FakeSupabase:
    """In-memory replacement for supabase.Client."""

    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.storage = FakeStorage()
        self.calls: list[tuple[str, str]] = []
        self.failing_tables: set[str] = set()

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def add(self, table: str, item: dict[str, Any]) -> dict[str, Any]:
        row = copy.deepcopy(item)
        row.setdefault("id", str(uuid.uuid4()))
        now = datetime.now(timezone.utc).isoformat()
        row.setdefault("created_at", now)
        row.setdefault("updated_at", now)
        self.rows(table).append(row)
        return row

    def seed(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [self.add(table, row) for row in rows]

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)
