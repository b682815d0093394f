"""In-memory stand-ins for Supabase, the text generator and the embedder."""

import math
import re
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from postgrest.exceptions import APIError

from app.core.exceptions import UpstreamError

COURSE_ID = "11111111-1111-1111-1111-111111111111"
STUDENT_ID = "22222222-2222-2222-2222-222222222222"
PROFESSOR_ID = "33333333-3333-3333-3333-333333333333"

UNIQUE_KEYS = {
    "announcements": ("course_id", "week_number"),
    "schedules": ("course_id", "week_number"),
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Subset of the postgrest query builder used by the app."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns: list[str] | None = None
        self.payload: Any = None
        self.on_conflict: str | None = None
        self.filters: list[tuple[str, Any]] = []
        self.order_by: tuple[str, bool] | None = None
        self.limit_to: int | None = None

    def select(self, columns: str = "*"):
        if columns.strip() != "*":
            self.columns = [c.strip() for c in columns.split(",")]
        return self

    def insert(self, rows):
        self.op, self.payload = "insert", rows
        return self

    def upsert(self, rows, on_conflict: str | None = None):
        self.op, self.payload, self.on_conflict = "upsert", rows, on_conflict
        return self

    def update(self, fields: dict):
        self.op, self.payload = "update", fields
        return self

    def eq(self, column: str, value):
        self.filters.append((column, value))
        return self

    def order(self, column: str, desc: bool = False):
        self.order_by = (column, desc)
        return self

    def limit(self, count: int):
        self.limit_to = count
        return self

    def _matches(self, row: dict) -> bool:
        return all(row.get(col) == val for col, val in self.filters)

    def _project(self, row: dict) -> dict:
        if self.columns is None:
            return dict(row)
        return {c: row.get(c) for c in self.columns}

    def execute(self):
        return self.db._execute(self)


class FakeRPC:
    def __init__(self, db: "FakeSupabase", name: str, params: dict):
        self.db, self.name, self.params = db, name, params

    def execute(self):
        return self.db._rpc(self.name, self.params)


def cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class FakeSupabase:
    """Dict-of-lists database with UNIQUE constraints and the match function."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.rpc_calls: list[tuple[str, dict]] = []
        self._failures: dict[tuple[str, str], list[Exception]] = {}
        self._lock = threading.Lock()

    # ── test helpers ──

    def seed(self, table: str, **row) -> dict:
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", _now())
        self.tables.setdefault(table, []).append(row)
        return row

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])

    def fail_next(self, op: str, table: str, error: Exception | None = None, times: int = 1):
        error = error or APIError({"message": "connection reset", "code": "08006"})
        self._failures.setdefault((op, table), []).extend([error] * times)

    # ── client surface ──

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: dict) -> FakeRPC:
        return FakeRPC(self, name, params)

    # ── execution ──

    def _maybe_fail(self, op: str, table: str):
        queue = self._failures.get((op, table))
        if queue:
            raise queue.pop(0)

    def _violates_unique(self, table: str, row: dict, pending: list[dict]) -> bool:
        key = UNIQUE_KEYS.get(table)
        if not key:
            return False
        return any(
            all(existing.get(k) == row.get(k) for k in key)
            for existing in self.tables.get(table, []) + pending
        )

    def _execute(self, query: FakeQuery) -> FakeResponse:
        with self._lock:
            self._maybe_fail(query.op, query.table)
            rows = self.tables.setdefault(query.table, [])

            if query.op == "insert":
                payload = query.payload if isinstance(query.payload, list) else [query.payload]
                new_rows = []
                for item in payload:
                    row = {"id": str(uuid.uuid4()), "created_at": _now(), **item}
                    if query.table == "announcements":
                        row.setdefault("updated_at", row["created_at"])
                        row.setdefault("published_at", None)
                    if query.table == "escalations":
                        row.setdefault("resolved_at", None)
                        row.setdefault("response", None)
                        row.setdefault("responded_at", None)
                        row.setdefault("responded_by", None)
                    if self._violates_unique(query.table, row, new_rows):
                        raise APIError({
                            "message": f'duplicate key value violates unique constraint "{query.table}_unique"',
                            "code": "23505",
                            "details": None,
                            "hint": None,
                        })
                    new_rows.append(row)
                rows.extend(new_rows)
                return FakeResponse([dict(r) for r in new_rows])

            if query.op == "upsert":
                payload = query.payload if isinstance(query.payload, list) else [query.payload]
                keys = [k.strip() for k in (query.on_conflict or "id").split(",")]
                out = []
                for item in payload:
                    existing = next(
                        (r for r in rows if all(r.get(k) == item.get(k) for k in keys)),
                        None,
                    )
                    if existing is not None:
                        existing.update(item)
                        out.append(dict(existing))
                    else:
                        row = {"id": str(uuid.uuid4()), "created_at": _now(), **item}
                        rows.append(row)
                        out.append(dict(row))
                return FakeResponse(out)

            if query.op == "update":
                updated = []
                for row in rows:
                    if query._matches(row):
                        row.update(query.payload)
                        updated.append(dict(row))
                return FakeResponse(updated)

            selected = [r for r in rows if query._matches(r)]
            if query.order_by:
                column, desc = query.order_by
                selected.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
            if query.limit_to is not None:
                selected = selected[: query.limit_to]
            return FakeResponse([query._project(r) for r in selected])

    def _rpc(self, name: str, params: dict) -> FakeResponse:
        with self._lock:
            self.rpc_calls.append((name, params))
            self._maybe_fail("rpc", name)
            if name != "match_course_content":
                raise APIError({"message": f"function {name} does not exist", "code": "42883"})

            scored = []
            for row in self.tables.get("course_content", []):
                # uuid comparison, so case does not matter
                if str(row.get("course_id")).lower() != str(params["match_course_id"]).lower():
                    continue
                if params.get("filter_content_type") and row.get("content_type") != params["filter_content_type"]:
                    continue
                if not row.get("embedding"):
                    continue
                result = {k: v for k, v in row.items() if k != "embedding"}
                result["similarity"] = cosine(params["query_embedding"], row["embedding"])
                scored.append(result)
            scored.sort(key=lambda r: r["similarity"], reverse=True)
            return FakeResponse(scored[: params.get("match_count", 10)])


class FakeGenerator:
    """Scripted text generator.

    `responses` is consumed in order (the last one repeats); a callable
    receives (prompt, system); an Exception instance is raised.
    """

    def __init__(self, *responses: Any):
        self.responses = list(responses) or [""]
        self.calls: list[tuple[str, str | None]] = []

    def generate(self, prompt: str, system: str | None = None) -> str:
        self.calls.append((prompt, system))
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(prompt, system)
        return response


_TOKEN = re.compile(r"[a-z0-9]+")


class FakeEmbedder:
    """Bag-of-words hashing embedder: texts sharing words get similar vectors."""

    def __init__(self, dimensions: int = 64, delay: float = 0.0, fail: bool = False):
        self.dimensions = dimensions
        self.delay = delay
        self.fail = fail
        self.document_calls = 0
        self.on_documents: Callable[[list[str]], None] | None = None

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self.dimensions
        for token in _TOKEN.findall(text.lower()):
            vector[sum(map(ord, token)) * 31 % self.dimensions] += 1.0
        if not any(vector):
            vector[0] = 1.0
        return vector

    def embed_query(self, text: str) -> list[float]:
        if self.fail:
            raise UpstreamError("embedding", "provider unavailable")
        return self._vector(text)

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls += 1
        if self.on_documents:
            self.on_documents(texts)
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise UpstreamError("embedding", "provider unavailable")
        return [self._vector(t) for t in texts]


def seed_chunk(db: FakeSupabase, embedder: FakeEmbedder, content: str, embed_as: str | None = None, **fields) -> dict:
    """Insert a course_content row whose embedding is that of `embed_as` (default: content)."""
    row = {
        "course_id": COURSE_ID,
        "content": content,
        "page_number": 1,
        "week_number": None,
        "topic": None,
        "content_type": "policy",
        "metadata": {"chunk_index": 0, "source": "syllabus.pdf"},
        **fields,
    }
    row["embedding"] = embedder.embed_query(embed_as or content)
    return db.seed("course_content", **row)
