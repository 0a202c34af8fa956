"""
In-memory stand-in for the supabase-py client used by the service tests.

Only the postgrest builder calls the services make are supported. Rows get an
``id`` plus increasing ``created_date`` / ``created_at`` stamps so ordering is
deterministic.
"""
import copy
import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, List

import pytest


@dataclass
class FakeResponse:
    data: List[Dict[str, Any]]


def _matches_or(row, expr):
    # "buyer_id.eq.x,buyer_user_id.eq.x"
    for clause in expr.split(","):
        col, op, value = clause.split(".", 2)
        if op == "eq" and str(row.get(col)) == value:
            return True
    return False


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.on_conflict = None
        self.filters = []
        self.ordering = None
        self.max_rows = None

    # ---- verbs ----
    def select(self, *_cols, **_kw):
        self.op = "select"
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def upsert(self, payload, on_conflict=None):
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    # ---- filters ----
    def eq(self, col, value):
        self.filters.append(lambda r: r.get(col) == value)
        return self

    def neq(self, col, value):
        self.filters.append(lambda r: r.get(col) != value)
        return self

    def in_(self, col, values):
        self.filters.append(lambda r: r.get(col) in values)
        return self

    def or_(self, expr):
        self.filters.append(lambda r: _matches_or(r, expr))
        return self

    def contains(self, col, value):
        self.filters.append(
            lambda r: isinstance(r.get(col), dict) and all(r[col].get(k) == v for k, v in value.items())
        )
        return self

    def order(self, col, desc=False):
        self.ordering = (col, desc)
        return self

    def limit(self, n):
        self.max_rows = n
        return self

    # ---- run ----
    def _rows(self):
        return self.db.tables.setdefault(self.table, [])

    def _matching(self):
        return [r for r in self._rows() if all(f(r) for f in self.filters)]

    def execute(self):
        self.db.calls.append((self.table, self.op))
        err = self.db.failures.get(f"{self.table}.{self.op}")
        if err is not None:
            raise err

        if self.op == "select":
            rows = self._matching()
            if self.ordering:
                col, desc = self.ordering
                rows = sorted(rows, key=lambda r: (r.get(col) is None, r.get(col) if r.get(col) is not None else 0), reverse=desc)
            if self.max_rows is not None:
                rows = rows[: self.max_rows]
            return FakeResponse(copy.deepcopy(rows))

        if self.op == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            return FakeResponse([copy.deepcopy(self.db.add(self.table, item)) for item in items])

        if self.op == "update":
            rows = self._matching()
            for r in rows:
                r.update(copy.deepcopy(self.payload))
            return FakeResponse(copy.deepcopy(rows))

        if self.op == "upsert":
            key = self.on_conflict or "id"
            existing = [r for r in self._rows() if r.get(key) == self.payload.get(key)]
            if existing:
                existing[0].update(copy.deepcopy(self.payload))
                return FakeResponse([copy.deepcopy(existing[0])])
            return FakeResponse([copy.deepcopy(self.db.add(self.table, self.payload))])

        raise AssertionError(f"unsupported op {self.op}")


@dataclass
class FakeAdmin:
    updates: List[tuple] = field(default_factory=list)
    error: Exception = None

    def update_user_by_id(self, uid, attributes):
        if self.error is not None:
            raise self.error
        self.updates.append((uid, attributes))
        return {"id": uid}


class FakeAuth:
    def __init__(self):
        self.admin = FakeAdmin()


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.failures: Dict[str, Exception] = {}
        self.calls: List[tuple] = []
        self.auth = FakeAuth()
        self._ids = itertools.count(1)

    def table(self, name):
        return FakeQuery(self, name)

    def add(self, table, row):
        n = next(self._ids)
        stamp = f"2026-01-01T00:00:00.{n:06d}+00:00"
        stored = {"id": f"{table}-{n}", "created_date": stamp, "created_at": stamp}
        stored.update(copy.deepcopy(row))
        self.tables.setdefault(table, []).append(stored)
        return stored

    def seed(self, table, *rows):
        return [copy.deepcopy(self.add(table, r)) for r in rows]

    def rows(self, table):
        return self.tables.get(table, [])


@pytest.fixture
def client():
    return FakeSupabase()


@pytest.fixture
def seller_setup(client):
    """An approved seller with a live show."""
    client.seed("users", {"id": "user-seller", "role": "seller", "email": "s@example.com",
                          "seller_onboarding_completed": True, "seller_safety_agreed": True})
    seller = client.seed("sellers", {
        "user_id": "user-seller", "status": "approved", "business_name": "Card Shack",
        "pickup_address": "1 Main St", "pickup_city": "Austin", "pickup_state": "TX",
    })[0]
    show = client.seed("shows", {"seller_id": seller["id"], "title": "Friday Breaks", "status": "live"})[0]
    return seller, show
