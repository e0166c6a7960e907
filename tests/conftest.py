from __future__ import annotations

import copy
from datetime import datetime, timezone

import pytest

from api.store import HISTORY_TABLE, MISSING_TABLE, SupabaseError


class FakeStore:
    """In-memory stand-in for SupabaseStore with the same call surface."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {MISSING_TABLE: [], HISTORY_TABLE: []}
        self.calls: list[tuple] = []
        self.failures: dict[str, Exception] = {}
        self._next_id = 1

    def _maybe_fail(self, method: str) -> None:
        if method in self.failures:
            raise self.failures[method]

    def seed(self, table: str, **row) -> dict:
        row = {"id": self._next_id, **row}
        self._next_id += 1
        self.tables[table].append(row)
        return row

    def select(self, table, columns="*", eq=None, order=None, ascending=False, limit=None):
        self.calls.append(("select", table, columns))
        self._maybe_fail("select")
        rows = [
            r
            for r in self.tables[table]
            if all(str(r.get(k)) == str(v) for k, v in (eq or {}).items())
        ]
        if order:
            rows = sorted(rows, key=lambda r: r[order], reverse=not ascending)
        if limit is not None:
            rows = rows[:limit]
        if columns != "*":
            names = columns.split(",")
            rows = [{n: r.get(n) for n in names} for r in rows]
        return copy.deepcopy(rows)

    def select_all(self, table, columns="*", order=None, ascending=False):
        return self.select(table, columns=columns, order=order, ascending=ascending)

    def count(self, table):
        self.calls.append(("count", table))
        self._maybe_fail("count")
        return len(self.tables[table])

    def select_one(self, table, eq, columns="*"):
        rows = self.select(table, columns=columns, eq=eq, limit=1)
        return rows[0] if rows else None

    def insert(self, table, rows):
        self.calls.append(("insert", table))
        self._maybe_fail("insert")
        return [copy.deepcopy(self.seed(table, **row)) for row in rows]

    def delete(self, table, eq):
        self.calls.append(("delete", table, eq))
        self._maybe_fail("delete")
        self.tables[table] = [
            r
            for r in self.tables[table]
            if not all(str(r.get(k)) == str(v) for k, v in eq.items())
        ]

    def rpc(self, function, params=None):
        self.calls.append(("rpc", function, params))
        self._maybe_fail("rpc")
        assert function == "mark_product_received"
        matches = [r for r in self.tables[MISSING_TABLE] if str(r["id"]) == str(params["p_id"])]
        if not matches:
            raise SupabaseError("product not found", "P0002")
        product = matches[0]
        self.tables[MISSING_TABLE].remove(product)
        self.seed(
            HISTORY_TABLE,
            product_name=product["product_name"],
            supplier_name=product["supplier_name"],
            requested_at=product["requested_at"],
            received_at=params["p_received_at"],
            response_time_days=params["p_response_time_days"],
        )


class FakeChat:
    def __init__(self, reply: str | None = "ok") -> None:
        self.reply = reply
        self.calls: list[list[dict]] = []

    def chat(self, messages):
        self.calls.append(messages)
        return self.reply


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def chat() -> FakeChat:
    return FakeChat()


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)
