from __future__ import annotations

import asyncio
import inspect
import json
import sqlite3
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from rqlitebrowser.database import RqliteClient

BASE_URL = "http://rqlite.test"

Call = Tuple[str, Dict[str, str], List[List[Any]]]


async def _maybe_await(value: Any) -> None:
    if inspect.isawaitable(value):
        await value


class FakeRqlite:
    """
    In-process stand-in for an rqlite node, served through httpx.MockTransport.

    Statements run against an in-memory sqlite3 database and answers use
    rqlite's JSON shapes, including errors embedded in HTTP 200 responses.
    Every request is recorded in ``calls`` as (path, query params, statements).
    """

    def __init__(self):
        self.db = sqlite3.connect(
            ":memory:", check_same_thread=False, isolation_level=None
        )
        self.calls: List[Call] = []
        self.on_execute: Optional[Callable[[List[List[Any]]], Any]] = None
        self.on_query: Optional[Callable[[str], Any]] = None
        self.query_delay: Optional[Callable[[str], float]] = None
        self.in_flight = 0
        self.max_in_flight = 0

    def client(self, **kwargs) -> RqliteClient:
        return RqliteClient(
            BASE_URL, transport=httpx.MockTransport(self.handler), **kwargs
        )

    def close(self) -> None:
        self.db.close()

    def execute_calls(self) -> List[Call]:
        return [c for c in self.calls if c[0] == "/db/execute"]

    def page_queries(self) -> List[str]:
        return [
            c[2][0][0]
            for c in self.calls
            if c[0] == "/db/query" and c[2][0][0].startswith("SELECT * FROM")
        ]

    def count(self, table: str) -> int:
        return self.db.execute(f'SELECT COUNT(*) FROM "{table}"').fetchone()[0]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        params = dict(request.url.params)

        if path == "/status":
            self.calls.append((path, params, []))
            return httpx.Response(200, json={"store": {"ready": True}})

        if request.method == "GET":
            statements = [[params["q"]]]
        else:
            body = json.loads(request.content)
            statements = [s if isinstance(s, list) else [s] for s in body]
        self.calls.append((path, params, statements))

        if path == "/db/execute":
            if self.on_execute is not None:
                await _maybe_await(self.on_execute(statements))
            results = self._execute(statements, "transaction" in params)
        elif path in ("/db/query", "/db/request"):
            sql = statements[0][0]
            if self.on_query is not None:
                await _maybe_await(self.on_query(sql))
            delay = self.query_delay(sql) if self.query_delay else 0
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            try:
                if delay:
                    await asyncio.sleep(delay)
            finally:
                self.in_flight -= 1
            associative = "associative" in params
            results = [self._run(s, associative) for s in statements]
        else:
            return httpx.Response(404, text="not found")

        return httpx.Response(200, json={"results": results})

    def _execute(self, statements: List[List[Any]], transaction: bool) -> List[dict]:
        results = []
        if transaction:
            self.db.execute("BEGIN")
        for statement in statements:
            result = self._run(statement)
            results.append(result)
            if "error" in result and transaction:
                self.db.execute("ROLLBACK")
                return results
        if transaction:
            self.db.execute("COMMIT")
        return results

    def _run(self, statement: List[Any], associative: bool = False) -> dict:
        sql, args = statement[0], statement[1:]
        try:
            cursor = self.db.execute(sql, args)
        except sqlite3.Error as e:
            return {"error": str(e)}

        if cursor.description is None:
            return {"last_insert_id": cursor.lastrowid, "rows_affected": cursor.rowcount}

        columns = [d[0] for d in cursor.description]
        rows = cursor.fetchall()
        if associative:
            return {
                "types": {c: "" for c in columns},
                "rows": [dict(zip(columns, r)) for r in rows],
            }
        result = {"columns": columns, "types": ["" for _ in columns]}
        if rows:
            result["values"] = [list(r) for r in rows]
        return result


@pytest.fixture
def fake_rqlite():
    fake = FakeRqlite()
    yield fake
    fake.close()


@pytest.fixture
def people_table(fake_rqlite):
    fake_rqlite.db.execute(
        "CREATE TABLE people (id INTEGER PRIMARY KEY, name TEXT NOT NULL)"
    )
    return "people"


@pytest.fixture
def rqlite_client(fake_rqlite):
    return fake_rqlite.client()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "RQLITE_URL",
        "RQLITE_USERNAME",
        "RQLITE_PASSWORD",
        "RQLITEBROWSER_LOG_LEVEL",
        "RQLITEBROWSER_CONNECTIONS_DB",
    ):
        monkeypatch.delenv(name, raising=False)
