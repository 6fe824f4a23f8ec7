"""
Async HTTP client for rqlite's query/execute/request/status endpoints.

rqlite answers HTTP 200 even when a statement fails, so every per-statement
result (and the top-level payload) is inspected for an ``error`` field before
it is handed back to the caller.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import httpx
from loguru import logger

from ..config.settings import ConsistencyLevel, RqliteSettings
from ..utils.exceptions import (
    RqliteError,
    RqliteTimeoutError,
    TransportError,
    ValidationError,
)
from .models import ColumnDef, ExecuteResult, QueryResult
from .statements import (
    ParameterizedStatement,
    build_select_page,
    build_update_statement,
    quote_identifier,
)

CONSISTENCY_LEVELS = ("none", "weak", "linearizable", "strong")

StatementLike = Union[ParameterizedStatement, str]


def _check_error(result: Dict[str, Any]) -> None:
    error = result.get("error")
    if error:
        raise RqliteError(error, sql_error=error)


class RqliteClient:
    """Thin async wrapper translating calls into rqlite REST requests"""

    def __init__(
        self,
        url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 30.0,
        console_timeout: float = 5.0,
        read_consistency: ConsistencyLevel = "none",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.console_timeout = console_timeout
        self.read_consistency = read_consistency
        auth = (username, password) if username and password else None
        self._client = httpx.AsyncClient(
            base_url=self.url,
            timeout=timeout,
            auth=auth,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: RqliteSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "RqliteClient":
        return cls(
            settings.url,
            username=settings.username,
            password=settings.password,
            timeout=settings.timeout,
            console_timeout=settings.console_timeout,
            read_consistency=settings.read_consistency,
            transport=transport,
        )

    async def __aenter__(self) -> "RqliteClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"params": params}
        if json is not None:
            kwargs["json"] = json
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as e:
            raise RqliteTimeoutError(
                f"Request to {self.url}{path} timed out", context={"path": path}
            ) from e
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"rqlite returned HTTP {e.response.status_code} for {path}: "
                f"{e.response.text.strip()}",
                context={"path": path, "status": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"Request to {self.url}{path} failed: {e}", context={"path": path}
            ) from e
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {path}: {e}") from e

        if not isinstance(payload, dict):
            raise TransportError(f"Unexpected response from {path}: {payload!r}")
        _check_error(payload)
        return payload

    @staticmethod
    def _first_result(payload: Dict[str, Any]) -> QueryResult:
        results = payload.get("results") or []
        if not results:
            return QueryResult()
        _check_error(results[0])
        return QueryResult.model_validate(results[0])

    def _level(self, level: Optional[str]) -> str:
        level = level or self.read_consistency
        if level not in CONSISTENCY_LEVELS:
            raise ValidationError(f"Unknown consistency level: {level}")
        return level

    async def query(
        self,
        sql: str,
        params: Sequence[Any] = (),
        level: Optional[ConsistencyLevel] = None,
        associative: bool = False,
    ) -> QueryResult:
        """Read query. Array form is the default so column order survives."""
        query_params = {"level": self._level(level)}
        if associative:
            query_params["associative"] = ""
        if params:
            payload = await self._send(
                "POST",
                "/db/query",
                params=query_params,
                json=[ParameterizedStatement(sql, params).to_wire()],
            )
        else:
            query_params["q"] = sql
            payload = await self._send("GET", "/db/query", params=query_params)
        return self._first_result(payload)

    async def request(
        self, sql: str, level: Optional[ConsistencyLevel] = None
    ) -> QueryResult:
        """Ad hoc console statement; rqlite decides whether it reads or writes."""
        payload = await self._send(
            "POST",
            "/db/request",
            params={
                "level": self._level(level),
                "db_timeout": f"{int(self.console_timeout)}s",
            },
            json=[sql],
            timeout=self.console_timeout,
        )
        return self._first_result(payload)

    async def execute(self, statement: StatementLike) -> ExecuteResult:
        results = await self.execute_batch([statement], transaction=False)
        return results[0] if results else ExecuteResult()

    async def execute_batch(
        self, statements: Iterable[StatementLike], transaction: bool = True
    ) -> List[ExecuteResult]:
        wire = []
        for statement in statements:
            if isinstance(statement, str):
                statement = ParameterizedStatement(statement)
            wire.append(statement.to_wire())
        if not wire:
            return []

        params = {"transaction": ""} if transaction else None
        payload = await self._send("POST", "/db/execute", params=params, json=wire)

        results = []
        for raw in payload.get("results") or []:
            _check_error(raw)
            results.append(ExecuteResult.model_validate(raw))
        logger.debug(f"Executed {len(wire)} statement(s) (transaction={transaction})")
        return results

    async def test_connection(self) -> bool:
        """Liveness check used before a connection is saved"""
        try:
            await self._send("GET", "/status")
            return True
        except (TransportError, RqliteError) as e:
            logger.debug(f"Connection test against {self.url} failed: {e}")
            return False

    async def get_tables(self) -> List[str]:
        result = await self.query(
            "SELECT name FROM sqlite_master WHERE type='table' "
            "AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row["name"] for row in result.records()]

    async def get_table_schema(self, table: str) -> List[ColumnDef]:
        result = await self.query(f"PRAGMA table_info({quote_identifier(table)})")
        columns = []
        for row in result.records():
            pk = int(row.get("pk") or 0)
            columns.append(
                ColumnDef(
                    name=row["name"],
                    type=row.get("type") or "",
                    primary_key=pk > 0,
                    primary_key_position=pk,
                    not_null=bool(row.get("notnull")),
                    default_value=(
                        None
                        if row.get("dflt_value") is None
                        else str(row["dflt_value"])
                    ),
                )
            )
        return columns

    async def get_table_primary_key(self, table: str) -> Optional[str]:
        keys = primary_key_columns(await self.get_table_schema(table))
        return keys[0] if keys else None

    async def get_table_ddl(self, table: str) -> str:
        result = await self.query(
            "SELECT sql FROM sqlite_master WHERE type='table' AND name=?",
            params=(table,),
        )
        records = result.records()
        if records and records[0].get("sql"):
            return records[0]["sql"]
        return generate_table_ddl(table, await self.get_table_schema(table))

    async def get_table_count(self, table: str) -> int:
        result = await self.query(
            f"SELECT COUNT(*) AS count FROM {quote_identifier(table)}"
        )
        records = result.records()
        return int(records[0]["count"] or 0) if records else 0

    async def query_page(
        self,
        table: str,
        page: int,
        page_size: int,
        order_by: Sequence[str] = (),
    ) -> QueryResult:
        return await self.query(build_select_page(table, page, page_size, order_by))

    async def update_cell(
        self,
        table: str,
        column: str,
        new_value: Any,
        primary_key: str,
        primary_key_value: Any,
    ) -> ExecuteResult:
        """Inline edit of one cell; the new value is always a bound parameter"""
        statement = build_update_statement(
            table, column, new_value, primary_key, primary_key_value
        )
        return await self.execute(statement)


def primary_key_columns(schema: Sequence[ColumnDef]) -> List[str]:
    keyed = [c for c in schema if c.primary_key]
    keyed.sort(key=lambda c: c.primary_key_position)
    return [c.name for c in keyed]


def generate_table_ddl(table: str, schema: Sequence[ColumnDef]) -> str:
    """CREATE TABLE text rebuilt from PRAGMA table_info output"""
    keys = primary_key_columns(schema)
    definitions = []
    for column in schema:
        definition = f"{quote_identifier(column.name)} {column.type or 'TEXT'}"
        if len(keys) == 1 and column.primary_key:
            definition += " PRIMARY KEY"
        definitions.append(definition)
    if len(keys) > 1:
        definitions.append(
            "PRIMARY KEY (" + ", ".join(quote_identifier(k) for k in keys) + ")"
        )
    body = ",\n  ".join(definitions)
    return f"CREATE TABLE {quote_identifier(table)} (\n  {body}\n);"
