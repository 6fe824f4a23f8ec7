"""
Unit tests for INSERT filtering and SQL value formatting
"""

from datetime import datetime, timezone

from rqlitebrowser.transfer.sql_format import (
    format_insert_statement,
    format_sql_header,
    format_sql_value,
    is_insert_statement,
    iter_insert_statements,
)


def test_insert_filter_is_case_insensitive_and_fails_open():
    statements = [
        "CREATE TABLE t (a)",
        "insert into t values (1)",
        "  INSERT INTO t VALUES (2)",
        "BEGIN TRANSACTION",
        "",
        "/* block */ INSERT INTO t VALUES (3)",
        "INSERTED garbage",
    ]
    assert list(iter_insert_statements(statements)) == [
        "insert into t values (1)",
        "INSERT INTO t VALUES (2)",
    ]


def test_is_insert_statement():
    assert is_insert_statement("Insert Into x Values (1)")
    assert not is_insert_statement("UPDATE x SET a = 1")
    assert not is_insert_statement("")


class TestFormatSqlValue:
    def test_null_numbers_and_booleans(self):
        assert format_sql_value(None) == "NULL"
        assert format_sql_value(7) == "7"
        assert format_sql_value(2.5) == "2.5"
        assert format_sql_value(True) == "1"
        assert format_sql_value(False) == "0"
        assert format_sql_value(float("nan")) == "NULL"

    def test_strings_are_quoted_and_escaped(self):
        assert format_sql_value("plain") == "'plain'"
        assert format_sql_value("O'Brien") == "'O''Brien'"
        assert format_sql_value("x'); DROP TABLE t; --") == "'x''); DROP TABLE t; --'"

    def test_objects_become_json_text(self):
        assert format_sql_value({"k": "v"}) == "'{\"k\": \"v\"}'"


def test_format_insert_statement():
    statement = format_insert_statement("my table", ["id", 'odd"col'], [1, "a'b"])
    assert statement == (
        'INSERT INTO "my table" ("id", "odd""col") VALUES (1, \'a\'\'b\');'
    )


def test_format_sql_header():
    timestamp = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    assert format_sql_header("people", timestamp) == (
        '-- Export of table "people"\n'
        "-- Generated at 2024-05-01T12:30:00+00:00\n"
        "\n"
    )
