import threading

import pytest
from sqlalchemy import create_engine

from db.executor import execute_sql, split_statements


def test_execute_sql_create_insert_select():
    engine = create_engine('sqlite:///:memory:')
    sql = """
    CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT);
    INSERT INTO t (name) VALUES ('alice'), ('bob');
    SELECT id, name FROM t ORDER BY id;
    """
    results = execute_sql(engine, sql)
    assert len(results) == 3

    cols, rows, elapsed, truncated, affected = results[2]
    assert cols == ['id', 'name']
    assert rows == [(1, 'alice'), (2, 'bob')]
    assert elapsed >= 0
    assert truncated is False
    assert affected is None

    # the INSERT reports the driver rowcount and no columns
    assert results[1][0] == []
    assert results[1][4] == 2


def test_execute_sql_truncates_at_row_limit():
    engine = create_engine('sqlite:///:memory:')
    sql = """
    CREATE TABLE n (v INTEGER);
    INSERT INTO n VALUES (1), (2), (3);
    SELECT v FROM n ORDER BY v;
    """
    cols, rows, _, truncated, _ = execute_sql(engine, sql, row_limit=2)[-1]
    assert rows == [(1,), (2,)]
    assert truncated is True


def test_execute_sql_error_names_statement():
    engine = create_engine('sqlite:///:memory:')
    with pytest.raises(RuntimeError, match="no_such_table"):
        execute_sql(engine, "SELECT * FROM no_such_table")


def test_execute_sql_stops_when_canceled():
    engine = create_engine('sqlite:///:memory:')
    stop = threading.Event()
    stop.set()
    with pytest.raises(RuntimeError, match="canceled"):
        execute_sql(engine, "SELECT 1", stop_event=stop)


def test_split_statements_ignores_empty_and_semicolons():
    assert split_statements("SELECT 1;; ;\nSELECT 2;") == ["SELECT 1", "SELECT 2"]
    assert split_statements("") == []
    assert execute_sql(create_engine('sqlite:///:memory:'), "  ;  ") == []
