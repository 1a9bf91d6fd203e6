from typing import List, Tuple, Optional
from sqlalchemy.engine import Engine
import sqlparse
import threading
import time

# Per-statement execution timeout (seconds) to avoid indefinite blocking by DB drivers.
_EXECUTION_TIMEOUT = 30

# (column_names, rows, elapsed_seconds, truncated, affected_rows)
StatementResult = Tuple[List[str], List[Tuple], float, bool, Optional[int]]


def split_statements(sql: str) -> List[str]:
    """Split a script into individual statements, ignoring empty ones and trailing semicolons."""
    statements = []
    for raw in sqlparse.split(sql or ""):
        stmt = raw.strip().rstrip(";").strip()
        if stmt:
            statements.append(stmt)
    return statements


def execute_sql(engine: Engine, sql: str, stop_event: Optional[threading.Event] = None, row_limit: int = 1000,
                timeout: float = _EXECUTION_TIMEOUT) -> List[StatementResult]:
    """Execute SQL (possibly multiple statements) and return one result tuple per statement.

    Each result is (column_names, rows, elapsed_seconds, truncated, affected_rows).
    Statements that return rows report affected_rows=None; other statements report an empty
    column list and the driver's rowcount.

    stop_event: optional threading.Event that, if set, stops execution before the next statement or
    attempts to cancel an in-flight statement by closing the connection. Best-effort; some drivers
    cannot be interrupted from another thread.
    row_limit: maximum number of rows fetched per result set.
    """
    statements = split_statements(sql)
    results: List[StatementResult] = []
    if not statements:
        return results

    with engine.connect() as conn:
        for stmt in statements:
            if stop_event and stop_event.is_set():
                raise RuntimeError("Execution canceled")

            # Holder to receive the execution outcome from the worker thread
            outcome = {"value": None, "error": None}

            def _run_statement():
                try:
                    start = time.perf_counter()
                    res = conn.exec_driver_sql(stmt)

                    if res.returns_rows:
                        cols = list(res.keys())
                        # fetch up to row_limit + 1 to detect truncation
                        fetched = res.fetchmany(row_limit + 1)
                        truncated = len(fetched) > row_limit
                        rows = [tuple(r) for r in fetched[:row_limit]]
                        outcome["value"] = (cols, rows, time.perf_counter() - start, truncated, None)
                    else:
                        outcome["value"] = ([], [], time.perf_counter() - start, False, res.rowcount)
                except Exception as e:
                    outcome["error"] = e

            thr = threading.Thread(target=_run_statement, daemon=True)
            thr.start()

            # Wait for thread to finish, timeout, or cancellation
            waited = 0.0
            interval = 0.1
            while thr.is_alive():
                thr.join(interval)
                waited += interval
                if stop_event and stop_event.is_set():
                    _close_quietly(conn)
                    raise RuntimeError("Execution canceled")
                if waited >= timeout:
                    _close_quietly(conn)
                    raise RuntimeError(f"Execution timed out after {timeout} seconds for statement: {stmt}")

            if outcome["error"]:
                raise RuntimeError(f"Error executing statement: {stmt}\n{outcome['error']}") from outcome["error"]
            if outcome["value"] is None:
                raise RuntimeError(f"Unknown execution failure for statement: {stmt}")
            results.append(outcome["value"])

        # persist DML/DDL; harmless after pure SELECTs
        conn.commit()

    return results


def _close_quietly(conn) -> None:
    # attempt to interrupt the driver; fall back to invalidating the pooled connection
    try:
        conn.close()
    except Exception:
        try:
            conn.invalidate()
        except Exception:
            pass
