from __future__ import annotations

import datetime as dt
import logging
import os
import time
from collections import Counter
from typing import Iterable, Optional, Protocol, Sequence

from .batching import DEFAULT_MAX_BATCH_SIZE, count_insert_rows, split_large_insert
from .classifier import classify_statement, describe_statement, extract_target_table
from .db import CursorExecutor, build_connection, drop_tables, table_exists
from .parser import statement_splitter
from .reports import verify_chinook_data
from .types import ImportOptions, ImportResult, ParseError, StatementError, StatementKind

_SOFT_FAILURE_NOTES = {
    StatementKind.SCHEMA_CREATE_ZONE: "Zone may already exist, continuing",
    StatementKind.SCHEMA_CREATE_INDEX: "Index creation failed, may already exist",
    StatementKind.SCHEMA_DROP: "Drop failed, object may not exist or has dependents",
}


class StatementExecutor(Protocol):
    """Anything that can run one SQL statement.

    Failures should be raised as StatementError. Other exceptions are still
    caught by the import passes and recorded against the statement.
    """

    def execute(self, statement: str) -> None: ...


def _execute(executor: StatementExecutor, statement: str) -> None:
    try:
        executor.execute(statement)
    except StatementError:
        raise
    except Exception as err:
        raise StatementError(statement, err) from err


def write_quarantine(fp, statement: str, err: Exception, position: int) -> None:
    # This code here writes the failure record plus the exact SQL for replay.
    ts = dt.datetime.now(dt.timezone.utc).isoformat()
    snippet = statement.replace("\n", " ")[:200]
    fp.write(f"-- quarantined at {ts}; statement {position}; error: {err}; snippet: {snippet}\n")
    fp.write(statement)
    if not statement.endswith(";"):
        fp.write(";")
    fp.write("\n\n")
    fp.flush()


def _record_failure(
    result: ImportResult,
    statement: str,
    err: StatementError,
    position: int,
    quarantine_fp,
    fail_on_error: bool,
) -> None:
    result.statements_failed += 1
    logging.error("  Error executing statement %d: %s", position, err)
    if quarantine_fp is not None:
        write_quarantine(quarantine_fp, statement, err, position)
    if fail_on_error:
        raise err


def _run_schema_pass(
    statements: Sequence[str],
    kinds: Sequence[StatementKind],
    executor: StatementExecutor,
    result: ImportResult,
    quarantine_fp,
    fail_on_error: bool,
) -> None:
    total = len(statements)
    logging.info("=== Processing distribution zones, table definitions, and indexes ===")
    for position, (statement, kind) in enumerate(zip(statements, kinds), start=1):
        if not kind.is_schema:
            continue
        result.schema_statements += 1
        logging.info(
            "[%d/%d] Executing: %s %s",
            position,
            total,
            kind.label,
            describe_statement(statement, kind),
        )
        try:
            _execute(executor, statement)
        except StatementError as err:
            note = _SOFT_FAILURE_NOTES.get(kind)
            if note is None:
                _record_failure(result, statement, err, position, quarantine_fp, fail_on_error)
                continue
            # Create-if-missing and drop-if-present intents: failing is usually fine.
            result.statements_failed += 1
            result.soft_failures += 1
            logging.warning("  Note: %s: %s", note, err)
            continue
        result.statements_ok += 1
        logging.info("  Success!")


def _run_insert_batches(
    statement: str,
    executor: StatementExecutor,
    batch_size: int,
    result: ImportResult,
) -> None:
    batches = split_large_insert(statement, batch_size)
    logging.info("  Splitting large INSERT into %d batches", len(batches))
    for number, batch in enumerate(batches, start=1):
        logging.info("  Executing batch %d/%d", number, len(batches))
        # A failure here leaves earlier batches applied; the rest of this statement is dropped.
        _execute(executor, batch)
        result.batches_executed += 1


def _run_data_pass(
    statements: Sequence[str],
    kinds: Sequence[StatementKind],
    executor: StatementExecutor,
    batch_size: int,
    result: ImportResult,
    quarantine_fp,
    fail_on_error: bool,
) -> None:
    total = len(statements)
    logging.info("=== Loading data (DML statements) ===")
    for position, (statement, kind) in enumerate(zip(statements, kinds), start=1):
        if kind.is_schema:
            continue
        result.data_statements += 1
        table = extract_target_table(statement)
        try:
            if kind is StatementKind.DATA_INSERT:
                rows = count_insert_rows(statement)
                logging.info(
                    "[%d/%d] Found INSERT for table %s with %d rows",
                    position,
                    total,
                    table,
                    rows,
                )
                if rows > batch_size:
                    _run_insert_batches(statement, executor, batch_size, result)
                    result.statements_ok += 1
                    logging.info("  All batches executed successfully!")
                    continue
            logging.info("[%d/%d] Executing %s for table %s", position, total, kind.label, table)
            _execute(executor, statement)
        except StatementError as err:
            _record_failure(result, statement, err, position, quarantine_fp, fail_on_error)
            continue
        result.statements_ok += 1
        logging.info("  Success!")


def import_statements(
    statements: Sequence[str],
    executor: StatementExecutor,
    batch_size: int = DEFAULT_MAX_BATCH_SIZE,
    fail_on_error: bool = False,
    quarantine_fp=None,
    result: Optional[ImportResult] = None,
) -> ImportResult:
    """
    Execute statements in two passes: schema first, then data.

    Every statement is attempted once; a failure is logged and the pass moves
    on. ``fail_on_error`` re-raises the first hard failure instead.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    if result is None:
        result = ImportResult(start_time=time.time())
    statements = list(statements)
    kinds = [classify_statement(statement) for statement in statements]
    result.statements_total += len(statements)

    _run_schema_pass(statements, kinds, executor, result, quarantine_fp, fail_on_error)
    _run_data_pass(statements, kinds, executor, batch_size, result, quarantine_fp, fail_on_error)
    return result


def read_script(path: str, ignored_prefixes: Iterable[str], result: ImportResult) -> list[str]:
    # This code here tokenizes the whole script up front; the schema pass needs all of it.
    if not os.path.isfile(path):
        raise ParseError(f"SQL script not found: {path}")
    with open(path, "r", encoding="utf-8", errors="replace") as fp:

        def line_reader() -> Iterable[str]:
            for line in fp:
                result.bytes_read += len(line.encode("utf-8"))
                yield line

        statements = [
            statement
            for statement, _, _ in statement_splitter(line_reader(), tuple(ignored_prefixes))
        ]
    logging.info("Parsed %d SQL statements from %s", len(statements), path)
    return statements


def _dry_run(statements: Sequence[str], opts: ImportOptions, result: ImportResult) -> ImportResult:
    result.statements_total = len(statements)
    kinds = Counter()
    for statement in statements:
        kind = classify_statement(statement)
        kinds[kind] += 1
        if kind.is_schema:
            result.schema_statements += 1
        else:
            result.data_statements += 1
            if kind is StatementKind.DATA_INSERT:
                rows = count_insert_rows(statement)
                if rows > opts.batch_size:
                    result.batches_executed += len(split_large_insert(statement, opts.batch_size))
    for kind, count in sorted(kinds.items(), key=lambda item: item[1], reverse=True):
        logging.info("  %-12s %d", kind.label, count)
    logging.info(
        "Dry run: would execute %d schema and %d data statements (%d split batches)",
        result.schema_statements,
        result.data_statements,
        result.batches_executed,
    )
    return result


def import_script(opts: ImportOptions, executor: Optional[StatementExecutor] = None) -> ImportResult:
    # This code here is the main entry for a load: parse, optionally drop, run both passes.
    result = ImportResult(start_time=time.time())
    statements = read_script(opts.script_file, opts.ignored_prefixes, result)
    if opts.dry_run:
        return _dry_run(statements, opts, result)

    conn = None
    quarantine_fp = None
    try:
        if executor is None:
            conn = build_connection(opts)
            executor = CursorExecutor(conn, autocommit=opts.autocommit)
            if opts.drop_existing:
                if not drop_tables(executor):
                    logging.error("Failed to drop some existing tables, continuing anyway")
            elif table_exists(conn, "Artist"):
                logging.warning(
                    "Existing Chinook tables detected; use --drop-existing to reload from scratch"
                )
        elif opts.drop_existing:
            drop_tables(executor)

        if opts.quarantine_file:
            quarantine_fp = open(opts.quarantine_file, "a", encoding="utf-8")

        logging.info("=== Starting bulk load from SQL file ===")
        import_statements(
            statements,
            executor,
            batch_size=opts.batch_size,
            fail_on_error=opts.fail_on_error,
            quarantine_fp=quarantine_fp,
            result=result,
        )
        logging.info(
            "Successfully executed %d out of %d statements.",
            result.statements_ok,
            result.statements_total,
        )

        if opts.verify and conn is not None:
            verify_chinook_data(conn)
    finally:
        if quarantine_fp is not None:
            quarantine_fp.close()
        if conn is not None:
            conn.close()

    return result


def format_summary(result: ImportResult, opts: ImportOptions) -> str:
    elapsed = time.time() - result.start_time
    summary = (
        "Completed import: "
        f"total={result.statements_total} "
        f"ok={result.statements_ok} "
        f"failed={result.statements_failed} "
        f"soft={result.soft_failures} "
        f"batches={result.batches_executed} "
        f"bytes={result.bytes_read} "
        f"runtime={elapsed:.1f}s"
    )
    if opts.quarantine_file and not opts.dry_run:
        summary += f" quarantine={os.path.abspath(opts.quarantine_file)}"
    return summary
