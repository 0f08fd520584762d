from __future__ import annotations

import logging
from typing import Union

from .types import ImportOptions, ReportOptions, StatementError

MYSQLCLIENT_AVAILABLE = False
PYMYSQL_AVAILABLE = False

try:
    import MySQLdb  # type: ignore

    MYSQLCLIENT_AVAILABLE = True
except Exception:
    MYSQLCLIENT_AVAILABLE = False

try:
    import pymysql  # type: ignore

    PYMYSQL_AVAILABLE = True
except Exception:
    PYMYSQL_AVAILABLE = False


# Dependency order: parents first. Drops walk this list backwards.
CHINOOK_TABLES = (
    "Artist",
    "Genre",
    "MediaType",
    "Album",
    "Track",
    "Employee",
    "Customer",
    "Invoice",
    "InvoiceLine",
    "Playlist",
    "PlaylistTrack",
)


def detect_driver(prefer_mysqlclient: bool = True) -> str:
    if prefer_mysqlclient and MYSQLCLIENT_AVAILABLE:
        return "mysqlclient"
    if PYMYSQL_AVAILABLE:
        return "pymysql"
    if MYSQLCLIENT_AVAILABLE:
        return "mysqlclient"
    raise RuntimeError("No SQL driver found. Install PyMySQL or mysqlclient.")


def build_connection(opts: Union[ImportOptions, ReportOptions]):
    # This code here opens the DB-API connection the executor and reports run on.
    driver = detect_driver(prefer_mysqlclient=True)
    ssl = None
    if not opts.ssl_disabled and (opts.ssl_ca or opts.ssl_cert or opts.ssl_key):
        ssl = {}
        if opts.ssl_ca:
            ssl["ca"] = opts.ssl_ca
        if opts.ssl_cert:
            ssl["cert"] = opts.ssl_cert
        if opts.ssl_key:
            ssl["key"] = opts.ssl_key

    logging.info(
        "Connecting to %s:%s as %s (database=%s, driver=%s)",
        opts.host,
        opts.port,
        opts.user,
        opts.database,
        driver,
    )

    if driver == "mysqlclient":
        kwargs = {
            "host": opts.host,
            "port": opts.port,
            "user": opts.user,
            "passwd": opts.password or "",
            "db": opts.database,
            "charset": opts.charset,
            "use_unicode": True,
            "autocommit": opts.autocommit,
        }
        if ssl is not None:
            kwargs["ssl"] = ssl
        return MySQLdb.connect(**kwargs)

    kwargs = {
        "host": opts.host,
        "port": opts.port,
        "user": opts.user,
        "password": opts.password or "",
        "database": opts.database,
        "charset": opts.charset,
        "autocommit": opts.autocommit,
    }
    if ssl is not None:
        kwargs["ssl"] = ssl
    return pymysql.connect(**kwargs)


class CursorExecutor:
    """Runs one statement at a time on a DB-API connection.

    Driver errors come back as StatementError so callers never need to know
    which driver is underneath.
    """

    def __init__(self, conn, autocommit: bool = True) -> None:
        self.conn = conn
        self.autocommit = autocommit

    def execute(self, statement: str) -> None:
        cursor = None
        try:
            cursor = self.conn.cursor()
            cursor.execute(statement)
            if not self.autocommit:
                self.conn.commit()
        except Exception as err:
            if not self.autocommit:
                try:
                    self.conn.rollback()
                except Exception:
                    logging.warning("Rollback failed after statement error")
            raise StatementError(statement, err) from err
        finally:
            if cursor is not None:
                cursor.close()


def table_exists(conn, table: str) -> bool:
    cursor = conn.cursor()
    try:
        cursor.execute(f"SELECT 1 FROM {table} WHERE 1 = 0")
        return True
    except Exception:
        return False
    finally:
        cursor.close()


def drop_tables(executor, tables=CHINOOK_TABLES) -> bool:
    # This code here drops children before parents so foreign keys do not block us.
    logging.info("Dropping %d existing tables", len(tables))
    all_ok = True
    for table in reversed(tables):
        try:
            executor.execute(f"DROP TABLE IF EXISTS {table}")
            logging.info("  Dropped table %s", table)
        except StatementError as err:
            all_ok = False
            logging.warning("  Could not drop table %s: %s", table, err)
    return all_ok
