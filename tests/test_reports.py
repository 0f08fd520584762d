import contextlib
import io
import unittest
from decimal import Decimal
from unittest import mock

from chinook_loader.db import CHINOOK_TABLES, CursorExecutor, drop_tables, table_exists
from chinook_loader.reports import (
    REPORTS,
    format_table,
    run_lookups,
    run_reports,
    verify_chinook_data,
)
from chinook_loader.types import StatementError


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.description = None
        self._rows = []

    def execute(self, sql, params=None):
        self.conn.executed.append((sql, params))
        for needle, result in self.conn.responses:
            if needle in sql:
                if isinstance(result, Exception):
                    raise result
                headers, rows = result
                self.description = [(h, None, None, None, None, None, None) for h in headers]
                self._rows = rows
                return
        self.description = [("value", None, None, None, None, None, None)]
        self._rows = [(0,)]

    def fetchall(self):
        return list(self._rows)

    def close(self):
        self.conn.closed_cursors += 1


class FakeConnection:
    def __init__(self, responses=()):
        self.responses = list(responses)
        self.executed = []
        self.closed_cursors = 0
        self.commits = 0
        self.rollbacks = 0

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1


class FormatTableTests(unittest.TestCase):
    def test_renders_aligned_columns(self):
        text = format_table(["Genre", "Revenue"], [("Rock", Decimal("12.5")), ("Jazz", None)])
        lines = text.splitlines()
        self.assertEqual(lines[0], "Genre  Revenue")
        self.assertTrue(set(lines[1]) == {"-"})
        self.assertEqual(lines[2], "Rock   12.50")
        self.assertEqual(lines[3], "Jazz   NULL")

    def test_empty_result(self):
        self.assertTrue(format_table(["a"], []).endswith("(no rows)"))


class VerifyTests(unittest.TestCase):
    def test_missing_tables_report_not_available(self):
        conn = FakeConnection(
            [
                ("FROM Artist", (["cnt"], [(5,)])),
                ("FROM Employee", RuntimeError("no such table")),
            ]
        )
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            counts = verify_chinook_data(conn)
        self.assertEqual(counts["Artist"], 5)
        self.assertIsNone(counts["Employee"])
        self.assertIn("Employee: Not available", out.getvalue())
        self.assertEqual(len(counts), len(CHINOOK_TABLES))


class RunReportsTests(unittest.TestCase):
    def test_failing_report_does_not_stop_others(self):
        conn = FakeConnection(
            [
                ("FROM Genre g JOIN Track", RuntimeError("bad join")),
                ("FROM Invoice GROUP BY", (["Country", "Invoices", "Revenue"], [("USA", 2, Decimal("9.90"))])),
            ]
        )
        out = io.StringIO()
        with contextlib.redirect_stdout(out), self.assertLogs(level="ERROR"):
            completed = run_reports(conn, ["genre-popularity", "sales-by-country"], limit=3)
        self.assertEqual(completed, 1)
        self.assertIn("USA", out.getvalue())
        self.assertIn("LIMIT 3", conn.executed[-1][0])

    def test_unknown_report_is_skipped(self):
        with self.assertLogs(level="WARNING"):
            self.assertEqual(run_reports(FakeConnection(), ["nope"]), 0)

    def test_every_report_runs_against_empty_data(self):
        conn = FakeConnection(
            [
                ("AVG(Milliseconds)", (["TotalTracks", "AvgMs", "MinMs", "MaxMs"], [(0, None, None, None)])),
                ("AS WithComposer", (["Total", "WithComposer"], [(0, None)])),
            ]
        )
        with contextlib.redirect_stdout(io.StringIO()):
            self.assertEqual(run_reports(conn, list(REPORTS)), len(REPORTS))

    def test_playlist_genre_is_bound_as_parameter(self):
        conn = FakeConnection()
        with contextlib.redirect_stdout(io.StringIO()):
            run_reports(conn, ["playlists"], limit=4)
        self.assertEqual([params for _, params in conn.executed], [("Rock",), ("Jazz",)])
        self.assertTrue(all(sql.endswith("LIMIT 4") for sql, _ in conn.executed))

    def test_artists_and_genres_listing(self):
        conn = FakeConnection(
            [
                ("COUNT(*) AS Total FROM Artist", (["Total"], [(275,)])),
                ("FROM Artist ORDER BY", (["ArtistId", "Name"], [(1, "AC/DC"), (2, "Accept")])),
                ("FROM Genre ORDER BY", (["GenreId", "Name"], [(1, "Rock")])),
            ]
        )
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            self.assertEqual(run_reports(conn, ["artists", "genres"]), 2)
        text = out.getvalue()
        self.assertIn("Found 275 artists", text)
        self.assertIn("AC/DC", text)
        self.assertIn("Rock", text)
        self.assertTrue(conn.executed[1][0].endswith("LIMIT 5"))


class LookupTests(unittest.TestCase):
    def test_artist_by_id_shows_albums_and_first_album_tracks(self):
        conn = FakeConnection(
            [
                ("FROM Artist WHERE ArtistId", (["ArtistId", "Name"], [(1, "AC/DC")])),
                (
                    "FROM Album WHERE ArtistId",
                    (["AlbumId", "Title"], [(1, "For Those About To Rock"), (4, "Let There Be Rock")]),
                ),
                ("FROM Track WHERE AlbumId", (["TrackId", "Name", "Minutes"], [(1, "Balls to the Wall", 5.72)])),
            ]
        )
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            self.assertEqual(run_lookups(conn, artist_id=1), (1, 1))
        self.assertEqual([params for _, params in conn.executed], [(1,), (1,), (1,)])
        text = out.getvalue()
        self.assertIn("Artist: AC/DC", text)
        self.assertIn("Let There Be Rock", text)
        self.assertIn("Tracks on For Those About To Rock", text)

    def test_unknown_artist_id_stops_after_first_query(self):
        conn = FakeConnection([("FROM Artist WHERE ArtistId", (["ArtistId", "Name"], []))])
        out = io.StringIO()
        with contextlib.redirect_stdout(out), self.assertLogs(level="WARNING"):
            run_lookups(conn, artist_id=999)
        self.assertEqual(len(conn.executed), 1)
        self.assertIn("Artist with ID 999 not found", out.getvalue())

    def test_artist_name_is_bound_as_parameter(self):
        conn = FakeConnection()
        with contextlib.redirect_stdout(io.StringIO()):
            self.assertEqual(run_lookups(conn, artist_name="Queen", limit=7), (1, 1))
        self.assertEqual([params for _, params in conn.executed], [("Queen",), ("Queen",)])
        self.assertTrue(all("ar.Name = %s" in sql for sql, _ in conn.executed))
        self.assertTrue(conn.executed[-1][0].endswith("LIMIT 7"))

    def test_failed_lookup_is_not_counted(self):
        conn = FakeConnection([("WHERE ar.Name", RuntimeError("lost connection"))])
        with contextlib.redirect_stdout(io.StringIO()), self.assertLogs(level="ERROR"):
            self.assertEqual(run_lookups(conn, artist_name="Queen"), (0, 1))

    def test_nothing_requested(self):
        self.assertEqual(run_lookups(FakeConnection()), (0, 0))


class ExecutorTests(unittest.TestCase):
    def test_driver_error_becomes_statement_error(self):
        conn = FakeConnection([("BROKEN", RuntimeError("syntax error"))])
        executor = CursorExecutor(conn, autocommit=False)
        executor.execute("SELECT 1")
        with self.assertRaises(StatementError) as ctx:
            executor.execute("BROKEN SQL")
        self.assertEqual(ctx.exception.statement, "BROKEN SQL")
        self.assertEqual(str(ctx.exception), "syntax error")
        self.assertEqual(conn.commits, 1)
        self.assertEqual(conn.rollbacks, 1)
        self.assertEqual(conn.closed_cursors, 2)

    def test_cursor_failure_becomes_statement_error(self):
        conn = FakeConnection()
        conn.cursor = mock.Mock(side_effect=RuntimeError("server has gone away"))
        with self.assertRaises(StatementError) as ctx:
            CursorExecutor(conn).execute("SELECT 1")
        self.assertEqual(str(ctx.exception), "server has gone away")
        self.assertEqual(conn.closed_cursors, 0)

    def test_drop_tables_reverse_order_and_keeps_going(self):
        conn = FakeConnection([("DROP TABLE IF EXISTS Track", RuntimeError("in use"))])
        with self.assertLogs(level="WARNING"):
            ok = drop_tables(CursorExecutor(conn))
        self.assertFalse(ok)
        dropped = [sql for sql, _ in conn.executed]
        self.assertEqual(dropped[0], "DROP TABLE IF EXISTS PlaylistTrack")
        self.assertEqual(dropped[-1], "DROP TABLE IF EXISTS Artist")
        self.assertEqual(len(dropped), len(CHINOOK_TABLES))

    def test_table_exists(self):
        conn = FakeConnection([("FROM Missing", RuntimeError("unknown table"))])
        self.assertTrue(table_exists(conn, "Artist"))
        self.assertFalse(table_exists(conn, "Missing"))


if __name__ == "__main__":
    unittest.main()
