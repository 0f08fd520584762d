from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable, Iterable, Optional, Sequence

from .db import CHINOOK_TABLES


def _query(conn, sql: str, params: Optional[tuple] = None) -> tuple[list[str], list[tuple]]:
    cursor = conn.cursor()
    try:
        if params is None:
            cursor.execute(sql)
        else:
            cursor.execute(sql, params)
        headers = [col[0] for col in (cursor.description or [])]
        return headers, list(cursor.fetchall())
    finally:
        cursor.close()


def _cell(value) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, (float, Decimal)):
        return f"{value:.2f}"
    return str(value)


def _pct(part: int, whole: int) -> str:
    if not whole:
        return "0.0%"
    return f"{part * 100.0 / whole:.1f}%"


def format_table(headers: Sequence[str], rows: Iterable[Sequence]) -> str:
    # This code here renders a plain fixed-width table with a dashed rule.
    cells = [[_cell(v) for v in row] for row in rows]
    widths = [len(h) for h in headers]
    for row in cells:
        for i, text in enumerate(row):
            widths[i] = max(widths[i], len(text))
    header_line = "  ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    lines = [header_line.rstrip(), "-" * len(header_line)]
    for row in cells:
        lines.append("  ".join(text.ljust(widths[i]) for i, text in enumerate(row)).rstrip())
    if not cells:
        lines.append("(no rows)")
    return "\n".join(lines)


def _print_query(conn, title: str, sql: str, params: Optional[tuple] = None) -> None:
    headers, rows = _query(conn, sql, params)
    print(f"\n{title}")
    print(format_table(headers, rows))


def verify_chinook_data(conn, tables: Sequence[str] = CHINOOK_TABLES) -> dict[str, Optional[int]]:
    """Print and return row counts; tables that cannot be counted map to None."""
    print("\n=== Verifying Chinook data ===")
    counts: dict[str, Optional[int]] = {}
    for table in tables:
        try:
            _, rows = _query(conn, f"SELECT COUNT(*) AS cnt FROM {table}")
            counts[table] = int(rows[0][0]) if rows else 0
            print(f"{table}: {counts[table]}")
        except Exception as err:
            counts[table] = None
            logging.debug("Count failed for %s: %s", table, err)
            print(f"{table}: Not available")
    return counts


def track_statistics(conn, limit: int) -> None:
    _, rows = _query(
        conn,
        "SELECT COUNT(*) AS TotalTracks, AVG(Milliseconds) AS AvgMs, "
        "MIN(Milliseconds) AS MinMs, MAX(Milliseconds) AS MaxMs FROM Track",
    )
    total, avg_ms, min_ms, max_ms = rows[0]
    print("\n===== TRACK STATISTICS =====")
    print(f"Total tracks: {total}")
    if total:
        print(f"Average length: {float(avg_ms) / 60000.0:.2f} minutes")
        print(f"Shortest track: {float(min_ms) / 60000.0:.2f} minutes")
        print(f"Longest track: {float(max_ms) / 60000.0:.2f} minutes")


def genre_popularity(conn, limit: int) -> None:
    _print_query(
        conn,
        "===== GENRE POPULARITY =====",
        "SELECT g.Name AS Genre, COUNT(t.TrackId) AS TrackCount "
        "FROM Genre g JOIN Track t ON g.GenreId = t.GenreId "
        "GROUP BY g.Name ORDER BY TrackCount DESC LIMIT %d" % limit,
    )


def track_length_distribution(conn, limit: int) -> None:
    _print_query(
        conn,
        "===== TRACK LENGTH DISTRIBUTION =====",
        "SELECT "
        "SUM(CASE WHEN Milliseconds < 180000 THEN 1 ELSE 0 END) AS ShortTracks, "
        "SUM(CASE WHEN Milliseconds >= 180000 AND Milliseconds < 300000 THEN 1 ELSE 0 END) AS MediumTracks, "
        "SUM(CASE WHEN Milliseconds >= 300000 AND Milliseconds < 480000 THEN 1 ELSE 0 END) AS LongTracks, "
        "SUM(CASE WHEN Milliseconds >= 480000 THEN 1 ELSE 0 END) AS VeryLongTracks "
        "FROM Track",
    )
    _print_query(
        conn,
        f"Top {limit} Longest Tracks:",
        "SELECT t.Name AS Track, ar.Name AS Artist, t.Milliseconds / 60000.0 AS Minutes "
        "FROM Track t JOIN Album a ON t.AlbumId = a.AlbumId "
        "JOIN Artist ar ON a.ArtistId = ar.ArtistId "
        "ORDER BY t.Milliseconds DESC LIMIT %d" % limit,
    )


def top_artists_by_album_count(conn, limit: int) -> None:
    _print_query(
        conn,
        "===== TOP ARTISTS BY ALBUM COUNT =====",
        "SELECT ar.Name AS Artist, COUNT(DISTINCT a.AlbumId) AS AlbumCount, "
        "COUNT(t.TrackId) AS TrackCount "
        "FROM Artist ar LEFT JOIN Album a ON ar.ArtistId = a.ArtistId "
        "LEFT JOIN Track t ON a.AlbumId = t.AlbumId "
        "GROUP BY ar.ArtistId, ar.Name "
        "ORDER BY AlbumCount DESC, TrackCount DESC LIMIT %d" % limit,
    )


def composer_analysis(conn, limit: int) -> None:
    _, rows = _query(
        conn,
        "SELECT COUNT(*) AS Total, "
        "SUM(CASE WHEN Composer IS NOT NULL THEN 1 ELSE 0 END) AS WithComposer "
        "FROM Track",
    )
    total = int(rows[0][0] or 0)
    with_composer = int(rows[0][1] or 0)
    print("\n===== COMPOSER ANALYSIS =====")
    print(f"Total Tracks: {total}")
    print(f"Tracks with Composer Info: {with_composer} ({_pct(with_composer, total)})")
    print(
        f"Tracks without Composer Info: {total - with_composer} "
        f"({_pct(total - with_composer, total)})"
    )
    _print_query(
        conn,
        f"Top {limit} Composers by Track Count:",
        "SELECT Composer, COUNT(*) AS TrackCount FROM Track "
        "WHERE Composer IS NOT NULL "
        "GROUP BY Composer ORDER BY TrackCount DESC LIMIT %d" % limit,
    )


def sales_by_artist(conn, limit: int) -> None:
    _print_query(
        conn,
        "===== TOP ARTISTS BY SALES REVENUE =====",
        "SELECT ar.Name AS Artist, SUM(il.UnitPrice * il.Quantity) AS Revenue "
        "FROM Artist ar JOIN Album a ON ar.ArtistId = a.ArtistId "
        "JOIN Track t ON a.AlbumId = t.AlbumId "
        "JOIN InvoiceLine il ON t.TrackId = il.TrackId "
        "GROUP BY ar.Name ORDER BY Revenue DESC LIMIT %d" % limit,
    )


def sales_by_genre(conn, limit: int) -> None:
    _print_query(
        conn,
        "===== SALES BY GENRE =====",
        "SELECT g.Name AS Genre, COUNT(il.InvoiceLineId) AS LinesSold, "
        "SUM(il.UnitPrice * il.Quantity) AS Revenue "
        "FROM Genre g JOIN Track t ON g.GenreId = t.GenreId "
        "JOIN InvoiceLine il ON t.TrackId = il.TrackId "
        "GROUP BY g.Name ORDER BY Revenue DESC LIMIT %d" % limit,
    )


def sales_by_country(conn, limit: int) -> None:
    _print_query(
        conn,
        "===== SALES BY COUNTRY =====",
        "SELECT BillingCountry AS Country, COUNT(*) AS Invoices, SUM(Total) AS Revenue "
        "FROM Invoice GROUP BY BillingCountry ORDER BY Revenue DESC LIMIT %d" % limit,
    )


def top_customers(conn, limit: int) -> None:
    _print_query(
        conn,
        "===== TOP CUSTOMERS =====",
        "SELECT c.FirstName, c.LastName, c.Country, SUM(i.Total) AS Spent "
        "FROM Customer c JOIN Invoice i ON c.CustomerId = i.CustomerId "
        "GROUP BY c.CustomerId, c.FirstName, c.LastName, c.Country "
        "ORDER BY Spent DESC LIMIT %d" % limit,
    )


def playlist_recommendations(conn, limit: int) -> None:
    for genre in ("Rock", "Jazz"):
        _print_query(
            conn,
            f"===== {genre.upper()} PLAYLIST RECOMMENDATION =====",
            "SELECT t.Name AS Track, ar.Name AS Artist, a.Title AS Album "
            "FROM Track t JOIN Album a ON t.AlbumId = a.AlbumId "
            "JOIN Artist ar ON a.ArtistId = ar.ArtistId "
            "JOIN Genre g ON t.GenreId = g.GenreId "
            "WHERE g.Name = %s ORDER BY RAND() LIMIT " + str(int(limit)),
            (genre,),
        )


def list_artists(conn, limit: int) -> None:
    _, rows = _query(conn, "SELECT COUNT(*) AS Total FROM Artist")
    print("\n===== ARTISTS =====")
    print(f"Found {int(rows[0][0] or 0) if rows else 0} artists")
    _print_query(
        conn,
        "First 5 artists:",
        "SELECT ArtistId, Name FROM Artist ORDER BY ArtistId LIMIT 5",
    )


def list_genres(conn, limit: int) -> None:
    _print_query(
        conn,
        "===== GENRES =====",
        "SELECT GenreId, Name FROM Genre ORDER BY GenreId",
    )


def artist_albums(conn, artist_id: int) -> bool:
    """Print one artist, their albums, and the tracks of their first album.

    Returns False when no artist has that id.
    """
    _, rows = _query(conn, "SELECT ArtistId, Name FROM Artist WHERE ArtistId = %s", (artist_id,))
    print(f"\n===== ARTIST {artist_id} =====")
    if not rows:
        print(f"Artist with ID {artist_id} not found")
        return False
    print(f"Artist: {rows[0][1]}")
    headers, albums = _query(
        conn,
        "SELECT AlbumId, Title FROM Album WHERE ArtistId = %s ORDER BY AlbumId",
        (artist_id,),
    )
    print("\nAlbums:")
    print(format_table(headers, albums))
    if albums:
        _print_query(
            conn,
            f"Tracks on {albums[0][1]}:",
            "SELECT TrackId, Name, Milliseconds / 60000.0 AS Minutes "
            "FROM Track WHERE AlbumId = %s ORDER BY TrackId",
            (albums[0][0],),
        )
    return True


def artist_tracks(conn, artist_name: str, limit: int) -> None:
    _print_query(
        conn,
        f"===== ALBUMS BY {artist_name.upper()} =====",
        "SELECT a.AlbumId, a.Title FROM Album a "
        "JOIN Artist ar ON a.ArtistId = ar.ArtistId "
        "WHERE ar.Name = %s ORDER BY a.AlbumId",
        (artist_name,),
    )
    _print_query(
        conn,
        f"Tracks by {artist_name}:",
        "SELECT t.Name AS Track, a.Title AS Album, t.UnitPrice "
        "FROM Track t JOIN Album a ON t.AlbumId = a.AlbumId "
        "JOIN Artist ar ON a.ArtistId = ar.ArtistId "
        "WHERE ar.Name = %s ORDER BY a.AlbumId, t.TrackId LIMIT " + str(int(limit)),
        (artist_name,),
    )


REPORTS: dict[str, Callable] = {
    "artists": list_artists,
    "genres": list_genres,
    "track-statistics": track_statistics,
    "genre-popularity": genre_popularity,
    "track-lengths": track_length_distribution,
    "top-artists": top_artists_by_album_count,
    "composers": composer_analysis,
    "sales-by-artist": sales_by_artist,
    "sales-by-genre": sales_by_genre,
    "sales-by-country": sales_by_country,
    "top-customers": top_customers,
    "playlists": playlist_recommendations,
}


def run_reports(conn, names: Iterable[str], limit: int = 10) -> int:
    # This code here runs each report on its own; one broken query never stops the rest.
    completed = 0
    for name in names:
        report = REPORTS.get(name)
        if report is None:
            logging.warning("Unknown report %s, skipping", name)
            continue
        try:
            report(conn, limit)
            completed += 1
        except Exception as err:
            logging.error("Report %s failed: %s", name, err)
    return completed


def run_lookups(
    conn,
    artist_id: Optional[int] = None,
    artist_name: Optional[str] = None,
    limit: int = 10,
) -> tuple[int, int]:
    """Run the artist lookups that were asked for; returns (completed, requested)."""
    requested = 0
    completed = 0
    if artist_id is not None:
        requested += 1
        try:
            if not artist_albums(conn, artist_id):
                logging.warning("No artist with id %s", artist_id)
            completed += 1
        except Exception as err:
            logging.error("Artist lookup %s failed: %s", artist_id, err)
    if artist_name:
        requested += 1
        try:
            artist_tracks(conn, artist_name, limit)
            completed += 1
        except Exception as err:
            logging.error("Artist lookup %r failed: %s", artist_name, err)
    return completed, requested
