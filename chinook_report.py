#!/usr/bin/env python3
"""Analytic reports over a loaded Chinook database."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from chinook_loader.args import parse_report_args
from chinook_loader.db import build_connection
from chinook_loader.logsetup import add_log_file, setup_logging
from chinook_loader.reports import run_lookups, run_reports, verify_chinook_data
from chinook_loader.types import ParseError


def main(argv: Optional[list[str]] = None) -> int:
    setup_logging()
    if argv is None:
        argv = sys.argv[1:]
    try:
        opts = parse_report_args(argv)
        add_log_file(opts.log_file)
        logging.info(
            "Reports: %s (limit=%d) against %s@%s:%s/%s",
            ",".join(opts.reports),
            opts.limit,
            opts.user,
            opts.host,
            opts.port,
            opts.database,
        )
        conn = build_connection(opts)
        try:
            if opts.verify:
                verify_chinook_data(conn)
            completed = run_reports(conn, opts.reports, opts.limit)
            looked_up, requested = run_lookups(
                conn, opts.artist_id, opts.artist_name, opts.limit
            )
        finally:
            conn.close()
        expected = len(opts.reports) + requested
        logging.info("Completed %d of %d reports", completed + looked_up, expected)
        return 0 if completed + looked_up == expected else 2
    except ParseError as err:
        logging.error("Parsing failed: %s", err)
        return 3
    except Exception as err:
        logging.error("Fatal error: %s", err)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
