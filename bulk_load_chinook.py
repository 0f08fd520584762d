#!/usr/bin/env python3
"""Chinook SQL script bulk loader."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from chinook_loader.args import parse_args
from chinook_loader.importer import format_summary, import_script
from chinook_loader.logsetup import add_log_file, setup_logging
from chinook_loader.types import ParseError, StatementError


def main(argv: Optional[list[str]] = None) -> int:
    setup_logging()
    if argv is None:
        argv = sys.argv[1:]
    try:
        opts = parse_args(argv)
        add_log_file(opts.log_file)
        logging.info(
            "Mode: %s",
            "DRY RUN (no DB connection)" if opts.dry_run else "LIVE LOAD",
        )
        logging.info(
            "Settings: script=%s database=%s host=%s port=%s user=%s ssl=%s",
            opts.script_file,
            opts.database,
            opts.host,
            opts.port,
            opts.user,
            "disabled" if opts.ssl_disabled else ("on" if opts.ssl_ca else "default"),
        )
        logging.info(
            "Settings: batch_size=%d autocommit=%s drop_existing=%s ignored_prefixes=%s",
            opts.batch_size,
            opts.autocommit,
            opts.drop_existing,
            ",".join(opts.ignored_prefixes),
        )
        result = import_script(opts)
        logging.info(format_summary(result, opts))
        if opts.fail_on_error and result.statements_failed > result.soft_failures:
            return 2
        return 0
    except ParseError as err:
        logging.error("Parsing failed: %s", err)
        return 3
    except StatementError as err:
        logging.error("Stopped on failed statement: %s", err)
        return 2
    except Exception as err:
        logging.error("Fatal error: %s", err)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
