from __future__ import annotations

import argparse
import configparser
import logging
from getpass import getpass
from typing import Iterable, Optional

from .batching import DEFAULT_MAX_BATCH_SIZE
from .env import ENV_DATABASE, ENV_HOST, ENV_PASSWORD, ENV_PORT, ENV_USER, env_int, env_override
from .parser import DEFAULT_IGNORED_PREFIXES
from .reports import REPORTS
from .types import ImportOptions, ParseError, ReportOptions

_INT_KEYS = ("port", "batch_size", "limit", "artist_id")
_BOOL_KEYS = (
    "autocommit",
    "drop_existing",
    "verify",
    "dry_run",
    "fail_on_error",
    "ssl_disabled",
)


def _add_connection_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", default=None, help="INI config file with default settings"
    )
    parser.add_argument("--host", default="127.0.0.1", help="Database host")
    parser.add_argument("--port", type=int, default=3306, help="Database port")
    parser.add_argument("--user", default="root", help="Database user")
    parser.add_argument("--password", default=None, help="Database password")
    parser.add_argument("--database", default="chinook", help="Target database/schema")
    parser.add_argument(
        "--charset", default="utf8mb4", help="Connection charset (default utf8mb4)"
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Write logs to a file in addition to stdout",
    )
    parser.add_argument("--ssl-ca", default=None, help="SSL CA file")
    parser.add_argument("--ssl-cert", default=None, help="SSL cert file")
    parser.add_argument("--ssl-key", default=None, help="SSL key file")
    parser.add_argument(
        "--ssl-disabled", action="store_true", help="Disable SSL"
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Load the Chinook schema and sample data from a SQL script."
    )
    _add_connection_args(parser)
    parser.add_argument("--script-file", required=False, help="Path to the .sql script")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=DEFAULT_MAX_BATCH_SIZE,
        help="Split INSERTs with more rows than this into batches",
    )
    parser.add_argument(
        "--ignore-prefix",
        action="append",
        default=None,
        dest="ignored_prefixes",
        help="Statement prefix to skip (repeatable; replaces the default list)",
    )
    parser.add_argument(
        "--no-autocommit",
        action="store_false",
        dest="autocommit",
        default=True,
        help="Commit explicitly after every statement instead of autocommit",
    )
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing Chinook tables before loading",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Print per-table row counts after loading",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and classify the script without connecting",
    )
    parser.add_argument(
        "--quarantine-file",
        default=None,
        help="Append failing statements to this file for replay",
    )
    parser.add_argument(
        "--fail-on-error",
        action="store_true",
        help="Stop at the first hard failure and exit non-zero",
    )
    return parser


def build_report_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run analytic reports against a loaded Chinook database."
    )
    _add_connection_args(parser)
    parser.add_argument(
        "--reports",
        default=",".join(REPORTS),
        help="Comma-separated reports to run (default: all)",
    )
    parser.add_argument("--limit", type=int, default=10, help="Rows per ranked report")
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Print per-table row counts before the reports",
    )
    parser.add_argument(
        "--artist-id",
        type=int,
        help="Show one artist with their albums and the tracks of the first album",
    )
    parser.add_argument("--artist-name", help="Show albums and tracks for an artist by name")
    return parser


def _config_bool(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    value = value.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return None


def load_config(path: str, section: str) -> dict:
    # This code here reads [database] plus one tool section into argparse defaults.
    parser = configparser.ConfigParser()
    if not parser.read(path):
        raise ParseError(f"Config file not found or unreadable: {path}")

    config: dict = {}
    for name in ("database", section):
        if parser.has_section(name):
            for key, value in parser.items(name):
                config[key.replace("-", "_")] = value

    # "name" under [database] is the schema to connect to.
    if "name" in config:
        config.setdefault("database", config.pop("name"))

    for key in _INT_KEYS:
        if key in config:
            try:
                config[key] = int(str(config[key]).strip())
            except ValueError as err:
                raise ParseError(f"Config value {key} must be an integer") from err

    for key in _BOOL_KEYS:
        if key in config:
            coerced = _config_bool(str(config[key]))
            if coerced is not None:
                config[key] = coerced

    if "ignored_prefixes" in config:
        config["ignored_prefixes"] = [
            p.strip() for p in str(config["ignored_prefixes"]).split(",") if p.strip()
        ]

    return config


def _parse(parser: argparse.ArgumentParser, argv_list: list[str], section: str):
    prelim, _ = parser.parse_known_args(argv_list)
    if prelim.config:
        parser.set_defaults(**load_config(prelim.config, section))
        logging.info("Loaded config defaults from %s", prelim.config)
    return parser.parse_args(argv_list)


def _resolve_connection(args, argv_list: list[str], need_password: bool) -> dict:
    # CLI flags win; otherwise env vars beat config/defaults.
    def provided(flag: str) -> bool:
        return any(a == flag or a.startswith(flag + "=") for a in argv_list)

    host = args.host
    if not provided("--host"):
        host = env_override(None, ENV_HOST) or host

    port = args.port
    if not provided("--port"):
        port = env_int(ENV_PORT) or port

    user = args.user
    if not provided("--user"):
        user = env_override(None, ENV_USER) or user

    database = args.database
    if not provided("--database"):
        database = env_override(None, ENV_DATABASE) or database

    password = args.password
    if need_password:
        if not provided("--password"):
            password = env_override(password, ENV_PASSWORD)
        if password is None:
            password = getpass("Database password: ")

    return dict(host=host, port=port, user=user, password=password, database=database)


def parse_args(argv: Iterable[str]) -> ImportOptions:
    parser = build_arg_parser()
    argv_list = list(argv)
    args = _parse(parser, argv_list, "import")

    if not args.script_file:
        parser.error("--script-file is required (or set script_file in config)")
    if args.batch_size < 1:
        parser.error("--batch-size must be >= 1")

    conn = _resolve_connection(args, argv_list, need_password=not args.dry_run)
    prefixes = tuple(args.ignored_prefixes) if args.ignored_prefixes else DEFAULT_IGNORED_PREFIXES

    return ImportOptions(
        script_file=args.script_file,
        host=conn["host"],
        port=conn["port"],
        user=conn["user"],
        password=conn["password"],
        database=conn["database"],
        batch_size=args.batch_size,
        ignored_prefixes=prefixes,
        autocommit=args.autocommit,
        charset=args.charset,
        drop_existing=args.drop_existing,
        verify=args.verify,
        dry_run=args.dry_run,
        quarantine_file=args.quarantine_file,
        fail_on_error=args.fail_on_error,
        log_file=args.log_file,
        ssl_ca=args.ssl_ca,
        ssl_cert=args.ssl_cert,
        ssl_key=args.ssl_key,
        ssl_disabled=args.ssl_disabled,
    )


def parse_report_args(argv: Iterable[str]) -> ReportOptions:
    parser = build_report_parser()
    argv_list = list(argv)
    args = _parse(parser, argv_list, "report")

    if args.limit < 1:
        parser.error("--limit must be >= 1")
    if args.artist_id is not None and args.artist_id < 1:
        parser.error("--artist-id must be >= 1")
    names = tuple(n.strip() for n in str(args.reports).split(",") if n.strip())
    unknown = [n for n in names if n not in REPORTS]
    if unknown:
        parser.error(f"unknown report(s): {', '.join(unknown)}; choose from {', '.join(REPORTS)}")

    conn = _resolve_connection(args, argv_list, need_password=True)

    return ReportOptions(
        host=conn["host"],
        port=conn["port"],
        user=conn["user"],
        password=conn["password"],
        database=conn["database"],
        charset=args.charset,
        reports=names,
        limit=args.limit,
        verify=args.verify,
        log_file=args.log_file,
        ssl_ca=args.ssl_ca,
        ssl_cert=args.ssl_cert,
        ssl_key=args.ssl_key,
        ssl_disabled=args.ssl_disabled,
        artist_id=args.artist_id,
        artist_name=args.artist_name,
    )
