from __future__ import annotations

import dataclasses
import enum
from typing import Optional


class StatementKind(enum.Enum):
    SCHEMA_CREATE_ZONE = "CREATE ZONE"
    SCHEMA_CREATE_TABLE = "CREATE TABLE"
    SCHEMA_CREATE_INDEX = "CREATE INDEX"
    SCHEMA_DROP = "DROP"
    DATA_INSERT = "INSERT"
    DATA_UPDATE = "UPDATE"
    DATA_DELETE = "DELETE"
    DATA_SELECT = "SELECT"
    OTHER = "SQL"

    @property
    def is_schema(self) -> bool:
        return self in _SCHEMA_KINDS

    @property
    def label(self) -> str:
        return self.value


_SCHEMA_KINDS = frozenset(
    {
        StatementKind.SCHEMA_CREATE_ZONE,
        StatementKind.SCHEMA_CREATE_TABLE,
        StatementKind.SCHEMA_CREATE_INDEX,
        StatementKind.SCHEMA_DROP,
    }
)


@dataclasses.dataclass
class ImportResult:
    # Counters for one load run; nothing here outlives the run.
    statements_total: int = 0
    statements_ok: int = 0
    statements_failed: int = 0
    soft_failures: int = 0
    schema_statements: int = 0
    data_statements: int = 0
    batches_executed: int = 0
    bytes_read: int = 0
    start_time: float = 0.0


@dataclasses.dataclass
class ImportOptions:
    script_file: str
    host: str
    port: int
    user: str
    password: Optional[str]
    database: str
    batch_size: int
    ignored_prefixes: tuple[str, ...]
    autocommit: bool
    charset: str
    drop_existing: bool
    verify: bool
    dry_run: bool
    quarantine_file: Optional[str]
    fail_on_error: bool
    log_file: Optional[str]
    ssl_ca: Optional[str]
    ssl_cert: Optional[str]
    ssl_key: Optional[str]
    ssl_disabled: bool


@dataclasses.dataclass
class ReportOptions:
    host: str
    port: int
    user: str
    password: Optional[str]
    database: str
    charset: str
    reports: tuple[str, ...]
    limit: int
    verify: bool
    log_file: Optional[str]
    ssl_ca: Optional[str]
    ssl_cert: Optional[str]
    ssl_key: Optional[str]
    ssl_disabled: bool
    autocommit: bool = True
    artist_id: Optional[int] = None
    artist_name: Optional[str] = None


class ParseError(Exception):
    pass


class StatementError(Exception):
    """A single statement failed to execute.

    ``cause`` holds the driver exception, if any; ``statement`` the SQL text.
    """

    def __init__(self, statement: str, cause: Optional[BaseException] = None) -> None:
        self.statement = statement
        self.cause = cause
        super().__init__(str(cause) if cause is not None else "statement failed")
