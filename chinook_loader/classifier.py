from __future__ import annotations

import re
from typing import Optional

from .types import StatementKind

_LEADING_KINDS: tuple[tuple[re.Pattern, StatementKind], ...] = (
    (re.compile(r"^CREATE\s+ZONE\b", re.IGNORECASE), StatementKind.SCHEMA_CREATE_ZONE),
    (re.compile(r"^CREATE\s+TABLE\b", re.IGNORECASE), StatementKind.SCHEMA_CREATE_TABLE),
    (re.compile(r"^CREATE\s+INDEX\b", re.IGNORECASE), StatementKind.SCHEMA_CREATE_INDEX),
    (re.compile(r"^DROP\s+(TABLE|ZONE|INDEX)\b", re.IGNORECASE), StatementKind.SCHEMA_DROP),
    (re.compile(r"^INSERT\b", re.IGNORECASE), StatementKind.DATA_INSERT),
    (re.compile(r"^UPDATE\b", re.IGNORECASE), StatementKind.DATA_UPDATE),
    (re.compile(r"^DELETE\b", re.IGNORECASE), StatementKind.DATA_DELETE),
    (re.compile(r"^SELECT\b", re.IGNORECASE), StatementKind.DATA_SELECT),
)

_INDEX_NAME_RE = re.compile(
    r"CREATE\s+INDEX\s+(?:IF\s+NOT\s+EXISTS\s+)?[`\"]?(\w+)", re.IGNORECASE
)
_INDEX_TABLE_RE = re.compile(r"\bON\s+[`\"]?(\w+)", re.IGNORECASE)
_TARGET_TABLE_RE = re.compile(r"\b(?:INTO|FROM|UPDATE)\s+[`\"]?(\w+)", re.IGNORECASE)


def classify_statement(statement: str) -> StatementKind:
    s = statement.lstrip()
    for pattern, kind in _LEADING_KINDS:
        if pattern.match(s):
            return kind
    return StatementKind.OTHER


def is_schema_statement(statement: str) -> bool:
    # Zones, tables and indexes have to exist before any data lands.
    return classify_statement(statement).is_schema


def extract_index_name(statement: str) -> str:
    match = _INDEX_NAME_RE.search(statement)
    return match.group(1) if match else "unknown_index"


def extract_index_table(statement: str) -> str:
    match = _INDEX_TABLE_RE.search(statement)
    return match.group(1) if match else "unknown_table"


def extract_target_table(statement: str) -> str:
    match = _TARGET_TABLE_RE.search(statement)
    return match.group(1) if match else "unknown"


def describe_statement(
    statement: str, kind: Optional[StatementKind] = None, width: int = 70
) -> str:
    """Short display text for progress lines."""
    kind = kind or classify_statement(statement)
    if kind is StatementKind.SCHEMA_CREATE_INDEX:
        return f"{extract_index_name(statement)} ON {extract_index_table(statement)}"
    flat = " ".join(statement.split())
    if len(flat) > width:
        return flat[: width - 3] + "..."
    return flat
