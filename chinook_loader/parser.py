from __future__ import annotations

import enum
from typing import Generator, Iterable, Sequence, Tuple

DEFAULT_IGNORED_PREFIXES: tuple[str, ...] = (
    "SET",
    "BEGIN TRANSACTION",
    "COMMIT",
    "--",
    "/*",
)


class ScanState(enum.Enum):
    NORMAL = "normal"
    IN_QUOTE = "in_quote"
    IN_LINE_COMMENT = "in_line_comment"
    IN_BLOCK_COMMENT = "in_block_comment"


def next_state(state: ScanState, ch: str, prev: str, nxt: str) -> Tuple[ScanState, int, str]:
    """
    One step of the scanner.
    Returns (new_state, chars_consumed, text_to_keep).
    """
    if state is ScanState.NORMAL:
        if ch == "-" and nxt == "-":
            return ScanState.IN_LINE_COMMENT, 2, ""
        if ch == "/" and nxt == "*":
            # A comment between two tokens still separates them.
            return ScanState.IN_BLOCK_COMMENT, 2, " "
        if ch == "'" and prev != "\\":
            return ScanState.IN_QUOTE, 1, ch
        return ScanState.NORMAL, 1, ch

    if state is ScanState.IN_QUOTE:
        if ch == "'" and prev != "\\":
            return ScanState.NORMAL, 1, ch
        return ScanState.IN_QUOTE, 1, ch

    if state is ScanState.IN_BLOCK_COMMENT:
        if ch == "*" and nxt == "/":
            return ScanState.NORMAL, 2, ""
        return ScanState.IN_BLOCK_COMMENT, 1, ""

    # Line comments run to the end of the line; the splitter resets the state.
    return ScanState.IN_LINE_COMMENT, 1, ""


def should_ignore_statement(
    statement: str, ignored_prefixes: Sequence[str] = DEFAULT_IGNORED_PREFIXES
) -> bool:
    upper = statement.upper()
    return any(upper.startswith(prefix.upper()) for prefix in ignored_prefixes)


def statement_splitter(
    stream: Iterable[str],
    ignored_prefixes: Sequence[str] = DEFAULT_IGNORED_PREFIXES,
) -> Generator[Tuple[str, int, int], None, None]:
    """
    Split a SQL script on semicolons outside quotes and comments.
    Yields (statement, start_line, end_line); the terminator is not included.
    """
    buf: list[str] = []
    has_content = False
    line_no = 0
    stmt_start = 1
    state = ScanState.NORMAL

    def flush() -> str:
        statement = "".join(buf).strip()
        buf.clear()
        return statement

    for raw_line in stream:
        line_no += 1
        line = raw_line.rstrip("\r\n")
        prev = ""
        i = 0
        length = len(line)

        while i < length:
            ch = line[i]
            nxt = line[i + 1] if i + 1 < length else ""

            if state is ScanState.NORMAL and ch == ";":
                statement = flush()
                if statement and not should_ignore_statement(statement, ignored_prefixes):
                    yield statement, stmt_start, line_no
                has_content = False
                prev = ch
                i += 1
                continue

            state, consumed, kept = next_state(state, ch, prev, nxt)
            if kept:
                if not has_content and not kept.isspace():
                    has_content = True
                    stmt_start = line_no
                buf.append(kept)
            prev = line[i + consumed - 1]
            i += consumed

        if state is ScanState.IN_LINE_COMMENT:
            state = ScanState.NORMAL
        if has_content and buf and not buf[-1].endswith(" "):
            buf.append(" ")

    tail = flush()
    if tail and not should_ignore_statement(tail, ignored_prefixes):
        yield tail, stmt_start, line_no


def parse_statements(
    stream: Iterable[str],
    ignored_prefixes: Sequence[str] = DEFAULT_IGNORED_PREFIXES,
) -> list[str]:
    return [statement for statement, _, _ in statement_splitter(stream, ignored_prefixes)]
