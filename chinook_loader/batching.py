from __future__ import annotations

from typing import Generator, Optional, Tuple

DEFAULT_MAX_BATCH_SIZE = 1000

_VALUES = "VALUES"


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _unquoted_chars(text: str) -> Generator[Tuple[int, str], None, None]:
    # This code here walks text and yields only characters outside '...' literals.
    in_quote = False
    prev = ""
    for i, ch in enumerate(text):
        if ch == "'" and prev != "\\":
            in_quote = not in_quote
        elif not in_quote:
            yield i, ch
        prev = ch


def find_values_keyword(statement: str) -> int:
    upper = statement.upper()
    n = len(_VALUES)
    for i, ch in _unquoted_chars(upper):
        if ch != "V" or upper[i : i + n] != _VALUES:
            continue
        before = upper[i - 1] if i > 0 else ""
        after = upper[i + n] if i + n < len(upper) else ""
        if not _is_word_char(before) and not _is_word_char(after):
            return i
    return -1


def _is_insert(statement: str) -> bool:
    return statement.lstrip().upper().startswith("INSERT")


def count_insert_rows(statement: str) -> int:
    """
    Count top-level value groups after VALUES.
    Only depth 0 -> 1 transitions count, so nested calls like
    CONCAT('a', 'b') inside a row do not inflate the number.
    """
    pos = find_values_keyword(statement)
    if pos < 0:
        return 1
    rest = statement[pos + len(_VALUES):]
    depth = 0
    rows = 0
    for _, ch in _unquoted_chars(rest):
        if ch == "(":
            depth += 1
            if depth == 1:
                rows += 1
        elif ch == ")" and depth > 0:
            depth -= 1
    return max(1, rows)


def split_value_groups(statement: str) -> Optional[Tuple[str, list[str], str]]:
    """
    Break an INSERT ... VALUES statement into (prefix, groups, suffix).
    prefix runs up to and including VALUES; suffix is whatever follows the
    last group. Returns None when the statement is not a multi-row INSERT
    we can safely take apart (no VALUES, unbalanced parens or quotes).
    """
    if not _is_insert(statement):
        return None
    pos = find_values_keyword(statement)
    if pos < 0:
        return None

    prefix = statement[: pos + len(_VALUES)]
    rest = statement[pos + len(_VALUES):]

    groups: list[str] = []
    depth = 0
    boundary = 0
    in_quote = False
    prev = ""
    for i, ch in enumerate(rest):
        if ch == "'" and prev != "\\":
            in_quote = not in_quote
        elif not in_quote:
            if ch == "(":
                depth += 1
            elif ch == ")" and depth > 0:
                depth -= 1
                if depth == 0:
                    group = rest[boundary : i + 1].strip().lstrip(",").strip()
                    if not (group.startswith("(") or group.upper().startswith("ROW")):
                        # Past the row list, e.g. ON DUPLICATE KEY UPDATE a = VALUES(a).
                        break
                    groups.append(group)
                    boundary = i + 1
        prev = ch

    if in_quote or depth != 0 or not groups:
        return None

    suffix = rest[boundary:].strip().lstrip(",").strip()
    return prefix, groups, (" " + suffix if suffix else "")


def split_large_insert(statement: str, batch_size: int = DEFAULT_MAX_BATCH_SIZE) -> list[str]:
    # This code here rebuilds one INSERT per chunk, same prefix, rows in original order.
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    parsed = split_value_groups(statement)
    if parsed is None:
        return [statement]
    prefix, groups, suffix = parsed
    batches: list[str] = []
    for start in range(0, len(groups), batch_size):
        chunk = groups[start : start + batch_size]
        batches.append(f"{prefix} {', '.join(chunk)}{suffix}")
    return batches
