"""Single-line CSV tokenizer for published sheet exports."""
from __future__ import annotations

from typing import List


def parse_csv_line(line: str) -> List[str]:
    """Split one CSV line into trimmed fields.

    A double quote toggles quoted mode; inside quotes commas are kept as
    field content.  Quotes themselves are dropped and doubled quotes are not
    treated as escapes.  Any input yields at least one field, so a line with
    ``n`` unquoted commas always produces ``n + 1`` fields.
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    fields.append("".join(current).strip())
    return fields


def split_lines(text: str) -> List[str]:
    """Split export text into non-blank lines, tolerating CRLF endings."""
    return [line for line in str(text or "").splitlines() if line.strip()]
