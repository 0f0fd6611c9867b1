"""
Statement-type allow-list for model-generated SQL.

This is a narrow gate, not a SQL parser: it strips comments, requires a
single statement, and checks the leading keyword. WITH / EXPLAIN bodies
are additionally scanned for data-modifying keywords, since both can wrap
a write in PostgreSQL.
"""
import re
from typing import Tuple

ALLOWED_LEADING_KEYWORDS = ("SELECT", "WITH", "EXPLAIN", "VALUES", "SHOW", "TABLE")

# These keywords are never allowed inside a WITH / EXPLAIN statement
FORBIDDEN_KEYWORDS = ["INSERT", "UPDATE", "DELETE", "MERGE", "DROP", "ALTER", "CREATE", "TRUNCATE", "GRANT", "REVOKE"]

_LINE_COMMENT = re.compile(r"--[^\n]*")
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
_LEADING_WORD = re.compile(r"[\s(]*([A-Za-z]+)")


def _normalize(sql: str) -> str:
    text = _BLOCK_COMMENT.sub(" ", sql)
    text = _LINE_COMMENT.sub(" ", text)
    return text.strip()


def check_read_only(sql: str) -> Tuple[bool, str]:
    """
    Check that SQL is a single read-only statement.

    Returns:
        Tuple of (is_allowed, reason). reason is empty when allowed.
    """
    text = _normalize(sql or "")
    if not text:
        return False, "Empty SQL statement"

    # String literals may legitimately contain ';' or keywords
    skeleton = _STRING_LITERAL.sub("''", text).rstrip().rstrip(";").rstrip()
    if not skeleton:
        return False, "Empty SQL statement"
    if ";" in skeleton:
        return False, "Only a single SQL statement may be executed"

    match = _LEADING_WORD.match(skeleton)
    leading = match.group(1).upper() if match else skeleton.split(None, 1)[0]
    if leading not in ALLOWED_LEADING_KEYWORDS:
        return False, f"Only read-only statements are allowed; got a {leading} statement"

    if leading in ("WITH", "EXPLAIN"):
        upper = skeleton.upper()
        for keyword in FORBIDDEN_KEYWORDS:
            if re.search(r"\b" + keyword + r"\b", upper):
                return False, f"Blocked: {leading} statement contains '{keyword}'"

    return True, ""
