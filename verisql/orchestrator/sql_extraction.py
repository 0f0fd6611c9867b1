"""
Extraction of the SQL statement from a free-text model reply.

Only the FIRST ```sql fenced block is captured. This is a text-extraction
utility, not a SQL-aware parser: nothing inside the fence is inspected.
"""
import re
from typing import Optional

SQL_FENCE_PATTERN = re.compile(r"```sql\b\s*(.*?)```", re.IGNORECASE | re.DOTALL)


def extract_first_sql_block(text: str) -> Optional[str]:
    """Return the body of the first ```sql fence, or None when there is none (or it is empty)."""
    if not text:
        return None
    match = SQL_FENCE_PATTERN.search(text)
    if not match:
        return None
    sql = match.group(1).strip()
    return sql or None
