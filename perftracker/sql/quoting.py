"""
Literal quoting for generated query text.

Every value that reaches query text goes through `quote_literal` (or the
LIKE helper built on it). Identifiers never come from user input; callers
only interpolate column names from the FilterField whitelist.

Dialects:
    bigquery: single-quoted strings with backslash escapes. BigQuery
              interprets `\\` sequences inside quoted literals, so a
              backslash must be doubled and a quote becomes `\\'`.
    ansi:     single-quoted strings with quote doubling and no backslash
              escapes (SQLite, PostgreSQL with standard_conforming_strings).

Numbers are rendered bare after validation; booleans, NaN and infinities
are rejected. Dates must be ISO-8601 calendar dates.
"""

import math
import re
from datetime import date, datetime
from typing import Any

from perftracker.core.exceptions import InputValidationError
from perftracker.models.enums import FilterDataType, SqlDialect

_NUMERIC_TEXT = re.compile(r"^-?\d+(\.\d+)?$")

_BIGQUERY_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    "\n": "\\n",
    "\r": "\\r",
}

LIKE_CONTAINS = "contains"
LIKE_STARTS_WITH = "starts_with"
LIKE_ENDS_WITH = "ends_with"


# =============================================================================
# Strings
# =============================================================================

def quote_string(value: Any, dialect: SqlDialect = SqlDialect.BIGQUERY, field: str = "value") -> str:
    """
    Render a value as a single-quoted string literal.

    Args:
        value: Value to quote; non-strings are converted with str().
        dialect: Quoting dialect.
        field: Field name used in error messages.

    Returns:
        The quoted literal, e.g. `'O\\'Brien'` (bigquery) or `'O''Brien'` (ansi).

    Raises:
        InputValidationError: If the value is a boolean or contains NUL.
    """
    if isinstance(value, bool):
        raise InputValidationError(field, "Boolean values are not supported")
    text = str(value)
    if "\x00" in text:
        raise InputValidationError(field, "Value contains a NUL character")

    if SqlDialect(dialect) == SqlDialect.BIGQUERY:
        escaped = "".join(_BIGQUERY_ESCAPES.get(ch, ch) for ch in text)
    else:
        escaped = text.replace("'", "''")
    return f"'{escaped}'"


# =============================================================================
# Numbers
# =============================================================================

def quote_number(value: Any, field: str = "value") -> str:
    """
    Validate a numeric value and render it without quotes.

    Integral values render as integers (`5.0` -> `5`). Numeric strings such
    as `"123"` or `"-1.5"` are accepted.

    Raises:
        InputValidationError: For booleans, NaN, infinities and non-numeric text.
    """
    if isinstance(value, bool):
        raise InputValidationError(field, "Boolean values are not supported")

    if isinstance(value, int):
        return str(value)

    if isinstance(value, str):
        text = value.strip()
        if not _NUMERIC_TEXT.match(text):
            raise InputValidationError(field, f"'{value}' is not a valid number")
        if "." not in text:
            return str(int(text))
        value = float(text)

    if isinstance(value, float):
        if not math.isfinite(value):
            raise InputValidationError(field, "NaN and infinite values are not supported")
        if value.is_integer():
            return str(int(value))
        return repr(value)

    raise InputValidationError(field, f"Unsupported numeric value of type {type(value).__name__}")


# =============================================================================
# Dates
# =============================================================================

def quote_date(value: Any, dialect: SqlDialect = SqlDialect.BIGQUERY, field: str = "value") -> str:
    """
    Validate an ISO calendar date and render it as a quoted literal.

    Raises:
        InputValidationError: If the value is not a YYYY-MM-DD date.
    """
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return quote_string(value.isoformat(), dialect, field)
    if not isinstance(value, str):
        raise InputValidationError(field, f"'{value}' is not a valid date")
    try:
        parsed = date.fromisoformat(value.strip())
    except ValueError:
        raise InputValidationError(field, f"'{value}' is not a valid ISO date (YYYY-MM-DD)")
    return quote_string(parsed.isoformat(), dialect, field)


# =============================================================================
# Dispatcher
# =============================================================================

def quote_literal(
    value: Any,
    data_type: FilterDataType = FilterDataType.STRING,
    dialect: SqlDialect = SqlDialect.BIGQUERY,
    field: str = "value",
) -> str:
    """
    Render a literal of the given type for the given dialect.

    This is the single entry point used by the query builders.

    Raises:
        InputValidationError: If the value cannot be represented safely.
    """
    if value is None:
        raise InputValidationError(field, "A value is required")

    data_type = FilterDataType(data_type)
    if data_type == FilterDataType.NUMBER:
        return quote_number(value, field)
    if data_type == FilterDataType.DATE:
        return quote_date(value, dialect, field)
    return quote_string(value, dialect, field)


# =============================================================================
# LIKE patterns
# =============================================================================

def escape_like(text: str) -> str:
    """Escape LIKE wildcards (`%`, `_`) and the escape character itself."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def like_predicate(
    column: str,
    value: Any,
    mode: str,
    dialect: SqlDialect = SqlDialect.BIGQUERY,
    field: str = "value",
) -> str:
    """
    Build `column LIKE '<pattern>'` matching `value` literally.

    Args:
        column: Whitelisted column name.
        value: Text to search for.
        mode: One of 'contains', 'starts_with', 'ends_with'.
        dialect: Quoting dialect.
        field: Field name used in error messages.

    Returns:
        The LIKE predicate. The ansi form carries an explicit ESCAPE clause;
        BigQuery treats backslash as the LIKE escape character already.
    """
    if isinstance(value, bool):
        raise InputValidationError(field, "Boolean values are not supported")
    escaped = escape_like(str(value))
    if mode == LIKE_CONTAINS:
        pattern = f"%{escaped}%"
    elif mode == LIKE_STARTS_WITH:
        pattern = f"{escaped}%"
    elif mode == LIKE_ENDS_WITH:
        pattern = f"%{escaped}"
    else:
        raise ValueError(f"Unknown LIKE mode: {mode}")

    literal = quote_string(pattern, dialect, field)
    if SqlDialect(dialect) == SqlDialect.ANSI:
        return f"{column} LIKE {literal} ESCAPE '\\'"
    return f"{column} LIKE {literal}"


def regex_predicate(
    column: str,
    value: Any,
    dialect: SqlDialect = SqlDialect.BIGQUERY,
    field: str = "value",
) -> str:
    """
    Build a regular-expression match predicate.

    Raises:
        InputValidationError: If the dialect has no regex function.
    """
    if SqlDialect(dialect) != SqlDialect.BIGQUERY:
        raise InputValidationError(field, "regex_match is not supported by the ansi dialect")
    return f"REGEXP_CONTAINS({column}, {quote_string(value, dialect, field)})"
