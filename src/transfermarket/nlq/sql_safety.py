"""Safety validation for model-generated SQL.

``validate_sql`` is the only way to obtain a ``ValidatedQuery``, and the
query executor only accepts that type. Checks run on a masked copy of the
statement in which string literals and quoted identifiers are blanked out and
comments are removed, so keywords inside literals never trip the denylist and
separators inside literals never count as statement breaks.

Rules, first violation wins:

1. single_statement: no ``;`` followed by more SQL
2. select_only: starts with SELECT, or WITH ... SELECT
3. forbidden_keyword: no mutating or session-altering keyword anywhere
4. row_limit: top-level LIMIT added when missing, clamped when too large
"""

import logging
import re
from dataclasses import dataclass

from transfermarket.core.config import settings
from transfermarket.nlq.errors import UnsafeSqlRejected

logger = logging.getLogger(__name__)

RULE_SINGLE_STATEMENT = "single_statement"
RULE_SELECT_ONLY = "select_only"
RULE_FORBIDDEN_KEYWORD = "forbidden_keyword"
RULE_ROW_LIMIT = "row_limit"

FORBIDDEN_KEYWORDS = [
    "insert",
    "update",
    "delete",
    "drop",
    "alter",
    "create",
    "truncate",
    "merge",
    "exec",
    "execute",
    "call",
    "grant",
    "revoke",
    "into",
    "attach",
    "detach",
    "pragma",
    "vacuum",
    "copy",
]

_FORBIDDEN_PATTERN = re.compile(r"\b(" + "|".join(FORBIDDEN_KEYWORDS) + r")\b", re.IGNORECASE)
_FIRST_WORD = re.compile(r"\s*([A-Za-z_]+)\b")
_TOKEN = re.compile(r"[()]|[A-Za-z_][A-Za-z0-9_]*|\S")
_LIMIT = re.compile(r"\blimit\b", re.IGNORECASE)
_LIMIT_VALUE = re.compile(r"\s+(\d+)(?:\s*,\s*(\d+))?\b")
# Only an OFFSET literal may follow the LIMIT row count
_LIMIT_TAIL = re.compile(r"\s*(?:offset\s+\d+\s*)?", re.IGNORECASE)
_OFFSET = re.compile(r"\boffset\b", re.IGNORECASE)
_FETCH = re.compile(r"\bfetch\b", re.IGNORECASE)

# Words that may follow a closing parenthesis inside a WITH header
_CTE_HEADER_WORDS = {"AS", "NOT", "MATERIALIZED", "RECURSIVE"}

_QUOTES = ("'", '"', "`")


@dataclass(frozen=True)
class ValidatedQuery:
    """A single read-only SELECT with a bounded row limit.

    Only ``validate_sql`` can construct one. Calling the class, directly or
    through ``dataclasses.replace``, always fails.
    """

    sql: str
    limit: int

    def __post_init__(self):
        raise TypeError("ValidatedQuery can only be created by validate_sql()")

    @classmethod
    def _issue(cls, sql: str, limit: int) -> "ValidatedQuery":
        query = object.__new__(cls)
        object.__setattr__(query, "sql", sql)
        object.__setattr__(query, "limit", limit)
        return query


def validate_sql(candidate_sql: str, max_rows: int | None = None) -> ValidatedQuery:
    """Validate model-generated SQL and attach a row limit.

    Args:
        candidate_sql: SQL text taken from the model's plan
        max_rows: Row ceiling (default: NLQ_MAX_RESULTS)

    Returns:
        ValidatedQuery ready for execution

    Raises:
        UnsafeSqlRejected: If any rule is violated; ``rule`` names which one
    """
    ceiling = max_rows if max_rows is not None else settings.NLQ_MAX_RESULTS

    try:
        cleaned, masked = _scan(candidate_sql or "")
        cleaned, masked = _strip_terminators(cleaned, masked)
        _check_select_only(masked)
        _check_forbidden_keywords(masked)
        sql, limit = _apply_row_limit(cleaned, masked, ceiling)
    except UnsafeSqlRejected as e:
        logger.warning(
            f"SQL rejected: {e}",
            extra={"rule": e.rule, "sql": candidate_sql},
        )
        raise

    logger.debug("SQL validation passed", extra={"sql": sql, "limit": limit})
    return ValidatedQuery._issue(sql, limit)


def _scan(sql: str) -> tuple[str, str]:
    """Drop comments and mask quoted text.

    Returns:
        (cleaned, masked): cleaned is the SQL with each comment replaced by a
        space; masked has the same length with every quoted span's contents
        replaced by spaces.
    """
    cleaned: list[str] = []
    masked: list[str] = []
    i = 0
    n = len(sql)

    while i < n:
        ch = sql[i]

        if sql.startswith("--", i):
            end = sql.find("\n", i)
            i = n if end == -1 else end
            cleaned.append(" ")
            masked.append(" ")
            continue

        if sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            if end == -1:
                raise UnsafeSqlRejected("Unterminated block comment", rule=RULE_SINGLE_STATEMENT)
            i = end + 2
            cleaned.append(" ")
            masked.append(" ")
            continue

        if ch in _QUOTES:
            j = i + 1
            while True:
                j = sql.find(ch, j)
                if j == -1:
                    raise UnsafeSqlRejected("Unterminated quoted text", rule=RULE_SINGLE_STATEMENT)
                if sql.startswith(ch * 2, j):
                    j += 2
                    continue
                break
            quoted = sql[i : j + 1]
            # Backslash escapes mean different things in different dialects
            if "\\" in quoted:
                raise UnsafeSqlRejected("Backslash inside quoted text", rule=RULE_SINGLE_STATEMENT)
            cleaned.append(quoted)
            masked.append(ch + " " * (len(quoted) - 2) + ch)
            i = j + 1
            continue

        cleaned.append(ch)
        masked.append(ch)
        i += 1

    return "".join(cleaned), "".join(masked)


def _strip_terminators(cleaned: str, masked: str) -> tuple[str, str]:
    """Trim whitespace and trailing semicolons; reject any other separator."""
    end = len(masked.rstrip())
    while end > 0 and masked[end - 1] == ";":
        end = len(masked[: end - 1].rstrip())
    start = len(masked) - len(masked.lstrip())

    if ";" in masked[start:end]:
        raise UnsafeSqlRejected("Multiple statements are not allowed", rule=RULE_SINGLE_STATEMENT)

    return cleaned[start:end], masked[start:end]


def _check_select_only(masked: str) -> None:
    match = _FIRST_WORD.match(masked)
    first = match.group(1).upper() if match else ""

    if first == "SELECT":
        return
    if first == "WITH":
        main_verb = _main_verb_after_with(masked[match.end():])
        if main_verb == "SELECT":
            return
        raise UnsafeSqlRejected(
            f"WITH clause must introduce a SELECT, found {main_verb or 'nothing'}",
            rule=RULE_SELECT_ONLY,
        )

    raise UnsafeSqlRejected(
        "Query must be a SELECT statement (read-only queries only)",
        rule=RULE_SELECT_ONLY,
    )


def _main_verb_after_with(masked: str) -> str | None:
    """Find the first top-level keyword after the last CTE body."""
    depth = 0
    after_close = False

    for match in _TOKEN.finditer(masked):
        token = match.group()
        if token == "(":
            depth += 1
            after_close = False
            continue
        if token == ")":
            depth -= 1
            if depth < 0:
                return None
            after_close = depth == 0
            continue
        if depth > 0:
            continue

        if after_close and (token[0].isalpha() or token[0] == "_"):
            if token.upper() not in _CTE_HEADER_WORDS:
                return token.upper()
        after_close = False

    return None


def _check_forbidden_keywords(masked: str) -> None:
    match = _FORBIDDEN_PATTERN.search(masked)
    if match:
        keyword = match.group(1).upper()
        raise UnsafeSqlRejected(
            f"Query contains forbidden keyword: {keyword} (read-only queries only)",
            rule=RULE_FORBIDDEN_KEYWORD,
        )


def _depth_at(masked: str, position: int) -> int:
    prefix = masked[:position]
    return prefix.count("(") - prefix.count(")")


def _top_level(pattern: re.Pattern, masked: str) -> list[re.Match]:
    return [m for m in pattern.finditer(masked) if _depth_at(masked, m.start()) == 0]


def _apply_row_limit(cleaned: str, masked: str, ceiling: int) -> tuple[str, int]:
    if _top_level(_FETCH, masked):
        raise UnsafeSqlRejected("FETCH clauses are not supported; use LIMIT", rule=RULE_ROW_LIMIT)

    limits = _top_level(_LIMIT, masked)

    if not limits:
        offsets = _top_level(_OFFSET, masked)
        if offsets:
            # LIMIT must precede OFFSET
            at = offsets[0].start()
            sql = f"{cleaned[:at].rstrip()} LIMIT {ceiling} {cleaned[at:]}"
        else:
            sql = f"{cleaned} LIMIT {ceiling}"
        logger.info(f"Added LIMIT {ceiling} clause to SQL", extra={"sql": sql})
        return sql, ceiling

    if len(limits) > 1:
        raise UnsafeSqlRejected("Multiple top-level LIMIT clauses", rule=RULE_ROW_LIMIT)

    value = _LIMIT_VALUE.match(masked, limits[0].end())
    if not value:
        raise UnsafeSqlRejected("LIMIT must be a literal row count", rule=RULE_ROW_LIMIT)
    if not _LIMIT_TAIL.fullmatch(masked, value.end()):
        raise UnsafeSqlRejected(
            "LIMIT must be a literal row count, optionally followed by OFFSET",
            rule=RULE_ROW_LIMIT,
        )

    # MySQL style "LIMIT offset, count"
    group = 2 if value.group(2) is not None else 1
    limit_value = int(value.group(group))
    if limit_value <= ceiling:
        return cleaned, limit_value

    start, end = value.span(group)
    sql = f"{cleaned[:start]}{ceiling}{cleaned[end:]}"
    logger.info(
        f"Reduced LIMIT from {limit_value} to {ceiling}",
        extra={"sql": sql},
    )
    return sql, ceiling
