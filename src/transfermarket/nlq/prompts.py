"""Prompt builders for the two model calls of a chat request.

The planning prompt asks the model for exactly one of two JSON shapes; the
verbalization prompt hands back the query result, bounded in rows and field
width, and asks for a plain-language answer drawn only from it.
"""

from transfermarket.core.config import settings
from transfermarket.nlq.query_engine import ResultSet
from transfermarket.nlq.schema_context import SchemaCard

FEW_SHOT_EXAMPLES = """
## Example Responses

Example 1:
User: "Which players belong to club 1?"
Response:
{"type": "sql", "sql": "SELECT name FROM player WHERE club_id = 1"}

Example 2:
User: "Which club has the largest transfer budget?"
Response:
{"type": "sql", "sql": "SELECT name, budget FROM club ORDER BY budget DESC LIMIT 1"}

Example 3:
User: "What was the most expensive transfer and who moved?"
Response:
{"type": "sql", "sql": "SELECT p.name, t.fee, c.name AS to_club FROM transfer t JOIN player p ON p.id = t.player_id JOIN club c ON c.id = t.to_club_id ORDER BY t.fee DESC LIMIT 1"}

Example 4:
User: "What can you tell me about?"
Response:
{"type": "final", "answer": "I can answer questions about clubs, their budgets, their players and completed transfers."}
"""

PLAN_PROMPT_TEMPLATE = """You are a SQL assistant for a football transfer market database. Decide whether the user's question needs data from the database and respond with a single JSON object.

## Database Schema

{schema}

## Output Format

Respond with EXACTLY ONE of these two JSON shapes and nothing else: no prose, no markdown, no code fences.

1. When the question needs data from the database:
   {{"type": "sql", "sql": "<one SELECT statement>"}}

2. When the question can be answered without the database (greetings, questions about what you can do, questions outside this database):
   {{"type": "final", "answer": "<short answer>"}}

## SQL Rules

- Only a single read-only SELECT statement (a WITH ... SELECT is allowed)
- NEVER use INSERT, UPDATE, DELETE, DROP, ALTER, CREATE, TRUNCATE, MERGE, CALL or EXEC
- Do not end the statement with a semicolon and do not add comments
- Use only the tables and columns listed above
- Return at most {max_rows} rows; add a LIMIT for potentially large results
- Use portable ANSI SQL and single quotes for text values (e.g. 'Barcelona')
{examples}
## Question

{question}
"""

VERBALIZE_PROMPT_TEMPLATE = """You are a football transfer market assistant. Answer the user's question using ONLY the query result below. Do not use outside knowledge. If the result is empty or does not contain the answer, say so plainly.

## Question

{question}

## Query Result ({row_count} rows)

{rows}

## Answer

Reply with a short, plain-language answer. Do not mention SQL, tables or columns.
"""


def build_plan_prompt(question: str, schema_card: SchemaCard) -> str:
    """Build the planning prompt.

    Args:
        question: User's natural language question
        schema_card: Schema card of the queryable tables

    Returns:
        Prompt text
    """
    return PLAN_PROMPT_TEMPLATE.format(
        schema=schema_card.text,
        max_rows=settings.NLQ_MAX_RESULTS,
        examples=FEW_SHOT_EXAMPLES,
        question=question.strip(),
    )


def build_verbalize_prompt(
    question: str,
    result_set: ResultSet,
    max_rows: int | None = None,
    max_field_chars: int | None = None,
) -> str:
    """Build the verbalization prompt from the question and query rows.

    Args:
        question: Original user question
        result_set: Rows returned by the executor
        max_rows: Rows to render (default: NLQ_PROMPT_MAX_ROWS)
        max_field_chars: Per-field width (default: NLQ_PROMPT_MAX_FIELD_CHARS)

    Returns:
        Prompt text
    """
    return VERBALIZE_PROMPT_TEMPLATE.format(
        question=question.strip(),
        row_count=len(result_set.rows),
        rows=render_rows(
            result_set,
            max_rows=max_rows if max_rows is not None else settings.NLQ_PROMPT_MAX_ROWS,
            max_field_chars=max_field_chars if max_field_chars is not None else settings.NLQ_PROMPT_MAX_FIELD_CHARS,
        ),
    )


def render_rows(result_set: ResultSet, max_rows: int, max_field_chars: int) -> str:
    """Render rows as a pipe-separated table, bounded in rows and field width."""
    if not result_set.rows:
        return "(no rows)"

    lines = [" | ".join(_clip(label, max_field_chars) for label in result_set.columns)]
    for row in result_set.rows[:max_rows]:
        lines.append(" | ".join(_clip(row.get(label), max_field_chars) for label in result_set.columns))

    omitted = len(result_set.rows) - max_rows
    if omitted > 0:
        lines.append(f"({omitted} more rows not shown)")

    return "\n".join(lines)


def _clip(value: object, width: int) -> str:
    text = "NULL" if value is None else " ".join(str(value).split())
    if len(text) > width:
        return text[: max(width - 3, 0)] + "..."
    return text
