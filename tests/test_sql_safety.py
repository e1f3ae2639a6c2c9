"""Unit tests for NLQ SQL safety validation."""

import dataclasses

import pytest

from transfermarket.core.config import settings
from transfermarket.nlq.errors import UnsafeSqlRejected
from transfermarket.nlq.sql_safety import (
    RULE_FORBIDDEN_KEYWORD,
    RULE_ROW_LIMIT,
    RULE_SELECT_ONLY,
    RULE_SINGLE_STATEMENT,
    ValidatedQuery,
    validate_sql,
)


class TestSingleStatement:
    """Rule 1: statement stacking."""

    def test_stacked_drop_rejected(self):
        """Test that a second statement after a semicolon is rejected."""
        with pytest.raises(UnsafeSqlRejected) as exc_info:
            validate_sql("SELECT 1; DROP TABLE players")

        assert exc_info.value.rule == RULE_SINGLE_STATEMENT

    def test_stacked_select_rejected(self):
        """Test that two harmless SELECTs are still two statements."""
        with pytest.raises(UnsafeSqlRejected) as exc_info:
            validate_sql("SELECT name FROM player; SELECT name FROM club")

        assert exc_info.value.rule == RULE_SINGLE_STATEMENT

    def test_trailing_semicolon_dropped(self):
        """Test that a lone trailing terminator is allowed and removed."""
        query = validate_sql("SELECT name FROM player LIMIT 10;  ")

        assert query.sql == "SELECT name FROM player LIMIT 10"

    def test_semicolon_inside_literal_allowed(self):
        """Test that a semicolon inside a string literal is not a separator."""
        query = validate_sql("SELECT name FROM club WHERE name = 'Drop; Delete FC' LIMIT 5")

        assert query.sql == "SELECT name FROM club WHERE name = 'Drop; Delete FC' LIMIT 5"

    def test_doubled_quote_escape_stays_inside_literal(self):
        """Test that '' does not end a literal early."""
        query = validate_sql("SELECT name FROM club WHERE name = 'O''Higgins; DROP' LIMIT 5")

        assert "'O''Higgins; DROP'" in query.sql

    def test_comment_removed_from_sql(self):
        """Test that a trailing line comment cannot hide a statement or the limit."""
        query = validate_sql("SELECT name FROM player -- ; DROP TABLE player")

        assert "DROP" not in query.sql
        assert query.sql == "SELECT name FROM player LIMIT 200"

    def test_block_comment_does_not_count_as_limit(self):
        """Test that LIMIT inside a comment is ignored."""
        query = validate_sql("SELECT name FROM player /* LIMIT 10 */")

        assert query.sql == "SELECT name FROM player LIMIT 200"
        assert query.limit == 200

    def test_unterminated_literal_rejected(self):
        """Test that an unterminated quote is rejected as ambiguous."""
        with pytest.raises(UnsafeSqlRejected) as exc_info:
            validate_sql("SELECT name FROM club WHERE name = 'Barcelona")

        assert exc_info.value.rule == RULE_SINGLE_STATEMENT

    def test_unterminated_block_comment_rejected(self):
        """Test that an unterminated block comment is rejected."""
        with pytest.raises(UnsafeSqlRejected) as exc_info:
            validate_sql("SELECT name FROM club /* LIMIT 10")

        assert exc_info.value.rule == RULE_SINGLE_STATEMENT

    def test_backslash_in_literal_rejected(self):
        """Test that backslash escapes are rejected as dialect-ambiguous."""
        with pytest.raises(UnsafeSqlRejected) as exc_info:
            validate_sql("SELECT name FROM club WHERE name = 'a\\'' ; DROP TABLE club; '")

        assert exc_info.value.rule == RULE_SINGLE_STATEMENT


class TestSelectOnly:
    """Rule 2: read-only statements."""

    @pytest.mark.parametrize(
        "sql",
        [
            "INSERT INTO player (name) VALUES ('X')",
            "update player set club_id = 2",
            "Delete FROM player",
            "DROP TABLE player",
            "alter TABLE club ADD COLUMN x INT",
            "CREATE TABLE x (id INT)",
            "TrUnCaTe TABLE transfer",
        ],
    )
    def test_mutating_statements_rejected(self, sql):
        """Test that mutating statements fail in any casing."""
        with pytest.raises(UnsafeSqlRejected) as exc_info:
            validate_sql(sql)

        assert exc_info.value.rule == RULE_SELECT_ONLY

    def test_empty_sql_rejected(self):
        """Test that blank SQL is rejected."""
        with pytest.raises(UnsafeSqlRejected) as exc_info:
            validate_sql("   ")

        assert exc_info.value.rule == RULE_SELECT_ONLY

    def test_leading_parenthesis_rejected(self):
        """Test that statements not starting with a keyword are rejected."""
        with pytest.raises(UnsafeSqlRejected) as exc_info:
            validate_sql("(SELECT name FROM player)")

        assert exc_info.value.rule == RULE_SELECT_ONLY

    def test_lowercase_select_accepted(self):
        """Test that the first keyword is case-insensitive."""
        query = validate_sql("  select name from player")

        assert query.sql == "select name from player LIMIT 200"

    def test_cte_with_select_accepted(self):
        """Test that WITH ... SELECT is accepted and limited at top level."""
        sql = (
            "WITH rich AS (SELECT id FROM club ORDER BY budget DESC LIMIT 1) "
            "SELECT name FROM player WHERE club_id IN (SELECT id FROM rich)"
        )
        query = validate_sql(sql)

        assert query.sql == f"{sql} LIMIT 200"

    def test_cte_with_column_list_accepted(self):
        """Test that a CTE column list is not mistaken for the main statement."""
        query = validate_sql("WITH x(a) AS (SELECT 1) SELECT a FROM x")

        assert query.sql.startswith("WITH x(a) AS (SELECT 1) SELECT a FROM x")

    def test_multiple_ctes_accepted(self):
        """Test that several CTEs before the SELECT are accepted."""
        query = validate_sql(
            "WITH a AS (SELECT 1 AS v), b AS (SELECT v FROM a) SELECT v FROM b"
        )

        assert query.limit == 200

    def test_cte_with_delete_rejected(self):
        """Test that a CTE introducing a DELETE is rejected."""
        with pytest.raises(UnsafeSqlRejected) as exc_info:
            validate_sql("WITH x AS (SELECT 1) DELETE FROM player")

        assert exc_info.value.rule == RULE_SELECT_ONLY


class TestForbiddenKeywords:
    """Rule 3: denylist inside otherwise read-only statements."""

    def test_select_for_update_rejected(self):
        """Test that a locking hint is rejected."""
        with pytest.raises(UnsafeSqlRejected) as exc_info:
            validate_sql("SELECT name FROM player WHERE id = 1 FOR UPDATE")

        assert exc_info.value.rule == RULE_FORBIDDEN_KEYWORD
        assert "UPDATE" in str(exc_info.value)

    def test_select_into_rejected(self):
        """Test that SELECT ... INTO is rejected."""
        with pytest.raises(UnsafeSqlRejected) as exc_info:
            validate_sql("SELECT * INTO player_backup FROM player")

        assert exc_info.value.rule == RULE_FORBIDDEN_KEYWORD

    def test_cte_hiding_delete_rejected(self):
        """Test that a mutating CTE body is rejected."""
        with pytest.raises(UnsafeSqlRejected) as exc_info:
            validate_sql("WITH gone AS (DELETE FROM player RETURNING id) SELECT id FROM gone")

        assert exc_info.value.rule == RULE_FORBIDDEN_KEYWORD

    def test_keyword_inside_literal_allowed(self):
        """Test that keywords inside literals do not trip the denylist."""
        query = validate_sql("SELECT name FROM club WHERE name = 'Update United'")

        assert query.sql == "SELECT name FROM club WHERE name = 'Update United' LIMIT 200"

    def test_keyword_as_column_substring_allowed(self):
        """Test that created_at or last_update are not treated as keywords."""
        query = validate_sql("SELECT created_at, last_update FROM transfer")

        assert query.limit == 200


class TestRowLimit:
    """Rule 4: row ceiling."""

    def test_limit_appended_when_missing(self):
        """Test that a LIMIT at the ceiling is appended."""
        query = validate_sql("SELECT name FROM player WHERE club_id = 1")

        assert query.sql == "SELECT name FROM player WHERE club_id = 1 LIMIT 200"
        assert query.limit == settings.NLQ_MAX_RESULTS

    def test_large_limit_clamped(self):
        """Test that LIMIT 5000 is clamped to 200."""
        query = validate_sql("SELECT name FROM player LIMIT 5000")

        assert query.sql == "SELECT name FROM player LIMIT 200"
        assert query.limit == 200

    def test_small_limit_preserved(self):
        """Test that LIMIT 50 is preserved unchanged."""
        query = validate_sql("SELECT name FROM player LIMIT 50")

        assert query.sql == "SELECT name FROM player LIMIT 50"
        assert query.limit == 50

    def test_lowercase_limit_clamped(self):
        """Test that clamping works regardless of casing."""
        query = validate_sql("select name from player limit 9999 offset 5")

        assert query.sql == "select name from player limit 200 offset 5"

    def test_mysql_offset_count_form_clamped(self):
        """Test that the row count of LIMIT offset, count is clamped."""
        query = validate_sql("SELECT name FROM player LIMIT 10, 5000")

        assert query.sql == "SELECT name FROM player LIMIT 10, 200"

    def test_limit_inserted_before_offset(self):
        """Test that a missing LIMIT goes before an existing OFFSET."""
        query = validate_sql("SELECT name FROM player ORDER BY id OFFSET 10")

        assert query.sql == "SELECT name FROM player ORDER BY id LIMIT 200 OFFSET 10"

    def test_subquery_limit_does_not_count(self):
        """Test that only a top-level LIMIT bounds the result."""
        query = validate_sql(
            "SELECT name FROM player WHERE club_id IN (SELECT id FROM club LIMIT 1)"
        )

        assert query.sql.endswith(") LIMIT 200")

    def test_parameter_limit_rejected(self):
        """Test that a non-literal LIMIT is rejected."""
        with pytest.raises(UnsafeSqlRejected) as exc_info:
            validate_sql("SELECT name FROM player LIMIT :n")

        assert exc_info.value.rule == RULE_ROW_LIMIT

    @pytest.mark.parametrize(
        "sql",
        [
            "SELECT name FROM player LIMIT 10 + 100000",
            "SELECT name FROM player LIMIT 10 * 5",
            "SELECT name FROM player LIMIT 10, 200 + 1",
            "SELECT name FROM player LIMIT 10.5",
        ],
    )
    def test_limit_expression_rejected(self, sql):
        """Test that arithmetic after the LIMIT literal cannot widen the bound."""
        with pytest.raises(UnsafeSqlRejected) as exc_info:
            validate_sql(sql)

        assert exc_info.value.rule == RULE_ROW_LIMIT

    def test_limit_with_offset_accepted(self):
        """Test that an OFFSET literal may follow the LIMIT."""
        query = validate_sql("SELECT name FROM player ORDER BY id LIMIT 5000 OFFSET 10")

        assert query.sql == "SELECT name FROM player ORDER BY id LIMIT 200 OFFSET 10"
        assert query.limit == 200

    def test_fetch_clause_rejected(self):
        """Test that FETCH FIRST is rejected as an ambiguous row limit."""
        with pytest.raises(UnsafeSqlRejected) as exc_info:
            validate_sql("SELECT name FROM player FETCH FIRST 10 ROWS ONLY")

        assert exc_info.value.rule == RULE_ROW_LIMIT

    def test_custom_ceiling(self):
        """Test that max_rows overrides the configured ceiling."""
        query = validate_sql("SELECT name FROM player LIMIT 50", max_rows=10)

        assert query.sql == "SELECT name FROM player LIMIT 10"
        assert query.limit == 10


class TestValidatedQuery:
    """Tests for the validated query type."""

    def test_cannot_be_constructed_directly(self):
        """Test that only validate_sql can produce a ValidatedQuery."""
        with pytest.raises(TypeError):
            ValidatedQuery(sql="DROP TABLE player", limit=1)

    def test_is_immutable(self):
        """Test that a validated query cannot be edited after validation."""
        query = validate_sql("SELECT name FROM player")

        with pytest.raises(AttributeError):
            query.sql = "DROP TABLE player"

    def test_replace_cannot_swap_sql(self):
        """Test that copying a validated query with new SQL is refused."""
        query = validate_sql("SELECT name FROM player")

        with pytest.raises(TypeError):
            dataclasses.replace(query, sql="DELETE FROM player")
