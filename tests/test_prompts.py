"""Unit tests for NLQ prompt builders."""

from transfermarket.nlq.prompts import build_plan_prompt, build_verbalize_prompt, render_rows
from transfermarket.nlq.query_engine import ResultSet


class TestPlanPrompt:
    """Tests for the planning prompt."""

    def test_contains_schema_question_and_contract(self, schema_card):
        """Test that the plan prompt grounds the model and states both shapes."""
        prompt = build_plan_prompt("  How many players does Barcelona have?  ", schema_card)

        assert schema_card.text in prompt
        assert prompt.rstrip().endswith("How many players does Barcelona have?")
        assert '{"type": "sql", "sql": "<one SELECT statement>"}' in prompt
        assert '{"type": "final", "answer": "<short answer>"}' in prompt
        assert "at most 200 rows" in prompt

    def test_is_deterministic(self, schema_card):
        """Test that identical inputs give identical prompts."""
        assert build_plan_prompt("Who is richest?", schema_card) == build_plan_prompt(
            "Who is richest?", schema_card
        )


class TestVerbalizePrompt:
    """Tests for the verbalization prompt."""

    def test_contains_question_and_rows(self):
        """Test that the rows and question are embedded."""
        result_set = ResultSet(
            columns=["name"],
            rows=[{"name": "Pedri"}, {"name": "Gavi"}, {"name": "Yamal"}],
        )

        prompt = build_verbalize_prompt("Who plays for Barcelona?", result_set)

        assert "Who plays for Barcelona?" in prompt
        assert "Query Result (3 rows)" in prompt
        assert "Pedri\nGavi\nYamal" in prompt
        assert "ONLY the query result" in prompt

    def test_empty_result(self):
        """Test that an empty result is stated explicitly."""
        prompt = build_verbalize_prompt("Who plays for Getafe?", ResultSet(columns=["name"], rows=[]))

        assert "(no rows)" in prompt


class TestRenderRows:
    """Tests for bounded row rendering."""

    def test_row_cap(self):
        """Test that rows beyond the cap are summarized."""
        result_set = ResultSet(columns=["id"], rows=[{"id": i} for i in range(10)])

        rendered = render_rows(result_set, max_rows=3, max_field_chars=80)

        assert rendered.splitlines() == ["id", "0", "1", "2", "(7 more rows not shown)"]

    def test_field_width_cap(self):
        """Test that long values are truncated."""
        result_set = ResultSet(columns=["bio"], rows=[{"bio": "x" * 500}])

        rendered = render_rows(result_set, max_rows=5, max_field_chars=20)

        assert rendered.splitlines()[1] == "x" * 17 + "..."

    def test_nulls_and_newlines(self):
        """Test that None renders as NULL and newlines are flattened."""
        result_set = ResultSet(
            columns=["name", "club_id"],
            rows=[{"name": "Free\nAgent", "club_id": None}],
        )

        rendered = render_rows(result_set, max_rows=5, max_field_chars=80)

        assert rendered.splitlines() == ["name | club_id", "Free Agent | NULL"]
