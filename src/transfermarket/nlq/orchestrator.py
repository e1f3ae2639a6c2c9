"""Two-step chat orchestration.

A request moves through ``planning -> (verbalizing) -> done`` and can end in
``failed`` from any state. The model is called at most twice: once to plan,
and once more to put query rows into words when the plan was SQL.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4

from transfermarket.core.logging import correlation_id_context
from transfermarket.nlq.errors import (
    ModelMalformedResponse,
    ModelUnreachable,
    NlqError,
    UnsafeSqlRejected,
    VerbalizationFailed,
)
from transfermarket.nlq.model_client import ModelClient
from transfermarket.nlq.plan import FinalPlan, parse_plan
from transfermarket.nlq.prompts import build_plan_prompt, build_verbalize_prompt
from transfermarket.nlq.query_engine import QueryExecutor, ResultSet
from transfermarket.nlq.schema_context import SchemaCard
from transfermarket.nlq.sql_safety import validate_sql

logger = logging.getLogger(__name__)


class ChatState(str, Enum):
    PLANNING = "planning"
    VERBALIZING = "verbalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ChatOutcome:
    """Terminal result of one chat request."""

    state: ChatState
    answer: str | None = None
    error_kind: str | None = None
    error: str | None = None
    sql: str | None = None
    row_count: int | None = None
    transitions: list[ChatState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is ChatState.DONE


class NlqOrchestrator:
    """Answers natural language questions about the transfer market."""

    def __init__(
        self,
        schema_card: SchemaCard,
        model_client: ModelClient,
        executor: QueryExecutor,
    ):
        self.schema_card = schema_card
        self.model_client = model_client
        self.executor = executor

    def ask(self, question: str, correlation_id: str | None = None) -> ChatOutcome:
        """Answer a question.

        Args:
            question: Natural language question
            correlation_id: Optional correlation ID for logging

        Returns:
            ChatOutcome in state DONE with an answer, or FAILED with a
            user-safe error message and the failure kind

        Raises:
            ValueError: If the question is blank
        """
        if not question or not question.strip():
            raise ValueError("Question must not be empty")

        token = correlation_id_context.set(correlation_id or str(uuid4()))
        try:
            return self._run(question)
        finally:
            correlation_id_context.reset(token)

    def _run(self, question: str) -> ChatOutcome:
        outcome = ChatOutcome(state=ChatState.PLANNING, transitions=[ChatState.PLANNING])
        logger.info("Chat request received", extra={"user_query": question})

        try:
            # Step 1: plan
            plan_text = self.model_client.complete(build_plan_prompt(question, self.schema_card))
            plan = parse_plan(plan_text)

            if isinstance(plan, FinalPlan):
                logger.info("Model answered directly without a query")
                return self._finish(outcome, plan.answer)

            # Step 2: validate and run the query
            validated = validate_sql(plan.sql)
            outcome.sql = validated.sql
            result_set = self.executor.execute(validated)
            outcome.row_count = len(result_set.rows)

            logger.info(
                "Query executed successfully",
                extra={"sql": validated.sql, "total_rows": outcome.row_count},
            )

            # Step 3: put the rows into words
            self._transition(outcome, ChatState.VERBALIZING)
            answer = self._verbalize(question, result_set)
            return self._finish(outcome, answer)

        except NlqError as e:
            return self._fail(outcome, e)

    def _verbalize(self, question: str, result_set: ResultSet) -> str:
        try:
            text = self.model_client.complete(build_verbalize_prompt(question, result_set))
        except (ModelUnreachable, ModelMalformedResponse) as e:
            raise VerbalizationFailed(f"Verbalization call failed: {e}") from e

        answer = text.strip()
        if not answer:
            raise VerbalizationFailed("Verbalization returned empty text")
        return answer

    def _transition(self, outcome: ChatOutcome, state: ChatState) -> None:
        outcome.state = state
        outcome.transitions.append(state)

    def _finish(self, outcome: ChatOutcome, answer: str) -> ChatOutcome:
        self._transition(outcome, ChatState.DONE)
        outcome.answer = answer
        logger.info("Chat request answered", extra={"transitions": [s.value for s in outcome.transitions]})
        return outcome

    def _fail(self, outcome: ChatOutcome, error: NlqError) -> ChatOutcome:
        failed_in = outcome.state
        self._transition(outcome, ChatState.FAILED)
        outcome.error_kind = error.kind
        outcome.error = error.user_message

        log_extra = {
            "error_kind": error.kind,
            "error": str(error),
            "failed_in": failed_in.value,
            "sql": outcome.sql,
        }
        if isinstance(error, UnsafeSqlRejected):
            log_extra["rule"] = error.rule

        logger.error("Chat request failed", extra=log_extra)
        return outcome
