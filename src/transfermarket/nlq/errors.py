"""Failure kinds of the natural language query pipeline.

Every class carries a stable ``kind`` used in logs and API responses and a
``user_message`` that is safe to show to the caller. The exception text
itself holds the diagnostic detail and is only ever logged.
"""


class NlqError(Exception):
    """Base exception for the NLQ pipeline."""

    kind = "nlq_error"
    user_message = "Sorry, I couldn't answer that question."


class SchemaUnavailable(NlqError):
    """Raised when the store schema cannot be described (fatal at startup)."""

    kind = "schema_unavailable"
    user_message = "The transfer market database is currently unavailable."


class ModelUnreachable(NlqError):
    """Raised on network failure, timeout or error status from the model backend."""

    kind = "model_unreachable"
    user_message = "The language model is not reachable right now. Please try again later."


class ModelMalformedResponse(NlqError):
    """Raised when the model response cannot be extracted or parsed."""

    kind = "model_malformed_response"
    user_message = "The language model returned a response I couldn't understand. Please rephrase your question."


class UnsafeSqlRejected(NlqError):
    """Raised when generated SQL violates a safety rule."""

    kind = "unsafe_sql_rejected"
    user_message = "I couldn't build a safe read-only query for that question."

    def __init__(self, message: str, rule: str):
        super().__init__(message)
        self.rule = rule


class QueryExecutionFailed(NlqError):
    """Raised when the store fails to run an already validated query."""

    kind = "query_execution_failed"
    user_message = "I generated a query but it failed to execute. Please try rephrasing your question."

    def __init__(self, message: str, user_message: str | None = None):
        super().__init__(message)
        if user_message:
            self.user_message = user_message


class VerbalizationFailed(NlqError):
    """Raised when the answer-writing model call fails after a successful query."""

    kind = "verbalization_failed"
    user_message = "I found the data but couldn't put the answer into words. Please try again."
