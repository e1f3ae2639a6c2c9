"""Natural Language Query (NLQ) module for the transfer market database.

This module turns plain English questions into guarded read-only SQL,
runs it, and turns the rows back into a plain English answer.
"""

from transfermarket.nlq.errors import (
    ModelMalformedResponse,
    ModelUnreachable,
    NlqError,
    QueryExecutionFailed,
    SchemaUnavailable,
    UnsafeSqlRejected,
    VerbalizationFailed,
)
from transfermarket.nlq.model_client import ModelClient
from transfermarket.nlq.orchestrator import ChatOutcome, ChatState, NlqOrchestrator
from transfermarket.nlq.query_engine import QueryExecutor, ResultSet
from transfermarket.nlq.schema_context import SchemaCard, describe, get_schema_card
from transfermarket.nlq.sql_safety import ValidatedQuery, validate_sql

__all__ = [
    "ChatOutcome",
    "ChatState",
    "ModelClient",
    "ModelMalformedResponse",
    "ModelUnreachable",
    "NlqError",
    "NlqOrchestrator",
    "QueryExecutionFailed",
    "QueryExecutor",
    "ResultSet",
    "SchemaCard",
    "SchemaUnavailable",
    "UnsafeSqlRejected",
    "ValidatedQuery",
    "VerbalizationFailed",
    "describe",
    "get_schema_card",
    "validate_sql",
]
