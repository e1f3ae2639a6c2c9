"""Parsing of the model's planning response.

The planning call must answer with one of two JSON shapes:
``{"type": "sql", "sql": "..."}`` or ``{"type": "final", "answer": "..."}``.
Anything else is a malformed response.
"""

import json
import logging
import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from transfermarket.nlq.errors import ModelMalformedResponse

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


class SqlPlan(BaseModel):
    """The model wants a query run."""

    type: Literal["sql"]
    sql: str = Field(..., min_length=1)


class FinalPlan(BaseModel):
    """The model answered directly."""

    type: Literal["final"]
    answer: str = Field(..., min_length=1)


Plan = Annotated[Union[SqlPlan, FinalPlan], Field(discriminator="type")]

_plan_adapter: TypeAdapter[Plan] = TypeAdapter(Plan)


def parse_plan(text: str) -> SqlPlan | FinalPlan:
    """Parse the planning response into a plan.

    A single markdown code fence around the JSON is tolerated.

    Args:
        text: Generated text from the planning call

    Returns:
        SqlPlan or FinalPlan

    Raises:
        ModelMalformedResponse: If the text is not one of the two shapes
    """
    candidate = text.strip()
    fenced = _CODE_FENCE.match(candidate)
    if fenced:
        candidate = fenced.group(1)

    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.error(
            f"Failed to parse plan response as JSON: {e}",
            extra={"llm_response": text[:500]},
        )
        raise ModelMalformedResponse(f"Plan response is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        logger.error("Plan response is not a JSON object", extra={"llm_response": text[:500]})
        raise ModelMalformedResponse("Plan response is not a JSON object")

    try:
        plan = _plan_adapter.validate_python(payload)
    except ValidationError as e:
        logger.error(
            "Plan response does not match a known shape",
            extra={"llm_response": text[:500], "errors": e.errors(include_url=False)},
        )
        raise ModelMalformedResponse(f"Plan response has unknown shape: type={payload.get('type')!r}") from e

    # Whitespace-only values pass min_length
    if isinstance(plan, SqlPlan) and not plan.sql.strip():
        raise ModelMalformedResponse("Plan response has an empty 'sql' field")
    if isinstance(plan, FinalPlan) and not plan.answer.strip():
        raise ModelMalformedResponse("Plan response has an empty 'answer' field")

    return plan
