"""Language model client for the NLQ pipeline.

Sends one prompt per call and pulls the generated text out of the response
envelope. Backends wrap that text differently depending on their API and
version, so extraction tries a short ordered list of known envelope shapes
and the first one that yields text wins.
"""

import logging
from typing import Any, Callable

import httpx
from openai import OpenAI, OpenAIError

from transfermarket.core.config import settings
from transfermarket.nlq.errors import ModelMalformedResponse, ModelUnreachable

logger = logging.getLogger(__name__)

FLAT_TEXT_FIELDS = ("response", "text", "content", "output")


def _non_blank(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def extract_flat_text(envelope: Any) -> str | None:
    """{"response": "..."} and other single-field shapes."""
    if not isinstance(envelope, dict):
        return None
    for key in FLAT_TEXT_FIELDS:
        text = _non_blank(envelope.get(key))
        if text is not None:
            return text
    return None


def extract_nested_message(envelope: Any) -> str | None:
    """{"message": {"content": "..."}}"""
    if not isinstance(envelope, dict):
        return None
    message = envelope.get("message")
    if isinstance(message, dict):
        return _non_blank(message.get("content"))
    return None


def extract_first_choice(envelope: Any) -> str | None:
    """{"choices": [{"message": {"content": "..."}}]} or {"choices": [{"text": "..."}]}"""
    if not isinstance(envelope, dict):
        return None
    choices = envelope.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    first = choices[0]
    return extract_nested_message(first) or _non_blank(first.get("text"))


def extract_first_candidate(envelope: Any) -> str | None:
    """{"candidates": [{"content": {"parts": [{"text": "..."}]}}]}"""
    if not isinstance(envelope, dict):
        return None
    candidates = envelope.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return None
    content = candidates[0].get("content")
    if not isinstance(content, dict):
        return None
    parts = content.get("parts")
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return None
    return _non_blank(parts[0].get("text"))


EXTRACTION_STRATEGIES: list[Callable[[Any], str | None]] = [
    extract_flat_text,
    extract_nested_message,
    extract_first_choice,
    extract_first_candidate,
]


def extract_text(envelope: Any) -> str:
    """Extract generated text from a response envelope.

    Args:
        envelope: Decoded JSON response body

    Returns:
        Generated text

    Raises:
        ModelMalformedResponse: If no known envelope shape matches
    """
    for strategy in EXTRACTION_STRATEGIES:
        text = strategy(envelope)
        if text is not None:
            return text

    keys = sorted(envelope.keys()) if isinstance(envelope, dict) else type(envelope).__name__
    logger.error("No generated text found in model response", extra={"envelope_keys": keys})
    raise ModelMalformedResponse(f"No generated text found in response envelope: {keys}")


class ModelClient:
    """Stateless text-completion client for the configured model backend."""

    def __init__(
        self,
        backend: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        api_key: str | None = None,
        http_client: httpx.Client | None = None,
        openai_client: OpenAI | None = None,
    ):
        """Initialize model client.

        Args:
            backend: "http" or "openai" (default: from settings)
            base_url: Backend base URL (default: from settings)
            model: Model name (default: from settings)
            timeout: Per-call timeout in seconds (default: from settings)
            api_key: API key for the openai backend (default: from settings)
            http_client: Preconfigured httpx client, mainly for tests
            openai_client: Preconfigured OpenAI client, mainly for tests
        """
        self.backend = (backend or settings.MODEL_BACKEND).lower()
        self.base_url = (base_url or settings.MODEL_BASE_URL).rstrip("/")
        self.model_name = model or settings.MODEL_NAME
        self.timeout = timeout if timeout is not None else settings.MODEL_TIMEOUT_SECONDS
        self.api_key = api_key if api_key is not None else settings.MODEL_API_KEY
        self._http_client = http_client
        self._openai_client = openai_client

        if self.backend not in ("http", "openai"):
            raise ValueError(f"Unknown MODEL_BACKEND: {self.backend}")

    def complete(self, prompt: str, timeout: float | None = None) -> str:
        """Send a prompt and return the generated text.

        Args:
            prompt: Full prompt text
            timeout: Override for the per-call timeout in seconds

        Returns:
            Generated text, extracted from the response envelope

        Raises:
            ModelUnreachable: On network failure, timeout or error status
            ModelMalformedResponse: If the response carries no generated text
        """
        call_timeout = timeout if timeout is not None else self.timeout

        logger.debug(
            "Calling model backend",
            extra={"backend": self.backend, "model": self.model_name, "timeout": call_timeout},
        )

        if self.backend == "openai":
            envelope = self._call_openai(prompt, call_timeout)
        else:
            envelope = self._call_http(prompt, call_timeout)

        text = extract_text(envelope)

        logger.debug("Model response received", extra={"response_chars": len(text)})
        return text

    def _call_http(self, prompt: str, timeout: float) -> Any:
        payload = {
            "model": self.model_name,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": settings.MODEL_TEMPERATURE},
        }
        url = f"{self.base_url}/api/generate"

        try:
            if self._http_client is not None:
                response = self._http_client.post(url, json=payload, timeout=timeout)
            else:
                with httpx.Client(timeout=timeout) as client:
                    response = client.post(url, json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error("Model backend timed out", extra={"url": url, "timeout": timeout})
            raise ModelUnreachable(f"Model backend timed out after {timeout}s") from e
        except httpx.HTTPStatusError as e:
            logger.error(
                "Model backend returned error status",
                extra={"url": url, "status_code": e.response.status_code},
            )
            raise ModelUnreachable(f"Model backend returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("Model backend request failed", extra={"url": url, "error": str(e)})
            raise ModelUnreachable(f"Model backend request failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            logger.error(
                "Model backend returned non-JSON body",
                extra={"body_preview": response.text[:200]},
            )
            raise ModelMalformedResponse("Model backend returned a non-JSON body") from e

    def _call_openai(self, prompt: str, timeout: float) -> Any:
        client = self._openai_client or OpenAI(
            base_url=self.base_url,
            api_key=self.api_key or "unused",
            max_retries=0,
        )

        try:
            response = client.chat.completions.create(
                model=self.model_name,
                messages=[{"role": "user", "content": prompt}],
                temperature=settings.MODEL_TEMPERATURE,
                timeout=timeout,
            )
        except OpenAIError as e:
            logger.error(f"OpenAI-compatible backend error: {e}")
            raise ModelUnreachable(f"Model API call failed: {e}") from e

        if hasattr(response, "model_dump"):
            return response.model_dump()
        return response
