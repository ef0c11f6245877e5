"""
app/clients/gemini_client.py — Google Gemini rewrite gateway
Rewrites an email body from free-text reviewer feedback. Provider failures
are mapped onto distinct, user-facing RewriteError subclasses.
"""
from __future__ import annotations

import time
from typing import Any, Optional

import google.generativeai as genai
from google.api_core.exceptions import (
    DeadlineExceeded,
    GoogleAPICallError,
    PermissionDenied,
    ResourceExhausted,
    RetryError,
    Unauthenticated,
)

from app.config import is_placeholder
from app.core import logging as app_logging
from app.core.errors import (
    AuthenticationError,
    ConfigurationError,
    NetworkError,
    ProtocolError,
    ProviderError,
    RateLimitError,
    RewriteError,
)

REWRITE_PROMPT = """You are helping a person edit an email before it is sent.

Rewrite the email body below according to the feedback. Keep the meaning,
facts, names and any links unless the feedback asks otherwise.
Return ONLY the rewritten email body: no subject line, no preamble,
no explanation, no markdown code fences.

CURRENT EMAIL BODY:
{current_body}

FEEDBACK:
{feedback}
"""


def build_prompt(current_body: str, feedback: str) -> str:
    return REWRITE_PROMPT.format(current_body=current_body, feedback=feedback)


def first_candidate_text(response: Any) -> str:
    """
    Text of the first candidate. Raises ProtocolError when the response
    carries no candidate or the candidate has no text parts.
    """
    try:
        parts = response.candidates[0].content.parts
        text = "".join(getattr(part, "text", "") or "" for part in parts)
    except (AttributeError, IndexError, TypeError) as exc:
        raise ProtocolError("AI provider returned an unexpected response.") from exc
    text = text.strip()
    if not text:
        raise ProtocolError("AI provider returned an empty rewrite.")
    return text


def map_provider_error(exc: Exception) -> RewriteError:
    """Translate SDK / transport exceptions into the relay's error taxonomy."""
    if isinstance(exc, (Unauthenticated, PermissionDenied)):
        return AuthenticationError("AI provider rejected the API key.")
    if isinstance(exc, ResourceExhausted):
        return RateLimitError("AI provider rate limit reached. Please try again shortly.")
    # No usable response: connection refused, DNS, deadline, retries exhausted
    if isinstance(exc, (DeadlineExceeded, RetryError, ConnectionError, TimeoutError)):
        return NetworkError("Could not reach the AI provider.")
    if isinstance(exc, GoogleAPICallError):
        message = exc.message or str(exc)
        status = int(exc.code) if exc.code is not None else None
        return ProviderError(f"AI provider error: {message}", details={"providerStatus": status})
    return ProviderError(f"AI provider error: {exc}")


class RewriteGateway:
    """Stateless wrapper around GenerativeModel.generate_content_async."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        timeout: float = 30.0,
        max_output_tokens: int = 2048,
        temperature: float = 0.7,
    ) -> None:
        self.model = model
        self.timeout = timeout
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature
        self._api_key = api_key.strip()
        if self.enabled:
            genai.configure(api_key=self._api_key)

    @property
    def enabled(self) -> bool:
        return not is_placeholder(self._api_key)

    async def rewrite(self, current_body: str, feedback: str) -> str:
        """Return the rewritten body or raise a RewriteError subclass."""
        if not self.enabled:
            raise ConfigurationError()

        prompt = build_prompt(current_body, feedback)
        start = time.monotonic()
        try:
            gen_model = genai.GenerativeModel(
                self.model,
                generation_config=genai.types.GenerationConfig(
                    temperature=self.temperature,
                    max_output_tokens=self.max_output_tokens,
                ),
            )
            response = await gen_model.generate_content_async(
                prompt,
                request_options={"timeout": self.timeout},
            )
            text = first_candidate_text(response)
        except RewriteError as exc:
            self._log(start, len(prompt), error_type=exc.error_type)
            raise
        except Exception as exc:
            mapped = map_provider_error(exc)
            self._log(start, len(prompt), error_type=mapped.error_type)
            app_logging.log_error("gemini_client", "rewrite", exc, {"model": self.model})
            raise mapped from exc

        self._log(start, len(prompt), output_chars=len(text))
        return text

    def _log(self, start: float, input_chars: int, output_chars: int = 0, error_type: Optional[str] = None) -> None:
        app_logging.log_rewrite_call(
            model=self.model,
            success=error_type is None,
            latency_ms=(time.monotonic() - start) * 1000,
            input_chars=input_chars,
            output_chars=output_chars,
            error_type=error_type,
        )
