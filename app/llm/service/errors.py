# app/llm/service/errors.py
"""
Failure taxonomy shared by provider adapters, the gateway and the chat relay.

Each error carries the HTTP status it maps to and the provider it came from,
so handlers can render a provider-qualified message without re-classifying.
"""

import re


class LLMError(Exception):
    status_code = 500
    default_message = "LLM request failed"

    def __init__(self, message: str | None = None, provider: str | None = None, details: str | None = None):
        self.message = message or self.default_message
        self.provider = provider
        self.details = details
        super().__init__(self.message)

    def public_message(self) -> str:
        if self.provider and not self.message.lower().startswith(self.provider):
            return f"{self.provider}: {self.message}"
        return self.message


class LLMValidationError(LLMError):
    status_code = 400
    default_message = "Invalid input"


class UnknownProvider(LLMError):
    status_code = 400
    default_message = "Unknown provider"


class MissingCredentials(LLMError):
    status_code = 500

    def __init__(self, provider: str):
        super().__init__(f"{provider} API key not configured", provider=provider)


class UpstreamRateLimited(LLMError):
    status_code = 429
    default_message = "Rate limit exceeded. Please try again in a moment."


class UpstreamInvalidModel(LLMError):
    status_code = 502
    default_message = "Model not available. Please try a different model."


class UpstreamUnknown(LLMError):
    status_code = 502
    default_message = "Upstream provider error"


def _status_of(error: Exception) -> int | None:
    status = getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def classify_upstream_error(provider: str, error: Exception) -> LLMError:
    """Map an SDK / HTTP error from a provider onto the failure taxonomy."""
    if isinstance(error, LLMError):
        return error

    error_str = str(error)
    lowered = error_str.lower()
    status = _status_of(error)

    if status == 429 or "quota" in lowered or "rate limit" in lowered:
        retry_match = re.search(r"retry in ([\d.]+)s", error_str, re.IGNORECASE)
        message = (
            f"Rate limit exceeded. Please retry in {retry_match.group(1)} seconds."
            if retry_match else None
        )
        return UpstreamRateLimited(message, provider=provider, details=error_str)

    if status == 404 or ("model" in lowered and ("not found" in lowered or "does not exist" in lowered)):
        return UpstreamInvalidModel(provider=provider, details=error_str)

    if status in (401, 403) or "api key" in lowered or "api_key" in lowered:
        return UpstreamUnknown("Invalid API key", provider=provider, details=error_str)

    return UpstreamUnknown(provider=provider, details=error_str[:500])
