from typing import Any, Optional


class NathiaError(Exception):
    """Base error for the triage, moderation and chat pipeline.

    Carries a machine-readable ``code`` and optional ``details`` (never shown
    to end users).
    """

    def __init__(self, message: str, code: str = "NATHIA_ERROR", details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class ValidationError(NathiaError):
    """Bad input: empty/oversized text, missing identifiers, bad payloads."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, "VALIDATION_ERROR", details)


class NotFoundError(NathiaError):
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, "NOT_FOUND", details)


class AIServiceError(NathiaError):
    """Failure talking to an external AI dependency."""

    def __init__(self, message: str, code: str = "AI_SERVICE_ERROR", details: Optional[dict] = None):
        super().__init__(message, code, details)


class ProviderHTTPError(AIServiceError):
    """Provider answered with a non-2xx HTTP status."""

    def __init__(self, status_code: int, message: str, details: Optional[dict] = None):
        super().__init__(f"HTTP {status_code}: {message}", "PROVIDER_HTTP_ERROR", details)
        self.status_code = status_code


class ProviderUnavailableError(AIServiceError):
    """Network-tier failure (connect error, timeout, empty response)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, "PROVIDER_UNAVAILABLE", details)


class ProviderConfigError(AIServiceError):
    """Provider is not configured (missing key or URL). Never retried; not a breaker failure."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, "PROVIDER_NOT_CONFIGURED", details)


class RateLimitExceeded(ProviderHTTPError):
    """Caller-visible rate limit (HTTP 429)."""

    def __init__(self, message: str = "limit_exceeded", details: Optional[dict] = None):
        super().__init__(429, message, details)
        self.code = "limit_exceeded"


class RetryExhaustedError(AIServiceError):
    """All retry attempts failed; ``last_error`` is the final failure."""

    def __init__(self, attempts: int, last_error: BaseException, operation: str = "operation"):
        super().__init__(
            f"{operation} failed after {attempts} attempts: {last_error}",
            "RETRY_EXHAUSTED",
            {"attempts": attempts},
        )
        self.attempts = attempts
        self.last_error = last_error
        self.status_code: Any = getattr(last_error, "status_code", None)


class CircuitOpenError(AIServiceError):
    """Breaker is OPEN (or a HALF_OPEN probe is already in flight): no call was made."""

    def __init__(self, name: str, state: str):
        super().__init__(f"Circuit breaker is {state} for {name}", "CIRCUIT_OPEN", {"circuit": name, "state": state})
        self.circuit = name
        self.state = state
