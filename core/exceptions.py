"""
WeekStreak exception hierarchy.

- WeekStreakError: base class for every known error
- UnauthorizedError / ForbiddenError: identity problems
- NotFoundError: entity absent (or owned by someone else)
- ValidationError: malformed or out-of-range input
- PreconditionError: locked task, incomplete prerequisite, full week
- ConflictError: a guarded write lost a race
- UpstreamError: identity / payment / AI provider failures
- StoreError: unexpected storage failure
- ConfigError: bad configuration file

Every error carries an HTTP status and a stable machine-readable code so the
web layer can render it without knowing the concrete class.
"""
from typing import Any, Dict, Optional


class WeekStreakError(Exception):
    """Base class for all known errors.

    Catching this handles every expected failure mode.
    """

    status_code: int = 500
    code: str = "internal_error"

    def __init__(
        self,
        message: str,
        hint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            message: what went wrong
            hint: suggestion for the user
            details: structured context for API clients
        """
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}

    def get_user_message(self) -> str:
        """Return a user-facing message."""
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": False,
            "error": self.code,
            "message": self.message,
        }
        if self.hint:
            payload["hint"] = self.hint
        if self.details:
            payload["details"] = self.details
        return payload


class UnauthorizedError(WeekStreakError):
    """No authenticated identity on the request."""

    status_code = 401
    code = "unauthorized"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(WeekStreakError):
    """The requester does not own the entity."""

    status_code = 403
    code = "forbidden"


class NotFoundError(WeekStreakError):
    """Entity is missing, or belongs to another user."""

    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id: Optional[str] = None, message: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(message or f"{entity} not found")


class ValidationError(WeekStreakError):
    """Input failed validation.

    `errors` lists every failed check so the client can show them together.
    """

    status_code = 400
    code = "validation_error"

    def __init__(self, message: str, errors: Optional[list] = None):
        self.errors = list(errors or [])
        details = {"errors": self.errors} if self.errors else None
        super().__init__(message, details=details)


class PreconditionError(WeekStreakError):
    """The operation is not allowed in the current state."""

    status_code = 400
    code = "precondition_failed"


class ConflictError(WeekStreakError):
    """A compare-and-swap guarded write found unexpected state."""

    status_code = 409
    code = "conflict"

    def __init__(self, message: str, current: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.current = current


class StoreError(WeekStreakError):
    """The document store failed."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, path: Optional[str] = None):
        hint = f"Check the data file: {path}" if path else None
        super().__init__(message, hint)
        self.path = path


class ConfigError(WeekStreakError):
    """Configuration file missing, malformed or invalid."""

    def __init__(self, message: str, config_path: Optional[str] = None):
        hint = f"Check the configuration file: {config_path}" if config_path else "Check the configuration format"
        super().__init__(message, hint)
        self.config_path = config_path


class UpstreamError(WeekStreakError):
    """An external collaborator failed."""

    status_code = 502
    code = "upstream_error"


class PaymentProviderError(UpstreamError):
    """The checkout provider rejected or failed a request."""

    def __init__(self, message: str, provider_status: Optional[int] = None):
        super().__init__(f"Payment provider error: {message}")
        self.provider_status = provider_status


class LLMError(UpstreamError):
    """Base class for LLM call failures, with call context."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None
    ):
        self.provider = provider or "unknown"
        self.model_name = model_name or "unknown"
        self.endpoint = endpoint

        context = f"[{self.provider}/{self.model_name}]"
        full_message = f"{context} {message}"

        super().__init__(full_message)

    def get_user_message(self) -> str:
        base = f"AI service call failed ({self.provider}/{self.model_name}): {self.message}"
        if self.hint:
            return f"{base} (hint: {self.hint})"
        return base


class LLMConnectionError(LLMError):
    """Cannot reach the LLM service."""

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None
    ):
        super().__init__("Cannot connect to the AI service", provider, model_name, endpoint)
        self.hint = "Check the network connection or the API endpoint"


class LLMAuthError(LLMError):
    """The LLM provider rejected our credentials."""

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None
    ):
        super().__init__("AI service configuration error", provider, model_name, endpoint)
        self.hint = "Check that the API key is configured"


class LLMTimeoutError(LLMError):
    """The LLM call timed out."""

    status_code = 504

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None,
        timeout_seconds: Optional[float] = None
    ):
        message = "AI service timed out"
        if timeout_seconds:
            message = f"AI service timed out ({timeout_seconds}s)"
        super().__init__(message, provider, model_name, endpoint)
        self.timeout_seconds = timeout_seconds
        self.hint = "Try again in a moment"


class LLMRateLimitError(LLMError):
    """The LLM provider is rate limiting us; passed through as 429."""

    status_code = 429
    code = "rate_limited"

    def __init__(
        self,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(
            "AI service rate limit exceeded. Please try again in a moment.",
            provider,
            model_name,
            endpoint,
        )
        self.retry_after = retry_after
        if retry_after:
            self.hint = f"Retry in {retry_after} seconds"
            self.details = {"retry_after": retry_after}
        else:
            self.hint = "Retry later"
