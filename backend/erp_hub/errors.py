from __future__ import annotations


class NotFoundError(LookupError):
    """A referenced row does not exist."""


class InvalidTransitionError(ValueError):
    """A lifecycle operation was requested from the wrong state."""


class ServiceDisabledError(RuntimeError):
    """An optional integration is not configured."""


class ExternalServiceError(RuntimeError):
    """A call to Zendesk or the LLM provider failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
