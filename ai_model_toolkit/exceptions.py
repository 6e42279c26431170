# ai_model_toolkit/ai_model_toolkit/exceptions.py
from typing import Optional


class ModelToolkitError(Exception):
    """Base exception class for the ai_model_toolkit library."""

    pass


class ConfigurationError(ModelToolkitError):
    """Exception raised for configuration errors (e.g., missing API key)."""

    pass


class ProviderError(ModelToolkitError):
    """Exception raised for errors originating from a provider."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientError(ProviderError):
    """A provider failure that may succeed if the call is repeated."""

    pass


class NonTransientError(ProviderError):
    """A provider failure that will not succeed on retry (bad request, auth)."""

    pass


class RetryExhaustedError(NonTransientError):
    """Raised when every attempt allowed by the retry policy has failed."""

    def __init__(
        self,
        message: str,
        attempts: int,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.attempts = attempts


class ToolError(ModelToolkitError):
    """Exception raised for errors during tool lookup or execution."""

    pass


class ToolLoopLimitError(ToolError):
    """Raised when the model keeps requesting tools past the configured bound."""

    pass


class UnsupportedFeatureError(ModelToolkitError):
    """Exception raised when a provider does not support a requested feature."""

    pass


class PreconditionError(ModelToolkitError, ValueError):
    """Programmer error: invalid arguments detected before any provider call."""

    pass


class FilterExpressionError(PreconditionError):
    """Raised when a metadata filter expression cannot be parsed."""

    pass
