from __future__ import annotations

from enum import IntEnum
from typing import Optional


class ExitCode(IntEnum):
    OK = 0
    CONFIG_ERROR = 2
    AUTH_ERROR = 3
    API_ERROR = 4
    RUNTIME_ERROR = 5
    INTERNAL_ERROR = 70


class DropletsError(Exception):
    """Base error for the droplets access layer."""


class ConfigError(DropletsError):
    """Raised for configuration or argument issues."""


class AuthResolutionError(DropletsError):
    """Raised when an API token cannot be resolved."""


class ApiError(DropletsError):
    """Raised when a provider API call fails."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class NotFoundError(ApiError):
    """Raised when the provider reports the resource does not exist."""


class PaginationError(DropletsError):
    """Raised when provider pagination metadata cannot be followed."""


class PaginationLimitError(PaginationError):
    """Raised when a listing needs more pages or items than the configured bound."""


class ItemConversionError(DropletsError):
    """
    Raised when a page item cannot be converted into its typed wrapper.
    This signals a fetcher/converter wiring bug, not a runtime condition.
    """


class WaitError(DropletsError):
    """Base error for wait-until-active failures."""


class ActionFailedError(WaitError):
    """Raised when a tracked action ends in a non-completed state."""


class WaitTimeoutError(WaitError):
    """Raised when an action does not complete within the wait bound."""


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, (ConfigError, ValueError)):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, AuthResolutionError):
        return int(ExitCode.AUTH_ERROR)
    if isinstance(exc, ApiError):
        return int(ExitCode.API_ERROR)
    if isinstance(exc, ItemConversionError):
        return int(ExitCode.INTERNAL_ERROR)
    if isinstance(exc, (PaginationError, WaitError, DropletsError)):
        return int(ExitCode.RUNTIME_ERROR)
    return 1


def _provider_error_types() -> tuple[type[BaseException], ...]:
    try:
        from azure.core.exceptions import AzureError  # type: ignore
    except Exception:
        return ()
    return (AzureError,)


def is_provider_error(exc: BaseException) -> bool:
    """
    Return True if the exception comes from the provider SDK or its transport.
    """
    provider_types = _provider_error_types()
    if provider_types and isinstance(exc, provider_types):
        return True
    module = exc.__class__.__module__
    return module.startswith("azure.core") or module.startswith("pydo")


def _status_of(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if status is None:
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def map_api_error(exc: BaseException, context: str) -> ApiError | None:
    """
    Wrap provider SDK errors with ApiError for consistent exit codes.
    Returns None for anything that is not a provider error.
    """
    if not is_provider_error(exc):
        return None
    status = _status_of(exc)
    if status == 404:
        return NotFoundError(f"{context}: {exc}", status=status)
    return ApiError(f"{context}: {exc}", status=status)
