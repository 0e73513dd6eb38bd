"""
Error Handling Module for the PYLON Usage Reporter.
Provides decorators that translate transport failures into a typed API
error family and give each reporting phase structured error context.

Nothing here retries: a failed API call aborts the run.
"""

import logging
import functools
from typing import TypeVar, Callable, Any

import requests

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class PipelinePhaseError(Exception):
    """Base exception for reporting phase errors."""

    def __init__(self, message: str, phase: str = "", details: dict | None = None):
        self.phase = phase
        self.details = details or {}
        super().__init__(message)


class IndexEnumerationError(PipelinePhaseError):
    """Raised when listing or classifying indexes fails."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, phase="INDEXES", details=details)


class AnalysisError(PipelinePhaseError):
    """Raised when identity listing or an analysis query fails."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, phase="ANALYSIS", details=details)


class ReportRenderError(PipelinePhaseError):
    """Raised when rendering or exporting the report fails."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, phase="REPORT", details=details)


class AccountSelectionError(ValueError):
    """Raised when no credentials can be resolved for a run."""


class APIError(Exception):
    """Base exception for API-related errors."""

    def __init__(self, message: str, status_code: int | str | None = None, endpoint: str = ""):
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class AuthenticationError(APIError):
    """Raised when API authentication fails (401/403)."""


class RateLimitError(APIError):
    """Raised when the API rate limit is exhausted (429)."""


class ServerError(APIError):
    """Raised for server-side errors (5xx)."""


def _api_error_message(response: requests.Response | None) -> str:
    if response is None:
        return ""
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        return str(body.get("error", ""))
    return ""


def handle_api_errors(endpoint: str = "") -> Callable[[F], F]:
    """
    Decorator that maps requests failures onto the APIError family.

    Args:
        endpoint: API endpoint name recorded on raised errors.

    Returns:
        Decorated function raising APIError subclasses instead of
        requests exceptions.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            func_name = func.__name__
            try:
                return func(*args, **kwargs)

            except requests.exceptions.HTTPError as exc:
                response = exc.response
                status_code = response.status_code if response is not None else None
                detail = _api_error_message(response)
                suffix = f" ({detail})" if detail else ""

                if status_code in (401, 403):
                    logger.error("[%s] Authentication error (HTTP %s) on %s", func_name, status_code, endpoint)
                    raise AuthenticationError(
                        f"Authentication failed: HTTP {status_code}{suffix}",
                        status_code=status_code,
                        endpoint=endpoint,
                    ) from exc

                if status_code == 429:
                    logger.error("[%s] Rate limit exhausted on %s", func_name, endpoint)
                    raise RateLimitError(
                        f"Rate limit exceeded: HTTP 429{suffix}",
                        status_code=status_code,
                        endpoint=endpoint,
                    ) from exc

                if status_code is not None and status_code >= 500:
                    logger.error("[%s] Server error (HTTP %s) on %s", func_name, status_code, endpoint)
                    raise ServerError(
                        f"Server error: HTTP {status_code}{suffix}",
                        status_code=status_code,
                        endpoint=endpoint,
                    ) from exc

                logger.error("[%s] HTTP %s on %s", func_name, status_code, endpoint)
                raise APIError(
                    f"HTTP error: {status_code}{suffix}",
                    status_code=status_code,
                    endpoint=endpoint,
                ) from exc

            except requests.exceptions.Timeout as exc:
                logger.error("[%s] Request timeout on %s", func_name, endpoint)
                raise APIError(
                    f"Request to {endpoint} timed out",
                    status_code="TIMEOUT",
                    endpoint=endpoint,
                ) from exc

            except requests.exceptions.ConnectionError as exc:
                logger.error("[%s] Connection error on %s: %s", func_name, endpoint, exc)
                raise APIError(
                    f"Connection to {endpoint} failed: {exc}",
                    status_code="CONNECTION_ERROR",
                    endpoint=endpoint,
                ) from exc

            except APIError:
                raise

            except Exception as exc:
                logger.error(
                    "[%s] Unexpected error on %s: %s",
                    func_name,
                    endpoint,
                    exc,
                    exc_info=True,
                )
                raise APIError(
                    f"Unexpected error in {func_name}: {exc}",
                    status_code="ERROR",
                    endpoint=endpoint,
                ) from exc

        return wrapper  # type: ignore[return-value]

    return decorator


def handle_pipeline_phase(
    phase_name: str,
    error_cls: type[PipelinePhaseError] = PipelinePhaseError,
) -> Callable[[F], F]:
    """
    Decorator for structured error handling in reporting phases.

    Wraps a function so that any unhandled exception is logged with
    phase context and re-raised as the specified PipelinePhaseError subclass.
    PipelinePhaseError instances are re-raised without wrapping.

    Args:
        phase_name: Human-readable name of the phase.
        error_cls: Exception class to raise on failure.

    Returns:
        Decorated function with structured error handling.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            func_name = func.__name__
            logger.info("[%s] Starting phase '%s'", phase_name, func_name)
            try:
                result = func(*args, **kwargs)
                logger.info("[%s] Completed phase '%s' successfully", phase_name, func_name)
                return result
            except PipelinePhaseError:
                raise
            except Exception as exc:
                logger.error(
                    "[%s] Error in '%s': %s",
                    phase_name,
                    func_name,
                    exc,
                    exc_info=True,
                )
                raise error_cls(
                    f"{phase_name} failed in {func_name}: {exc}",
                    details={"function": func_name, "original_error": str(exc)},
                ) from exc

        return wrapper  # type: ignore[return-value]

    return decorator
