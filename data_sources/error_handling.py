"""
Error handling and fallback mechanisms for CityPulse
Provides graceful degradation when external providers fail
"""

import os
import asyncio
from typing import Any, Optional, Dict, Callable
from functools import wraps

from logging_config import get_logger

logger = get_logger(__name__)

# Status used for timeouts raised by handle_api_timeout
TIMEOUT_STATUS = 408


class CityPulseError(Exception):
    """Base exception for CityPulse errors."""
    pass


class APIError(CityPulseError):
    """Exception for provider-related errors."""
    def __init__(self, message: str, api_name: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.api_name = api_name
        self.status_code = status_code

    @property
    def is_timeout(self) -> bool:
        return self.status_code == TIMEOUT_STATUS

    @property
    def is_client_error(self) -> bool:
        """A 4xx other than a timeout; mirror cascades abort on these."""
        return self.status_code is not None and 400 <= self.status_code < 500 and not self.is_timeout


class InputInvalidError(CityPulseError):
    """
    Malformed coordinates or an unsupported region.

    This is the only error the analysis pipeline lets escape; everything
    else is recovered inside the component that detected it.
    """
    pass


def check_api_credentials() -> Dict[str, bool]:
    """
    Check which provider credentials are available.

    Returns:
        Dict mapping provider names to availability status
    """
    return {
        "foursquare": bool(os.getenv("FOURSQUARE_API_KEY")),
        "groq": bool(os.getenv("GROQ_API_KEY")),
        "overpass": True,   # OSM doesn't require credentials
        "geocoding": True,  # Nominatim doesn't require credentials
        "redis": bool(os.getenv("REDIS_URL")),
    }


def with_fallback(fallback: Any, log_error: bool = True):
    """
    Decorator to provide fallback values when functions fail.

    Args:
        fallback: Value to return if function fails, or a zero-argument
            callable producing it (so mutable defaults are not shared)
        log_error: Whether to log the error
    """
    def _fallback_value():
        return fallback() if callable(fallback) else fallback

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if log_error:
                    logger.warning(f"Function {func.__name__} failed: {e}. Using fallback.")
                return _fallback_value()
        return wrapper
    return decorator


def safe_api_call(api_name: str, required: bool = True):
    """
    Decorator for safe async provider calls.

    Args:
        api_name: Name of the API being called
        required: Whether the caller cannot proceed without this call. Required
            calls re-raise as APIError; optional calls return None.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except APIError as e:
                logger.error(f"API error in {api_name}: {e}", extra={
                    "api_name": api_name,
                    "status_code": e.status_code,
                })
                if required:
                    raise
                return None
            except Exception as e:
                logger.error(f"Unexpected error in {api_name}: {e}", extra={
                    "api_name": api_name,
                })
                if required:
                    raise APIError(f"Unexpected error in {api_name}: {e}", api_name) from e
                return None
        return wrapper
    return decorator


def handle_api_timeout(timeout_seconds: int = 30):
    """
    Decorator to bound an async provider call with asyncio.wait_for.

    A timeout is re-raised as APIError with status 408 so callers can treat it
    like any other soft provider failure.

    Args:
        timeout_seconds: Timeout in seconds
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(f"Function {func.__name__} timed out after {timeout_seconds}s")
                raise APIError(f"Request timed out after {timeout_seconds} seconds", func.__name__, TIMEOUT_STATUS)
        return wrapper
    return decorator
