"""
Logging configuration for CityPulse API
Provides structured logging for production monitoring
"""

import logging
import json
import sys
from datetime import datetime, timezone


# Structured fields copied from `extra=` onto the JSON record
_EXTRA_FIELDS = (
    "request_id",
    "zip_code",
    "county",
    "lat",
    "lng",
    "provider",
    "mirror",
    "score_name",
    "score",
    "label",
    "confidence",
    "endpoint",
    "operation",
    "response_time",
    "error_type",
    "api_name",
    "status_code",
)


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in _EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", json_format: bool = True) -> None:
    """
    Set up logging configuration for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Whether to use JSON formatting for structured logs
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Third-party noise
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    logging.getLogger("citypulse").setLevel(numeric_level)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(f"citypulse.{name}")


# Analyses slower than this are logged at WARNING
SLOW_OPERATION_S = 10.0


def _structured(request_id: str = None, **fields):
    extra = {key: value for key, value in fields.items() if value is not None}
    if request_id:
        extra["request_id"] = request_id
    return extra


def log_api_call(logger: logging.Logger, api_name: str, endpoint: str,
                 request_id: str = None, **kwargs):
    """
    Log an outbound provider call (one per Overpass mirror attempt).

    Args:
        logger: Logger instance
        api_name: Provider name (overpass, foursquare, groq, nominatim)
        endpoint: Endpoint or mirror URL
        request_id: Optional request ID for tracing
        **kwargs: Additional fields to log
    """
    extra = _structured(request_id, api_name=api_name, endpoint=endpoint, **kwargs)
    logger.info(f"API call to {api_name}: {endpoint}", extra=extra)


def log_score_calculation(logger: logging.Logger, score_name: str,
                          score: float, request_id: str = None, **kwargs):
    """Log a sub-score or the composite vibe score."""
    extra = _structured(request_id, score_name=score_name, score=score, **kwargs)
    logger.info(f"Score {score_name} calculated: {score:.0f}/100", extra=extra)


def log_error(logger: logging.Logger, error_type: str, message: str,
              request_id: str = None, **kwargs):
    """
    Log a recovered failure with structured data.

    Args:
        logger: Logger instance
        error_type: Failure category (e.g. "cascade_failure", "api_error")
        message: Error message
        request_id: Optional request ID for tracing
        **kwargs: Additional fields to log
    """
    logger.error(message, extra=_structured(request_id, error_type=error_type, **kwargs))


def log_performance(logger: logging.Logger, operation: str, duration: float,
                    request_id: str = None, **kwargs):
    """Log how long an operation took; slow ones at WARNING."""
    extra = _structured(request_id, operation=operation, response_time=round(duration, 3), **kwargs)
    level = logging.WARNING if duration >= SLOW_OPERATION_S else logging.INFO
    logger.log(level, f"Performance: {operation} took {duration:.2f}s", extra=extra)
