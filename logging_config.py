"""
Structured logging configuration with request ID tracking.

Provides:
- Request ID propagation via context variables
- Structured JSON logging for production
- Human-readable logging for development
- Masking of TMDB API keys in every emitted record
- Flask middleware for automatic request tracking
"""

import logging
import re
import sys
import uuid
import json
from contextvars import ContextVar
from datetime import datetime, timezone

from constants import REDACTED

# Context variable for request ID (thread-safe and async-safe)
request_id_var: ContextVar[str] = ContextVar('request_id', default='system')

# api_key=<value> in query strings and exception messages
_API_KEY_PATTERN = re.compile(r'(api_key=)[^&\s\'"]+', re.IGNORECASE)


def get_request_id() -> str:
    """
    Get the current request ID.

    Returns:
        Current request ID or 'system' if not in a request context
    """
    return request_id_var.get()


def set_request_id(request_id: str = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set. If None, generates a new one.

    Returns:
        The request ID that was set
    """
    rid = request_id or str(uuid.uuid4())[:8]
    request_id_var.set(rid)
    return rid


def redact_api_keys(text: str) -> str:
    """Replace the value of any api_key query parameter with a mask."""
    return _API_KEY_PATTERN.sub(rf'\g<1>{REDACTED}', text)


class RedactingFilter(logging.Filter):
    """
    Handler filter that masks API keys in the final log message.

    The engine already redacts what it logs; this catches keys embedded
    in third-party exception messages (urllib3 includes the full URL).
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_api_keys(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class StructuredFormatter(logging.Formatter):
    """
    JSON structured log formatter for production.

    Output format:
    {"timestamp": "...", "level": "INFO", "request_id": "abc123", "message": "..."}

    Includes additional context fields when available.
    """

    EXTRA_FIELDS = (
        'duration_ms', 'item_name', 'media_kind', 'tmdb_id', 'error_kind',
        'status_code', 'image_count', 'endpoint', 'method',
    )

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": get_request_id(),
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = redact_api_keys(self.formatException(record.exc_info))

        for key in self.EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, ensure_ascii=False)


class HumanFormatter(logging.Formatter):
    """
    Human-readable log formatter for development.

    Output format:
    WARNING  [abc123] Message here
    """

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        request_id = get_request_id()
        prefix = f"[{request_id}] " if request_id != 'system' else ""

        level = record.levelname
        if self.use_colors:
            color = self.COLORS.get(level, '')
            level = f"{color}{level:8}{self.RESET}"
        else:
            level = f"{level:8}"

        message = record.getMessage()

        if record.exc_info:
            message += f"\n{redact_api_keys(self.formatException(record.exc_info))}"

        return f"{level} {prefix}{message}"


def configure_logging(
    level: str = "INFO",
    structured: bool = False,
    use_colors: bool = True,
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        structured: Use JSON format for production
        use_colors: Use colored output (only for human format)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RedactingFilter())

    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanFormatter(use_colors=use_colors))

    root_logger.addHandler(handler)

    # urllib3 logs full request URLs (with api_key) at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)


def setup_flask_request_id(app) -> None:
    """
    Add request ID middleware to a Flask app.

    This middleware:
    - Extracts or generates request ID for each request
    - Logs request completion with duration
    - Adds X-Request-ID header to responses

    Args:
        app: Flask application instance
    """
    from flask import request, g

    @app.before_request
    def inject_request_id():
        request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())[:8]
        set_request_id(request_id)
        g.request_id = request_id
        g.request_start = datetime.now(timezone.utc)

    @app.after_request
    def log_request(response):
        duration_ms = (
            datetime.now(timezone.utc) - g.request_start
        ).total_seconds() * 1000

        logger = logging.getLogger('http')
        logger.info(
            f"{request.method} {request.path} -> {response.status_code} ({duration_ms:.0f}ms)",
            extra={
                'method': request.method,
                'endpoint': request.path,
                'status_code': response.status_code,
                'duration_ms': round(duration_ms, 2),
            }
        )

        response.headers['X-Request-ID'] = g.request_id
        return response
