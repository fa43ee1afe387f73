import json
import logging
import re
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from contextvars import ContextVar

# Context variables for correlation
source_var: ContextVar[Optional[str]] = ContextVar('source', default=None)
operation_var: ContextVar[Optional[str]] = ContextVar('operation', default=None)
dimension_var: ContextVar[Optional[str]] = ContextVar('time_dimension', default=None)


class SecretMasker:
    """Masks sensitive information in log messages."""

    def __init__(self):
        """Initialize secret masker with patterns."""
        self.patterns = [
            # Generic tokens, keys and secrets
            r'(?i)(token|key|secret|password|auth)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?',
            # Spotify access/refresh tokens
            r'(?i)(access_token|refresh_token)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
            # Last.fm api keys as they appear in request URLs
            r'(?i)(api_key)[\s]*[:=][\s]*["\']?([a-zA-Z0-9]{16,})["\']?',
            # Client secrets
            r'(?i)(client_secret)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
            # OAuth codes
            r'(?i)(code|authorization_code)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
        ]

        self.compiled_patterns = [re.compile(pattern) for pattern in self.patterns]

    def mask_secrets(self, text: str) -> str:
        """Mask sensitive information in text."""
        if not text:
            return text

        masked_text = text

        for pattern in self.compiled_patterns:
            def replace_match(match):
                prefix = match.group(1)
                secret = match.group(2)
                # Keep first 4 and last 4 characters
                if len(secret) > 8:
                    masked_secret = secret[:4] + '*' * (len(secret) - 8) + secret[-4:]
                else:
                    masked_secret = '*' * len(secret)
                return f"{prefix}: {masked_secret}"

            masked_text = pattern.sub(replace_match, masked_text)

        return masked_text

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive information in dictionary values."""
        if not data:
            return data

        masked_data = {}

        for key, value in data.items():
            if isinstance(value, str):
                masked_data[key] = self.mask_secrets(value)
            elif isinstance(value, dict):
                masked_data[key] = self.mask_dict(value)
            elif isinstance(value, list):
                masked_data[key] = [self.mask_dict(item) if isinstance(item, dict)
                                    else self.mask_secrets(item) if isinstance(item, str)
                                    else item for item in value]
            else:
                masked_data[key] = value

        return masked_data


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self):
        super().__init__()
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        source = source_var.get()
        operation = operation_var.get()
        dimension = dimension_var.get()

        log_entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': self.mask_secrets(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if source:
            log_entry['source'] = source
        if operation:
            log_entry['operation'] = operation
        if dimension:
            log_entry['timeDimension'] = dimension

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        if hasattr(record, 'fields') and record.fields:
            log_entry['fields'] = self.masker.mask_dict(record.fields)

        return json.dumps(log_entry, ensure_ascii=False, default=str)

    def mask_secrets(self, text: str) -> str:
        return self.masker.mask_secrets(text)


class CorrelationContext:
    """Context manager for correlation data."""

    def __init__(self, source: Optional[str] = None,
                 operation: Optional[str] = None,
                 dimension: Optional[str] = None):
        self.source = source
        self.operation = operation
        self.dimension = getattr(dimension, 'value', dimension)
        self._tokens = []

    def __enter__(self):
        """Set correlation context."""
        if self.source is not None:
            self._tokens.append((source_var, source_var.set(self.source)))
        if self.operation is not None:
            self._tokens.append((operation_var, operation_var.set(self.operation)))
        if self.dimension is not None:
            self._tokens.append((dimension_var, dimension_var.set(self.dimension)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Restore correlation context."""
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None) -> logging.Logger:
    """Setup structured logging on the package logger."""
    logger = logging.getLogger('soundscope')
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    logger.handlers.clear()

    formatter = StructuredFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = 'soundscope') -> logging.Logger:
    """Get logger with structured formatting."""
    return logging.getLogger(name)


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None, **kwargs):
    """Log message with additional fields."""
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return

    record = logger.makeRecord(
        logger.name, levelno,
        '', 0, message, (), None
    )

    if fields:
        record.fields = dict(fields)
    if kwargs:
        if not hasattr(record, 'fields'):
            record.fields = {}
        record.fields.update(kwargs)

    logger.handle(record)


# Convenience functions for common logging patterns
def log_fetch_start(logger: logging.Logger, source: str, operation: str,
                    limit: int, time_range: Optional[str] = None, **kwargs):
    """Log the start of a data-source fetch."""
    with CorrelationContext(source=source, operation=operation):
        log_with_fields(logger, 'DEBUG', 'Fetch started', {
            'limit': limit,
            'time_range': time_range,
            **kwargs
        })


def log_fetch_complete(logger: logging.Logger, source: str, operation: str,
                       count: int, **kwargs):
    """Log a completed data-source fetch."""
    with CorrelationContext(source=source, operation=operation):
        log_with_fields(logger, 'INFO', 'Fetch completed', {
            'count': count,
            **kwargs
        })


def log_cache_fallback(logger: logging.Logger, source: str, operation: str,
                       error: Exception, cached_count: int):
    """Log that a failed fetch was served from cache."""
    with CorrelationContext(source=source, operation=operation):
        log_with_fields(logger, 'WARNING', 'Serving cached data after fetch failure', {
            'error_type': type(error).__name__,
            'error_message': str(error),
            'cached_count': cached_count,
        })


def log_error(logger: logging.Logger, message: str, error: Exception, **kwargs):
    """Log error with exception details."""
    log_with_fields(logger, 'ERROR', message, {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    })
