#!/usr/bin/env python3
"""
Markdown Spellcheck Configuration & Logging Module
==================================================
Centralized configuration, structured logging, and the error hierarchy
shared by every stage of a review scan.

Configuration is read from MDSPELL_* environment variables (plus
GITHUB_TOKEN) and cached in a module-level instance.
"""

import os
import sys
import json
import logging
import uuid
import time
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Tuple
from pathlib import Path
from dataclasses import dataclass, field
from contextlib import contextmanager
import threading

# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================
DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_REQUEST_TIMEOUT = 10        # Seconds per content request
DEFAULT_CONTEXT_CHARS = 20          # Snippet characters kept on each side of a typo
MAX_CONTEXT_CHARS = 200             # Keeps table rows readable
DEFAULT_MAX_CONCURRENT = 1          # Sequential per-file pipelines
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024  # 5MB max per log file
LOG_BACKUP_COUNT = 5                # Number of log backup files to keep

__version__ = "1.0.0"
VERSION = __version__
APP_NAME = "MarkdownSpellcheck"


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == 'true'


# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================

@dataclass
class ScanConfig:
    """Scan configuration with safe defaults."""

    # GitHub access
    github_api_url: str = DEFAULT_GITHUB_API_URL
    github_token: str = field(default_factory=lambda: os.environ.get('GITHUB_TOKEN', ''))
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    # Scanning
    markdown_extensions: tuple = ('.md', '.markdown')
    context_chars: int = DEFAULT_CONTEXT_CHARS
    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    ignore_numbers: bool = True
    ignore_acronyms: bool = True

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # Options: json, text
    log_to_file: bool = False
    log_to_console: bool = True
    log_dir: Path = field(default_factory=lambda: Path.cwd() / 'logs')

    def __post_init__(self):
        if self.log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_env(cls) -> 'ScanConfig':
        """Load configuration from environment variables."""
        return cls(
            github_api_url=os.environ.get('MDSPELL_GITHUB_API_URL', DEFAULT_GITHUB_API_URL).rstrip('/'),
            github_token=os.environ.get('GITHUB_TOKEN', ''),
            request_timeout=float(os.environ.get('MDSPELL_REQUEST_TIMEOUT', str(DEFAULT_REQUEST_TIMEOUT))),
            context_chars=int(os.environ.get('MDSPELL_CONTEXT_CHARS', str(DEFAULT_CONTEXT_CHARS))),
            max_concurrent=int(os.environ.get('MDSPELL_MAX_CONCURRENT', str(DEFAULT_MAX_CONCURRENT))),
            log_level=os.environ.get('MDSPELL_LOG_LEVEL', 'INFO'),
            log_format=os.environ.get('MDSPELL_LOG_FORMAT', 'text'),
            log_to_file=_env_flag('MDSPELL_LOG_FILE', 'false'),
            log_to_console=_env_flag('MDSPELL_LOG_CONSOLE', 'true'),
            log_dir=Path(os.environ.get('MDSPELL_LOG_DIR', str(Path.cwd() / 'logs'))),
        )

    def validate(self) -> Tuple[bool, list]:
        """Validate configuration and return (is_valid, errors)."""
        errors = []

        if self.context_chars < 0:
            errors.append("context_chars cannot be negative")
        elif self.context_chars > MAX_CONTEXT_CHARS:
            errors.append(f"context_chars exceeds limit ({MAX_CONTEXT_CHARS})")

        if self.max_concurrent < 1:
            errors.append("max_concurrent must be at least 1")

        if self.request_timeout <= 0:
            errors.append("request_timeout must be positive")

        if not self.github_api_url.startswith(('http://', 'https://')):
            errors.append(f"Invalid github_api_url: {self.github_api_url}")

        if self.log_format not in ('json', 'text'):
            errors.append(f"Invalid log_format: {self.log_format}. Must be 'json' or 'text'")

        if not self.markdown_extensions:
            errors.append("markdown_extensions cannot be empty")

        return (len(errors) == 0, errors)


# Global config instance
_config: Optional[ScanConfig] = None

def get_config() -> ScanConfig:
    """Get or create the global configuration."""
    global _config
    if _config is None:
        _config = ScanConfig.from_env()
    return _config


def reset_config():
    """Reset the global configuration (for testing)."""
    global _config
    _config = None


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

class StructuredLogger:
    """Thread-safe structured logger with correlation IDs."""

    _local = threading.local()

    def __init__(self, name: str, config: Optional[ScanConfig] = None):
        self.name = name
        self.config = config or get_config()
        self._setup_logger()

    def _setup_logger(self):
        """Configure the underlying Python logger."""
        self.logger = logging.getLogger(self.name)
        self.logger.setLevel(getattr(logging, self.config.log_level.upper(), logging.INFO))
        self.logger.handlers.clear()

        if self.config.log_format == 'json':
            formatter = JsonFormatter()
        else:
            formatter = logging.Formatter(
                '%(asctime)s [%(levelname)s] %(name)s - %(message)s'
            )

        if self.config.log_to_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

        if self.config.log_to_file:
            from logging.handlers import RotatingFileHandler
            log_file = self.config.log_dir / f"{self.name.lower()}.log"
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    @classmethod
    def set_correlation_id(cls, correlation_id: str):
        """Set correlation ID for current thread."""
        cls._local.correlation_id = correlation_id

    @classmethod
    def get_correlation_id(cls) -> str:
        """Get correlation ID for current thread."""
        return getattr(cls._local, 'correlation_id', None) or str(uuid.uuid4())[:8]

    @classmethod
    def new_correlation_id(cls) -> str:
        """Generate and set a new correlation ID."""
        correlation_id = str(uuid.uuid4())[:12]
        cls.set_correlation_id(correlation_id)
        return correlation_id

    def _build_log_record(self, level: str, message: str, **kwargs) -> Dict[str, Any]:
        """Build a structured log record."""
        return {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': level,
            'logger': self.name,
            'correlation_id': self.get_correlation_id(),
            'message': message,
            **kwargs
        }

    def _render(self, level: str, message: str, **kwargs) -> str:
        if self.config.log_format == 'json':
            return json.dumps(self._build_log_record(level, message, **kwargs), default=str)
        if kwargs:
            fields = ' '.join(f"{k}={v}" for k, v in kwargs.items())
            return f"{message} [{fields}]"
        return message

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self.logger.debug(self._render('DEBUG', message, **kwargs))

    def info(self, message: str, **kwargs):
        """Log info message."""
        self.logger.info(self._render('INFO', message, **kwargs))

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self.logger.warning(self._render('WARNING', message, **kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs):
        """Log error message with optional exception info."""
        if exc_info and self.config.log_format == 'json':
            import traceback
            kwargs['traceback'] = traceback.format_exc()
            exc_info = False
        self.logger.error(self._render('ERROR', message, **kwargs), exc_info=exc_info)

    def exception(self, message: str, **kwargs):
        """Log exception with full traceback."""
        self.error(message, exc_info=True, **kwargs)

    @contextmanager
    def log_operation(self, operation: str, **context):
        """Context manager for logging operation start/end with timing."""
        start_time = time.time()
        self.debug(f"{operation} started", operation=operation, status='started', **context)
        try:
            yield
            duration_ms = (time.time() - start_time) * 1000
            self.info(f"{operation} completed", operation=operation, status='completed',
                      duration_ms=round(duration_ms, 2), **context)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self.error(f"{operation} failed: {e}", operation=operation, status='failed',
                       duration_ms=round(duration_ms, 2), exc_info=True, **context)
            raise


class JsonFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        # Messages rendered by StructuredLogger are already JSON documents
        if message.startswith('{'):
            return message

        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': message,
        }
        if record.exc_info:
            log_data['traceback'] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name, get_config())


# =============================================================================
# ERROR HANDLING
# =============================================================================

class SpellcheckError(Exception):
    """Base exception for the markdown spellcheck scan."""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR",
                 details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'message': self.message,
            'details': self.details
        }


class SettingsMalformedError(SpellcheckError):
    """Settings descriptor or document cannot be used at all. Halts the scan."""
    def __init__(self, message: str, descriptor: Optional[str] = None, **kwargs):
        super().__init__(message, code="SETTINGS_MALFORMED",
                         details={'descriptor': descriptor, **kwargs})


class SettingsIncompleteError(SpellcheckError):
    """Settings document parsed but lacks the ignore list. Recoverable."""
    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(message, code="SETTINGS_INCOMPLETE",
                         details={'field': field, **kwargs})


class ContentFetchError(SpellcheckError):
    """No content came back for a path. Fatal for that file only."""
    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, code="CONTENT_FETCH_FAILED",
                         details={'path': path, **kwargs})


class ConfigurationError(SpellcheckError):
    """ScanConfig failed validation."""
    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message, code="CONFIG_INVALID",
                         details={'errors': errors or []})
