"""
Logging configuration for the log router
"""

import logging
import os
import sys
from typing import Optional

# Verbosity names accepted on the command line mapped onto logging levels
VERBOSITY_LEVELS = {
    'panic': logging.CRITICAL,
    'fatal': logging.CRITICAL,
    'error': logging.ERROR,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'info': logging.INFO,
    'debug': logging.DEBUG,
    'trace': logging.DEBUG,
}

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def resolve_level(level: Optional[str] = None) -> int:
    """
    Translate a verbosity name into a logging level

    Args:
        level: Verbosity name (falls back to LOG_LEVEL, then INFO)

    Returns:
        Logging level number
    """
    if level is None:
        level = os.environ.get('LOG_LEVEL', 'info')
    return VERBOSITY_LEVELS.get(level.lower(), logging.INFO)


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Set up logging configuration for the log router

    Args:
        level: Verbosity name (panic, fatal, error, warn, warning, info, debug, trace)

    Returns:
        Configured logger instance
    """
    log_level = resolve_level(level)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        stream=sys.stdout
    )

    # Lambda installs its own root handler before basicConfig runs
    logging.getLogger().setLevel(log_level)

    # botocore is very chatty at DEBUG
    logging.getLogger('botocore').setLevel(max(log_level, logging.INFO))

    logger = logging.getLogger('cloudfront_log_router')
    logger.setLevel(log_level)

    return logger


class ContextLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every message with key=value context pairs"""

    def process(self, msg, kwargs):
        if not self.extra:
            return msg, kwargs
        prefix = ' '.join(f"{key}={value}" for key, value in self.extra.items())
        return f"[{prefix}] {msg}", kwargs

    def with_keys(self, **keys) -> 'ContextLoggerAdapter':
        merged = dict(self.extra or {})
        merged.update(keys)
        return ContextLoggerAdapter(self.logger, merged)


def get_logger(name: Optional[str] = None, **keys) -> ContextLoggerAdapter:
    """
    Get a logger instance carrying key=value context

    Args:
        name: Logger name (defaults to the package logger)
        **keys: Context rendered in front of every message

    Returns:
        Logger adapter instance
    """
    if name is None:
        name = 'cloudfront_log_router'

    return ContextLoggerAdapter(logging.getLogger(name), keys)
