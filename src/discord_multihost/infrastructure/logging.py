"""
Logging entry points for MultiHost components.

Every module obtains its logger through :func:`setup_logging` so that the
YAML configuration and the environment-based levels are applied consistently.
"""

import logging
from typing import Optional

from .logging_manager import get_logger as _get_logger
from .logging_manager import setup_logging as _setup_logging


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging for a component.

    Args:
        component_name: Name of the component (e.g. 'session_manager')
        log_level: Logging level override. If None the environment decides:
                   Development=DEBUG, Staging=INFO, Production=WARNING
        log_file: File for the fallback configuration; defaults to
                  ``logs/<component_name>.log``

    Returns:
        logging.Logger: Configured logger instance
    """
    if log_file is None:
        log_file = f"logs/{component_name}.log"
    return _setup_logging(component_name, log_level, log_file)


def get_logger(component_name: str) -> logging.Logger:
    """Get the logger for a component."""
    return _get_logger(component_name)
