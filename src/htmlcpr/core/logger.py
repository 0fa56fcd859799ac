"""
Logging Configuration

This module provides centralized logging configuration for htmlcpr. Modules
log through logging.getLogger(__name__), which places them under the
'htmlcpr' logger configured here.
"""

import logging
import logging.handlers
import os
import sys
from typing import Optional, Dict
from pathlib import Path


class HtmlcprLogger:
    """
    Centralized logging system for htmlcpr.

    Always logs to the console; when a log directory is given, also keeps a
    rotating detailed log and a rotating errors-only log.
    """

    def __init__(self, log_dir: Optional[str] = None, app_name: str = "htmlcpr"):
        """
        Initialize the logging system.

        Args:
            log_dir: Directory to store log files, or None for console only
            app_name: Name of the root logger
        """
        self.log_dir = Path(log_dir) if log_dir else None
        self.app_name = app_name
        self.loggers: Dict[str, logging.Logger] = {}

        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    def setup_logger(self, level: int = logging.INFO) -> logging.Logger:
        """
        Set up the application logger with console and file handlers.

        Args:
            level: Console logging level (default: INFO)

        Returns:
            Configured logger instance
        """
        logger = logging.getLogger(self.app_name)
        logger.setLevel(logging.DEBUG)

        # Prevent duplicate handlers
        if logger.handlers:
            for handler in logger.handlers:
                if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
                    handler.setLevel(level)
            return logger

        detailed_formatter = logging.Formatter(
            '%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_formatter = logging.Formatter(
            '%(asctime)s | %(levelname)s | %(message)s',
            datefmt='%H:%M:%S'
        )

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

        if self.log_dir is not None:
            file_handler = logging.handlers.RotatingFileHandler(
                self.log_dir / f"{self.app_name}.log",
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(detailed_formatter)

            error_handler = logging.handlers.RotatingFileHandler(
                self.log_dir / f"{self.app_name}_errors.log",
                maxBytes=5*1024*1024,  # 5MB
                backupCount=3,
                encoding='utf-8'
            )
            error_handler.setLevel(logging.ERROR)
            error_handler.setFormatter(detailed_formatter)

            logger.addHandler(file_handler)
            logger.addHandler(error_handler)

        self.loggers['main'] = logger
        return logger

    def get_logger(self, name: str) -> logging.Logger:
        """
        Get a logger for a specific component.

        Args:
            name: Name of the component

        Returns:
            Logger instance for the component
        """
        full_name = f"{self.app_name}.{name}"
        if full_name not in self.loggers:
            self.loggers[full_name] = logging.getLogger(full_name)
        return self.loggers[full_name]

    def log_system_info(self):
        """Log runtime information for debugging."""
        logger = self.get_logger('system')
        logger.debug(f"Python version: {sys.version}")
        logger.debug(f"Platform: {sys.platform}")
        logger.debug(f"Working directory: {os.getcwd()}")
        if self.log_dir is not None:
            logger.debug(f"Log directory: {self.log_dir.absolute()}")


# Global logger instance
_logger_instance: Optional[HtmlcprLogger] = None


def initialize_logging(log_dir: Optional[str] = None, level: int = logging.INFO) -> logging.Logger:
    """
    Initialize the global logging system.

    Args:
        log_dir: Directory for log files, or None for console only
        level: Console logging level

    Returns:
        The configured application logger
    """
    global _logger_instance
    _logger_instance = HtmlcprLogger(log_dir)
    logger = _logger_instance.setup_logger(level)
    _logger_instance.log_system_info()
    return logger
