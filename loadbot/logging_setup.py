#!/usr/bin/env python3
"""
Logging setup shared by the load tester entry point and the dashboard.

Console output is colored; the file handler keeps a plain-text copy of every
record (append mode so consecutive runs accumulate in one file).
"""

import logging
from typing import Optional


# ANSI color codes for terminal output
class Colors:
    HEADER = '\033[95m'
    OKBLUE = '\033[94m'
    OKCYAN = '\033[96m'
    OKGREEN = '\033[92m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'

    INFO = '\033[97m'        # Bright white
    DEBUG = '\033[90m'       # Dark gray
    METRIC = '\033[96m'      # Cyan for metrics
    SUCCESS = '\033[92m'     # Green for success

    CLEAR_SCREEN = '\033[2J'
    CURSOR_HOME = '\033[H'
    HIDE_CURSOR = '\033[?25l'
    SHOW_CURSOR = '\033[?25h'


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output"""

    FORMATS = {
        logging.DEBUG: Colors.DEBUG + '[%(asctime)s] DEBUG - %(message)s' + Colors.ENDC,
        logging.INFO: Colors.INFO + '[%(asctime)s] INFO - %(message)s' + Colors.ENDC,
        logging.WARNING: Colors.WARNING + '[%(asctime)s] WARNING - %(message)s' + Colors.ENDC,
        logging.ERROR: Colors.FAIL + '[%(asctime)s] ERROR - %(message)s' + Colors.ENDC,
        logging.CRITICAL: Colors.FAIL + Colors.BOLD + '[%(asctime)s] CRITICAL - %(message)s' + Colors.ENDC,
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno)
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


def init_logger(name: str, level=logging.INFO, log_file: Optional[str] = 'bot_load_tester.log') -> logging.Logger:
    """Initialize logger with console and file handlers"""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Re-initializing (e.g. main() called twice) replaces the old handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # Console handler with colors
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter())
    logger.addHandler(console_handler)

    # File handler without colors (append mode so runs accumulate)
    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setLevel(logging.DEBUG)
        file_format = logging.Formatter('[%(asctime)s] %(levelname)s - %(message)s')
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)

    return logger


def set_console_enabled(logger: logging.Logger, enabled: bool):
    """Mute or restore the console handlers while the dashboard owns the terminal"""
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) or not isinstance(handler, logging.StreamHandler):
            continue
        if enabled:
            handler.setLevel(getattr(handler, '_saved_level', handler.level))
        else:
            handler._saved_level = handler.level
            handler.setLevel(logging.CRITICAL + 1)
