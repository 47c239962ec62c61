"""
Logging helpers shared by the importer, the resolver and the API.

- setup_logging: configure the root logger from the `logging` config section
- sanitize_for_logging: strip control characters from user or feed text
  before it reaches a log line
"""

import re
import logging
from pathlib import Path
from typing import Optional, Any


def sanitize_for_logging(text: Optional[str], max_length: int = 500) -> str:
    """Sanitize user input for safe logging, preventing log injection

    Removes newlines, carriage returns, and other control characters
    that could be used to inject fake log entries.

    Args:
        text: User input or raw feed text
        max_length: Truncate the result to this many characters

    Returns:
        Sanitized text safe for logging
    """
    if not text:
        return ''
    # Remove newlines, carriage returns, and other control characters
    sanitized = re.sub(r'[\r\n\x00-\x1f\x7f-\x9f]', ' ', str(text))
    # Collapse multiple spaces
    sanitized = re.sub(r'\s+', ' ', sanitized).strip()
    return sanitized[:max_length] if len(sanitized) > max_length else sanitized


def setup_logging(logging_config: Optional[Any] = None, verbose: bool = False) -> None:
    """Configure the root logger with console and file handlers

    Args:
        logging_config: LoggingConfig section (level, file, console, format);
            defaults are used when omitted
        verbose: Force DEBUG level regardless of config
    """
    level_name = getattr(logging_config, 'level', 'INFO')
    log_file = getattr(logging_config, 'file', None)
    enable_console = getattr(logging_config, 'console', True)
    fmt = getattr(logging_config, 'format',
                  '%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    level = logging.DEBUG if verbose else getattr(logging, str(level_name).upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()  # Remove any existing handlers

    formatter = logging.Formatter(fmt)

    if enable_console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
