"""
Yield Farming Logging System
============================

A unified, thread-safe logging utility for the ledger. This module integrates
with the standard Python `logging` library and the `rich` library to provide
structured, safe, and visually distinct logging outputs.

Usage:
    >>> from yieldfarm.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Ledger started")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    DEFAULT_LOG_DATE_FORMAT,
    DEFAULT_LOG_FORMAT,
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_MAX_FILE_SIZE,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_FILE_OUTPUT,
)


# Define log file location relative to the project root
PROJECT_ROOT = Path(__file__).parent.parent
LOG_FILE_PATH = PROJECT_ROOT / "logs" / "yieldfarm.log"


class LogManager:
    """
    Manages logging configuration via the Singleton pattern.

    This class ensures that the logging subsystem is initialized exactly once.
    It handles the setup of 'Rich' console and rotating file handlers for
    persistent storage.

    Attributes:
        _instance (LogManager): The singleton instance.
        _lock (threading.Lock): Thread lock for atomic initialization.
    """

    _instance: Optional["LogManager"] = None
    _lock: threading.Lock = threading.Lock()


    def __new__(cls) -> "LogManager":
        """Creates or returns the existing singleton instance."""
        # Double-checked locking pattern for thread-safe singleton initialization
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance


    def __init__(self) -> None:
        if self._initialized:
            return
        self._configured = False
        self._initialized = True


    # "%(name)s" fields; a field missing its leading "%" is printed literally
    _field_re = re.compile(r"(%?)\([a-zA-Z_][a-zA-Z0-9_]*\)[a-zA-Z]")
    # strftime directives plus the separators used in timestamps
    _date_re = re.compile(r"^(?=.*%[a-zA-Z])(?:%[a-zA-Z%]|[0-9 \t:\-/.,TZ+])+$")

    @staticmethod
    def _fallback(reason: str, default: str) -> str:
        print(
            f"{time.strftime(DEFAULT_LOG_DATE_FORMAT)} - yieldfarm.logger - "
            f"{reason}. Using default.",
            file=sys.stderr,
        )
        return default

    @classmethod
    def validate_log_format(cls, log_format: str) -> str:
        """
        Check a logging format string by formatting a dummy record with it.

        Returns the format unchanged, or the default format if it is malformed.
        """
        if not log_format:
            return DEFAULT_LOG_FORMAT

        log_format = str(log_format)
        if any(not m.group(1) for m in cls._field_re.finditer(log_format)):
            return cls._fallback("Validation Error: malformed format field", DEFAULT_LOG_FORMAT)
        try:
            logging.Formatter(fmt=log_format).format(logging.LogRecord(
                name="yieldfarm", level=logging.INFO, pathname="", lineno=0,
                msg="", args=(), exc_info=None,
            ))
        except (ValueError, KeyError, TypeError) as e:
            return cls._fallback(f"Validation Error: {e}", DEFAULT_LOG_FORMAT)
        return log_format

    @classmethod
    def validate_date_format(cls, date_format: str) -> str:
        """Returns the date format, or the default unless it is plain strftime directives and separators."""
        if not date_format:
            return DEFAULT_LOG_DATE_FORMAT
        if not cls._date_re.match(str(date_format)):
            return cls._fallback("Invalid date format", DEFAULT_LOG_DATE_FORMAT)
        return str(date_format)


    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Configures the root logger with console and file handlers.

        Args:
            log_level (Optional[str]): Logging level (DEBUG, INFO, etc.). Defaults to env var.
            log_file (Optional[Path]): Absolute path to log file. Defaults to `logs/yieldfarm.log`.
            console_output (bool): Enable stdout logging. Defaults to True.
            file_output (Optional[bool]): Enable rotating file logging. Defaults to `LOG_FILE_OUTPUT`.
        """
        with self._lock:
            if self._configured:
                return

            level_str = log_level or LOG_LEVEL
            numeric_level = getattr(logging, str(level_str).upper(), logging.INFO)

            root_logger = logging.getLogger()
            root_logger.setLevel(numeric_level)
            root_logger.handlers.clear()

            log_format = self.validate_log_format(LOG_FORMAT)
            date_format = self.validate_date_format(LOG_DATE_FORMAT)

            # Uses UTC for consistency across different server timezones
            formatter = TerminalSafeFormatter(fmt=log_format, datefmt=date_format + " UTC")
            formatter.converter = time.gmtime

            if console_output:
                if LOG_CONSOLE_HIGHLIGHTING:
                    farming_theme = Theme(
                        {
                            "yieldfarm.address":        "cyan",
                            "yieldfarm.amount":         "bold white",
                            "yieldfarm.error_code":     "bold red",
                            "yieldfarm.height":         "bold blue",
                            "yieldfarm.level_critical": "bold red reverse",
                            "yieldfarm.level_debug":    "bold dim",
                            "yieldfarm.level_error":    "bold red",
                            "yieldfarm.level_info":     "bold green",
                            "yieldfarm.level_warning":  "bold yellow",
                            "yieldfarm.logger_name":    "magenta",
                            "yieldfarm.op":             "bold magenta",
                            "yieldfarm.timestamp":      "bold cyan",
                        }
                    )

                    console = Console(theme=farming_theme, highlight=False)

                    rich_handler = RichHandler(
                        console=console,
                        highlighter=FarmingLogHighlighter(),
                        keywords=[],
                        rich_tracebacks=True,
                        omit_repeated_times=False,
                        show_path=False,
                        show_time=False,
                        show_level=False,
                        markup=False,
                    )
                    rich_handler.setLevel(numeric_level)
                    rich_handler.setFormatter(formatter)
                    root_logger.addHandler(rich_handler)
                else:
                    console_handler = logging.StreamHandler(sys.stdout)
                    console_handler.setLevel(numeric_level)
                    console_handler.setFormatter(formatter)
                    root_logger.addHandler(console_handler)

            if file_output is None:
                file_output = bool(LOG_FILE_OUTPUT)

            if file_output:
                log_file_path = log_file or LOG_FILE_PATH
                log_file_path.parent.mkdir(parents=True, exist_ok=True)

                file_handler = logging.handlers.RotatingFileHandler(
                    filename=str(log_file_path),
                    maxBytes=LOG_MAX_FILE_SIZE,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                )
                file_handler.setLevel(numeric_level)
                file_handler.setFormatter(formatter)
                root_logger.addHandler(file_handler)

            self._configured = True


    def get_logger(self, name: str) -> logging.Logger:
        """
        Retrieves a configured logger instance for a specific module.

        Args:
            name (str): The name of the logger (typically `__name__`).
        """
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


    @property
    def is_configured(self) -> bool:
        """Returns True if the logging system has been successfully configured."""
        return self._configured


class TerminalSafeFormatter(logging.Formatter):
    """
    A formatter class that sanitizes log output.

    Strips ANSI escape sequences and non-printable control characters so that
    user-supplied values (crop types, addresses) cannot manipulate the terminal
    or forge extra log lines.
    """

    # Matches ANSI CSI sequences (colors, cursor moves) and single ESC chars
    _ansi_escape_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"
        r"|\x1b[@-Z\\-_]"
    )
    # Matches control chars (0x00-0x1F) excluding Tab and Newline
    _control_chars_re = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
    _carriage_return_re = re.compile(r"\r")


    @classmethod
    def sanitize(cls, text: str) -> str:
        """Removes potentially dangerous characters from the provided text."""
        if not text:
            return text
        text = cls._ansi_escape_re.sub("", text)
        text = cls._carriage_return_re.sub("", text)
        text = cls._control_chars_re.sub("", text)
        return text


    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class FarmingLogHighlighter(RegexHighlighter):
    """Custom Rich Highlighter for ledger logs."""

    base_style = "yieldfarm."
    highlights = [
        r"(?P<address>\b0x[0-9a-fA-F]{4,}\b)",
        r"(?P<amount>(?<![\w.])\d+(?:\.\d+)?(?= units\b))",
        r"(?P<error_code>\berr-[a-z-]+\b)",
        r"(?P<height>\bheight \d+\b)",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_info>\bINFO\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<op>\b[A-Z]+(?:_[A-Z]+)+\b)",
        r"(?P<timestamp>^(.*?)UTC)",
    ]


_manager = LogManager()

def get_logger(name: str) -> logging.Logger:
    """
    Public accessor of the logging system.
    Delegates to the Singleton LogManager, ensuring configuration is applied.
    """
    return _manager.get_logger(name)

# Auto-configure on import to ensure immediate availability
_manager.configure()
