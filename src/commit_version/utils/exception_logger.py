"""Centralized exception logger for Commit Version.

Records failed resolutions and failed git commands with full debugging
context (timestamp, stack trace, command details) in a per-process log file
under the user's home directory. The log never lives inside the inspected
repository, where it would show up as an untracked change.
"""

import json
import os
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


class ExceptionLogger:
    """Centralized exception logging facility."""

    _instance: Optional["ExceptionLogger"] = None
    log_file_path: Optional[Path] = None

    def __init__(self, log_file_path: Path):
        """Initialize exception logger with specific log file path.

        Args:
            log_file_path: Path to the log file for writing exceptions
        """
        self.log_file_path = log_file_path

    @classmethod
    def initialize(cls, log_dir: Optional[Path] = None) -> "ExceptionLogger":
        """Initialize the global exception logger (idempotent singleton).

        WARNING: This is a singleton. If already initialized, returns the existing
        instance rather than creating a new one. Tests should manually reset
        cls._instance = None if they need fresh instances.

        Args:
            log_dir: Directory for log files (default: ~/.commit-version/logs)

        Returns:
            Initialized ExceptionLogger instance (singleton)
        """
        if cls._instance is not None:
            return cls._instance

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        pid = os.getpid()

        if log_dir is None:
            log_dir = Path.home() / ".commit-version" / "logs"

        # The file itself is created lazily by the first entry
        instance = cls(log_dir / f"error_{timestamp}_{pid}.log")
        cls._instance = instance
        return instance

    @classmethod
    def get_instance(cls) -> Optional["ExceptionLogger"]:
        """Get the current exception logger instance.

        Returns:
            Current ExceptionLogger instance or None if not initialized
        """
        return cls._instance

    def log_exception(
        self,
        exception: BaseException,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log an exception with full context.

        Args:
            exception: The exception to log
            context: Additional context data to include in log (optional)
        """
        if not self.log_file_path:
            return

        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "exception_type": type(exception).__name__,
            "exception_message": str(exception),
            "stack_trace": "".join(
                traceback.format_exception(
                    type(exception), exception, exception.__traceback__
                )
            ),
            "context": context or {},
        }

        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.log_file_path, "a") as f:
            f.write(json.dumps(log_entry, indent=2, default=str))
            f.write("\n---\n")
