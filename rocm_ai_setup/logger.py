"""Package logger: console output plus an optional rotating install transcript."""

import sys
import os
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .constants import Constants


LOGGER_NAME = "rocm_ai_setup"
LOG_FORMAT = '[%(asctime)s][%(levelname)-8s]: %(message)s'
DATE_FORMAT = "%y-%m-%d %H:%M:%S"
MEGABYTE = 1024 * 1024


class Logger:
    """Console logger for the provisioning commands.

    The console follows the configured level. The transcript file, when
    enabled, always records DEBUG so that apt, ansible and docker output
    captured by ``run_command`` survives a failed install.

    Loggers obtained with ``logging.getLogger(__name__)`` inside the package
    are children of this one and write through the same handlers.
    """

    def __init__(self, level=logging.INFO, log_file: Optional[str] = None,
                 max_bytes: int = Constants.DEFAULT_LOG_MAX_SIZE_MB * MEGABYTE,
                 backup_count: int = Constants.DEFAULT_LOG_BACKUP_COUNT):
        self.logger = logging.getLogger(LOGGER_NAME)
        # The logger passes everything; handlers decide what is shown.
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers = []
        self.logger.propagate = False
        self.formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

        self.console_handler = logging.StreamHandler(stream=sys.stdout)
        self.console_handler.setFormatter(self.formatter)
        self.console_handler.setLevel(level)
        self.logger.addHandler(self.console_handler)

        self.file_handler = None
        if log_file:
            self.enable_file_logging(log_file, max_bytes, backup_count)

    @property
    def level(self) -> int:
        return self.console_handler.level

    @staticmethod
    def _join(args) -> str:
        return ' '.join(str(arg) for arg in args)

    def info(self, *args):
        self.logger.info(self._join(args))

    def warning(self, *args):
        self.logger.warning(self._join(args))

    def error(self, *args):
        self.logger.error(self._join(args))

    def debug(self, *args):
        self.logger.debug(self._join(args))

    def enable_file_logging(self, log_file: str,
                            max_bytes: int = Constants.DEFAULT_LOG_MAX_SIZE_MB * MEGABYTE,
                            backup_count: int = Constants.DEFAULT_LOG_BACKUP_COUNT) -> Optional[Path]:
        """Start writing a rotating transcript to ``log_file``.

        Args:
            log_file: Path of the transcript; parent directories are created
            max_bytes: Size at which the file is rotated
            backup_count: Number of rotated files kept

        Returns:
            Resolved transcript path, or None when it could not be opened
        """
        if self.file_handler:
            self.logger.debug(f"Transcript already written to {self.file_handler.baseFilename}")
            return Path(self.file_handler.baseFilename)

        log_path = Path(log_file).expanduser()
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(str(log_path), maxBytes=max_bytes,
                                          backupCount=backup_count, encoding='utf-8')
        except OSError as e:
            # Console output still works; a read-only home must not abort provisioning
            self.logger.warning(f"Cannot write log file {log_path}: {e}")
            return None

        handler.setFormatter(self.formatter)
        handler.setLevel(logging.DEBUG)
        self.logger.addHandler(handler)
        self.file_handler = handler
        self.logger.debug(f"Transcript: {log_path} ({max_bytes / MEGABYTE:.1f} MB x {backup_count})")
        return log_path

    def get_log_info(self) -> dict:
        """Describe the active handlers, used by ``detect --json``."""
        info = {
            'level': logging.getLevelName(self.level),
            'file_enabled': self.file_handler is not None,
        }
        if self.file_handler:
            info['log_file'] = self.file_handler.baseFilename
            try:
                info['current_size'] = os.path.getsize(self.file_handler.baseFilename)
            except OSError:
                info['current_size'] = 0
        return info


log = Logger()


def set_log_level(level_str: str):
    """Set the console level from a name such as ``DEBUG``; unknown names mean INFO."""
    level = logging.getLevelName(str(level_str).upper())
    if not isinstance(level, int):
        level = logging.INFO
    log.console_handler.setLevel(level)


SEPARATOR_LINE = Constants.SEPARATOR_LINE
