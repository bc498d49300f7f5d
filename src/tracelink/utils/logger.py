"""
Logging configuration for TraceLink

One rotating session log plus the console. Records carry the thread name
because connection events are produced on the TraceWorker thread and
consumed on the Qt thread.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from logging.handlers import RotatingFileHandler


DEFAULT_LOG_DIR = Path.home() / ".tracelink" / "logs"
LOG_FILE_NAME = "tracelink.log"

LOG_FORMAT = "%(asctime)s [%(threadName)s] %(levelname)s %(name)s: %(message)s"

# Per-frame chatter from these is only wanted when debugging the socket itself
NOISY_LOGGERS = ("websockets", "asyncio")


def setup_logger(log_level=logging.INFO, log_dir: Optional[Path] = None,
                 max_size_mb: int = 5, backup_count: int = 3,
                 debug_socket: bool = False) -> Path:
    """
    Route TraceLink logging to a rotating file and stderr.

    Calling it again replaces the handlers installed by the previous call
    and leaves any other root handlers alone.

    Args:
        log_level: Level for the tracelink loggers and both handlers
        log_dir: Directory for the log file (default: ~/.tracelink/logs)
        max_size_mb: Log size in MB before rotation
        backup_count: Rotated files to keep
        debug_socket: Let websockets/asyncio log below WARNING

    Returns:
        Path of the log file
    """
    log_dir = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in [h for h in root_logger.handlers if getattr(h, "_tracelink", False)]:
        root_logger.removeHandler(handler)
        handler.close()

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding='utf-8'
    )
    console_handler = logging.StreamHandler(sys.stderr)

    for handler in (file_handler, console_handler):
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        handler._tracelink = True
        root_logger.addHandler(handler)

    noisy_level = logging.NOTSET if debug_socket else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    logging.getLogger(__name__).info(f"Logging to {log_file}")
    return log_file
