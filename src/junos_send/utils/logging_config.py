"""Logging configuration for junos-send.

Provides configurable logging with:
- File-based logging with rotation
- Console output for the operator
- Performance timing decorator for NETCONF round trips

Environment Variables:
    JUNOS_SEND_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    JUNOS_SEND_LOG_FILE: Path to log file (default: ~/.junos-send/junos-send.log)
    JUNOS_SEND_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    JUNOS_SEND_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from junos_send.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("netconf_open")
    async def open(self):
        ...
"""
import asyncio
import functools
import logging
import os
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Callable, Any

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("junos_send.perf")
main_logger = logging.getLogger("junos_send")

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-7s | %(message)s"


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("JUNOS_SEND_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".junos-send" / "junos-send.log"
    path_str = os.environ.get("JUNOS_SEND_LOG_FILE", str(default_path))
    return Path(path_str)


def setup_logging(level: Optional[int] = None, log_file: Optional[Path] = None) -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (INFO+ by default, respects JUNOS_SEND_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - Performance logger writing to its own file

    Args:
        level: Console level, overrides the environment
        log_file: Log file path, overrides the environment
    """
    log_level = level if level is not None else get_log_level()
    log_file = log_file or get_log_file()
    max_size_mb = int(os.environ.get("JUNOS_SEND_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("JUNOS_SEND_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-32s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    perf_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | PERF | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Operators read the console, keep it short
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(file_format)

    perf_log_file = log_file.parent / "junos-send-perf.log"
    perf_handler = RotatingFileHandler(
        perf_log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    perf_handler.setLevel(logging.DEBUG)
    perf_handler.setFormatter(perf_format)

    main_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    main_logger.handlers.clear()
    main_logger.addHandler(console_handler)
    main_logger.addHandler(file_handler)

    # Timings only go to their own file; the console stays readable
    perf_logger.setLevel(logging.DEBUG)
    perf_logger.handlers.clear()
    perf_logger.addHandler(perf_handler)
    perf_logger.propagate = False

    # ncclient is chatty at INFO
    logging.getLogger("ncclient").setLevel(logging.WARNING)

    main_logger.debug(f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}")


def timed(operation: str, device_id: Optional[str] = None):
    """Decorator to log execution time of sync/async functions.

    Args:
        operation: Name of the operation (e.g., "netconf_open", "rpc")
        device_id: Optional device identifier (can also be inferred from self.device_id)

    Usage:
        @timed("netconf_open")
        async def open(self):
            ...
    """
    def _report(dev_id: Optional[str], start: float, error: Optional[Exception]) -> None:
        elapsed = (time.perf_counter() - start) * 1000  # ms
        if error is None:
            perf_logger.info(
                f"{operation:20s} | {dev_id or 'N/A':39s} | {elapsed:8.2f}ms | OK"
            )
        else:
            perf_logger.warning(
                f"{operation:20s} | {dev_id or 'N/A':39s} | {elapsed:8.2f}ms | FAIL: {error}"
            )

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            # Try to get device_id from self if not provided
            dev_id = device_id
            if dev_id is None and args and hasattr(args[0], 'device_id'):
                dev_id = args[0].device_id

            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _report(dev_id, start, e)
                raise
            _report(dev_id, start, None)
            return result

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs) -> Any:
            dev_id = device_id
            if dev_id is None and args and hasattr(args[0], 'device_id'):
                dev_id = args[0].device_id

            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _report(dev_id, start, e)
                raise
            _report(dev_id, start, None)
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
