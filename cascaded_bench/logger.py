"""Logging infrastructure with a Rich console handler.

Diagnostics go to stderr so the benchmark report on stdout stays readable.
"""

from __future__ import annotations

import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler


_console: Optional[Console] = None
_installed_handlers: List[logging.Handler] = []


def get_console() -> Console:
    """Get the global stderr Rich console."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def is_tty() -> bool:
    """Check if stderr is a TTY (interactive terminal)."""
    return sys.stderr.isatty()


def setup_logging(level: str = "INFO", use_rich: Optional[bool] = None) -> None:
    """Setup logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        use_rich: Whether to use Rich for console output (auto-detects TTY if None)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if use_rich is None:
        use_rich = is_tty()

    root_logger = logging.getLogger()
    # Only replace handlers this module installed; test harnesses attach their own.
    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
    _installed_handlers.clear()
    root_logger.setLevel(log_level)

    console_handler: logging.Handler
    if use_rich:
        console_handler = RichHandler(
            console=get_console(),
            show_time=False,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S',
            )
        )
    console_handler.setLevel(log_level)
    root_logger.addHandler(console_handler)
    _installed_handlers.append(console_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_phase_start(logger: logging.Logger, phase: str, nbytes: int) -> None:
    """Log the start of a GPU phase with its input size."""
    logger.debug(f"Starting {phase} of {nbytes} bytes")


def log_phase_complete(logger: logging.Logger, phase: str, elapsed_s: float, gbs: float) -> None:
    """Log completion of a GPU phase with its timing."""
    logger.info(f"Completed {phase}: {elapsed_s * 1e3:.3f} ms ({gbs:.3f} GB/s)")


def log_benchmark_error(logger: logging.Logger, stage: str, error: str) -> None:
    """Log a fatal benchmark error.

    Args:
        logger: Logger instance
        stage: Stage identifier from the raised BenchmarkError
        error: Error message
    """
    logger.error(f"{stage} failed: {error}")
