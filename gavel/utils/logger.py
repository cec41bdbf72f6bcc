"""
Centralized logging configuration for Gavel.

Provides structured logging with color output and separate loggers
for different subsystems (chain, oracle, auction, factory, bridge).

Each subsystem can run at its own level, e.g. `auction=DEBUG` while the
rest of the engine stays at INFO. Handlers are created once, on first
setup; later setup calls only re-apply levels.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Optional, Set, Union

import colorlog

Level = Union[int, str]


def to_level(level: Level) -> int:
    """Resolve a level given as a number or a name ("debug", "INFO")."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


class GavelLogger:
    """Centralized logger for Gavel components"""

    _initialized = False
    _log_dir: Optional[Path] = None
    _overridden: Set[str] = set()

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = False,
        levels: Optional[Dict[str, Level]] = None,
    ):
        """
        Setup logging configuration.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_dir: Directory for log files. If None, uses ./logs
            log_to_file: Whether to write logs to file
            levels: Per-subsystem overrides, e.g. {"auction": "DEBUG"}
        """
        if cls._initialized:
            cls.set_levels(level, levels)
            return

        if log_to_file:
            cls._log_dir = Path(log_dir) if log_dir else Path("logs")
            cls._log_dir.mkdir(exist_ok=True, parents=True)

        root_logger = logging.getLogger("gavel")
        root_logger.handlers.clear()

        # Console handler with colors
        console_handler = colorlog.StreamHandler(sys.stdout)
        console_formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

        if log_to_file and cls._log_dir:
            file_handler = logging.FileHandler(cls._log_dir / "gavel.log")
            file_formatter = logging.Formatter(
                "%(asctime)s [%(name)s] %(levelname)-8s %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
            file_handler.setFormatter(file_formatter)
            root_logger.addHandler(file_handler)

        cls._initialized = True
        cls.set_levels(level, levels)

    @classmethod
    def set_levels(cls, level: Level = logging.INFO, levels: Optional[Dict[str, Level]] = None) -> None:
        """
        Apply the engine-wide level and per-subsystem overrides.

        Overrides from a previous call that are absent now are cleared, so
        those subsystems follow the engine-wide level again.
        """
        level = to_level(level)
        overrides = {name: to_level(value) for name, value in (levels or {}).items()}

        root_logger = logging.getLogger("gavel")
        root_logger.setLevel(level)
        # Handlers must pass the most verbose subsystem through
        handler_level = min([level, *overrides.values()])
        for handler in root_logger.handlers:
            handler.setLevel(handler_level)

        for name in cls._overridden - set(overrides):
            logging.getLogger(f"gavel.{name}").setLevel(logging.NOTSET)
        for name, sub_level in overrides.items():
            logging.getLogger(f"gavel.{name}").setLevel(sub_level)
        cls._overridden = set(overrides)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get a logger for a specific subsystem.

        Args:
            name: Subsystem name (e.g., 'chain', 'auction', 'oracle')

        Returns:
            Logger instance
        """
        if not cls._initialized:
            cls.setup()

        return logging.getLogger(f"gavel.{name}")


# Convenience functions
def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific subsystem"""
    return GavelLogger.get_logger(name)


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    log_to_file: bool = False,
    levels: Optional[Dict[str, Level]] = None,
):
    """Setup logging configuration"""
    GavelLogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file, levels=levels)
