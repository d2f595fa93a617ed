"""
Logging configuration for the command line.
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def resolve_log_level(level_name: str) -> int:
    """Converts a level name such as 'debug' into its numeric value."""
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {level_name}")
    return level


def configure_logging(level_name: str = "WARNING") -> None:
    """
    Sends dockyard log records to stderr so they never mix with command output.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    package_logger = logging.getLogger("dockyard")
    package_logger.handlers = [handler]
    package_logger.setLevel(resolve_log_level(level_name))
