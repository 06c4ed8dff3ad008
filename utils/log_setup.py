"""
Logging setup shared by the command-line entry points.
"""

import logging
import config

def resolve_level(level_name: str) -> int:
    """Map a SEED_LOG_LEVEL value (silent, info, debug) to a logging level."""
    name = (level_name or "info").strip().lower()
    if name not in config.LOG_LEVELS:
        raise ValueError(f"Unknown log level '{level_name}', expected one of: {', '.join(config.LOG_LEVELS)}")
    if name == "silent":
        return logging.CRITICAL + 1
    return logging.DEBUG if name == "debug" else logging.INFO

def configure_logging(level_name: str = None) -> int:
    """Configure root logging once per process and return the level applied."""
    level = resolve_level(level_name or config.SEED_LOG_LEVEL)
    logging.basicConfig(level=level, format=config.LOG_FORMAT, force=True)
    logging.disable(logging.CRITICAL if level > logging.CRITICAL else logging.NOTSET)
    return level
