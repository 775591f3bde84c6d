"""
Shared helpers.
"""
import logging

from app.core import config


_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_configured = False


def _configure_root() -> None:
    global _configured
    if _configured:
        return
    logging.basicConfig(level=config.LOG_LEVEL.upper(), format=_LOG_FORMAT)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger.

    Usage:
        log = get_logger(__name__)
        log.info("Created group %s", group.name)
    """
    _configure_root()
    return logging.getLogger(name)


def merge_refs(values, *extra) -> list[str]:
    """Return a sorted, de-duplicated list of ``values`` plus ``extra``."""
    return sorted(set(values or ()) | set(extra))


def drop_refs(values, *removed) -> list[str]:
    """Return a sorted list of ``values`` without ``removed``."""
    return sorted(set(values or ()) - set(removed))
