import logging
import sys
import contextvars
from typing import Optional

# Context variable to carry the shape pair being mapped across the call chain
_PAIR: contextvars.ContextVar[str] = contextvars.ContextVar("pair", default="-")


class _PairFilter(logging.Filter):
    """Logging filter that injects the current mapping pair from contextvars into the record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        record.pair = _PAIR.get()
        return True


def _build_formatter() -> logging.Formatter:
    return logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | pair=%(pair)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def configure_root_logger(level: str = "INFO") -> None:
    """
    Attach a stdout handler for quickmap logs and set the quickmap level.

    Only the quickmap namespace is touched; handlers installed by the
    embedding application on the root logger are left alone.

    Args:
        level: Log level for quickmap logs (DEBUG, INFO, WARNING, ERROR).

    Safe to call multiple times; it will not duplicate handlers (idempotent).
    """
    quickmap_logger = logging.getLogger("quickmap")
    quickmap_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for h in quickmap_logger.handlers:
        if isinstance(h, logging.StreamHandler) and any(isinstance(f, _PairFilter) for f in h.filters):
            # Already configured; level updated above
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_build_formatter())
    handler.addFilter(_PairFilter())
    quickmap_logger.addHandler(handler)


def get_logger(name: str = "quickmap") -> logging.Logger:
    """
    Get a module-specific logger.

    Handlers are not installed here; a library must not configure output on
    import. Call configure_root_logger() to get quickmap's stdout format.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, _PairFilter) for f in logger.filters):
        logger.addFilter(_PairFilter())
    return logger


def push_pair(pair: Optional[str]) -> Optional[contextvars.Token]:
    """Set the current mapping pair in context and return a token for later reset."""
    if not pair:
        return None
    return _PAIR.set(pair)


def reset_pair(token: Optional[contextvars.Token]) -> None:
    """Reset the mapping pair context using the provided token (if any)."""
    if token is None:
        return
    try:
        _PAIR.reset(token)
    except ValueError:
        # Token created in a different context; leave the current value
        pass


def current_pair() -> str:
    return _PAIR.get()
