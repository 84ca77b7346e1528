"""
Root logger setup for the marketplace API. ``create_app`` calls
``setup_logging`` from the lifespan; modules only call ``logging.getLogger``.
"""
import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Client libraries that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "openai", "botocore", "boto3", "urllib3")

_configured = False


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: int | str = logging.INFO, log_file: Path | str | None = None) -> None:
    """Send marketplace logs to stdout and, if given, to ``log_file``.

    Only the first call has an effect, so apps built in the same process
    (tests build many) share one set of handlers.
    """
    global _configured
    if _configured:
        return

    level = _resolve_level(level)
    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    _configured = True
    logging.getLogger(__name__).info("Logging configured at %s", logging.getLevelName(level))


def reset_logging() -> None:
    """Drop the root handlers and allow ``setup_logging`` to run again."""
    global _configured
    _configured = False
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
