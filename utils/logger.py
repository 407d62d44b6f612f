"""
Logger Configuration
Root logging setup for the CLI; library modules only call logging.getLogger(__name__).
"""
import logging
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler
from rich.console import Console


# stderr, so JSON printed on stdout stays machine-readable
console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_FORMAT_SIMPLE = "%(message)s"

LOG_DIR = Path(__file__).parent.parent / "logs"

# Client libraries that log every request at INFO/DEBUG
NOISY_LOGGERS = ("httpx", "httpcore", "googleapiclient.discovery_cache", "google_auth_httplib2")


def configure_logging(
    level: int = logging.INFO,
    *,
    log_file: Optional[str] = None,
    use_rich: bool = True,
) -> logging.Logger:
    """
    Attach console (and optional file) handlers to the root logger.

    Calling it again only adjusts the level, so tests and repeated CLI
    invocations in one process do not stack handlers.

    Args:
        level: log level for the engine's own loggers
        log_file: file name under ``logs/`` (optional)
        use_rich: rich console output instead of the plain format
    """
    root = logging.getLogger()
    root.setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if any(getattr(handler, "_reel_scheduler", False) for handler in root.handlers):
        for handler in root.handlers:
            handler.setLevel(level)
        return root

    if use_rich:
        console_handler: logging.Handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
        )
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE))
    else:
        console_handler = logging.StreamHandler(console.file)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    _attach(root, console_handler, level)

    if log_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(LOG_DIR / log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        _attach(root, file_handler, level)

    return root


def _attach(root: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler._reel_scheduler = True
    root.addHandler(handler)
