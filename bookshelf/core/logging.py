import logging
import sys
from pathlib import Path


NOISY_LOGGERS = {
    "httpx": logging.ERROR,
    "httpcore": logging.ERROR,
    "google_genai": logging.WARNING,
    "urllib3": logging.WARNING,
}

_installed_handlers: list[logging.Handler] = []


def setup_logging(log_level: str = "INFO", log_file: Path | None = None) -> None:
    """Send bookshelf logs to stdout and, optionally, to ``log_file``.

    Calling it again replaces the handlers installed by the previous call.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level.upper())
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
        _installed_handlers.append(handler)

    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
