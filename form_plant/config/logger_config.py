import logging
import sys
from pathlib import Path
from typing import Optional
from form_plant.config.env_config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "multipart")


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_dir: Optional[str] = None) -> None:
    """
    Configure application-wide logging.

    Everything goes to stdout at LOG_LEVEL. When LOG_TO_FILE is on, all
    records are also written to app.log and errors to error.log.
    """
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings.LOG_TO_FILE:
        directory = Path(log_dir or "logs")
        directory.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(_file_handler(directory / "app.log", logging.DEBUG, formatter))
        root_logger.addHandler(_file_handler(directory / "error.log", logging.ERROR, formatter))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
