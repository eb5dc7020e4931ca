import logging
from datetime import date
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def log_file_path(log_directory: Union[str, Path], day: Optional[date] = None) -> Path:
    day = day or date.today()
    return Path(log_directory).expanduser() / f"export.{day:%Y-%m-%d}.log"


def setup_logger(
    level: Union[int, str] = logging.INFO,
    log_directory: Optional[Union[str, Path]] = None,
):
    logger = logging.getLogger()
    logger.propagate = False

    # logger is singleton so clear handlers and set level to prevent duplicate logs
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    if log_directory:
        path = log_file_path(log_directory)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
