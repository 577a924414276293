"""Menu Builder: a workbook-backed editor for point-of-sale menu configuration."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_DIR = Path(os.environ.get("MENU_BUILDER_LOG_DIR", PROJECT_ROOT / ".logs"))
LOG_FILE_NAME = "menu_builder.log"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def _level_from_env() -> int:
    level = logging.getLevelName(os.environ.get("MENU_BUILDER_LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(name: str = __name__, log_dir: Path = LOG_DIR) -> logging.Logger:
    """Attach the rotating menu log and a stderr handler to logger ``name``.

    The file receives every record at the configured level. The console only
    shows warnings and above, so CLI listings on stdout stay readable.
    """

    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = _level_from_env()
    logger.setLevel(level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    log_file = Path(log_dir) / LOG_FILE_NAME
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
    except OSError as exc:
        print(f"menu_builder: logging to stderr only, cannot open '{log_file}': {exc}", file=sys.stderr)
    else:
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(max(level, logging.WARNING))
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


log = configure_logging()
