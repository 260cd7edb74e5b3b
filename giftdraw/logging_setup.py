import logging
from pathlib import Path

import colorlog

LOGGER_NAME = "giftdraw"

PLAIN_FORMAT = "%(asctime)s - %(levelname)-8s - %(name)s - %(message)s"
COLOR_FORMAT = "%(asctime)s - %(log_color)s%(levelname)-8s%(reset)s - %(name)s - %(message)s"


def setup_logging(level: str = "INFO", log_file: str | None = None) -> logging.Logger:
    """Configure the package logger with colored console output and an optional log file."""
    logger = logging.getLogger(LOGGER_NAME)

    # create_app may run many times in one process (tests)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(level.upper())
    logger.propagate = False

    console_handler = colorlog.StreamHandler()
    console_handler.setFormatter(
        colorlog.ColoredFormatter(
            COLOR_FORMAT,
            datefmt="%Y-%m-%d %H:%M:%S",
            reset=True,
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )
    logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(file_handler)

    return logger
