"""
Loggers for archive reading, writing and pairing.

Library functions log through `get_basic_logger()` unless given a logger, and
never attach handlers themselves. Scripts call `get_logger` to print INFO and
above to stdout, and `add_general_file_handler` to keep a full log.

Rejected archive files and conflicting records are logged at `NOPRINTERROR`
right before the error is raised. A script's log file then names the file or
record at fault, while stdout only shows the traceback once.
"""

import logging
import sys
from typing import Union

NOPRINTCRITICAL = logging.CRITICAL + 1
NOPRINTERROR = logging.ERROR + 1
NOPRINTWARNING = logging.WARNING + 1
NOPRINTINFO = logging.INFO + 1
NOPRINTDEBUG = logging.DEBUG + 1

logging.addLevelName(NOPRINTCRITICAL, "NO_PRINT_CRITICAL")
logging.addLevelName(NOPRINTERROR, "NO_PRINT_ERROR")
logging.addLevelName(NOPRINTWARNING, "NO_PRINT_WARNING")
logging.addLevelName(NOPRINTINFO, "NO_PRINT_INFO")
logging.addLevelName(NOPRINTDEBUG, "NO_PRINT_DEBUG")

THREADED = "THREADED"
BASIC_LOGGER_NAME = "wavearchive"
DEFAULT_LOGGER_NAME = "wavearchive_default"

STDOUT_MESSAGE_FORMAT = "%(asctime)s - %(message)s"
stdout_formatter = logging.Formatter(STDOUT_MESSAGE_FORMAT)

STDOUT_THREADED_MESSAGE_FORMAT = "%(asctime)s - %(threadName)s - %(message)s"
stdout_threaded_formatter = logging.Formatter(STDOUT_THREADED_MESSAGE_FORMAT)

GENERAL_LOGGING_MESSAGE_FORMAT = (
    "%(levelname)8s -- %(asctime)s - %(module)s.%(funcName)s - %(message)s"
)
general_formatter = logging.Formatter(GENERAL_LOGGING_MESSAGE_FORMAT)

GENERAL_THREADED_LOGGING_MESSAGE_FORMAT = "%(levelname)8s -- %(asctime)s - %(threadName)s - %(module)s.%(funcName)s - %(message)s"
general_threaded_formatter = logging.Formatter(GENERAL_THREADED_LOGGING_MESSAGE_FORMAT)


def get_basic_logger() -> logging.Logger:
    """The logger used by library functions when the caller gives none."""
    basic_logger = logging.getLogger(BASIC_LOGGER_NAME)
    basic_logger.setLevel(logging.INFO)
    return basic_logger


def get_logger(
    name: Union[str, None] = DEFAULT_LOGGER_NAME, threaded=False, stdout_printer=True
) -> logging.Logger:
    """Get a logger that prints INFO and above to stdout.

    An existing logger with handlers is returned untouched. The stdout handler
    drops the `NOPRINT*` levels, which the reader and pairing use for errors
    they raise anyway.

    Parameters
    ----------
    name : str | None
        Logger name.
    threaded : bool
        If True, the name is prefixed with ``THREADED_`` and messages carry
        the thread name.
    stdout_printer : bool
        If False, no stdout handler is attached.

    Returns
    -------
    logging.Logger
        The logger, at level DEBUG.
    """
    if name is not None and threaded:
        name = f"{THREADED}_{name}"
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(logging.DEBUG)

    if stdout_printer:
        logger.addHandler(create_stdout_handler(logger.name))

    return logger


def add_general_file_handler(logger: logging.Logger, file_path: str):
    """Append every message of `logger`, NOPRINT levels included, to `file_path`."""
    file_out_handler = logging.FileHandler(file_path)
    if logger.name.startswith(THREADED):
        file_out_handler.setFormatter(general_threaded_formatter)
    else:
        file_out_handler.setFormatter(general_formatter)

    logger.addHandler(file_out_handler)


def create_stdout_handler(logger_name: str) -> logging.StreamHandler:
    print_handler = logging.StreamHandler(sys.stdout)
    print_handler.setLevel(logging.INFO)
    if logger_name.startswith(THREADED):
        print_handler.setFormatter(stdout_threaded_formatter)
    else:
        print_handler.setFormatter(stdout_formatter)
    # NOPRINT levels end in 1
    print_handler.addFilter(lambda record: (record.levelno % 10) != 1)
    return print_handler


def clean_up_logger(logger: logging.Logger):
    for handler in logger.handlers[::-1]:
        if isinstance(handler, logging.FileHandler):
            handler.close()
        logger.removeHandler(handler)


def set_stdout_level(logger: logging.Logger, level: int):
    for handler in logger.handlers:
        # FileHandler subclasses StreamHandler
        if isinstance(handler, logging.StreamHandler) and not isinstance(
            handler, logging.FileHandler
        ):
            handler.setLevel(level)
