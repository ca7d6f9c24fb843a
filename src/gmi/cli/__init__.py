"""Command-line programs built on the gmi package: gmiget, gmifmt and
gmilinks."""

import logging
import os
import sys
from contextlib import contextmanager
from typing import Iterator, NoReturn, Optional, TextIO


def fail(program: str, message: object) -> NoReturn:
    """Print an error message for the program and exit with status 1."""
    print(f"{program}: {message}", file=sys.stderr)
    sys.exit(1)


def configure_logging(verbose: bool = False):
    if not os.getenv("NO_COLOR"):
        logging.addLevelName(logging.WARNING, "\033[1;33mWARN\033[1;0m")
        logging.addLevelName(logging.ERROR, "\033[1;31mERROR\033[1;0m")

    logger = logging.getLogger()
    if verbose:
        logger.setLevel(logging.DEBUG)
        fmt = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
    else:
        logger.setLevel(logging.WARNING)
        fmt = "%(asctime)s [%(levelname)s] %(message)s"

    log_formatter = logging.Formatter(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")
    log_handler = logging.StreamHandler(sys.stderr)
    log_handler.setFormatter(log_formatter)
    logger.addHandler(log_handler)


@contextmanager
def open_input(program: str, path: Optional[str]) -> Iterator[TextIO]:
    """Yields the gemtext to process: the file at path when given, otherwise
    standard input, which must not be a terminal."""
    if path:
        try:
            f = open(path, encoding="utf-8")
        except OSError as e:
            fail(program, e)
        with f:
            yield f
        return

    if sys.stdin.isatty():
        fail(program, "nothing passed into stdin - exiting.")
    yield sys.stdin
