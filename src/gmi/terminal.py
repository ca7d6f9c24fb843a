import logging
import os
import sys

logger = logging.getLogger(__name__)

CONSOLE_DEVICE = "/dev/tty"


def width(fallback: int = 80) -> int:
    """Returns the width of the terminal, in columns.

    The controlling terminal is preferred, so that the width is still known
    when standard input and output are pipes. Falls back to stdout, stdin,
    then to fallback.
    """
    try:
        fd = os.open(CONSOLE_DEVICE, os.O_RDONLY)
    except OSError:
        logger.debug("no controlling terminal")
    else:
        try:
            return os.get_terminal_size(fd).columns
        except OSError:
            pass
        finally:
            os.close(fd)

    for stream in (sys.stdout, sys.stdin):
        try:
            return os.get_terminal_size(stream.fileno()).columns
        except (AttributeError, ValueError, OSError):
            continue
    return fallback
