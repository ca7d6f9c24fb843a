"""gmiget - gets Gemini pages.

Usage:
  gmiget [-I] [--verify] [--timeout=<seconds>] [-v | --verbose] [<url>]
  gmiget -h | --help

The URL may also be piped in on stdin.

Options:
  -I                      Output the response status only.
     --verify             Verify server certificates against the system trust store.
     --timeout=<seconds>  Connect timeout, in seconds [default: 9].
  -v --verbose            Show verbose details in the log.
  -h --help               Show this help information.
"""

import sys

from docopt import docopt

from gmi import client
from gmi.cli import configure_logging, fail
from gmi.error import GeminiError
from gmi.status import status_line

PROGRAM = "gmiget"


def main(argv=None):
    args = docopt(__doc__, argv=argv)
    configure_logging(args["--verbose"])

    url = args["<url>"]
    if url is None:
        if sys.stdin.isatty():
            fail(PROGRAM, "missing Gemini URL")
        url = sys.stdin.read().rstrip("\n")

    try:
        timeout = float(args["--timeout"])
    except ValueError:
        fail(PROGRAM, f"invalid timeout: {args['--timeout']}")

    tls = client.verify() if args["--verify"] else client.insecure()
    try:
        resp = client.Client(client.timeout(timeout), tls).get(url)
    except (GeminiError, ValueError) as e:
        fail(PROGRAM, f"could not open URL: {e}")

    if args["-I"]:
        print(status_line(resp.status))
    else:
        sys.stdout.flush()
        sys.stdout.buffer.write(resp.body)
        sys.stdout.buffer.flush()


if __name__ == "__main__":
    main()
