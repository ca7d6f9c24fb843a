"""gmifmt - formats and colours gemtext.

Usage:
  gmifmt [--margin=<columns>] [--file=<file>] [--config=<file>] [-v | --verbose]
  gmifmt -h | --help

Gemtext is read from the file, or piped in on stdin:

  gmiget gemini://some-url/ | gmifmt

Options:
  -m --margin=<columns>  Width of margin to apply to formatted gemtext [default: 0].
  -f --file=<file>       Gemtext file to format.
  -c --config=<file>     Path to gmifmt configuration file.
  -v --verbose           Show verbose details in the log.
  -h --help              Show this help information.
"""

import sys

from docopt import docopt

from gmi import config, terminal
from gmi.cli import configure_logging, fail, open_input
from gmi.gemtext import Formatter, Theme

PROGRAM = "gmifmt"


def main(argv=None):
    args = docopt(__doc__, argv=argv)
    configure_logging(args["--verbose"])

    try:
        margin = int(args["--margin"])
    except ValueError:
        fail(PROGRAM, f"invalid margin: {args['--margin']}")

    try:
        conf = config.load(args["--config"])
    except (OSError, config.ConfigError) as e:
        fail(PROGRAM, e)
    theme = Theme.from_config(conf) if conf else Theme()

    with open_input(PROGRAM, args["--file"]) as reader:
        formatter = Formatter(terminal.width(), margin, theme)
        print()
        formatter.output(reader, sys.stdout)


if __name__ == "__main__":
    main()
