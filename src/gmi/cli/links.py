"""gmilinks - extracts the links from the supplied raw gemtext.

Usage:
  gmilinks [--file=<file>]
  gmilinks -h | --help

Gemtext is read from the file, or piped in on stdin:

  gmiget gemini://some-url/ | gmilinks | fzf

Each link is printed as "<name>|<url>".

Options:
  -f --file=<file>  Gemtext file to extract links from.
  -h --help         Show this help information.
"""

from docopt import docopt

from gmi.cli import open_input
from gmi.gemtext import extract_links

PROGRAM = "gmilinks"


def main(argv=None):
    args = docopt(__doc__, argv=argv)

    with open_input(PROGRAM, args["--file"]) as reader:
        links = extract_links(reader)

    for url, name in links.items():
        print(f"{name}|{url}")


if __name__ == "__main__":
    main()
