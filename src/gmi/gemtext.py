"""Formatting of gemtext, the text/gemini markup, for terminal output.

Each gemtext line is turned into a block: its line type (link, heading,
list item, ...) and one or more physical lines of text, word-wrapped to the
terminal width. Blocks are rendered with a margin, their prefix and an
optional 24-bit colour taken from a Theme.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, TextIO

# Reset code for 24-bit foreground colours.
CLOSE = "\x1b[39m"

_HEX_RE = re.compile(r"#?([0-9a-fA-F]*)")
_LINK_SEPARATORS = " \t"


@enum.unique
class LineType(enum.Enum):
    """The kinds of gemtext lines, with the prefix that introduces them."""

    TEXT = "text"
    LINK = "link"
    PREFORMATTED_TOGGLE = "preformatted_toggle"
    PREFORMATTED = "preformatted"
    HEADING = "heading"
    HEADING2 = "heading2"
    HEADING3 = "heading3"
    LIST_ITEM = "list_item"
    QUOTE = "quote"

    def __repr__(self):
        return self.name

    @property
    def prefix(self) -> str:
        return _PREFIXES[self]


_PREFIXES = {
    LineType.TEXT: "",
    LineType.LINK: "=>",
    LineType.PREFORMATTED_TOGGLE: "```",
    LineType.PREFORMATTED: "",
    LineType.HEADING: "#",
    LineType.HEADING2: "##",
    LineType.HEADING3: "###",
    LineType.LIST_ITEM: "*",
    LineType.QUOTE: ">",
}

# Order matters: longer heading prefixes must be tried first.
_PREFIXED_TYPES = (
    LineType.QUOTE,
    LineType.HEADING3,
    LineType.HEADING2,
    LineType.HEADING,
    LineType.LIST_ITEM,
    LineType.LINK,
)


def line_type(line: str, preformatted: bool = False) -> LineType:
    """Returns the type of a gemtext line. Inside a preformatted block every
    line but the closing toggle is preformatted."""
    if line.startswith(LineType.PREFORMATTED_TOGGLE.prefix):
        return LineType.PREFORMATTED_TOGGLE
    if preformatted:
        return LineType.PREFORMATTED
    for t in _PREFIXED_TYPES:
        if line.startswith(t.prefix):
            return t
    return LineType.TEXT


def wrap(width: int, line: str) -> List[str]:
    """Wraps the line on word boundaries so that each returned line fits in
    width characters, unless a single word is longer than that.

    An empty line is kept as a single empty line; a line made only of spaces
    produces no lines at all.
    """
    if not line:
        return [""]

    words = line.split()
    if not words:
        return []

    wrapped = []
    current = words[0]
    space_left = width - len(current)
    for word in words[1:]:
        if len(word) + 1 > space_left:
            wrapped.append(current)
            current = word
            space_left = width - len(current)
        else:
            current += " " + word
            space_left -= 1 + len(word)
    wrapped.append(current)
    return wrapped


def split_link(line: str) -> tuple[str, str]:
    """Splits the body of a link line, i.e. without its "=>" prefix, into
    its URL and its (possibly empty) user-friendly name.

    Link lines are defined as:

        =>[<whitespace>]<URL>[<whitespace><USER-FRIENDLY LINK NAME>]
    """
    line = line.lstrip(_LINK_SEPARATORS)
    match = re.search(f"[{_LINK_SEPARATORS}]", line)
    if match is None:
        return line.strip(_LINK_SEPARATORS), ""
    idx = match.start()
    return line[:idx], line[idx:].strip(_LINK_SEPARATORS)


def format_link(line: str) -> str:
    """Formats the body of a link line as "name [url]", or "[url]" when the
    link has no name."""
    url, name = split_link(line)
    if name:
        return f"{name} [{url}]"
    return f"[{url}]"


@dataclass(frozen=True)
class Colour:
    red: int = 0
    green: int = 0
    blue: int = 0

    @classmethod
    def from_hex(cls, value: str) -> Colour:
        """Parses a hex colour such as "#2340ff" or "00f"; the leading "#" is
        optional. Invalid values give black."""
        digits = _HEX_RE.match(value).group(1)  # type: ignore[union-attr]
        if len(digits) == 6:
            return cls(int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))
        elif len(digits) == 3:
            return cls(*(int(d, 16) * 17 for d in digits))
        return cls()

    def ansi(self) -> str:
        """Returns the escape sequence selecting this colour as 24-bit
        foreground colour."""
        return f"\x1b[38;2;{self.red};{self.green};{self.blue}m"


# Configuration keys of the colour of each line type.
THEME_KEYS = {
    "preformatted": LineType.PREFORMATTED,
    "header": LineType.HEADING,
    "header2": LineType.HEADING2,
    "header3": LineType.HEADING3,
    "quoted": LineType.QUOTE,
    "link": LineType.LINK,
}


@dataclass(frozen=True)
class Theme:
    """Colours assigned to line types. Line types without a colour are
    rendered with the terminal's default foreground colour."""

    colours: Mapping[LineType, Colour] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Mapping[str, str]) -> Theme:
        """Builds a theme from configuration keys (see THEME_KEYS) mapped to
        hex colours. Unknown keys are ignored."""
        return cls(
            {t: Colour.from_hex(config[key]) for key, t in THEME_KEYS.items() if key in config}
        )

    def colour(self, t: LineType) -> Optional[Colour]:
        return self.colours.get(t)


@dataclass
class Block:
    """A single line of gemtext, parsed and word-wrapped. A block renders
    as one physical line per entry of lines."""

    line_type: LineType
    lines: List[str] = field(default_factory=list)

    @classmethod
    def parse(cls, width: int, margin: int, preformatted: bool, line: str) -> Block:
        t = line_type(line, preformatted)
        text = line[len(t.prefix) :]

        if t is LineType.PREFORMATTED:
            return cls(t, [text])
        elif t is LineType.LINK:
            return cls(t, [format_link(text)])
        elif t is LineType.PREFORMATTED_TOGGLE:
            return cls(t)

        # Room left once both margins and the prefix column are taken.
        available = width - margin * 2 - (len(t.prefix) + 1)
        return cls(t, wrap(available, text))

    def render(self, margin: int, theme: Optional[Theme] = None) -> str:
        colour = theme.colour(self.line_type) if theme is not None else None
        prefix = self.line_type.prefix
        out = []
        for i, line in enumerate(self.lines):
            out.append(" " * margin)
            if colour is not None:
                out.append(colour.ansi())

            if self.line_type is not LineType.LINK and prefix:
                if self.line_type is LineType.LIST_ITEM and i > 0:
                    # continuation lines of a list item hang under its text
                    out.append("  ")
                else:
                    out.append(prefix + " ")

            out.append(line)
            if colour is not None:
                out.append(CLOSE)
            out.append("\n")
        return "".join(out)


class Formatter:
    """Formatter renders gemtext documents for a terminal.

    Args:
        width: Width of the terminal, in columns.
        margin: Number of columns left blank on each side of the text.
        theme: Colours of the line types.
    """

    def __init__(self, width: int, margin: int = 0, theme: Optional[Theme] = None):
        self.width = width
        self.margin = margin
        self.theme = theme or Theme()

    def blocks(self, lines: Iterable[str]) -> Iterator[Block]:
        preformatted = False
        for line in lines:
            block = Block.parse(
                self.width, self.margin, preformatted, line.rstrip("\r\n")
            )
            if block.line_type is LineType.PREFORMATTED_TOGGLE:
                preformatted = not preformatted
                continue
            yield block

    def format(self, lines: Iterable[str]) -> Iterator[str]:
        for block in self.blocks(lines):
            yield block.render(self.margin, self.theme)

    def output(self, reader: Iterable[str], writer: TextIO):
        """Formats the gemtext read from reader (any iterable of lines, such
        as a text file) and writes it to writer."""
        for chunk in self.format(reader):
            writer.write(chunk)


def extract_links(lines: Iterable[str]) -> Dict[str, str]:
    """Returns the links of a gemtext document, mapping each URL to its
    user-friendly name ("" when the link has none). Lines of preformatted
    blocks are never links."""
    links = {}
    preformatted = False
    for line in lines:
        line = line.rstrip("\r\n")
        t = line_type(line, preformatted)
        if t is LineType.PREFORMATTED_TOGGLE:
            preformatted = not preformatted
        elif t is LineType.LINK:
            url, name = split_link(line[len(t.prefix) :])
            links[url] = name
    return links
