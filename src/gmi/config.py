import logging
import os
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# Directory holding Gemini utility configuration.
CONFIG_DIR = "gemini"
# Name of gmifmt configuration files.
CONFIG_FILENAME = ".gmifmtconf"


class ConfigError(ValueError):
    """A configuration file could not be parsed."""


def search_path(file: Optional[str] = None) -> List[str]:
    """Returns the configuration files to try, in order of precedence:

        <file>, when given
        $XDG_CONFIG_HOME/gemini/.gmifmtconf, when XDG_CONFIG_HOME is set
        $HOME/.config/gemini/.gmifmtconf
        $HOME/.gmifmtconf
    """
    paths = []
    if file:
        paths.append(file)

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        paths.append(os.path.join(xdg, CONFIG_DIR, CONFIG_FILENAME))

    home = os.path.expanduser("~")
    paths.append(os.path.join(home, ".config", CONFIG_DIR, CONFIG_FILENAME))
    paths.append(os.path.join(home, CONFIG_FILENAME))
    return paths


def load(file: Optional[str] = None) -> Optional[Dict[str, str]]:
    """Loads the first configuration file found on the search path.

    A file given explicitly must exist. The other locations are optional,
    and None is returned if none of them holds a configuration file.

    Raises:
        FileNotFoundError: if file is given but does not exist.
        ConfigError: if the configuration file is invalid.
    """
    for i, path in enumerate(search_path(file)):
        try:
            with open(path, encoding="utf-8") as f:
                logger.debug("loading configuration from %s", path)
                return parse(f.read().splitlines())
        except FileNotFoundError:
            if file and i == 0:
                raise
    return None


def parse(lines: List[str]) -> Dict[str, str]:
    """Parses configuration lines of the form key=value. Blank lines are
    ignored."""
    config = {}
    for n, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        parts = line.split("=")
        if len(parts) != 2:
            raise ConfigError(f"invalid configuration item at line {n} ('{line}')")
        key, value = parts
        config[key.strip()] = value.strip()
    return config
