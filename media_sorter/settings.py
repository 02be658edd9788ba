"""
Last-used folders, persisted between CLI sessions in an INI file.
"""

import configparser
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

SECTION = "Settings"


def default_settings_path() -> Path:
    return Path.home() / ".media_sorter.ini"


@dataclass
class Settings:
    """
    Persisted shell settings.

    Stored in ``~/.media_sorter.ini`` under ``[Settings]``.
    """

    source: str = ""
    target: str = ""

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Settings":
        path = path or default_settings_path()
        parser = configparser.ConfigParser()
        try:
            parser.read(path, encoding="utf-8")
        except (OSError, configparser.Error) as e:
            logging.getLogger(__name__).debug(f"Ignoring unreadable settings file {path}: {e}")
            return cls()
        if not parser.has_section(SECTION):
            return cls()
        return cls(
            source=parser.get(SECTION, "Source", fallback=""),
            target=parser.get(SECTION, "Target", fallback=""),
        )

    def save(self, path: Optional[Path] = None) -> None:
        path = path or default_settings_path()
        parser = configparser.ConfigParser()
        parser.optionxform = str
        parser[SECTION] = {"Source": self.source, "Target": self.target}
        with open(path, "w", encoding="utf-8") as f:
            parser.write(f)
