"""Locations of the Apple Mail library used by the readers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

DEFAULT_VERSION = "V10"
ENV_HOME = "MAIL_READER_HOME"
ENV_VERSION = "MAIL_READER_VERSION"


@dataclass(frozen=True)
class MailConfig:
    """Home directory and store version the library is read from."""

    home: Path
    version: str = DEFAULT_VERSION

    @property
    def library_root(self) -> Path:
        return self.home / "Library" / "Mail" / self.version

    @property
    def envelope_index(self) -> Path:
        return self.library_root / "MailData" / "Envelope Index"

    @classmethod
    def from_environment(cls, environ: Mapping[str, str] | None = None) -> "MailConfig":
        """Build a config from ``MAIL_READER_HOME``/``MAIL_READER_VERSION``."""

        if environ is None:
            environ = os.environ
        home = environ.get(ENV_HOME)
        version = environ.get(ENV_VERSION) or DEFAULT_VERSION
        return cls(
            home=Path(home).expanduser() if home else Path.home(),
            version=version,
        )


__all__ = ["DEFAULT_VERSION", "MailConfig"]
