"""Map Envelope Index mailbox URLs to directories in the on-disk mail store.

The store under ``~/Library/Mail/V10`` names mailbox folders ``<name>.mbox``
and marks them with an ``Info.plist``. Messages live one level further down,
inside an opaque store directory::

    V10/<account-uuid>/INBOX.mbox/Info.plist
    V10/<account-uuid>/INBOX.mbox/<store-uuid>/Data/4/4/0/Messages/0447630.emlx
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from email import policy
from email.message import Message as EmailMessage
from email.parser import BytesParser
from pathlib import Path
from typing import BinaryIO

from lib import emlx
from mail_reader.errors import wrap_permission_error

logger = logging.getLogger(__name__)

MARKER_FILE = "Info.plist"
MAILBOX_SUFFIX = ".mbox"
DATA_DIRECTORY = "Data"
MESSAGE_EXTENSIONS = (".emlx", ".partial.emlx")

# Never hold message folders of their own.
_SKIP_DIRECTORIES = {
    DATA_DIRECTORY,
    "MailData",
}


def rowid_to_relative_path(rowid: str) -> str:
    """Return the sharded location of message ``rowid`` below a ``Data`` folder.

    ``"0447630"`` becomes ``"4/4/0/Messages/0447630"``.
    """

    if len(rowid) < 3:
        raise ValueError(f"message id too short to shard: {rowid!r}")
    return f"{rowid[2]}/{rowid[1]}/{rowid[0]}/Messages/{rowid}"


def mailbox_key(root: Path, mailbox_dir: Path) -> str:
    """Return ``mailbox_dir`` in the form stored in the index, minus ``imap://``."""

    relative = Path(mailbox_dir).relative_to(root).as_posix()
    return relative.replace(MAILBOX_SUFFIX, "")


def gather_mailbox_paths(root: Path) -> dict[str, Path]:
    """Return a mapping of mailbox keys to the ``Data`` folders beneath ``root``.

    Single pass: a directory holding ``Info.plist`` is marked when visited, and
    its direct, non-``.mbox`` child is matched on a later visit.
    """

    root = Path(root)
    paths: dict[str, Path] = {}
    marked: set[str] = set()

    def _raise(exc: OSError) -> None:
        raise wrap_permission_error(exc)

    for current, dirs, files in os.walk(root, onerror=_raise):
        dirs[:] = sorted(d for d in dirs if d not in _SKIP_DIRECTORIES)

        parent = os.path.dirname(current)
        for candidate in marked:
            if not current.startswith(candidate):
                continue
            if parent != candidate or current.endswith(MAILBOX_SUFFIX):
                continue
            key = mailbox_key(root, Path(candidate))
            target = Path(current) / DATA_DIRECTORY
            if key in paths and paths[key] != target:
                logger.debug("Mailbox %s remapped from %s to %s", key, paths[key], target)
            paths[key] = target

        if MARKER_FILE in files:
            logger.debug("Marked mailbox directory %s", current)
            marked.add(current)

    logger.debug("Resolved %d mailbox paths beneath %s", len(paths), root)
    return paths


@dataclass(frozen=True)
class Message:
    """Handle on one message file, without its ``.emlx`` extension."""

    path_without_extension: Path

    @property
    def rowid(self) -> str:
        return self.path_without_extension.name

    def candidates(self) -> list[Path]:
        base = str(self.path_without_extension)
        return [Path(base + extension) for extension in MESSAGE_EXTENSIONS]

    def open(self) -> emlx.BoundedReader:
        """Open the full or partial ``.emlx`` file and strip its framing.

        The caller owns the returned reader and must close it. When the
        framing is malformed, :class:`lib.emlx.MalformedFramingError` carries
        the open, unstripped file on ``fallback`` and the caller owns that too.
        """

        full, partial = self.candidates()
        try:
            handle = self._open_candidate(full)
        except FileNotFoundError:
            handle = self._open_candidate(partial)

        try:
            return emlx.strip_emlx(handle)
        except emlx.MalformedFramingError:
            raise
        except BaseException:
            handle.close()
            raise

    @staticmethod
    def _open_candidate(path: Path) -> BinaryIO:
        try:
            return path.open("rb")
        except OSError as exc:
            raise wrap_permission_error(exc)

    def _open_strict(self) -> emlx.BoundedReader:
        try:
            return self.open()
        except emlx.MalformedFramingError as exc:
            if exc.fallback is not None:
                exc.fallback.close()
            raise

    def read(self) -> bytes:
        with self._open_strict() as reader:
            return reader.read()

    def parse(self) -> EmailMessage:
        """Return the message parsed with :mod:`email`'s default policy."""

        return BytesParser(policy=policy.default).parsebytes(self.read())


__all__ = [
    "MARKER_FILE",
    "Message",
    "gather_mailbox_paths",
    "mailbox_key",
    "rowid_to_relative_path",
]
