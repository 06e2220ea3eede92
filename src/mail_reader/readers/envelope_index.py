"""Queries against Mail.app's ``Envelope Index`` SQLite database."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping
from urllib.parse import unquote, urlsplit

from mail_reader.errors import UnresolvedMailboxPathError, wrap_permission_error
from mail_reader.readers.accounts import Mailbox
from mail_reader.readers.mail_paths import Message, rowid_to_relative_path

logger = logging.getLogger(__name__)

GET_MESSAGES = """
SELECT
    m.ROWID AS id,
    mbx.url AS url
FROM
    messages m
LEFT JOIN
    mailboxes mbx
ON
    m.mailbox = mbx.ROWID
"""


@dataclass(frozen=True)
class MailboxQuery:
    """Which mailbox to read and how many messages to fetch per call.

    ``batch_size`` of zero returns every matching message in one call.
    """

    mailbox: Mailbox = field(default_factory=Mailbox)
    batch_size: int = 0


def open_envelope_index(path: Path) -> sqlite3.Connection:
    """Open the index read-only; the caller must close the connection."""

    uri = f"{Path(path).resolve().as_uri()}?mode=ro"
    try:
        return sqlite3.connect(uri, uri=True)
    except sqlite3.Error as exc:
        raise wrap_permission_error(exc)


def _build_sql(query: MailboxQuery) -> str:
    sql = GET_MESSAGES
    if not query.mailbox.is_empty:
        sql += "WHERE mbx.url = ?\n"
    sql += "ORDER BY m.date_received DESC\n"
    if query.batch_size > 0:
        sql += "LIMIT ? OFFSET ?\n"
    return sql


def relative_mailbox_path(url: str | None) -> str:
    """Return the host and decoded path of a mailbox URL, e.g. ``UUID/INBOX``."""

    parts = urlsplit(url or "")
    return parts.netloc + unquote(parts.path)


def build_query(
    connection: sqlite3.Connection,
    path_map: Mapping[str, Path],
    query: MailboxQuery,
) -> Callable[[], list[Message]]:
    """Return a callable fetching messages for ``query``, newest first.

    With a positive ``batch_size`` every call returns the next page. Pages
    advance even when the previous one was short; an empty result marks the
    end.
    """

    sql = _build_sql(query)
    calls = 0

    def fetch() -> list[Message]:
        nonlocal calls
        parameters: list[object] = []
        if not query.mailbox.is_empty:
            parameters.append(query.mailbox.url)
        if query.batch_size > 0:
            parameters.extend([query.batch_size, calls * query.batch_size])
            calls += 1

        logger.debug("Querying envelope index with %s", parameters)
        cursor = connection.execute(sql, parameters)
        try:
            rows = cursor.fetchall()
        finally:
            cursor.close()

        messages: list[Message] = []
        for rowid, url in rows:
            relative_path = relative_mailbox_path(url)
            base_path = path_map.get(relative_path)
            if base_path is None:
                raise UnresolvedMailboxPathError(relative_path)
            messages.append(Message(Path(base_path) / rowid_to_relative_path(str(rowid))))
        return messages

    return fetch


__all__ = [
    "GET_MESSAGES",
    "MailboxQuery",
    "build_query",
    "open_envelope_index",
    "relative_mailbox_path",
]
