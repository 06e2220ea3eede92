"""Entry point tying the mail catalog, store layout, and index together."""

from __future__ import annotations

import logging
import sqlite3
import subprocess
from pathlib import Path
from typing import Callable, Iterable, Mapping

from mail_reader.config import MailConfig
from mail_reader.readers import accounts, envelope_index, mail_paths
from mail_reader.readers.accounts import INBOX, Mailbox, MailboxCatalog, MailboxRecord
from mail_reader.readers.envelope_index import MailboxQuery
from mail_reader.readers.mail_paths import Message

logger = logging.getLogger(__name__)


class MailLibrary:
    """Mail.app accounts, mailbox directories, and the open index.

    The library reads a store that Mail.app may be writing to at the same
    time; results are only consistent while Mail.app leaves it alone.
    """

    def __init__(
        self,
        catalog: MailboxCatalog,
        path_map: Mapping[str, Path],
        connection: sqlite3.Connection,
    ):
        self.catalog = catalog
        self.path_map = dict(path_map)
        self._connection = connection

    @classmethod
    def open(
        cls,
        config: MailConfig,
        *,
        records: Iterable[MailboxRecord] | None = None,
        runner: accounts.Runner = subprocess.run,
    ) -> "MailLibrary":
        """Enumerate accounts, walk the store, and open the index.

        ``records`` skips the ``osascript`` call, e.g. for synthetic stores.
        """

        if records is None:
            records = accounts.list_mailbox_records(runner)
        catalog = MailboxCatalog.from_records(records)
        logger.debug("Catalog holds %d mailboxes", len(catalog))

        path_map = mail_paths.gather_mailbox_paths(config.library_root)
        connection = envelope_index.open_envelope_index(config.envelope_index)
        return cls(catalog, path_map, connection)

    def mailbox(self, account: str, name: str = INBOX) -> Mailbox:
        return self.catalog.lookup(account, name)

    def query(self, query: MailboxQuery) -> Callable[[], list[Message]]:
        return envelope_index.build_query(self._connection, self.path_map, query)

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "MailLibrary":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


__all__ = ["MailLibrary"]
