"""Tests for assembling the mail library from a synthetic home directory."""

import plistlib
import sqlite3
import subprocess
from pathlib import Path

import pytest

from mail_reader.config import MailConfig
from mail_reader.errors import ExternalToolError, MailboxNotFoundError
from mail_reader.library import MailLibrary
from mail_reader.readers.envelope_index import MailboxQuery

RECORDS = [("ACCOUNT-UUID", "Work", "INBOX"), ("ACCOUNT-UUID", "Work", "Archive")]


def _write_info_plist(directory: Path, name: str) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    with (directory / "Info.plist").open("wb") as handle:
        plistlib.dump({"MailboxName": name}, handle)


def _write_emlx(target: Path, subject: str) -> bytes:
    payload = f"From: Alice <alice@example.com>\nSubject: {subject}\n\nBody\n".encode("utf-8")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(str(len(payload)).encode("ascii") + b"\n" + payload + b"\n<plist/>")
    return payload


def _build_home(home: Path) -> MailConfig:
    config = MailConfig(home=home)
    account_dir = config.library_root / "ACCOUNT-UUID"
    for mailbox in ("INBOX", "Archive"):
        _write_info_plist(account_dir / f"{mailbox}.mbox", mailbox)
    inbox_data = account_dir / "INBOX.mbox" / "STORE" / "Data"
    archive_data = account_dir / "Archive.mbox" / "STORE" / "Data"
    _write_emlx(inbox_data / "0" / "0" / "1" / "Messages" / "1000001.emlx", "Older")
    _write_emlx(inbox_data / "0" / "0" / "1" / "Messages" / "1000002.partial.emlx", "Newer")
    _write_emlx(archive_data / "0" / "0" / "2" / "Messages" / "2000001.emlx", "Archived")

    config.envelope_index.parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(config.envelope_index)
    try:
        connection.executescript(
            """
            CREATE TABLE mailboxes (ROWID INTEGER PRIMARY KEY, url TEXT);
            CREATE TABLE messages (ROWID INTEGER PRIMARY KEY, mailbox INTEGER, date_received INTEGER);
            INSERT INTO mailboxes VALUES (1, 'imap://ACCOUNT-UUID/INBOX');
            INSERT INTO mailboxes VALUES (2, 'imap://ACCOUNT-UUID/Archive');
            INSERT INTO messages VALUES (1000001, 1, 100);
            INSERT INTO messages VALUES (1000002, 1, 200);
            INSERT INTO messages VALUES (2000001, 2, 150);
            """
        )
        connection.commit()
    finally:
        connection.close()
    return config


def test_library_reads_messages_for_mailbox(tmp_path: Path) -> None:
    config = _build_home(tmp_path)

    with MailLibrary.open(config, records=RECORDS) as library:
        inbox = library.mailbox("Work")
        messages = library.query(MailboxQuery(mailbox=inbox, batch_size=10))()
        subjects = [message.parse()["Subject"] for message in messages]

    assert subjects == ["Newer", "Older"]
    assert set(library.path_map) == {"ACCOUNT-UUID/INBOX", "ACCOUNT-UUID/Archive"}


def test_library_unfiltered_query_spans_mailboxes(tmp_path: Path) -> None:
    config = _build_home(tmp_path)

    with MailLibrary.open(config, records=RECORDS) as library:
        messages = library.query(MailboxQuery())()

    assert [message.rowid for message in messages] == ["1000002", "2000001", "1000001"]


def test_library_mailbox_lookup_miss(tmp_path: Path) -> None:
    config = _build_home(tmp_path)

    with MailLibrary.open(config, records=RECORDS) as library:
        with pytest.raises(MailboxNotFoundError):
            library.mailbox("Personal")


def test_library_enumeration_failure_is_fatal(tmp_path: Path) -> None:
    config = _build_home(tmp_path)

    def failing(args, **kwargs):
        return subprocess.CompletedProcess(args, 1, stdout="", stderr="Mail got an error")

    with pytest.raises(ExternalToolError):
        MailLibrary.open(config, runner=failing)


def test_config_from_environment(tmp_path: Path) -> None:
    config = MailConfig.from_environment(
        {"MAIL_READER_HOME": str(tmp_path), "MAIL_READER_VERSION": "V9"}
    )

    assert config.library_root == tmp_path / "Library" / "Mail" / "V9"
    assert config.envelope_index == config.library_root / "MailData" / "Envelope Index"


def test_config_defaults_to_home_directory() -> None:
    config = MailConfig.from_environment({})

    assert config.home == Path.home()
    assert config.version == "V10"


def test_library_resolves_mailbox_names_that_need_escaping(tmp_path: Path) -> None:
    config = MailConfig(home=tmp_path)
    sent = config.library_root / "ACCOUNT-UUID" / "Sent Messages.mbox"
    _write_info_plist(sent, "Sent Messages")
    data = sent / "STORE" / "Data"
    payload = _write_emlx(data / "0" / "0" / "3" / "Messages" / "3000001.emlx", "Sent One")

    config.envelope_index.parent.mkdir(parents=True)
    connection = sqlite3.connect(config.envelope_index)
    try:
        connection.executescript(
            """
            CREATE TABLE mailboxes (ROWID INTEGER PRIMARY KEY, url TEXT);
            CREATE TABLE messages (ROWID INTEGER PRIMARY KEY, mailbox INTEGER, date_received INTEGER);
            INSERT INTO mailboxes VALUES (1, 'imap://ACCOUNT-UUID/Sent%20Messages');
            INSERT INTO messages VALUES (3000001, 1, 100);
            """
        )
        connection.commit()
    finally:
        connection.close()

    with MailLibrary.open(config, records=[("ACCOUNT-UUID", "Work", "Sent Messages")]) as library:
        messages = library.query(MailboxQuery())()

    assert [message.read() for message in messages] == [payload]
