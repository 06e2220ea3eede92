"""Accounts and mailboxes as Mail.app itself reports them."""

from __future__ import annotations

import csv
import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Sequence, Tuple

from mail_reader.errors import ExternalToolError, MailboxNotFoundError

logger = logging.getLogger(__name__)

# Mail.app (or IMAP) uses this as the standard name for account inboxes.
INBOX = "INBOX"

MAILBOX_ACCOUNT_SCRIPT = """
tell application "Mail"
	set theAccounts to every account
	repeat with anAccount in theAccounts
		set theMailboxes to mailboxes of anAccount
		repeat with aMailbox in theMailboxes
			set accountId to id of anAccount
			set accountName to name of anAccount
			set mailboxName to name of aMailbox
			set csvData to accountId & "," & accountName & "," & mailboxName & return
			log csvData
		end repeat
	end repeat
end tell
"""

MailboxRecord = Tuple[str, str, str]
Runner = Callable[..., "subprocess.CompletedProcess[str]"]


@dataclass(frozen=True)
class Account:
    """A Mail account; ``uuid`` is what the on-disk store is keyed by."""

    name: str
    uuid: str


@dataclass(frozen=True)
class Mailbox:
    """A folder within an :class:`Account`.

    The default instance has no account and acts as the "all mailboxes" filter.
    """

    name: str = ""
    account: Account | None = None

    @property
    def url(self) -> str:
        if self.account is None:
            raise ValueError("an empty mailbox has no URL")
        return f"imap://{self.account.uuid}/{self.name}"

    @property
    def is_empty(self) -> bool:
        return self.account is None or self.name == ""


def _script_arguments(script: str) -> list[str]:
    args = ["osascript"]
    for line in script.split("\n"):
        if line:
            args.extend(["-e", line])
    return args


def parse_mailbox_records(output: str) -> list[MailboxRecord]:
    """Parse the CSV lines the enumeration script logs."""

    records: list[MailboxRecord] = []
    for row in csv.reader(line for line in output.splitlines() if line.strip()):
        if len(row) != 3:
            raise ExternalToolError(f"unexpected mailbox record from osascript: {row!r}")
        account_uuid, account_name, mailbox_name = row
        records.append((account_uuid, account_name, mailbox_name))
    return records


def list_mailbox_records(
    runner: Runner = subprocess.run,
    script: str = MAILBOX_ACCOUNT_SCRIPT,
) -> list[MailboxRecord]:
    """Return ``(account_uuid, account_name, mailbox_name)`` for every mailbox.

    Runs the enumeration script through ``osascript``. AppleScript's ``log``
    writes to stderr, so that is where the records are read from.
    """

    try:
        result = runner(_script_arguments(script), capture_output=True, text=True, check=False)
    except FileNotFoundError as exc:
        raise ExternalToolError(
            "osascript not found. Listing accounts requires macOS with AppleScript support."
        ) from exc

    if result.returncode != 0:
        raise ExternalToolError(
            f"osascript exited with status {result.returncode}",
            returncode=result.returncode,
            stderr=result.stderr or "",
        )

    records = parse_mailbox_records(result.stderr or "")
    logger.debug("osascript reported %d mailboxes", len(records))
    return records


def build_mailboxes(records: Iterable[MailboxRecord]) -> list[Mailbox]:
    """Turn enumeration records into mailboxes sharing one account per uuid."""

    accounts: dict[str, Account] = {}
    mailboxes: list[Mailbox] = []
    for account_uuid, account_name, mailbox_name in records:
        account = accounts.get(account_uuid)
        if account is None:
            account = Account(name=account_name, uuid=account_uuid)
            accounts[account_uuid] = account
        mailboxes.append(Mailbox(name=mailbox_name, account=account))
    return mailboxes


class MailboxCatalog:
    """Mailboxes grouped by account name, then mailbox name."""

    def __init__(self, mailboxes: Sequence[Mailbox]):
        by_account: dict[str, dict[str, Mailbox]] = {}
        for mailbox in mailboxes:
            if mailbox.account is None:
                continue
            by_account.setdefault(mailbox.account.name, {})[mailbox.name] = mailbox
        self._by_account = by_account

    @classmethod
    def from_records(cls, records: Iterable[MailboxRecord]) -> "MailboxCatalog":
        return cls(build_mailboxes(records))

    def lookup(self, account: str, name: str = INBOX) -> Mailbox:
        try:
            return self._by_account[account][name]
        except KeyError:
            raise MailboxNotFoundError(account, name) from None

    def account_names(self) -> list[str]:
        return sorted(self._by_account, key=str.lower)

    def __iter__(self) -> Iterator[Mailbox]:
        for account in self.account_names():
            mailboxes = self._by_account[account]
            for name in sorted(mailboxes, key=str.lower):
                yield mailboxes[name]

    def __len__(self) -> int:
        return sum(len(mailboxes) for mailboxes in self._by_account.values())


__all__ = [
    "INBOX",
    "Account",
    "Mailbox",
    "MailboxCatalog",
    "MailboxRecord",
    "build_mailboxes",
    "list_mailbox_records",
    "parse_mailbox_records",
]
