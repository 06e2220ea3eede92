"""Command-line interface for reading the Apple Mail store."""

from __future__ import annotations

import argparse
import logging
import sys
from email import policy
from email.parser import BytesHeaderParser
from pathlib import Path
from typing import Callable

from mail_reader import export
from mail_reader.config import MailConfig
from mail_reader.errors import MailReaderError
from mail_reader.library import MailLibrary
from mail_reader.readers import accounts, mail_paths
from mail_reader.readers.accounts import INBOX, Mailbox
from mail_reader.readers.envelope_index import MailboxQuery


def _add_store_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--home",
        type=Path,
        help="Home directory containing Library/Mail (defaults to $MAIL_READER_HOME or ~).",
    )
    parser.add_argument(
        "--mail-version",
        help="Mail store version directory, e.g. 'V10' (defaults to $MAIL_READER_VERSION or V10).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Increase logging verbosity for troubleshooting.",
    )


def _add_mailbox_arguments(parser: argparse.ArgumentParser, *, batch_size: int) -> None:
    parser.add_argument(
        "--account",
        help="Only read messages from this account (as named in Mail.app).",
    )
    parser.add_argument(
        "--mailbox",
        default=INBOX,
        help=f"Mailbox within --account to read (default: {INBOX}).",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=batch_size,
        help=f"Messages fetched from the index per query (default: {batch_size}).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mail-reader",
        description="Locate and read messages stored on disk by Apple Mail.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_mailboxes_parser = subparsers.add_parser(
        "list-mailboxes",
        help="List the accounts and mailboxes Mail.app reports.",
    )
    _add_store_arguments(list_mailboxes_parser)
    list_mailboxes_parser.set_defaults(handler=_handle_list_mailboxes)

    list_paths_parser = subparsers.add_parser(
        "list-paths",
        help="Show which on-disk directory each mailbox URL resolves to.",
    )
    _add_store_arguments(list_paths_parser)
    list_paths_parser.set_defaults(handler=_handle_list_paths)

    messages_parser = subparsers.add_parser(
        "messages",
        help="Print the newest messages, one line per message.",
    )
    _add_store_arguments(messages_parser)
    _add_mailbox_arguments(messages_parser, batch_size=10)
    messages_parser.add_argument(
        "--pages",
        type=int,
        default=1,
        help="Number of batches to print (default: 1).",
    )
    messages_parser.set_defaults(handler=_handle_messages)

    export_parser = subparsers.add_parser(
        "export",
        help="Write messages to a directory as plain .eml files.",
    )
    export_parser.add_argument(
        "output_dir",
        type=Path,
        help="Directory the .eml files are written to.",
    )
    _add_store_arguments(export_parser)
    _add_mailbox_arguments(export_parser, batch_size=100)
    export_parser.add_argument(
        "--limit",
        type=int,
        help="Stop after this many messages.",
    )
    export_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Read every message without writing any files.",
    )
    export_parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable progress bar output during the export.",
    )
    export_parser.set_defaults(handler=_handle_export)

    return parser


Handler = Callable[[argparse.Namespace], int]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.home is not None:
        args.home = args.home.expanduser().resolve()
    if args.command in {"messages", "export"}:
        if args.batch_size < 0:
            parser.error("--batch-size must not be negative")
    if args.command == "messages" and args.pages < 1:
        parser.error("--pages must be at least 1")
    if args.command == "export":
        args.output_dir = args.output_dir.resolve()
        if args.limit is not None and args.limit < 1:
            parser.error("--limit must be at least 1")

    return args


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    handler: Handler = args.handler
    try:
        return handler(args)
    except MailReaderError as exc:
        print(f"mail-reader: {exc}", file=sys.stderr)
        return 1


def _config(args: argparse.Namespace) -> MailConfig:
    config = MailConfig.from_environment()
    if args.home is not None:
        config = MailConfig(home=args.home, version=config.version)
    if args.mail_version:
        config = MailConfig(home=config.home, version=args.mail_version)
    return config


def _selected_mailbox(library: MailLibrary, args: argparse.Namespace) -> Mailbox:
    if not args.account:
        return Mailbox()
    return library.mailbox(args.account, args.mailbox)


def _handle_list_mailboxes(args: argparse.Namespace) -> int:
    catalog = accounts.MailboxCatalog.from_records(accounts.list_mailbox_records())
    if not len(catalog):
        print("No mailboxes reported by Mail.app")
        return 0

    name_width = max(len(mailbox.name) for mailbox in catalog)
    print("Mailboxes reported by Mail.app:")
    header = f"  {'Mailbox'.ljust(name_width)}  URL"
    print(header)
    print("  " + "-" * (len(header) - 2))
    current_account = None
    for mailbox in catalog:
        if mailbox.account.name != current_account:
            current_account = mailbox.account.name
            print(f"{current_account}:")
        print(f"  {mailbox.name.ljust(name_width)}  {mailbox.url}")
    return 0


def _handle_list_paths(args: argparse.Namespace) -> int:
    root = _config(args).library_root
    if not root.exists():
        raise FileNotFoundError(f"Mail store not found: {root}")

    paths = mail_paths.gather_mailbox_paths(root)
    if not paths:
        print(f"No mailboxes found in {root}")
        return 0

    key_width = max(len(key) for key in paths)
    print(f"Mailbox directories discovered in {root}:")
    for key in sorted(paths, key=str.lower):
        print(f"  imap://{key.ljust(key_width)}  {paths[key]}")
    return 0


def _handle_messages(args: argparse.Namespace) -> int:
    header_parser = BytesHeaderParser(policy=policy.compat32)
    with MailLibrary.open(_config(args)) as library:
        fetch = library.query(
            MailboxQuery(mailbox=_selected_mailbox(library, args), batch_size=args.batch_size)
        )
        for _ in range(args.pages):
            page = fetch()
            for message in page:
                headers = header_parser.parsebytes(message.read())
                print(
                    f"{message.rowid}  {headers.get('Date', '')}  "
                    f"{headers.get('From', '')}  {headers.get('Subject', '')}"
                )
            if args.batch_size == 0 or len(page) < args.batch_size:
                break
    return 0


def _handle_export(args: argparse.Namespace) -> int:
    with MailLibrary.open(_config(args)) as library:
        fetch = library.query(
            MailboxQuery(mailbox=_selected_mailbox(library, args), batch_size=args.batch_size)
        )
        stats = export.export_messages(
            fetch,
            args.output_dir,
            batch_size=args.batch_size,
            limit=args.limit,
            dry_run=args.dry_run,
            show_progress=not args.no_progress,
        )

    outcome = "Dry run" if stats.dry_run else "Export"
    print(f"{outcome} complete: {stats.exported_messages} messages written to {args.output_dir}.")
    if stats.unstripped_messages:
        print(f"  Copied {stats.unstripped_messages} messages without stripping their framing.")
    if stats.missing_messages:
        print(f"  Skipped {stats.missing_messages} indexed messages with no file on disk.")
    return 0


if __name__ == "__main__":  # pragma: no cover - manual execution entry point
    raise SystemExit(main())
