"""Write messages from the Mail.app store out as plain ``.eml`` files."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator

from tqdm import tqdm

from lib import emlx
from mail_reader.readers.mail_paths import Message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportStats:
    """Summary information produced by an export run."""

    exported_messages: int
    unstripped_messages: int
    missing_messages: int
    dry_run: bool


def iter_pages(fetch: Callable[[], list[Message]], batch_size: int) -> Iterator[Message]:
    """Yield messages from ``fetch`` until a short or empty page comes back."""

    while True:
        page = fetch()
        yield from page
        if batch_size <= 0 or len(page) < batch_size:
            return


def _read_payload(message: Message) -> tuple[bytes, bool]:
    try:
        reader = message.open()
    except emlx.MalformedFramingError as exc:
        if exc.fallback is None:
            raise
        logger.warning("Copying %s unstripped: %s", message.rowid, exc)
        with exc.fallback as raw:
            return raw.read(), False
    with reader:
        return reader.read(), True


def export_messages(
    fetch: Callable[[], list[Message]],
    output_dir: Path,
    *,
    batch_size: int,
    limit: int | None = None,
    dry_run: bool = False,
    show_progress: bool = False,
) -> ExportStats:
    """Write each message returned by ``fetch`` to ``output_dir/<rowid>.eml``.

    Messages whose framing cannot be parsed are copied as-is. Messages that are
    indexed but have no file on disk are counted and skipped.
    """

    if not dry_run:
        output_dir.mkdir(parents=True, exist_ok=True)

    exported = 0
    unstripped = 0
    missing = 0

    with tqdm(
        total=limit, disable=not show_progress, unit="msg", desc="Exporting Mail"
    ) as progress:
        for message in iter_pages(fetch, batch_size):
            if limit is not None and exported + missing >= limit:
                break
            try:
                payload, stripped = _read_payload(message)
            except FileNotFoundError:
                logger.warning("No message file for %s", message.path_without_extension)
                missing += 1
                progress.update(1)
                continue

            if not dry_run:
                (output_dir / f"{message.rowid}.eml").write_bytes(payload)
            exported += 1
            if not stripped:
                unstripped += 1
            progress.update(1)

    return ExportStats(
        exported_messages=exported,
        unstripped_messages=unstripped,
        missing_messages=missing,
        dry_run=dry_run,
    )


__all__ = ["ExportStats", "export_messages", "iter_pages"]
