"""Error types raised while reading the Apple Mail store."""

from __future__ import annotations

import errno

PERMISSION_PHRASE = "operation not permitted"

PERMISSION_GUIDANCE = (
    "Querying Mail.app messages requires full-disk access permissions.\n"
    "You can grant these permissions in System Settings > Privacy & Security > Full Disk Access."
)


class MailReaderError(Exception):
    """Base class for mail store errors."""


class MailboxNotFoundError(MailReaderError, LookupError):
    """Raised when an account/mailbox pair is not in the catalog."""

    def __init__(self, account: str, name: str):
        super().__init__(f"couldn't find mailbox '{name}' for account '{account}'")
        self.account = account
        self.name = name


class UnresolvedMailboxPathError(MailReaderError):
    """Raised when the index references a mailbox with no directory on disk."""

    def __init__(self, relative_path: str):
        super().__init__(f"unmatched mailbox path: {relative_path}")
        self.relative_path = relative_path


class PermissionDeniedError(MailReaderError, PermissionError):
    """Raised when the mail store is blocked by macOS privacy protections."""

    def __init__(self, original: BaseException):
        super().__init__(f"{PERMISSION_GUIDANCE}\n\nOriginal error:\n{original}")
        self.original = original


class ExternalToolError(MailReaderError):
    """Raised when the account enumeration helper fails."""

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


def is_permission_failure(exc: BaseException) -> bool:
    if getattr(exc, "errno", None) == errno.EPERM:
        return True
    return str(exc).rstrip().lower().endswith(PERMISSION_PHRASE)


def wrap_permission_error(exc: BaseException) -> BaseException:
    """Return a :class:`PermissionDeniedError` for ``exc`` when it is a privacy failure.

    Any other error is returned unchanged. The wrapper keeps ``exc`` as its
    ``__cause__`` so the original is still available for inspection.
    """

    if isinstance(exc, PermissionDeniedError) or not is_permission_failure(exc):
        return exc
    wrapped = PermissionDeniedError(exc)
    wrapped.__cause__ = exc
    return wrapped


__all__ = [
    "ExternalToolError",
    "MailReaderError",
    "MailboxNotFoundError",
    "PermissionDeniedError",
    "UnresolvedMailboxPathError",
    "is_permission_failure",
    "wrap_permission_error",
]
