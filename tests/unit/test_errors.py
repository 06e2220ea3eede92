"""Tests for classifying mail store errors."""

import errno
import sqlite3

from mail_reader import errors


def test_wrap_permission_error_by_errno() -> None:
    original = PermissionError(errno.EPERM, "Operation not permitted", "/Users/me/Library/Mail")

    wrapped = errors.wrap_permission_error(original)

    assert isinstance(wrapped, errors.PermissionDeniedError)
    assert isinstance(wrapped, PermissionError)
    assert wrapped.original is original
    assert wrapped.__cause__ is original
    assert "Original error" in str(wrapped)


def test_wrap_permission_error_by_message_suffix() -> None:
    original = sqlite3.OperationalError("open Envelope Index: operation not permitted")

    wrapped = errors.wrap_permission_error(original)

    assert isinstance(wrapped, errors.PermissionDeniedError)


def test_wrap_permission_error_passes_other_errors_through() -> None:
    original = FileNotFoundError(errno.ENOENT, "No such file or directory", "/missing")

    assert errors.wrap_permission_error(original) is original


def test_wrap_permission_error_does_not_double_wrap() -> None:
    wrapped = errors.wrap_permission_error(PermissionError(errno.EPERM, "Operation not permitted"))

    assert errors.wrap_permission_error(wrapped) is wrapped
