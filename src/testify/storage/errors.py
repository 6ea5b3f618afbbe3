# Testify
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Storage error taxonomy and the mapping from ``sqlite3`` errors onto it."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

__all__ = [
    "StorageError",
    "InitializationFailure",
    "ConstraintViolation",
    "ForeignKeyViolation",
    "DecodeFailure",
    "IOFailure",
    "translate_errors",
]


class StorageError(RuntimeError):
    """Base class for every error raised by the storage layer."""


class InitializationFailure(StorageError):
    """The schema could not be ensured or the initial load failed."""


class ConstraintViolation(StorageError):
    """An insert collided with an existing primary key."""


class ForeignKeyViolation(ConstraintViolation):
    """A result referenced a template that does not exist."""


class DecodeFailure(StorageError):
    """A stored ``correctAnswers`` payload could not be decoded."""


class IOFailure(StorageError):
    """The underlying database is unreachable, locked or corrupt."""


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """Re-raise ``sqlite3``/OS errors from ``operation`` as :class:`StorageError`."""

    try:
        yield
    except StorageError:
        raise
    except sqlite3.IntegrityError as exc:
        message = str(exc)
        if "FOREIGN KEY" in message.upper():
            raise ForeignKeyViolation(f"{operation}: {message}") from exc
        raise ConstraintViolation(f"{operation}: {message}") from exc
    except (sqlite3.Error, OSError) as exc:
        raise IOFailure(f"{operation}: {exc}") from exc
