"""
Domain errors and storage error normalization.

Services raise `ServiceError` subclasses; the HTTP layer renders them using
`status_code`. Raw driver errors are passed through `normalize_error` once,
at the service boundary.
"""

from __future__ import annotations

from typing import Any

from pymongo.errors import BulkWriteError, PyMongoError, WriteError

# Write-conflict codes MongoDB reports for unique index violations.
DUPLICATE_KEY_CODES = frozenset({11000, 11001, 12582})
# 16460 is shared with unrelated errors; only count it when the message says E11000.
AMBIGUOUS_DUPLICATE_KEY_CODE = 16460
DUPLICATE_KEY_MARKER = " E11000 "


class DatastoreError(RuntimeError):
    """Fatal storage failure while connecting, indexing or disconnecting."""


class NoDocumentsError(LookupError):
    """A conditional update/delete matched no document."""

    def __init__(self, message: str = "no documents in result") -> None:
        super().__init__(message)


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.status_code, "message": self.message}


class BadRequestError(ServiceError):
    status_code = 400


class InvalidModelError(BadRequestError):
    """Field validation failed; `errors` holds one entry per violated constraint."""

    def __init__(self, errors: list, message: str = "Validation Failed") -> None:
        super().__init__(message)
        self.errors = list(errors)


class ConflictError(ServiceError):
    status_code = 409


class NotFoundError(ServiceError):
    status_code = 404


class NoOpError(ServiceError):
    # Not a failure: the request was valid but changed nothing.
    status_code = 200


class InternalError(ServiceError):
    status_code = 500


class StorageTimeoutError(ServiceError):
    status_code = 504


def _write_errors(exc: BaseException) -> list[tuple[int | None, str]]:
    if isinstance(exc, BulkWriteError):
        entries = (exc.details or {}).get("writeErrors") or []
        return [(entry.get("code"), str(entry.get("errmsg") or "")) for entry in entries]
    if isinstance(exc, WriteError):
        details = exc.details or {}
        return [(exc.code, str(details.get("errmsg") or exc))]
    return []


def is_duplicate_key(code: int | None, message: str) -> bool:
    if code in DUPLICATE_KEY_CODES:
        return True
    return code == AMBIGUOUS_DUPLICATE_KEY_CODE and DUPLICATE_KEY_MARKER in message


def normalize_error(exc: BaseException) -> BaseException:
    """
    Map a storage-native error to its domain error.

    Unknown errors are returned unchanged.
    """
    if exc is None:
        raise ValueError("normalize_error() requires an exception.")

    for code, message in _write_errors(exc):
        if is_duplicate_key(code, message):
            return ConflictError("Model Already Exists")

    if isinstance(exc, NoDocumentsError):
        return NoOpError("No Operation Executed")

    if isinstance(exc, PyMongoError) and exc.timeout:
        return StorageTimeoutError("Operation Timed Out")

    return exc
