"""
Tests for domain errors and storage error normalization.
"""

import pytest
from pymongo.errors import (BulkWriteError, DuplicateKeyError, NetworkTimeout,
                            OperationFailure, WriteError)

from core.errors import (BadRequestError, ConflictError, InvalidModelError,
                         NoDocumentsError, NoOpError, NotFoundError,
                         StorageTimeoutError, normalize_error)


class TestNormalizeError:
    """Test mapping of driver errors to domain errors."""

    @pytest.mark.parametrize("code", [11000, 11001, 12582])
    def test_duplicate_key_codes_become_conflict(self, code):
        exc = WriteError("duplicate", code, {"code": code, "errmsg": "duplicate"})
        result = normalize_error(exc)
        assert isinstance(result, ConflictError)
        assert result.message == "Model Already Exists"
        assert result.status_code == 409

    def test_duplicate_key_error_class(self):
        exc = DuplicateKeyError("E11000 duplicate key error", 11000, {"errmsg": "E11000 duplicate key error"})
        assert isinstance(normalize_error(exc), ConflictError)

    def test_ambiguous_code_requires_e11000_marker(self):
        with_marker = WriteError("x", 16460, {"errmsg": "write failed:  E11000 duplicate key"})
        without_marker = WriteError("x", 16460, {"errmsg": "some other failure"})

        assert isinstance(normalize_error(with_marker), ConflictError)
        assert normalize_error(without_marker) is without_marker

    def test_bulk_write_error_with_duplicate_entry(self):
        exc = BulkWriteError(
            {
                "writeErrors": [
                    {"index": 0, "code": 121, "errmsg": "validation"},
                    {"index": 1, "code": 11000, "errmsg": "E11000 duplicate key"},
                ]
            }
        )
        assert isinstance(normalize_error(exc), ConflictError)

    def test_no_documents_becomes_noop(self):
        result = normalize_error(NoDocumentsError())
        assert isinstance(result, NoOpError)
        assert result.status_code == 200
        assert result.message == "No Operation Executed"

    def test_timeout_becomes_storage_timeout(self):
        result = normalize_error(NetworkTimeout("timed out"))
        assert isinstance(result, StorageTimeoutError)
        assert result.status_code == 504

    def test_other_errors_pass_through(self):
        exc = OperationFailure("not authorized", code=13)
        assert normalize_error(exc) is exc

        plain = RuntimeError("boom")
        assert normalize_error(plain) is plain

    def test_none_is_rejected(self):
        with pytest.raises(ValueError):
            normalize_error(None)


class TestServiceErrors:
    """Test error payloads."""

    def test_to_dict(self):
        exc = NotFoundError("Model Not Found")
        assert exc.to_dict() == {"code": 404, "message": "Model Not Found"}
        assert str(exc) == "Model Not Found"

    def test_status_override(self):
        exc = BadRequestError("Page is required", status_code=409)
        assert exc.status_code == 409

    def test_invalid_model_error_is_bad_request(self):
        exc = InvalidModelError([])
        assert isinstance(exc, BadRequestError)
        assert exc.status_code == 400
        assert exc.errors == []
