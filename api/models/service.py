"""
Model business logic.

Each use case builds a query, runs it through the repository, normalizes any
storage error once, and returns a `ServiceResponse`. Bad input is rejected
before the repository is touched. Nothing is retried here.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, NoReturn

from bson import ObjectId

from core.datastore import DEFAULT_PAGE_LIMIT, Repository
from core.errors import BadRequestError, InternalError, InvalidModelError, NotFoundError, normalize_error

from . import repository, schemas, validation

logger = logging.getLogger(__name__)

# Largest value BSON can encode for skip/limit.
MAX_INT64 = 2**63 - 1


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_object_id(raw: str) -> ObjectId:
    raw = (raw or "").strip()
    if not ObjectId.is_valid(raw):
        raise BadRequestError("Invalid ID")
    return ObjectId(raw)


def _parse_positive_int(raw: str, *, name: str) -> int:
    raw = (raw or "").strip()
    if not (raw.isascii() and raw.isdigit()):
        raise BadRequestError(f"Invalid {name} parameter")
    value = int(raw)
    if not 1 <= value <= MAX_INT64:
        raise BadRequestError(f"Invalid {name} parameter")
    return value


def _to_create_response(inserted_id: Any) -> schemas.CreateResponse:
    if inserted_id is None or str(inserted_id) == "":
        raise InternalError("Storage returned no inserted id")
    return schemas.CreateResponse(inserted_id=str(inserted_id))


class ModelService:
    def __init__(
        self,
        repository: Repository,
        *,
        normalize: Callable[[BaseException], BaseException] = normalize_error,
        default_limit: int = DEFAULT_PAGE_LIMIT,
    ) -> None:
        self._repository = repository
        self._normalize = normalize
        self._default_limit = default_limit

    def _raise_normalized(self, exc: Exception, *, op: str) -> NoReturn:
        normalized = self._normalize(exc)
        logger.warning("storage_error op=%s error=%s", op, normalized)
        if normalized is exc:
            raise exc
        raise normalized from exc

    async def get(self, page: str, limit: str = "") -> schemas.ServiceResponse:
        if not (page or "").strip():
            raise BadRequestError("Page is required")
        page_number = _parse_positive_int(page, name="page")

        page_size = self._default_limit
        if (limit or "").strip():
            page_size = _parse_positive_int(limit, name="limit")
        if (page_number - 1) * page_size > MAX_INT64:
            raise BadRequestError("Invalid page parameter")

        try:
            rows = await self._repository.paginate(
                repository.collection_query(),
                repository.page_request(page_number, page_size),
            )
        except Exception as exc:
            self._raise_normalized(exc, op="get")

        return schemas.ServiceResponse(status=200, message="Get Models Successful", data=rows)

    async def get_by_id(self, model_id: str) -> schemas.ServiceResponse:
        object_id = _parse_object_id(model_id)
        query = repository.by_id_query(object_id, select=dict(repository.DETAIL_PROJECTION))

        try:
            rows = await self._repository.find(query)
        except Exception as exc:
            self._raise_normalized(exc, op="get_by_id")

        if not rows:
            raise NotFoundError("Model Not Found")
        return schemas.ServiceResponse(status=200, message="Get Model by ID Successful", data=rows[0])

    async def create(self, model: schemas.Model) -> schemas.ServiceResponse:
        field_errors = validation.validate_struct(model)
        if field_errors:
            raise InvalidModelError(field_errors)

        model = model.model_copy(update={"created_at": _utc_now()})

        try:
            inserted_id = await self._repository.insert(
                repository.collection_query(),
                repository.to_document(model),
            )
        except Exception as exc:
            self._raise_normalized(exc, op="create")

        payload = _to_create_response(inserted_id)
        logger.info("model_created id=%s", payload.inserted_id)
        return schemas.ServiceResponse(status=201, message="Created Model Successfully", data=payload)

    async def update(self, model_id: str, model: schemas.Model) -> schemas.ServiceResponse:
        if validation.is_zero(model):
            raise BadRequestError("You require at least one field to update")
        object_id = _parse_object_id(model_id)

        model = model.model_copy(update={"updated_at": _utc_now()})

        try:
            await self._repository.update(repository.by_id_query(object_id), repository.set_update(model))
        except Exception as exc:
            self._raise_normalized(exc, op="update")

        logger.info("model_updated id=%s", object_id)
        return schemas.ServiceResponse(status=200, message="Update Successful")

    async def delete(self, model_id: str) -> schemas.ServiceResponse:
        object_id = _parse_object_id(model_id)

        try:
            await self._repository.delete(repository.by_id_query(object_id))
        except Exception as exc:
            self._raise_normalized(exc, op="delete")

        logger.info("model_deleted id=%s", object_id)
        return schemas.ServiceResponse(status=200, message="Delete Successful")
