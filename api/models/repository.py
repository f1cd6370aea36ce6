"""
Model persistence helpers: collection layout and query builders.
"""

from __future__ import annotations

from typing import Any

from bson import ObjectId

from core.datastore import Pagination, Query, Repository

from .schemas import Model

COLLECTION = "models"
UNIQUE_FIELDS = ("email",)

# Oldest first.
DEFAULT_SORT = {"created_at": 1}
DETAIL_PROJECTION = {"name": 1}

# Model attribute -> stored field name.
STORAGE_FIELDS = {
    "name": "name",
    "email": "email",
    "created_at": "created_at",
    "updated_at": "updated_at",
}


async def ensure_indexes(repository: Repository) -> None:
    await repository.ensure_indexes(COLLECTION, list(UNIQUE_FIELDS))


def collection_query() -> Query:
    return Query(collection=COLLECTION)


def by_id_query(object_id: ObjectId, *, select: dict[str, Any] | None = None) -> Query:
    return Query(collection=COLLECTION, where={"_id": object_id}, select=select)


def page_request(page: int, limit: int) -> Pagination:
    return Pagination(page=page, limit=limit, sort=dict(DEFAULT_SORT))


def to_document(model: Model) -> dict[str, Any]:
    """
    Stored fields for `model`; empty values are left out.
    """
    document: dict[str, Any] = {}
    for attr, stored_name in STORAGE_FIELDS.items():
        value = getattr(model, attr)
        if value in ("", None):
            continue
        document[stored_name] = value
    return document


def set_update(model: Model) -> dict[str, Any]:
    return {"$set": to_document(model)}
