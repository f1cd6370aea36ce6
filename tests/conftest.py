"""
Test configuration and fixtures
"""

from __future__ import annotations

from typing import Any

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from core.config import Settings
from core.datastore import Pagination, Query, Repository
from core.errors import NoDocumentsError
from models.schemas import Model
from models.service import ModelService


class InMemoryRepository(Repository):
    """Dict-backed repository mimicking the MongoDB datastore."""

    def __init__(self, *, honor_projection: bool = True) -> None:
        self.documents: dict[ObjectId, dict[str, Any]] = {}
        self.unique_fields: set[str] = set()
        self.calls: list[str] = []
        self.closed = False
        self.honor_projection = honor_projection

    @staticmethod
    def _matches(document: dict, where) -> bool:
        return all(document.get(key) == value for key, value in where.items())

    def _project(self, document: dict, select) -> dict:
        if not select or not self.honor_projection:
            return dict(document)
        keep = {"_id"} | {key for key, flag in select.items() if flag}
        return {key: value for key, value in document.items() if key in keep}

    def _first_match(self, where) -> dict | None:
        for document in self.documents.values():
            if self._matches(document, where):
                return document
        return None

    async def ensure_indexes(self, collection, fields) -> None:
        self.calls.append("ensure_indexes")
        self.unique_fields.update(fields)

    async def find(self, query: Query) -> list[Model]:
        self.calls.append("find")
        return [
            Model.model_validate(self._project(document, query.select))
            for document in self.documents.values()
            if self._matches(document, query.where)
        ]

    async def insert(self, query: Query, document) -> Any:
        self.calls.append("insert")
        for name in self.unique_fields:
            if name in document and any(existing.get(name) == document[name] for existing in self.documents.values()):
                message = f"E11000 duplicate key error collection: test.models index: {name}_1"
                raise DuplicateKeyError(message, 11000, {"code": 11000, "errmsg": message})
        object_id = ObjectId()
        self.documents[object_id] = {"_id": object_id, **document}
        return object_id

    async def update(self, query: Query, document) -> Any:
        self.calls.append("update")
        match = self._first_match(query.where)
        if match is None:
            raise NoDocumentsError()
        match.update(document.get("$set", {}))
        return dict(match)

    async def delete(self, query: Query) -> Any:
        self.calls.append("delete")
        match = self._first_match(query.where)
        if match is None:
            raise NoDocumentsError()
        return self.documents.pop(match["_id"])

    async def paginate(self, query: Query, pagination: Pagination) -> list[Model]:
        self.calls.append("paginate")
        rows = [document for document in self.documents.values() if self._matches(document, query.where)]
        for key, direction in reversed(list(pagination.sort.items())):
            rows.sort(key=lambda document: document.get(key), reverse=direction < 0)
        window = rows[pagination.skip : pagination.skip + pagination.limit]
        return [Model.model_validate(self._project(document, query.select)) for document in window]

    async def aggregate(self, query: Query, pipeline) -> Any:
        self.calls.append("aggregate")
        return list(self.documents.values())

    async def close(self) -> None:
        self.calls.append("close")
        self.closed = True


@pytest.fixture
def memory_repository():
    repository = InMemoryRepository()
    repository.unique_fields.add("email")
    return repository


@pytest.fixture
def model_service(memory_repository):
    return ModelService(memory_repository)


@pytest.fixture
def test_settings():
    return Settings(service_name="model-service-test", logging=False, cache=True)


@pytest.fixture
def sample_model():
    return Model(name="test", email="test@test.com")


@pytest.fixture
def unprojected_repository():
    # Returns whole documents regardless of the requested projection.
    repository = InMemoryRepository(honor_projection=False)
    repository.unique_fields.add("email")
    return repository
