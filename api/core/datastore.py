"""
Document store access (MongoDB) behind a storage-agnostic contract.

`Repository` is what services depend on. `MongoDatastore` is the only real
implementation; it owns the `AsyncMongoClient` (and its connection pool) from
startup to shutdown, see `api/main.py`.

Every call carries its own deadline through `pymongo.timeout`, so one slow
query cannot hold up unrelated requests. Nothing is retried here.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import pymongo
from pydantic import BaseModel, ValidationError
from pymongo import ASCENDING, AsyncMongoClient, IndexModel, ReturnDocument
from pymongo.errors import OperationFailure, PyMongoError

from .config import Settings
from .errors import DatastoreError, NoDocumentsError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 30

# IndexAlreadyExists. Conflicting options or keys (85, 86) mean the
# constraint is not in place and stay fatal.
INDEX_EXISTS_CODES = frozenset({68})


@dataclass(frozen=True)
class Query:
    collection: str
    where: Mapping[str, Any] = field(default_factory=dict)
    select: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    limit: int = DEFAULT_PAGE_LIMIT
    sort: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.limit < 1:
            raise ValueError("limit must be >= 1")

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class Repository(ABC):
    """
    Persistence operations the service layer relies on.
    """

    @abstractmethod
    async def ensure_indexes(self, collection: str, fields: Sequence[str]) -> None:
        """Create one unique index per field; safe to call on every start."""

    @abstractmethod
    async def find(self, query: Query) -> list[BaseModel]:
        """Return every document matching `query.where` (empty list when none)."""

    @abstractmethod
    async def insert(self, query: Query, document: Mapping[str, Any]) -> Any:
        """Insert one document and return the storage-assigned id."""

    @abstractmethod
    async def update(self, query: Query, document: Mapping[str, Any]) -> Any:
        """Apply `document` to the first match; raise `NoDocumentsError` when none."""

    @abstractmethod
    async def delete(self, query: Query) -> Any:
        """Remove the first match; raise `NoDocumentsError` when none."""

    @abstractmethod
    async def paginate(self, query: Query, pagination: Pagination) -> list[BaseModel]:
        """Like `find`, with sort/skip/limit applied."""

    @abstractmethod
    async def aggregate(self, query: Query, pipeline: Sequence[Mapping[str, Any]]) -> Any:
        """Run `pipeline` and return a lazy, forward-only cursor."""

    @abstractmethod
    async def close(self) -> None:
        """Release the storage connection."""


class MongoDatastore(Repository):
    def __init__(
        self,
        client: AsyncMongoClient,
        *,
        settings: Settings,
        document_type: type[BaseModel],
    ) -> None:
        self._client = client
        self._db = client[settings.database_name]
        self._settings = settings
        self._document_type = document_type

    def _collection(self, name: str):
        return self._db[name]

    def _decode_all(self, documents: list[dict], collection: str) -> list[BaseModel]:
        decoded: list[BaseModel] = []
        for document in documents:
            try:
                decoded.append(self._document_type.model_validate(document))
            except ValidationError as exc:
                # Undecodable documents are dropped, not fatal for the call.
                logger.warning(
                    "document_decode_failed collection=%s id=%s errors=%s",
                    collection,
                    document.get("_id"),
                    exc.error_count(),
                )
        return decoded

    async def ensure_indexes(self, collection: str, fields: Sequence[str]) -> None:
        indexes = [IndexModel([(name, ASCENDING)], unique=True) for name in fields]
        if not indexes:
            return None
        max_time_ms = int(self._settings.index_timeout_s * 1000)
        try:
            names = await self._collection(collection).create_indexes(indexes, maxTimeMS=max_time_ms)
        except OperationFailure as exc:
            if exc.code in INDEX_EXISTS_CODES:
                logger.warning("index_exists collection=%s fields=%s detail=%s", collection, list(fields), exc)
                return None
            logger.critical("index_creation_failed collection=%s fields=%s", collection, list(fields))
            raise DatastoreError(f"Failed to create indexes on {collection}: {exc}") from exc
        except PyMongoError as exc:
            logger.critical("index_creation_failed collection=%s fields=%s", collection, list(fields))
            raise DatastoreError(f"Failed to create indexes on {collection}: {exc}") from exc
        logger.info("indexes_ready collection=%s indexes=%s", collection, names)

    async def find(self, query: Query) -> list[BaseModel]:
        projection = dict(query.select) if query.select else None
        with pymongo.timeout(self._settings.query_timeout_s):
            cursor = self._collection(query.collection).find(dict(query.where), projection)
            documents = [document async for document in cursor]
        return self._decode_all(documents, query.collection)

    async def insert(self, query: Query, document: Mapping[str, Any]) -> Any:
        with pymongo.timeout(self._settings.query_timeout_s):
            result = await self._collection(query.collection).insert_one(dict(document))
        return result.inserted_id

    async def update(self, query: Query, document: Mapping[str, Any]) -> Any:
        with pymongo.timeout(self._settings.query_timeout_s):
            updated = await self._collection(query.collection).find_one_and_update(
                dict(query.where),
                dict(document),
                return_document=ReturnDocument.AFTER,
            )
        if updated is None:
            raise NoDocumentsError()
        return updated

    async def delete(self, query: Query) -> Any:
        with pymongo.timeout(self._settings.query_timeout_s):
            deleted = await self._collection(query.collection).find_one_and_delete(dict(query.where))
        if deleted is None:
            raise NoDocumentsError()
        return deleted

    async def paginate(self, query: Query, pagination: Pagination) -> list[BaseModel]:
        projection = dict(query.select) if query.select else None
        with pymongo.timeout(self._settings.query_timeout_s):
            cursor = self._collection(query.collection).find(dict(query.where), projection)
            if pagination.sort:
                cursor = cursor.sort(list(pagination.sort.items()))
            cursor = cursor.skip(pagination.skip).limit(pagination.limit)
            documents = [document async for document in cursor]
        return self._decode_all(documents, query.collection)

    async def aggregate(self, query: Query, pipeline: Sequence[Mapping[str, Any]]) -> Any:
        """
        Run `pipeline` and return the driver cursor unread.

        The query deadline bounds only the initial `aggregate` command. Batches
        fetched later while iterating are not covered, so callers draining a large
        result should wrap iteration in their own `pymongo.timeout`.
        """
        with pymongo.timeout(self._settings.query_timeout_s):
            return await self._collection(query.collection).aggregate([dict(stage) for stage in pipeline])

    async def close(self) -> None:
        try:
            await asyncio.wait_for(self._client.close(), timeout=self._settings.close_timeout_s)
        except (PyMongoError, asyncio.TimeoutError) as exc:
            logger.critical("datastore_close_failed error=%s", exc)
            raise DatastoreError(f"Failed to close datastore: {exc}") from exc
        logger.info("datastore_closed database=%s", self._settings.database_name)


async def connect(settings: Settings, *, document_type: type[BaseModel]) -> MongoDatastore:
    """
    Open the client and make sure the primary answers within the connect timeout.
    """
    client: AsyncMongoClient = AsyncMongoClient(
        settings.db_uri,
        maxPoolSize=settings.db_max_pool_size,
        tz_aware=True,
        appname=settings.service_name,
    )
    try:
        with pymongo.timeout(settings.connect_timeout_s):
            await client.admin.command("ping")
    except PyMongoError as exc:
        logger.critical("datastore_connect_failed database=%s error=%s", settings.database_name, exc)
        await client.close()
        raise DatastoreError(f"Failed to connect to datastore: {exc}") from exc

    logger.info("datastore_connected database=%s", settings.database_name)
    return MongoDatastore(client, settings=settings, document_type=document_type)
