"""
Generic CRUD service over a document store.

Feature services wrap a store handle instead of re-implementing the same
create/find/update/delete calls:

    users = BaseCrudService(DocumentCollection("users"), entity_name="User")
    page = await users.find_all({"active": True}, options)

The `*_or_fail` variants raise `NotFoundError` so callers that require the
entity to exist do not repeat the None check.
"""

from __future__ import annotations

import asyncio
from typing import Any, Generic, Mapping, Protocol, TypeVar

from pydantic import BaseModel

from .errors import NotFoundError
from .pagination import PaginatedResult, PaginationOptions, create_paginated_result

T = TypeVar("T")
CreateInput = TypeVar("CreateInput")
UpdateInput = TypeVar("UpdateInput")

DEFAULT_SORT = {"createdAt": -1}


class DocumentStore(Protocol[T]):
    async def insert(self, document: Mapping[str, Any]) -> T: ...

    async def find_many(
        self,
        filter: Mapping[str, Any] | None = None,
        *,
        sort: Mapping[str, int] | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[T]: ...

    async def count(self, filter: Mapping[str, Any] | None = None) -> int: ...

    async def find_one(self, filter: Mapping[str, Any] | None = None) -> T | None: ...

    async def find_by_id(self, id: Any) -> T | None: ...

    async def update_and_return(self, id: Any, patch: Mapping[str, Any]) -> T | None: ...

    async def delete_and_return(self, id: Any) -> T | None: ...


def to_document(value: Any) -> dict[str, Any]:
    """
    Accept a pydantic model (only fields the caller set) or a plain mapping.
    """
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_unset=True)
    if isinstance(value, Mapping):
        return dict(value)
    raise TypeError(f"Expected a pydantic model or mapping, got {type(value).__name__}.")


class BaseCrudService(Generic[T, CreateInput, UpdateInput]):
    def __init__(self, store: DocumentStore[T], *, entity_name: str = "Entity") -> None:
        self.store = store
        self.entity_name = entity_name

    def _not_found(self, id: Any) -> NotFoundError:
        return NotFoundError(id, entity=self.entity_name)

    async def create(self, data: CreateInput) -> T:
        return await self.store.insert(to_document(data))

    async def find_all(
        self,
        filter: Mapping[str, Any] | None = None,
        options: PaginationOptions | None = None,
    ) -> PaginatedResult[T]:
        options = options or PaginationOptions()
        filter = filter or {}
        # Page and total queries run concurrently.
        data, total = await asyncio.gather(
            self.store.find_many(
                filter,
                sort=options.sort or DEFAULT_SORT,
                skip=options.skip,
                limit=options.limit,
            ),
            self.store.count(filter),
        )
        return create_paginated_result(data, total, options)

    async def find_by_id(self, id: Any) -> T | None:
        return await self.store.find_by_id(id)

    async def find_by_id_or_fail(self, id: Any) -> T:
        entity = await self.find_by_id(id)
        if entity is None:
            raise self._not_found(id)
        return entity

    async def find_one(self, filter: Mapping[str, Any]) -> T | None:
        return await self.store.find_one(filter)

    async def update(self, id: Any, data: UpdateInput) -> T | None:
        return await self.store.update_and_return(id, to_document(data))

    async def update_or_fail(self, id: Any, data: UpdateInput) -> T:
        entity = await self.update(id, data)
        if entity is None:
            raise self._not_found(id)
        return entity

    async def remove(self, id: Any) -> T | None:
        return await self.store.delete_and_return(id)

    async def remove_or_fail(self, id: Any) -> T:
        entity = await self.remove(id)
        if entity is None:
            raise self._not_found(id)
        return entity
