"""Pytest configuration and fixtures."""

from __future__ import annotations

import copy
import itertools
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

import pytest
from fastapi.testclient import TestClient

from common.base_crud import BaseCrudService
from users.service import UserService, get_user_service

_OPS = {
    "$eq": lambda a, b: a == b,
    "$ne": lambda a, b: a != b,
    "$gt": lambda a, b: a is not None and a > b,
    "$gte": lambda a, b: a is not None and a >= b,
    "$lt": lambda a, b: a is not None and a < b,
    "$lte": lambda a, b: a is not None and a <= b,
    "$in": lambda a, b: a in b,
}


def _matches(doc: Mapping[str, Any], filter: Mapping[str, Any] | None) -> bool:
    for field, spec in (filter or {}).items():
        value = doc.get(field)
        if isinstance(spec, Mapping) and spec and all(str(k).startswith("$") for k in spec):
            if not all(_OPS[op](value, arg) for op, arg in spec.items()):
                return False
        elif value != spec:
            return False
    return True


class InMemoryStore:
    """
    Dict-backed document store with the same contract as DocumentCollection.

    Records every call in `calls` so tests can assert on what was sent.
    """

    def __init__(self) -> None:
        self.docs: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, tuple, dict]] = []
        self._clock = itertools.count()
        self._epoch = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _now(self) -> datetime:
        return self._epoch + timedelta(seconds=next(self._clock))

    async def insert(self, document):
        self.calls.append(("insert", (document,), {}))
        now = self._now()
        doc = {**copy.deepcopy(dict(document)), "id": str(uuid.uuid4()), "createdAt": now, "updatedAt": now}
        self.docs[doc["id"]] = doc
        return copy.deepcopy(doc)

    async def find_many(self, filter=None, *, sort=None, skip=0, limit=None):
        self.calls.append(("find_many", (filter,), {"sort": sort, "skip": skip, "limit": limit}))
        rows = [d for d in self.docs.values() if _matches(d, filter)]
        rows.sort(key=lambda d: d["id"])
        for field, direction in reversed(list((sort or {}).items())):
            rows.sort(key=lambda d: (d.get(field) is None, d.get(field)), reverse=direction < 0)
        rows = rows[skip:]
        if limit is not None:
            rows = rows[:limit]
        return [copy.deepcopy(d) for d in rows]

    async def count(self, filter=None):
        self.calls.append(("count", (filter,), {}))
        return sum(1 for d in self.docs.values() if _matches(d, filter))

    async def find_one(self, filter=None):
        rows = await self.find_many(filter, limit=1)
        return rows[0] if rows else None

    async def find_by_id(self, id):
        self.calls.append(("find_by_id", (id,), {}))
        doc = self.docs.get(str(id))
        return copy.deepcopy(doc) if doc is not None else None

    async def update_and_return(self, id, patch):
        self.calls.append(("update_and_return", (id, patch), {}))
        doc = self.docs.get(str(id))
        if doc is None:
            return None
        doc.update(copy.deepcopy(dict(patch)))
        doc["updatedAt"] = self._now()
        return copy.deepcopy(doc)

    async def delete_and_return(self, id):
        self.calls.append(("delete_and_return", (id,), {}))
        doc = self.docs.pop(str(id), None)
        return copy.deepcopy(doc) if doc is not None else None


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def crud(store) -> BaseCrudService:
    return BaseCrudService(store, entity_name="Widget")


@pytest.fixture
def user_service(store) -> UserService:
    return UserService(store, entity_name="User")


@pytest.fixture
def app(user_service, monkeypatch):
    monkeypatch.delenv("API_TOKEN", raising=False)
    from main import create_app

    application = create_app(with_lifespan=False)
    application.dependency_overrides[get_user_service] = lambda: user_service
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
