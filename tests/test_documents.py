"""Tests for the JSONB query builder and document collection SQL."""

import uuid
from datetime import datetime, timezone

import pytest

from core import db
from core.documents import (
    DocumentCollection,
    DocumentQueryError,
    QueryParams,
    build_order_by,
    build_where,
    parse_id,
)


def test_empty_filter_matches_everything():
    params = QueryParams()
    assert build_where({}, params) == "TRUE"
    assert build_where(None, params) == "TRUE"
    assert params.args == []


def test_equality_binds_path_and_json_value():
    params = QueryParams()
    sql = build_where({"email": "a@b.c"}, params)

    assert sql == "(data #> $1::text[]) = $2::jsonb"
    assert params.args == [["email"], "a@b.c"]


def test_dotted_path_and_operators():
    params = QueryParams()
    sql = build_where({"profile.age": {"$gte": 18, "$lt": 65}}, params)

    assert sql == "(data #> $1::text[]) >= $2::jsonb AND (data #> $3::text[]) < $4::jsonb"
    assert params.args == [["profile", "age"], 18, ["profile", "age"], 65]


def test_in_operator_on_data_field():
    params = QueryParams()
    sql = build_where({"role": {"$in": ["a", "b"]}}, params)

    assert sql == "(data #> $1::text[]) = ANY($2::jsonb[])"
    assert params.args == [["role"], ["a", "b"]]


def test_null_equality_matches_missing_fields():
    params = QueryParams()
    sql = build_where({"deletedAt": None}, params)
    assert sql == "((data #> $1::text[]) IS NULL OR (data #> $1::text[]) = 'null'::jsonb)"


def test_column_backed_fields():
    doc_id = uuid.uuid4()
    params = QueryParams()
    sql = build_where({"id": str(doc_id), "createdAt": {"$gte": "2024-01-01T00:00:00+00:00"}}, params)

    assert sql == "id = $1 AND created_at >= $2"
    assert params.args == [doc_id, datetime(2024, 1, 1, tzinfo=timezone.utc)]


def test_malformed_id_never_matches():
    params = QueryParams()
    assert build_where({"id": "not-a-uuid"}, params) == "FALSE"
    assert params.args == []


def test_unknown_operator_is_rejected():
    with pytest.raises(DocumentQueryError):
        build_where({"age": {"$regex": "x"}}, QueryParams())
    with pytest.raises(DocumentQueryError):
        build_where({"age": {"$in": "x"}}, QueryParams())


def test_plain_nested_object_is_equality():
    params = QueryParams()
    sql = build_where({"meta": {"a": 1}}, params)
    assert sql == "(data #> $1::text[]) = $2::jsonb"
    assert params.args[1] == {"a": 1}


def test_order_by_preserves_order_and_adds_tiebreaker():
    params = QueryParams(start=3)
    sql = build_order_by({"createdAt": -1, "name": 1}, params)

    assert sql == "created_at DESC, (data #> $3::text[]) ASC, id ASC"
    assert params.args == [["name"]]


def test_parse_id():
    value = uuid.uuid4()
    assert parse_id(value) is value
    assert parse_id(str(value)) == value
    assert parse_id("abc") is None
    assert parse_id(None) is None


def test_collection_name_is_validated():
    with pytest.raises(ValueError):
        DocumentCollection("users; drop table x")
    with pytest.raises(ValueError):
        DocumentCollection("users", unique_fields=("email'--",))


class _RecordingDb:
    def __init__(self, row=None, rows=None, value=0):
        self.calls = []
        self.row = row
        self.rows = rows or []
        self.value = value

    async def fetch_one(self, sql, *args):
        self.calls.append((sql, args))
        return self.row

    async def fetch_all(self, sql, *args):
        self.calls.append((sql, args))
        return self.rows

    async def fetch_val(self, sql, *args):
        self.calls.append((sql, args))
        return self.value


@pytest.fixture
def fake_db(monkeypatch):
    fake = _RecordingDb()
    for name in ("fetch_one", "fetch_all", "fetch_val"):
        monkeypatch.setattr(db, name, getattr(fake, name))
    return fake


def _row(**data):
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return {"id": uuid.uuid4(), "data": data, "created_at": now, "updated_at": now}


async def test_insert_strips_column_keys_and_returns_document(fake_db):
    fake_db.row = _row(name="a")
    collection = DocumentCollection("widgets")

    doc = await collection.insert({"name": "a", "id": "x", "createdAt": "y"})

    sql, args = fake_db.calls[0]
    assert 'INSERT INTO "widgets"' in sql
    assert args[0] == {"name": "a"}
    assert doc["name"] == "a"
    assert doc["id"] == str(fake_db.row["id"])
    assert doc["createdAt"] == fake_db.row["created_at"]


async def test_find_many_builds_paged_query(fake_db):
    fake_db.rows = [_row(name="a")]
    collection = DocumentCollection("widgets")

    docs = await collection.find_many({"name": "a"}, sort={"createdAt": -1}, skip=20, limit=10)

    sql, args = fake_db.calls[0]
    assert sql.endswith("ORDER BY created_at DESC, id ASC OFFSET $3 LIMIT $4")
    assert args[2:] == (20, 10)
    assert docs[0]["name"] == "a"


async def test_count_returns_int(fake_db):
    fake_db.value = 7
    assert await DocumentCollection("widgets").count({"a": 1}) == 7


async def test_malformed_ids_do_not_reach_the_database(fake_db):
    collection = DocumentCollection("widgets")

    assert await collection.find_by_id("zzz") is None
    assert await collection.update_and_return("zzz", {"a": 1}) is None
    assert await collection.delete_and_return("zzz") is None
    assert fake_db.calls == []


async def test_update_merges_patch(fake_db):
    fake_db.row = _row(name="b")
    doc_id = uuid.uuid4()

    doc = await DocumentCollection("widgets").update_and_return(str(doc_id), {"name": "b", "id": "ignored"})

    sql, args = fake_db.calls[0]
    assert "SET data = data || $2::jsonb" in sql
    assert args[0] == doc_id
    assert args[1] == {"name": "b"}
    assert doc["name"] == "b"
