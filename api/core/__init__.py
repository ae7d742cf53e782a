"""
Shared infrastructure for the API.

`core/` holds the pieces every feature depends on: the asyncpg pool, the
JSONB document collections built on top of it, settings, and logging setup.
Reusable request/response helpers live in `common/`.
"""
