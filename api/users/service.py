"""
User business logic on top of the generic CRUD service.

Stored documents carry a bcrypt `password_hash`; it never leaves this module.
Everything returned to callers goes through `public_view`.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from common.base_crud import BaseCrudService
from common.errors import ConflictError
from common.pagination import PaginatedResult, PaginationOptions
from common.sanitizer import remove_sensitive_fields
from core.documents import DocumentCollection

from . import schemas, security

logger = logging.getLogger(__name__)

PRIVATE_FIELDS = ("password_hash", "password", "password_confirmation")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def public_view(user: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if user is None:
        return None
    return remove_sensitive_fields(user, PRIVATE_FIELDS)


class UserService(BaseCrudService[dict, schemas.CreateUserRequest, schemas.UpdateUserRequest]):
    async def create_user(self, payload: schemas.CreateUserRequest) -> dict[str, Any]:
        email = normalize_email(payload.email)
        if await self.find_one({"email": email}) is not None:
            raise ConflictError("Email is already registered.")

        user = await self.create(
            {
                "name": payload.name.strip(),
                "email": email,
                "password_hash": security.hash_password(payload.password),
            }
        )
        logger.info("user_created id=%s", user["id"])
        return public_view(user)

    async def list_users(
        self,
        options: PaginationOptions,
        filter: Mapping[str, Any] | None = None,
    ) -> PaginatedResult[dict]:
        result = await self.find_all(filter, options)
        result.data = [public_view(user) for user in result.data]
        return result

    async def get_user(self, user_id: str) -> dict[str, Any]:
        return public_view(await self.find_by_id_or_fail(user_id))

    async def update_user(self, user_id: str, payload: schemas.UpdateUserRequest) -> dict[str, Any]:
        patch = payload.model_dump(exclude_unset=True, exclude_none=True)
        password = patch.pop("password", None)
        if password:
            patch["password_hash"] = security.hash_password(password)
        if "name" in patch:
            patch["name"] = patch["name"].strip()

        if not patch:
            return await self.get_user(user_id)
        return public_view(await self.update_or_fail(user_id, patch))

    async def delete_user(self, user_id: str) -> dict[str, Any]:
        user = await self.remove_or_fail(user_id)
        logger.info("user_deleted id=%s", user_id)
        return public_view(user)

    async def verify_credentials(self, email: str, password: str) -> dict[str, Any] | None:
        """
        Return the public view of the user when `password` matches, else None.
        """
        user = await self.find_one({"email": normalize_email(email)})
        if user is None:
            return None
        if not security.verify_password(password, str(user.get("password_hash") or "")):
            return None
        return public_view(user)


users_collection = DocumentCollection("users", unique_fields=("email",))

_service = UserService(users_collection, entity_name="User")


def get_user_service() -> UserService:
    return _service
