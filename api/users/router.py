"""
User API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from common.pagination import PaginatedResult, PaginationOptions, pagination_query
from common.public import public_routes

from . import schemas
from .service import UserService, get_user_service

router = APIRouter(prefix="/users")


@router.post(
    "",
    name="users:create",
    status_code=status.HTTP_201_CREATED,
    response_model=schemas.UserResponse,
)
async def create_user(
    payload: schemas.CreateUserRequest,
    service: UserService = Depends(get_user_service),
) -> dict:
    return await service.create_user(payload)


@router.get("", name="users:list", response_model=PaginatedResult[schemas.UserResponse])
async def list_users(
    options: PaginationOptions = Depends(pagination_query),
    service: UserService = Depends(get_user_service),
) -> PaginatedResult:
    return await service.list_users(options)


@router.get("/{user_id}", name="users:get", response_model=schemas.UserResponse)
async def get_user(
    user_id: str,
    service: UserService = Depends(get_user_service),
) -> dict:
    return await service.get_user(user_id)


@router.patch("/{user_id}", name="users:update", response_model=schemas.UserResponse)
async def update_user(
    user_id: str,
    payload: schemas.UpdateUserRequest,
    service: UserService = Depends(get_user_service),
) -> dict:
    return await service.update_user(user_id, payload)


@router.delete("/{user_id}", name="users:delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    service: UserService = Depends(get_user_service),
) -> Response:
    await service.delete_user(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Sign-up has to work without credentials.
public_routes.mark("users:create")
