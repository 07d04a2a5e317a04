from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response

from marketplace.db.models import User
from marketplace.db.session import Database
from marketplace.domain.users import user_to_dict
from marketplace.query.params import ParamMap
from marketplace.routers.deps import current_user, get_db, get_params, json_body, restrict_to, success
from marketplace.services.user_service import UserService

router = APIRouter(prefix="/api/v1/users", tags=["users"])


def get_service(db: Database = Depends(get_db)) -> UserService:
    return UserService(db)


@router.get("/me")
def me(user: User = Depends(current_user)):
    return success({"user": user_to_dict(user)})


@router.patch("/updateMe")
def update_me(
    data: dict[str, Any] = Depends(json_body),
    user: User = Depends(current_user),
    service: UserService = Depends(get_service),
):
    updated = service.update_me(user, data)
    return success({"user": user_to_dict(updated)})


@router.delete("/deleteMe", status_code=204)
def delete_me(user: User = Depends(current_user), service: UserService = Depends(get_service)):
    service.delete_me(user)
    return Response(status_code=204)


@router.get("")
async def list_users(
    params: ParamMap = Depends(get_params),
    _admin: User = Depends(restrict_to("admin")),
    service: UserService = Depends(get_service),
):
    records, pagination = await service.list_users(params)
    return success({"users": records}, results=len(records), pagination=pagination.as_dict())


@router.post("", status_code=201)
def create_user(
    data: dict[str, Any] = Depends(json_body),
    _admin: User = Depends(restrict_to("admin")),
    service: UserService = Depends(get_service),
):
    user = service.create(data)
    return success({"user": user_to_dict(user)})


@router.get("/{user_id}")
def get_user(user_id: int, _admin: User = Depends(restrict_to("admin")), service: UserService = Depends(get_service)):
    return success({"user": user_to_dict(service.get(user_id))})


@router.patch("/{user_id}")
def update_user(
    user_id: int,
    data: dict[str, Any] = Depends(json_body),
    _admin: User = Depends(restrict_to("admin")),
    service: UserService = Depends(get_service),
):
    return success({"user": user_to_dict(service.update(user_id, data))})


@router.delete("/{user_id}", status_code=204)
def delete_user(user_id: int, _admin: User = Depends(restrict_to("admin")), service: UserService = Depends(get_service)):
    service.delete(user_id)
    return Response(status_code=204)
