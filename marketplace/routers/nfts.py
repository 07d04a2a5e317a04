from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response
from starlette.concurrency import run_in_threadpool

from marketplace.db.models import User
from marketplace.db.session import Database
from marketplace.domain.nfts import nft_to_dict
from marketplace.query.params import ParamMap
from marketplace.routers.deps import current_user, get_db, get_params, json_body, restrict_to, success
from marketplace.services.nft_service import CURATED_LISTS, NFTService

router = APIRouter(prefix="/api/v1/nfts", tags=["nfts"])


def get_service(db: Database = Depends(get_db)) -> NFTService:
    return NFTService(db)


# Public aggregations and curated lists are registered before "/{nft_id}".
@router.get("/stats")
def nft_stats(service: NFTService = Depends(get_service)):
    stats = service.stats()
    return success({"stats": stats})


@router.get("/monthly-plan/{year}")
def monthly_plan(year: int, service: NFTService = Depends(get_service)):
    plan = service.monthly_plan(year)
    return success({"plan": plan}, results=len(plan))


@router.get("/top-stats")
def top_stats(service: NFTService = Depends(get_service)):
    return success({"stats": service.top_stats()})


def _curated_endpoint(name: str):
    def endpoint(service: NFTService = Depends(get_service)):
        nfts = service.curated(name)
        return success({"nfts": nfts}, results=len(nfts))

    endpoint.__name__ = "curated_" + name.replace("-", "_")
    return endpoint


for _name in CURATED_LISTS:
    router.add_api_route(f"/{_name}", _curated_endpoint(_name), methods=["GET"])


@router.get("")
async def list_nfts(
    params: ParamMap = Depends(get_params),
    user: User = Depends(current_user),
    service: NFTService = Depends(get_service),
):
    records, pagination = await service.list_nfts(params, user=user)
    return success({"nfts": records}, results=len(records), pagination=pagination.as_dict())


@router.post("", status_code=201)
async def create_nft(
    data: dict[str, Any] = Depends(json_body),
    user: User = Depends(restrict_to("admin", "creator")),
    service: NFTService = Depends(get_service),
):
    nft = await run_in_threadpool(service.create, data, user=user)
    return success({"nft": nft_to_dict(nft)})


@router.get("/{nft_id}")
def get_nft(nft_id: int, user: User = Depends(current_user), service: NFTService = Depends(get_service)):
    nft = service.get(nft_id, user=user)
    return success({"nft": nft_to_dict(nft, include_people=True)})


@router.patch("/{nft_id}")
async def update_nft(
    nft_id: int,
    data: dict[str, Any] = Depends(json_body),
    user: User = Depends(restrict_to("admin", "creator")),
    service: NFTService = Depends(get_service),
):
    nft = await run_in_threadpool(service.update, nft_id, data, user=user)
    return success({"nft": nft_to_dict(nft)})


@router.delete("/{nft_id}", status_code=204)
def delete_nft(nft_id: int, user: User = Depends(restrict_to("admin")), service: NFTService = Depends(get_service)):
    service.delete(nft_id, user=user)
    return Response(status_code=204)


@router.post("/{nft_id}/verify-secret")
async def verify_secret(
    nft_id: int,
    data: dict[str, Any] = Depends(json_body),
    user: User = Depends(current_user),
    service: NFTService = Depends(get_service),
):
    valid = await run_in_threadpool(service.verify_secret, nft_id, str(data.get("secret_key") or ""))
    return success({"valid": valid})
