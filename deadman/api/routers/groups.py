"""Groups router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from deadman.api.dependencies import get_engine
from deadman.api.schemas import GroupCreate, GroupUpdate
from deadman.engine import HeartbeatEngine
from deadman.models import Group

router = APIRouter(prefix="/groups")


@router.get("", response_model=list[Group])
async def list_groups(engine: HeartbeatEngine = Depends(get_engine)) -> list[Group]:
    return await engine.groups.list()


@router.post("", response_model=Group, status_code=201)
async def create_group(body: GroupCreate, engine: HeartbeatEngine = Depends(get_engine)) -> Group:
    return await engine.groups.create(name=body.name, owner_id=body.owner_id)


@router.get("/{group_id}", response_model=Group)
async def get_group(group_id: str, engine: HeartbeatEngine = Depends(get_engine)) -> Group:
    return await engine.groups.get(group_id)


@router.put("/{group_id}", response_model=Group)
async def update_group(
    group_id: str,
    body: GroupUpdate,
    engine: HeartbeatEngine = Depends(get_engine),
) -> Group:
    return await engine.groups.update(group_id, name=body.name, owner_id=body.owner_id)


@router.delete("/{group_id}", status_code=204)
async def delete_group(group_id: str, engine: HeartbeatEngine = Depends(get_engine)) -> Response:
    await engine.groups.delete(group_id)
    return Response(status_code=204)
