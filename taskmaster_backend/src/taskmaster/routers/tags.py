from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, Query

from ..errors import NotFoundError
from ..ordering import sort_tasks
from ..repositories import Repository, get_repository
from ..schemas import TagCreate, TagDeleteResult, TagDetail, TagOut, TagUpdate
from ..services import TaskService, describe_tag, get_task_service, tasks_with_tag

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/tags",
    tags=["tags"],
)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[TagOut],
    summary="List Tags",
    description="All tags ordered by name, with usage statistics.",
)
def list_tags(repo: Repository = Depends(get_repository)) -> List[TagOut]:
    return [TagOut(**describe_tag(repo, t)) for t in repo.list_tags()]


# PUBLIC_INTERFACE
@router.get(
    "/popular",
    response_model=List[TagOut],
    summary="Popular Tags",
    description="Most used tags first; unused tags are left out.",
)
def popular_tags(
    limit: int = Query(10, ge=1, le=100, description="Maximum number of tags to return"),
    repo: Repository = Depends(get_repository),
) -> List[TagOut]:
    described = [describe_tag(repo, t) for t in repo.list_tags()]
    used = [d for d in described if d["usage_count"] > 0]
    used.sort(key=lambda d: -d["usage_count"])
    return [TagOut(**d) for d in used[:limit]]


# PUBLIC_INTERFACE
@router.get(
    "/{tag_id}",
    response_model=TagDetail,
    summary="Get Tag",
    description="A single tag with the tasks carrying it.",
    responses={404: {"description": "Tag not found"}},
)
def get_tag(
    tag_id: int,
    repo: Repository = Depends(get_repository),
    service: TaskService = Depends(get_task_service),
) -> TagDetail:
    tag = repo.get_tag(tag_id)
    if tag is None:
        raise NotFoundError("Tag not found", detail={"tag_id": tag_id})
    now = service.clock()
    tasks = service.present_many(sort_tasks(tasks_with_tag(repo, tag_id), now=now), now=now)
    return TagDetail(**describe_tag(repo, tag), tasks=tasks)


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TagOut,
    status_code=201,
    summary="Create Tag",
    description="Create a tag. Names are trimmed and lower-cased.",
    responses={409: {"description": "Tag with this name already exists"}},
)
def create_tag(payload: TagCreate, repo: Repository = Depends(get_repository)) -> TagOut:
    created = repo.create_tag(payload.model_dump())
    logger.info("Created tag %s (%s)", created["id"], created["name"])
    return TagOut(**describe_tag(repo, created))


# PUBLIC_INTERFACE
@router.put(
    "/{tag_id}",
    response_model=TagOut,
    summary="Update Tag",
    responses={
        404: {"description": "Tag not found"},
        409: {"description": "Tag with this name already exists"},
    },
)
def update_tag(tag_id: int, payload: TagUpdate, repo: Repository = Depends(get_repository)) -> TagOut:
    updated = repo.update_tag(tag_id, payload.changes())
    if updated is None:
        raise NotFoundError("Tag not found", detail={"tag_id": tag_id})
    return TagOut(**describe_tag(repo, updated))


# PUBLIC_INTERFACE
@router.delete(
    "/{tag_id}",
    response_model=TagDeleteResult,
    summary="Delete Tag",
    description="Delete a tag and detach it from every task.",
    responses={404: {"description": "Tag not found"}},
)
def delete_tag(tag_id: int, repo: Repository = Depends(get_repository)) -> TagDeleteResult:
    detached = repo.delete_tag(tag_id)
    if detached is None:
        raise NotFoundError("Tag not found", detail={"tag_id": tag_id})
    logger.info("Deleted tag %s, detached from %d tasks", tag_id, detached)
    return TagDeleteResult(message="Tag deleted successfully", affected_tasks=detached)
