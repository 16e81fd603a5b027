from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, status

from ..errors import NotFoundError
from ..models import CategoryEntity
from ..ordering import sort_tasks
from ..repositories import Repository, TaskFilter, get_repository
from ..schemas import CategoryCreate, CategoryDetail, CategoryOut, CategoryUpdate
from ..services import TaskService, describe_category, get_task_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/categories",
    tags=["categories"],
)


def _get_or_404(repo: Repository, category_id: int) -> CategoryEntity:
    category = repo.get_category(category_id)
    if category is None:
        raise NotFoundError("Category not found", detail={"category_id": category_id})
    return category


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=List[CategoryOut],
    summary="List Categories",
    description="All categories with task counts and completion rate, oldest first.",
)
def list_categories(repo: Repository = Depends(get_repository)) -> List[CategoryOut]:
    return [CategoryOut(**describe_category(repo, c)) for c in repo.list_categories()]


# PUBLIC_INTERFACE
@router.get(
    "/{category_id}",
    response_model=CategoryDetail,
    summary="Get Category",
    description="A single category with all of its tasks, newest first.",
    responses={404: {"description": "Category not found"}},
)
def get_category(
    category_id: int,
    repo: Repository = Depends(get_repository),
    service: TaskService = Depends(get_task_service),
) -> CategoryDetail:
    category = _get_or_404(repo, category_id)
    now = service.clock()
    owned = repo.list_tasks(TaskFilter(category_id=category_id))
    tasks = service.present_many(sort_tasks(owned, now=now), now=now)
    return CategoryDetail(**describe_category(repo, category), tasks=tasks)


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=CategoryOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Category",
    responses={409: {"description": "Category with this name already exists"}},
)
def create_category(payload: CategoryCreate, repo: Repository = Depends(get_repository)) -> CategoryOut:
    created = repo.create_category(payload.model_dump())
    logger.info("Created category %s (%s)", created["id"], created["name"])
    return CategoryOut(**describe_category(repo, created))


# PUBLIC_INTERFACE
@router.put(
    "/{category_id}",
    response_model=CategoryOut,
    summary="Update Category",
    responses={
        404: {"description": "Category not found"},
        409: {"description": "Category with this name already exists"},
    },
)
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    repo: Repository = Depends(get_repository),
) -> CategoryOut:
    updated = repo.update_category(category_id, payload.changes())
    if updated is None:
        raise NotFoundError("Category not found", detail={"category_id": category_id})
    return CategoryOut(**describe_category(repo, updated))


# PUBLIC_INTERFACE
@router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Category",
    description="Delete an empty category. Categories that still own tasks are kept (409).",
    responses={
        204: {"description": "Category deleted"},
        404: {"description": "Category not found"},
        409: {"description": "Category still owns tasks"},
    },
)
def delete_category(category_id: int, repo: Repository = Depends(get_repository)) -> None:
    if not repo.delete_category(category_id):
        raise NotFoundError("Category not found", detail={"category_id": category_id})
    logger.info("Deleted category %s", category_id)
    return None
