"""Task endpoints."""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from studystreak.core.auth import get_current_user
from studystreak.core.database import get_db
from studystreak.models.user import User
from studystreak.schemas.task import (
    TaskCreate,
    TaskFilter,
    TaskListResponse,
    TaskResponse,
    TaskUpdate,
)
from studystreak.services.task_service import (
    create_task,
    delete_task,
    get_owned_task,
    list_tasks,
    update_task,
)

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("", response_model=TaskListResponse)
async def get_tasks(
    response: Response,
    filters: TaskFilter = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    payload, hit = await list_tasks(db, user, filters)
    response.headers["X-Cache"] = "HIT" if hit else "MISS"
    return payload


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def post_task(
    payload: TaskCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await create_task(db, user, payload)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_owned_task(db, task_id, user.id)


@router.patch("/{task_id}")
async def patch_task(
    task_id: int,
    payload: TaskUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    task, unlocked = await update_task(db, user, task_id, payload)
    return {
        **TaskResponse.model_validate(task).model_dump(mode="json"),
        "unlocked_achievements": unlocked,
    }


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_task(
    task_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await delete_task(db, user, task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
