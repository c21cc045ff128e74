"""User API router — role and plan assignment."""

from fastapi import APIRouter, Depends, HTTPException, Query

from plangate.common.exceptions import (
    DuplicateError,
    PlanNotFoundError,
    PlangateError,
    UserNotFoundError,
)
from plangate.common.schemas import PaginationParams
from plangate.common.security import AdminContext, require_api_key, resolve_admin
from plangate.users.schemas import UserCreate, UserPage, UserResponse, UserUpdate

router = APIRouter(prefix="/users")


def _get_service():
    from plangate.deps import get_user_service
    return get_user_service()


def _get_db():
    from plangate.deps import get_db
    return get_db()


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(body: UserCreate, admin: AdminContext = Depends(resolve_admin)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            user = await svc.create_user(session, admin=admin, **body.model_dump())
            return UserResponse.model_validate(user)
    except PlanNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except DuplicateError as e:
        raise HTTPException(status_code=409, detail=e.message)


@router.get("", response_model=UserPage)
async def list_users(
    role: str | None = Query(None),
    plan_id: str | None = Query(None),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    params = PaginationParams(page=page, page_size=page_size)
    async with db.get_session() as session:
        items, total = await svc.list_users(
            session, role=role, plan_id=plan_id, search=search,
            offset=params.offset, limit=params.page_size,
        )
        return UserPage.build([UserResponse.model_validate(u) for u in items], total, params)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        user = await svc.get_user(session, user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        return UserResponse.model_validate(user)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str, body: UserUpdate, admin: AdminContext = Depends(resolve_admin),
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            user = await svc.update_user(
                session, user_id, admin=admin, **body.model_dump(exclude_unset=True)
            )
            return UserResponse.model_validate(user)
    except (UserNotFoundError, PlanNotFoundError) as e:
        raise HTTPException(status_code=404, detail=e.message)
    except PlangateError as e:
        raise HTTPException(status_code=400, detail=e.message)
