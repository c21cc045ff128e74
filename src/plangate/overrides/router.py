"""Override API router — per-user feature exceptions."""

from fastapi import APIRouter, Depends, HTTPException, Query

from plangate.common.exceptions import FeatureNotFoundError, UserNotFoundError
from plangate.common.schemas import PaginationParams
from plangate.common.security import AdminContext, require_api_key, resolve_admin
from plangate.overrides.schemas import (
    OverrideBody,
    OverrideLogPage,
    OverrideLogResponse,
    OverrideResponse,
    UserOverridesResponse,
)

router = APIRouter()


def _get_service():
    from plangate.deps import get_override_service
    return get_override_service()


def _get_db():
    from plangate.deps import get_db
    return get_db()


@router.get("/users/{user_id}/overrides", response_model=UserOverridesResponse)
async def get_user_overrides(user_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            overrides = await svc.get_user_overrides(session, user_id)
            return UserOverridesResponse(user_id=user_id, overrides=overrides)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.put("/users/{user_id}/overrides/{feature_key}", response_model=OverrideResponse)
async def set_override(
    user_id: str,
    feature_key: str,
    body: OverrideBody,
    admin: AdminContext = Depends(resolve_admin),
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            row = await svc.set_override(
                session, user_id, feature_key,
                enabled=body.enabled,
                limit=body.limit,
                reason=body.reason,
                clear_limit=body.clears_limit,
                admin=admin,
            )
            return OverrideResponse(
                user_id=row.user_id,
                feature_key=feature_key,
                enabled=row.enabled,
                limit=row.limit,
                limit_set=row.limit_set,
                reason=row.reason,
                created_by=row.created_by,
            )
    except (UserNotFoundError, FeatureNotFoundError) as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.delete("/users/{user_id}/overrides/{feature_key}", status_code=204)
async def delete_override(
    user_id: str, feature_key: str, admin: AdminContext = Depends(resolve_admin),
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            deleted = await svc.delete_override(session, user_id, feature_key, admin=admin)
    except (UserNotFoundError, FeatureNotFoundError) as e:
        raise HTTPException(status_code=404, detail=e.message)
    if not deleted:
        raise HTTPException(status_code=404, detail="Override not found")


@router.get("/override-logs", response_model=OverrideLogPage)
async def list_override_logs(
    user_id: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    params = PaginationParams(page=page, page_size=page_size)
    async with db.get_session() as session:
        items, total = await svc.list_override_logs(
            session, user_id=user_id, offset=params.offset, limit=params.page_size,
        )
        return OverrideLogPage.build(
            [OverrideLogResponse.model_validate(e) for e in items], total, params,
        )
