"""Audit log API router."""

from fastapi import APIRouter, Depends, Query

from plangate.common.schemas import PaginationParams
from plangate.common.security import require_api_key
from plangate.audit.schemas import AdminActionPage, AdminActionResponse, AuditChainVerification

router = APIRouter()


def _get_service():
    from plangate.deps import get_audit_service
    return get_audit_service()


def _get_db():
    from plangate.deps import get_db
    return get_db()


@router.get("/audit", response_model=AdminActionPage)
async def list_admin_actions(
    resource_type: str | None = Query(None),
    resource_id: str | None = Query(None),
    admin_id: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    params = PaginationParams(page=page, page_size=page_size)
    async with db.get_session() as session:
        items, total = await svc.list_actions(
            session,
            resource_type=resource_type,
            resource_id=resource_id,
            admin_id=admin_id,
            offset=params.offset,
            limit=params.page_size,
        )
        return AdminActionPage.build(
            [AdminActionResponse.model_validate(e) for e in items], total, params,
        )


@router.get(
    "/audit/{resource_type}/{resource_id}/verify",
    response_model=AuditChainVerification,
)
async def verify_audit_chain(
    resource_type: str, resource_id: str, _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        result = await svc.verify_chain(session, resource_type, resource_id)
        return AuditChainVerification(**result)
