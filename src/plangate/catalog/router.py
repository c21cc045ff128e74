"""Catalog API router — features, plans, and plan grants."""

from fastapi import APIRouter, Depends, HTTPException, Query

from plangate.common.exceptions import (
    DuplicateError,
    FeatureNotFoundError,
    PlanNotFoundError,
    ProtectedPlanError,
)
from plangate.common.security import AdminContext, require_api_key, resolve_admin
from plangate.catalog.schemas import (
    CatalogMatrixResponse,
    FeatureCreate,
    FeatureResponse,
    FeatureUpdate,
    GrantBody,
    GrantResponse,
    PlanCreate,
    PlanGrantResponse,
    PlanResponse,
    PlanUpdate,
    PlanWithGrants,
)

router = APIRouter()


def _get_service():
    from plangate.deps import get_catalog_service
    return get_catalog_service()


def _get_db():
    from plangate.deps import get_db
    return get_db()


# ── Features ──

@router.post("/features", response_model=FeatureResponse, status_code=201)
async def create_feature(body: FeatureCreate, admin: AdminContext = Depends(resolve_admin)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            feature = await svc.create_feature(
                session, body.key,
                category=body.category,
                description=body.description,
                default_value=body.default_value,
                admin=admin,
            )
            return FeatureResponse.model_validate(feature)
    except DuplicateError as e:
        raise HTTPException(status_code=409, detail=e.message)


@router.get("/features", response_model=list[FeatureResponse])
async def list_features(_=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        features = await svc.list_features(session)
        return [FeatureResponse.model_validate(f) for f in features]


@router.get("/features/{key}", response_model=FeatureResponse)
async def get_feature(key: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        feature = await svc.get_feature_by_key(session, key)
        if feature is None:
            raise HTTPException(status_code=404, detail="Feature not found")
        return FeatureResponse.model_validate(feature)


@router.patch("/features/{key}", response_model=FeatureResponse)
async def update_feature(
    key: str, body: FeatureUpdate, admin: AdminContext = Depends(resolve_admin),
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            feature = await svc.update_feature(
                session, key, admin=admin, **body.model_dump(exclude_none=True)
            )
            return FeatureResponse.model_validate(feature)
    except FeatureNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.delete("/features/{key}", status_code=204)
async def delete_feature(key: str, admin: AdminContext = Depends(resolve_admin)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            await svc.delete_feature(session, key, admin=admin)
    except FeatureNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


# ── Plans ──

@router.post("/plans", response_model=PlanResponse, status_code=201)
async def create_plan(body: PlanCreate, admin: AdminContext = Depends(resolve_admin)):
    svc = _get_service()
    db = _get_db()
    fields = body.model_dump(exclude={"name"})
    try:
        async with db.get_session() as session:
            plan = await svc.create_plan(session, body.name, admin=admin, **fields)
            return PlanResponse.model_validate(plan)
    except DuplicateError as e:
        raise HTTPException(status_code=409, detail=e.message)


@router.get("/plans", response_model=list[PlanResponse])
async def list_plans(
    include_inactive: bool = Query(True),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        plans = await svc.list_plans(session, include_inactive=include_inactive)
        return [PlanResponse.model_validate(p) for p in plans]


@router.get("/plans/{plan_id}", response_model=PlanWithGrants)
async def get_plan(plan_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        plan = await svc.get_plan(session, plan_id)
        if plan is None:
            raise HTTPException(status_code=404, detail="Plan not found")
        grants = await svc.grants_for_plan(session, plan.id)
        return PlanWithGrants(
            **PlanResponse.model_validate(plan).model_dump(),
            grants={k: GrantResponse(**g.to_dict()) for k, g in grants.items()},
        )


@router.patch("/plans/{plan_id}", response_model=PlanResponse)
async def update_plan(
    plan_id: str, body: PlanUpdate, admin: AdminContext = Depends(resolve_admin),
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            plan = await svc.update_plan(
                session, plan_id, admin=admin, **body.model_dump(exclude_none=True)
            )
            return PlanResponse.model_validate(plan)
    except PlanNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.delete("/plans/{plan_id}", status_code=204)
async def delete_plan(plan_id: str, admin: AdminContext = Depends(resolve_admin)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            await svc.delete_plan(session, plan_id, admin=admin)
    except PlanNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ProtectedPlanError as e:
        raise HTTPException(status_code=409, detail=e.message)


# ── Grants ──

@router.put("/plans/{plan_id}/features/{feature_key}", response_model=PlanGrantResponse)
async def upsert_plan_feature(
    plan_id: str,
    feature_key: str,
    body: GrantBody,
    admin: AdminContext = Depends(resolve_admin),
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            grant = await svc.upsert_plan_feature(
                session, plan_id, feature_key,
                enabled=body.enabled, limit=body.limit, admin=admin,
            )
            return PlanGrantResponse(
                plan_id=grant.plan_id,
                feature_key=feature_key,
                enabled=grant.enabled,
                limit=grant.limit,
            )
    except (PlanNotFoundError, FeatureNotFoundError) as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.delete("/plans/{plan_id}/features/{feature_key}", status_code=204)
async def remove_plan_feature(
    plan_id: str, feature_key: str, admin: AdminContext = Depends(resolve_admin),
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            removed = await svc.remove_plan_feature(session, plan_id, feature_key, admin=admin)
    except (PlanNotFoundError, FeatureNotFoundError) as e:
        raise HTTPException(status_code=404, detail=e.message)
    if not removed:
        raise HTTPException(status_code=404, detail="Grant not found")


# ── Matrix ──

@router.get("/catalog", response_model=CatalogMatrixResponse)
async def get_catalog(_=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        matrix = await svc.get_matrix(session)
        return CatalogMatrixResponse(
            plans=[
                PlanWithGrants(
                    **PlanResponse.model_validate(entry["plan"]).model_dump(),
                    grants={k: GrantResponse(**g.to_dict()) for k, g in entry["grants"].items()},
                )
                for entry in matrix["plans"]
            ],
            features=[FeatureResponse.model_validate(f) for f in matrix["features"]],
        )
