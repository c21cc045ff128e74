"""Entitlement API router — the read path used by consuming services."""

from fastapi import APIRouter, Depends, HTTPException, Query

from plangate.common.exceptions import PlanNotFoundError, UserNotFoundError
from plangate.common.logging import get_logger
from plangate.common.security import require_api_key
from plangate.entitlements.schemas import FeatureCheckResponse, UserFeaturesResponse

router = APIRouter()

logger = get_logger("entitlements.router")


def _get_service():
    from plangate.deps import get_entitlement_service
    return get_entitlement_service()


def _get_db():
    from plangate.deps import get_db
    return get_db()


async def _resolve(user_id: str):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            return await svc.resolve_features(session, user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except PlanNotFoundError as e:
        logger.error("Cannot resolve features: %s", e.message, extra={"user_id": user_id})
        raise HTTPException(status_code=500, detail="Feature catalog is misconfigured")


@router.get("/users/{user_id}/features", response_model=UserFeaturesResponse)
async def get_user_features(
    user_id: str,
    detail: bool = Query(False),
    _=Depends(require_api_key),
):
    features = await _resolve(user_id)
    return UserFeaturesResponse(
        features=features.to_detail() if detail else features.to_public(),
        plan_id=features.plan_id,
        plan_name=features.plan_name,
        role=features.role,
        bypass=features.bypass,
    )


@router.get("/users/{user_id}/features/{feature_key}", response_model=FeatureCheckResponse)
async def check_user_feature(user_id: str, feature_key: str, _=Depends(require_api_key)):
    features = await _resolve(user_id)
    return FeatureCheckResponse(
        feature=feature_key,
        allowed=features.can_use(feature_key),
        limit=features.get_limit(feature_key),
    )
