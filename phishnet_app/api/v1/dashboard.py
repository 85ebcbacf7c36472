from fastapi import APIRouter, Depends

from phishnet_app.dependencies import get_current_user, get_user_service
from phishnet_app.models.user import User
from phishnet_app.schemas.user import SecurityTipsResponse
from phishnet_app.services.security_tips import build_security_tips
from phishnet_app.services.user_service import UserService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/security-tips", response_model=SecurityTipsResponse)
def get_security_tips(
    user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    """Up to three tips derived from the caller's scan history"""
    tips = build_security_tips(
        stats=user_service.threat_stats(user),
        has_email_scans=user_service.has_email_scans(user),
        two_factor_enabled=user.two_factor_enabled,
    )
    return SecurityTipsResponse(tips=tips)
