from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from phishnet_app.dependencies import get_current_user, get_user_service
from phishnet_app.models.user import User
from phishnet_app.schemas.auth import Preferences, ProfileData, UserProfile
from phishnet_app.schemas.common import APIResponse
from phishnet_app.schemas.user import (
    ActivityData,
    ActivityItem,
    DeleteAccountRequest,
    HistoryPage,
    PasswordUpdate,
    PreferencesData,
    PreferencesUpdate,
    ProfileUpdate,
    UserStatsData,
)
from phishnet_app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/profile", response_model=APIResponse[ProfileData])
def get_profile(user: User = Depends(get_current_user)):
    return APIResponse(
        message="Profile retrieved successfully",
        data=ProfileData(user=UserProfile.model_validate(user)),
    )


@router.put("/profile", response_model=APIResponse[ProfileData])
def update_profile(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    user = user_service.update_profile(user, data)
    return APIResponse(
        message="Profile updated successfully",
        data=ProfileData(user=UserProfile.model_validate(user)),
    )


@router.put("/password", response_model=APIResponse[None])
def change_password(
    data: PasswordUpdate,
    user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    """Change password; every session has to log in again"""
    user_service.change_password(user, data)
    return APIResponse(message="Password changed successfully. Please login again.")


@router.put("/preferences", response_model=APIResponse[PreferencesData])
def update_preferences(
    data: PreferencesUpdate,
    user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    preferences = user_service.update_preferences(user, data)
    return APIResponse(
        message="Preferences updated successfully",
        data=PreferencesData(preferences=Preferences.model_validate(preferences)),
    )


@router.get("/history", response_model=APIResponse[HistoryPage])
def get_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    threat_type: Optional[str] = Query(None, alias="threatType"),
    is_safe: Optional[bool] = Query(None, alias="isSafe"),
    user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    """Paginated scan history, newest first"""
    return APIResponse(
        message="Check history retrieved successfully",
        data=user_service.get_history(user, page, limit, threat_type, is_safe),
    )


@router.get("/stats", response_model=APIResponse[UserStatsData])
def get_stats(
    user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    return APIResponse(
        message="User statistics retrieved successfully",
        data=user_service.get_stats(user),
    )


@router.delete("/account", response_model=APIResponse[None])
def delete_account(
    data: Optional[DeleteAccountRequest] = Body(None),
    user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    user_service.delete_account(user, data.password if data else None)
    return APIResponse(message="Account deleted successfully")


@router.get("/activity", response_model=APIResponse[ActivityData])
def get_activity(
    days: int = Query(7, ge=1, le=365),
    user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    records = user_service.recent_activity(user, days)
    return APIResponse(
        message="Recent activity retrieved successfully",
        data=ActivityData(
            days=days,
            activity=[ActivityItem.model_validate(record) for record in records],
        ),
    )
