from fastapi import APIRouter, Depends, Query

from phishnet_app.dependencies import get_analytics_service, get_current_user, require_admin
from phishnet_app.models.user import User
from phishnet_app.schemas.analytics import (
    DangerousTodayData,
    DashboardData,
    DashboardSummary,
    OverviewData,
    PlatformStats,
    RankingsData,
    RecentActivityData,
    ThreatDistributionData,
    TopDomainsData,
    TrendsData,
)
from phishnet_app.schemas.common import APIResponse
from phishnet_app.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/dashboard", response_model=APIResponse[DashboardData])
def get_dashboard(
    user: User = Depends(get_current_user),
    analytics_service: AnalyticsService = Depends(get_analytics_service)
):
    """Platform summary together with the caller's own metrics"""
    return APIResponse(
        message="Dashboard data retrieved successfully",
        data=analytics_service.dashboard(user),
    )


@router.get("/trends", response_model=APIResponse[TrendsData])
def get_trends(
    days: int = Query(30, ge=1, le=365),
    _admin: User = Depends(require_admin),
    analytics_service: AnalyticsService = Depends(get_analytics_service)
):
    return APIResponse(
        message="Trending data retrieved successfully",
        data=analytics_service.trends(days),
    )


@router.get("/summary", response_model=APIResponse[DashboardSummary])
def get_summary(
    _admin: User = Depends(require_admin),
    analytics_service: AnalyticsService = Depends(get_analytics_service)
):
    return APIResponse(
        message="Platform summary retrieved successfully",
        data=analytics_service.summary(),
    )


@router.get("/top-domains", response_model=APIResponse[TopDomainsData])
def get_top_domains(
    limit: int = Query(10, ge=1, le=100),
    _admin: User = Depends(require_admin),
    analytics_service: AnalyticsService = Depends(get_analytics_service)
):
    """Most frequently flagged domains over the last 30 days of history"""
    return APIResponse(
        message="Top phishing domains retrieved successfully",
        data=analytics_service.most_dangerous_domains(limit),
    )


@router.get("/dangerous-today", response_model=APIResponse[DangerousTodayData])
def get_dangerous_today(
    _admin: User = Depends(require_admin),
    analytics_service: AnalyticsService = Depends(get_analytics_service)
):
    return APIResponse(
        message="Dangerous URLs detected today retrieved successfully",
        data=analytics_service.dangerous_today(),
    )


@router.get("/rankings", response_model=APIResponse[RankingsData])
def get_rankings(
    type: str = Query("urls_checked"),
    limit: int = Query(10, ge=1, le=100),
    _admin: User = Depends(require_admin),
    analytics_service: AnalyticsService = Depends(get_analytics_service)
):
    return APIResponse(
        message="User rankings retrieved successfully",
        data=analytics_service.rankings(type, limit),
    )


@router.get("/threat-distribution", response_model=APIResponse[ThreatDistributionData])
def get_threat_distribution(
    _admin: User = Depends(require_admin),
    analytics_service: AnalyticsService = Depends(get_analytics_service)
):
    return APIResponse(
        message="Threat distribution retrieved successfully",
        data=analytics_service.threat_distribution(),
    )


@router.get("/recent-activity", response_model=APIResponse[RecentActivityData])
def get_recent_activity(
    limit: int = Query(20, ge=1, le=100),
    _admin: User = Depends(require_admin),
    analytics_service: AnalyticsService = Depends(get_analytics_service)
):
    return APIResponse(
        message="Recent platform activity retrieved successfully",
        data=analytics_service.recent_activity(limit),
    )


@router.get("/overview", response_model=APIResponse[OverviewData])
def get_overview(
    _admin: User = Depends(require_admin),
    analytics_service: AnalyticsService = Depends(get_analytics_service)
):
    """Totals plus the last 7 days compared with the 7 before"""
    return APIResponse(
        message="Analytics overview retrieved successfully",
        data=analytics_service.overview(),
    )


@router.get("/platform-stats", response_model=APIResponse[PlatformStats])
def get_platform_stats(analytics_service: AnalyticsService = Depends(get_analytics_service)):
    return APIResponse(
        message="Platform statistics retrieved successfully",
        data=analytics_service.platform_stats(),
    )
