from typing import Optional

from fastapi import APIRouter, Depends

from phishnet_app.dependencies import get_current_user, get_optional_user, get_scan_service
from phishnet_app.models.user import User
from phishnet_app.schemas.common import APIResponse
from phishnet_app.schemas.scan import (
    BatchScanRequest,
    BatchScanResult,
    EmailScanRequest,
    EmailScanResult,
    UrlScanRequest,
    UrlScanResult,
)
from phishnet_app.services.scan_service import ScanService

router = APIRouter(prefix="/scan", tags=["scan"])


@router.post("/url", response_model=APIResponse[UrlScanResult])
async def scan_url(
    data: UrlScanRequest,
    user: Optional[User] = Depends(get_optional_user),
    scan_service: ScanService = Depends(get_scan_service)
):
    """Score a URL; signed-in users also get a history record"""
    result = await scan_service.scan_url(data.url, user)
    return APIResponse(
        message="URL is safe" if result.is_safe else "URL appears to be unsafe or phishing",
        data=result,
    )


@router.post("/email", response_model=APIResponse[EmailScanResult])
async def scan_email(
    data: EmailScanRequest,
    user: Optional[User] = Depends(get_optional_user),
    scan_service: ScanService = Depends(get_scan_service)
):
    result = await scan_service.scan_email(data, user)
    return APIResponse(
        message="Email appears to be safe" if result.is_safe else "Email contains suspicious elements",
        data=result,
    )


@router.post("/batch", response_model=APIResponse[BatchScanResult])
async def scan_batch(
    data: BatchScanRequest,
    user: User = Depends(get_current_user),
    scan_service: ScanService = Depends(get_scan_service)
):
    result = await scan_service.scan_batch(data.urls, user)
    return APIResponse(
        message=f"Batch check complete. {result.safe_count} safe, {result.unsafe_count} unsafe.",
        data=result,
    )
