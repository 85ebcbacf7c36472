from typing import Optional

from fastapi import APIRouter, Depends, Query

from phishnet_app.dependencies import get_blog_service
from phishnet_app.schemas.blog import BlogListResponse, CategoryCountsResponse
from phishnet_app.services.blog_service import BlogService
from phishnet_app.services.errors import ValidationError

router = APIRouter(prefix="/blogs", tags=["blogs"])

MAX_LIMIT = 100
MAX_RECENT_LIMIT = 10


def _clamp(limit: Optional[int], default: int, maximum: int) -> int:
    # Missing, zero or negative limits fall back to the default
    if not limit or limit < 1:
        return default
    return min(limit, maximum)


@router.get("", response_model=BlogListResponse)
async def get_all_blogs(
    limit: Optional[int] = Query(None),
    blog_service: BlogService = Depends(get_blog_service)
):
    blogs = await blog_service.get_all_blogs(_clamp(limit, 50, MAX_LIMIT))
    return BlogListResponse(data=blogs, count=len(blogs))


@router.get("/category/{category}", response_model=BlogListResponse)
async def get_blogs_by_category(
    category: str,
    limit: Optional[int] = Query(None),
    blog_service: BlogService = Depends(get_blog_service)
):
    """Posts in one category; "all" disables the filter"""
    blogs = await blog_service.get_blogs_by_category(category, _clamp(limit, 50, MAX_LIMIT))
    return BlogListResponse(data=blogs, count=len(blogs), category=category)


@router.get("/counts/categories", response_model=CategoryCountsResponse)
async def get_category_counts(blog_service: BlogService = Depends(get_blog_service)):
    return CategoryCountsResponse(data=await blog_service.get_category_counts())


@router.get("/search", response_model=BlogListResponse)
async def search_blogs(
    q: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
    blog_service: BlogService = Depends(get_blog_service)
):
    if not q:
        raise ValidationError("Search query is required")
    blogs = await blog_service.search_blogs(q, _clamp(limit, 50, MAX_LIMIT))
    return BlogListResponse(data=blogs, count=len(blogs), query=q)


@router.get("/recent", response_model=BlogListResponse)
async def get_recent_posts(
    limit: Optional[int] = Query(None),
    blog_service: BlogService = Depends(get_blog_service)
):
    blogs = await blog_service.get_all_blogs(_clamp(limit, 3, MAX_RECENT_LIMIT))
    return BlogListResponse(data=blogs, count=len(blogs))
