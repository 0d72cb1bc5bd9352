"""
Blog Analytics Routes

Endpoints for recording blog views and reading view analytics.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.auth import get_current_user, get_current_user_with_role, get_optional_user
from blog_api.config import settings
from blog_api.database import get_db
from blog_api.middleware.logging import get_client_ip
from blog_api.models.user import RoleEnum, User
from blog_api.schemas.analytics import (
    AdminAnalyticsOverview,
    AdminTrends,
    BlogAnalyticsReport,
    SuccessResponse,
    TrackViewResponse,
    UserBlogsAnalyticsReport,
)
from blog_api.services.analytics_service import analytics_service
from blog_api.services.tracking_service import tracking_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Blog Analytics"])

ADMIN_ROLES = [RoleEnum.admin.value, RoleEnum.superadmin.value]


# Fixed paths are registered before /blogs/{blog_id}/... so they are matched first


@router.get(
    "/blogs/analytics/user",
    response_model=SuccessResponse[UserBlogsAnalyticsReport],
    response_model_by_alias=True,
)
async def get_user_blogs_analytics(
    time_filter: Optional[str] = Query(None, alias="timeFilter"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Get view analytics across all blogs written by the current user.

    **Query**: `timeFilter` is one of `24h`, `7d`, `30d`, `1m`, `1y`, `total`

    **Returns**:
    - Summary totals (blogs, views, unique views, comments, likes)
    - Per-blog stats, newest blog first
    """
    report = await analytics_service.get_user_blogs_analytics(db, current_user.id, time_filter)
    return SuccessResponse[UserBlogsAnalyticsReport](data=report)


@router.get(
    "/blogs/analytics/admin",
    response_model=SuccessResponse[AdminAnalyticsOverview],
    response_model_by_alias=True,
)
async def get_admin_blog_analytics(
    time_filter: Optional[str] = Query(None, alias="timeFilter"),
    current_user: User = Depends(get_current_user_with_role(ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db),
):
    """
    Get site-wide view and like totals compared with the previous period.

    **Requires**: Admin or Superadmin role
    """
    overview = await analytics_service.get_admin_overview(db, time_filter)
    return SuccessResponse[AdminAnalyticsOverview](data=overview)


@router.get(
    "/blogs/analytics/admin/trends",
    response_model=SuccessResponse[AdminTrends],
    response_model_by_alias=True,
)
async def get_admin_trends(
    trend_range: Optional[str] = Query(None, alias="range"),
    current_user: User = Depends(get_current_user_with_role(ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db),
):
    """
    Get views, likes and new users as bucketed time series.

    **Requires**: Admin or Superadmin role

    **Query**: `range` is one of `day` (hourly), `week`, `month` (daily),
    `year` or `all` (monthly); defaults to `week`
    """
    trends = await analytics_service.get_admin_trends(db, trend_range)
    return SuccessResponse[AdminTrends](data=trends)


@router.post(
    "/blogs/{blog_id}/track-view",
    response_model=TrackViewResponse,
    response_model_by_alias=True,
)
async def track_blog_view(
    blog_id: int,
    request: Request,
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Record a view of a blog.

    Open to anonymous viewers. Always reports success; tracking problems
    are logged and never surface to the reader.
    """
    headers = request.headers
    try:
        await asyncio.wait_for(
            tracking_service.record_view(
                db,
                blog_id=blog_id,
                ip_address=get_client_ip(request),
                user_agent=headers.get("User-Agent"),
                referrer=headers.get("Referer"),
                user_id=viewer.id if viewer else None,
                session_id=headers.get("X-Session-ID"),
                country=headers.get(settings.geo_country_header),
                city=headers.get(settings.geo_city_header),
            ),
            timeout=settings.analytics_tracking_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.warning(
            f"View tracking for blog {blog_id} timed out after {settings.analytics_tracking_timeout_seconds}s",
            extra={"blog_id": blog_id},
        )

    return TrackViewResponse(message="View tracked successfully")


@router.get(
    "/blogs/{blog_id}/analytics",
    response_model=SuccessResponse[BlogAnalyticsReport],
    response_model_by_alias=True,
)
async def get_blog_analytics(
    blog_id: int,
    time_filter: Optional[str] = Query(None, alias="timeFilter"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Get the analytics report for one blog.

    **Requires**: Authenticated author of the blog

    **Query**: `timeFilter` is one of `24h`, `7d`, `30d`, `1m`, `1y`, `total`;
    anything else reports lifetime totals

    **Returns**:
    - Overview (views, unique views, comments, likes, engagement rate)
    - Daily views, zero-filled
    - Referrer, device, browser, OS and country breakdowns
    """
    report = await analytics_service.get_blog_analytics(db, blog_id, current_user.id, time_filter)
    return SuccessResponse[BlogAnalyticsReport](data=report)
