"""
Analytics Service

Builds blog analytics reports from raw ``blog_views`` rows: per-blog
reports for authors, per-author rollups, and the admin overview and
trend series. The denormalized ``blog_analytics`` summary is all-time
only and is not used here.
"""

import logging
from collections import Counter
from collections.abc import Callable
from datetime import datetime, time
from typing import Any

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from blog_api.config import settings
from blog_api.exceptions import AuthorizationError
from blog_api.models.blog import Blog
from blog_api.models.blog_like import BlogLike
from blog_api.models.blog_view import BlogView
from blog_api.models.comment import Comment
from blog_api.models.user import User
from blog_api.schemas.analytics import (
    AdminAnalyticsOverview,
    AdminChanges,
    AdminTrends,
    AnalyticsOverview,
    BlogAnalyticsReport,
    BlogInfo,
    BlogStats,
    BreakdownItem,
    DailyViews,
    PeriodChange,
    UserAnalyticsSummary,
    UserBlogAnalytics,
    UserBlogsAnalyticsReport,
)
from blog_api.utils.referrer import extract_domain
from blog_api.utils.time_window import (
    TimeFilter,
    TrendRange,
    bucket_key,
    day_range,
    parse_time_filter,
    trailing_days,
    trend_buckets,
    utcnow,
)
from blog_api.utils.user_agent import UNKNOWN

logger = logging.getLogger(__name__)


def rank_breakdown(counts: Counter, limit: int | None = None) -> list[BreakdownItem]:
    """Sort by count descending, then label ascending, optionally truncated."""
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    if limit is not None:
        ordered = ordered[:limit]
    return [BreakdownItem(label=label, count=count) for label, count in ordered]


def engagement_rate(comments: int, likes: int, total_views: int) -> float:
    return round((comments + likes) / max(total_views, 1), 4)


def percent_change(current: int, previous: int) -> float:
    if previous <= 0:
        return 0.0
    return round((current - previous) / previous * 100, 2)


def _unknown_if_missing(value: Any) -> str:
    return UNKNOWN if value is None else str(value)


def _skip_missing(value: Any) -> str | None:
    return None if value is None else str(value)


class AnalyticsService:
    """Service for generating blog analytics reports"""

    # ------------------------------------------------------------------
    # Per-blog report
    # ------------------------------------------------------------------

    async def get_blog_analytics(
        self,
        db: AsyncSession,
        blog_id: int,
        requester_id: int,
        time_filter: str | TimeFilter | None = None,
        now: datetime | None = None,
    ) -> BlogAnalyticsReport:
        """
        Get the analytics report for one blog.

        Args:
            db: Database session
            blog_id: Blog ID
            requester_id: ID of the user asking; must be the blog's author
            time_filter: Reporting window; unknown values mean "total"
            now: Override for the current time (naive UTC)

        Returns:
            BlogAnalyticsReport; zeroed if the blog does not exist

        Raises:
            AuthorizationError: If the requester is not the blog's author
        """
        window = parse_time_filter(time_filter)
        now = now or utcnow()

        blog = await db.get(Blog, blog_id)
        if blog is None:
            logger.info(f"Analytics requested for missing blog {blog_id}; returning empty report")
            return self.empty_report(blog_id, window, now)

        if blog.author_id != requester_id:
            logger.warning(
                f"User {requester_id} denied analytics for blog {blog_id}",
                extra={"user_id": requester_id, "blog_id": blog_id},
            )
            raise AuthorizationError("Not authorized to view analytics for this blog")

        conditions = [BlogView.blog_id == blog_id]
        since = window.day_start(now)
        if since is not None:
            conditions.append(BlogView.created_at >= since)

        total_views, unique_views = await self._count_views(db, conditions)
        comments_count = await db.scalar(select(func.count(Comment.id)).where(Comment.blog_id == blog_id)) or 0
        likes_count = await db.scalar(select(func.count(BlogLike.id)).where(BlogLike.blog_id == blog_id)) or 0

        days = await self._report_days(db, blog, window, now)
        views_over_time = await self._views_over_time(db, blog_id, days)

        limit = settings.analytics_breakdown_limit
        return BlogAnalyticsReport(
            blog=BlogInfo(id=blog.id, title=blog.title, slug=blog.slug, created_at=blog.created_at),
            time_filter=window,
            overview=AnalyticsOverview(
                total_views=total_views,
                unique_views=unique_views,
                comments_count=comments_count,
                likes_count=likes_count,
                engagement_rate=engagement_rate(comments_count, likes_count, total_views),
            ),
            views_over_time=views_over_time,
            referral_data=await self._breakdown(db, BlogView.referrer, conditions, extract_domain, limit),
            device_data=await self._breakdown(db, BlogView.device_type, conditions, _unknown_if_missing),
            browser_data=await self._breakdown(db, BlogView.browser, conditions, _unknown_if_missing),
            os_data=await self._breakdown(db, BlogView.os, conditions, _unknown_if_missing),
            country_data=await self._breakdown(db, BlogView.country, conditions, _skip_missing, limit),
        )

    @staticmethod
    def empty_report(blog_id: int, window: TimeFilter, now: datetime) -> BlogAnalyticsReport:
        days = trailing_days(window.days, now.date()) if window.days else []
        return BlogAnalyticsReport(
            blog=BlogInfo(id=blog_id),
            time_filter=window,
            views_over_time=[DailyViews(date=day.isoformat(), views=0) for day in days],
        )

    @staticmethod
    async def _count_views(db: AsyncSession, conditions: list) -> tuple[int, int]:
        result = await db.execute(
            select(
                func.count(BlogView.id),
                func.count(func.distinct(BlogView.ip_address)),
            ).where(*conditions)
        )
        total_views, unique_views = result.one()
        return total_views or 0, unique_views or 0

    @staticmethod
    async def _report_days(db: AsyncSession, blog: Blog, window: TimeFilter, now: datetime) -> list:
        today = now.date()
        if window.days is not None:
            return trailing_days(window.days, today)

        first_view = await db.scalar(select(func.min(BlogView.created_at)).where(BlogView.blog_id == blog.id))
        start = blog.created_at.date() if blog.created_at else today
        if first_view is not None and first_view.date() < start:
            start = first_view.date()
        return day_range(start, today)

    @staticmethod
    async def _views_over_time(db: AsyncSession, blog_id: int, days: list) -> list[DailyViews]:
        """Daily view counts with an entry for every day, including empty ones."""
        if not days:
            return []

        day_column = func.date(BlogView.created_at)
        result = await db.execute(
            select(day_column, func.count(BlogView.id))
            .where(
                BlogView.blog_id == blog_id,
                BlogView.created_at >= datetime.combine(days[0], time.min),
            )
            .group_by(day_column)
        )
        per_day = {str(day): count for day, count in result.all()}
        return [DailyViews(date=day.isoformat(), views=per_day.get(day.isoformat(), 0)) for day in days]

    @staticmethod
    async def _breakdown(
        db: AsyncSession,
        column,
        conditions: list,
        normalize: Callable[[Any], str | None],
        limit: int | None = None,
    ) -> list[BreakdownItem]:
        """
        Count views per value of ``column``.

        ``normalize`` maps each raw value to its label; values mapped to
        None are left out. Several raw values may share a label (e.g.
        referrer URLs on the same host).
        """
        result = await db.execute(
            select(column, func.count(BlogView.id)).where(*conditions).group_by(column)
        )
        counts: Counter = Counter()
        for value, count in result.all():
            label = normalize(value)
            if label:
                counts[label] += count
        return rank_breakdown(counts, limit)

    # ------------------------------------------------------------------
    # Per-author rollup
    # ------------------------------------------------------------------

    async def get_user_blogs_analytics(
        self,
        db: AsyncSession,
        user_id: int,
        time_filter: str | TimeFilter | None = None,
        now: datetime | None = None,
    ) -> UserBlogsAnalyticsReport:
        """Roll up view, comment and like counts across all of a user's blogs."""
        window = parse_time_filter(time_filter)
        now = now or utcnow()

        blogs_result = await db.execute(
            select(Blog).where(Blog.author_id == user_id).order_by(Blog.created_at.desc(), Blog.id.desc())
        )
        blogs = list(blogs_result.scalars().all())
        if not blogs:
            return UserBlogsAnalyticsReport(time_filter=window)

        blog_ids = [blog.id for blog in blogs]
        conditions = [BlogView.blog_id.in_(blog_ids)]
        since = window.day_start(now)
        if since is not None:
            conditions.append(BlogView.created_at >= since)

        total_views, unique_views = await self._count_views(db, conditions)

        views_result = await db.execute(
            select(
                BlogView.blog_id,
                func.count(BlogView.id),
                func.count(func.distinct(BlogView.ip_address)),
            )
            .where(*conditions)
            .group_by(BlogView.blog_id)
        )
        views_by_blog = {blog_id: (views, uniques) for blog_id, views, uniques in views_result.all()}

        comments_result = await db.execute(
            select(Comment.blog_id, func.count(Comment.id)).where(Comment.blog_id.in_(blog_ids)).group_by(Comment.blog_id)
        )
        comments_by_blog: dict[int, int] = dict(comments_result.all())

        likes_result = await db.execute(
            select(BlogLike.blog_id, func.count(BlogLike.id))
            .where(BlogLike.blog_id.in_(blog_ids))
            .group_by(BlogLike.blog_id)
        )
        likes_by_blog: dict[int, int] = dict(likes_result.all())

        per_blog = []
        for blog in blogs:
            views, uniques = views_by_blog.get(blog.id, (0, 0))
            per_blog.append(
                UserBlogAnalytics(
                    id=blog.id,
                    title=blog.title,
                    slug=blog.slug,
                    cover_image=blog.cover_image,
                    published=blog.published,
                    created_at=blog.created_at,
                    stats=BlogStats(
                        total_views=views,
                        unique_views=uniques,
                        comments_count=comments_by_blog.get(blog.id, 0),
                        likes_count=likes_by_blog.get(blog.id, 0),
                    ),
                )
            )

        return UserBlogsAnalyticsReport(
            time_filter=window,
            summary=UserAnalyticsSummary(
                total_blogs=len(blogs),
                total_views=total_views,
                unique_views=unique_views,
                total_comments=sum(comments_by_blog.values()),
                total_likes=sum(likes_by_blog.values()),
            ),
            blogs=per_blog,
        )

    # ------------------------------------------------------------------
    # Admin dashboard
    # ------------------------------------------------------------------

    async def get_admin_overview(
        self,
        db: AsyncSession,
        time_filter: str | TimeFilter | None = None,
        now: datetime | None = None,
    ) -> AdminAnalyticsOverview:
        """Site-wide views and likes for a window, compared with the preceding window."""
        window = parse_time_filter(time_filter)
        now = now or utcnow()
        cutoff = window.cutoff(now)

        total_views = await self._count_between(db, BlogView.id, BlogView.created_at, cutoff, None)
        total_likes = await self._count_between(db, BlogLike.id, BlogLike.created_at, cutoff, None)
        total_blogs = await db.scalar(select(func.count(Blog.id))) or 0

        previous_views = previous_likes = 0
        previous = window.previous_window(now)
        if previous is not None:
            start, end = previous
            previous_views = await self._count_between(db, BlogView.id, BlogView.created_at, start, end)
            previous_likes = await self._count_between(db, BlogLike.id, BlogLike.created_at, start, end)

        return AdminAnalyticsOverview(
            total_views=total_views,
            total_likes=total_likes,
            average_views_per_blog=round(total_views / total_blogs) if total_blogs else 0,
            total_blogs=total_blogs,
            time_filter=window,
            period_label=window.label,
            changes=AdminChanges(
                views=PeriodChange(
                    current=total_views,
                    previous=previous_views,
                    change=percent_change(total_views, previous_views),
                    period=window.label,
                ),
                likes=PeriodChange(
                    current=total_likes,
                    previous=previous_likes,
                    change=percent_change(total_likes, previous_likes),
                    period=window.label,
                ),
            ),
        )

    @staticmethod
    async def _count_between(db: AsyncSession, id_column, time_column, start, end) -> int:
        stmt = select(func.count(id_column))
        if start is not None:
            stmt = stmt.where(time_column >= start)
        if end is not None:
            stmt = stmt.where(time_column < end)
        return await db.scalar(stmt) or 0

    async def get_admin_trends(
        self,
        db: AsyncSession,
        trend_range: str | TrendRange | None = None,
        now: datetime | None = None,
    ) -> AdminTrends:
        """Zero-filled hourly, daily or monthly series of views, likes and new users."""
        rng = trend_range if isinstance(trend_range, TrendRange) else TrendRange.parse(trend_range)
        now = now or utcnow()
        start, keys = trend_buckets(rng, now)

        async def series(time_column) -> list[int]:
            result = await db.execute(select(time_column).where(time_column >= start, time_column <= now))
            counts = Counter(bucket_key(rng, moment) for moment in result.scalars().all() if moment is not None)
            return [counts.get(key, 0) for key in keys]

        return AdminTrends(
            labels=keys,
            views=await series(BlogView.created_at),
            likes=await series(BlogLike.created_at),
            users=await series(User.created_at),
            period=rng.label,
            range=rng,
        )


# Singleton instance
analytics_service = AnalyticsService()
