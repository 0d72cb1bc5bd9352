"""
Blog View Tracking Service

Records one row per blog page view and keeps the per-blog
``BlogAnalytics`` summary current.

A view is unique when no earlier view of the same blog from the same IP
exists within the trailing 30-minute window. Summary updates for a blog
run under a per-blog lock in this process and a row lock in the
database; counters are incremented with ``column + 1`` expressions.

Tracking is best-effort: failures are logged and reported to metrics,
never raised to the caller.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from blog_api.exceptions import DatabaseError
from blog_api.models.blog import Blog
from blog_api.models.blog_analytics import BlogAnalytics
from blog_api.models.blog_view import BlogView
from blog_api.utils.metrics import record_tracking_failure, record_view_tracked
from blog_api.utils.referrer import extract_domain
from blog_api.utils.time_window import utcnow
from blog_api.utils.user_agent import classify, device_category

logger = logging.getLogger(__name__)

UNIQUE_VIEW_WINDOW = timedelta(minutes=30)


@dataclass(frozen=True)
class TrackedView:
    """Outcome of a tracking attempt."""

    recorded: bool
    unique: bool = False
    view_id: int | None = None


class BlogLockRegistry:
    """
    One asyncio.Lock per blog id, kept separately for each running event loop.

    Locks are held weakly: an entry lives only while some task holds or
    waits on it, so blogs that are no longer being viewed drop out.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()

    def get(self, blog_id: int) -> asyncio.Lock:
        loop_locks = self._locks.setdefault(asyncio.get_running_loop(), weakref.WeakValueDictionary())
        lock = loop_locks.get(blog_id)
        if lock is None:
            lock = asyncio.Lock()
            loop_locks[blog_id] = lock
        return lock


class TrackingService:
    """Service for recording blog views and maintaining view summaries"""

    def __init__(self) -> None:
        self._locks = BlogLockRegistry()

    async def record_view(
        self,
        db: AsyncSession,
        blog_id: int,
        ip_address: str | None = None,
        user_agent: str | None = None,
        referrer: str | None = None,
        user_id: int | None = None,
        session_id: str | None = None,
        country: str | None = None,
        city: str | None = None,
        now: datetime | None = None,
    ) -> TrackedView:
        """
        Record a blog view and update the blog's analytics summary.

        Args:
            db: Database session
            blog_id: Blog being viewed
            ip_address: Viewer IP, used for the uniqueness check
            user_agent: Raw User-Agent header
            referrer: Raw Referer header
            user_id: Authenticated viewer, if any
            session_id: Client session identifier, if any
            country: Upstream geo-resolved country, if any
            city: Upstream geo-resolved city, if any
            now: Override for the view timestamp (naive UTC)

        Returns:
            TrackedView; ``recorded`` is False when tracking failed
        """
        now = now or utcnow()
        try:
            async with self._locks.get(blog_id):
                return await self._record(
                    db,
                    blog_id=blog_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    referrer=referrer,
                    user_id=user_id,
                    session_id=session_id,
                    country=country,
                    city=city,
                    now=now,
                )
        except Exception as e:
            logger.error(
                f"Failed to track view for blog {blog_id}: {e}",
                exc_info=True,
                extra={"blog_id": blog_id},
            )
            record_tracking_failure(type(e).__name__)
            await self._safe_rollback(db)
            return TrackedView(recorded=False)

    async def _record(
        self,
        db: AsyncSession,
        blog_id: int,
        ip_address: str | None,
        user_agent: str | None,
        referrer: str | None,
        user_id: int | None,
        session_id: str | None,
        country: str | None,
        city: str | None,
        now: datetime,
    ) -> TrackedView:
        blog_exists = await db.scalar(select(Blog.id).where(Blog.id == blog_id))
        if blog_exists is None:
            logger.warning(f"Ignoring view for unknown blog {blog_id}", extra={"blog_id": blog_id})
            record_tracking_failure("unknown_blog")
            return TrackedView(recorded=False)

        await self.ensure_summary(db, blog_id)

        ip_address = _clip(ip_address, BlogView.ip_address)
        session_id = _clip(session_id, BlogView.session_id)
        country = _clip(country, BlogView.country)
        city = _clip(city, BlogView.city)

        # Views without a User-Agent keep null device fields and report as "Unknown"
        device = classify(user_agent) if user_agent else None
        unique = await self.is_unique_view(db, blog_id, ip_address, now)

        view = BlogView(
            blog_id=blog_id,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            referrer=_clip(referrer, BlogView.referrer),
            country=country,
            city=city,
            device_type=device.device_type if device else None,
            browser=device.browser if device else None,
            os=device.os if device else None,
            session_id=session_id,
            created_at=now,
        )
        db.add(view)
        await db.flush()

        await self._apply_to_summary(
            db,
            blog_id=blog_id,
            unique=unique,
            referrer=referrer,
            user_agent=user_agent,
            country=country,
            now=now,
        )
        await db.commit()

        record_view_tracked(unique)
        logger.debug(
            f"Tracked view {view.id} for blog {blog_id} (unique={unique})",
            extra={"blog_id": blog_id},
        )
        return TrackedView(recorded=True, unique=unique, view_id=view.id)

    @staticmethod
    async def is_unique_view(
        db: AsyncSession,
        blog_id: int,
        ip_address: str | None,
        now: datetime,
    ) -> bool:
        """True if the IP has no view of this blog in the trailing window ending at ``now``."""
        if not ip_address:
            # No IP to match on; every anonymous-IP view counts as unique
            return True

        window_start = now - UNIQUE_VIEW_WINDOW
        result = await db.execute(
            select(BlogView.id)
            .where(
                BlogView.blog_id == blog_id,
                BlogView.ip_address == ip_address,
                BlogView.created_at >= window_start,
            )
            .limit(1)
        )
        return result.first() is None

    @staticmethod
    async def get_summary(db: AsyncSession, blog_id: int, for_update: bool = False) -> BlogAnalytics | None:
        stmt = (
            select(BlogAnalytics)
            .where(BlogAnalytics.blog_id == blog_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalars().first()

    async def ensure_summary(self, db: AsyncSession, blog_id: int) -> BlogAnalytics:
        """Return the blog's summary row, creating a zeroed one if missing."""
        summary = await self.get_summary(db, blog_id)
        if summary is not None:
            return summary

        db.add(
            BlogAnalytics(
                blog_id=blog_id,
                total_views=0,
                unique_views=0,
                referral_data={},
                device_data={},
                location_data={},
            )
        )
        try:
            await db.commit()
        except IntegrityError:
            # Another worker created it first
            await db.rollback()

        summary = await self.get_summary(db, blog_id)
        if summary is None:
            raise DatabaseError(
                f"Analytics summary for blog {blog_id} could not be created", operation="ensure_summary"
            )
        return summary

    async def _apply_to_summary(
        self,
        db: AsyncSession,
        blog_id: int,
        unique: bool,
        referrer: str | None,
        user_agent: str | None,
        country: str | None,
        now: datetime,
    ) -> None:
        summary = await self.get_summary(db, blog_id, for_update=True)
        if summary is None:
            raise DatabaseError(f"Analytics summary for blog {blog_id} is missing", operation="update_summary")

        referral_data = dict(summary.referral_data or {})
        domain = extract_domain(referrer)
        if domain:
            _increment(referral_data, domain)

        device_data = dict(summary.device_data or {})
        _increment(device_data, device_category(user_agent))

        location_data = dict(summary.location_data or {})
        if country:
            _increment(location_data, country)

        await db.execute(
            update(BlogAnalytics)
            .where(BlogAnalytics.id == summary.id)
            .values(
                total_views=BlogAnalytics.total_views + 1,
                unique_views=BlogAnalytics.unique_views + (1 if unique else 0),
                referral_data=referral_data,
                device_data=device_data,
                location_data=location_data,
                last_viewed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    async def _safe_rollback(db: AsyncSession) -> None:
        try:
            await db.rollback()
        except Exception as rollback_error:
            logger.warning(f"Rollback after tracking failure also failed: {rollback_error}")


def _increment(counts: dict[str, int], key: str) -> None:
    counts[key] = int(counts.get(key, 0)) + 1


def _clip(value: str | None, column) -> str | None:
    """Cut a header value down to the width of the column it is stored in."""
    if not value:
        return None
    return value[: column.type.length]


# Singleton instance
tracking_service = TrackingService()
