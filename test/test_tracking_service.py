"""
Tests for the blog view tracking service

Covers deduplication inside the 30-minute window, summary counter
updates, breakdown maps, and failure handling.
"""

import asyncio
import gc
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func
from sqlalchemy.future import select
from utils.mock_utils import create_test_blog

from blog_api.models.blog_view import BlogView
from blog_api.exceptions import DatabaseError
from blog_api.services.tracking_service import BlogLockRegistry, TrackingService, tracking_service

T0 = datetime(2026, 3, 1, 10, 0)
CHROME_UA = "Mozilla/5.0 (Windows NT 10.0) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"


async def view_count(db, blog_id: int) -> int:
    return await db.scalar(select(func.count(BlogView.id)).where(BlogView.blog_id == blog_id))


@pytest.mark.asyncio
class TestDeduplication:
    """Unique view detection"""

    async def test_first_view_is_unique(self, test_db, test_user):
        blog = await create_test_blog(test_db, "First", test_user.id)

        result = await tracking_service.record_view(test_db, blog.id, ip_address="1.1.1.1", now=T0)

        assert result.recorded is True
        assert result.unique is True
        assert result.view_id is not None

    async def test_repeat_within_window_counts_once(self, test_db, test_user):
        blog = await create_test_blog(test_db, "Burst", test_user.id)

        for minute in (0, 1, 5, 29):
            await tracking_service.record_view(test_db, blog.id, ip_address="1.1.1.1", now=T0 + timedelta(minutes=minute))

        summary = await tracking_service.get_summary(test_db, blog.id)
        assert summary.total_views == 4
        assert summary.unique_views == 1

    async def test_boundary_is_inclusive(self, test_db, test_user):
        blog = await create_test_blog(test_db, "Boundary", test_user.id)

        await tracking_service.record_view(test_db, blog.id, ip_address="1.1.1.1", now=T0)
        result = await tracking_service.record_view(
            test_db, blog.id, ip_address="1.1.1.1", now=T0 + timedelta(minutes=30)
        )

        assert result.unique is False

    async def test_views_more_than_30_minutes_apart_are_unique(self, test_db, test_user):
        blog = await create_test_blog(test_db, "Spaced", test_user.id)

        await tracking_service.record_view(test_db, blog.id, ip_address="1.1.1.1", now=T0)
        result = await tracking_service.record_view(
            test_db, blog.id, ip_address="1.1.1.1", now=T0 + timedelta(minutes=31)
        )

        assert result.unique is True
        summary = await tracking_service.get_summary(test_db, blog.id)
        assert summary.total_views == summary.unique_views == 2

    async def test_mixed_ips_scenario(self, test_db, test_user):
        """The view at t=40 is within 30 minutes of the one at t=10"""
        blog = await create_test_blog(test_db, "Scenario", test_user.id)

        for ip, minute in (("1.1.1.1", 0), ("2.2.2.2", 5), ("1.1.1.1", 10), ("1.1.1.1", 40)):
            await tracking_service.record_view(test_db, blog.id, ip_address=ip, now=T0 + timedelta(minutes=minute))

        summary = await tracking_service.get_summary(test_db, blog.id)
        assert summary.total_views == 4
        assert summary.unique_views == 2

    async def test_dedup_is_per_blog(self, test_db, test_user):
        first = await create_test_blog(test_db, "One", test_user.id)
        second = await create_test_blog(test_db, "Two", test_user.id)

        await tracking_service.record_view(test_db, first.id, ip_address="1.1.1.1", now=T0)
        result = await tracking_service.record_view(test_db, second.id, ip_address="1.1.1.1", now=T0)

        assert result.unique is True

    async def test_missing_ip_counts_as_unique(self, test_db, test_user):
        blog = await create_test_blog(test_db, "No IP", test_user.id)

        first = await tracking_service.record_view(test_db, blog.id, now=T0)
        second = await tracking_service.record_view(test_db, blog.id, now=T0 + timedelta(minutes=1))

        assert first.unique is True
        assert second.unique is True


@pytest.mark.asyncio
class TestSummaryUpdates:
    """Summary counters and breakdown maps"""

    async def test_distinct_ips_are_all_unique(self, test_db, test_user):
        blog = await create_test_blog(test_db, "Distinct", test_user.id)

        for i in range(5):
            await tracking_service.record_view(test_db, blog.id, ip_address=f"10.0.0.{i}", now=T0)

        summary = await tracking_service.get_summary(test_db, blog.id)
        assert summary.total_views == 5
        assert summary.unique_views == 5

    async def test_concurrent_views_from_distinct_ips(self, session_factory, test_db, test_user):
        """Each concurrent call uses its own session, like separate requests"""
        blog = await create_test_blog(test_db, "Concurrent", test_user.id)

        async def track(i: int):
            async with session_factory() as session:
                return await tracking_service.record_view(session, blog.id, ip_address=f"192.168.1.{i}", now=T0)

        results = await asyncio.gather(*(track(i) for i in range(10)))

        assert all(r.recorded for r in results)
        summary = await tracking_service.get_summary(test_db, blog.id)
        assert summary.total_views == 10
        assert summary.unique_views == 10
        assert await view_count(test_db, blog.id) == 10

    async def test_concurrent_views_from_same_ip(self, session_factory, test_db, test_user):
        """A burst from one IP in this process counts once; the per-blog lock orders the checks"""
        blog = await create_test_blog(test_db, "Same IP Burst", test_user.id)

        async def track():
            async with session_factory() as session:
                return await tracking_service.record_view(session, blog.id, ip_address="203.0.113.9", now=T0)

        results = await asyncio.gather(*(track() for _ in range(8)))

        assert all(r.recorded for r in results)
        assert sum(r.unique for r in results) == 1
        summary = await tracking_service.get_summary(test_db, blog.id)
        assert summary.total_views == 8
        assert summary.unique_views == 1
        assert await view_count(test_db, blog.id) == 8

    async def test_unique_never_exceeds_total(self, test_db, test_user):
        blog = await create_test_blog(test_db, "Invariant", test_user.id)

        for i in range(12):
            await tracking_service.record_view(
                test_db, blog.id, ip_address=f"1.1.1.{i % 3}", now=T0 + timedelta(minutes=7 * i)
            )
            summary = await tracking_service.get_summary(test_db, blog.id)
            assert summary.unique_views <= summary.total_views

    async def test_breakdown_maps(self, test_db, test_user):
        blog = await create_test_blog(test_db, "Maps", test_user.id)

        await tracking_service.record_view(
            test_db,
            blog.id,
            ip_address="1.1.1.1",
            user_agent=CHROME_UA,
            referrer="https://www.google.com/search?q=x",
            country="US",
            now=T0,
        )
        await tracking_service.record_view(
            test_db,
            blog.id,
            ip_address="2.2.2.2",
            user_agent="Browser Mobile",
            referrer="https://www.google.com/other",
            country="DE",
            now=T0,
        )
        await tracking_service.record_view(test_db, blog.id, ip_address="3.3.3.3", now=T0)

        summary = await tracking_service.get_summary(test_db, blog.id)
        data = summary.to_dict()
        assert data["referral_data"] == {"www.google.com": 2}
        assert data["device_data"] == {"Desktop": 1, "Mobile": 1, "Unknown": 1}
        assert data["location_data"] == {"US": 1, "DE": 1}
        assert summary.last_viewed_at == T0

    async def test_view_row_is_classified(self, test_db, test_user):
        blog = await create_test_blog(test_db, "Row", test_user.id)

        result = await tracking_service.record_view(
            test_db,
            blog.id,
            ip_address="1.1.1.1",
            user_agent=CHROME_UA,
            session_id="sess-1",
            user_id=test_user.id,
            now=T0,
        )

        view = await test_db.get(BlogView, result.view_id)
        assert view.device_type == "Desktop"
        assert view.browser == "Chrome"
        assert view.os == "Windows"
        assert view.session_id == "sess-1"
        assert view.user_id == test_user.id
        assert view.created_at == T0

    async def test_view_without_user_agent_keeps_null_device_fields(self, test_db, test_user):
        blog = await create_test_blog(test_db, "No UA", test_user.id)

        result = await tracking_service.record_view(test_db, blog.id, ip_address="1.1.1.1", now=T0)

        view = await test_db.get(BlogView, result.view_id)
        assert view.device_type is None
        assert view.browser is None
        assert view.os is None

    async def test_invalid_referrer_is_ignored(self, test_db, test_user):
        blog = await create_test_blog(test_db, "Bad Ref", test_user.id)

        result = await tracking_service.record_view(
            test_db, blog.id, ip_address="1.1.1.1", referrer="not a url", now=T0
        )

        assert result.recorded is True
        summary = await tracking_service.get_summary(test_db, blog.id)
        assert summary.referral_data == {}
        assert summary.total_views == 1

    async def test_long_referrer_is_truncated(self, test_db, test_user):
        blog = await create_test_blog(test_db, "Long Ref", test_user.id)
        referrer = "https://example.com/" + "a" * 600

        result = await tracking_service.record_view(test_db, blog.id, referrer=referrer, now=T0)

        view = await test_db.get(BlogView, result.view_id)
        assert len(view.referrer) == 500

    async def test_oversized_header_values_are_clipped_to_column_width(self, test_db, test_user):
        blog = await create_test_blog(test_db, "Wide Headers", test_user.id)

        result = await tracking_service.record_view(
            test_db,
            blog.id,
            ip_address="1" * 80,
            session_id="s" * 300,
            country="C" * 150,
            city="Amsterdam" * 20,
            now=T0,
        )

        assert result.recorded is True
        view = await test_db.get(BlogView, result.view_id)
        assert view.ip_address == "1" * 45
        assert len(view.session_id) == 255
        assert view.country == "C" * 100
        assert len(view.city) == 100
        summary = await tracking_service.get_summary(test_db, blog.id)
        assert summary.location_data == {"C" * 100: 1}

    async def test_clipped_ip_still_deduplicates(self, test_db, test_user):
        blog = await create_test_blog(test_db, "Wide IP", test_user.id)
        long_ip = "2001:db8::" + "f" * 60

        await tracking_service.record_view(test_db, blog.id, ip_address=long_ip, now=T0)
        result = await tracking_service.record_view(
            test_db, blog.id, ip_address=long_ip, now=T0 + timedelta(minutes=1)
        )

        assert result.unique is False


@pytest.mark.asyncio
class TestSummaryCreation:
    """ensure_summary()"""

    async def test_creates_zeroed_summary(self, test_db, test_user):
        blog = await create_test_blog(test_db, "Zero", test_user.id)

        summary = await tracking_service.ensure_summary(test_db, blog.id)

        assert summary.total_views == 0
        assert summary.unique_views == 0
        assert summary.referral_data == {}

    async def test_is_idempotent(self, test_db, test_user):
        blog = await create_test_blog(test_db, "Twice", test_user.id)

        first = await tracking_service.ensure_summary(test_db, blog.id)
        second = await tracking_service.ensure_summary(test_db, blog.id)

        assert first.id == second.id


@pytest.mark.asyncio
class TestFailureHandling:
    """Tracking failures never raise"""

    async def test_unknown_blog_is_not_recorded(self, test_db):
        result = await tracking_service.record_view(test_db, 9999, ip_address="1.1.1.1", now=T0)

        assert result.recorded is False
        assert await view_count(test_db, 9999) == 0

    async def test_storage_failure_is_swallowed(self, test_db, test_user, monkeypatch):
        blog = await create_test_blog(test_db, "Broken", test_user.id)
        blog_id = blog.id
        service = TrackingService()

        async def broken_update(*args, **kwargs):
            raise RuntimeError("storage unavailable")

        monkeypatch.setattr(service, "_apply_to_summary", broken_update)

        result = await service.record_view(test_db, blog_id, ip_address="1.1.1.1", now=T0)

        assert result.recorded is False
        assert await view_count(test_db, blog_id) == 0
        summary = await service.get_summary(test_db, blog_id)
        assert summary.total_views == 0

    async def test_recovers_after_failure(self, test_db, test_user, monkeypatch):
        blog = await create_test_blog(test_db, "Recover", test_user.id)
        blog_id = blog.id
        service = TrackingService()

        async def broken_update(*args, **kwargs):
            raise RuntimeError("storage unavailable")

        monkeypatch.setattr(service, "_apply_to_summary", broken_update)
        await service.record_view(test_db, blog_id, ip_address="1.1.1.1", now=T0)
        monkeypatch.delattr(service, "_apply_to_summary")

        result = await service.record_view(test_db, blog_id, ip_address="1.1.1.1", now=T0)

        assert result.recorded is True
        assert result.unique is True

    async def test_missing_summary_is_a_database_error(self, test_db, test_user):
        blog = await create_test_blog(test_db, "No Summary", test_user.id)

        with pytest.raises(DatabaseError) as exc_info:
            await tracking_service._apply_to_summary(
                test_db, blog.id, unique=True, referrer=None, user_agent=None, country=None, now=T0
            )
        assert exc_info.value.details == {"operation": "update_summary"}


@pytest.mark.asyncio
class TestBlogLocks:
    """Per-blog lock registry"""

    async def test_same_blog_shares_a_lock_while_held(self):
        registry = BlogLockRegistry()

        lock = registry.get(1)

        assert registry.get(1) is lock
        assert registry.get(2) is not lock

    async def test_idle_locks_are_released(self, test_db, test_user):
        blog = await create_test_blog(test_db, "Idle Lock", test_user.id)
        service = TrackingService()

        for i in range(3):
            await service.record_view(test_db, blog.id, ip_address=f"10.1.0.{i}", now=T0)
        gc.collect()

        loop_locks = service._locks._locks[asyncio.get_running_loop()]
        assert len(loop_locks) == 0
