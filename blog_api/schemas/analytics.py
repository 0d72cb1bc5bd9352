"""
Analytics Schemas

Response models for blog view tracking and analytics reports.
Fields are snake_case in Python and serialized as camelCase.
"""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from blog_api.utils.time_window import TimeFilter, TrendRange

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SuccessResponse(CamelModel, Generic[DataT]):
    success: bool = True
    data: DataT


class TrackViewResponse(CamelModel):
    success: bool = True
    message: str


# ============================================================================
# Per-blog report
# ============================================================================


class BlogInfo(CamelModel):
    id: int
    title: str | None = None
    slug: str | None = None
    created_at: datetime | None = None


class AnalyticsOverview(CamelModel):
    total_views: int = 0
    unique_views: int = 0
    comments_count: int = 0
    likes_count: int = 0
    engagement_rate: float = 0.0


class DailyViews(CamelModel):
    date: str
    views: int = 0


class BreakdownItem(CamelModel):
    label: str
    count: int


class BlogAnalyticsReport(CamelModel):
    blog: BlogInfo
    time_filter: TimeFilter
    overview: AnalyticsOverview = Field(default_factory=AnalyticsOverview)
    views_over_time: list[DailyViews] = Field(default_factory=list)
    referral_data: list[BreakdownItem] = Field(default_factory=list)
    device_data: list[BreakdownItem] = Field(default_factory=list)
    browser_data: list[BreakdownItem] = Field(default_factory=list)
    os_data: list[BreakdownItem] = Field(default_factory=list)
    country_data: list[BreakdownItem] = Field(default_factory=list)


# ============================================================================
# Per-author rollup
# ============================================================================


class BlogStats(CamelModel):
    total_views: int = 0
    unique_views: int = 0
    comments_count: int = 0
    likes_count: int = 0


class UserBlogAnalytics(CamelModel):
    id: int
    title: str
    slug: str
    cover_image: str | None = None
    published: bool = False
    created_at: datetime | None = None
    stats: BlogStats = Field(default_factory=BlogStats)


class UserAnalyticsSummary(CamelModel):
    total_blogs: int = 0
    total_views: int = 0
    unique_views: int = 0
    total_comments: int = 0
    total_likes: int = 0


class UserBlogsAnalyticsReport(CamelModel):
    time_filter: TimeFilter
    summary: UserAnalyticsSummary = Field(default_factory=UserAnalyticsSummary)
    blogs: list[UserBlogAnalytics] = Field(default_factory=list)


# ============================================================================
# Admin dashboard
# ============================================================================


class PeriodChange(CamelModel):
    current: int
    previous: int
    change: float
    period: str


class AdminChanges(CamelModel):
    views: PeriodChange
    likes: PeriodChange


class AdminAnalyticsOverview(CamelModel):
    total_views: int
    total_likes: int
    average_views_per_blog: int
    total_blogs: int
    time_filter: TimeFilter
    period_label: str
    changes: AdminChanges


class AdminTrends(CamelModel):
    labels: list[str]
    views: list[int]
    likes: list[int]
    users: list[int]
    period: str
    range: TrendRange
