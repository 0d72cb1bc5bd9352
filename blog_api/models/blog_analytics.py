"""
Blog Analytics Summary Model

One row per blog holding denormalized, all-time view counters and
breakdown maps. Rows are only ever mutated by the view tracking
service; reports are computed from ``blog_views`` instead.
"""

from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship

from blog_api.database import Base


class BlogAnalytics(Base):
    """
    Denormalized per-blog view summary.

    Invariants:
    - unique_views <= total_views
    - breakdown maps (referral_data, device_data, location_data) only grow
    """

    __tablename__ = "blog_analytics"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    blog_id = Column(Integer, ForeignKey("blogs.id", ondelete="CASCADE"), nullable=False, unique=True)

    # Counters
    total_views = Column(Integer, default=0, nullable=False)
    unique_views = Column(Integer, default=0, nullable=False)

    # Breakdown maps: label -> count
    referral_data = Column(JSON, nullable=False, default=dict)
    device_data = Column(JSON, nullable=False, default=dict)
    location_data = Column(JSON, nullable=False, default=dict)

    last_viewed_at = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    blog = relationship("Blog", back_populates="analytics")

    __table_args__ = (CheckConstraint("unique_views <= total_views", name="ck_blog_analytics_unique_le_total"),)

    def to_dict(self) -> dict:
        return {
            "blog_id": self.blog_id,
            "total_views": self.total_views,
            "unique_views": self.unique_views,
            "referral_data": dict(self.referral_data or {}),
            "device_data": dict(self.device_data or {}),
            "location_data": dict(self.location_data or {}),
            "last_viewed_at": self.last_viewed_at.isoformat() if self.last_viewed_at else None,
        }
