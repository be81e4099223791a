"""One day of raw performance for one ad. Read-only for the fatigue engine."""
from datetime import date
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Date, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from adfatigue.database import Base

if TYPE_CHECKING:
    from adfatigue.models.ad import Ad


class AdInsight(Base):
    __tablename__ = "ad_insights"
    __table_args__ = (UniqueConstraint("ad_id", "date", name="uq_ad_insight_day"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(64), index=True)
    ad_id: Mapped[str] = mapped_column(String(64), ForeignKey("ads.id", ondelete="CASCADE"), index=True)
    date: Mapped[date] = mapped_column(Date, index=True)
    impressions: Mapped[int] = mapped_column(default=0)
    clicks: Mapped[int] = mapped_column(default=0)
    reach: Mapped[int] = mapped_column(default=0)
    frequency: Mapped[float] = mapped_column(Float, default=0.0)
    ctr: Mapped[float] = mapped_column(Float, default=0.0)  # percent
    cpm: Mapped[float] = mapped_column(Float, default=0.0)
    spend: Mapped[float] = mapped_column(Float, default=0.0)
    # Negative feedback
    hide_clicks: Mapped[Optional[int]] = mapped_column(nullable=True)
    report_spam_clicks: Mapped[Optional[int]] = mapped_column(nullable=True)
    unlike_clicks: Mapped[Optional[int]] = mapped_column(nullable=True)
    # Video
    video_plays: Mapped[Optional[int]] = mapped_column(nullable=True)
    video_p25_watched: Mapped[Optional[int]] = mapped_column(nullable=True)
    video_p50_watched: Mapped[Optional[int]] = mapped_column(nullable=True)
    video_p75_watched: Mapped[Optional[int]] = mapped_column(nullable=True)
    video_p95_watched: Mapped[Optional[int]] = mapped_column(nullable=True)
    video_p100_watched: Mapped[Optional[int]] = mapped_column(nullable=True)
    video_thruplay: Mapped[Optional[int]] = mapped_column(nullable=True)  # 15s views
    video_avg_watch_time: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # Instagram
    ig_saves: Mapped[Optional[int]] = mapped_column(nullable=True)
    ig_shares: Mapped[Optional[int]] = mapped_column(nullable=True)
    ig_comments: Mapped[Optional[int]] = mapped_column(nullable=True)
    ig_likes: Mapped[Optional[int]] = mapped_column(nullable=True)
    ig_profile_visits: Mapped[Optional[int]] = mapped_column(nullable=True)
    ig_follows: Mapped[Optional[int]] = mapped_column(nullable=True)

    ad: Mapped["Ad"] = relationship("Ad", back_populates="insights")

    def __repr__(self) -> str:
        return f"<AdInsight ad={self.ad_id} date={self.date}>"
