"""Latest fatigue analysis per ad. Upserted on (account_id, ad_id); history is in FatigueTrend."""
from datetime import date, datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from adfatigue.database import Base


class FatigueScoreRecord(Base):
    __tablename__ = "ad_fatigue_scores"
    __table_args__ = (UniqueConstraint("account_id", "ad_id", name="uq_fatigue_score_ad"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(64), index=True)
    ad_id: Mapped[str] = mapped_column(String(64), index=True)
    ad_name: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    campaign_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    creative_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    audience_score: Mapped[int] = mapped_column(Integer)
    creative_score: Mapped[int] = mapped_column(Integer)
    algorithm_score: Mapped[int] = mapped_column(Integer)
    total_score: Mapped[int] = mapped_column(Integer, index=True)
    fatigue_level: Mapped[str] = mapped_column(String(16))  # healthy, caution, warning, critical
    primary_issue: Mapped[str] = mapped_column(String(16))  # audience, creative, algorithm

    frequency: Mapped[float] = mapped_column(Float, default=0.0)
    first_time_ratio: Mapped[float] = mapped_column(Float, default=1.0)
    ctr_decline_rate: Mapped[float] = mapped_column(Float, default=0.0)
    cpm_increase_rate: Mapped[float] = mapped_column(Float, default=0.0)
    negative_rate: Mapped[float] = mapped_column(Float, default=0.0)
    reach: Mapped[int] = mapped_column(Integer, default=0)
    impressions: Mapped[int] = mapped_column(Integer, default=0)
    ctr: Mapped[float] = mapped_column(Float, default=0.0)
    cpm: Mapped[float] = mapped_column(Float, default=0.0)
    algorithm_penalty: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    recommended_action: Mapped[str] = mapped_column(Text)
    alert_triggered: Mapped[bool] = mapped_column(Boolean, default=False)
    data_range_start: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    data_range_end: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    calculated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<FatigueScoreRecord ad={self.ad_id} total={self.total_score} level={self.fatigue_level}>"
