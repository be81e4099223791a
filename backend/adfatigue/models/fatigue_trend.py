"""Append-only history of fatigue analyses."""
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from adfatigue.database import Base


class FatigueTrend(Base):
    __tablename__ = "fatigue_trends"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(64), index=True)
    ad_id: Mapped[str] = mapped_column(String(64), index=True)
    date: Mapped[date] = mapped_column(Date)
    frequency: Mapped[float] = mapped_column(Float, default=0.0)
    ctr: Mapped[float] = mapped_column(Float, default=0.0)
    cpm: Mapped[float] = mapped_column(Float, default=0.0)
    reach: Mapped[int] = mapped_column(Integer, default=0)
    new_reach: Mapped[int] = mapped_column(Integer, default=0)
    impressions: Mapped[int] = mapped_column(Integer, default=0)
    first_time_ratio: Mapped[float] = mapped_column(Float, default=1.0)
    ctr_change_from_baseline: Mapped[float] = mapped_column(Float, default=0.0)
    cpm_change_from_baseline: Mapped[float] = mapped_column(Float, default=0.0)
    audience_score: Mapped[int] = mapped_column(Integer)
    creative_score: Mapped[int] = mapped_column(Integer)
    algorithm_score: Mapped[int] = mapped_column(Integer)
    total_score: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<FatigueTrend ad={self.ad_id} date={self.date} total={self.total_score}>"
