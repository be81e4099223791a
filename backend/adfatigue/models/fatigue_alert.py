"""Append-only alert rows. Never updated, only superseded by newer rows."""
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from adfatigue.database import Base


class FatigueAlert(Base):
    __tablename__ = "fatigue_alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(64), index=True)
    ad_id: Mapped[str] = mapped_column(String(64), index=True)
    ad_name: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    campaign_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    alert_level: Mapped[str] = mapped_column(String(16))  # caution, warning, critical
    alert_type: Mapped[str] = mapped_column(String(32), index=True)  # frequency_exceeded, ctr_decline, ...
    action: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)  # urgent alerts only
    trigger_metrics: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    notification_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    def __repr__(self) -> str:
        return f"<FatigueAlert ad={self.ad_id} type={self.alert_type} level={self.alert_level}>"
