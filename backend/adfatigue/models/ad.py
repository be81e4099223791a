"""Ad metadata. Daily performance lives in AdInsight."""
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from adfatigue.database import Base

if TYPE_CHECKING:
    from adfatigue.models.account import Account
    from adfatigue.models.ad_insight import AdInsight


class Ad(Base):
    __tablename__ = "ads"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)  # Meta ad id
    account_id: Mapped[str] = mapped_column(String(64), ForeignKey("accounts.id", ondelete="CASCADE"), index=True)
    ad_name: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    campaign_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    creative_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(32), default="ACTIVE")  # ACTIVE, PAUSED, ARCHIVED
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    account: Mapped["Account"] = relationship("Account", back_populates="ads")
    insights: Mapped[list["AdInsight"]] = relationship(
        "AdInsight", back_populates="ad", cascade="all, delete-orphan", order_by="AdInsight.date"
    )

    def __repr__(self) -> str:
        return f"<Ad {self.ad_name or self.id}>"
