"""Meta ad account + the business context used to tune fatigue thresholds."""
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Float, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from adfatigue.database import Base

if TYPE_CHECKING:
    from adfatigue.models.ad import Ad


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    meta_account_id: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)
    account_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    industry: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)  # b2c_ecommerce, b2b_saas, ...
    product_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    campaign_goal: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)  # conversions, brand_awareness, app_installs
    season: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)  # normal, black_friday, christmas, new_year
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    ads: Mapped[list["Ad"]] = relationship("Ad", back_populates="account", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Account {self.account_name or self.id}>"
