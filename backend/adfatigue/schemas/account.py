from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AccountBase(BaseModel):
    meta_account_id: Optional[str] = None
    account_name: Optional[str] = None


class AccountResponse(AccountBase):
    model_config = ConfigDict(from_attributes=True)
    id: str
    industry: Optional[str] = None
    product_price: Optional[float] = None
    campaign_goal: Optional[str] = None
    season: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AccountList(BaseModel):
    accounts: list[AccountResponse]
