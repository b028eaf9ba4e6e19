# app/schemas/referral.py
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ReferralCodeResponse(BaseModel):
    code: str
    usage_count: int
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReferralStatsResponse(BaseModel):
    code: Optional[str]
    total_referrals: int
    successful_referrals: int
    pending_referrals: int
    earned_rewards: int

    model_config = ConfigDict(from_attributes=True)


class RewardCodeResponse(BaseModel):
    code: str
    discount_type: str
    discount_amount: Decimal
    valid_until: date
    usage_count: int
    max_usage: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RewardCodeListResponse(BaseModel):
    rewards: List[RewardCodeResponse]
    total: int
