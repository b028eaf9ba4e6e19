# app/routers/referral.py
from fastapi import APIRouter, Depends

from app.core.dependencies import get_current_user_id, get_referral_ledger
from app.schemas.referral import (
    ReferralCodeResponse,
    ReferralStatsResponse,
    RewardCodeListResponse,
    RewardCodeResponse,
)
from app.services.referral import DatabaseReferralLedger

router = APIRouter(
    prefix="/referrals",
    tags=["Referrals"],
)


@router.get("/code", response_model=ReferralCodeResponse)
def get_my_referral_code(
    user_id: str = Depends(get_current_user_id),
    ledger: DatabaseReferralLedger = Depends(get_referral_ledger),
):
    """The caller's personal referral code, created on first request."""
    return ledger.get_or_create_code(user_id)


@router.get("/stats", response_model=ReferralStatsResponse)
def get_my_referral_stats(
    user_id: str = Depends(get_current_user_id),
    ledger: DatabaseReferralLedger = Depends(get_referral_ledger),
):
    return ledger.stats(user_id)


@router.get("/rewards", response_model=RewardCodeListResponse)
def get_my_reward_codes(
    user_id: str = Depends(get_current_user_id),
    ledger: DatabaseReferralLedger = Depends(get_referral_ledger),
):
    rewards = ledger.reward_codes(user_id)
    return RewardCodeListResponse(
        rewards=[RewardCodeResponse.model_validate(code) for code in rewards],
        total=len(rewards),
    )
