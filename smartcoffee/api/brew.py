from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel

from smartcoffee.api.users import get_user_or_404
from smartcoffee.db import get_db
from smartcoffee.engine.recommender import CoffeeRecommender, should_auto_brew
from smartcoffee.engine.types import CoffeeType
from smartcoffee.integrations import DeviceCommunicationError, TriggerType
from smartcoffee.models import BrewLog

router = APIRouter()
recommender = CoffeeRecommender()


class RecommendationResponse(BaseModel):
    user_id: str
    coffee_type: CoffeeType
    coffee_name: str
    strength: float
    urgency: float
    confidence: float
    strength_description: str
    urgency_description: str
    caffeine_mg: float
    estimated_effect_seconds: int
    reasoning: List[str]
    summary: str
    fatigue_level: str
    hour_of_day: int
    is_weekend: bool
    using_default_sleep: bool
    consumed_caffeine_today_mg: float
    remaining_caffeine_mg: float
    auto_brew_allowed: bool


class BrewRequest(BaseModel):
    coffee_type: Optional[CoffeeType] = None
    trigger: TriggerType = TriggerType.MANUAL
    hour_override: Optional[int] = None


class BrewResponse(BaseModel):
    brew_id: str
    request_id: Optional[str]
    status: str
    message: str
    coffee_type: CoffeeType
    strength: float
    caffeine_mg: float
    trigger: str
    estimated_completion: Optional[str] = None
    response_time_seconds: Optional[float] = None


class DailyStatsResponse(BaseModel):
    date: str
    total_cups: int
    auto_cups: int
    manual_cups: int
    cups_by_type: Dict[str, int]
    total_caffeine_mg: float
    most_consumed_type: Optional[str]
    peak_consumption_hour: Optional[int]
    average_response_time: Optional[float]
    success_rate: Optional[float]
    is_healthy_consumption: bool


def _brew_response(log, response, recommendation) -> BrewResponse:
    return BrewResponse(
        brew_id=log.id,
        request_id=log.request_id,
        status=response.status.value,
        message=response.message,
        coffee_type=recommendation.coffee_type,
        strength=round(recommendation.strength, 3),
        caffeine_mg=log.caffeine_mg,
        trigger=log.trigger,
        estimated_completion=response.estimated_completion,
        response_time_seconds=response.response_time_seconds
    )


@router.get("/{user_id}/recommendation", response_model=RecommendationResponse)
def get_recommendation(
    user_id: str,
    hour_override: Optional[int] = Query(None, ge=0, le=23),
    db: Session = Depends(get_db)
):
    """
    Get the current coffee recommendation for a user.

    Args:
        user_id: The user's ID
        hour_override: Optional hour (0-23) to simulate a different time of day
    """
    user = get_user_or_404(user_id, db)
    result = recommender.get_recommendation(user, db, hour_override=hour_override)

    recommendation = result["recommendation"]
    time_context = result["time_context"]
    payload = recommendation.to_dict()

    return RecommendationResponse(
        user_id=user_id,
        coffee_type=recommendation.coffee_type,
        coffee_name=payload["coffee_name"],
        strength=payload["strength"],
        urgency=payload["urgency"],
        confidence=payload["confidence"],
        strength_description=payload["strength_description"],
        urgency_description=payload["urgency_description"],
        caffeine_mg=payload["caffeine_mg"],
        estimated_effect_seconds=payload["estimated_effect_seconds"],
        reasoning=payload["reasoning"],
        summary=payload["summary"],
        fatigue_level=result["fatigue_level"].value,
        hour_of_day=time_context.hour_of_day,
        is_weekend=time_context.is_weekend,
        using_default_sleep=result["using_default_sleep"],
        consumed_caffeine_today_mg=round(result["consumed_caffeine_today_mg"], 1),
        remaining_caffeine_mg=round(result["remaining_caffeine_mg"], 1),
        auto_brew_allowed=should_auto_brew(result["preferences"], time_context)
    )


@router.post("/{user_id}", response_model=BrewResponse)
async def brew_coffee(user_id: str, request: BrewRequest, db: Session = Depends(get_db)):
    """
    Brew a coffee on the machine.

    The recommendation is recomputed at brew time. A requested coffee type
    is honoured unless the caffeine limit or the evening rules override it.
    """
    user = get_user_or_404(user_id, db)

    if request.hour_override is not None and not 0 <= request.hour_override <= 23:
        raise HTTPException(status_code=400, detail="hour_override must be between 0 and 23")

    try:
        log, response, recommendation = await recommender.brew(
            user,
            db,
            trigger=request.trigger,
            coffee_type=request.coffee_type,
            hour_override=request.hour_override
        )
    except DeviceCommunicationError as e:
        raise HTTPException(status_code=502, detail=f"Coffee machine unavailable: {e}")

    return _brew_response(log, response, recommendation)


@router.get("/{user_id}/pending")
def get_pending_brew(user_id: str, db: Session = Depends(get_db)):
    """The automatic brew waiting for confirmation, with the time left to confirm it."""
    user = get_user_or_404(user_id, db)

    pending = recommender.get_pending_brew(user, db)
    if not pending:
        raise HTTPException(status_code=404, detail="No pending brew")
    return pending.to_dict(datetime.utcnow())


@router.post("/{user_id}/confirm", response_model=BrewResponse)
async def confirm_pending_brew(user_id: str, db: Session = Depends(get_db)):
    """Confirm the pending automatic brew before its countdown runs out."""
    user = get_user_or_404(user_id, db)

    pending = recommender.get_pending_brew(user, db)
    if not pending:
        raise HTTPException(status_code=404, detail="No pending brew to confirm")

    try:
        log, response, recommendation = await recommender.confirm_pending_brew(user, pending, db)
    except DeviceCommunicationError as e:
        raise HTTPException(status_code=502, detail=f"Coffee machine unavailable: {e}")

    return _brew_response(log, response, recommendation)


@router.post("/{user_id}/cancel")
def cancel_pending_brew(user_id: str, db: Session = Depends(get_db)):
    """Cancel the pending automatic brew."""
    user = get_user_or_404(user_id, db)

    pending = recommender.get_pending_brew(user, db)
    if not pending:
        raise HTTPException(status_code=404, detail="No pending brew to cancel")

    pending = recommender.cancel_pending_brew(pending, db)
    return pending.to_dict(datetime.utcnow())


@router.get("/{user_id}/stats", response_model=DailyStatsResponse)
def get_daily_stats(user_id: str, db: Session = Depends(get_db)):
    """Today's coffee consumption for a user."""
    user = get_user_or_404(user_id, db)
    return DailyStatsResponse(**recommender.get_daily_stats(user, db))


@router.get("/{user_id}/history")
def get_brew_history(
    user_id: str,
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db)
):
    """Most recent brews, newest first."""
    get_user_or_404(user_id, db)

    logs = db.query(BrewLog).filter(
        BrewLog.user_id == user_id
    ).order_by(BrewLog.brewed_at.desc()).limit(limit).all()

    return {"user_id": user_id, "brews": [log.to_dict() for log in logs]}
