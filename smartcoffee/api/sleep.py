from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field

from smartcoffee.api.users import get_user_or_404
from smartcoffee.db import get_db
from smartcoffee.engine.fatigue import classify_fatigue, compute_sleep_quality
from smartcoffee.engine.types import SleepSnapshot
from smartcoffee.integrations import MockSleepProvider
from smartcoffee.models import SleepRecord

router = APIRouter()


class SleepIngest(BaseModel):
    duration_seconds: float = Field(..., ge=0)
    quality_score: Optional[float] = Field(None, ge=0, le=100)  # computed from stages when missing
    average_heart_rate: float = Field(..., ge=0)
    deep_sleep_percent: float = Field(..., ge=0, le=100)
    rem_sleep_percent: float = Field(..., ge=0, le=100)
    detected_wake_time: Optional[datetime] = None
    source: str = "manual"


class SleepResponse(BaseModel):
    id: str
    source: str
    duration_seconds: float
    hours: float
    quality_score: float
    average_heart_rate: float
    deep_sleep_percent: float
    rem_sleep_percent: float
    light_sleep_percent: float
    detected_wake_time: Optional[datetime]
    fatigue_level: str


def _to_response(record: SleepRecord) -> SleepResponse:
    snapshot = SleepSnapshot(
        duration_seconds=record.duration_seconds,
        quality_score=record.quality_score,
        average_heart_rate=record.average_heart_rate,
        deep_sleep_percent=record.deep_sleep_percent,
        rem_sleep_percent=record.rem_sleep_percent,
        detected_wake_time=record.detected_wake_time
    )
    return SleepResponse(
        id=record.id,
        source=record.source,
        duration_seconds=record.duration_seconds,
        hours=round(snapshot.hours, 2),
        quality_score=record.quality_score,
        average_heart_rate=record.average_heart_rate,
        deep_sleep_percent=record.deep_sleep_percent,
        rem_sleep_percent=record.rem_sleep_percent,
        light_sleep_percent=snapshot.light_sleep_percent,
        detected_wake_time=record.detected_wake_time,
        fatigue_level=classify_fatigue(snapshot).value
    )


def _save_snapshot(user_id: str, snapshot: SleepSnapshot, source: str, db: Session) -> SleepRecord:
    record = SleepRecord(
        user_id=user_id,
        source=source,
        duration_seconds=snapshot.duration_seconds,
        quality_score=snapshot.quality_score,
        average_heart_rate=snapshot.average_heart_rate,
        deep_sleep_percent=snapshot.deep_sleep_percent,
        rem_sleep_percent=snapshot.rem_sleep_percent,
        detected_wake_time=snapshot.detected_wake_time
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@router.post("/{user_id}", response_model=SleepResponse)
def ingest_sleep(user_id: str, data: SleepIngest, db: Session = Depends(get_db)):
    """
    Store last night's sleep for a user.

    When the source reports sleep stages but no quality score, the score is
    computed from duration, stage percentages and heart rate.
    """
    get_user_or_404(user_id, db)

    quality = data.quality_score
    if quality is None:
        quality = round(compute_sleep_quality(
            data.duration_seconds,
            data.deep_sleep_percent,
            data.rem_sleep_percent,
            data.average_heart_rate
        ), 1)

    snapshot = SleepSnapshot(
        duration_seconds=data.duration_seconds,
        quality_score=quality,
        average_heart_rate=data.average_heart_rate,
        deep_sleep_percent=data.deep_sleep_percent,
        rem_sleep_percent=data.rem_sleep_percent,
        detected_wake_time=data.detected_wake_time
    )
    record = _save_snapshot(user_id, snapshot, data.source, db)
    return _to_response(record)


@router.post("/{user_id}/mock", response_model=SleepResponse)
async def ingest_mock_sleep(user_id: str, scenario: str = "average", db: Session = Depends(get_db)):
    """Pull a night of sleep from the mock provider (development only)."""
    get_user_or_404(user_id, db)

    provider = MockSleepProvider(scenario)
    snapshot = await provider.fetch_latest_snapshot()
    record = _save_snapshot(user_id, snapshot, provider.source, db)
    return _to_response(record)


@router.get("/{user_id}/latest", response_model=SleepResponse)
def get_latest_sleep(user_id: str, db: Session = Depends(get_db)):
    """Most recent sleep record for a user."""
    get_user_or_404(user_id, db)

    latest = db.query(SleepRecord).filter(
        SleepRecord.user_id == user_id
    ).order_by(SleepRecord.recorded_at.desc()).first()
    if not latest:
        raise HTTPException(status_code=404, detail="No sleep data recorded")

    return _to_response(latest)
