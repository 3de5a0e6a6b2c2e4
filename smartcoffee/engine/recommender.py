import logging
from collections import Counter
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional, Tuple

import pytz
from sqlalchemy.orm import Session

from smartcoffee.config import get_settings
from smartcoffee.integrations.device import (
    CoffeeMachineClient,
    CoffeeResponse,
    CommandStatus,
    DeviceCommunicationError,
    TriggerType,
)
from smartcoffee.models import User, CoffeePreference, SleepRecord, BrewLog, PendingBrew
from .decision import decide
from .fatigue import classify_fatigue
from .types import CoffeeType, DEFAULT_SLEEP_SNAPSHOT, Recommendation, SleepSnapshot, TimeContext, UserPreferences

logger = logging.getLogger(__name__)

# Brews that count against the daily caffeine budget
CONSUMED_STATUSES = [CommandStatus.SUCCESS.value, CommandStatus.IN_PROGRESS.value]

# Pending brew states
PENDING = "pending"
CONFIRMED = "confirmed"
CANCELLED = "cancelled"
EXPIRED = "expired"

HEALTHY_MAX_CAFFEINE_MG = 400.0
HEALTHY_MAX_CUPS = 4


def _to_local(moment: datetime, tz) -> datetime:
    """Naive datetimes are UTC."""
    if moment.tzinfo is None:
        moment = pytz.utc.localize(moment)
    return moment.astimezone(tz)


def should_auto_brew(preferences: UserPreferences, time_context: TimeContext) -> bool:
    """Whether an automatic brew is allowed for this user right now."""
    if not preferences.auto_mode_enabled:
        return False
    if preferences.auto_only_on_weekdays and time_context.is_weekend:
        return False
    return True


class CoffeeRecommender:
    """Loads a user's context from the database, runs the decision engine and brews."""

    def __init__(self, client: Optional[CoffeeMachineClient] = None):
        self.settings = get_settings()
        self.client = client or CoffeeMachineClient(self.settings)

    def get_recommendation(
        self,
        user: User,
        db: Session,
        hour_override: Optional[int] = None,
        now: Optional[datetime] = None,
        preferred_type: Optional[CoffeeType] = None
    ) -> dict:
        """
        Generate a coffee recommendation for a user.

        Args:
            user: The user to recommend for
            db: Database session
            hour_override: Optional hour (0-23) to override the user's local hour
            now: Optional UTC time, defaults to the current time
            preferred_type: Optional type that takes precedence over saved preferences

        Returns:
            Dictionary with the recommendation and the context it was built from
        """
        now = now or datetime.utcnow()

        # Step 1: Preferences (saved, or defaults)
        preferences = self.get_preferences(user, db)
        if preferred_type is not None:
            preferences = replace(preferences, preferred_type=preferred_type)

        # Step 2: Last night's sleep (default snapshot if none was recorded)
        sleep, has_sleep_data = self._get_latest_sleep(user.id, db)

        # Step 3: Caffeine already consumed today
        consumed = self._get_consumed_caffeine_today(user, db, now)

        # Step 4: Time of day in the user's timezone
        time_context = self._build_time_context(user, now, sleep, hour_override)

        recommendation = decide(sleep, preferences, time_context, consumed)

        return {
            "recommendation": recommendation,
            "fatigue_level": classify_fatigue(sleep),
            "sleep": sleep,
            "using_default_sleep": not has_sleep_data,
            "time_context": time_context,
            "preferences": preferences,
            "consumed_caffeine_today_mg": consumed,
            "remaining_caffeine_mg": preferences.remaining_caffeine_today(consumed),
        }

    async def brew(
        self,
        user: User,
        db: Session,
        trigger: TriggerType = TriggerType.MANUAL,
        coffee_type: Optional[CoffeeType] = None,
        hour_override: Optional[int] = None
    ) -> Tuple[BrewLog, CoffeeResponse, Recommendation]:
        """
        Recommend, send the brew command and log it.

        An explicit coffee_type is treated as a preferred type, so the caffeine
        limit and evening rules still apply to it.

        Raises:
            DeviceCommunicationError: the machine could not be reached (the
                failed attempt is still logged)
        """
        result = self.get_recommendation(user, db, hour_override=hour_override, preferred_type=coffee_type)
        recommendation: Recommendation = result["recommendation"]

        try:
            response = await self.client.make_coffee(
                coffee_type=recommendation.coffee_type,
                trigger=trigger,
                user_id=user.id,
                sleep_score=result["sleep"].quality_score
            )
        except DeviceCommunicationError as e:
            self.record_brew(
                user.id,
                recommendation,
                trigger,
                CoffeeResponse(status=CommandStatus.ERROR, message=str(e), error_code=e.status_code),
                db
            )
            raise

        log = self.record_brew(user.id, recommendation, trigger, response, db)
        return log, response, recommendation

    def record_brew(
        self,
        user_id: str,
        recommendation: Recommendation,
        trigger: TriggerType,
        response: CoffeeResponse,
        db: Session
    ) -> BrewLog:
        """Record a brew attempt and its outcome."""
        log = BrewLog(
            user_id=user_id,
            request_id=response.request_id,
            coffee_type=recommendation.coffee_type.value,
            strength=recommendation.strength,
            caffeine_mg=round(recommendation.projected_caffeine_mg, 1),
            trigger=trigger.value,
            status=response.status.value,
            message=response.message,
            error_code=response.error_code,
            response_time_seconds=response.response_time_seconds
        )
        db.add(log)
        db.commit()
        db.refresh(log)
        return log

    def start_pending_brew(self, user: User, db: Session, now: Optional[datetime] = None) -> PendingBrew:
        """
        Start the confirmation countdown for an automatic brew.

        The user has countdown_seconds to confirm; an unconfirmed brew expires.
        An already running countdown is returned unchanged.
        """
        now = now or datetime.utcnow()

        existing = self.get_pending_brew(user, db, now)
        if existing is not None:
            return existing

        result = self.get_recommendation(user, db, now=now)
        recommendation: Recommendation = result["recommendation"]

        pending = PendingBrew(
            user_id=user.id,
            created_at=now,
            expires_at=now + timedelta(seconds=result["preferences"].countdown_seconds),
            coffee_type=recommendation.coffee_type.value,
            strength=recommendation.strength,
            status=PENDING
        )
        db.add(pending)
        db.commit()
        db.refresh(pending)

        logger.info(f"Pending {pending.coffee_type} for user {user.id} until {pending.expires_at.isoformat()}")
        return pending

    def get_pending_brew(self, user: User, db: Session, now: Optional[datetime] = None) -> Optional[PendingBrew]:
        """The user's running countdown, if any. Countdowns that ran out are marked expired."""
        now = now or datetime.utcnow()

        pending_brews = db.query(PendingBrew).filter(
            PendingBrew.user_id == user.id,
            PendingBrew.status == PENDING
        ).order_by(PendingBrew.created_at.desc()).all()

        active = None
        expired = False
        for pending in pending_brews:
            if pending.expires_at <= now:
                pending.status = EXPIRED
                pending.resolved_at = now
                expired = True
            elif active is None:
                active = pending

        if expired:
            db.commit()
        return active

    async def confirm_pending_brew(
        self,
        user: User,
        pending: PendingBrew,
        db: Session
    ) -> Tuple[BrewLog, CoffeeResponse, Recommendation]:
        """
        Brew a pending automatic coffee the user confirmed.

        The recommendation is recomputed at brew time. When the machine cannot
        be reached the countdown stays open so the user can retry.
        """
        log, response, recommendation = await self.brew(user, db, trigger=TriggerType.AUTO)

        pending.status = CONFIRMED
        pending.resolved_at = datetime.utcnow()
        pending.brew_log_id = log.id
        db.commit()

        return log, response, recommendation

    def cancel_pending_brew(self, pending: PendingBrew, db: Session) -> PendingBrew:
        pending.status = CANCELLED
        pending.resolved_at = datetime.utcnow()
        db.commit()
        db.refresh(pending)
        logger.info(f"Pending brew {pending.id} cancelled")
        return pending

    def get_preferences(self, user: User, db: Session) -> UserPreferences:
        """User's saved preferences converted for the engine."""
        pref = db.query(CoffeePreference).filter(CoffeePreference.user_id == user.id).first()
        if pref is None:
            return UserPreferences(max_caffeine_per_day_mg=self.settings.default_max_caffeine_mg)

        return UserPreferences(
            preferred_type=CoffeeType(pref.preferred_type) if pref.preferred_type else None,
            preferred_strength=pref.preferred_strength,
            max_caffeine_per_day_mg=pref.max_caffeine_per_day_mg,
            auto_mode_enabled=pref.auto_mode_enabled,
            require_confirmation=pref.require_confirmation,
            countdown_seconds=pref.countdown_seconds,
            auto_only_on_weekdays=pref.auto_only_on_weekdays
        )

    def get_daily_stats(self, user: User, db: Session, now: Optional[datetime] = None) -> dict:
        """Consumption statistics for the user's current local day."""
        now = now or datetime.utcnow()
        user_tz = self._user_timezone(user)
        day_start, day_end = self._day_bounds(now, user_tz)

        logs = db.query(BrewLog).filter(
            BrewLog.user_id == user.id,
            BrewLog.brewed_at >= day_start,
            BrewLog.brewed_at < day_end
        ).all()

        attempts = len(logs)
        consumed = [log for log in logs if log.status in CONSUMED_STATUSES]
        total_caffeine = sum(log.caffeine_mg for log in consumed)

        type_counts = Counter(log.coffee_type for log in consumed)
        hour_counts = Counter(_to_local(log.brewed_at, user_tz).hour for log in consumed if log.brewed_at)
        response_times = [log.response_time_seconds for log in logs if log.response_time_seconds is not None]

        total_cups = len(consumed)
        return {
            "date": _to_local(now, user_tz).date().isoformat(),
            "total_cups": total_cups,
            "auto_cups": sum(1 for log in consumed if log.trigger == TriggerType.AUTO.value),
            "manual_cups": sum(1 for log in consumed if log.trigger != TriggerType.AUTO.value),
            "cups_by_type": dict(type_counts),
            "total_caffeine_mg": round(total_caffeine, 1),
            "most_consumed_type": type_counts.most_common(1)[0][0] if type_counts else None,
            "peak_consumption_hour": hour_counts.most_common(1)[0][0] if hour_counts else None,
            "average_response_time": round(sum(response_times) / len(response_times), 3) if response_times else None,
            "success_rate": round(total_cups / attempts, 3) if attempts else None,
            "is_healthy_consumption": total_caffeine <= HEALTHY_MAX_CAFFEINE_MG and total_cups <= HEALTHY_MAX_CUPS
        }

    def _get_latest_sleep(self, user_id: str, db: Session) -> Tuple[SleepSnapshot, bool]:
        """Most recent sleep snapshot, or the default one if none was recorded."""
        latest = db.query(SleepRecord).filter(
            SleepRecord.user_id == user_id
        ).order_by(SleepRecord.recorded_at.desc()).first()

        if latest is None:
            logger.info(f"No sleep data for user {user_id}, using default snapshot")
            return DEFAULT_SLEEP_SNAPSHOT, False

        return SleepSnapshot(
            duration_seconds=latest.duration_seconds,
            quality_score=latest.quality_score,
            average_heart_rate=latest.average_heart_rate,
            deep_sleep_percent=latest.deep_sleep_percent,
            rem_sleep_percent=latest.rem_sleep_percent,
            detected_wake_time=latest.detected_wake_time
        ), True

    def _get_consumed_caffeine_today(self, user: User, db: Session, now: datetime) -> float:
        day_start, day_end = self._day_bounds(now, self._user_timezone(user))

        logs = db.query(BrewLog).filter(
            BrewLog.user_id == user.id,
            BrewLog.brewed_at >= day_start,
            BrewLog.brewed_at < day_end,
            BrewLog.status.in_(CONSUMED_STATUSES)
        ).all()

        return sum(log.caffeine_mg for log in logs)

    def _build_time_context(
        self,
        user: User,
        now: datetime,
        sleep: SleepSnapshot,
        hour_override: Optional[int] = None
    ) -> TimeContext:
        """TimeContext in the user's local time."""
        user_tz = self._user_timezone(user)
        local_now = _to_local(now, user_tz)

        wake_time = None
        if sleep.detected_wake_time is not None:
            wake_time = _to_local(sleep.detected_wake_time, user_tz)

        context = TimeContext.from_datetime(local_now, wake_time=wake_time)
        if hour_override is not None:
            context = replace(context, hour_of_day=hour_override)
        return context

    def _user_timezone(self, user: User):
        try:
            return pytz.timezone(user.timezone or self.settings.default_timezone)
        except pytz.UnknownTimeZoneError:
            logger.warning(f"Unknown timezone {user.timezone!r} for user {user.id}")
            return pytz.timezone(self.settings.default_timezone)

    @staticmethod
    def _day_bounds(now: datetime, user_tz) -> Tuple[datetime, datetime]:
        """Naive UTC bounds of the local day containing now."""
        local_date = _to_local(now, user_tz).date()
        day_start = user_tz.localize(datetime.combine(local_date, datetime.min.time()))
        day_end = user_tz.localize(datetime.combine(local_date + timedelta(days=1), datetime.min.time()))
        return (
            day_start.astimezone(pytz.utc).replace(tzinfo=None),
            day_end.astimezone(pytz.utc).replace(tzinfo=None),
        )
