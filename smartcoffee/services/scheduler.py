"""
Scheduler Service - Brews coffee automatically at each user's wake time using APScheduler.
"""
from datetime import datetime, timedelta
from typing import Optional
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
import pytz

from smartcoffee.config import get_settings
from smartcoffee.db.database import SessionLocal
from smartcoffee.engine.recommender import CoffeeRecommender, should_auto_brew
from smartcoffee.engine.types import TimeContext
from smartcoffee.integrations import DeviceCommunicationError, TriggerType
from smartcoffee.models import User, BrewLog, PendingBrew

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()
recommender = CoffeeRecommender()

# Minimum gap between two automatic brews for the same user
AUTO_BREW_GAP = timedelta(hours=20)


def get_user_local_time(user: User, now: Optional[datetime] = None) -> datetime:
    """Current time in the user's timezone (falls back to the default timezone)."""
    settings = get_settings()
    try:
        user_tz = pytz.timezone(user.timezone or settings.default_timezone)
    except pytz.UnknownTimeZoneError:
        user_tz = pytz.timezone(settings.default_timezone)

    now = now or datetime.utcnow()
    return pytz.utc.localize(now).astimezone(user_tz)


def already_auto_brewed_today(user: User, db, now: Optional[datetime] = None) -> bool:
    """True when an automatic brew was sent or offered for confirmation recently."""
    now = now or datetime.utcnow()
    since = now - AUTO_BREW_GAP

    brewed = db.query(BrewLog).filter(
        BrewLog.user_id == user.id,
        BrewLog.trigger == TriggerType.AUTO.value,
        BrewLog.brewed_at >= since
    ).first()
    if brewed is not None:
        return True

    offered = db.query(PendingBrew).filter(
        PendingBrew.user_id == user.id,
        PendingBrew.created_at >= since
    ).first()
    return offered is not None


def is_due(user: User, db, now: Optional[datetime] = None) -> bool:
    """
    Whether an automatic brew should happen for this user now.

    Requires a wake time matching the current local minute, auto mode allowed
    for the day, and no automatic brew in the last 20 hours.
    """
    if not user.wake_time:
        return False

    local_now = get_user_local_time(user, now)
    if local_now.strftime("%H:%M") != user.wake_time:
        return False

    preferences = recommender.get_preferences(user, db)
    if not should_auto_brew(preferences, TimeContext.from_datetime(local_now)):
        return False

    return not already_auto_brewed_today(user, db, now)


async def check_and_brew():
    """
    Main scheduler job that runs every minute.
    Brews for every user whose wake time matches the current minute.
    """
    db = SessionLocal()
    try:
        users = db.query(User).filter(User.wake_time.isnot(None)).all()

        for user in users:
            try:
                if is_due(user, db):
                    await handle_due_user(user, db)
            except Exception as e:
                # One user's failure must not hold up the others
                db.rollback()
                logger.error(f"Auto brew failed for user {user.id}: {e}")

    except Exception as e:
        logger.error(f"Scheduler error: {e}")
    finally:
        db.close()


async def handle_due_user(user: User, db, now: Optional[datetime] = None):
    """Brew now, or start the confirmation countdown when the user asked for one."""
    preferences = recommender.get_preferences(user, db)

    if preferences.require_confirmation:
        pending = recommender.start_pending_brew(user, db, now)
        logger.info(
            f"Waiting {preferences.countdown_seconds:.0f}s for user {user.id} "
            f"to confirm {pending.coffee_type}"
        )
        return

    await auto_brew(user, db)


async def auto_brew(user: User, db):
    """Brew the recommended coffee for a user."""
    try:
        log, response, recommendation = await recommender.brew(user, db, trigger=TriggerType.AUTO)
        if response.is_success or response.is_in_progress:
            logger.info(
                f"Auto brewed {recommendation.coffee_type.value} "
                f"(strength {recommendation.strength:.2f}) for user {user.id}"
            )
        else:
            logger.error(f"Machine refused auto brew for user {user.id}: {response.message}")

    except DeviceCommunicationError as e:
        logger.error(f"Auto brew failed for user {user.id}: {e}")


def start_scheduler():
    """Initialize and start the scheduler."""
    if not get_settings().auto_brew_enabled:
        logger.info("Auto brew disabled - scheduler not started")
        return

    # Run every minute to check for due brews
    scheduler.add_job(
        check_and_brew,
        CronTrigger(minute="*"),
        id="auto_brew_check",
        replace_existing=True
    )
    scheduler.start()
    logger.info("Auto brew scheduler started")


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Auto brew scheduler stopped")
