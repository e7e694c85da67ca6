"""
Background scheduler for periodic tasks.

This module manages background jobs that run on a schedule:
- Expire promotions: Runs every hour
"""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from mahattati.core.database import SessionLocal
from mahattati.models.ad import Ad
from mahattati.models.sponsored_ad import SponsoredAd
from mahattati.utils.dates import utcnow
import logging

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def expire_promotions(db: Session) -> tuple[int, int]:
    """
    Clear promotions and sponsored placements whose end has passed.

    Returns (ads demoted, sponsored ads deactivated).
    """
    now = utcnow()

    demoted = db.query(Ad).filter(
        Ad.is_promoted.is_(True),
        Ad.promotion_expires_at.isnot(None),
        Ad.promotion_expires_at < now,
    ).update(
        {Ad.is_promoted: False, Ad.promotion_type: None},
        synchronize_session=False,
    )

    deactivated = db.query(SponsoredAd).filter(
        SponsoredAd.is_active.is_(True),
        SponsoredAd.end_date.isnot(None),
        SponsoredAd.end_date < now,
    ).update({SponsoredAd.is_active: False}, synchronize_session=False)

    db.commit()
    return demoted, deactivated


def expire_promotions_job():
    """
    Background job wrapping expire_promotions in its own session.

    Runs every hour; a failed run is logged and retried on the next tick.
    """
    db = SessionLocal()
    try:
        demoted, deactivated = expire_promotions(db)
        if demoted or deactivated:
            logger.info(
                f"Expire job completed: {demoted} ads demoted, {deactivated} sponsored ads deactivated"
            )
        else:
            logger.info("Expire job completed: nothing to expire")
    except SQLAlchemyError as e:
        logger.error(f"Error in expire_promotions_job: {str(e)}")
        db.rollback()
    finally:
        db.close()


def start_scheduler():
    """
    Start the background scheduler.

    This should be called when the FastAPI app starts.
    """
    if not scheduler.running:
        scheduler.add_job(
            expire_promotions_job,
            trigger=IntervalTrigger(hours=1),
            id="expire_promotions",
            name="Expire promotions",
            replace_existing=True
        )

        scheduler.start()
        logger.info("Background scheduler started. Expire job scheduled to run every hour.")


def stop_scheduler():
    """
    Stop the background scheduler.

    This should be called when the FastAPI app shuts down.
    """
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Background scheduler stopped.")
