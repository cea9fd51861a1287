"""FastAPI dependencies wiring the journey service to the request."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.change_feed import ChangeFeed, get_change_feed
from app.services.journey import JourneyService
from app.services.notifications import NotificationSender, get_notification_sender


def get_journey_service(
    db: AsyncSession = Depends(get_db),
    sender: NotificationSender = Depends(get_notification_sender),
    feed: ChangeFeed = Depends(get_change_feed),
) -> JourneyService:
    """Journey service bound to the request's database session."""
    return JourneyService(db, sender, feed)
