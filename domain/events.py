"""Room availability events and the in-process channel that delivers them"""
import logging
from datetime import date, datetime, timezone
from typing import Callable, List

from pydantic import BaseModel, Field

from domain.enums import RoomStatus, RoomTypeCode

logger = logging.getLogger(__name__)


class RoomAvailabilityEvent(BaseModel):
    """A room changed status and may be bookable again"""
    room_number: str
    room_type: RoomTypeCode
    new_status: RoomStatus
    available_from: date
    source: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        frozen = True


AvailabilityListener = Callable[[RoomAvailabilityEvent], None]


class AvailabilityEventChannel:
    """Synchronous publish/subscribe list for RoomAvailabilityEvent"""

    def __init__(self):
        self._listeners: List[AvailabilityListener] = []

    def subscribe(self, listener: AvailabilityListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)
            logger.debug("Availability listener subscribed: %r", listener)

    def unsubscribe(self, listener: AvailabilityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def publish(self, event: RoomAvailabilityEvent) -> None:
        """Deliver an event to every listener; a failing listener does not stop the rest"""
        logger.info(
            "Room %s is %s from %s (%s)",
            event.room_number, event.new_status.value, event.available_from, event.source,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.error("Availability listener %r failed", listener, exc_info=True)
