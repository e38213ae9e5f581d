# slotbook/services/session_registry.py
"""
Session Registry for slotbook

Read-only projections over the sessions the ReservationScheduler writes.
Queries go straight to the database, so a committed booking is visible to
the very next call.
"""

from datetime import date, datetime
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock, SystemClock, get_gym_timezone
from ..core.config import Settings, settings as default_settings
from ..core.exceptions import NotFoundException
from ..models.training_session import TrainingSession
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class SessionRegistry(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None, config: Optional[Settings] = None):
        super().__init__(db)
        self.config = config or default_settings
        self.clock = clock or SystemClock(self.config.timezone)
        self.tz = get_gym_timezone(self.config.timezone)
        self.session_repository = RepositoryFactory.create_training_session_repository(db)

    def _local_date(self, now: Optional[datetime]) -> date:
        return (now or self.clock.now()).astimezone(self.tz).date()

    @BaseService.measure_operation("list_upcoming")
    def list_upcoming(self, member_id: str, now: Optional[datetime] = None) -> List[TrainingSession]:
        """Pending and confirmed sessions from today on, soonest first."""
        return self.session_repository.list_upcoming(member_id, self._local_date(now))

    @BaseService.measure_operation("list_past")
    def list_past(self, member_id: str, now: Optional[datetime] = None) -> List[TrainingSession]:
        """
        Completed sessions and sessions cancelled before today, latest first.

        A session completed earlier today by the sweep is already past.
        """
        return self.session_repository.list_past(member_id, self._local_date(now))

    def get(self, session_id: str) -> TrainingSession:
        session = self.session_repository.get_by_id(session_id)
        if session is None:
            raise NotFoundException(
                "Session not found", code="SESSION_NOT_FOUND", details={"session_id": session_id}
            )
        return session

    def list_for_day(self, day: date, location_id: Optional[str] = None) -> List[TrainingSession]:
        """Every session at a location on ``day``, including cancelled ones."""
        return self.session_repository.list_for_day(location_id or self.config.default_location_id, day)
