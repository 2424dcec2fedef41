"""
Weekly session-limit guard.

A tutor's week runs from Sunday 00:00 (inclusive) to the following Sunday
00:00 (exclusive) in the system timezone. Scheduled and completed sessions
whose start falls in that window count toward the tutor's cap.
"""

from datetime import date, datetime
import logging
from typing import Optional, Union

import pytz

from ..core.exceptions import WeeklyLimitExceededException
from ..core.timezone_utils import get_system_timezone, to_zone, week_bounds, week_start_for
from ..repositories.session_repository import SessionRepository
from ..repositories.tutor_repository import TutorRepository

logger = logging.getLogger(__name__)


class WeeklyLimitGuard:
    """Counts a tutor's sessions per calendar week against ``max_weekly_sessions``."""

    def __init__(
        self,
        session_repository: SessionRepository,
        tutor_repository: TutorRepository,
        tz: Optional[pytz.BaseTzInfo] = None,
    ):
        self.session_repository = session_repository
        self.tutor_repository = tutor_repository
        self.tz = tz or get_system_timezone()

    def _local_day(self, proposed: Union[date, datetime]) -> date:
        if isinstance(proposed, datetime):
            return to_zone(proposed, self.tz).date()
        return proposed

    def _exceeded_limit(
        self,
        tutor_id: str,
        proposed: Union[date, datetime],
        exclude_session_id: Optional[str],
    ) -> Optional[int]:
        # The cap that is reached, or None while the week still has room
        limit = self.tutor_repository.get_max_weekly_sessions(tutor_id)
        if not limit or limit <= 0:
            return None

        week_start, week_end = week_bounds(self._local_day(proposed), self.tz)
        count = self.session_repository.count_blocking_sessions_between(
            tutor_id, week_start, week_end, exclude_session_id=exclude_session_id
        )
        if count < limit:
            return None
        logger.info(
            "Tutor %s at weekly limit (%s/%s) for week of %s",
            tutor_id,
            count,
            limit,
            week_start.date().isoformat(),
        )
        return limit

    def is_at_weekly_limit(
        self,
        tutor_id: str,
        proposed: Union[date, datetime],
        exclude_session_id: Optional[str] = None,
    ) -> bool:
        """
        Whether one more session in ``proposed``'s week would exceed the cap.

        A missing or non-positive cap means unlimited. ``exclude_session_id``
        leaves a session being moved out of the count.
        """
        return self._exceeded_limit(tutor_id, proposed, exclude_session_id) is not None

    def ensure_below_limit(
        self,
        tutor_id: str,
        proposed: Union[date, datetime],
        exclude_session_id: Optional[str] = None,
    ) -> None:
        """Raise ``WeeklyLimitExceededException`` when the tutor's week is full."""
        limit = self._exceeded_limit(tutor_id, proposed, exclude_session_id)
        if limit is not None:
            week_start = week_start_for(self._local_day(proposed))
            raise WeeklyLimitExceededException(tutor_id, week_start.isoformat(), limit)
