from datetime import datetime

from portal.domain.base import utcnow


class Clock:
    """Time source for services; tests substitute a fixed clock"""

    def now(self) -> datetime:
        return utcnow()
