from dataclasses import dataclass
from typing import Optional

from .entities.enums import UserRole


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as resolved from the access token"""

    uid: str
    role: UserRole
    impersonator_id: Optional[str] = None

    @property
    def is_impersonating(self) -> bool:
        """True when an admin is acting through this account (ghost session)"""
        return self.impersonator_id is not None
