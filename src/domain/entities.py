"""
Domain entities shared across services.

``Actor`` is the single normalized identity every guard consumes, whichever
credential produced it.
"""

from __future__ import annotations

from dataclasses import dataclass

from .enums import UserRole

SERVICE_ADMIN_ID = "service:admin"


@dataclass(frozen=True)
class Actor:
    id: str
    role: UserRole = UserRole.USER
    is_service: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def service_admin(cls) -> "Actor":
        """Synthetic actor for the admin surface; has no backing user row."""
        return cls(id=SERVICE_ADMIN_ID, role=UserRole.ADMIN, is_service=True)
