"""
Identity resolution
===================

Turns request credentials into a single normalized ``Actor``.

Two recognition paths, one output shape:

* **Bearer path** -- a JWT issued by the external identity provider is
  verified with PyJWT; its ``sub`` claim is the user id.  A missing user row
  is provisioned on first sight (the only write this module makes, and it
  tolerates a concurrent request provisioning the same id).
* **Service path** -- a configured admin session token resolves to the
  synthetic ``service:admin`` actor with no user lookup.  Tokens are a list
  so they can be rotated; the path is only wired into the admin surface.

Role elevation (stored role, admin id allowlist, admin e-mail list) is
evaluated here once; guards only ever look at ``Actor.role``.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any, Optional

import jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.entities import Actor
from src.domain.enums import UserRole
from src.domain.errors import Unauthenticated
from src.infrastructure.models import UserModel
from src.infrastructure.repositories import UserRepository

logger = logging.getLogger(__name__)


def role_for(user: UserModel) -> UserRole:
    """The one authorization policy: every elevation scheme folds in here."""
    if UserRole(user.role) == UserRole.ADMIN:
        return UserRole.ADMIN
    if user.id in settings.admin_user_ids:
        return UserRole.ADMIN
    admin_emails = {e.lower() for e in settings.admin_emails}
    if user.email and user.email.lower() in admin_emails:
        return UserRole.ADMIN
    return UserRole(user.role)


def is_admin_session(token: Optional[str]) -> bool:
    if not token:
        return False
    return any(
        secrets.compare_digest(token, accepted)
        for accepted in settings.admin_session_tokens
    )


def issue_admin_session(email: str, password: str) -> str:
    """Exchange the configured admin credentials for the current session token."""
    configured = (
        settings.admin_email
        and settings.admin_password
        and settings.admin_session_tokens
    )
    if not configured:
        raise Unauthenticated("Admin login is not enabled")
    email_ok = secrets.compare_digest(
        email.strip().lower(), settings.admin_email.strip().lower()
    )
    password_ok = secrets.compare_digest(password, settings.admin_password)
    if not (email_ok and password_ok):
        raise Unauthenticated("Invalid login credentials")
    return settings.admin_session_tokens[0]


def decode_bearer(token: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={
                "require": ["sub"],
                "verify_aud": settings.jwt_audience is not None,
            },
        )
    except jwt.PyJWTError as exc:
        raise Unauthenticated("Invalid authentication token") from exc


class IdentityResolver:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserRepository(session)

    async def resolve_bearer(self, token: Optional[str]) -> Actor:
        if not token:
            raise Unauthenticated("Authentication required")
        claims = decode_bearer(token)
        user_id = str(claims["sub"])
        user = await self.users.get_by_id(user_id)
        if user is None:
            user = await self._provision(user_id, claims.get("email") or "")
        return Actor(id=user.id, role=role_for(user))

    def resolve_admin_session(self, token: Optional[str]) -> Optional[Actor]:
        if is_admin_session(token):
            return Actor.service_admin()
        return None

    async def _provision(self, user_id: str, email: str) -> UserModel:
        try:
            user = await self.users.create(user_id=user_id, email=email)
            await self.session.commit()
            logger.info("Provisioned user %s", user_id)
            return user
        except IntegrityError:
            # Another request provisioned the same id first
            await self.session.rollback()
            user = await self.users.get_by_id(user_id)
            if user is None:
                raise
            return user
