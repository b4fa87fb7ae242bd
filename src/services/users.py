"""Profile reads and edits for the authenticated user, driver profile included."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import Actor
from src.domain.errors import NotAuthorized, NotFound, ValidationError
from src.infrastructure.models import UserModel
from src.infrastructure.repositories import UserRepository
from src.infrastructure.transactions import run_in_transaction

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("username", "full_name", "phone", "bio", "avatar_url")
DRIVER_PROFILE_FIELDS = (
    "full_name",
    "phone",
    "bio",
    "avatar_url",
    "car_make",
    "car_model",
    "car_year",
    "car_color",
    "car_plate",
    "car_photo_url",
)


class UserService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserRepository(session)

    async def get_profile(self, actor: Actor) -> UserModel:
        if actor.is_service:
            raise NotAuthorized("Service actors have no profile")
        user = await self.users.get_by_id(actor.id)
        if user is None:
            raise NotFound("User not found")
        return user

    async def update_profile(self, actor: Actor, changes: dict[str, Any]) -> UserModel:
        user = await self.get_profile(actor)
        username = changes.get("username")
        if username:
            taken = await self.users.get_by_username(username)
            if taken is not None and taken.id != actor.id:
                raise ValidationError(
                    "Username already taken",
                    details=[{"field": "username", "message": "already taken"}],
                )

        async def work() -> UserModel:
            for name in PROFILE_FIELDS:
                if name in changes:
                    setattr(user, name, changes[name])
            await self.session.flush()
            return user

        try:
            updated = await run_in_transaction(self.session, work)
        except IntegrityError as exc:
            raise ValidationError("Username already taken") from exc
        logger.info("Profile of %s updated: %s", actor.id, sorted(changes))
        return updated

    async def save_driver_profile(
        self, actor: Actor, changes: dict[str, Any], *, accept_terms: bool
    ) -> UserModel:
        """
        Store vehicle details and mark the caller as a driver.

        Fields sent as null keep their stored value.  There is no manual
        review step, so a saved profile is verified at once.
        """
        user = await self.get_profile(actor)
        if not accept_terms:
            raise ValidationError(
                "You must accept the driver terms to continue",
                details=[{"field": "accept_terms", "message": "must be true"}],
            )

        async def work() -> UserModel:
            for name in DRIVER_PROFILE_FIELDS:
                if changes.get(name) is not None:
                    setattr(user, name, changes[name])
            user.is_driver = True
            user.driver_verified = True
            await self.session.flush()
            return user

        saved = await run_in_transaction(self.session, work)
        logger.info("Driver profile of %s saved: %s", actor.id, sorted(changes))
        return saved
