"""Identity resolver: bearer JWTs, the admin service actor and role policy."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from src.config import settings
from src.domain.entities import SERVICE_ADMIN_ID
from src.domain.enums import UserRole
from src.domain.errors import Unauthenticated
from src.infrastructure.models import UserModel
from src.services.identity import (
    IdentityResolver,
    decode_bearer,
    is_admin_session,
    issue_admin_session,
    role_for,
)
from tests.conftest import ADMIN_SESSION_TOKEN, make_token


class TestDecodeBearer:
    def test_valid_token(self):
        claims = decode_bearer(make_token("u1", "u1@example.com"))
        assert claims["sub"] == "u1"

    def test_expired_token(self):
        token = make_token("u1", exp=datetime.now(timezone.utc) - timedelta(minutes=1))
        with pytest.raises(Unauthenticated):
            decode_bearer(token)

    def test_wrong_audience(self):
        with pytest.raises(Unauthenticated):
            decode_bearer(make_token("u1", aud="someone-else"))

    def test_foreign_signature(self):
        token = jwt.encode(
            {"sub": "u1", "aud": settings.jwt_audience},
            "some-other-secret",
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(Unauthenticated):
            decode_bearer(token)

    def test_garbage(self):
        with pytest.raises(Unauthenticated):
            decode_bearer("not-a-jwt")


class TestRolePolicy:
    def test_stored_admin_role(self):
        assert role_for(UserModel(id="u1", email="x@example.com", role=UserRole.ADMIN)) == UserRole.ADMIN

    def test_plain_user(self):
        assert role_for(UserModel(id="u1", email="x@example.com", role=UserRole.USER)) == UserRole.USER

    def test_id_allowlist_elevates(self, monkeypatch):
        monkeypatch.setattr(settings, "admin_user_ids", ["u1"])
        assert role_for(UserModel(id="u1", email="x@example.com", role=UserRole.USER)) == UserRole.ADMIN

    def test_email_list_is_case_insensitive(self, monkeypatch):
        monkeypatch.setattr(settings, "admin_emails", ["Boss@Example.com"])
        assert role_for(UserModel(id="u1", email="boss@example.com", role=UserRole.USER)) == UserRole.ADMIN


class TestAdminSession:
    def test_configured_token_is_recognised(self):
        assert is_admin_session(ADMIN_SESSION_TOKEN)

    def test_unknown_or_missing_token(self):
        assert not is_admin_session("guess")
        assert not is_admin_session(None)

    def test_rotation_accepts_every_listed_token(self, monkeypatch):
        monkeypatch.setattr(settings, "admin_session_tokens", ["new", "old"])
        assert is_admin_session("old")
        assert issue_admin_session("ops@example.com", "correct-horse") == "new"

    def test_login_with_bad_password(self):
        with pytest.raises(Unauthenticated):
            issue_admin_session("ops@example.com", "wrong")

    def test_login_disabled_without_tokens(self, monkeypatch):
        monkeypatch.setattr(settings, "admin_session_tokens", [])
        with pytest.raises(Unauthenticated, match="not enabled"):
            issue_admin_session("ops@example.com", "correct-horse")


class TestIdentityResolver:
    @pytest.mark.asyncio
    async def test_missing_token(self, db_session):
        with pytest.raises(Unauthenticated):
            await IdentityResolver(db_session).resolve_bearer(None)

    @pytest.mark.asyncio
    async def test_first_sight_provisions_user(self, db_session):
        resolver = IdentityResolver(db_session)
        actor = await resolver.resolve_bearer(make_token("new-user", "new@example.com"))
        assert actor.id == "new-user"
        assert actor.role == UserRole.USER
        assert not actor.is_service

        user = await db_session.get(UserModel, "new-user")
        assert user.email == "new@example.com"
        assert user.total_rides == 0

    @pytest.mark.asyncio
    async def test_provisioning_is_idempotent(self, db_session):
        resolver = IdentityResolver(db_session)
        token = make_token("same-user")
        first = await resolver.resolve_bearer(token)
        second = await resolver.resolve_bearer(token)
        assert first == second

    @pytest.mark.asyncio
    async def test_service_actor_has_no_user_row(self, db_session):
        actor = IdentityResolver(db_session).resolve_admin_session(ADMIN_SESSION_TOKEN)
        assert actor.id == SERVICE_ADMIN_ID
        assert actor.is_service and actor.is_admin
        assert await db_session.get(UserModel, SERVICE_ADMIN_ID) is None

    @pytest.mark.asyncio
    async def test_unknown_session_is_not_an_actor(self, db_session):
        assert IdentityResolver(db_session).resolve_admin_session("guess") is None
