"""
SnapStream Backend — Auth Service Tests
=========================================
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from jose import jwt

from snapstream.config import settings
from snapstream.exceptions import AuthenticationError, ValidationError
from snapstream.models.user import User
from snapstream.schemas.auth import LoginRequest, SignupRequest
from snapstream.services.auth_service import (
    auth_service,
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)


class TestPasswordsAndTokens:

    def test_hash_verifies_and_is_salted(self):
        hashed = hash_password("hunter2")
        assert hashed != "hunter2"
        assert verify_password("hunter2", hashed)
        assert not verify_password("hunter3", hashed)
        assert hash_password("hunter2") != hashed

    def test_token_round_trip(self):
        user_id = uuid.uuid4()
        claims = decode_token(create_access_token(user_id, "alice"))
        assert claims["id"] == user_id
        assert claims["username"] == "alice"

    def test_token_signed_with_other_secret_rejected(self):
        token = jwt.encode(
            {"id": str(uuid.uuid4()), "username": "alice",
             "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            "some-other-secret",
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_expired_token_rejected(self):
        token = jwt.encode(
            {"id": str(uuid.uuid4()), "username": "alice",
             "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_token_without_id_rejected(self):
        token = jwt.encode(
            {"username": "alice", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_token_without_username_rejected(self):
        token = jwt.encode(
            {"id": str(uuid.uuid4()), "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(AuthenticationError):
            decode_token(token)


class TestSignupAndLogin:

    @pytest.mark.asyncio
    async def test_signup_defaults_email(self, database):
        async with database.session() as session:
            result = await auth_service.signup(
                session, SignupRequest(username="bob", password="pw12345")
            )

        assert result.user.username == "bob"
        assert result.user.email == "bob@example.com"
        assert decode_token(result.token)["id"] == result.user.id

    @pytest.mark.asyncio
    async def test_duplicate_username_rejected(self, database, make_user):
        await make_user("carol")

        async with database.session_factory() as session:
            with pytest.raises(ValidationError, match="already exists"):
                await auth_service.signup(
                    session, SignupRequest(username="carol", password="x")
                )

    @pytest.mark.asyncio
    async def test_login_success_sets_last_login(self, database, make_user):
        user = await make_user("dave", password="correct-horse")

        async with database.session() as session:
            result = await auth_service.login(
                session, LoginRequest(username="dave", password="correct-horse")
            )

        assert result.user.id == user.id
        async with database.session() as session:
            stored = await session.get(User, user.id)
            assert stored.last_login is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("username, password", [("dave", "wrong"), ("nobody", "x")])
    async def test_bad_credentials_rejected(self, database, make_user, username, password):
        await make_user("dave", password="correct-horse")

        async with database.session_factory() as session:
            with pytest.raises(AuthenticationError, match="Invalid credentials"):
                await auth_service.login(
                    session, LoginRequest(username=username, password=password)
                )

    @pytest.mark.asyncio
    async def test_inactive_account_rejected(self, database, make_user):
        await make_user("erin", password="pw", is_active=False)

        async with database.session_factory() as session:
            with pytest.raises(AuthenticationError, match="disabled"):
                await auth_service.login(session, LoginRequest(username="erin", password="pw"))

    @pytest.mark.asyncio
    async def test_bcrypt_runs_off_the_event_loop(self, database, make_user):
        await make_user("frank", password="pw")

        with patch(
            "snapstream.services.auth_service.asyncio.to_thread", wraps=asyncio.to_thread
        ) as offload:
            async with database.session() as session:
                await auth_service.signup(session, SignupRequest(username="gina", password="pw"))
            async with database.session() as session:
                await auth_service.login(session, LoginRequest(username="frank", password="pw"))

        offloaded = [call.args[0] for call in offload.call_args_list]
        assert offloaded == [hash_password, verify_password]
