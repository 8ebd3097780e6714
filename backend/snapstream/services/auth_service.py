"""
SnapStream Backend — Auth Service
===================================

What:  Account creation, credential checks and bearer-token issuing.
How:   Passwords are hashed with bcrypt through passlib's CryptContext.
       Tokens are HS256 JWTs (python-jose) carrying the user id, username
       and an expiry claim.
Who:   /api/signup and /api/login route handlers; `decode_token` is used by
       the `get_current_user_claims` dependency on authenticated routes.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from snapstream.config import settings
from snapstream.exceptions import AuthenticationError, ValidationError
from snapstream.models.user import User
from snapstream.schemas.auth import LoginRequest, SignupRequest, TokenResponse, UserSummary

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(user_id: uuid.UUID, username: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.jwt_expire_hours)
    claims = {"id": str(user_id), "username": username, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Verify a bearer token and return its claims.

    Raises:
        AuthenticationError: Bad signature, expired, or missing the id or
                             username claim
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise AuthenticationError(
            message="Invalid or expired token",
            context={"reason": str(e)},
        )

    try:
        claims["id"] = uuid.UUID(str(claims["id"]))
    except (KeyError, ValueError):
        raise AuthenticationError(message="Invalid or expired token")
    if not isinstance(claims.get("username"), str) or not claims["username"]:
        raise AuthenticationError(message="Invalid or expired token")
    return claims


class AuthService:
    """Signup and login against the users table."""

    async def signup(self, db: AsyncSession, request: SignupRequest) -> TokenResponse:
        """
        Create an account and return a token for it.

        Raises:
            ValidationError: Username (or email) already taken
        """
        existing = await db.execute(select(User.id).where(User.username == request.username))
        if existing.first() is not None:
            raise ValidationError(
                message="Username already exists",
                field="username",
            )

        user = User(
            id=uuid.uuid4(),
            username=request.username,
            email=request.email or f"{request.username}@example.com",
            password_hash=await asyncio.to_thread(hash_password, request.password),
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ValidationError(
                message="Username or email already exists",
                field="username",
            )

        logger.info("User %s signed up", user.username)
        return TokenResponse(
            token=create_access_token(user.id, user.username),
            user=UserSummary.model_validate(user),
        )

    async def login(self, db: AsyncSession, request: LoginRequest) -> TokenResponse:
        """
        Check credentials and return a fresh token.

        Raises:
            AuthenticationError: Unknown user, wrong password, or inactive account
        """
        result = await db.execute(select(User).where(User.username == request.username))
        user = result.scalar_one_or_none()

        if user is None or not await asyncio.to_thread(
            verify_password, request.password, user.password_hash
        ):
            logger.warning("Failed login for username %r", request.username)
            raise AuthenticationError(message="Invalid credentials")
        if not user.is_active:
            raise AuthenticationError(message="Account is disabled")

        user.last_login = datetime.now(timezone.utc)
        await db.commit()

        logger.info("User %s logged in", user.username)
        return TokenResponse(
            token=create_access_token(user.id, user.username),
            user=UserSummary.model_validate(user),
        )


auth_service = AuthService()
