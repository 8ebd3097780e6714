"""
SnapStream Backend — Auth Route Handlers
==========================================

What:  POST /api/signup and POST /api/login.
How:   Validates the JSON body through the auth schemas and delegates to
       AuthService; both return a bearer token plus the user summary.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from snapstream.database import get_db_session
from snapstream.schemas.auth import LoginRequest, SignupRequest, TokenResponse
from snapstream.schemas.snap import ErrorResponse
from snapstream.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Auth"])


@router.post(
    "/signup",
    status_code=201,
    response_model=TokenResponse,
    responses={
        400: {"description": "Username already exists", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
    },
    summary="Create an account",
)
async def signup(
    body: SignupRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    return await auth_service.signup(db, body)


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={
        401: {"description": "Invalid credentials", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
    },
    summary="Exchange username and password for a bearer token",
)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> TokenResponse:
    return await auth_service.login(db, body)
