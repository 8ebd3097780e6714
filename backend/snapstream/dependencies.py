"""
SnapStream Backend — Shared Route Dependencies
================================================

What:  FastAPI dependencies used by more than one router.
Who:   routes/snaps.py (authenticated upload), routes/live.py (broadcaster).
"""

from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.requests import HTTPConnection

from snapstream.exceptions import AuthenticationError
from snapstream.services.auth_service import decode_token
from snapstream.services.broadcaster import SnapBroadcaster

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    """
    Claims of the bearer token on the request: {"id": UUID, "username": str, ...}.

    Raises:
        AuthenticationError: No Authorization header, or the token does not verify
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError(message="Authentication required")
    return decode_token(credentials.credentials)


def get_broadcaster(connection: HTTPConnection) -> SnapBroadcaster:
    broadcaster: Optional[SnapBroadcaster] = getattr(connection.app.state, "broadcaster", None)
    if broadcaster is None:
        raise RuntimeError("Broadcaster is not initialised on app.state")
    return broadcaster
