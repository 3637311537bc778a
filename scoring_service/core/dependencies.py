"""
FastAPI dependencies for the identity context and DB injection
"""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from motor.motor_asyncio import AsyncIOMotorDatabase

from scoring_service.core.security import decode_access_token
from scoring_service.database import get_database

# Expects an "Authorization: Bearer <token>" header
security = HTTPBearer()


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> str:
    """
    Validate the caller's JWT and return its subject.

    Used by the endpoints that mutate scores or leaderboards.
    """
    payload = decode_access_token(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return str(subject)


# Type aliases so endpoint signatures stay readable
CurrentUserId = Annotated[str, Depends(get_current_user_id)]
Database = Annotated[AsyncIOMotorDatabase, Depends(get_database)]
