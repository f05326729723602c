"""
FastAPI dependencies.

Authentication and shared request state.
"""

import secrets
from typing import Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from shared.config import settings
from shared.logging import get_logger
from modules.composer.job_store import JobStore

logger = get_logger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)  # Don't auto-raise on missing token


async def verify_api_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> None:
    """
    Check the shared API secret sent as a Bearer token.

    Args:
        credentials: HTTP Bearer token credentials (from header)

    Raises:
        HTTPException: 401 if the token is missing or wrong
    """
    if credentials is None:
        logger.warning("No token provided in Authorization header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"}
        )

    if not secrets.compare_digest(
        credentials.credentials.encode(), settings.composer_api_secret.encode()
    ):
        logger.warning("Invalid API secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"}
        )


def get_job_store(request: Request) -> JobStore:
    """Job ledger owned by the running app."""
    return request.app.state.job_store
