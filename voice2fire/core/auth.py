import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from .settings import config_settings

logger = logging.getLogger(__name__)

# Where clients would request a token if the API supported username/password login.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def require_auth_token(token: Annotated[str, Depends(oauth2_scheme)]):
    """
    Dependency that requires a Bearer token listed in TOKENS.

    A missing Authorization header is rejected by OAuth2PasswordBearer
    itself with a 401.
    """
    if not token or token not in config_settings.TOKENS:
        logger.warning("Rejected request with unknown bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return token
