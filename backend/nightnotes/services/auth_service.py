import os
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from nightnotes.config import CRON_SECRET
from nightnotes.schemas import ProfileRecord
from nightnotes.api.deps import get_store
from nightnotes.services.store import SessionStore

logger = logging.getLogger(__name__)

# Tokens are issued by the sign-in flow (magic link); this service only verifies them.
SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "43200"))

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None, secret_key: Optional[str] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret_key or SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str, secret_key: Optional[str] = None) -> dict:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    key = secret_key or SECRET_KEY
    if not key:
        logger.error("SECRET_KEY is not set; rejecting bearer token")
        raise credentials_exception
    try:
        payload = jwt.decode(token, key, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception
    if not payload.get("sub"):
        raise credentials_exception
    return payload


async def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    store: SessionStore = Depends(get_store),
) -> ProfileRecord:
    """
    Verify the bearer token and return the caller's profile, creating it on
    first sight. Every user-scoped route depends on this.
    """
    if creds is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_access_token(creds.credentials)
    return await store.get_or_create_profile(str(payload["sub"]), email=payload.get("email"))


async def require_service_token(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    """Guard for scheduler-invoked routes: ``Authorization: Bearer $CRON_SECRET``."""
    if not CRON_SECRET or creds is None or not hmac.compare_digest(creds.credentials, CRON_SECRET):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
