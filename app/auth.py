import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from jose import jwt as jose_jwt

from .config import JWT_ALGORITHM, SECRET_KEY

logger = logging.getLogger(__name__)

security = HTTPBearer()

ROLES = {"customer", "cleaner", "admin"}


@dataclass(frozen=True)
class Principal:
    """The authenticated caller: a customer, a cleaner or an admin"""

    user_id: str
    role: str = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_cleaner(self) -> bool:
        return self.role == "cleaner"


def create_access_token(
    user_id: str, role: str = "customer", expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token

    Args:
        user_id: Subject of the token
        role: customer, cleaner or admin
        expires_delta: Token expiration time (default 60 minutes)
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=60))
    to_encode: dict[str, Any] = {"sub": user_id, "role": role, "exp": expire}
    return jose_jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Principal:
    try:
        payload = jose_jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token") from None

    user_id = payload.get("sub")
    role = payload.get("role", "customer")
    if not user_id or role not in ROLES:
        logger.warning("🚫 Token missing subject or carrying an unknown role")
        raise HTTPException(status_code=401, detail="Invalid token claims")
    return Principal(user_id=user_id, role=role)


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    """Resolve the caller from the bearer token"""
    return decode_access_token(credentials.credentials)
