import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt
from passlib.context import CryptContext

import config

# Every persisted token carries this access level
AUTH_ACCESS = "auth"

# Password hashing using bcrypt
pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS
)


# Helper function to hash a password
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


# Helper function to verify a plain-text password against a hashed password
def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def generate_auth_token(user_id, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a new session token for ``user_id``.

    The random ``jti`` keeps two logins of the same user from producing the
    same token, so logging one session out leaves the others intact.
    """
    now = datetime.now(timezone.utc)
    to_encode = {
        "_id": str(user_id),
        "access": AUTH_ACCESS,
        "jti": secrets.token_hex(16),
        "iat": now,
    }
    if expires_delta is None and config.ACCESS_TOKEN_EXPIRE_MINUTES > 0:
        expires_delta = timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    if expires_delta is not None:
        to_encode["exp"] = now + expires_delta
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


# Raises JWTError for a bad signature, an expired token or a malformed payload
def decode_auth_token(token: str) -> dict:
    return jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
