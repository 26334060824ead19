"""
Security utilities for authentication and authorization.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from kneecare.core.config import Settings, settings as default_settings


def build_password_context(rounds: int = 12) -> CryptContext:
    """Create the bcrypt hashing context."""
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


# Password hashing
pwd_context = build_password_context(default_settings.PASSWORD_BCRYPT_ROUNDS)


def verify_password(plain_password: str, hashed_password: str, context: CryptContext = None) -> bool:
    """Verify a password against its hash."""
    return (context or pwd_context).verify(plain_password, hashed_password)


def get_password_hash(password: str, context: CryptContext = None) -> str:
    """Generate password hash."""
    return (context or pwd_context).hash(password)


def create_access_token(
    subject: int,
    expires_delta: Optional[timedelta] = None,
    config: Optional[Settings] = None,
) -> str:
    """Create a JWT access token carrying only the identity id."""
    config = config or default_settings
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {"sub": str(subject), "exp": expire}
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def verify_token(token: str, config: Optional[Settings] = None) -> Optional[dict]:
    """Verify and decode JWT token."""
    config = config or default_settings
    try:
        return jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        return None
