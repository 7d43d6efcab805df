# campusops/auth.py
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt, JWTError, ExpiredSignatureError
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import ValidationError
from . import config, schemas

# Tokens are issued by the external identity provider
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=config.settings.TOKEN_URL)


# --- JWT utilities ---
def create_access_token(
    user_id: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Generate a JWT the way the identity provider does (development and tests)"""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=config.settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {
        "sub": str(user_id),
        "role": str(role),
        "iat": datetime.now(timezone.utc),
        "exp": expire,
    }
    return jwt.encode(
        to_encode,
        config.settings.SECRET_KEY,
        algorithm=config.settings.ALGORITHM,
    )


def decode_token(token: str):
    """Decode and validate a JWT token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        return jwt.decode(
            token,
            config.settings.SECRET_KEY,
            algorithms=[config.settings.ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError:
        raise credentials_exception


# --- Get current user from token ---
def get_current_user(token: str = Depends(oauth2_scheme)) -> schemas.CurrentUser:
    """Resolve the caller's id and role from their bearer token"""
    payload = schemas.TokenPayload.model_validate(decode_token(token))
    if not payload.sub or not payload.role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return schemas.CurrentUser(id=payload.sub, role=payload.role)
    except ValidationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role: {payload.role}",
            headers={"WWW-Authenticate": "Bearer"},
        )
