from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

import config

# Tokens come from the external identity provider; this service never issues them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


def decode_token_email(token: str) -> str:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, config.AUTH_SECRET_KEY, algorithms=[config.AUTH_ALGORITHM])
    except JWTError:
        raise credentials_exception

    email: Optional[str] = payload.get("email") or payload.get("sub")
    if email is None:
        raise credentials_exception
    return email


def get_authenticated_email(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[str]:
    """Email of the caller, or None when authentication is disabled."""
    if not config.AUTH_REQUIRED:
        return None
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decode_token_email(token)


def ensure_same_email(authenticated_email: Optional[str], email: str):
    if authenticated_email is not None and authenticated_email.lower() != email.lower():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")
