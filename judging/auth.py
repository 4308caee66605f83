# judging/auth.py

import os
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError
from dotenv import load_dotenv
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from judging import models
from judging.database import SessionLocal

# ------------------------------------------------------------------
# ENV & CONFIG
# ------------------------------------------------------------------

load_dotenv()

SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(
    os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 1440)
)

# Optional event-day convenience: every judge account also accepts this password.
JUDGE_SHARED_PASSWORD = os.getenv("JUDGE_SHARED_PASSWORD") or None

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# tokenUrl must match the login endpoint
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/login")

# ------------------------------------------------------------------
# PASSWORD UTILS
# ------------------------------------------------------------------

BCRYPT_MAX_BYTES = 72


def _bcrypt_secret(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes of the UTF-8 encoding.
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(_bcrypt_secret(plain_password), hashed_password)
    except ValueError:
        # Not a recognizable hash (e.g. a row inserted by hand).
        return False


def get_password_hash(password: str) -> str:
    """
    bcrypt has a 72-byte limit; longer passwords are truncated.
    """
    return pwd_context.hash(_bcrypt_secret(password))


def password_matches(user: models.User, password: str) -> bool:
    if verify_password(password, user.password):
        return True
    if JUDGE_SHARED_PASSWORD and user.role == models.UserRole.judge:
        return password == JUDGE_SHARED_PASSWORD
    return False

# ------------------------------------------------------------------
# JWT UTILS
# ------------------------------------------------------------------

def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    data should include at least:
    {
        "sub": user.username,
        "role": user.role (optional but recommended)
    }
    """
    to_encode = data.copy()

    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

# ------------------------------------------------------------------
# DATABASE DEPENDENCY
# ------------------------------------------------------------------

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# ------------------------------------------------------------------
# AUTH DEPENDENCIES
# ------------------------------------------------------------------

def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> models.User:
    """
    Decode JWT and return current user.
    Used across both judge and admin routes.
    """

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        username: Optional[str] = payload.get("sub")

        if username is None:
            raise credentials_exception

    except JWTError:
        raise credentials_exception

    user = (
        db.query(models.User)
        .filter(models.User.username == username)
        .first()
    )

    if not user:
        raise credentials_exception

    return user

# ------------------------------------------------------------------
# ROLE HELPERS
# ------------------------------------------------------------------

def require_admin(
    current_user: models.User = Depends(get_current_user),
) -> models.User:
    if current_user.role != models.UserRole.admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


def is_admin(user: models.User) -> bool:
    return user is not None and user.role == models.UserRole.admin
