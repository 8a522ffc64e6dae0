from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from evote.config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY
from evote.infrastructure.models import AdminRole

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Stored secret is not a recognised hash.
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def get_current_admin(request: Request, token: Optional[str] = Depends(oauth2_scheme)) -> dict:
    final_token = token or request.cookies.get("access_token")
    if not final_token:
        raise HTTPException(status_code=401, detail="Authentication required")
    if final_token.lower().startswith("bearer "):
        final_token = final_token.split(" ", 1)[1]
    try:
        payload = jwt.decode(final_token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    admin_id = payload.get("sub")
    role = payload.get("role")
    if admin_id is None or role not in {r.value for r in AdminRole}:
        raise HTTPException(status_code=401, detail="Invalid token")
    return {"id": admin_id, "role": role}


def require_full_admin(current_admin: dict = Depends(get_current_admin)) -> dict:
    if current_admin["role"] != AdminRole.ADMIN.value:
        raise HTTPException(status_code=403, detail="Admin role required")
    return current_admin
