from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from pymongo.database import Database

from config import Settings, get_settings
from database import get_db, oid
from errors import InvalidRequestError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/user/login", auto_error=False)

TOKEN_COOKIE = "token"


class Token(BaseModel):
    access_token: str
    token_type: str


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> Dict[str, Any]:
    credentials_exception = HTTPException(status_code=401, detail="Not authorized, token failed")
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise credentials_exception
    if payload.get("sub") is None:
        raise credentials_exception
    return payload


def get_token_payload(
    request: Request,
    bearer: Optional[str] = Depends(oauth2_scheme),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """Read the JWT from the Authorization header, falling back to the token cookie."""
    token = bearer or request.cookies.get(TOKEN_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    return decode_token(token, settings)


def get_current_user(payload: Dict[str, Any] = Depends(get_token_payload), db: Database = Depends(get_db)):
    if payload.get("role", "user") != "user":
        raise HTTPException(status_code=403, detail="User account required")
    try:
        user_id = oid(payload["sub"])
    except InvalidRequestError:
        raise HTTPException(status_code=401, detail="Not authorized, token failed")
    user = db["user"].find_one({"_id": user_id})
    if not user:
        raise HTTPException(status_code=401, detail="Not authorized, account not found")
    return user


def require_role(required: List[str]):
    def wrapper(payload: Dict[str, Any] = Depends(get_token_payload)):
        if payload.get("role") not in required:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return {"id": payload["sub"], "role": payload.get("role")}
    return wrapper


require_admin = require_role(["admin"])
