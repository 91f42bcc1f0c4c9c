import os
from dataclasses import dataclass

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from src.domain.exceptions import AuthenticationError, ForbiddenError
from src.infrastructure.db.session import SessionLocal

ADMIN_ROLES = {"admin", "super_admin"}

bearer_scheme = HTTPBearer(auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@dataclass(frozen=True)
class CallerIdentity:
    user_id: str
    role: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def decode_access_token(token: str) -> dict:
    """Verify a bearer token issued by the auth service."""
    secret = os.getenv("JWT_SECRET", "supersecretkey")
    algorithm = os.getenv("JWT_ALGORITHM", "HS256")
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError as exc:
        raise AuthenticationError("Unauthorized - Invalid Token") from exc


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CallerIdentity:
    if credentials is None:
        raise AuthenticationError("Unauthorized - No Token Provided")

    payload = decode_access_token(credentials.credentials)
    user_id = payload.get("userId") or payload.get("sub")
    if not user_id:
        raise AuthenticationError("Unauthorized - Invalid Token")
    return CallerIdentity(user_id=str(user_id), role=payload.get("role"))


def require_admin(user: CallerIdentity = Depends(get_current_user)) -> CallerIdentity:
    if not user.is_admin:
        raise ForbiddenError("Access denied. Admin privileges required.")
    return user
