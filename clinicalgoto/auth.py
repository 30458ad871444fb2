import hmac
from functools import lru_cache

from fastapi import Request
from passlib.context import CryptContext

from .config import settings
from .errors import AuthError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@lru_cache(maxsize=1)
def _admin_password_hash() -> str:
    return pwd_context.hash(settings.admin_password)


def verify_admin(username: str, password: str) -> bool:
    if not hmac.compare_digest(username.encode(), settings.admin_username.encode()):
        return False
    return pwd_context.verify(password, _admin_password_hash())


def login_admin(request: Request, username: str) -> None:
    request.session["is_admin"] = True
    request.session["username"] = username


def require_admin(request: Request) -> str:
    if not request.session.get("is_admin"):
        raise AuthError("Authentication required")
    return request.session.get("username", "")
