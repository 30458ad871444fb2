import logging

from fastapi import APIRouter, Depends, Request

from .. import schemas
from ..auth import login_admin, require_admin, verify_admin
from ..errors import AuthError, ValidationError
from ..store import RegistrantStore, get_store

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = logging.getLogger(__name__)


@router.post("/login", response_model=schemas.MessageResponse)
def login(payload: schemas.AdminLoginRequest, request: Request):
    username = (payload.username or "").strip()
    password = payload.password or ""
    if not username or not password:
        raise ValidationError("Username and password are required")

    if not verify_admin(username, password):
        logger.warning("Failed admin login attempt for username: %s", username)
        raise AuthError("Invalid username or password")

    login_admin(request, username)
    logger.info("Admin login successful for user: %s", username)
    return schemas.MessageResponse(message="Login successful")


@router.post("/logout", response_model=schemas.MessageResponse)
def logout(request: Request):
    request.session.clear()
    return schemas.MessageResponse(message="Logged out successfully")


@router.get("/users", response_model=schemas.AdminUsersResponse)
def list_users(
    store: RegistrantStore = Depends(get_store),
    admin: str = Depends(require_admin),
):
    users = store.list_active()
    logger.info("Admin %s fetched %d registrant records", admin, len(users))
    return schemas.AdminUsersResponse(
        users=[schemas.RegistrantOut.model_validate(user) for user in users],
        total=len(users),
    )


@router.post("/users/delete", response_model=schemas.DeleteUserResponse)
def delete_user(
    payload: schemas.DeleteUserRequest,
    store: RegistrantStore = Depends(get_store),
    admin: str = Depends(require_admin),
):
    """Soft-delete: the row stays, but the email can register again."""
    email = (payload.email or "").strip()
    if not email:
        raise ValidationError("Email is required")

    store.deactivate(email)
    remaining = len(store.list_active())
    logger.info("Admin %s deactivated %s; %d active registrants remain", admin, email, remaining)
    return schemas.DeleteUserResponse(message="User deleted successfully", remaining_users=remaining)


@router.get("/stats", response_model=schemas.AdminStatsResponse)
def stats(
    store: RegistrantStore = Depends(get_store),
    admin: str = Depends(require_admin),
):
    return schemas.AdminStatsResponse(stats=store.stats())
