# cinema_api/routers/users.py
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from cinema_api.core.auth import require_admin
from cinema_api.database import get_session
from cinema_api.models.user import User
from cinema_api.repositories.user_repo import UserRepository
from cinema_api.schemas.user import UserAdminRead, UserRoleUpdate
from cinema_api.services.account_service import AccountService

router = APIRouter(prefix="/users", tags=["Users"])

repo = UserRepository()
service = AccountService(repo)


# -------- Admin endpoints --------
# Self-service profile routes live under /auth/me (routers/auth.py).


@router.get(
    "",
    response_model=list[UserAdminRead],
    dependencies=[Depends(require_admin)],
)
async def list_users(
    session: AsyncSession = Depends(get_session),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
):
    """
    List all users (admin only), soft-deleted ones included.

    Pagination via skip/limit.
    """
    return await service.list_users(session, skip, limit)


@router.get(
    "/{user_id}",
    response_model=UserAdminRead,
    dependencies=[Depends(require_admin)],
)
async def get_user(
    user_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
):
    """
    Get a specific user by id (admin only).

    deleted_at shows whether the account was deleted.
    """
    user = await service.find_user_by_id(session, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.patch("/{user_id}/role", response_model=UserAdminRead)
async def change_role(
    user_id: uuid.UUID,
    payload: UserRoleUpdate,
    session: AsyncSession = Depends(get_session),
    admin: User = Depends(require_admin),
):
    """
    Update a user's role (admin only).

    Allowed roles: user, editor, admin. Admins cannot demote themselves,
    so there is always someone left to manage roles.
    """
    if user_id == admin.id and payload.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Admins cannot change their own role",
        )

    user = await service.update_role(session, user_id, payload.role)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
