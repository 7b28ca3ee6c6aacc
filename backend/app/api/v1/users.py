"""User endpoints: own profile and admin account management.

/users/me is open to any authenticated user. Everything else requires the
admin role (403 ADMIN_REQUIRED otherwise).
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response

from app.api.deps import AdminUser, CurrentUser, DbSession, UserAdminServiceDep
from app.core.pagination import PaginationParams, pagination_params
from app.core.responses import DataResponse, ListResponse, PaginationMeta
from app.models.user import UserRole
from app.schemas.user import (
    AdminUserUpdateRequest,
    ProfileUpdateRequest,
    UserResponse,
)

router = APIRouter()


# ===================================================================
# Own profile
# ===================================================================


@router.get("/me")
async def get_me(user: CurrentUser) -> DataResponse[UserResponse]:
    """Return the current user's profile."""
    return DataResponse(data=UserResponse.from_user(user))


@router.patch("/me")
async def update_me(
    body: ProfileUpdateRequest,
    user: CurrentUser,
    service: UserAdminServiceDep,
    db: DbSession,
) -> DataResponse[UserResponse]:
    """Update the current user's first/last name."""
    fields = {k: v.strip() for k, v in body.model_dump(exclude_none=True).items()}
    updated = await service.update_user(actor_id=user.id, user_id=user.id, **fields)
    await db.commit()
    return DataResponse(data=UserResponse.from_user(updated))


# ===================================================================
# Admin
# ===================================================================


@router.get("")
async def list_users(
    _admin: AdminUser,
    service: UserAdminServiceDep,
    pagination: Annotated[PaginationParams, Depends(pagination_params)],
    role: Annotated[UserRole | None, Query()] = None,
    is_active: Annotated[bool | None, Query()] = None,
) -> ListResponse[UserResponse]:
    """List users in creation order, with optional role/active filters."""
    users, total = await service.list_users(
        offset=pagination.offset,
        limit=pagination.limit,
        role=role,
        is_active=is_active,
    )
    return ListResponse(
        data=[UserResponse.from_user(u) for u in users],
        meta=PaginationMeta(
            total=total,
            page=pagination.page,
            per_page=pagination.per_page,
        ),
    )


@router.get("/{user_id}")
async def get_user(
    user_id: uuid.UUID,
    _admin: AdminUser,
    service: UserAdminServiceDep,
) -> DataResponse[UserResponse]:
    user = await service.get_user(user_id)
    return DataResponse(data=UserResponse.from_user(user))


@router.patch("/{user_id}")
async def update_user(
    user_id: uuid.UUID,
    body: AdminUserUpdateRequest,
    admin: AdminUser,
    service: UserAdminServiceDep,
    db: DbSession,
) -> DataResponse[UserResponse]:
    """Edit email, names, role or active flag of any user.

    Deactivating a user also revokes their refresh token. Admins cannot
    demote or deactivate themselves (422).
    """
    fields = body.model_dump(exclude_none=True)
    if "role" in fields:
        fields["role"] = fields["role"].value
    updated = await service.update_user(actor_id=admin.id, user_id=user_id, **fields)
    await db.commit()
    return DataResponse(data=UserResponse.from_user(updated))


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: uuid.UUID,
    admin: AdminUser,
    service: UserAdminServiceDep,
    db: DbSession,
) -> Response:
    """Hard-delete a user. Admins cannot delete themselves (422)."""
    await service.delete_user(actor_id=admin.id, user_id=user_id)
    await db.commit()
    return Response(status_code=204)
