from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from retailpos.core.api_docs import error_responses
from retailpos.core.deps import get_db
from retailpos.core.permissions import permission_snapshot, require_permission
from retailpos.models.user import User
from retailpos.schemas.common import DeletedOut, PaginationMeta
from retailpos.schemas.user import UserCreate, UserListOut, UserOut, UserUpdate
from retailpos.services import user_service

router = APIRouter(prefix="/users", tags=["users"])


def user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        email=user.email,
        role=user.role,
        active=user.active,
        permissions=user.permissions or permission_snapshot(user.role),
        last_login=user.last_login,
        created_at=user.created_at,
    )


@router.get(
    "",
    response_model=UserListOut,
    summary="List users",
    responses=error_responses(401, 403, 422, 500, path="/users"),
)
def list_users(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("users.manage")),
):
    total, rows = user_service.list_users(db, limit=limit, offset=offset)
    items = [user_out(row) for row in rows]
    count = len(items)
    return UserListOut(
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
        items=items,
    )


@router.post(
    "",
    response_model=UserOut,
    status_code=201,
    summary="Create user",
    responses=error_responses(400, 401, 403, 409, 422, 500, path="/users"),
)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("users.manage")),
):
    user = user_service.create_user(db, payload, actor_id=actor.id)
    db.commit()
    db.refresh(user)
    return user_out(user)


@router.get(
    "/{user_id}",
    response_model=UserOut,
    summary="Get user",
    responses=error_responses(401, 403, 404, 500, path="/users/{user_id}"),
)
def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("users.manage")),
):
    return user_out(user_service.get_user(db, user_id))


@router.patch(
    "/{user_id}",
    response_model=UserOut,
    summary="Update user",
    description="A new password is re-hashed and revokes the user's sessions.",
    responses=error_responses(400, 401, 403, 404, 409, 422, 500, path="/users/{user_id}"),
)
def update_user(
    user_id: str,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("users.manage")),
):
    user = user_service.update_user(db, user_id, payload, actor_id=actor.id)
    db.commit()
    db.refresh(user)
    return user_out(user)


@router.delete(
    "/{user_id}",
    response_model=DeletedOut,
    summary="Delete user",
    responses=error_responses(400, 401, 403, 404, 500, path="/users/{user_id}"),
)
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("users.manage")),
):
    user_service.delete_user(db, user_id, actor_id=actor.id)
    db.commit()
    return DeletedOut(id=user_id)
