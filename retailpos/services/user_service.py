import secrets
from functools import lru_cache

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from retailpos.core.config import settings
from retailpos.core.dates import utcnow
from retailpos.core.errors import ConflictError, NotFoundError, ValidationError
from retailpos.core.observability import log_event
from retailpos.core.permissions import ALLOWED_ROLES, permission_snapshot
from retailpos.core.security import hash_password, verify_password
from retailpos.models.user import User
from retailpos.schemas.user import UserCreate, UserUpdate
from retailpos.services import catalog_service, session_service
from retailpos.services.activity_service import log_activity


class AuthenticationError(Exception):
    """Login rejected. ``reason`` is for the server log only."""

    def __init__(self, reason: str):
        super().__init__("Invalid credentials")
        self.reason = reason


def _username_taken(db: Session, username: str, *, exclude_user_id: str | None = None) -> bool:
    stmt = select(User.id).where(func.lower(User.username) == username.strip().lower())
    if exclude_user_id:
        stmt = stmt.where(User.id != exclude_user_id)
    return db.execute(stmt).first() is not None


def _validate_role(role: str) -> str:
    normalized = role.strip().lower()
    if normalized not in ALLOWED_ROLES:
        raise ValidationError(f"Invalid role. Allowed: {', '.join(sorted(ALLOWED_ROLES))}")
    return normalized


def get_user(db: Session, user_id: str) -> User:
    user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    return user


def get_user_by_username(db: Session, username: str) -> User | None:
    return db.execute(
        select(User).where(func.lower(User.username) == username.strip().lower())
    ).scalar_one_or_none()


def list_users(db: Session, *, limit: int = 50, offset: int = 0) -> tuple[int, list[User]]:
    total = int(db.execute(select(func.count(User.id))).scalar_one())
    rows = db.execute(
        select(User).order_by(func.lower(User.username).asc()).offset(offset).limit(limit)
    ).scalars().all()
    return total, list(rows)


def create_user(db: Session, payload: UserCreate, *, actor_id: str | None = None) -> User:
    if _username_taken(db, payload.username):
        raise ConflictError("Username already exists")
    role = _validate_role(payload.role)
    user = User(
        username=payload.username,
        hashed_password=hash_password(payload.password),
        full_name=payload.full_name,
        email=str(payload.email) if payload.email else None,
        role=role,
        active=payload.active,
        permissions=permission_snapshot(role),
    )
    db.add(user)
    db.flush()
    log_activity(
        db,
        user_id=actor_id,
        action="user.create",
        details=f"Created user {user.username}",
        target_type="user",
        target_id=user.id,
        metadata_json={"role": role},
    )
    return user


def update_user(db: Session, user_id: str, payload: UserUpdate, *, actor_id: str | None = None) -> User:
    user = get_user(db, user_id)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("username"):
        if _username_taken(db, changes["username"], exclude_user_id=user.id):
            raise ConflictError("Username already exists")
        user.username = changes["username"]
    if changes.get("full_name"):
        user.full_name = changes["full_name"]
    if "email" in changes:
        user.email = str(changes["email"]) if changes["email"] else None
    if changes.get("role"):
        role = _validate_role(changes["role"])
        if user.id == actor_id and role != user.role:
            raise ValidationError("You cannot change your own role")
        user.role = role
        user.permissions = permission_snapshot(role)
    if changes.get("active") is not None:
        if user.id == actor_id and not changes["active"]:
            raise ValidationError("You cannot deactivate your own account")
        user.active = changes["active"]
        if not user.active:
            session_service.revoke_user_sessions(db, user.id)
    if payload.password:
        user.hashed_password = hash_password(payload.password)
        session_service.revoke_user_sessions(db, user.id)

    changed_fields = sorted(field for field in changes if field != "password")
    if payload.password:
        changed_fields.append("password")
    log_activity(
        db,
        user_id=actor_id,
        action="user.update",
        details=f"Updated user {user.username}",
        target_type="user",
        target_id=user.id,
        metadata_json={"fields": changed_fields},
    )
    return user


def delete_user(db: Session, user_id: str, *, actor_id: str | None = None) -> None:
    user = get_user(db, user_id)
    if user.id == actor_id:
        raise ValidationError("You cannot delete your own account")
    log_activity(
        db,
        user_id=actor_id,
        action="user.delete",
        details=f"Deleted user {user.username}",
        target_type="user",
        target_id=user.id,
    )
    session_service.revoke_user_sessions(db, user.id)
    db.delete(user)


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    return hash_password(secrets.token_urlsafe(16))


def authenticate(db: Session, username: str, password: str) -> User:
    user = get_user_by_username(db, username)
    if not user:
        # Unknown usernames pay the same bcrypt cost as real ones.
        verify_password(password, _dummy_password_hash())
        raise AuthenticationError("unknown_user")
    if not verify_password(password, user.hashed_password):
        raise AuthenticationError("bad_password")
    if not user.active:
        raise AuthenticationError("inactive")

    user.last_login = utcnow()
    log_activity(
        db,
        user_id=user.id,
        action="auth.login",
        details=f"{user.username} logged in",
        target_type="user",
        target_id=user.id,
    )
    return user


def change_password(db: Session, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.hashed_password):
        raise AuthenticationError("bad_password")
    if current_password == new_password:
        raise ValidationError("New password must be different")
    user.hashed_password = hash_password(new_password)
    session_service.revoke_user_sessions(db, user.id)
    log_activity(
        db,
        user_id=user.id,
        action="auth.password.change",
        details=f"{user.username} changed their password",
        target_type="user",
        target_id=user.id,
    )


def ensure_bootstrap_admin(db: Session) -> User | None:
    """Create the first administrator and default categories on an empty store."""
    has_users = db.execute(select(User.id).limit(1)).first() is not None
    if has_users:
        return None

    admin = User(
        username=settings.bootstrap_admin_username,
        hashed_password=hash_password(settings.bootstrap_admin_password),
        full_name=settings.bootstrap_admin_full_name,
        email=settings.bootstrap_admin_email,
        role="admin",
        active=True,
        permissions=permission_snapshot("admin"),
    )
    db.add(admin)
    db.flush()
    created_categories = catalog_service.ensure_default_categories(db, settings.default_categories)
    log_activity(
        db,
        user_id=admin.id,
        action="system.bootstrap",
        details="Created default administrator",
        target_type="user",
        target_id=admin.id,
        metadata_json={"categories_created": created_categories},
    )
    log_event("bootstrap_admin_created", username=admin.username, categories_created=created_categories)
    return admin
