"""Login sessions backed by rotating refresh tokens.

Every refresh token has a row in ``refresh_tokens``. Rotation revokes the
presented row and links it to its replacement, so a refresh token works once.
"""

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from retailpos.core.dates import as_utc, utcnow
from retailpos.core.id_utils import generate_record_id
from retailpos.core.security import InvalidTokenError, issue_token, read_token
from retailpos.models.refresh_token import RefreshToken
from retailpos.models.user import User
from retailpos.schemas.auth import TokenOut


def open_session(db: Session, user_id: str, *, client_ip: str | None = None) -> tuple[TokenOut, RefreshToken]:
    access_token, _ = issue_token(user_id, "access")
    refresh_token, claims = issue_token(user_id, "refresh")
    row = RefreshToken(
        id=generate_record_id(),
        user_id=user_id,
        token_jti=claims.jti,
        expires_at=claims.expires_at,
        created_by_ip=client_ip,
    )
    db.add(row)
    return TokenOut(access_token=access_token, refresh_token=refresh_token), row


def rotate_session(db: Session, refresh_token: str, *, client_ip: str | None = None) -> TokenOut:
    claims = read_token(refresh_token, "refresh")
    row = db.execute(
        select(RefreshToken).where(
            RefreshToken.token_jti == claims.jti,
            RefreshToken.user_id == claims.user_id,
        )
    ).scalar_one_or_none()
    now = utcnow()
    if row is None or row.revoked_at is not None or as_utc(row.expires_at) <= now:
        raise InvalidTokenError("Refresh token is invalid or expired")

    user = db.get(User, claims.user_id)
    if user is None or not user.active:
        raise InvalidTokenError("User is inactive")

    row.revoked_at = now
    tokens, replacement = open_session(db, user.id, client_ip=client_ip)
    row.replaced_by_jti = replacement.token_jti
    return tokens


def close_session(db: Session, refresh_token: str) -> bool:
    """Revoke one refresh token. Unknown or malformed tokens are ignored."""
    try:
        claims = read_token(refresh_token, "refresh")
    except InvalidTokenError:
        return False
    result = db.execute(
        update(RefreshToken)
        .where(RefreshToken.token_jti == claims.jti, RefreshToken.revoked_at.is_(None))
        .values(revoked_at=utcnow())
    )
    return bool(result.rowcount)


def revoke_user_sessions(db: Session, user_id: str) -> None:
    db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
        .values(revoked_at=utcnow())
    )
