from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Literal
from uuid import uuid4

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from retailpos.core.config import settings

ALGORITHM = "HS256"
TokenKind = Literal["access", "refresh"]


class InvalidTokenError(ValueError):
    """Bearer or refresh token that cannot be trusted."""


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    kind: str
    jti: str
    expires_at: datetime


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Unreadable stored hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def _lifetime(kind: TokenKind) -> timedelta:
    if kind == "access":
        return timedelta(minutes=settings.access_token_expire_minutes)
    return timedelta(days=settings.refresh_token_expire_days)


def issue_token(user_id: str, kind: TokenKind) -> tuple[str, TokenClaims]:
    issued_at = datetime.now(timezone.utc).replace(microsecond=0)
    claims = TokenClaims(
        user_id=user_id,
        kind=kind,
        jti=str(uuid4()),
        expires_at=issued_at + _lifetime(kind),
    )
    token = jwt.encode(
        {
            "sub": claims.user_id,
            "type": kind,
            "jti": claims.jti,
            "iat": int(issued_at.timestamp()),
            "exp": int(claims.expires_at.timestamp()),
        },
        settings.secret_key,
        algorithm=ALGORITHM,
    )
    return token, claims


def read_token(token: str, kind: TokenKind) -> TokenClaims:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except ExpiredSignatureError as exc:
        raise InvalidTokenError("Token has expired") from exc
    except JWTError as exc:
        raise InvalidTokenError("Invalid token") from exc

    if payload.get("type") != kind:
        raise InvalidTokenError("Invalid token type")
    missing = [claim for claim in ("sub", "jti", "exp") if not payload.get(claim)]
    if missing:
        raise InvalidTokenError(f"Token is missing {', '.join(missing)}")

    return TokenClaims(
        user_id=str(payload["sub"]),
        kind=kind,
        jti=str(payload["jti"]),
        expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
    )
