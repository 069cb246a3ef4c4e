from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from retailpos.core.deps import get_db
from retailpos.core.security import InvalidTokenError, read_token
from retailpos.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """Resolve the bearer token to an active user. Deactivation takes effect immediately."""
    try:
        claims = read_token(token, "access")
    except InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    user = db.get(User, claims.user_id)
    if user is None or not user.active:
        raise HTTPException(status_code=401, detail="User is not allowed to sign in")
    return user
