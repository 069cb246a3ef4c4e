from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from retailpos.core.api_docs import error_responses
from retailpos.core.config import settings
from retailpos.core.deps import get_db
from retailpos.core.observability import log_event
from retailpos.core.permissions import permission_snapshot
from retailpos.core.rate_limit import LoginThrottle
from retailpos.core.security import InvalidTokenError
from retailpos.core.security_current import get_current_user
from retailpos.models.user import User
from retailpos.schemas.auth import ChangePasswordIn, LoginIn, MeOut, RefreshIn, TokenOut
from retailpos.schemas.common import MessageOut
from retailpos.services import session_service, user_service
from retailpos.services.user_service import AuthenticationError

router = APIRouter(prefix="/auth", tags=["auth"])
TOKEN_PAIR_RESPONSE = {
    200: {
        "description": "Access and refresh tokens",
        "content": {
            "application/json": {
                "example": {
                    "access_token": "access-token",
                    "refresh_token": "refresh-token",
                    "token_type": "bearer",
                }
            }
        },
    }
}

login_throttle = LoginThrottle(
    max_attempts=settings.auth_rate_limit_max_attempts,
    window_seconds=settings.auth_rate_limit_window_seconds,
    lock_seconds=settings.auth_rate_limit_lock_seconds,
)


def _client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop
    return request.client.host if request.client else "unknown"


def _sign_in(db: Session, request: Request, username: str, password: str) -> TokenOut:
    client_ip = _client_ip(request)
    throttle_key = f"{username.strip().lower()}:{client_ip}"
    retry_after = login_throttle.retry_after(throttle_key)
    if retry_after:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many failed attempts. Try again later.",
            headers={"Retry-After": str(retry_after)},
        )

    try:
        user = user_service.authenticate(db, username, password)
    except AuthenticationError as exc:
        locked = login_throttle.record_failure(throttle_key)
        log_event("login_failed", username=username, reason=exc.reason, client_ip=client_ip, locked=locked)
        raise HTTPException(status_code=401, detail="Invalid credentials") from exc

    login_throttle.reset(throttle_key)
    tokens, _ = session_service.open_session(db, user.id, client_ip=client_ip)
    db.commit()
    return tokens


def me_out(user: User) -> MeOut:
    return MeOut(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        email=user.email,
        role=user.role,
        active=user.active,
        permissions=permission_snapshot(user.role),
        last_login=user.last_login,
    )


@router.post(
    "/login",
    response_model=TokenOut,
    summary="Login with username and password",
    responses={**TOKEN_PAIR_RESPONSE, **error_responses(401, 422, 429, 500, path="/auth/login")},
)
def login(payload: LoginIn, request: Request, db: Session = Depends(get_db)):
    return _sign_in(db, request, payload.username, payload.password)


@router.post(
    "/token",
    response_model=TokenOut,
    summary="OAuth2 password token (Swagger Authorize)",
    description="Form-data login used by the Authorize button in /docs.",
    responses={**TOKEN_PAIR_RESPONSE, **error_responses(401, 422, 429, 500, path="/auth/token")},
)
def login_for_swagger(
    request: Request,
    db: Session = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
):
    return _sign_in(db, request, form_data.username, form_data.password)


@router.post(
    "/refresh",
    response_model=TokenOut,
    summary="Rotate a refresh token",
    description="Issues a fresh token pair. The presented refresh token stops working.",
    responses={**TOKEN_PAIR_RESPONSE, **error_responses(401, 422, 500, path="/auth/refresh")},
)
def refresh_tokens(payload: RefreshIn, request: Request, db: Session = Depends(get_db)):
    try:
        tokens = session_service.rotate_session(db, payload.refresh_token, client_ip=_client_ip(request))
    except InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    db.commit()
    return tokens


@router.post(
    "/logout",
    response_model=MessageOut,
    summary="End the session of a refresh token",
    responses=error_responses(422, 500, path="/auth/logout"),
)
def logout(payload: RefreshIn, db: Session = Depends(get_db)):
    if session_service.close_session(db, payload.refresh_token):
        db.commit()
    return MessageOut(message="Logged out")


@router.get(
    "/me",
    response_model=MeOut,
    summary="Current user and permissions",
    responses=error_responses(401, 500, path="/auth/me"),
)
def get_me(user: User = Depends(get_current_user)):
    return me_out(user)


@router.post(
    "/change-password",
    response_model=MessageOut,
    summary="Change own password",
    description="Ends every session of the user.",
    responses=error_responses(400, 401, 422, 500, path="/auth/change-password"),
)
def change_password(
    payload: ChangePasswordIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        user_service.change_password(db, user, payload.current_password, payload.new_password)
    except AuthenticationError as exc:
        raise HTTPException(status_code=401, detail="Current password is incorrect") from exc
    db.commit()
    return MessageOut(message="Password updated")
