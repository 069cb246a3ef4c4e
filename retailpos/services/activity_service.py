from datetime import date
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from retailpos.core.dates import apply_date_range, utcnow, validate_date_range
from retailpos.core.id_utils import generate_record_id
from retailpos.models.activity import UserActivity

SYSTEM_ACTOR = "system"


def log_activity(
    db: Session,
    *,
    user_id: str | None,
    action: str,
    details: str = "",
    target_type: str | None = None,
    target_id: str | None = None,
    metadata_json: dict[str, Any] | None = None,
) -> UserActivity:
    event = UserActivity(
        id=generate_record_id(),
        user_id=user_id or SYSTEM_ACTOR,
        action=action,
        details=details[:500],
        target_type=target_type,
        target_id=target_id,
        metadata_json=metadata_json,
        timestamp=utcnow(),
    )
    db.add(event)
    return event


def list_activities(
    db: Session,
    *,
    user_id: str | None = None,
    action: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[UserActivity]]:
    validate_date_range(start_date, end_date)

    count_stmt = select(func.count(UserActivity.id))
    data_stmt = select(UserActivity)
    if user_id:
        count_stmt = count_stmt.where(UserActivity.user_id == user_id)
        data_stmt = data_stmt.where(UserActivity.user_id == user_id)
    if action:
        count_stmt = count_stmt.where(UserActivity.action == action)
        data_stmt = data_stmt.where(UserActivity.action == action)
    count_stmt = apply_date_range(count_stmt, UserActivity.timestamp, start_date, end_date)
    data_stmt = apply_date_range(data_stmt, UserActivity.timestamp, start_date, end_date)

    total = int(db.execute(count_stmt).scalar_one())
    rows = db.execute(
        data_stmt.order_by(UserActivity.timestamp.desc(), UserActivity.id.desc()).offset(offset).limit(limit)
    ).scalars().all()
    return total, list(rows)


def activities_by_user(db: Session, user_id: str) -> list[UserActivity]:
    rows = db.execute(
        select(UserActivity)
        .where(UserActivity.user_id == user_id)
        .order_by(UserActivity.timestamp.desc())
    ).scalars().all()
    return list(rows)


def activities_by_date_range(db: Session, start_date: date, end_date: date) -> list[UserActivity]:
    validate_date_range(start_date, end_date)
    stmt = apply_date_range(select(UserActivity), UserActivity.timestamp, start_date, end_date)
    rows = db.execute(stmt.order_by(UserActivity.timestamp.desc())).scalars().all()
    return list(rows)
