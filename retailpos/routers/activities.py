from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from retailpos.core.api_docs import error_responses
from retailpos.core.deps import get_db
from retailpos.core.permissions import require_permission
from retailpos.models.user import User
from retailpos.schemas.activity import ActivityListOut, ActivityOut
from retailpos.schemas.common import PaginationMeta
from retailpos.services.activity_service import list_activities

router = APIRouter(prefix="/activities", tags=["activities"])


@router.get(
    "",
    response_model=ActivityListOut,
    summary="List user activity",
    responses=error_responses(400, 401, 403, 422, 500, path="/activities"),
)
def get_activities(
    user_id: str | None = Query(default=None),
    action: str | None = Query(default=None),
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD), inclusive"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("users.manage")),
):
    normalized_user_id = user_id.strip() if user_id and user_id.strip() else None
    normalized_action = action.strip().lower() if action and action.strip() else None
    total, rows = list_activities(
        db,
        user_id=normalized_user_id,
        action=normalized_action,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )

    user_ids = {row.user_id for row in rows}
    usernames = dict(
        db.execute(select(User.id, User.username).where(User.id.in_(user_ids))).all()
    ) if user_ids else {}
    items = [
        ActivityOut(
            id=row.id,
            user_id=row.user_id,
            username=usernames.get(row.user_id),
            action=row.action,
            details=row.details,
            target_type=row.target_type,
            target_id=row.target_id,
            metadata_json=row.metadata_json,
            timestamp=row.timestamp,
        )
        for row in rows
    ]
    count = len(items)
    return ActivityListOut(
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
        start_date=start_date,
        end_date=end_date,
        user_id=normalized_user_id,
        action=normalized_action,
        items=items,
    )
