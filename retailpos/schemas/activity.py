from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from retailpos.schemas.common import PaginationMeta


class ActivityOut(BaseModel):
    id: str
    user_id: str
    username: Optional[str] = None
    action: str
    details: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    metadata_json: dict[str, Any] | None = None
    timestamp: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "activity-id",
                "user_id": "user-id",
                "username": "admin",
                "action": "order.complete",
                "details": "Completed order for Ada Buyer",
                "target_type": "order",
                "target_id": "order-id",
                "metadata_json": {"sale_id": "sale-id"},
                "timestamp": "2026-03-01T10:00:00Z",
            }
        }
    )


class ActivityListOut(BaseModel):
    pagination: PaginationMeta
    start_date: date | None = None
    end_date: date | None = None
    user_id: str | None = None
    action: str | None = None
    items: list[ActivityOut]
