from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from retailpos.core.api_docs import error_responses
from retailpos.core.dates import utcnow
from retailpos.core.deps import get_db
from retailpos.core.permissions import require_permission
from retailpos.models.user import User
from retailpos.schemas.store import BackupOut, CollectionOut
from retailpos.services import store_service

router = APIRouter(prefix="/store", tags=["store"])


@router.get(
    "/collections/{name}",
    response_model=CollectionOut,
    summary="Load one collection",
    description="Password hashes are never included.",
    responses=error_responses(401, 403, 404, 500, path="/store/collections/{name}"),
)
def load_collection(
    name: str,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("settings.manage")),
):
    records = store_service.load_collection(db, name.strip().lower())
    return CollectionOut(name=name, count=len(records), records=records)


@router.get(
    "/backup",
    response_model=BackupOut,
    summary="Export every collection",
    responses=error_responses(401, 403, 500, path="/store/backup"),
)
def backup(
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("settings.manage")),
):
    return BackupOut(generated_at=utcnow(), collections=store_service.backup(db))
