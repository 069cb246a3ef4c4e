from datetime import datetime
from typing import Any

from pydantic import BaseModel


class CollectionOut(BaseModel):
    name: str
    count: int
    records: list[dict[str, Any]]


class BackupOut(BaseModel):
    generated_at: datetime
    collections: dict[str, list[dict[str, Any]]]
