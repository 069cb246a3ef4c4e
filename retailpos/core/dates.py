from datetime import date, datetime, timezone

from sqlalchemy import func

from retailpos.core.errors import ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_date_range(start_date: date | None, end_date: date | None) -> None:
    if start_date and end_date and end_date < start_date:
        raise ValidationError("end_date cannot be before start_date")


def apply_date_range(stmt, column, start_date: date | None, end_date: date | None):
    """Filter ``stmt`` to rows whose ``column`` falls within the inclusive day range."""
    if start_date:
        stmt = stmt.where(func.date(column) >= start_date)
    if end_date:
        stmt = stmt.where(func.date(column) <= end_date)
    return stmt
