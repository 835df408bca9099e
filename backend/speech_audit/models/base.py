"""
Shared base for all persisted audit records.

Every model validates itself on save: `prepare()` fills defaults that depend
on other fields or on the database, then `validate_record()` returns a list
of problems. Any problem aborts the write with a Tortoise ValidationError,
so invalid records never reach the database.
"""
import datetime as dt
from typing import List, Optional

from tortoise import fields, models
from tortoise.exceptions import ValidationError


def utc_now() -> dt.datetime:
    """Current UTC datetime with timezone information."""
    return dt.datetime.now(dt.timezone.utc)


def as_utc(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    """Normalize datetimes read back from backends that drop tzinfo."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


class AuditRecord(models.Model):
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        abstract = True

    async def prepare(self) -> None:
        """Fill defaults before validation. Subclasses override."""

    async def validate_record(self) -> List[str]:
        """Return human readable validation errors (empty when valid)."""
        return []

    async def save(self, *args, **kwargs) -> None:
        await self.prepare()
        errors = await self.validate_record()
        if errors:
            raise ValidationError(f"{self.__class__.__name__}: " + "; ".join(errors))
        await super().save(*args, **kwargs)
