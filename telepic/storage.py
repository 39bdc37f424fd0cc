"""Key-value view over Tortoise models.

The game code only ever needs "fetch the row for this primary key", "upsert
it" and "delete it". ``ModelTable`` gives it exactly that, returning plain
dicts so callers never hold live ORM instances.
"""
from __future__ import annotations

import time
from typing import Any, Dict, Optional, Protocol, Type

from tortoise.exceptions import IntegrityError
from tortoise.models import Model

Record = Dict[str, Any]


def now_ms() -> int:
    """Timestamps are stored as epoch milliseconds."""
    return int(time.time() * 1000)


class Table(Protocol):
    async def get(self, key: str) -> Optional[Record]: ...

    async def set(self, key: str, record: Record) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def try_insert(self, key: str, record: Record) -> bool: ...


class ModelTable:
    def __init__(self, model: Type[Model]):
        self.model = model
        self.pk_name: str = model._meta.pk_attr

    async def get(self, key: str) -> Optional[Record]:
        rows = await self.model.filter(**{self.pk_name: key}).limit(1).values()
        return rows[0] if rows else None

    async def set(self, key: str, record: Record) -> None:
        await self.model.update_or_create(defaults=record, **{self.pk_name: key})

    async def delete(self, key: str) -> None:
        await self.model.filter(**{self.pk_name: key}).delete()

    async def try_insert(self, key: str, record: Record) -> bool:
        """Insert a new row; ``False`` if the primary key is already taken."""
        try:
            await self.model.create(**{self.pk_name: key}, **record)
        except IntegrityError:
            return False
        return True


__all__ = ["Record", "Table", "ModelTable", "now_ms"]
