# src/cbcloud/core/database.py
import json
from typing import TYPE_CHECKING, Any, Optional, cast

from pydantic_core import to_jsonable_python

if TYPE_CHECKING:
    from prisma import Json
    from prisma import Prisma as Database
else:
    # The generated client is only imported when first needed, so the
    # annotation falls back to Any at runtime.
    Database = Any

# Global Prisma instance
_prisma: Optional["Database"] = None


def get_prisma() -> "Database":
    global _prisma
    if _prisma is None:
        from prisma import Prisma

        _prisma = Prisma()
    return _prisma


async def get_db() -> "Database":
    """Database dependency for FastAPI dependency injection."""
    return get_prisma()


def to_json(value: Any) -> "Json":
    """Serialise models (or lists of models) for a ``Json`` column."""
    return cast("Json", json.dumps(to_jsonable_python(value)))


def from_json(value: Any, default: Any = None) -> Any:
    """Read a ``Json`` column, which may come back decoded or as raw text."""
    if value is None:
        return default
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value
