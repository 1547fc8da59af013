"""Helpers for moving data between camelCase API schemas and snake_case columns"""

import re
from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as date_parser
from pydantic import BaseModel

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def schema_to_columns(data: BaseModel, exclude_unset: bool = False) -> dict:
    """Dump a request schema to a column dict (camelCase keys become snake_case)"""
    dumped = data.model_dump(exclude_unset=exclude_unset)
    return {camel_to_snake(key): value for key, value in dumped.items()}


def row_to_dict(row, fields: tuple) -> dict:
    """Serialize selected ORM attributes with camelCase keys"""
    return {snake_to_camel(field): getattr(row, field) for field in fields}


def parse_datetime(value) -> Optional[datetime]:
    """ISO strings or epoch milliseconds to naive UTC; None when unparseable"""
    if value in (None, ""):
        return None
    try:
        if isinstance(value, (int, float)):
            return datetime.utcfromtimestamp(value / 1000)
        parsed = date_parser.isoparse(str(value))
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
