"""
Module: stock_kernel.db.types
Responsibility: Annotated column type aliases and small value helpers shared by
    models, services and selectors.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Failure modes:
    - None; helpers are total over their documented inputs.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Annotated

from sqlalchemy import Integer, Numeric, String, Text

# On-hand and moved quantities are whole units (boxes or pieces).
Quantity = Annotated[int, Integer]

# Purchase price of a durable asset.
Price = Annotated[Decimal, Numeric(14, 2)]

# Short labels (names, types, vendors, locations)
ShortText = Annotated[str, String(255)]

# Enumerated codes stored as plain strings
Code = Annotated[str, String(20)]

# Free-form notes
Notes = Annotated[str, Text]


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Return ``value`` as a timezone-aware UTC datetime.

    SQLite hands back naive datetimes for ``DateTime(timezone=True)``
    columns; those are taken to already be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
