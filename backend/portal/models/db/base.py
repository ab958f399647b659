"""Declarative base and the column mixins shared by every portal table."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from portal.database import Base

__all__ = ["Base", "TimestampMixin", "UUIDPrimaryKeyMixin"]


class UUIDPrimaryKeyMixin:
    """UUID primary key generated client-side, with a server default as backup.

    Generating the key in Python lets child rows reference a parent within
    the same flush.
    """

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )


class TimestampMixin:
    """Server-stamped ``created_at`` and ``updated_at``.

    Services that change a report set ``updated_at`` explicitly so the value
    is visible before the flush; ``onupdate`` covers every other write.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
