"""Batch (season) ORM model — time-bounded sales period."""

import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, Index, Enum as SqlEnum, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.database import Base, utcnow
from models.enums import BatchStatus, enum_values


class Batch(Base):
    __tablename__ = "batches"
    __table_args__ = (
        # At most one ACTIVE season, enforced by the store itself
        Index(
            "uq_batches_single_active",
            "status",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[BatchStatus] = mapped_column(
        SqlEnum(BatchStatus, name="batch_status", values_callable=enum_values),
        default=BatchStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    # Lifecycle
    start_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    registration_close_date: Mapped[datetime | None] = mapped_column(DateTime)  # NULL = open indefinitely
    end_date: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    # Relationships
    plans = relationship("Plan", back_populates="batch", lazy="selectin", order_by="Plan.created_at")
