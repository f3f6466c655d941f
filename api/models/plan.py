"""Plan ORM model — purchasable membership tier inside a season."""

import uuid
from datetime import datetime
from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey, Text, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.database import Base, utcnow
from models.enums import BatchStatus


class Plan(Base):
    __tablename__ = "plans"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    batch_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("batches.id", ondelete="RESTRICT"), nullable=False, index=True,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    price: Mapped[int] = mapped_column(Integer, nullable=False)  # paise
    features: Mapped[list] = mapped_column(JSON().with_variant(JSONB, "postgresql"), default=list)
    validity_days: Mapped[int | None] = mapped_column(Integer, default=365)

    # Installments
    allow_installments: Mapped[bool] = mapped_column(Boolean, default=False)
    total_installments: Mapped[int] = mapped_column(Integer, default=1)
    full_payment_discount: Mapped[int] = mapped_column(Integer, default=0)  # percent

    # Visibility toggle, independent of season status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    # Relationships
    batch = relationship("Batch", back_populates="plans", lazy="selectin")

    @property
    def is_visible(self) -> bool:
        return bool(self.is_active) and self.batch is not None and self.batch.status == BatchStatus.ACTIVE
