"""Status enums shared by the ORM models, schemas and services."""

from enum import Enum


class BatchStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"
    DRAFT = "DRAFT"


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"
    REFUND_PROCESSING = "REFUND_PROCESSING"
    REFUNDED = "REFUNDED"
    EXPIRED = "EXPIRED"
    PENDING_INSTALLMENT = "PENDING_INSTALLMENT"


class PaymentStatus(str, Enum):
    CREATED = "created"
    CAPTURED = "captured"
    FAILED = "failed"
    REFUNDED = "refunded"
    REFUND_PENDING = "refund_pending"


class PaymentMode(str, Enum):
    FULL = "FULL"
    INSTALLMENT = "INSTALLMENT"


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


def enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]
