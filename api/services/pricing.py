"""
Pricing Engine — what a user pays for their next order on a plan.

Purchase state (resolved from the ledger before any amount is computed):
  NoPriorAttempt            → first purchase; FULL or INSTALLMENT as requested
  ResumeAtInstallment(n)    → continue at installment n
                              (forced=True when an ACTIVE subscription owes it)
  AlreadyComplete           → nothing left to pay

Amounts are integer paise:
  installment = floor(price / total_installments)     (remainder is not billed)
  full        = price - floor(price * discount / 100)
"""

from dataclasses import dataclass

from models.enums import PaymentMode
from models.plan import Plan
from models.subscription import Subscription


# ── Purchase states ────────────────────────────────────────

@dataclass(frozen=True)
class NoPriorAttempt:
    pass


@dataclass(frozen=True)
class ResumeAtInstallment:
    index: int
    forced: bool = False  # the next installment of an ACTIVE subscription


@dataclass(frozen=True)
class AlreadyComplete:
    pass


PurchaseState = NoPriorAttempt | ResumeAtInstallment | AlreadyComplete


@dataclass
class OrderQuote:
    amount: int
    installment_index: int
    is_installment: bool
    description: str


# ── Core Functions ─────────────────────────────────────────

def next_installment_state(subscription: Subscription, plan: Plan) -> PurchaseState:
    """State for a user paying again on the plan of their ACTIVE subscription."""
    paid = subscription.installments_paid or 0
    if paid < (plan.total_installments or 1):
        return ResumeAtInstallment(index=paid + 1, forced=True)
    return AlreadyComplete()


def resume_state(existing: Subscription | None) -> PurchaseState:
    """State derived from any earlier subscription row for (user, plan), whatever its status."""
    if existing is None:
        return NoPriorAttempt()
    if existing.amount_paid and existing.amount_paid >= existing.total_amount:
        return AlreadyComplete()
    return ResumeAtInstallment(index=(existing.installments_paid or 0) + 1)


def installment_amount(plan: Plan) -> int:
    return plan.price // (plan.total_installments or 1)


def full_payment_amount(plan: Plan) -> int:
    discount_pct = plan.full_payment_discount or 0
    if discount_pct <= 0:
        return plan.price
    return plan.price - (plan.price * discount_pct) // 100


def quote_order(plan: Plan, payment_mode: PaymentMode, state: PurchaseState) -> OrderQuote:
    """
    Single amount calculation for every purchase path.

    Raises:
        ValueError: if `state` is AlreadyComplete (callers reject before quoting)
    """
    if isinstance(state, AlreadyComplete):
        raise ValueError("Plan is already fully paid")

    index = state.index if isinstance(state, ResumeAtInstallment) else 1
    forced = isinstance(state, ResumeAtInstallment) and state.forced
    total = plan.total_installments or 1

    if forced or (payment_mode == PaymentMode.INSTALLMENT and plan.allow_installments and total > 1):
        return OrderQuote(
            amount=installment_amount(plan),
            installment_index=index,
            is_installment=True,
            description=f"Installment {index} of {total}",
        )

    return OrderQuote(
        amount=full_payment_amount(plan),
        installment_index=index,
        is_installment=False,
        description=f"Full Payment (Inc. {plan.full_payment_discount or 0}% Discount)",
    )
