# Overview: Payment ledger for bills; append-only payments with derived, compare-and-set state.

"""
Payment Ledger

WHY: A bill can be settled over several payments (advance on a pre-booking,
split tender at the counter) while the printed invoice stays untouched.

DESIGN PRINCIPLES:
- Payments are append-only BillPayment rows numbered 1..n per bill
- Derived fields (paid, due, status, locked, paid_at) live on BillPaymentState
  and are rewritten in the same flush that appends the payment
- BillPaymentState.version_id is the compare-and-set guard: a writer that read
  a stale state loses with StaleDataError and is retried against fresh state
- Overpayment is rejected, never stored; PAID locks the bill for good
  (no refunds, no further payments)
"""

from __future__ import annotations

from datetime import datetime

from ..errors import LockedBillError, NotFoundError, OverpaymentError, ValidationError
from ..extensions import db
from ..models import BillPayment, BillPaymentState
from ..models.billing import PAYMENT_MODES
from ..money import add, format_inr, sub
from ..time_utils import to_utc_z, utcnow
from .concurrency import lock_for_update, run_with_retry


# =============================================================================
# MODES AND STATUSES (CONSTANTS)
# =============================================================================

MODE_CASH = "CASH"
MODE_UPI = "UPI"
MODE_CARD = "CARD"
MODE_BANK_TRANSFER = "BANK_TRANSFER"
MODE_SPLIT = "SPLIT"

# Electronic tenders must carry the processor / bank reference
REFERENCE_REQUIRED_MODES = (MODE_UPI, MODE_CARD, MODE_BANK_TRANSFER)

PAYMENT_STATUS_UNPAID = "UNPAID"
PAYMENT_STATUS_PARTIALLY_PAID = "PARTIALLY_PAID"
PAYMENT_STATUS_PAID = "PAID"


def payment_status_for(paid_paise: int, payable_paise: int) -> str:
    if paid_paise > payable_paise:
        raise OverpaymentError(
            "Paid amount cannot exceed payable amount",
            details={"paid_paise": paid_paise, "payable_paise": payable_paise},
        )
    if paid_paise == 0:
        return PAYMENT_STATUS_UNPAID
    if paid_paise < payable_paise:
        return PAYMENT_STATUS_PARTIALLY_PAID
    return PAYMENT_STATUS_PAID


def validate_payment(mode: str, amount_paise: int, reference_id: str | None) -> list[str]:
    errors = []
    if mode not in PAYMENT_MODES:
        errors.append(f"Invalid payment mode: {mode}. Must be one of {', '.join(PAYMENT_MODES)}")
    if not isinstance(amount_paise, int) or isinstance(amount_paise, bool) or amount_paise <= 0:
        errors.append("Payment amount must be positive")
    if mode in REFERENCE_REQUIRED_MODES and not (reference_id and reference_id.strip()):
        errors.append(f"Reference ID is required for {mode} payments")
    return errors


# =============================================================================
# RECORDING
# =============================================================================

def apply_payment(
    state: BillPaymentState,
    *,
    mode: str,
    amount_paise: int,
    reference_id: str | None = None,
    recorded_by: str | None = None,
    now: datetime | None = None,
) -> BillPayment:
    """
    Append one payment to an already-loaded (and locked) payment state.

    Does not commit; the order lifecycle uses this to take an advance in the
    same transaction that creates the bill.
    """
    errors = validate_payment(mode, amount_paise, reference_id)
    if errors:
        raise ValidationError("Invalid payment", messages=errors)

    if state.locked or state.payment_status == PAYMENT_STATUS_PAID:
        raise LockedBillError(f"Bill {state.bill_id} is fully paid and locked")

    new_paid = add(state.paid_paise, amount_paise)
    if new_paid > state.payable_paise:
        raise OverpaymentError(
            f"Payment of {format_inr(amount_paise)} exceeds the due amount of {format_inr(state.due_paise)}",
            details={"due_amount_paise": state.due_paise, "amount_paise": amount_paise},
        )

    now = now or utcnow()
    payment = BillPayment(
        bill_id=state.bill_id,
        sequence=len(state.payments) + 1,
        mode=mode,
        amount_paise=amount_paise,
        reference_id=reference_id.strip() if reference_id else None,
        paid_at=now,
        recorded_by=recorded_by,
    )
    state.payments.append(payment)

    state.paid_paise = new_paid
    state.due_paise = sub(state.payable_paise, new_paid)
    state.payment_status = payment_status_for(new_paid, state.payable_paise)
    if state.payment_status == PAYMENT_STATUS_PAID:
        state.locked = True
        state.paid_at = now
    return payment


def _load_state_locked(bill_id: int) -> BillPaymentState:
    state = lock_for_update(db.session.query(BillPaymentState).filter_by(bill_id=bill_id)).first()
    if state is None:
        raise NotFoundError(f"Bill {bill_id} not found")
    return state


def record_payment(
    bill_id: int,
    mode: str,
    amount_paise: int,
    reference_id: str | None = None,
    recorded_by: str | None = None,
    *,
    now: datetime | None = None,
) -> BillPaymentState:
    """
    Record a payment against a bill.

    Raises:
        ValidationError: bad mode/amount or missing reference for electronic tenders
        NotFoundError: no such bill
        LockedBillError: bill already PAID
        OverpaymentError: amount exceeds the current due amount
        ConflictError: lost the compare-and-set on every retry
    """
    errors = validate_payment(mode, amount_paise, reference_id)
    if errors:
        raise ValidationError("Invalid payment", messages=errors)

    def _op():
        state = _load_state_locked(bill_id)
        apply_payment(
            state,
            mode=mode,
            amount_paise=amount_paise,
            reference_id=reference_id,
            recorded_by=recorded_by,
            now=now,
        )
        db.session.commit()
        return state

    return run_with_retry(_op)


# =============================================================================
# READS
# =============================================================================

def get_payment_state(bill_id: int) -> BillPaymentState:
    state = db.session.get(BillPaymentState, bill_id)
    if state is None:
        raise NotFoundError(f"Bill {bill_id} not found")
    return state


def payment_summary(bill_id: int) -> dict:
    state = get_payment_state(bill_id)
    return {
        "bill_id": state.bill_id,
        "payable_paise": state.payable_paise,
        "paid_paise": state.paid_paise,
        "due_paise": state.due_paise,
        "payment_status": state.payment_status,
        "payments": [p.to_dict() for p in state.payments],
        "is_locked": bool(state.locked),
        "paid_at": to_utc_z(state.paid_at),
    }


def is_locked(bill_id: int) -> bool:
    return bool(get_payment_state(bill_id).locked)
