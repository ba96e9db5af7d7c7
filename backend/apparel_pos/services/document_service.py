# Overview: Atomic per-day document numbering (bill numbers).

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update

from ..errors import ValidationError
from ..extensions import db
from ..models import DocumentSequence
from ..time_utils import to_ist, utcnow


BILL_DOCUMENT_TYPE = "BILL"
BILL_PREFIX = "BILL"


def _reserve(document_type: str, period_key: str) -> int:
    """
    Reserve the next number for (document_type, period_key) inside the
    caller's transaction.

    The UPDATE ... SET next_number = next_number + 1 takes the row lock, so two
    concurrent reservations serialize. The first reservation of a period races
    on the unique constraint instead; the loser's IntegrityError is retried by
    run_with_retry around the whole operation, and the retry takes the UPDATE path.
    """
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period_key == period_key,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    def _read_reserved() -> int:
        db.session.flush()
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type, period_key=period_key)
            .scalar()
        )
        return current - 1

    if db.session.execute(stmt).rowcount:
        return _read_reserved()

    db.session.add(DocumentSequence(document_type=document_type, period_key=period_key, next_number=2))
    db.session.flush()
    return 1


def next_document_number(*, document_type: str, prefix: str, period_key: str, pad: int = 4) -> str:
    if not document_type:
        raise ValidationError("document_type is required")
    if not period_key:
        raise ValidationError("period_key is required")
    number = _reserve(document_type, period_key)
    return f"{prefix}-{period_key}-{number:0{pad}d}"


def next_bill_number(now: datetime | None = None) -> str:
    """
    BILL-YYMMDD-NNNN where YYMMDD is the IST business day and NNNN restarts at
    0001 each day. Runs in the caller's transaction; rolling the order back
    also returns the number.
    """
    period_key = to_ist(now or utcnow()).strftime("%y%m%d")
    return next_document_number(
        document_type=BILL_DOCUMENT_TYPE,
        prefix=BILL_PREFIX,
        period_key=period_key,
    )
