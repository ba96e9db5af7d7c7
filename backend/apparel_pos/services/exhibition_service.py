# Overview: Exhibition sessions; start, end, metadata edits and lookups used by order validation.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..errors import ConflictError, NotFoundError, PolicyError, ValidationError
from ..extensions import db
from ..models import Exhibition
from ..time_utils import ensure_utc_naive, to_ist, utcnow
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number


EXHIBITION_DOCUMENT_TYPE = "EXHIBITION"
EXHIBITION_PREFIX = "EXH"
EDITABLE_FIELDS = ("location", "start_time")


def get_exhibition(exhibition_id: str) -> Exhibition | None:
    if not exhibition_id:
        return None
    return db.session.get(Exhibition, exhibition_id)


def require_exhibition(exhibition_id: str) -> Exhibition:
    exhibition = get_exhibition(exhibition_id)
    if exhibition is None:
        raise NotFoundError(f"Exhibition {exhibition_id} not found", details={"exhibition_id": exhibition_id})
    return exhibition


def require_active_exhibition(exhibition_id: str) -> Exhibition:
    """Exhibition sales may only be recorded against a running exhibition."""
    exhibition = require_exhibition(exhibition_id)
    if not exhibition.active:
        raise PolicyError(
            f"Exhibition {exhibition_id} has ended",
            details={"exhibition_id": exhibition_id},
        )
    return exhibition


def get_active_exhibition(created_by: str) -> Exhibition | None:
    if not created_by:
        raise ValidationError("created_by is required")
    return (
        db.session.query(Exhibition)
        .filter_by(created_by=created_by, active=True)
        .order_by(Exhibition.created_at.desc())
        .first()
    )


def list_exhibitions(created_by: str | None = None) -> list[Exhibition]:
    """Newest first; all employees when created_by is omitted."""
    query = db.session.query(Exhibition)
    if created_by:
        query = query.filter(Exhibition.created_by == created_by)
    return query.order_by(Exhibition.created_at.desc(), Exhibition.id.desc()).all()


def start_exhibition(*, location: str, created_by: str, start_time: datetime | None = None,
                     now: datetime | None = None) -> Exhibition:
    """
    Open a new exhibition for an employee.

    Raises:
        ValidationError: location or created_by missing
        ConflictError: the employee already has an active exhibition
    """
    errors = []
    if not location or not str(location).strip():
        errors.append("location is required")
    if not created_by:
        errors.append("created_by is required")
    if errors:
        raise ValidationError("Invalid exhibition", messages=errors)

    def _op():
        created_at = ensure_utc_naive(now) if now else utcnow()
        running = lock_for_update(
            db.session.query(Exhibition).filter_by(created_by=created_by, active=True)
        ).first()
        if running is not None:
            raise ConflictError(
                "You already have an active exhibition. End it before starting a new one.",
                details={"exhibition_id": running.id},
            )

        exhibition = Exhibition(
            id=next_document_number(
                document_type=EXHIBITION_DOCUMENT_TYPE,
                prefix=EXHIBITION_PREFIX,
                period_key=to_ist(created_at).strftime("%y%m%d"),
            ),
            location=location.strip(),
            start_time=ensure_utc_naive(start_time) if start_time else created_at,
            created_by=created_by,
            active=True,
            created_at=created_at,
            updated_at=created_at,
        )
        db.session.add(exhibition)
        db.session.commit()
        return exhibition

    exhibition = run_with_retry(_op)
    current_app.logger.info("Exhibition %s started by %s at %s", exhibition.id, created_by, exhibition.location)
    return exhibition


def end_exhibition(exhibition_id: str, *, now: datetime | None = None) -> Exhibition:
    def _op():
        exhibition = lock_for_update(db.session.query(Exhibition).filter_by(id=exhibition_id)).first()
        if exhibition is None:
            raise NotFoundError(f"Exhibition {exhibition_id} not found")
        if not exhibition.active:
            raise ConflictError(f"Exhibition {exhibition_id} is already ended")
        exhibition.end_time = ensure_utc_naive(now) if now else utcnow()
        exhibition.active = False
        db.session.commit()
        return exhibition

    exhibition = run_with_retry(_op)
    current_app.logger.info("Exhibition %s ended", exhibition.id)
    return exhibition


def update_exhibition(exhibition_id: str, updates: dict) -> Exhibition:
    """Only location and start_time are editable; other keys are ignored."""
    cleaned = {}
    if "location" in updates:
        location = updates["location"]
        if not isinstance(location, str) or not location.strip():
            raise ValidationError("location must be a non-empty string")
        cleaned["location"] = location.strip()
    if "start_time" in updates:
        if not isinstance(updates["start_time"], datetime):
            raise ValidationError("start_time must be a datetime")
        cleaned["start_time"] = ensure_utc_naive(updates["start_time"])
    if not cleaned:
        raise ValidationError("No valid fields to update", details={"editable": list(EDITABLE_FIELDS)})

    def _op():
        exhibition = require_exhibition(exhibition_id)
        for name, value in cleaned.items():
            setattr(exhibition, name, value)
        db.session.commit()
        return exhibition

    return run_with_retry(_op)
