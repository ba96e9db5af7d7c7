# Overview: Error taxonomy shared by the billing engine, services, and API routes.

from __future__ import annotations


class EngineError(Exception):
    """
    Base class for every error the engine surfaces to callers.

    - message: one human-readable sentence (safe to show in the UI)
    - messages: field-level messages (validation collects several at once)
    - details: structured payload (offending products, due amount, ...)
    """
    http_status = 400
    retryable = False

    def __init__(self, message: str | None = None, *, messages: list[str] | None = None, details: dict | None = None):
        messages = list(messages or [])
        if message is None:
            message = ", ".join(messages) if messages else self.__class__.__name__
        super().__init__(message)
        self.message = message
        self.messages = messages or [message]
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.__class__.__name__,
            "messages": self.messages,
            "details": self.details,
        }


class ValidationError(EngineError):
    """400-level input problem."""
    http_status = 400


class PolicyError(ValidationError):
    """422-level business rule violation (discount cap, missing delivery date, ...)."""
    http_status = 422


class NotFoundError(EngineError):
    """404-level: referenced id does not exist."""
    http_status = 404


class InsufficientStockError(EngineError):
    """Stock batch rejected as a whole; details["items"] lists the offenders."""
    http_status = 409


class OverpaymentError(EngineError):
    """Payment would push the paid amount past the payable amount."""
    http_status = 409


class LockedBillError(EngineError):
    """Bill is fully paid and accepts no further writes."""
    http_status = 409


class ImmutableRecordError(EngineError):
    """Write-once record (issued bill or its lines) was changed after insert."""
    http_status = 409


class AlreadyConvertedError(EngineError):
    """Pre-booking is no longer pending."""
    http_status = 409


class ConflictError(EngineError):
    """409-level: concurrent mutation lost the race; safe to retry."""
    http_status = 409
    retryable = True


class StoreUnavailableError(EngineError):
    """503-level: store transport failure or lock timeout; retry with backoff."""
    http_status = 503
    retryable = True
