# Overview: Customer directory keyed by 10-digit phone number.

from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer
from .concurrency import run_with_retry


PHONE_LENGTH = 10


def is_valid_phone(phone) -> bool:
    return isinstance(phone, str) and len(phone) == PHONE_LENGTH and phone.isascii() and phone.isdigit()


def validate_phone(phone) -> str:
    """Return the phone unchanged if it is exactly ten ASCII digits."""
    if not is_valid_phone(phone):
        raise ValidationError(
            f"Phone number must be exactly {PHONE_LENGTH} digits",
            details={"phone": phone},
        )
    return phone


def get_customer_by_phone(phone: str) -> Customer | None:
    return db.session.query(Customer).filter_by(phone=phone).first()


def require_customer(phone: str) -> Customer:
    customer = get_customer_by_phone(phone)
    if customer is None:
        raise NotFoundError(f"Customer {phone} not found")
    return customer


def list_customers() -> list[Customer]:
    return db.session.query(Customer).order_by(Customer.name.asc(), Customer.id.asc()).all()


def _upsert_inner(
    *,
    phone: str,
    name: str,
    address: str | None = None,
    gender: str | None = None,
    age_group: str | None = None,
) -> Customer:
    validate_phone(phone)
    if not name or not str(name).strip():
        raise ValidationError("Customer name is required")

    customer = get_customer_by_phone(phone)
    if customer is None:
        customer = Customer(phone=phone, name=name.strip())
        db.session.add(customer)
    else:
        customer.name = name.strip()
    # Optional fields only overwrite when supplied
    if address is not None:
        customer.address = address
    if gender is not None:
        customer.gender = gender
    if age_group is not None:
        customer.age_group = age_group
    db.session.flush()
    return customer


def upsert_customer(
    *,
    phone: str,
    name: str,
    address: str | None = None,
    gender: str | None = None,
    age_group: str | None = None,
    commit: bool = True,
) -> Customer:
    """Create the customer for this phone, or refresh the stored details."""
    fields = dict(phone=phone, name=name, address=address, gender=gender, age_group=age_group)
    if not commit:
        return _upsert_inner(**fields)

    def _op():
        customer = _upsert_inner(**fields)
        db.session.commit()
        return customer

    return run_with_retry(_op)
