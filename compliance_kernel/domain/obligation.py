"""
compliance_kernel.domain.obligation -- Filing/payment obligation snapshot.

Responsibility:
    The engine's input record: one tax type and tax year for one client.
    The engine never persists it; callers build a fresh snapshot per
    evaluation.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - ``validate_obligation`` rejects snapshots with missing identifiers,
      missing or mistyped dates, non-Decimal or negative amounts, and
      extensions without a valid extended due date.  All problems are
      reported together in one InvalidInputError.

Failure modes:
    - InvalidInputError from ``validate_obligation``.
    - ArithmeticOverflowError when an amount exceeds the ledger range.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from compliance_kernel.domain.types import TaxpayerCategory, TaxType
from compliance_kernel.domain.values import ZERO, check_amount_range
from compliance_kernel.exceptions import InvalidInputError


@dataclass(frozen=True)
class ComplianceObligation:
    """
    One client's tax-type / tax-year filing-and-payment duty.

    Contract:
        ``tax_liability`` is the assessed amount owed (an input; the engine
        never computes tax).  ``declared_liability``, when given, is what
        the taxpayer declared on the return; the difference is the
        under-declared amount.
    Guarantees:
        - Derived properties never return negative amounts.
    """

    obligation_id: str
    client_id: str
    tax_type: TaxType
    tax_year: int
    taxpayer_category: TaxpayerCategory
    filing_due_date: date
    payment_due_date: date
    tax_liability: Decimal
    amount_paid: Decimal = ZERO
    filed_date: date | None = None
    paid_date: date | None = None
    declared_liability: Decimal | None = None
    documentation_complete: bool = False
    has_extension: bool = False
    extended_due_date: date | None = None
    is_exempt: bool = False
    under_review: bool = False

    @property
    def tracker_id(self) -> str:
        """Ledger identity; one tracker per obligation."""
        return self.obligation_id

    @property
    def is_filed(self) -> bool:
        return self.filed_date is not None

    def filed_by(self, as_of: date) -> bool:
        """True if the return was filed on or before ``as_of``."""
        return self.filed_date is not None and self.filed_date <= as_of

    @property
    def outstanding_balance(self) -> Decimal:
        """Unpaid tax: ``max(0, tax_liability - amount_paid)``."""
        return max(ZERO, self.tax_liability - self.amount_paid)

    @property
    def is_fully_paid(self) -> bool:
        return self.outstanding_balance == ZERO

    @property
    def effective_filing_due_date(self) -> date:
        """Filing due date after any granted extension."""
        if self.has_extension and self.extended_due_date is not None:
            return self.extended_due_date
        return self.filing_due_date

    @property
    def under_declared_amount(self) -> Decimal:
        if self.declared_liability is None:
            return ZERO
        return max(ZERO, self.tax_liability - self.declared_liability)

    @property
    def filing_completed_on(self) -> date | None:
        return self.filed_date

    @property
    def payment_completed_on(self) -> date | None:
        """Date payment was completed; None while a balance is outstanding."""
        if not self.is_fully_paid:
            return None
        return self.paid_date

    def to_dict(self) -> dict:
        return {
            "obligation_id": self.obligation_id,
            "client_id": self.client_id,
            "tax_type": self.tax_type.value,
            "tax_year": self.tax_year,
            "taxpayer_category": self.taxpayer_category.value,
            "filing_due_date": self.filing_due_date,
            "payment_due_date": self.payment_due_date,
            "tax_liability": self.tax_liability,
            "amount_paid": self.amount_paid,
            "filed_date": self.filed_date,
            "paid_date": self.paid_date,
            "declared_liability": self.declared_liability,
            "documentation_complete": self.documentation_complete,
            "has_extension": self.has_extension,
            "extended_due_date": self.extended_due_date,
            "is_exempt": self.is_exempt,
            "under_review": self.under_review,
        }


def _is_plain_date(value: object) -> bool:
    return isinstance(value, date) and not isinstance(value, datetime)


def validate_obligation(obligation: ComplianceObligation) -> None:
    """
    Fail fast on an incomplete or malformed obligation snapshot.

    Preconditions:
        - ``obligation`` is a ComplianceObligation (any field may be wrong).
    Postconditions:
        - Returns None only if every required field is present and typed.
    Raises:
        InvalidInputError: listing every problem found.
        ArithmeticOverflowError: if an amount exceeds the ledger range.
    """
    errors: list[str] = []
    oid = getattr(obligation, "obligation_id", None) or None

    if not oid:
        errors.append("obligation_id is required")
    if not obligation.client_id:
        errors.append("client_id is required")
    if not isinstance(obligation.tax_type, TaxType):
        errors.append(f"tax_type must be TaxType, got {obligation.tax_type!r}")
    if not isinstance(obligation.taxpayer_category, TaxpayerCategory):
        errors.append(
            f"taxpayer_category must be TaxpayerCategory, got {obligation.taxpayer_category!r}"
        )

    for name in ("filing_due_date", "payment_due_date"):
        value = getattr(obligation, name)
        if value is None:
            errors.append(f"{name} is required")
        elif not _is_plain_date(value):
            errors.append(f"{name} must be a date, got {type(value).__name__}")

    for name in ("filed_date", "paid_date", "extended_due_date"):
        value = getattr(obligation, name)
        if value is not None and not _is_plain_date(value):
            errors.append(f"{name} must be a date, got {type(value).__name__}")

    amounts: list[tuple[str, Decimal]] = []
    for name, required in (
        ("tax_liability", True),
        ("amount_paid", True),
        ("declared_liability", False),
    ):
        value = getattr(obligation, name)
        if value is None:
            if required:
                errors.append(f"{name} is required")
            continue
        if not isinstance(value, Decimal) or not value.is_finite():
            errors.append(f"{name} must be a finite Decimal, got {type(value).__name__}")
        elif value < ZERO:
            errors.append(f"{name} cannot be negative")
        else:
            amounts.append((name, value))

    if obligation.has_extension:
        if obligation.extended_due_date is None:
            errors.append("extended_due_date is required when has_extension is set")
        elif (
            _is_plain_date(obligation.extended_due_date)
            and _is_plain_date(obligation.filing_due_date)
            and obligation.extended_due_date < obligation.filing_due_date
        ):
            errors.append("extended_due_date cannot precede filing_due_date")

    if errors:
        raise InvalidInputError(oid, errors)

    for name, value in amounts:
        check_amount_range(value, name)
