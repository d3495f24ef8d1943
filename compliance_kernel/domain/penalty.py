"""
compliance_kernel.domain.penalty -- Accrued penalty instances and ledger totals.

Responsibility:
    ``CompliancePenalty`` is one penalty accrued against one obligation,
    carrying the audit breakdown of how its amount was produced.
    ``LedgerSummary`` is the reconciled penalty ledger of one tracker.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Produced by PenaltyCalculator,
    merged by PenaltyLedger, persisted by the caller.

Invariants enforced:
    - ``outstanding_amount = amount - amount_paid``, never negative.
    - A waived penalty keeps its ``amount`` but has zero outstanding.
    - ``key = (rule_id, penalty_type, due_date)`` identifies a penalty
      across recomputations.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal

from compliance_kernel.domain.types import PenaltyType, TaxType
from compliance_kernel.domain.values import ZERO
from compliance_kernel.utils.hashing import content_id

PenaltyKey = tuple[str, PenaltyType, date]


def penalty_id_for(obligation_id: str, key: PenaltyKey) -> str:
    """Deterministic id for the penalty with ``key`` on one obligation."""
    rule_id, penalty_type, due_date = key
    return content_id("penalty", obligation_id, rule_id, penalty_type, due_date)


@dataclass(frozen=True)
class CompliancePenalty:
    """
    One accrued penalty instance.

    Contract:
        Frozen; state changes produce new instances via ``with_payment``
        and ``waived``.
    Guarantees:
        - ``outstanding_amount >= 0``.
        - ``is_settled`` penalties are never altered by PenaltyLedger.
    """

    penalty_id: str
    obligation_id: str
    rule_id: str
    penalty_type: PenaltyType
    tax_type: TaxType
    amount: Decimal
    base_amount: Decimal
    days_overdue: int
    penalty_date: date
    due_date: date
    penalty_rate: Decimal | None = None
    amount_paid: Decimal = ZERO
    is_waived: bool = False
    waiver_reason: str | None = None
    legal_reference: str = ""
    calculation: tuple[str, ...] = field(default_factory=tuple)

    @property
    def key(self) -> PenaltyKey:
        return (self.rule_id, self.penalty_type, self.due_date)

    @property
    def outstanding_amount(self) -> Decimal:
        if self.is_waived:
            return ZERO
        return max(ZERO, self.amount - self.amount_paid)

    @property
    def is_settled(self) -> bool:
        """Paid in full or waived; immutable to recomputation."""
        return self.is_waived or self.amount_paid >= self.amount

    @property
    def calculation_breakdown(self) -> str:
        """Human-readable audit trail of the amount."""
        return "\n".join(self.calculation)

    def with_payment(self, allocated: Decimal) -> CompliancePenalty:
        return replace(self, amount_paid=self.amount_paid + allocated)

    def waived(self, reason: str) -> CompliancePenalty:
        return replace(self, is_waived=True, waiver_reason=reason)

    def to_dict(self) -> dict:
        return {
            "penalty_id": self.penalty_id,
            "obligation_id": self.obligation_id,
            "rule_id": self.rule_id,
            "penalty_type": self.penalty_type.value,
            "tax_type": self.tax_type.value,
            "amount": self.amount,
            "base_amount": self.base_amount,
            "penalty_rate": self.penalty_rate,
            "days_overdue": self.days_overdue,
            "penalty_date": self.penalty_date,
            "due_date": self.due_date,
            "amount_paid": self.amount_paid,
            "outstanding_amount": self.outstanding_amount,
            "is_waived": self.is_waived,
            "waiver_reason": self.waiver_reason,
            "legal_reference": self.legal_reference,
            "calculation": list(self.calculation),
        }


@dataclass(frozen=True)
class LedgerSummary:
    """
    Reconciled penalty ledger for one tracker.

    Guarantees:
        - ``total_owed - total_paid == outstanding`` and ``outstanding >= 0``.
        - ``penalties`` is in deterministic ledger order.
    """

    penalties: tuple[CompliancePenalty, ...]
    total_owed: Decimal
    total_paid: Decimal
    outstanding: Decimal

    @property
    def has_outstanding(self) -> bool:
        return self.outstanding > ZERO

    def to_dict(self) -> dict:
        return {
            "penalties": [p.to_dict() for p in self.penalties],
            "total_owed": self.total_owed,
            "total_paid": self.total_paid,
            "outstanding": self.outstanding,
        }
