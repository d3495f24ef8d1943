"""
Module: compliance_engines.penalty_ledger
Responsibility:
    Accumulate and reconcile penalty instances for one compliance tracker:
    merge recomputed penalties into the existing ledger, allocate payments
    oldest-first, apply waivers, and compute ledger totals.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import compliance_kernel.  Callers serialize ledger-affecting
    operations per tracker (see compliance_services.batch.TrackerLocks).

Invariants enforced:
    - Keying: penalties are identified by (rule_id, penalty_type, due_date).
    - Settled immutability: paid-in-full or waived penalties are never
      recomputed, re-waived, or paid again.
    - Recomputation never overwrites amount_paid or waiver state, and never
      reduces an amount below what has been paid.
    - Conservation: total_owed - total_paid == outstanding, outstanding >= 0.
    - FIFO: payments go to the oldest outstanding penalty first (by
      penalty_date, then due_date, then penalty_id).

Failure modes:
    - DuplicatePenaltyError if the existing ledger repeats a key.
    - InvalidPaymentError for non-positive or non-Decimal payments.
    - PenaltyNotFoundError / PenaltyImmutableError on waiver of an unknown
      or settled penalty.

Audit relevance:
    ``ledger_reconciled`` and ``payment_allocated`` logs record totals and
    per-penalty allocations; combined with each penalty's calculation
    breakdown they explain every figure on a taxpayer's statement.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal

from compliance_kernel.domain.penalty import CompliancePenalty, LedgerSummary, PenaltyKey
from compliance_kernel.domain.values import ZERO, check_amount_range
from compliance_kernel.exceptions import (
    DuplicatePenaltyError,
    InvalidPaymentError,
    PenaltyImmutableError,
    PenaltyNotFoundError,
)
from compliance_kernel.logging_config import get_logger
from compliance_engines.tracer import traced_engine

logger = get_logger("engines.penalty_ledger")


def _ledger_order(penalty: CompliancePenalty) -> tuple:
    return (penalty.penalty_date, penalty.due_date, penalty.penalty_id)


def _format_key(key: PenaltyKey) -> str:
    rule_id, penalty_type, due_date = key
    return f"{rule_id}/{penalty_type.value}/{due_date.isoformat()}"


@dataclass(frozen=True)
class PaymentAllocation:
    """
    Result of applying one payment to the ledger.

    Guarantees:
        - ``sum(allocations.values()) + unallocated == payment``.
    """

    penalties: tuple[CompliancePenalty, ...]
    allocations: tuple[tuple[str, Decimal], ...]
    unallocated: Decimal
    summary: LedgerSummary


class PenaltyLedger:
    """
    Pure operations over one tracker's penalty list.

    Contract:
        Every method takes penalties in and returns new penalties out;
        inputs are never mutated.
    Non-goals:
        - Does not persist or lock; callers own both.
    """

    def summarize(self, penalties: Iterable[CompliancePenalty]) -> LedgerSummary:
        """
        Compute ledger totals.

        Postconditions:
            - ``total_owed = sum(amount)`` over non-waived penalties.
            - ``total_paid = sum(min(amount_paid, amount))`` over non-waived.
            - ``outstanding = total_owed - total_paid >= 0``.
        """
        ordered = tuple(sorted(penalties, key=_ledger_order))
        total_owed = ZERO
        total_paid = ZERO
        for p in ordered:
            if p.is_waived:
                continue
            total_owed += p.amount
            total_paid += min(p.amount_paid, p.amount)
        outstanding = total_owed - total_paid

        # INVARIANT: ledger conservation
        assert outstanding >= ZERO, f"Negative outstanding {outstanding}"

        return LedgerSummary(
            penalties=ordered,
            total_owed=check_amount_range(total_owed, "total_owed"),
            total_paid=total_paid,
            outstanding=outstanding,
        )

    @traced_engine(
        "penalty_ledger", "1.0",
        fingerprint_fields=("existing", "newly_computed"),
    )
    def reconcile(
        self,
        existing: Sequence[CompliancePenalty],
        newly_computed: Sequence[CompliancePenalty],
    ) -> LedgerSummary:
        """
        Merge freshly computed penalties into the existing ledger.

        Preconditions:
            - ``existing`` has unique keys.
        Postconditions:
            - New keys are added as computed.
            - Unsettled existing penalties with a recomputed key take the new
              amount, base, rate, days and breakdown but keep their
              penalty_id, penalty_date, amount_paid and waiver state; the
              amount is never below amount_paid.
            - Settled penalties and penalties not recomputed are unchanged.
        Raises:
            DuplicatePenaltyError: if ``existing`` repeats a key.
        """
        by_key: dict[PenaltyKey, CompliancePenalty] = {}
        for p in existing:
            if p.key in by_key:
                raise DuplicatePenaltyError(_format_key(p.key))
            by_key[p.key] = p

        added = replaced = skipped = 0
        for new in newly_computed:
            current = by_key.get(new.key)
            if current is None:
                by_key[new.key] = new
                added += 1
                continue
            if current.is_settled:
                skipped += 1
                logger.debug("penalty_recompute_skipped_settled", extra={
                    "penalty_id": current.penalty_id,
                    "rule_id": current.rule_id,
                    "penalty_type": current.penalty_type.value,
                })
                continue
            by_key[new.key] = replace(
                new,
                penalty_id=current.penalty_id,
                penalty_date=current.penalty_date,
                amount=max(new.amount, current.amount_paid),
                amount_paid=current.amount_paid,
                is_waived=current.is_waived,
                waiver_reason=current.waiver_reason,
            )
            replaced += 1

        summary = self.summarize(by_key.values())

        logger.info("ledger_reconciled", extra={
            "penalty_count": len(summary.penalties),
            "added": added,
            "replaced": replaced,
            "skipped_settled": skipped,
            "total_owed": str(summary.total_owed),
            "total_paid": str(summary.total_paid),
            "outstanding": str(summary.outstanding),
        })
        return summary

    def apply_payment(
        self,
        penalties: Sequence[CompliancePenalty],
        payment: Decimal,
    ) -> PaymentAllocation:
        """
        Allocate a payment to outstanding penalties, oldest first.

        Preconditions:
            - ``payment`` is a positive Decimal.
        Postconditions:
            - Each penalty receives at most its outstanding amount.
            - Any remainder is returned as ``unallocated``.
        Raises:
            InvalidPaymentError: if ``payment`` is not a positive Decimal.
        """
        if not isinstance(payment, Decimal) or not payment.is_finite() or payment <= ZERO:
            raise InvalidPaymentError(str(payment))
        check_amount_range(payment, "payment")

        remaining = payment
        allocations: list[tuple[str, Decimal]] = []
        updated: list[CompliancePenalty] = []
        for p in sorted(penalties, key=_ledger_order):
            due = p.outstanding_amount
            if remaining > ZERO and not p.is_settled and due > ZERO:
                allocated = min(remaining, due)
                remaining -= allocated
                allocations.append((p.penalty_id, allocated))
                p = p.with_payment(allocated)
            updated.append(p)

        summary = self.summarize(updated)

        logger.info("payment_allocated", extra={
            "payment": str(payment),
            "allocations": [{"penalty_id": pid, "amount": str(a)} for pid, a in allocations],
            "unallocated": str(remaining),
            "outstanding": str(summary.outstanding),
        })
        return PaymentAllocation(
            penalties=summary.penalties,
            allocations=tuple(allocations),
            unallocated=remaining,
            summary=summary,
        )

    def waive(
        self,
        penalties: Sequence[CompliancePenalty],
        penalty_id: str,
        reason: str,
    ) -> LedgerSummary:
        """
        Waive one penalty; its amount stays but leaves the outstanding totals.

        Raises:
            PenaltyNotFoundError: if no penalty has ``penalty_id``.
            PenaltyImmutableError: if the penalty is already settled.
            ValueError: if ``reason`` is empty.
        """
        if not reason or not reason.strip():
            raise ValueError("A waiver reason is required")

        target = next((p for p in penalties if p.penalty_id == penalty_id), None)
        if target is None:
            raise PenaltyNotFoundError(penalty_id)
        if target.is_settled:
            raise PenaltyImmutableError(penalty_id, "waive")

        updated = [
            p.waived(reason.strip()) if p.penalty_id == penalty_id else p
            for p in penalties
        ]
        summary = self.summarize(updated)

        logger.info("penalty_waived", extra={
            "penalty_id": penalty_id,
            "amount": str(target.amount),
            "reason": reason.strip(),
            "outstanding": str(summary.outstanding),
        })
        return summary
