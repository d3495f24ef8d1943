"""
Module: compliance_engines.penalty_calculator
Responsibility:
    Compute one penalty amount from one matched rule and one obligation
    snapshot: days-overdue measurement, grace and threshold gating,
    fixed-rate / fixed-amount / time-accrual strategies, clamping, and
    half-up rounding, with a step-by-step audit breakdown.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import compliance_kernel.

Invariants enforced:
    - Purity: no clock access; the evaluation date is a parameter.
    - Exact decimal: all arithmetic in Decimal; multiplication happens
      before division so repeated recomputation does not drift.
    - Clamp: amount in [minimum ?? 0, maximum ?? +inf].
    - Grace: no day-triggered penalty while days_overdue <= grace days.
    - Determinism: identical (rule, obligation, evaluation_date) always
      yields an identical CompliancePenalty, including its id.

Failure modes:
    - ArithmeticOverflowError when the clamped amount exceeds the
      decimal(18,2) range or the decimal context overflows.
    - Returns None (not an error) when the rule is not triggered.

Audit relevance:
    Every produced penalty carries ``calculation``: the due date, days
    measurement, gates, base amount, formula, clamp and rounding steps, so
    a reviewer can reproduce the amount by hand.

Usage:
    from compliance_engines.penalty_calculator import PenaltyCalculator

    penalty = PenaltyCalculator().compute(rule, obligation, date(2024, 2, 10))
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation, Overflow

from compliance_kernel.domain.obligation import ComplianceObligation
from compliance_kernel.domain.penalty import CompliancePenalty, penalty_id_for
from compliance_kernel.domain.rules import (
    FixedAmountStrategy,
    FixedRateStrategy,
    PenaltyRule,
    TimeAccrualStrategy,
)
from compliance_kernel.domain.types import (
    FILING_PENALTY_TYPES,
    PAYMENT_PENALTY_TYPES,
    PenaltyType,
)
from compliance_kernel.domain.values import (
    HUNDRED,
    ZERO,
    as_date,
    days_between,
    round_amount,
)
from compliance_kernel.exceptions import ArithmeticOverflowError
from compliance_kernel.logging_config import get_logger
from compliance_engines.tracer import traced_engine

logger = get_logger("engines.penalty_calculator")


def relevant_due_date(penalty_type: PenaltyType, obligation: ComplianceObligation) -> date:
    """Effective filing due date for filing penalties, payment due date otherwise."""
    if penalty_type in FILING_PENALTY_TYPES:
        return obligation.effective_filing_due_date
    return obligation.payment_due_date


def measure_days_overdue(
    penalty_type: PenaltyType,
    obligation: ComplianceObligation,
    evaluation_date: date,
) -> tuple[int, date, bool]:
    """
    Days the relevant duty is or was overdue.

    Lateness stops accruing once the duty is complete: the filed date for
    filing penalties, the paid date for payment penalties once the balance
    is cleared.

    Returns:
        ``(days_overdue, measured_to, completed)``.
    """
    due = relevant_due_date(penalty_type, obligation)
    if penalty_type in FILING_PENALTY_TYPES:
        completed_on = obligation.filing_completed_on
    else:
        completed_on = obligation.payment_completed_on

    if completed_on is not None:
        end = min(completed_on, evaluation_date)
    else:
        end = evaluation_date
    completed = completed_on is not None and completed_on <= evaluation_date
    return max(0, days_between(due, end)), end, completed


def _base_amount(penalty_type: PenaltyType, obligation: ComplianceObligation) -> tuple[Decimal, str]:
    if penalty_type in PAYMENT_PENALTY_TYPES:
        return obligation.outstanding_balance, "outstanding balance"
    if penalty_type == PenaltyType.UNDER_DECLARATION:
        return obligation.under_declared_amount, "under-declared amount"
    return obligation.tax_liability, "tax liability"


def _not_triggered_reason(
    rule: PenaltyRule,
    obligation: ComplianceObligation,
    days_overdue: int,
    base: Decimal,
    completed: bool,
) -> str | None:
    ptype = rule.penalty_type
    if ptype == PenaltyType.NON_FILING and completed:
        return "return_filed"
    if ptype in PAYMENT_PENALTY_TYPES and obligation.outstanding_balance == ZERO:
        return "nothing_outstanding"
    if ptype == PenaltyType.UNDER_DECLARATION and obligation.under_declared_amount == ZERO:
        return "no_under_declaration"

    if ptype != PenaltyType.UNDER_DECLARATION:
        if rule.threshold_days is not None and days_overdue < rule.threshold_days:
            return "below_threshold_days"
        if days_overdue <= rule.grace_period_days:
            return "within_grace_period"

    if rule.threshold_amount is not None and base < rule.threshold_amount:
        return "below_threshold_amount"
    return None


class PenaltyCalculator:
    """
    Stateless penalty computation.

    Contract:
        ``compute`` returns a CompliancePenalty or None; it never raises
        for a rule that simply does not apply.
    Guarantees:
        - Amounts have exactly two decimal places.
        - ``penalty_id`` is derived from (obligation, rule, type, due date).
    Non-goals:
        - Does not choose which rule applies (RuleCatalog).
        - Does not merge with prior penalties (PenaltyLedger).
    """

    @traced_engine(
        "penalty_calculator", "1.0",
        fingerprint_fields=("rule", "obligation", "evaluation_date"),
    )
    def compute(
        self,
        rule: PenaltyRule,
        obligation: ComplianceObligation,
        evaluation_date: date,
    ) -> CompliancePenalty | None:
        """
        Compute the penalty ``rule`` assigns to ``obligation``.

        Preconditions:
            - ``obligation`` has passed ``validate_obligation``.
            - ``rule`` is applicable to the obligation (caller's check).
        Postconditions:
            - None if not triggered (duty complete, within grace, below a
              threshold, or a zero amount with no minimum).
            - Otherwise a penalty whose amount is clamped then rounded
              half-up to 0.01.
        Raises:
            ArithmeticOverflowError: if the amount does not fit decimal(18,2).
        """
        eval_date = as_date(evaluation_date)
        ptype = rule.penalty_type
        due = relevant_due_date(ptype, obligation)
        days_overdue, measured_to, completed = measure_days_overdue(ptype, obligation, eval_date)
        base, base_label = _base_amount(ptype, obligation)

        reason = _not_triggered_reason(rule, obligation, days_overdue, base, completed)
        if reason is not None:
            logger.debug("penalty_not_triggered", extra={
                "rule_id": rule.rule_id,
                "penalty_type": ptype.value,
                "obligation_id": obligation.obligation_id,
                "days_overdue": days_overdue,
                "reason": reason,
            })
            return None

        steps: list[str] = [
            f"Rule {rule.rule_id} [{rule.legal_reference or 'no reference'}]: "
            f"{rule.name} ({ptype.value})",
            f"Due {due.isoformat()}, measured to {measured_to.isoformat()} "
            f"({'duty completed' if completed else 'evaluation date'}): "
            f"{days_overdue} days overdue",
            f"Grace period {rule.grace_period_days} days"
            + (f", threshold {rule.threshold_days} days" if rule.threshold_days is not None else ""),
            f"Base amount ({base_label}) = {base}",
        ]

        try:
            raw, rate = self._raw_amount(rule, base, days_overdue, steps)
            amount = self._clamp(rule, raw, steps)
        except (InvalidOperation, Overflow) as e:
            raise ArithmeticOverflowError("penalty_amount", "overflow", "decimal context") from e

        rounded = round_amount(amount, "penalty_amount")
        steps.append(f"Round half-up to 0.01: {amount} -> {rounded}")

        if rounded == ZERO:
            logger.debug("penalty_not_triggered", extra={
                "rule_id": rule.rule_id,
                "penalty_type": ptype.value,
                "obligation_id": obligation.obligation_id,
                "days_overdue": days_overdue,
                "reason": "zero_amount",
            })
            return None

        penalty = CompliancePenalty(
            penalty_id=penalty_id_for(obligation.obligation_id, (rule.rule_id, ptype, due)),
            obligation_id=obligation.obligation_id,
            rule_id=rule.rule_id,
            penalty_type=ptype,
            tax_type=obligation.tax_type,
            amount=rounded,
            base_amount=base,
            penalty_rate=rate,
            days_overdue=days_overdue,
            penalty_date=eval_date,
            due_date=due,
            legal_reference=rule.legal_reference,
            calculation=tuple(steps),
        )

        logger.info("penalty_computed", extra={
            "rule_id": rule.rule_id,
            "penalty_type": ptype.value,
            "obligation_id": obligation.obligation_id,
            "days_overdue": days_overdue,
            "base_amount": str(base),
            "amount": str(rounded),
        })
        return penalty

    # -------------------------------------------------------------------------
    # Strategies
    # -------------------------------------------------------------------------

    def _raw_amount(
        self,
        rule: PenaltyRule,
        base: Decimal,
        days_overdue: int,
        steps: list[str],
    ) -> tuple[Decimal, Decimal | None]:
        strategy = rule.strategy

        if isinstance(strategy, FixedRateStrategy):
            raw = base * strategy.rate / HUNDRED
            steps.append(f"Fixed rate: {base} x {strategy.rate}% = {raw}")
            return raw, strategy.rate

        if isinstance(strategy, FixedAmountStrategy):
            steps.append(f"Fixed amount: {strategy.amount}")
            return strategy.amount, None

        if isinstance(strategy, TimeAccrualStrategy):
            accrual_days = max(0, days_overdue - rule.grace_period_days)
            if strategy.maximum_days is not None and accrual_days > strategy.maximum_days:
                steps.append(
                    f"Accrual days capped at maximum {strategy.maximum_days} "
                    f"(from {accrual_days})"
                )
                accrual_days = strategy.maximum_days
            raw = (
                base * strategy.period_rate * accrual_days
                / (strategy.period_days * HUNDRED)
            )
            steps.append(
                f"Time accrual: {base} x {strategy.period_rate}% per "
                f"{strategy.period_name} / {strategy.period_days} x "
                f"{accrual_days} days = {raw}"
            )
            return raw, strategy.period_rate

        raise TypeError(f"Unknown penalty strategy: {type(strategy).__name__}")

    def _clamp(self, rule: PenaltyRule, raw: Decimal, steps: list[str]) -> Decimal:
        lower = rule.minimum_amount if rule.minimum_amount is not None else ZERO
        upper = rule.maximum_amount
        amount = max(raw, lower)
        if upper is not None:
            amount = min(amount, upper)
        steps.append(
            f"Clamp to [{lower}, {upper if upper is not None else 'inf'}]: "
            f"{raw} -> {amount}"
        )
        return amount
