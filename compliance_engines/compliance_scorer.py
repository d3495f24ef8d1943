"""
Module: compliance_engines.compliance_scorer
Responsibility:
    Aggregate filing, payment, documentation and timeliness signals into a
    0-100 compliance score, bucket it into a risk level, and derive the
    obligation's compliance status.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import compliance_kernel.

Invariants enforced:
    - Each sub-score is in [0, 100]; the overall score is the weighted sum
      0.3*Filing + 0.3*Payment + 0.2*Documentation + 0.2*Timeliness,
      quantized to 0.01.
    - Status precedence: Exempted > UnderReview > PenaltyApplied >
      NonCompliant > AtRisk > Compliant.

Failure modes:
    - None for validated obligations.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from compliance_kernel.domain.obligation import ComplianceObligation
from compliance_kernel.domain.penalty import CompliancePenalty
from compliance_kernel.domain.result import ScoreBreakdown
from compliance_kernel.domain.types import ComplianceStatus, RiskLevel
from compliance_kernel.domain.values import HUNDRED, ZERO, as_date, days_between
from compliance_kernel.logging_config import get_logger
from compliance_engines.tracer import traced_engine

logger = get_logger("engines.compliance_scorer")

# Days overdue at which a filing/payment sub-score reaches zero.
DECAY_DAYS = 90

# Days before a due date at which an incomplete duty is at risk.
AT_RISK_WINDOW_DAYS = 7

FILING_WEIGHT = Decimal("0.3")
PAYMENT_WEIGHT = Decimal("0.3")
DOCUMENTATION_WEIGHT = Decimal("0.2")
TIMELINESS_WEIGHT = Decimal("0.2")

_SCORE_QUANTUM = Decimal("0.01")

# Lower bound (inclusive) of each risk bucket, highest first.
RISK_THRESHOLDS: tuple[tuple[Decimal, RiskLevel], ...] = (
    (Decimal("80"), RiskLevel.LOW),
    (Decimal("60"), RiskLevel.MEDIUM),
    (Decimal("40"), RiskLevel.HIGH),
)


def _q(value: Decimal) -> Decimal:
    return value.quantize(_SCORE_QUANTUM, rounding=ROUND_HALF_UP)


def decayed_score(days_late: int) -> Decimal:
    """100 when on time, falling linearly to 0 at DECAY_DAYS late."""
    if days_late <= 0:
        return HUNDRED
    if days_late >= DECAY_DAYS:
        return ZERO
    return _q(HUNDRED * (DECAY_DAYS - days_late) / DECAY_DAYS)


def risk_level_for(score: Decimal) -> RiskLevel:
    for threshold, level in RISK_THRESHOLDS:
        if score >= threshold:
            return level
    return RiskLevel.CRITICAL


@dataclass(frozen=True)
class ScoreResult:
    """Score, risk bucket, status and the sub-scores behind them."""

    score: Decimal
    risk_level: RiskLevel
    status: ComplianceStatus
    breakdown: ScoreBreakdown


class ComplianceScorer:
    """
    Stateless compliance scoring.

    Contract:
        Grace days come from the LateFiling / LatePayment rules selected for
        the obligation; they only affect status, never the score.
    Non-goals:
        - Does not compute penalties; it reads the outstanding total of the
          penalties it is given.
    """

    @traced_engine(
        "compliance_scorer", "1.0",
        fingerprint_fields=("obligation", "penalties", "evaluation_date"),
    )
    def score(
        self,
        obligation: ComplianceObligation,
        penalties: Iterable[CompliancePenalty],
        evaluation_date: date,
        filing_grace_days: int = 0,
        payment_grace_days: int = 0,
    ) -> ScoreResult:
        """
        Score one obligation.

        Postconditions:
            - ``0 <= score <= 100`` with two decimal places.
            - ``risk_level`` follows the >=80/60/40 buckets.
        """
        eval_date = as_date(evaluation_date)
        penalty_outstanding = sum((p.outstanding_amount for p in penalties), ZERO)

        filing = decayed_score(self._filing_days_late(obligation, eval_date))
        payment = decayed_score(self._payment_days_late(obligation, eval_date))
        documentation = HUNDRED if obligation.documentation_complete else ZERO
        timeliness = _q((filing + payment) / 2)

        total = _q(
            FILING_WEIGHT * filing
            + PAYMENT_WEIGHT * payment
            + DOCUMENTATION_WEIGHT * documentation
            + TIMELINESS_WEIGHT * timeliness
        )
        risk = risk_level_for(total)
        status = self.derive_status(
            obligation, penalty_outstanding, eval_date,
            filing_grace_days, payment_grace_days,
        )

        logger.debug("compliance_scored", extra={
            "obligation_id": obligation.obligation_id,
            "score": str(total),
            "risk_level": risk.value,
            "status": status.value,
            "filing": str(filing),
            "payment": str(payment),
            "documentation": str(documentation),
            "timeliness": str(timeliness),
        })
        return ScoreResult(
            score=total,
            risk_level=risk,
            status=status,
            breakdown=ScoreBreakdown(
                filing=filing,
                payment=payment,
                documentation=documentation,
                timeliness=timeliness,
            ),
        )

    def derive_status(
        self,
        obligation: ComplianceObligation,
        penalty_outstanding: Decimal,
        evaluation_date: date,
        filing_grace_days: int = 0,
        payment_grace_days: int = 0,
    ) -> ComplianceStatus:
        """Apply the status precedence ladder."""
        if obligation.is_exempt:
            return ComplianceStatus.EXEMPTED
        if obligation.under_review:
            return ComplianceStatus.UNDER_REVIEW
        if penalty_outstanding > ZERO:
            return ComplianceStatus.PENALTY_APPLIED

        filing_open = self._filing_open(obligation, evaluation_date)
        payment_open = self._payment_open(obligation, evaluation_date)
        days_to_filing = days_between(evaluation_date, obligation.effective_filing_due_date)
        days_to_payment = days_between(evaluation_date, obligation.payment_due_date)

        if (filing_open and -days_to_filing > filing_grace_days) or (
            payment_open and -days_to_payment > payment_grace_days
        ):
            return ComplianceStatus.NON_COMPLIANT

        if (filing_open and days_to_filing <= AT_RISK_WINDOW_DAYS) or (
            payment_open and days_to_payment <= AT_RISK_WINDOW_DAYS
        ):
            return ComplianceStatus.AT_RISK

        return ComplianceStatus.COMPLIANT

    @staticmethod
    def _filing_open(obligation: ComplianceObligation, evaluation_date: date) -> bool:
        return not obligation.filed_by(evaluation_date)

    @staticmethod
    def _payment_open(obligation: ComplianceObligation, evaluation_date: date) -> bool:
        if obligation.outstanding_balance > ZERO:
            return True
        return obligation.paid_date is not None and obligation.paid_date > evaluation_date

    def _filing_days_late(self, obligation: ComplianceObligation, evaluation_date: date) -> int:
        if self._filing_open(obligation, evaluation_date):
            end = evaluation_date
        else:
            end = obligation.filing_completed_on
        return days_between(obligation.effective_filing_due_date, end)

    def _payment_days_late(self, obligation: ComplianceObligation, evaluation_date: date) -> int:
        if self._payment_open(obligation, evaluation_date):
            end = evaluation_date
        elif obligation.paid_date is not None:
            end = obligation.paid_date
        else:
            return 0
        return days_between(obligation.payment_due_date, end)
