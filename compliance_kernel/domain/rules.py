"""
compliance_kernel.domain.rules -- Penalty rules and calculation strategies.

Responsibility:
    Immutable configuration records describing one statutory penalty
    provision.  The calculation method is a tagged union
    (``FixedRateStrategy`` | ``FixedAmountStrategy`` |
    ``TimeAccrualStrategy``), each variant holding only the fields it
    needs, so there is no "which nullable combination is valid" question.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Built by ``compliance_config``
    from YAML and consumed read-only by ``compliance_engines``.

Invariants enforced:
    - Applicability: tax type match, category match or wildcard,
      ``effective_date <= as_of < expiry_date``, and ``is_active``.
    - Structural validity at construction: non-negative amounts, rates
      and day counts; ``minimum_amount <= maximum_amount``;
      ``expiry_date > effective_date``; exactly one accrual rate.

Failure modes:
    - RuleConfigurationError on any structural violation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Union

from compliance_kernel.domain.types import (
    PenaltyType,
    TaxpayerCategory,
    TaxType,
)
from compliance_kernel.domain.values import ZERO
from compliance_kernel.exceptions import RuleConfigurationError


def _require_decimal(rule_id: str | None, name: str, value: object) -> None:
    if not isinstance(value, Decimal):
        raise RuleConfigurationError(
            rule_id, f"{name} must be Decimal, got {type(value).__name__}"
        )
    if value < ZERO:
        raise RuleConfigurationError(rule_id, f"{name} cannot be negative")


# =============================================================================
# Calculation strategies
# =============================================================================


@dataclass(frozen=True)
class FixedRateStrategy:
    """Percentage of the base amount: ``raw = base * rate / 100``."""

    rate: Decimal

    kind = "fixed_rate"

    def __post_init__(self) -> None:
        _require_decimal(None, "rate", self.rate)


@dataclass(frozen=True)
class FixedAmountStrategy:
    """Flat penalty regardless of base amount or days overdue."""

    amount: Decimal

    kind = "fixed_amount"

    def __post_init__(self) -> None:
        _require_decimal(None, "amount", self.amount)


@dataclass(frozen=True)
class TimeAccrualStrategy:
    """
    Simple (linear) accrual per day overdue beyond the grace period.

    Contract:
        Exactly one of ``daily_rate``, ``monthly_rate``, ``annual_rate`` is
        set.  Rates are percentages per period.
    Guarantees:
        - ``period_days`` is 1, 30 or 365 for daily, monthly, annual.
        - ``period_rate / period_days`` is the per-day percentage.
    Non-goals:
        - No compounding.
    """

    daily_rate: Decimal | None = None
    monthly_rate: Decimal | None = None
    annual_rate: Decimal | None = None
    maximum_days: int | None = None

    kind = "time_accrual"

    def __post_init__(self) -> None:
        rates = [
            (name, value)
            for name, value in (
                ("daily_rate", self.daily_rate),
                ("monthly_rate", self.monthly_rate),
                ("annual_rate", self.annual_rate),
            )
            if value is not None
        ]
        if len(rates) != 1:
            raise RuleConfigurationError(
                None,
                "time accrual requires exactly one of daily_rate, monthly_rate, "
                f"annual_rate (got {len(rates)})",
            )
        name, value = rates[0]
        _require_decimal(None, name, value)
        if self.maximum_days is not None and self.maximum_days < 0:
            raise RuleConfigurationError(None, "maximum_days cannot be negative")

    @property
    def period_rate(self) -> Decimal:
        if self.daily_rate is not None:
            return self.daily_rate
        if self.monthly_rate is not None:
            return self.monthly_rate
        return self.annual_rate  # type: ignore[return-value]

    @property
    def period_days(self) -> int:
        if self.daily_rate is not None:
            return 1
        if self.monthly_rate is not None:
            return 30
        return 365

    @property
    def period_name(self) -> str:
        return {1: "day", 30: "month", 365: "year"}[self.period_days]


PenaltyStrategy = Union[FixedRateStrategy, FixedAmountStrategy, TimeAccrualStrategy]


# =============================================================================
# Penalty rule
# =============================================================================


@dataclass(frozen=True)
class PenaltyRule:
    """
    One statutory penalty provision.

    Contract:
        Frozen dataclass; read-only to the engine.  ``taxpayer_category``
        of None is a wildcard matching every category.  Lower ``priority``
        means higher precedence.
    Guarantees:
        - Construction succeeds only for structurally valid rules.
        - ``is_applicable`` is a pure function of its arguments.
    Non-goals:
        - Does not decide precedence between rules; see RuleCatalog.
    """

    rule_id: str
    name: str
    tax_type: TaxType
    penalty_type: PenaltyType
    strategy: PenaltyStrategy
    effective_date: date
    expiry_date: date | None = None
    taxpayer_category: TaxpayerCategory | None = None
    minimum_amount: Decimal | None = None
    maximum_amount: Decimal | None = None
    grace_period_days: int = 0
    threshold_days: int | None = None
    threshold_amount: Decimal | None = None
    is_active: bool = True
    priority: int = 1
    legal_reference: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        if not self.rule_id:
            raise RuleConfigurationError(None, "rule_id is required")
        if not isinstance(self.strategy, (FixedRateStrategy, FixedAmountStrategy, TimeAccrualStrategy)):
            raise RuleConfigurationError(
                self.rule_id, f"unknown strategy {type(self.strategy).__name__}"
            )
        for name in ("minimum_amount", "maximum_amount", "threshold_amount"):
            value = getattr(self, name)
            if value is not None:
                _require_decimal(self.rule_id, name, value)
        if (
            self.minimum_amount is not None
            and self.maximum_amount is not None
            and self.minimum_amount > self.maximum_amount
        ):
            raise RuleConfigurationError(
                self.rule_id,
                f"minimum_amount {self.minimum_amount} exceeds "
                f"maximum_amount {self.maximum_amount}",
            )
        if self.grace_period_days < 0:
            raise RuleConfigurationError(self.rule_id, "grace_period_days cannot be negative")
        if self.threshold_days is not None and self.threshold_days < 0:
            raise RuleConfigurationError(self.rule_id, "threshold_days cannot be negative")
        if self.expiry_date is not None and self.expiry_date <= self.effective_date:
            raise RuleConfigurationError(
                self.rule_id, "expiry_date must be after effective_date"
            )

    @property
    def is_time_based(self) -> bool:
        return isinstance(self.strategy, TimeAccrualStrategy)

    @property
    def is_wildcard(self) -> bool:
        """True if the rule applies to every taxpayer category."""
        return self.taxpayer_category is None

    def is_effective(self, as_of_date: date) -> bool:
        """``effective_date <= as_of < expiry_date`` (open-ended if no expiry)."""
        if as_of_date < self.effective_date:
            return False
        return self.expiry_date is None or as_of_date < self.expiry_date

    def is_applicable(
        self,
        tax_type: TaxType,
        category: TaxpayerCategory | None,
        as_of_date: date,
    ) -> bool:
        """Check the full applicability invariant for one obligation."""
        return (
            self.is_active
            and self.tax_type == tax_type
            and (self.taxpayer_category is None or self.taxpayer_category == category)
            and self.is_effective(as_of_date)
        )

    def to_dict(self) -> dict:
        """JSON-safe description used in audit trails and checksums."""
        strategy = {"kind": self.strategy.kind}
        strategy.update({
            k: v for k, v in vars(self.strategy).items() if v is not None
        })
        return {
            "rule_id": self.rule_id,
            "name": self.name,
            "tax_type": self.tax_type.value,
            "penalty_type": self.penalty_type.value,
            "strategy": strategy,
            "effective_date": self.effective_date,
            "expiry_date": self.expiry_date,
            "taxpayer_category": (
                self.taxpayer_category.value if self.taxpayer_category else None
            ),
            "minimum_amount": self.minimum_amount,
            "maximum_amount": self.maximum_amount,
            "grace_period_days": self.grace_period_days,
            "threshold_days": self.threshold_days,
            "threshold_amount": self.threshold_amount,
            "is_active": self.is_active,
            "priority": self.priority,
            "legal_reference": self.legal_reference,
        }
