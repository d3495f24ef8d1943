"""
Tests for PenaltyCalculator.

Covers:
- Fixed-rate, fixed-amount and time-accrual strategies
- Grace periods, day thresholds and amount thresholds
- Clamping and half-up rounding
- Lateness measured to the completion date
- Deterministic penalty ids and audit breakdown
- Arithmetic overflow
"""

from datetime import date
from decimal import Decimal

import pytest

from compliance_engines.penalty_calculator import (
    PenaltyCalculator,
    measure_days_overdue,
    relevant_due_date,
)
from compliance_kernel.domain.obligation import ComplianceObligation
from compliance_kernel.domain.rules import (
    FixedAmountStrategy,
    FixedRateStrategy,
    PenaltyRule,
    TimeAccrualStrategy,
)
from compliance_kernel.domain.types import PenaltyType, TaxpayerCategory, TaxType
from compliance_kernel.domain.values import MAX_AMOUNT
from compliance_kernel.exceptions import ArithmeticOverflowError


def _obligation(**overrides) -> ComplianceObligation:
    fields = dict(
        obligation_id="OBL-1",
        client_id="CLIENT-1",
        tax_type=TaxType.INCOME_TAX,
        tax_year=2023,
        taxpayer_category=TaxpayerCategory.MEDIUM,
        filing_due_date=date(2024, 1, 31),
        payment_due_date=date(2024, 1, 31),
        tax_liability=Decimal("100000"),
    )
    fields.update(overrides)
    return ComplianceObligation(**fields)


def _rule(strategy, **overrides) -> PenaltyRule:
    fields = dict(
        rule_id="RULE-1",
        name="Test rule",
        tax_type=TaxType.INCOME_TAX,
        penalty_type=PenaltyType.LATE_FILING,
        strategy=strategy,
        effective_date=date(2020, 1, 1),
        legal_reference="Finance Act 2020, Section 112",
    )
    fields.update(overrides)
    return PenaltyRule(**fields)


def _late_filing_rule(**overrides) -> PenaltyRule:
    defaults = dict(
        minimum_amount=Decimal("500"),
        maximum_amount=Decimal("50000"),
        grace_period_days=7,
    )
    defaults.update(overrides)
    return _rule(FixedRateStrategy(rate=Decimal("5")), **defaults)


# =============================================================================
# Fixed rate
# =============================================================================


class TestFixedRate:
    """Percentage-of-base penalties."""

    def setup_method(self):
        self.calculator = PenaltyCalculator()

    def test_late_filing_ten_days_late(self):
        """Filed 10 days late with a 7 day grace: 5% of 100,000."""
        obligation = _obligation(filed_date=date(2024, 2, 10))

        penalty = self.calculator.compute(_late_filing_rule(), obligation, date(2024, 2, 15))

        assert penalty is not None
        assert penalty.amount == Decimal("5000.00")
        assert penalty.days_overdue == 10
        assert penalty.base_amount == Decimal("100000")
        assert penalty.penalty_rate == Decimal("5")
        assert penalty.due_date == date(2024, 1, 31)
        assert penalty.penalty_date == date(2024, 2, 15)

    def test_clamped_to_maximum(self):
        obligation = _obligation(
            tax_liability=Decimal("5000000"), filed_date=date(2024, 2, 10),
        )

        penalty = self.calculator.compute(_late_filing_rule(), obligation, date(2024, 2, 15))

        assert penalty.amount == Decimal("50000.00")

    def test_clamped_to_minimum(self):
        obligation = _obligation(
            tax_liability=Decimal("1000"), filed_date=date(2024, 2, 10),
        )

        penalty = self.calculator.compute(_late_filing_rule(), obligation, date(2024, 2, 15))

        assert penalty.amount == Decimal("500.00")

    def test_rounds_half_up(self):
        """5% of 10,000.50 is 500.025, rounded half-up to 500.03."""
        obligation = _obligation(
            tax_liability=Decimal("10000.50"), filed_date=date(2024, 2, 10),
        )
        rule = _late_filing_rule(minimum_amount=None)

        penalty = self.calculator.compute(rule, obligation, date(2024, 2, 15))

        assert penalty.amount == Decimal("500.03")

    def test_amount_has_two_decimal_places(self):
        obligation = _obligation(filed_date=date(2024, 2, 10))

        penalty = self.calculator.compute(_late_filing_rule(), obligation, date(2024, 2, 15))

        assert penalty.amount.as_tuple().exponent == -2


# =============================================================================
# Grace and thresholds
# =============================================================================


class TestGraceAndThresholds:
    """Gates that decide whether a rule is triggered at all."""

    def setup_method(self):
        self.calculator = PenaltyCalculator()

    def test_within_grace_period_no_penalty(self):
        obligation = _obligation(filed_date=date(2024, 2, 5))

        assert self.calculator.compute(
            _late_filing_rule(), obligation, date(2024, 2, 15),
        ) is None

    def test_exactly_at_grace_boundary_no_penalty(self):
        """days_overdue == grace_period_days is still within grace."""
        obligation = _obligation(filed_date=date(2024, 2, 7))

        assert self.calculator.compute(
            _late_filing_rule(), obligation, date(2024, 2, 15),
        ) is None

    def test_one_day_past_grace_triggers(self):
        obligation = _obligation(filed_date=date(2024, 2, 8))

        penalty = self.calculator.compute(_late_filing_rule(), obligation, date(2024, 2, 15))

        assert penalty is not None
        assert penalty.days_overdue == 8

    def test_filed_on_time_no_penalty(self):
        obligation = _obligation(filed_date=date(2024, 1, 30))

        assert self.calculator.compute(
            _late_filing_rule(), obligation, date(2024, 3, 1),
        ) is None

    def test_extension_shifts_filing_due_date(self):
        obligation = _obligation(
            filed_date=date(2024, 2, 20),
            has_extension=True,
            extended_due_date=date(2024, 2, 29),
        )

        assert self.calculator.compute(
            _late_filing_rule(), obligation, date(2024, 3, 1),
        ) is None

    def test_non_filing_below_threshold_days(self):
        rule = _rule(
            FixedRateStrategy(rate=Decimal("20")),
            penalty_type=PenaltyType.NON_FILING,
            threshold_days=30,
        )
        obligation = _obligation()

        assert self.calculator.compute(rule, obligation, date(2024, 2, 20)) is None

    def test_non_filing_past_threshold_days(self):
        """Unfiled 44 days after the due date (2024 is a leap year)."""
        rule = _rule(
            FixedRateStrategy(rate=Decimal("20")),
            penalty_type=PenaltyType.NON_FILING,
            minimum_amount=Decimal("2000"),
            maximum_amount=Decimal("100000"),
            threshold_days=30,
        )
        obligation = _obligation()

        penalty = self.calculator.compute(rule, obligation, date(2024, 3, 15))

        assert penalty.days_overdue == 44
        assert penalty.amount == Decimal("20000.00")

    def test_non_filing_not_triggered_once_filed(self):
        rule = _rule(
            FixedRateStrategy(rate=Decimal("20")),
            penalty_type=PenaltyType.NON_FILING,
            threshold_days=30,
        )
        obligation = _obligation(filed_date=date(2024, 3, 10))

        assert self.calculator.compute(rule, obligation, date(2024, 3, 15)) is None

    def test_non_filing_counts_filing_dated_after_evaluation_as_unfiled(self):
        rule = _rule(
            FixedRateStrategy(rate=Decimal("20")),
            penalty_type=PenaltyType.NON_FILING,
            minimum_amount=Decimal("2000"),
            maximum_amount=Decimal("100000"),
            threshold_days=30,
        )
        obligation = _obligation(filed_date=date(2024, 6, 30))

        penalty = self.calculator.compute(rule, obligation, date(2024, 3, 15))

        assert penalty.days_overdue == 44
        assert penalty.amount == Decimal("20000.00")

    def test_under_declaration_above_threshold_amount(self):
        rule = _rule(
            FixedRateStrategy(rate=Decimal("25")),
            penalty_type=PenaltyType.UNDER_DECLARATION,
            minimum_amount=Decimal("1000"),
            threshold_amount=Decimal("5000"),
        )
        obligation = _obligation(
            filed_date=date(2024, 1, 20), declared_liability=Decimal("90000"),
        )

        penalty = self.calculator.compute(rule, obligation, date(2024, 2, 15))

        assert penalty.base_amount == Decimal("10000")
        assert penalty.amount == Decimal("2500.00")

    def test_under_declaration_below_threshold_amount(self):
        rule = _rule(
            FixedRateStrategy(rate=Decimal("25")),
            penalty_type=PenaltyType.UNDER_DECLARATION,
            threshold_amount=Decimal("5000"),
        )
        obligation = _obligation(
            filed_date=date(2024, 1, 20), declared_liability=Decimal("96000"),
        )

        assert self.calculator.compute(rule, obligation, date(2024, 2, 15)) is None


# =============================================================================
# Fixed amount
# =============================================================================


class TestFixedAmount:
    def test_fixed_amount_ignores_base(self):
        rule = _rule(
            FixedAmountStrategy(amount=Decimal("1000")),
            tax_type=TaxType.PAYROLL_TAX,
            grace_period_days=5,
        )
        obligation = _obligation(
            tax_type=TaxType.PAYROLL_TAX,
            tax_liability=Decimal("42"),
            filed_date=date(2024, 2, 15),
        )

        penalty = PenaltyCalculator().compute(rule, obligation, date(2024, 2, 20))

        assert penalty.amount == Decimal("1000.00")
        assert penalty.penalty_rate is None


# =============================================================================
# Time accrual
# =============================================================================


class TestTimeAccrual:
    """Linear accrual beyond the grace period."""

    def setup_method(self):
        self.calculator = PenaltyCalculator()

    def test_gst_late_payment_45_days_overdue(self):
        """45 days overdue, 15 grace: 30 accrual days at 3% per month."""
        rule = _rule(
            TimeAccrualStrategy(monthly_rate=Decimal("3"), maximum_days=365),
            tax_type=TaxType.GST,
            penalty_type=PenaltyType.LATE_PAYMENT,
            minimum_amount=Decimal("50"),
            grace_period_days=15,
        )
        obligation = _obligation(
            tax_type=TaxType.GST,
            tax_liability=Decimal("20000"),
            filing_due_date=date(2024, 3, 1),
            payment_due_date=date(2024, 3, 1),
            filed_date=date(2024, 3, 1),
        )

        penalty = self.calculator.compute(rule, obligation, date(2024, 4, 15))

        assert penalty.days_overdue == 45
        assert penalty.amount == Decimal("600.00")
        assert penalty.penalty_rate == Decimal("3")

    def test_accrual_days_capped_at_maximum(self):
        """390 accrual days capped at 180: 5% per month for six months."""
        rule = _rule(
            TimeAccrualStrategy(monthly_rate=Decimal("5"), maximum_days=180),
            tax_type=TaxType.PAYROLL_TAX,
            penalty_type=PenaltyType.LATE_PAYMENT,
            grace_period_days=10,
        )
        obligation = _obligation(
            tax_type=TaxType.PAYROLL_TAX,
            tax_liability=Decimal("10000"),
            payment_due_date=date(2023, 1, 1),
            filing_due_date=date(2023, 1, 1),
        )

        penalty = self.calculator.compute(rule, obligation, date(2024, 2, 5))

        assert penalty.days_overdue == 400
        assert penalty.amount == Decimal("3000.00")
        assert "capped" in penalty.calculation_breakdown

    def test_annual_interest_accrues_daily(self):
        """18% p.a. on 20,000 for 45 days = 443.8356..., rounded to 443.84."""
        rule = _rule(
            TimeAccrualStrategy(annual_rate=Decimal("18")),
            tax_type=TaxType.GST,
            penalty_type=PenaltyType.INTEREST,
        )
        obligation = _obligation(
            tax_type=TaxType.GST,
            tax_liability=Decimal("20000"),
            payment_due_date=date(2024, 3, 1),
            filing_due_date=date(2024, 3, 1),
        )

        penalty = self.calculator.compute(rule, obligation, date(2024, 4, 15))

        assert penalty.amount == Decimal("443.84")

    def test_late_payment_base_is_outstanding_balance(self):
        rule = _rule(
            TimeAccrualStrategy(daily_rate=Decimal("1")),
            penalty_type=PenaltyType.LATE_PAYMENT,
        )
        obligation = _obligation(
            tax_liability=Decimal("10000"), amount_paid=Decimal("6000"),
        )

        penalty = self.calculator.compute(rule, obligation, date(2024, 2, 10))

        assert penalty.base_amount == Decimal("4000")
        assert penalty.days_overdue == 10
        assert penalty.amount == Decimal("400.00")

    def test_fully_paid_no_late_payment(self):
        rule = _rule(
            TimeAccrualStrategy(daily_rate=Decimal("1")),
            penalty_type=PenaltyType.LATE_PAYMENT,
        )
        obligation = _obligation(
            amount_paid=Decimal("100000"), paid_date=date(2024, 2, 10),
        )

        assert self.calculator.compute(rule, obligation, date(2024, 3, 10)) is None


# =============================================================================
# Days overdue measurement
# =============================================================================


class TestDaysOverdue:
    def test_filing_lateness_stops_at_filed_date(self):
        obligation = _obligation(filed_date=date(2024, 2, 10))

        days, measured_to, completed = measure_days_overdue(
            PenaltyType.LATE_FILING, obligation, date(2024, 6, 1),
        )

        assert days == 10
        assert measured_to == date(2024, 2, 10)
        assert completed is True

    def test_unfiled_measured_to_evaluation_date(self):
        obligation = _obligation()

        days, measured_to, completed = measure_days_overdue(
            PenaltyType.LATE_FILING, obligation, date(2024, 2, 5),
        )

        assert days == 5
        assert measured_to == date(2024, 2, 5)
        assert completed is False

    def test_not_yet_due_is_zero(self):
        days, _, _ = measure_days_overdue(
            PenaltyType.LATE_FILING, _obligation(), date(2024, 1, 15),
        )

        assert days == 0

    def test_filing_after_evaluation_date_not_completed(self):
        obligation = _obligation(filed_date=date(2024, 6, 30))

        days, measured_to, completed = measure_days_overdue(
            PenaltyType.LATE_FILING, obligation, date(2024, 3, 15),
        )

        assert days == 44
        assert measured_to == date(2024, 3, 15)
        assert completed is False

    def test_payment_penalties_use_payment_due_date(self):
        obligation = _obligation(payment_due_date=date(2024, 4, 30))

        assert relevant_due_date(PenaltyType.LATE_PAYMENT, obligation) == date(2024, 4, 30)
        assert relevant_due_date(PenaltyType.INTEREST, obligation) == date(2024, 4, 30)
        assert relevant_due_date(PenaltyType.LATE_FILING, obligation) == date(2024, 1, 31)


# =============================================================================
# Determinism, audit and overflow
# =============================================================================


class TestDeterminismAndAudit:
    def setup_method(self):
        self.calculator = PenaltyCalculator()

    def test_identical_inputs_identical_penalty(self):
        obligation = _obligation(filed_date=date(2024, 2, 10))

        first = self.calculator.compute(_late_filing_rule(), obligation, date(2024, 2, 15))
        second = self.calculator.compute(_late_filing_rule(), obligation, date(2024, 2, 15))

        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_penalty_id_stable_across_evaluation_dates(self):
        """The id depends on (obligation, rule, type, due date), not on the run date."""
        obligation = _obligation()

        first = self.calculator.compute(_late_filing_rule(), obligation, date(2024, 2, 15))
        later = self.calculator.compute(_late_filing_rule(), obligation, date(2024, 3, 15))

        assert first.penalty_id == later.penalty_id

    def test_breakdown_records_each_step(self):
        obligation = _obligation(filed_date=date(2024, 2, 10))

        penalty = self.calculator.compute(_late_filing_rule(), obligation, date(2024, 2, 15))
        breakdown = penalty.calculation_breakdown

        assert "RULE-1" in breakdown
        assert "Section 112" in breakdown
        assert "10 days overdue" in breakdown
        assert "Clamp" in breakdown
        assert "Round half-up" in breakdown

    def test_emits_engine_trace(self, captured_logs):
        obligation = _obligation(filed_date=date(2024, 2, 10))

        self.calculator.compute(_late_filing_rule(), obligation, date(2024, 2, 15))

        traces = [r for r in captured_logs() if r["message"] == "COMPLIANCE_ENGINE_TRACE"]
        assert traces
        assert traces[0]["engine_name"] == "penalty_calculator"
        assert len(traces[0]["input_fingerprint"]) == 16

    def test_overflow_raises(self):
        rule = _rule(FixedRateStrategy(rate=Decimal("200")))
        obligation = _obligation(tax_liability=MAX_AMOUNT)

        with pytest.raises(ArithmeticOverflowError) as exc_info:
            self.calculator.compute(rule, obligation, date(2024, 3, 1))

        assert exc_info.value.code == "ARITHMETIC_OVERFLOW"
