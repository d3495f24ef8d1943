"""
Tests for RuleCatalog.

Covers:
- Applicability (tax type, category, active flag, effective window)
- Precedence (category-specific, priority, recency, rule_id)
- Duplicate rule ids
- Selection against the bundled Finance Act rule set
"""

from datetime import date
from decimal import Decimal

import pytest

from compliance_engines.rule_catalog import RuleCatalog
from compliance_kernel.domain.rules import FixedRateStrategy, PenaltyRule
from compliance_kernel.domain.types import PenaltyType, TaxpayerCategory, TaxType
from compliance_kernel.exceptions import DuplicateRuleError


def _rule(
    rule_id: str,
    *,
    tax_type: TaxType = TaxType.INCOME_TAX,
    penalty_type: PenaltyType = PenaltyType.LATE_FILING,
    category: TaxpayerCategory | None = None,
    effective_date: date = date(2020, 1, 1),
    expiry_date: date | None = None,
    priority: int = 1,
    is_active: bool = True,
) -> PenaltyRule:
    return PenaltyRule(
        rule_id=rule_id,
        name=f"Rule {rule_id}",
        tax_type=tax_type,
        penalty_type=penalty_type,
        strategy=FixedRateStrategy(rate=Decimal("5")),
        effective_date=effective_date,
        expiry_date=expiry_date,
        taxpayer_category=category,
        priority=priority,
        is_active=is_active,
    )


AS_OF = date(2024, 2, 15)


class TestApplicability:
    """Only rules satisfying every applicability condition are selected."""

    def test_wrong_tax_type_not_selected(self):
        """A GST rule never applies to an income tax obligation."""
        catalog = RuleCatalog([_rule("GST-LF", tax_type=TaxType.GST)])

        assert catalog.select_rule(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.SMALL, AS_OF,
        ) is None

    def test_wrong_penalty_type_not_selected(self):
        catalog = RuleCatalog([_rule("IT-LP", penalty_type=PenaltyType.LATE_PAYMENT)])

        assert catalog.select_rules(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.SMALL, AS_OF,
        ) == []

    def test_inactive_rule_not_selected(self):
        catalog = RuleCatalog([_rule("IT-LF", is_active=False)])

        assert catalog.select_rule(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.SMALL, AS_OF,
        ) is None

    def test_not_yet_effective_rule_not_selected(self):
        catalog = RuleCatalog([_rule("IT-LF", effective_date=date(2025, 1, 1))])

        assert catalog.select_rule(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.SMALL, AS_OF,
        ) is None

    def test_expiry_date_is_exclusive(self):
        """A rule expiring on the evaluation date no longer applies."""
        catalog = RuleCatalog([_rule("IT-LF", expiry_date=AS_OF)])

        assert catalog.select_rule(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.SMALL, AS_OF,
        ) is None

    def test_effective_date_is_inclusive(self):
        catalog = RuleCatalog([_rule("IT-LF", effective_date=AS_OF)])

        selected = catalog.select_rule(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.SMALL, AS_OF,
        )
        assert selected is not None
        assert selected.rule_id == "IT-LF"

    def test_other_category_not_selected(self):
        catalog = RuleCatalog([_rule("IT-LF-LARGE", category=TaxpayerCategory.LARGE)])

        assert catalog.select_rule(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.MICRO, AS_OF,
        ) is None


class TestPrecedence:
    """Winning rule ordering."""

    def test_category_specific_beats_wildcard(self):
        catalog = RuleCatalog([
            _rule("IT-LF-GEN"),
            _rule("IT-LF-LARGE", category=TaxpayerCategory.LARGE),
        ])

        selected = catalog.select_rule(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.LARGE, AS_OF,
        )
        assert selected.rule_id == "IT-LF-LARGE"

    def test_category_specific_beats_better_priority_wildcard(self):
        """Specificity is compared before priority."""
        catalog = RuleCatalog([
            _rule("IT-LF-GEN", priority=0),
            _rule("IT-LF-LARGE", category=TaxpayerCategory.LARGE, priority=5),
        ])

        selected = catalog.select_rule(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.LARGE, AS_OF,
        )
        assert selected.rule_id == "IT-LF-LARGE"

    def test_lower_priority_number_wins(self):
        catalog = RuleCatalog([_rule("B", priority=2), _rule("A", priority=1)])

        matched = catalog.select_rules(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.SMALL, AS_OF,
        )
        assert [r.rule_id for r in matched] == ["A", "B"]

    def test_most_recent_effective_date_wins_on_priority_tie(self):
        catalog = RuleCatalog([
            _rule("OLD", effective_date=date(2020, 1, 1)),
            _rule("NEW", effective_date=date(2023, 7, 1)),
        ])

        selected = catalog.select_rule(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.SMALL, AS_OF,
        )
        assert selected.rule_id == "NEW"

    def test_rule_id_breaks_remaining_ties(self):
        catalog = RuleCatalog([_rule("IT-LF-B"), _rule("IT-LF-A")])

        selected = catalog.select_rule(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.SMALL, AS_OF,
        )
        assert selected.rule_id == "IT-LF-A"

    def test_selection_independent_of_input_order(self):
        rules = [
            _rule("A", priority=2),
            _rule("B", category=TaxpayerCategory.SMALL),
            _rule("C", effective_date=date(2022, 1, 1)),
        ]
        forward = RuleCatalog(rules).select_rule(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.SMALL, AS_OF,
        )
        backward = RuleCatalog(reversed(rules)).select_rule(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.SMALL, AS_OF,
        )

        assert forward.rule_id == backward.rule_id == "B"


class TestCatalogConstruction:
    """Snapshot semantics."""

    def test_duplicate_rule_id_rejected(self):
        with pytest.raises(DuplicateRuleError) as exc_info:
            RuleCatalog([_rule("IT-LF"), _rule("IT-LF")])

        assert exc_info.value.rule_id == "IT-LF"
        assert exc_info.value.code == "DUPLICATE_RULE"

    def test_catalog_is_a_snapshot(self):
        rules = [_rule("IT-LF")]
        catalog = RuleCatalog(rules)
        rules.append(_rule("IT-LF-2"))

        assert len(catalog) == 1

    def test_rules_for_tax_type(self):
        catalog = RuleCatalog([
            _rule("IT-LF"),
            _rule("GST-LF", tax_type=TaxType.GST),
        ])

        assert [r.rule_id for r in catalog.rules_for(TaxType.GST)] == ["GST-LF"]


class TestFinanceActSelection:
    """Selection against the bundled rule set."""

    def test_large_taxpayer_gets_large_late_filing_rule(self, finance_act_rules):
        catalog = RuleCatalog(finance_act_rules)

        selected = catalog.select_rule(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.LARGE, AS_OF,
        )
        assert selected.rule_id == "SL-IT-LF-LARGE"

    def test_medium_taxpayer_gets_general_late_filing_rule(self, finance_act_rules):
        catalog = RuleCatalog(finance_act_rules)

        selected = catalog.select_rule(
            TaxType.INCOME_TAX, PenaltyType.LATE_FILING, TaxpayerCategory.MEDIUM, AS_OF,
        )
        assert selected.rule_id == "SL-IT-LF-GEN"

    def test_withholding_tax_has_no_rules(self, finance_act_rules):
        catalog = RuleCatalog(finance_act_rules)

        for penalty_type in PenaltyType:
            assert catalog.select_rule(
                TaxType.WITHHOLDING_TAX, penalty_type, TaxpayerCategory.SMALL, AS_OF,
            ) is None
