"""
Module: compliance_engines.rule_catalog
Responsibility:
    Hold a read-only snapshot of penalty rules and answer "which rules
    apply to this obligation on this date" queries with a deterministic
    precedence order.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import compliance_kernel.

Invariants enforced:
    - Applicability: only rules passing ``PenaltyRule.is_applicable``
      are returned.
    - Precedence: category-specific before wildcard, then ascending
      ``priority``, then most recent ``effective_date``, then ``rule_id``
      as a final deterministic tie-break.
    - Snapshot isolation: the catalog copies its rules into a tuple at
      construction; later changes to the caller's list are not visible.

Failure modes:
    - DuplicateRuleError if two rules share a ``rule_id``.
    - No applicable rule is NOT a failure: an empty list is returned.

Audit relevance:
    The ``rules_selected`` debug log records which rule ids matched and
    which one won precedence for every query.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from compliance_kernel.domain.rules import PenaltyRule
from compliance_kernel.domain.types import PenaltyType, TaxpayerCategory, TaxType
from compliance_kernel.exceptions import DuplicateRuleError
from compliance_kernel.logging_config import get_logger

logger = get_logger("engines.rule_catalog")


def _precedence_key(rule: PenaltyRule) -> tuple:
    # Specific (0) before wildcard (1); later effective dates first.
    return (
        1 if rule.is_wildcard else 0,
        rule.priority,
        -rule.effective_date.toordinal(),
        rule.rule_id,
    )


class RuleCatalog:
    """
    Read-only, ordered view over one rule-set snapshot.

    Contract:
        ``select_rules`` is a pure read; the catalog never mutates.
    Guarantees:
        - Rule ids are unique within the catalog.
        - Results are ordered by precedence; index 0 wins.
    Non-goals:
        - Does not load or version rules (see compliance_config).
    """

    def __init__(self, rules: Iterable[PenaltyRule]):
        snapshot = tuple(rules)
        seen: set[str] = set()
        for rule in snapshot:
            if rule.rule_id in seen:
                raise DuplicateRuleError(rule.rule_id)
            seen.add(rule.rule_id)
        self._rules = snapshot

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)

    @property
    def rules(self) -> tuple[PenaltyRule, ...]:
        return self._rules

    def rules_for(self, tax_type: TaxType) -> list[PenaltyRule]:
        """All rules for ``tax_type`` in precedence order, ignoring dates."""
        return sorted(
            (r for r in self._rules if r.tax_type == tax_type),
            key=_precedence_key,
        )

    def select_rules(
        self,
        tax_type: TaxType,
        penalty_type: PenaltyType,
        category: TaxpayerCategory | None,
        as_of_date: date,
    ) -> list[PenaltyRule]:
        """
        Return applicable rules in precedence order.

        Preconditions:
            - ``as_of_date`` is a calendar date.
        Postconditions:
            - Every returned rule satisfies the applicability invariant for
              ``(tax_type, category, as_of_date)`` and has ``penalty_type``.
            - Empty list when nothing matches.
        """
        matched = sorted(
            (
                r for r in self._rules
                if r.penalty_type == penalty_type
                and r.is_applicable(tax_type, category, as_of_date)
            ),
            key=_precedence_key,
        )

        logger.debug("rules_selected", extra={
            "tax_type": tax_type.value,
            "penalty_type": penalty_type.value,
            "category": category.value if category else None,
            "as_of_date": as_of_date.isoformat(),
            "matched_rule_ids": [r.rule_id for r in matched],
            "winning_rule_id": matched[0].rule_id if matched else None,
        })
        return matched

    def select_rule(
        self,
        tax_type: TaxType,
        penalty_type: PenaltyType,
        category: TaxpayerCategory | None,
        as_of_date: date,
    ) -> PenaltyRule | None:
        """Highest-precedence applicable rule, or None."""
        matched = self.select_rules(tax_type, penalty_type, category, as_of_date)
        return matched[0] if matched else None
