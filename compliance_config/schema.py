"""
Rule-set schema (``compliance_config.schema``).

Frozen dataclasses describing an assembled, versioned penalty rule set.
The rules themselves are kernel ``PenaltyRule`` records; this module adds
the versioning envelope around them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from compliance_config.lifecycle import RuleSetStatus
from compliance_kernel.domain.rules import PenaltyRule
from compliance_kernel.domain.types import PenaltyType, TaxType


@dataclass(frozen=True)
class RuleSetScope:
    """Jurisdiction and date range a rule set governs."""

    jurisdiction: str
    regulatory_regime: str
    currency: str
    effective_from: date
    effective_to: date | None = None

    def covers(self, jurisdiction: str, as_of_date: date) -> bool:
        if self.jurisdiction not in (jurisdiction, "*"):
            return False
        if as_of_date < self.effective_from:
            return False
        return self.effective_to is None or as_of_date <= self.effective_to


@dataclass(frozen=True)
class RuleSet:
    """
    One assembled rule-set version.

    Contract:
        ``checksum`` is the SHA-256 over the root metadata and every rule's
        canonical form; it changes whenever any rule changes.
    """

    rule_set_id: str
    version: int
    status: RuleSetStatus
    scope: RuleSetScope
    rules: tuple[PenaltyRule, ...]
    checksum: str
    predecessor: str | None = None
    description: str = ""
    source_files: tuple[str, ...] = field(default_factory=tuple)

    def rules_for(self, tax_type: TaxType) -> tuple[PenaltyRule, ...]:
        return tuple(r for r in self.rules if r.tax_type == tax_type)

    def rules_of_type(self, penalty_type: PenaltyType) -> tuple[PenaltyRule, ...]:
        return tuple(r for r in self.rules if r.penalty_type == penalty_type)
