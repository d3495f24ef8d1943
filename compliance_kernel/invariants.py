"""
Compliance Kernel Invariants Contract.

These invariants are structural law. No rule set, rule priority, or caller
option may override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across PenaltyCalculator, PenaltyLedger,
ComplianceScorer, and ComplianceEvaluator.
"""

from enum import Enum, unique


@unique
class ComplianceInvariant(str, Enum):
    """Non-configurable invariants enforced by the engine.

    Each value names one structural guarantee that the engine provides
    unconditionally. Rule sets influence *how much* is charged, but never
    *whether* these rules apply.
    """

    RULE_APPLICABILITY = "rule_applicability"
    """A rule applies only when tax type matches, category matches or is a
    wildcard, the evaluation date is inside its effective window, and it is
    active. Enforced by PenaltyRule.is_applicable and RuleCatalog."""

    AMOUNT_CLAMP = "amount_clamp"
    """Every computed penalty lies in [minimum ?? 0, maximum ?? +inf].
    Enforced by PenaltyCalculator before rounding."""

    GRACE_PERIOD = "grace_period"
    """No day-triggered penalty is produced while days overdue is within
    the rule's grace period. Enforced by PenaltyCalculator."""

    EXACT_DECIMAL = "exact_decimal"
    """All amounts are Decimal, rounded half-up to 2 places. Floats are
    rejected at the boundary."""

    LEDGER_CONSERVATION = "ledger_conservation"
    """total_owed - total_paid == outstanding, and outstanding >= 0.
    Enforced by PenaltyLedger.summarize."""

    SETTLED_IMMUTABILITY = "settled_immutability"
    """A penalty paid in full or waived is never recomputed, re-waived, or
    paid again. Enforced by PenaltyLedger."""

    DETERMINISM = "determinism"
    """Identical inputs produce byte-identical results. Engines never read
    the clock; ids are derived from content."""


# All invariants as a frozenset for programmatic checks.
ALL_COMPLIANCE_INVARIANTS: frozenset[ComplianceInvariant] = frozenset(ComplianceInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_import_boundaries.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "compliance_engines",
    "compliance_config",
    "compliance_services",
)

# Engines may not import from these packages.
FORBIDDEN_ENGINE_IMPORTS: tuple[str, ...] = (
    "compliance_config",
    "compliance_services",
)
