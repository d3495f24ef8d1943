"""
Module: compliance_engines
Responsibility:
    Package entrypoint that re-exports all public symbols from the pure
    calculation engine sub-modules.  This is the canonical import surface
    for higher layers (compliance_services).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import compliance_kernel (and sibling engine modules).
    MUST NOT import compliance_config or compliance_services.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      The evaluation date is always passed in by the caller.
    - Decimal-only arithmetic: all monetary amounts use ``Decimal``; floats
      are forbidden.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine entry point is traced via the ``@traced_engine`` decorator
    (see ``compliance_engines.tracer``), emitting COMPLIANCE_ENGINE_TRACE
    log records that include engine name, version, input fingerprint, and
    duration.

Usage:
    from compliance_engines import (
        RuleCatalog, PenaltyCalculator, PenaltyLedger,
        ComplianceScorer, AlertEngine,
    )
"""

from compliance_engines.alert_engine import (
    REMINDER_THRESHOLDS,
    AlertEngine,
    AlertOutcome,
    crossed_threshold,
)
from compliance_engines.compliance_scorer import (
    AT_RISK_WINDOW_DAYS,
    DECAY_DAYS,
    ComplianceScorer,
    ScoreResult,
    decayed_score,
    risk_level_for,
)
from compliance_engines.penalty_calculator import (
    PenaltyCalculator,
    measure_days_overdue,
    relevant_due_date,
)
from compliance_engines.penalty_ledger import PaymentAllocation, PenaltyLedger
from compliance_engines.rule_catalog import RuleCatalog
from compliance_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Rule selection
    "RuleCatalog",
    # Penalty computation
    "PenaltyCalculator",
    "measure_days_overdue",
    "relevant_due_date",
    # Ledger
    "PenaltyLedger",
    "PaymentAllocation",
    # Scoring
    "ComplianceScorer",
    "ScoreResult",
    "decayed_score",
    "risk_level_for",
    "DECAY_DAYS",
    "AT_RISK_WINDOW_DAYS",
    # Alerts
    "AlertEngine",
    "AlertOutcome",
    "crossed_threshold",
    "REMINDER_THRESHOLDS",
    # Tracing
    "traced_engine",
    "compute_input_fingerprint",
]
