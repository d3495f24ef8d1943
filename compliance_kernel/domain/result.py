"""
compliance_kernel.domain.result -- Engine output records.

Responsibility:
    ``ComplianceResult`` is the single output of one evaluation: status,
    score and risk, the penalties computed in this evaluation, the
    reconciled ledger, and the alerts/actions handed to the notifier.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - ``to_dict()`` is canonical: identical results serialize to
      byte-identical canonical JSON, and ``fingerprint`` hashes it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from compliance_kernel.domain.penalty import CompliancePenalty, LedgerSummary
from compliance_kernel.domain.types import (
    ActionType,
    AlertSeverity,
    AlertType,
    ComplianceStatus,
    RiskLevel,
)
from compliance_kernel.utils.hashing import hash_payload


@dataclass(frozen=True)
class ScoreBreakdown:
    """Weighted sub-scores (each 0-100) behind the overall score."""

    filing: Decimal
    payment: Decimal
    documentation: Decimal
    timeliness: Decimal

    def to_dict(self) -> dict:
        return {
            "filing": self.filing,
            "payment": self.payment,
            "documentation": self.documentation,
            "timeliness": self.timeliness,
        }


@dataclass(frozen=True)
class ComplianceAlert:
    """Notification record for the notifier to deliver."""

    alert_id: str
    obligation_id: str
    client_id: str
    alert_type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    created_on: date
    previous_status: ComplianceStatus | None = None
    current_status: ComplianceStatus | None = None
    due_date: date | None = None

    def to_dict(self) -> dict:
        return {
            "alert_id": self.alert_id,
            "obligation_id": self.obligation_id,
            "client_id": self.client_id,
            "alert_type": self.alert_type.value,
            "severity": self.severity.value,
            "title": self.title,
            "message": self.message,
            "created_on": self.created_on,
            "previous_status": self.previous_status.value if self.previous_status else None,
            "current_status": self.current_status.value if self.current_status else None,
            "due_date": self.due_date,
        }


def action_key(action_type: ActionType, obligation_id: str) -> str:
    """Idempotency key of an action: one open action per type and obligation."""
    return f"{action_type.value}:{obligation_id}"


@dataclass(frozen=True)
class ComplianceAction:
    """Remediation step the taxpayer is asked to take."""

    action_type: ActionType
    obligation_id: str
    client_id: str
    description: str
    severity: AlertSeverity
    due_date: date | None = None

    @property
    def key(self) -> str:
        return action_key(self.action_type, self.obligation_id)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "action_type": self.action_type.value,
            "obligation_id": self.obligation_id,
            "client_id": self.client_id,
            "description": self.description,
            "severity": self.severity.value,
            "due_date": self.due_date,
        }


@dataclass(frozen=True)
class ComplianceResult:
    """
    Outcome of one evaluation.

    Contract:
        - ``penalties``: penalties computed by this evaluation, as they
          stand in the reconciled ledger (ids and payments preserved).
        - ``ledger``: the full merged ledger with totals; callers persist
          ``ledger.penalties``.
        - ``alerts``: new alerts only.
        - ``actions``: every action currently required (stable across
          re-evaluation); ``new_actions`` is the subset not already open.
        - ``resolved_action_keys``: previously open actions whose
          condition no longer holds.
    """

    obligation_id: str
    client_id: str
    evaluation_date: date
    status: ComplianceStatus
    risk_level: RiskLevel
    score: Decimal
    breakdown: ScoreBreakdown
    penalties: tuple[CompliancePenalty, ...]
    ledger: LedgerSummary
    alerts: tuple[ComplianceAlert, ...] = field(default_factory=tuple)
    actions: tuple[ComplianceAction, ...] = field(default_factory=tuple)
    new_actions: tuple[ComplianceAction, ...] = field(default_factory=tuple)
    resolved_action_keys: tuple[str, ...] = field(default_factory=tuple)

    @property
    def open_action_keys(self) -> frozenset[str]:
        return frozenset(a.key for a in self.actions)

    def to_dict(self) -> dict:
        return {
            "obligation_id": self.obligation_id,
            "client_id": self.client_id,
            "evaluation_date": self.evaluation_date,
            "status": self.status.value,
            "risk_level": self.risk_level.value,
            "score": self.score,
            "breakdown": self.breakdown.to_dict(),
            "penalties": [p.to_dict() for p in self.penalties],
            "ledger": self.ledger.to_dict(),
            "alerts": [a.to_dict() for a in self.alerts],
            "actions": [a.to_dict() for a in self.actions],
            "new_actions": [a.to_dict() for a in self.new_actions],
            "resolved_action_keys": list(self.resolved_action_keys),
        }

    @property
    def fingerprint(self) -> str:
        """SHA-256 of the canonical JSON form."""
        return hash_payload(self.to_dict())
