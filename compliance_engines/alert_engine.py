"""
Module: compliance_engines.alert_engine
Responsibility:
    Compare the previous and current compliance results of one obligation
    and emit the alerts and remediation actions a notifier should deliver:
    status escalations, first entry into PenaltyApplied, resolution back to
    Compliant, side-state changes, and deadline reminders.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import compliance_kernel.  Never sends anything itself.

Invariants enforced:
    - Forward transitions along Compliant < AtRisk < NonCompliant <
      PenaltyApplied emit one alert; backward moves emit nothing unless
      they land on Compliant (a "resolved" alert).
    - Severity maps from risk level: Low->Info, Medium->Warning,
      High->Critical, Critical->Urgent.
    - Idempotency: an action whose key is already open is never emitted
      again as new; an unchanged re-evaluation emits no alerts.
    - Alert ids are content-derived, so a replayed evaluation yields the
      same ids.

Failure modes:
    - None; missing history is treated as a prior Compliant state.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from compliance_kernel.domain.obligation import ComplianceObligation
from compliance_kernel.domain.result import (
    ComplianceAction,
    ComplianceAlert,
    ComplianceResult,
)
from compliance_kernel.domain.types import (
    SEVERITY_BY_RISK,
    SIDE_STATUSES,
    STATUS_RANK,
    ActionType,
    AlertSeverity,
    AlertType,
    ComplianceStatus,
)
from compliance_kernel.domain.values import ZERO
from compliance_kernel.logging_config import get_logger
from compliance_kernel.utils.hashing import content_id
from compliance_engines.tracer import traced_engine

logger = get_logger("engines.alert_engine")

# Days-before-due thresholds for deadline reminders, widest first.
REMINDER_THRESHOLDS: tuple[int, ...] = (30, 14, 7, 1)

REMINDER_SEVERITY: dict[int, AlertSeverity] = {
    30: AlertSeverity.INFO,
    14: AlertSeverity.INFO,
    7: AlertSeverity.WARNING,
    1: AlertSeverity.CRITICAL,
}

# Days before a due date from which filing/payment actions are required.
ACTION_LEAD_DAYS = 7

_STATUS_LABELS: dict[ComplianceStatus, str] = {
    ComplianceStatus.COMPLIANT: "Compliant",
    ComplianceStatus.AT_RISK: "At Risk",
    ComplianceStatus.NON_COMPLIANT: "Non-Compliant",
    ComplianceStatus.PENALTY_APPLIED: "Penalty Applied",
    ComplianceStatus.UNDER_REVIEW: "Under Review",
    ComplianceStatus.EXEMPTED: "Exempted",
}


@dataclass(frozen=True)
class AlertOutcome:
    alerts: tuple[ComplianceAlert, ...]
    actions: tuple[ComplianceAction, ...]
    new_actions: tuple[ComplianceAction, ...]
    resolved_action_keys: tuple[str, ...]


def crossed_threshold(days_until_due: int, previous_days_until_due: int | None) -> int | None:
    """
    Tightest reminder threshold crossed since the previous evaluation.

    A threshold ``t`` is crossed when ``0 <= days_until_due <= t`` now and
    the previous evaluation (if any) was still outside it.
    """
    if days_until_due < 0:
        return None
    crossed = [
        t for t in REMINDER_THRESHOLDS
        if days_until_due <= t
        and (previous_days_until_due is None or previous_days_until_due > t)
    ]
    return min(crossed) if crossed else None


class AlertEngine:
    """
    Transition detector and action generator.

    Contract:
        ``detect_transitions`` is pure; the caller merges its outcome into
        the final ComplianceResult.
    Non-goals:
        - Delivery, channels, templates and retries belong to the notifier.
    """

    @traced_engine(
        "alert_engine", "1.0",
        fingerprint_fields=("previous_result", "current_result", "open_action_keys"),
    )
    def detect_transitions(
        self,
        previous_result: ComplianceResult | None,
        current_result: ComplianceResult,
        obligation: ComplianceObligation,
        open_action_keys: Iterable[str] = (),
    ) -> AlertOutcome:
        """
        Derive alerts and actions from a status transition.

        Postconditions:
            - At most one status alert per evaluation.
            - At most one deadline reminder per duty per evaluation.
            - ``new_actions`` excludes every key already open.
        """
        alerts: list[ComplianceAlert] = []

        status_alert = self._status_alert(previous_result, current_result, obligation)
        if status_alert is not None:
            alerts.append(status_alert)

        alerts.extend(self._deadline_reminders(previous_result, current_result, obligation))

        required = self._required_actions(current_result, obligation)
        open_keys = set(open_action_keys)
        if previous_result is not None:
            open_keys |= previous_result.open_action_keys

        required_keys = {a.key for a in required}
        new_actions = tuple(a for a in required if a.key not in open_keys)
        resolved = tuple(sorted(open_keys - required_keys))

        logger.debug("transitions_detected", extra={
            "obligation_id": obligation.obligation_id,
            "previous_status": previous_result.status.value if previous_result else None,
            "current_status": current_result.status.value,
            "alert_types": [a.alert_type.value for a in alerts],
            "new_action_keys": [a.key for a in new_actions],
            "resolved_action_keys": list(resolved),
        })
        return AlertOutcome(
            alerts=tuple(alerts),
            actions=required,
            new_actions=new_actions,
            resolved_action_keys=resolved,
        )

    # -------------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------------

    def _status_alert(
        self,
        previous_result: ComplianceResult | None,
        current: ComplianceResult,
        obligation: ComplianceObligation,
    ) -> ComplianceAlert | None:
        previous = previous_result.status if previous_result else ComplianceStatus.COMPLIANT
        status = current.status
        if status == previous:
            return None

        if status in SIDE_STATUSES:
            alert_type = AlertType.STATUS_CHANGED
            severity = AlertSeverity.INFO
            title = f"{obligation.tax_type.value} {obligation.tax_year}: {_STATUS_LABELS[status]}"
        elif status == ComplianceStatus.COMPLIANT:
            alert_type = AlertType.COMPLIANCE_RESTORED
            severity = AlertSeverity.INFO
            title = f"{obligation.tax_type.value} {obligation.tax_year}: compliance restored"
        elif status == ComplianceStatus.PENALTY_APPLIED:
            alert_type = AlertType.PENALTY_APPLIED
            severity = SEVERITY_BY_RISK[current.risk_level]
            title = (
                f"{obligation.tax_type.value} {obligation.tax_year}: penalties of "
                f"{current.ledger.outstanding} outstanding"
            )
        else:
            # Leaving a side state compares against the Compliant baseline.
            base_rank = STATUS_RANK.get(previous, 0)
            if STATUS_RANK[status] <= base_rank:
                return None
            alert_type = AlertType.STATUS_ESCALATED
            severity = SEVERITY_BY_RISK[current.risk_level]
            title = f"{obligation.tax_type.value} {obligation.tax_year}: {_STATUS_LABELS[status]}"

        message = (
            f"Compliance status changed from {_STATUS_LABELS[previous]} to "
            f"{_STATUS_LABELS[status]} (score {current.score}, risk {current.risk_level.value})."
        )
        return ComplianceAlert(
            alert_id=content_id(
                "alert", obligation.obligation_id, alert_type, previous, status,
                current.evaluation_date,
            ),
            obligation_id=obligation.obligation_id,
            client_id=obligation.client_id,
            alert_type=alert_type,
            severity=severity,
            title=title,
            message=message,
            created_on=current.evaluation_date,
            previous_status=previous,
            current_status=status,
        )

    # -------------------------------------------------------------------------
    # Deadline reminders
    # -------------------------------------------------------------------------

    def _deadline_reminders(
        self,
        previous_result: ComplianceResult | None,
        current: ComplianceResult,
        obligation: ComplianceObligation,
    ) -> list[ComplianceAlert]:
        if current.status in SIDE_STATUSES:
            return []

        duties: list[tuple[str, date]] = []
        if not obligation.filed_by(current.evaluation_date):
            duties.append(("filing", obligation.effective_filing_due_date))
        if obligation.outstanding_balance > ZERO:
            duties.append(("payment", obligation.payment_due_date))

        reminders: list[ComplianceAlert] = []
        for duty, due in duties:
            days_until = (due - current.evaluation_date).days
            previous_days = (
                (due - previous_result.evaluation_date).days
                if previous_result is not None else None
            )
            threshold = crossed_threshold(days_until, previous_days)
            if threshold is None:
                continue
            reminders.append(ComplianceAlert(
                alert_id=content_id(
                    "reminder", obligation.obligation_id, duty, due, threshold,
                ),
                obligation_id=obligation.obligation_id,
                client_id=obligation.client_id,
                alert_type=AlertType.DEADLINE_REMINDER,
                severity=REMINDER_SEVERITY[threshold],
                title=(
                    f"{obligation.tax_type.value} {obligation.tax_year} {duty} "
                    f"due in {days_until} day{'s' if days_until != 1 else ''}"
                ),
                message=(
                    f"The {duty} deadline for {obligation.tax_type.value} "
                    f"{obligation.tax_year} is {due.isoformat()}."
                ),
                created_on=current.evaluation_date,
                current_status=current.status,
                due_date=due,
            ))
        return reminders

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def _required_actions(
        self,
        current: ComplianceResult,
        obligation: ComplianceObligation,
    ) -> tuple[ComplianceAction, ...]:
        if current.status == ComplianceStatus.EXEMPTED:
            return ()

        severity = SEVERITY_BY_RISK[current.risk_level]
        today = current.evaluation_date
        actions: list[ComplianceAction] = []

        filing_due = obligation.effective_filing_due_date
        if not obligation.filed_by(today) and (filing_due - today).days <= ACTION_LEAD_DAYS:
            actions.append(ComplianceAction(
                action_type=ActionType.FILE_RETURN,
                obligation_id=obligation.obligation_id,
                client_id=obligation.client_id,
                description=f"File {obligation.tax_type.value} return for {obligation.tax_year}",
                severity=severity,
                due_date=filing_due,
            ))

        if (
            obligation.outstanding_balance > ZERO
            and (obligation.payment_due_date - today).days <= ACTION_LEAD_DAYS
        ):
            actions.append(ComplianceAction(
                action_type=ActionType.MAKE_PAYMENT,
                obligation_id=obligation.obligation_id,
                client_id=obligation.client_id,
                description=(
                    f"Pay outstanding {obligation.tax_type.value} of "
                    f"{obligation.outstanding_balance}"
                ),
                severity=severity,
                due_date=obligation.payment_due_date,
            ))

        if current.ledger.outstanding > ZERO:
            actions.append(ComplianceAction(
                action_type=ActionType.PAY_PENALTY,
                obligation_id=obligation.obligation_id,
                client_id=obligation.client_id,
                description=f"Pay outstanding penalties of {current.ledger.outstanding}",
                severity=severity,
            ))

        if not obligation.documentation_complete:
            actions.append(ComplianceAction(
                action_type=ActionType.SUBMIT_DOCUMENTS,
                obligation_id=obligation.obligation_id,
                client_id=obligation.client_id,
                description=(
                    f"Submit supporting documents for {obligation.tax_type.value} "
                    f"{obligation.tax_year}"
                ),
                severity=severity,
                due_date=filing_due,
            ))

        return tuple(sorted(actions, key=lambda a: a.key))
