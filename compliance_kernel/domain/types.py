"""
compliance_kernel.domain.types -- Enumerations shared by every layer.

All enums are ``str, Enum`` so they serialize to their value in JSON logs,
canonical hashes, and YAML rule sets.
"""

from __future__ import annotations

from enum import Enum, unique


@unique
class TaxType(str, Enum):
    """Tax regimes covered by the rule sets."""

    INCOME_TAX = "income_tax"
    GST = "gst"
    PAYROLL_TAX = "payroll_tax"
    EXCISE_DUTY = "excise_duty"
    WITHHOLDING_TAX = "withholding_tax"


@unique
class PenaltyType(str, Enum):
    """Statutory penalty categories."""

    LATE_FILING = "late_filing"
    LATE_PAYMENT = "late_payment"
    NON_FILING = "non_filing"
    UNDER_DECLARATION = "under_declaration"
    INTEREST = "interest"
    ADMINISTRATIVE = "administrative"  # Assessed manually
    CRIMINAL = "criminal"  # Assessed by the courts


# Penalty types the engine computes itself, in evaluation order.
AUTOMATIC_PENALTY_TYPES: tuple[PenaltyType, ...] = (
    PenaltyType.LATE_FILING,
    PenaltyType.NON_FILING,
    PenaltyType.LATE_PAYMENT,
    PenaltyType.INTEREST,
    PenaltyType.UNDER_DECLARATION,
)

# Penalty types measured against the filing due date.
FILING_PENALTY_TYPES: frozenset[PenaltyType] = frozenset({
    PenaltyType.LATE_FILING,
    PenaltyType.NON_FILING,
    PenaltyType.UNDER_DECLARATION,
})

# Penalty types measured against the payment due date, on the unpaid balance.
PAYMENT_PENALTY_TYPES: frozenset[PenaltyType] = frozenset({
    PenaltyType.LATE_PAYMENT,
    PenaltyType.INTEREST,
})


@unique
class TaxpayerCategory(str, Enum):
    """Revenue-authority taxpayer segment."""

    LARGE = "large"
    MEDIUM = "medium"
    SMALL = "small"
    MICRO = "micro"


@unique
class ComplianceStatus(str, Enum):
    """Compliance state of one obligation.

    COMPLIANT -> AT_RISK -> NON_COMPLIANT -> PENALTY_APPLIED is the
    escalation path; UNDER_REVIEW and EXEMPTED are side states.
    """

    COMPLIANT = "compliant"
    AT_RISK = "at_risk"
    NON_COMPLIANT = "non_compliant"
    PENALTY_APPLIED = "penalty_applied"
    UNDER_REVIEW = "under_review"
    EXEMPTED = "exempted"


# Escalation rank of the main-path statuses.
STATUS_RANK: dict[ComplianceStatus, int] = {
    ComplianceStatus.COMPLIANT: 0,
    ComplianceStatus.AT_RISK: 1,
    ComplianceStatus.NON_COMPLIANT: 2,
    ComplianceStatus.PENALTY_APPLIED: 3,
}

SIDE_STATUSES: frozenset[ComplianceStatus] = frozenset({
    ComplianceStatus.UNDER_REVIEW,
    ComplianceStatus.EXEMPTED,
})


@unique
class RiskLevel(str, Enum):
    """Coarse risk bucket derived from the compliance score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@unique
class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
    URGENT = "urgent"


SEVERITY_BY_RISK: dict[RiskLevel, AlertSeverity] = {
    RiskLevel.LOW: AlertSeverity.INFO,
    RiskLevel.MEDIUM: AlertSeverity.WARNING,
    RiskLevel.HIGH: AlertSeverity.CRITICAL,
    RiskLevel.CRITICAL: AlertSeverity.URGENT,
}


@unique
class AlertType(str, Enum):
    DEADLINE_REMINDER = "deadline_reminder"
    STATUS_ESCALATED = "status_escalated"
    PENALTY_APPLIED = "penalty_applied"
    COMPLIANCE_RESTORED = "compliance_restored"
    STATUS_CHANGED = "status_changed"


@unique
class ActionType(str, Enum):
    """Remediation actions a taxpayer can be asked to take."""

    FILE_RETURN = "file_return"
    MAKE_PAYMENT = "make_payment"
    PAY_PENALTY = "pay_penalty"
    SUBMIT_DOCUMENTS = "submit_documents"
