"""
compliance_services -- orchestration above the pure compliance engines.

``ComplianceEvaluator`` evaluates one obligation; ``BatchEvaluator`` runs
the partitioned parallel recompute across many obligations.
"""

from compliance_services._batch_types import (
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
    EvaluationRequest,
)
from compliance_services.batch import BatchEvaluator, TrackerLocks
from compliance_services.evaluator import ComplianceEvaluator

__all__ = [
    "ComplianceEvaluator",
    "BatchEvaluator",
    "TrackerLocks",
    "EvaluationRequest",
    "BatchItemResult",
    "BatchItemStatus",
    "BatchRunResult",
    "BatchRunStatus",
]
