"""
compliance_services._batch_types -- Frozen DTOs for batch re-evaluation.

Follows the pattern of compliance_kernel.domain.result: frozen
dataclasses with enum status fields and tuples for immutable collections.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum, unique

from compliance_kernel.domain.obligation import ComplianceObligation
from compliance_kernel.domain.penalty import CompliancePenalty
from compliance_kernel.domain.result import ComplianceResult


@unique
class BatchItemStatus(str, Enum):
    """Per-item outcome within a batch run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


@unique
class BatchRunStatus(str, Enum):
    """Run-level outcome."""

    COMPLETED = "completed"  # Every item succeeded
    PARTIALLY_COMPLETED = "partially_completed"  # Some items failed
    FAILED = "failed"  # No item succeeded


@dataclass(frozen=True)
class EvaluationRequest:
    """One obligation to re-evaluate, with its stored state."""

    obligation: ComplianceObligation
    existing_penalties: tuple[CompliancePenalty, ...] = ()
    previous_result: ComplianceResult | None = None
    open_action_keys: tuple[str, ...] = ()

    @property
    def client_id(self) -> str:
        return self.obligation.client_id


@dataclass(frozen=True)
class BatchItemResult:
    """Immutable result of evaluating one request.

    A failed item carries the error ``code`` of the raised
    ComplianceKernelError (or ``UNHANDLED_EXCEPTION``); it never aborts
    the rest of the batch.
    """

    item_index: int  # 0-indexed position in the request list
    obligation_id: str
    client_id: str
    status: BatchItemStatus
    result: ComplianceResult | None = None
    error_code: str | None = None
    error_message: str | None = None
    duration_ms: int = 0


@dataclass(frozen=True)
class BatchRunResult:
    """Immutable result of one ``BatchEvaluator.evaluate_all`` call."""

    batch_id: str
    status: BatchRunStatus
    evaluation_date: date
    total_items: int
    succeeded: int
    failed: int
    item_results: tuple[BatchItemResult, ...] = field(default_factory=tuple)
    duration_ms: int = 0

    @property
    def results(self) -> tuple[ComplianceResult, ...]:
        """Successful results in input order."""
        return tuple(i.result for i in self.item_results if i.result is not None)
