"""
Module: compliance_services.batch
Responsibility:
    Re-evaluate many obligations in parallel (the nightly recompute job):
    partition requests by client, run partitions on a thread pool, and
    isolate per-item failures.

Architecture position:
    Services -- orchestration layer.  Wraps ``ComplianceEvaluator``; the
    clock is injected so the default evaluation date is testable.

Invariants enforced:
    - Items of one client run sequentially on one worker; different
      clients run in parallel.
    - Every evaluation holds the obligation's tracker lock, shared with
      callers that apply payments, so recomputation and payment allocation
      never interleave on one ledger.
    - All items share one rules snapshot and one evaluation date.
    - A failing item is recorded, never raised; results keep input order.

Failure modes:
    - DuplicateRuleError from the shared rules snapshot is raised before
      any item runs.

Audit relevance:
    ``batch_started`` / ``batch_completed`` bracket the run under a
    ``batch_id`` bound into the LogContext of every worker, so each
    ``compliance_evaluated`` record can be traced to its batch.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import date
from uuid import uuid4

from compliance_engines import RuleCatalog
from compliance_kernel.domain.clock import Clock, SystemClock
from compliance_kernel.domain.rules import PenaltyRule
from compliance_kernel.domain.values import as_date
from compliance_kernel.exceptions import ComplianceKernelError
from compliance_kernel.logging_config import LogContext, get_logger
from compliance_services._batch_types import (
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
    EvaluationRequest,
)
from compliance_services.evaluator import ComplianceEvaluator

logger = get_logger("services.batch")


class TrackerLocks:
    """
    One lock per compliance tracker (obligation).

    Contract:
        ``hold(tracker_id)`` serializes every ledger-affecting operation on
        that tracker across threads.  A tracker's lock exists only while
        some thread holds or waits for it, so the registry is bounded by
        the number of trackers in flight.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._waiters: dict[str, int] = {}

    def _enter(self, tracker_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(tracker_id)
            if lock is None:
                lock = self._locks[tracker_id] = threading.Lock()
            self._waiters[tracker_id] = self._waiters.get(tracker_id, 0) + 1
            return lock

    def _leave(self, tracker_id: str) -> None:
        with self._guard:
            remaining = self._waiters[tracker_id] - 1
            if remaining:
                self._waiters[tracker_id] = remaining
            else:
                del self._waiters[tracker_id]
                del self._locks[tracker_id]

    @contextmanager
    def hold(self, tracker_id: str, timeout: float = -1) -> Iterator[None]:
        """
        Hold the tracker's lock for the duration of the block.

        Raises:
            TimeoutError: if ``timeout`` seconds pass without the lock.
        """
        lock = self._enter(tracker_id)
        try:
            if not lock.acquire(timeout=timeout):
                raise TimeoutError(f"Tracker {tracker_id} is held by another operation")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._leave(tracker_id)

    def is_held(self, tracker_id: str) -> bool:
        with self._guard:
            lock = self._locks.get(tracker_id)
            return lock is not None and lock.locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class BatchEvaluator:
    """
    Parallel re-evaluation of many obligations.

    Non-goals:
        - Does NOT persist results or ledgers -- the caller stores
          ``item.result.ledger.penalties`` for each succeeded item.
        - No retries; a failed item is reported and can be resubmitted.
    """

    def __init__(
        self,
        evaluator: ComplianceEvaluator | None = None,
        max_workers: int = 4,
        clock: Clock | None = None,
        locks: TrackerLocks | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._evaluator = evaluator if evaluator is not None else ComplianceEvaluator()
        self._max_workers = max_workers
        self._clock = clock if clock is not None else SystemClock()
        self._locks = locks if locks is not None else TrackerLocks()

    @property
    def locks(self) -> TrackerLocks:
        return self._locks

    def evaluate_all(
        self,
        requests: Sequence[EvaluationRequest],
        rules: Iterable[PenaltyRule],
        evaluation_date: date | None = None,
    ) -> BatchRunResult:
        """
        Evaluate every request against one rules snapshot.

        Postconditions:
            - ``item_results[i]`` corresponds to ``requests[i]``.
            - ``succeeded + failed == total_items``.
        Raises:
            DuplicateRuleError: if ``rules`` repeat a rule_id.
        """
        start = time.monotonic()
        batch_id = str(uuid4())
        eval_date = as_date(evaluation_date) if evaluation_date is not None else self._clock.today()
        snapshot = RuleCatalog(rules).rules

        partitions: dict[str, list[int]] = {}
        for index, request in enumerate(requests):
            partitions.setdefault(request.client_id, []).append(index)

        logger.info("batch_started", extra={
            "batch_id": batch_id,
            "evaluation_date": eval_date.isoformat(),
            "total_items": len(requests),
            "partition_count": len(partitions),
        })

        slots: list[BatchItemResult | None] = [None] * len(requests)

        def run_partition(indices: list[int]) -> None:
            with LogContext.bind(batch_id=batch_id):
                for index in indices:
                    slots[index] = self._evaluate_item(
                        index, requests[index], snapshot, eval_date,
                    )

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            futures = [pool.submit(run_partition, indices) for indices in partitions.values()]
            for future in futures:
                future.result()

        item_results = tuple(r for r in slots if r is not None)
        # INVARIANT: every request produced exactly one item result
        assert len(item_results) == len(requests), "Batch lost item results"

        succeeded = sum(1 for r in item_results if r.status == BatchItemStatus.SUCCEEDED)
        failed = len(item_results) - succeeded
        if failed == 0:
            status = BatchRunStatus.COMPLETED
        elif succeeded == 0:
            status = BatchRunStatus.FAILED
        else:
            status = BatchRunStatus.PARTIALLY_COMPLETED
        duration_ms = int((time.monotonic() - start) * 1000)

        logger.info("batch_completed", extra={
            "batch_id": batch_id,
            "status": status.value,
            "succeeded": succeeded,
            "failed": failed,
            "duration_ms": duration_ms,
        })
        return BatchRunResult(
            batch_id=batch_id,
            status=status,
            evaluation_date=eval_date,
            total_items=len(requests),
            succeeded=succeeded,
            failed=failed,
            item_results=item_results,
            duration_ms=duration_ms,
        )

    def _evaluate_item(
        self,
        index: int,
        request: EvaluationRequest,
        rules: tuple[PenaltyRule, ...],
        eval_date: date,
    ) -> BatchItemResult:
        obligation = request.obligation
        item_start = time.monotonic()
        try:
            with self._locks.hold(obligation.tracker_id):
                result = self._evaluator.evaluate(
                    obligation,
                    rules,
                    existing_penalties=request.existing_penalties,
                    previous_result=request.previous_result,
                    evaluation_date=eval_date,
                    open_action_keys=request.open_action_keys,
                )
        except ComplianceKernelError as exc:
            return self._failed(index, request, exc.code, str(exc), item_start)
        except Exception as exc:
            return self._failed(index, request, "UNHANDLED_EXCEPTION", str(exc), item_start)

        return BatchItemResult(
            item_index=index,
            obligation_id=obligation.obligation_id,
            client_id=obligation.client_id,
            status=BatchItemStatus.SUCCEEDED,
            result=result,
            duration_ms=int((time.monotonic() - item_start) * 1000),
        )

    @staticmethod
    def _failed(
        index: int,
        request: EvaluationRequest,
        error_code: str,
        error_message: str,
        item_start: float,
    ) -> BatchItemResult:
        obligation = request.obligation
        logger.warning("batch_item_failed", extra={
            "item_index": index,
            "obligation_id": obligation.obligation_id,
            "error_code": error_code,
            "error_message": error_message,
        })
        return BatchItemResult(
            item_index=index,
            obligation_id=obligation.obligation_id,
            client_id=obligation.client_id,
            status=BatchItemStatus.FAILED,
            error_code=error_code,
            error_message=error_message,
            duration_ms=int((time.monotonic() - item_start) * 1000),
        )
