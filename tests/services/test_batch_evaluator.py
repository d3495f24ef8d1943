"""
Tests for BatchEvaluator and TrackerLocks.

Covers:
- Input order preservation across client partitions
- Per-item failure isolation
- Injected clock for the default evaluation date
- Shared rules snapshot validation
"""

import threading
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from compliance_kernel.domain.clock import DeterministicClock
from compliance_kernel.domain.obligation import ComplianceObligation
from compliance_kernel.domain.types import ComplianceStatus, TaxpayerCategory, TaxType
from compliance_kernel.exceptions import DuplicateRuleError
from compliance_services import (
    BatchEvaluator,
    BatchItemStatus,
    BatchRunStatus,
    ComplianceEvaluator,
    EvaluationRequest,
    TrackerLocks,
)

EVAL_DATE = date(2024, 2, 15)


def _request(obligation_id: str, client_id: str, **overrides) -> EvaluationRequest:
    fields = dict(
        obligation_id=obligation_id,
        client_id=client_id,
        tax_type=TaxType.GST,
        tax_year=2023,
        taxpayer_category=TaxpayerCategory.SMALL,
        filing_due_date=date(2024, 1, 31),
        payment_due_date=date(2024, 1, 31),
        tax_liability=Decimal("20000"),
        filed_date=date(2024, 2, 10),
    )
    fields.update(overrides)
    return EvaluationRequest(obligation=ComplianceObligation(**fields))


class TestBatchEvaluation:
    def setup_method(self):
        self.batch = BatchEvaluator(max_workers=3)

    def test_results_keep_input_order(self, finance_act_rules):
        requests = [
            _request("OBL-A1", "CLIENT-A"),
            _request("OBL-B1", "CLIENT-B"),
            _request("OBL-A2", "CLIENT-A"),
            _request("OBL-C1", "CLIENT-C"),
            _request("OBL-B2", "CLIENT-B"),
        ]

        run = self.batch.evaluate_all(requests, finance_act_rules, EVAL_DATE)

        assert run.status == BatchRunStatus.COMPLETED
        assert run.total_items == run.succeeded == 5
        assert [i.obligation_id for i in run.item_results] == [
            "OBL-A1", "OBL-B1", "OBL-A2", "OBL-C1", "OBL-B2",
        ]
        assert [i.item_index for i in run.item_results] == [0, 1, 2, 3, 4]
        assert [r.obligation_id for r in run.results] == [
            "OBL-A1", "OBL-B1", "OBL-A2", "OBL-C1", "OBL-B2",
        ]

    def test_batch_matches_single_evaluation(self, finance_act_rules):
        request = _request("OBL-1", "CLIENT-1")

        run = self.batch.evaluate_all([request], finance_act_rules, EVAL_DATE)
        single = ComplianceEvaluator().evaluate(
            request.obligation, finance_act_rules, evaluation_date=EVAL_DATE,
        )

        assert run.results[0].fingerprint == single.fingerprint

    def test_failed_item_isolated(self, finance_act_rules):
        requests = [
            _request("OBL-1", "CLIENT-1"),
            _request("OBL-2", "CLIENT-1", filing_due_date=None),
            _request("OBL-3", "CLIENT-2"),
        ]

        run = self.batch.evaluate_all(requests, finance_act_rules, EVAL_DATE)

        assert run.status == BatchRunStatus.PARTIALLY_COMPLETED
        assert run.succeeded == 2
        assert run.failed == 1
        failed = run.item_results[1]
        assert failed.status == BatchItemStatus.FAILED
        assert failed.error_code == "INVALID_INPUT"
        assert failed.result is None
        assert run.item_results[2].status == BatchItemStatus.SUCCEEDED

    def test_all_items_failing(self, finance_act_rules):
        requests = [_request("OBL-1", "CLIENT-1", tax_liability=None)]

        run = self.batch.evaluate_all(requests, finance_act_rules, EVAL_DATE)

        assert run.status == BatchRunStatus.FAILED
        assert run.results == ()

    def test_empty_batch(self, finance_act_rules):
        run = self.batch.evaluate_all([], finance_act_rules, EVAL_DATE)

        assert run.status == BatchRunStatus.COMPLETED
        assert run.total_items == 0

    def test_default_date_from_clock(self, finance_act_rules):
        clock = DeterministicClock(datetime(2024, 2, 15, 9, 0, tzinfo=UTC))
        batch = BatchEvaluator(clock=clock)

        run = batch.evaluate_all([_request("OBL-1", "CLIENT-1")], finance_act_rules)

        assert run.evaluation_date == EVAL_DATE
        assert run.results[0].evaluation_date == EVAL_DATE
        assert run.results[0].status == ComplianceStatus.PENALTY_APPLIED

    def test_duplicate_rules_raise_before_any_item(self, finance_act_rules):
        rules = list(finance_act_rules) + [finance_act_rules[0]]

        with pytest.raises(DuplicateRuleError):
            self.batch.evaluate_all([_request("OBL-1", "CLIENT-1")], rules, EVAL_DATE)

    def test_invalid_worker_count(self):
        with pytest.raises(ValueError):
            BatchEvaluator(max_workers=0)

    def test_batch_logged(self, finance_act_rules, captured_logs):
        run = self.batch.evaluate_all([_request("OBL-1", "CLIENT-1")], finance_act_rules, EVAL_DATE)

        records = captured_logs()
        completed = [r for r in records if r["message"] == "batch_completed"]
        assert completed[0]["batch_id"] == run.batch_id
        evaluated = [r for r in records if r["message"] == "compliance_evaluated"]
        assert evaluated[0]["batch_id"] == run.batch_id


class TestTrackerLocks:
    def setup_method(self):
        self.locks = TrackerLocks()

    def _try_hold(self, tracker_id: str, outcomes: list) -> None:
        try:
            with self.locks.hold(tracker_id, timeout=0.05):
                outcomes.append("acquired")
        except TimeoutError:
            outcomes.append("timed_out")

    def test_hold_excludes_other_threads(self):
        outcomes = []

        with self.locks.hold("OBL-1"):
            worker = threading.Thread(target=self._try_hold, args=("OBL-1", outcomes))
            worker.start()
            worker.join()

        assert outcomes == ["timed_out"]

    def test_other_trackers_not_blocked(self):
        outcomes = []

        with self.locks.hold("OBL-1"):
            worker = threading.Thread(target=self._try_hold, args=("OBL-2", outcomes))
            worker.start()
            worker.join()

        assert outcomes == ["acquired"]

    def test_lock_released_when_last_holder_leaves(self):
        with self.locks.hold("OBL-1"):
            assert self.locks.is_held("OBL-1")
            assert len(self.locks) == 1

        assert not self.locks.is_held("OBL-1")
        assert len(self.locks) == 0

    def test_empty_registry_is_shared_with_batch(self, finance_act_rules):
        """A new, empty registry passed in is the one the batch locks on."""
        batch = BatchEvaluator(locks=self.locks)
        runs = []

        assert batch.locks is self.locks
        with self.locks.hold("OBL-1"):
            worker = threading.Thread(
                target=lambda: runs.append(
                    batch.evaluate_all([_request("OBL-1", "CLIENT-1")], finance_act_rules, EVAL_DATE)
                ),
            )
            worker.start()
            worker.join(timeout=0.2)
            assert worker.is_alive()
            assert runs == []
        worker.join()

        assert runs[0].status == BatchRunStatus.COMPLETED
        assert len(self.locks) == 0
