"""
Module: compliance_services.evaluator
Responsibility:
    Orchestrate one compliance evaluation: validate the obligation
    snapshot, select the winning rule per automatic penalty type, compute
    penalties, reconcile them into the existing ledger, score the
    obligation, and detect status transitions and required actions.

Architecture position:
    Services -- orchestration layer above the pure engines.
    Receives rules from the caller (normally
    ``compliance_config.get_active_rule_set(...).rules``); never reads
    configuration or the clock itself.

Invariants enforced:
    - Fail fast: an invalid obligation raises before any computation.
    - Rule applicability, grace, clamp and exact-decimal invariants are
      enforced by the engines this service wires together.
    - Determinism: identical inputs produce a byte-identical
      ``ComplianceResult.to_dict()``.
    - Idempotent re-evaluation: re-running with the previous result and
      ledger produces no new alerts and no new actions.

Failure modes:
    - InvalidInputError: missing or malformed obligation fields.
    - DuplicateRuleError: the supplied rules repeat a rule_id.
    - ArithmeticOverflowError: logged at ERROR and re-raised.
    - DuplicatePenaltyError: the existing ledger repeats a key.

Audit relevance:
    Emits ``compliance_evaluated`` with status, score, risk and ledger
    totals under a LogContext carrying client, obligation and tracker ids,
    so every engine trace of one evaluation can be correlated.

Usage:
    evaluator = ComplianceEvaluator()
    result = evaluator.evaluate(
        obligation,
        rule_set.rules,
        existing_penalties=stored_penalties,
        previous_result=last_result,
        evaluation_date=date(2024, 3, 1),
    )
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import date

from compliance_engines import (
    AlertEngine,
    ComplianceScorer,
    PenaltyCalculator,
    PenaltyLedger,
    RuleCatalog,
)
from compliance_kernel.domain.obligation import ComplianceObligation, validate_obligation
from compliance_kernel.domain.penalty import CompliancePenalty
from compliance_kernel.domain.result import ComplianceResult
from compliance_kernel.domain.rules import PenaltyRule
from compliance_kernel.domain.types import AUTOMATIC_PENALTY_TYPES, PenaltyType
from compliance_kernel.domain.values import as_date
from compliance_kernel.exceptions import ArithmeticOverflowError
from compliance_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.evaluator")


class ComplianceEvaluator:
    """
    Single-obligation compliance orchestrator.

    Contract:
        ``evaluate`` is a pure function of its arguments; the evaluator
        holds only stateless engine instances and may be shared across
        threads.
    Guarantees:
        - ``result.penalties`` are the penalties computed by this run as
          they stand in the reconciled ledger (ids, payments and waivers
          preserved).
        - ``result.ledger.penalties`` is the full ledger to persist.
    Non-goals:
        - Persistence, notification delivery and payment capture are
          caller concerns.
    """

    def __init__(
        self,
        calculator: PenaltyCalculator | None = None,
        ledger: PenaltyLedger | None = None,
        scorer: ComplianceScorer | None = None,
        alert_engine: AlertEngine | None = None,
    ) -> None:
        self._calculator = calculator if calculator is not None else PenaltyCalculator()
        self._ledger = ledger if ledger is not None else PenaltyLedger()
        self._scorer = scorer if scorer is not None else ComplianceScorer()
        self._alert_engine = alert_engine if alert_engine is not None else AlertEngine()

    def evaluate(
        self,
        obligation: ComplianceObligation,
        rules: Iterable[PenaltyRule],
        existing_penalties: Sequence[CompliancePenalty] = (),
        previous_result: ComplianceResult | None = None,
        *,
        evaluation_date: date,
        open_action_keys: Iterable[str] = (),
    ) -> ComplianceResult:
        """
        Evaluate one obligation as of ``evaluation_date``.

        Preconditions:
            - ``rules`` have unique rule ids.
            - ``existing_penalties`` is this tracker's stored ledger.
        Postconditions:
            - No penalties are computed for exempt obligations.
            - ``result.alerts`` holds only alerts new since
              ``previous_result``.
        Raises:
            InvalidInputError: if the obligation snapshot is invalid.
            ArithmeticOverflowError: if an amount exceeds decimal(18,2).
        """
        eval_date = as_date(evaluation_date)
        validate_obligation(obligation)

        with LogContext.bind(
            client_id=obligation.client_id,
            obligation_id=obligation.obligation_id,
            tracker_id=obligation.tracker_id,
        ):
            try:
                return self._evaluate(
                    obligation, rules, existing_penalties,
                    previous_result, eval_date, open_action_keys,
                )
            except ArithmeticOverflowError as e:
                logger.error("evaluation_overflow", exc_info=True, extra={
                    "tax_type": obligation.tax_type.value,
                    "evaluation_date": eval_date.isoformat(),
                    "field": e.field,
                    "limit": e.limit,
                })
                raise

    def _evaluate(
        self,
        obligation: ComplianceObligation,
        rules: Iterable[PenaltyRule],
        existing_penalties: Sequence[CompliancePenalty],
        previous_result: ComplianceResult | None,
        eval_date: date,
        open_action_keys: Iterable[str],
    ) -> ComplianceResult:
        catalog = RuleCatalog(rules)

        selected: dict[PenaltyType, PenaltyRule] = {}
        computed: list[CompliancePenalty] = []
        if not obligation.is_exempt:
            for penalty_type in AUTOMATIC_PENALTY_TYPES:
                rule = catalog.select_rule(
                    obligation.tax_type, penalty_type,
                    obligation.taxpayer_category, eval_date,
                )
                if rule is None:
                    logger.debug("no_applicable_rule", extra={
                        "tax_type": obligation.tax_type.value,
                        "penalty_type": penalty_type.value,
                        "category": obligation.taxpayer_category.value,
                    })
                    continue
                selected[penalty_type] = rule
                penalty = self._calculator.compute(rule, obligation, eval_date)
                if penalty is not None:
                    computed.append(penalty)

        summary = self._ledger.reconcile(existing_penalties, computed)
        computed_keys = {p.key for p in computed}
        penalties = tuple(p for p in summary.penalties if p.key in computed_keys)

        filing_rule = selected.get(PenaltyType.LATE_FILING)
        payment_rule = selected.get(PenaltyType.LATE_PAYMENT)
        scored = self._scorer.score(
            obligation,
            summary.penalties,
            eval_date,
            filing_grace_days=filing_rule.grace_period_days if filing_rule else 0,
            payment_grace_days=payment_rule.grace_period_days if payment_rule else 0,
        )

        preliminary = ComplianceResult(
            obligation_id=obligation.obligation_id,
            client_id=obligation.client_id,
            evaluation_date=eval_date,
            status=scored.status,
            risk_level=scored.risk_level,
            score=scored.score,
            breakdown=scored.breakdown,
            penalties=penalties,
            ledger=summary,
        )

        outcome = self._alert_engine.detect_transitions(
            previous_result, preliminary, obligation, open_action_keys,
        )
        result = replace(
            preliminary,
            alerts=outcome.alerts,
            actions=outcome.actions,
            new_actions=outcome.new_actions,
            resolved_action_keys=outcome.resolved_action_keys,
        )

        logger.info("compliance_evaluated", extra={
            "tax_type": obligation.tax_type.value,
            "evaluation_date": eval_date.isoformat(),
            "status": result.status.value,
            "previous_status": previous_result.status.value if previous_result else None,
            "score": str(result.score),
            "risk_level": result.risk_level.value,
            "penalty_count": len(penalties),
            "penalty_outstanding": str(summary.outstanding),
            "alert_count": len(result.alerts),
            "new_action_count": len(result.new_actions),
        })
        return result
