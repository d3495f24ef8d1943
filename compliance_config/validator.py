"""
Rule-Set Validator (``compliance_config.validator``).

Responsibility
--------------
Validates an assembled ``RuleSet`` before it is handed to the runtime,
checking set-level properties that no single ``PenaltyRule`` can verify
on its own.

Architecture position
---------------------
**Config layer** -- build-time validation.  Called by
``compliance_config.get_active_rule_set`` after assembly.  Depends on the
kernel domain only.

Invariants enforced
-------------------
* Rule-id uniqueness -- duplicate ``rule_id`` values are errors.
* Non-empty -- a rule set with no rules is an error.
* Unambiguous precedence -- two active rules with the same tax type,
  penalty type, category, priority and effective date whose windows
  overlap are reported as warnings (selection falls back to rule_id).
* Legal traceability -- rules without a ``legal_reference`` are warnings.

Failure modes
-------------
* Validation errors  -> the rule set MUST NOT be used.
* Validation warnings  -> the rule set may be used but should be reviewed.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from compliance_config.schema import RuleSet
from compliance_kernel.domain.rules import PenaltyRule


@dataclass
class RuleSetValidationResult:
    """
    Result of rule-set validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block use but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_rule_set(rule_set: RuleSet) -> RuleSetValidationResult:
    """
    Validate a rule set.

    Preconditions:
        - ``rule_set`` is a fully assembled ``RuleSet``.
    Postconditions:
        - Returns a ``RuleSetValidationResult``; never raises.
    """
    result = RuleSetValidationResult()

    if not rule_set.rules:
        result.add_error(f"Rule set {rule_set.rule_set_id} contains no rules")
        return result

    _validate_unique_ids(rule_set, result)
    _validate_precedence(rule_set, result)
    _validate_legal_references(rule_set, result)

    return result


def _validate_unique_ids(rule_set: RuleSet, result: RuleSetValidationResult) -> None:
    counts = Counter(r.rule_id for r in rule_set.rules)
    for rule_id, count in sorted(counts.items()):
        if count > 1:
            result.add_error(f"Duplicate rule_id '{rule_id}' ({count} occurrences)")


def _windows_overlap(a: PenaltyRule, b: PenaltyRule) -> bool:
    a_before_b = a.expiry_date is not None and a.expiry_date <= b.effective_date
    b_before_a = b.expiry_date is not None and b.expiry_date <= a.effective_date
    return not (a_before_b or b_before_a)


def _validate_precedence(rule_set: RuleSet, result: RuleSetValidationResult) -> None:
    groups: dict[tuple, list[PenaltyRule]] = {}
    for rule in rule_set.rules:
        if not rule.is_active:
            continue
        key = (
            rule.tax_type,
            rule.penalty_type,
            rule.taxpayer_category,
            rule.priority,
            rule.effective_date,
        )
        groups.setdefault(key, []).append(rule)

    for group in groups.values():
        ordered = sorted(group, key=lambda r: r.rule_id)
        for i, first in enumerate(ordered):
            for second in ordered[i + 1:]:
                if _windows_overlap(first, second):
                    result.add_warning(
                        f"Rules '{first.rule_id}' and '{second.rule_id}' share "
                        f"tax type, penalty type, category, priority and "
                        f"effective date; selection falls back to rule_id"
                    )


def _validate_legal_references(rule_set: RuleSet, result: RuleSetValidationResult) -> None:
    for rule in rule_set.rules:
        if not rule.legal_reference:
            result.add_warning(f"Rule '{rule.rule_id}' has no legal_reference")
