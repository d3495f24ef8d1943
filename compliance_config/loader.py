"""
Rule-Set Loader (``compliance_config.loader``).

Responsibility
--------------
Loads individual YAML fragment files and parses them into typed kernel
``PenaltyRule`` records and ``compliance_config.schema`` dataclasses.
This is **build/test tooling only** -- the single public entry point for
runtime rules is ``compliance_config.get_active_rule_set()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Consumed by
``compliance_config.assembler`` during rule-set assembly.  Depends on the
kernel domain only.

Invariants enforced
-------------------
* Exactly one calculation strategy per rule: a rule dict carrying both
  ``fixed_rate`` and ``fixed_amount`` (or a fixed field and an accrual
  rate, or none at all) is rejected at load time rather than guessing a
  runtime precedence.
* Amounts are parsed to ``Decimal`` through their text form; YAML floats
  never reach arithmetic as binary floats.
* ``compute_checksum`` produces a deterministic SHA-256 hash for rule-set
  identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys or bad values  -> ``RuleConfigurationError``.
* Invalid date format  -> ``ValueError`` from ``date.fromisoformat``.

Audit relevance
---------------
Every parsed rule is traceable to a specific YAML file and carries its
statutory ``legal_reference``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from compliance_config.schema import RuleSetScope
from compliance_kernel.domain.rules import (
    FixedAmountStrategy,
    FixedRateStrategy,
    PenaltyRule,
    PenaltyStrategy,
    TimeAccrualStrategy,
)
from compliance_kernel.domain.types import PenaltyType, TaxpayerCategory, TaxType
from compliance_kernel.exceptions import RuleConfigurationError

_ACCRUAL_KEYS = ("daily_rate", "monthly_rate", "annual_rate")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """
    Parse a date from YAML (string or date object).

    Raises:
        ValueError: if ``value`` is not a valid date representation.
    """
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any, field: str, rule_id: str | None = None) -> Decimal:
    """Parse a YAML scalar into Decimal via its text form."""
    if isinstance(value, bool):
        raise RuleConfigurationError(rule_id, f"{field} must be numeric, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise RuleConfigurationError(rule_id, f"{field} must be numeric, got {value!r}") from e


def _optional_decimal(data: dict[str, Any], key: str, rule_id: str) -> Decimal | None:
    value = data.get(key)
    return None if value is None else parse_decimal(value, key, rule_id)


def _parse_enum(enum_cls: type, value: Any, field: str, rule_id: str | None):
    try:
        return enum_cls(value)
    except ValueError as e:
        raise RuleConfigurationError(rule_id, f"unknown {field} {value!r}") from e


def parse_scope(data: dict[str, Any]) -> RuleSetScope:
    """Parse a RuleSetScope from a dict."""
    return RuleSetScope(
        jurisdiction=data["jurisdiction"],
        regulatory_regime=data.get("regulatory_regime", ""),
        currency=data.get("currency", "SLE"),
        effective_from=parse_date(data["effective_from"]),
        effective_to=parse_date(data["effective_to"]) if data.get("effective_to") else None,
    )


def parse_strategy(data: dict[str, Any], rule_id: str) -> PenaltyStrategy:
    """
    Build the calculation strategy for one rule dict.

    Raises:
        RuleConfigurationError: when zero or several strategies are
            described, or the accrual fields are inconsistent.
    """
    has_rate = data.get("fixed_rate") is not None
    has_amount = data.get("fixed_amount") is not None
    accrual = [k for k in _ACCRUAL_KEYS if data.get(k) is not None]

    declared = int(has_rate) + int(has_amount) + int(bool(accrual))
    if declared == 0:
        raise RuleConfigurationError(
            rule_id,
            "no calculation strategy: set one of fixed_rate, fixed_amount, "
            "daily_rate, monthly_rate or annual_rate",
        )
    if has_rate and has_amount:
        raise RuleConfigurationError(
            rule_id, "fixed_rate and fixed_amount are mutually exclusive"
        )
    if declared > 1:
        raise RuleConfigurationError(
            rule_id, "a time-accrual rule cannot also set fixed_rate or fixed_amount"
        )

    try:
        if has_rate:
            return FixedRateStrategy(rate=parse_decimal(data["fixed_rate"], "fixed_rate", rule_id))
        if has_amount:
            return FixedAmountStrategy(
                amount=parse_decimal(data["fixed_amount"], "fixed_amount", rule_id)
            )
        return TimeAccrualStrategy(
            daily_rate=_optional_decimal(data, "daily_rate", rule_id),
            monthly_rate=_optional_decimal(data, "monthly_rate", rule_id),
            annual_rate=_optional_decimal(data, "annual_rate", rule_id),
            maximum_days=data.get("maximum_days"),
        )
    except RuleConfigurationError as e:
        if e.rule_id is None:
            raise RuleConfigurationError(rule_id, e.reason) from e
        raise


def parse_rule(
    data: dict[str, Any],
    tax_type: TaxType,
    default_effective_date: date,
) -> PenaltyRule:
    """
    Parse a ``PenaltyRule`` from a fragment dict.

    Preconditions:
        - ``data`` has at least ``rule_id``, ``name`` and ``penalty_type``.
    Postconditions:
        - Returns a structurally valid frozen PenaltyRule.
    Raises:
        RuleConfigurationError: on missing keys, unknown enum values, or a
            rule that fails PenaltyRule validation.
    """
    rule_id = data.get("rule_id")
    for key in ("rule_id", "name", "penalty_type"):
        if not data.get(key):
            raise RuleConfigurationError(rule_id, f"missing required key '{key}'")

    category = data.get("taxpayer_category")
    return PenaltyRule(
        rule_id=rule_id,
        name=data["name"],
        tax_type=_parse_enum(TaxType, data.get("tax_type", tax_type.value), "tax_type", rule_id),
        penalty_type=_parse_enum(PenaltyType, data["penalty_type"], "penalty_type", rule_id),
        strategy=parse_strategy(data, rule_id),
        effective_date=(
            parse_date(data["effective_date"])
            if data.get("effective_date") else default_effective_date
        ),
        expiry_date=parse_date(data["expiry_date"]) if data.get("expiry_date") else None,
        taxpayer_category=(
            _parse_enum(TaxpayerCategory, category, "taxpayer_category", rule_id)
            if category else None
        ),
        minimum_amount=_optional_decimal(data, "minimum_amount", rule_id),
        maximum_amount=_optional_decimal(data, "maximum_amount", rule_id),
        grace_period_days=data.get("grace_period_days", 0),
        threshold_days=data.get("threshold_days"),
        threshold_amount=_optional_decimal(data, "threshold_amount", rule_id),
        is_active=data.get("is_active", True),
        priority=data.get("priority", 1),
        legal_reference=data.get("legal_reference", ""),
        description=data.get("description", ""),
    )


def parse_rule_fragment(
    data: dict[str, Any],
    default_effective_date: date,
) -> list[PenaltyRule]:
    """Parse every rule of one ``rules/*.yaml`` fragment."""
    if "tax_type" not in data:
        raise RuleConfigurationError(None, "rule fragment is missing 'tax_type'")
    tax_type = _parse_enum(TaxType, data["tax_type"], "tax_type", None)
    return [
        parse_rule(rule_data, tax_type, default_effective_date)
        for rule_data in data.get("rules", [])
    ]


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute a deterministic SHA-256 checksum of rule-set data.

    Postconditions:
        - Returns a 64-character lowercase hex string.
        - Same input always produces the same checksum.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
