"""
compliance_config -- single public entrypoint for penalty rule sets.

Responsibility:
    Provides the ONLY way to obtain penalty rules at runtime through
    ``get_active_rule_set()``.  Engines never read YAML or environment
    variables; they receive ``PenaltyRule`` records from the caller.
    YAML loading is internal build/test tooling.

Architecture position:
    Configuration -- YAML-driven rule sets, load-time validation.
    Sits above ``compliance_kernel`` and below ``compliance_services``.
    The kernel and engines MUST NEVER import from ``compliance_config``.

Invariants enforced:
    - Single entrypoint: all runtime rules flow through ``get_active_rule_set()``.
    - Load-time validation: a rule set must pass ``validate_rule_set``
      before it is returned.
    - Checksum pinning: when an APPROVED_FINGERPRINT file exists, the
      assembled checksum must match the pinned value.
    - Only PUBLISHED or SUPERSEDED rule sets are selectable.

Failure modes:
    - ``RuleSetNotFoundError`` -- no selectable rule set covers the
      requested jurisdiction / date.
    - ``RuleSetValidationError`` -- set-level validation failed.
    - ``RuleConfigurationError`` -- a rule failed to parse.
    - ``RuleSetIntegrityError`` -- checksum mismatch against an approved pin.

Audit relevance:
    Every successful ``get_active_rule_set()`` call emits a
    ``COMPLIANCE_RULESET_TRACE`` log entry containing the rule_set_id,
    version, checksum, scope and rule count.  This ties each computed
    penalty back to the exact rule version that produced it.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

from compliance_config.assembler import assemble_from_directory
from compliance_config.integrity import verify_checksum_pin
from compliance_config.lifecycle import SELECTABLE_STATUSES, RuleSetStatus
from compliance_config.schema import RuleSet, RuleSetScope
from compliance_config.validator import validate_rule_set
from compliance_kernel.exceptions import RuleSetNotFoundError, RuleSetValidationError
from compliance_kernel.logging_config import get_logger

logger = get_logger("config")

# Default rule sets directory
_DEFAULT_SETS_DIR = Path(__file__).parent / "sets"

__all__ = [
    "RuleSet",
    "RuleSetScope",
    "RuleSetStatus",
    "get_active_rule_set",
]


def get_active_rule_set(
    jurisdiction: str,
    as_of_date: date,
    config_dir: Path | None = None,
) -> RuleSet:
    """The ONLY public rule-set entrypoint.

    Contract:
        Scans every rule-set directory, keeps those whose scope covers
        ``jurisdiction`` on ``as_of_date`` and whose status is selectable,
        and returns the PUBLISHED one with the highest version (falling
        back to the highest SUPERSEDED version).

    Guarantees:
        - The returned ``RuleSet`` has passed ``validate_rule_set`` and
          (when applicable) checksum-pin verification.
        - A ``COMPLIANCE_RULESET_TRACE`` log entry is emitted on every
          successful call.

    Non-goals:
        - No caching across calls; callers hold the returned set for the
          duration of an evaluation batch.

    Raises:
        RuleSetNotFoundError: If no selectable rule set matches.
        RuleSetValidationError: If validation fails.
        RuleConfigurationError: If a rule fails to parse.
        RuleSetIntegrityError: If APPROVED_FINGERPRINT exists and does
            not match the assembled checksum.
    """
    sets_dir = config_dir or _DEFAULT_SETS_DIR

    rule_set, rule_set_dir = _find_matching_rule_set(sets_dir, jurisdiction, as_of_date)

    validation = validate_rule_set(rule_set)
    if not validation.is_valid:
        raise RuleSetValidationError(rule_set.rule_set_id, validation.errors)
    for warning in validation.warnings:
        logger.warning(
            "rule_set_validation_warning",
            extra={"rule_set_id": rule_set.rule_set_id, "warning": warning},
        )

    logger.info(
        "COMPLIANCE_RULESET_TRACE",
        extra={
            "trace_type": "COMPLIANCE_RULESET_TRACE",
            "rule_set_id": rule_set.rule_set_id,
            "rule_set_version": rule_set.version,
            "rule_set_status": rule_set.status.value,
            "checksum": rule_set.checksum,
            "scope_jurisdiction": rule_set.scope.jurisdiction,
            "scope_regime": rule_set.scope.regulatory_regime,
            "rule_count": len(rule_set.rules),
        },
    )

    verify_checksum_pin(
        rule_set_id=rule_set.rule_set_id,
        checksum=rule_set.checksum,
        rule_set_dir=rule_set_dir,
    )

    return rule_set


def _find_matching_rule_set(
    sets_dir: Path, jurisdiction: str, as_of_date: date
) -> tuple[RuleSet, Path]:
    """Find the selectable rule set for a jurisdiction and date.

    Raises:
        RuleSetNotFoundError: If ``sets_dir`` does not exist or nothing
            matches.
    """
    if not sets_dir.is_dir():
        raise RuleSetNotFoundError(jurisdiction, as_of_date.isoformat(), str(sets_dir))

    candidates: list[tuple[RuleSet, Path]] = []
    for subdir in sorted(sets_dir.iterdir()):
        if not subdir.is_dir() or not (subdir / "root.yaml").exists():
            continue
        rule_set = assemble_from_directory(subdir)
        if rule_set.status not in SELECTABLE_STATUSES:
            continue
        if rule_set.scope.covers(jurisdiction, as_of_date):
            candidates.append((rule_set, subdir))

    if not candidates:
        raise RuleSetNotFoundError(jurisdiction, as_of_date.isoformat(), str(sets_dir))

    # Prefer PUBLISHED, then highest version
    published = [(s, p) for s, p in candidates if s.status == RuleSetStatus.PUBLISHED]
    pool = published or candidates
    return max(pool, key=lambda pair: pair[0].version)
