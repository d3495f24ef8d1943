"""
Rule-Set Assembler (``compliance_config.assembler``).

Responsibility
--------------
Composes a ``RuleSet`` from a directory of YAML fragment files: a
``root.yaml`` holding the versioning envelope and one ``rules/*.yaml``
fragment per tax type.  This allows each tax regime's provisions to be
maintained and reviewed independently while producing a single,
checksummed rule set.

Directory structure::

    sets/<rule_set>/
        root.yaml                 -- rule_set_id, version, status, scope
        APPROVED_FINGERPRINT      -- optional checksum pin
        rules/
            income_tax.yaml
            gst.yaml
            ...

Failure modes
-------------
* Missing directory or ``root.yaml``  -> ``AssemblyError``.
* Malformed root metadata  -> ``AssemblyError``.
* Invalid rule data  -> ``RuleConfigurationError`` propagated from the loader.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from compliance_config.lifecycle import RuleSetStatus
from compliance_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_rule_fragment,
    parse_scope,
)
from compliance_config.schema import RuleSet
from compliance_kernel.domain.rules import PenaltyRule
from compliance_kernel.exceptions import AssemblyError


def assemble_from_directory(fragment_dir: Path) -> RuleSet:
    """
    Assemble a RuleSet from a directory of YAML fragments.

    Preconditions:
        - ``fragment_dir`` contains a ``root.yaml``.
    Postconditions:
        - Rules are ordered by fragment file name, then file order.
        - ``checksum`` covers root metadata and every rule.
    Raises:
        AssemblyError: if the directory or root metadata is malformed.
        RuleConfigurationError: if a rule fails to parse.
    """
    if not fragment_dir.is_dir():
        raise AssemblyError(f"Fragment directory not found: {fragment_dir}")

    # 1. Load root.yaml (required)
    root_path = fragment_dir / "root.yaml"
    if not root_path.exists():
        raise AssemblyError(f"root.yaml not found in {fragment_dir}")
    root_data = load_yaml_file(root_path)

    for key in ("rule_set_id", "scope"):
        if key not in root_data:
            raise AssemblyError(f"root.yaml in {fragment_dir} is missing '{key}'")

    # 2. Parse root metadata
    try:
        scope = parse_scope(root_data["scope"])
        status = RuleSetStatus(root_data.get("status", "draft"))
    except (KeyError, ValueError) as e:
        raise AssemblyError(f"Invalid root metadata in {root_path}: {e}") from e

    # 3. Load every rule fragment from rules/
    rules: list[PenaltyRule] = []
    source_files: list[str] = []
    rules_dir = fragment_dir / "rules"
    if rules_dir.is_dir():
        for fragment_file in sorted(rules_dir.glob("*.yaml")):
            fragment = load_yaml_file(fragment_file)
            rules.extend(parse_rule_fragment(fragment, scope.effective_from))
            source_files.append(fragment_file.name)

    # 4. Compute checksum over all assembled data
    all_data: dict[str, Any] = {
        "root": root_data,
        "rules": [r.to_dict() for r in rules],
    }
    checksum = compute_checksum(all_data)

    # INVARIANT: checksum must be a non-empty SHA-256 hex digest.
    assert checksum and len(checksum) == 64, (
        f"Checksum must be a 64-char SHA-256 hex digest, got {checksum!r}"
    )

    return RuleSet(
        rule_set_id=root_data["rule_set_id"],
        version=root_data.get("version", 1),
        status=status,
        scope=scope,
        rules=tuple(rules),
        checksum=checksum,
        predecessor=root_data.get("predecessor"),
        description=root_data.get("description", ""),
        source_files=tuple(source_files),
    )
