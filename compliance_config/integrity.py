"""
Rule-set integrity -- checksum pinning for approved rule sets.

When a rule-set directory contains an APPROVED_FINGERPRINT file, the
assembled checksum must match the pinned value.  This prevents
unauthorized or accidental edits to published penalty rates.

The pin file is a single line: the SHA-256 hex string produced by
``assemble_from_directory()``'s ``checksum`` field.

If no APPROVED_FINGERPRINT file exists, the check is skipped
(draft workflow).
"""

from __future__ import annotations

from pathlib import Path

from compliance_kernel.exceptions import RuleSetIntegrityError

PINFILE_NAME = "APPROVED_FINGERPRINT"


def read_pinned_checksum(rule_set_dir: Path) -> str | None:
    """Read the APPROVED_FINGERPRINT file from a rule-set directory.

    Returns:
        The pinned SHA-256 hex string, or None if no pin file exists.
    """
    pin_path = rule_set_dir / PINFILE_NAME
    if not pin_path.is_file():
        return None
    return pin_path.read_text().strip()


def verify_checksum_pin(
    rule_set_id: str,
    checksum: str,
    rule_set_dir: Path,
) -> None:
    """Verify that the assembled checksum matches the pin file.

    No-op if no APPROVED_FINGERPRINT file exists.

    Raises:
        RuleSetIntegrityError: If pin exists and checksum does not match.
    """
    pinned = read_pinned_checksum(rule_set_dir)
    if pinned is None:
        return

    if checksum != pinned:
        raise RuleSetIntegrityError(
            rule_set_id=rule_set_id,
            expected=pinned,
            actual=checksum,
            pin_path=str(rule_set_dir / PINFILE_NAME),
        )
