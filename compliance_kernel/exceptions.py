"""
Typed Exception Hierarchy for the Compliance Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Compliance evaluation feeds statutory penalties and notices to taxpayers.
Callers must be able to react to failures precisely: an invalid obligation
is surfaced as a validation error on that obligation, an arithmetic overflow
aborts the evaluation and leaves the last known-good result in place, and a
broken rule set blocks deployment.  Parsing message strings for that is
fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - RIGHT way:
    try:
        result = evaluator.evaluate(obligation=obligation, rules=rules, ...)
    except InvalidInputError as e:
        api_response(code=e.code, obligation=e.obligation_id, errors=e.errors)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ComplianceKernelError:

    ComplianceKernelError (base)
    |
    +-- InputError
    |   +-- InvalidInputError
    |
    +-- RuleError
    |   +-- RuleConfigurationError
    |   +-- DuplicateRuleError
    |
    +-- CalculationError
    |   +-- ArithmeticOverflowError
    |
    +-- LedgerError
    |   +-- PenaltyNotFoundError
    |   +-- PenaltyImmutableError
    |   +-- DuplicatePenaltyError
    |   +-- InvalidPaymentError
    |
    +-- RuleSetError
        +-- RuleSetNotFoundError
        +-- RuleSetValidationError
        +-- RuleSetIntegrityError
        +-- AssemblyError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Input           | INVALID_INPUT               | Obligation missing dates/amounts
----------------|-----------------------------|-----------------------------------------
Rule            | RULE_CONFIGURATION_INVALID  | Rule fields inconsistent (min > max, ...)
                | DUPLICATE_RULE              | Two rules share a rule_id
----------------|-----------------------------|-----------------------------------------
Calculation     | ARITHMETIC_OVERFLOW         | Amount beyond decimal(18,2) range
----------------|-----------------------------|-----------------------------------------
Ledger          | PENALTY_NOT_FOUND           | Penalty ID not in ledger
                | PENALTY_IMMUTABLE           | Modifying a settled penalty
                | DUPLICATE_PENALTY           | Two ledger rows share a penalty key
                | INVALID_PAYMENT             | Payment zero/negative/non-decimal
----------------|-----------------------------|-----------------------------------------
Rule set        | RULE_SET_NOT_FOUND          | No set covers jurisdiction/date
                | RULE_SET_VALIDATION_FAILED  | Set-level validation errors
                | RULE_SET_INTEGRITY_MISMATCH | Checksum differs from approved pin
                | ASSEMBLY_FAILED             | Fragment directory malformed

"No applicable rule" is NOT an error: rule selection returns an empty list
and the evaluator records that no penalty of that type applies.

===============================================================================
"""


class ComplianceKernelError(Exception):
    """
    Base exception for all compliance kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "COMPLIANCE_KERNEL_ERROR"


# Input-related exceptions


class InputError(ComplianceKernelError):
    """Base exception for invalid engine inputs."""

    code: str = "INPUT_ERROR"


class InvalidInputError(InputError):
    """
    Obligation snapshot is missing required dates or amounts.

    Evaluation fails fast: no partial result is produced.
    """

    code: str = "INVALID_INPUT"

    def __init__(self, obligation_id: str | None, errors: list[str] | tuple[str, ...]):
        self.obligation_id = obligation_id
        self.errors = tuple(errors)
        super().__init__(
            f"Invalid obligation {obligation_id or '<unknown>'}: "
            + "; ".join(self.errors)
        )


# Rule-related exceptions


class RuleError(ComplianceKernelError):
    """Base exception for penalty rule errors."""

    code: str = "RULE_ERROR"


class RuleConfigurationError(RuleError):
    """Penalty rule fields are inconsistent or incomplete."""

    code: str = "RULE_CONFIGURATION_INVALID"

    def __init__(self, rule_id: str | None, reason: str):
        self.rule_id = rule_id
        self.reason = reason
        super().__init__(f"Invalid penalty rule {rule_id or '<unnamed>'}: {reason}")


class DuplicateRuleError(RuleError):
    """Two rules in one catalog share a rule_id."""

    code: str = "DUPLICATE_RULE"

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Duplicate penalty rule id: {rule_id}")


# Calculation-related exceptions


class CalculationError(ComplianceKernelError):
    """Base exception for penalty arithmetic errors."""

    code: str = "CALCULATION_ERROR"


class ArithmeticOverflowError(CalculationError):
    """
    Amount exceeds the representable decimal range.

    Fatal for the obligation being evaluated; the caller keeps its prior
    result.
    """

    code: str = "ARITHMETIC_OVERFLOW"

    def __init__(self, field: str, value: str, limit: str):
        self.field = field
        self.value = value
        self.limit = limit
        super().__init__(
            f"Arithmetic overflow in {field}: {value} exceeds {limit}"
        )


# Ledger-related exceptions


class LedgerError(ComplianceKernelError):
    """Base exception for penalty ledger errors."""

    code: str = "LEDGER_ERROR"


class PenaltyNotFoundError(LedgerError):
    """Penalty with given ID is not in the ledger."""

    code: str = "PENALTY_NOT_FOUND"

    def __init__(self, penalty_id: str):
        self.penalty_id = penalty_id
        super().__init__(f"Penalty not found: {penalty_id}")


class PenaltyImmutableError(LedgerError):
    """Attempted to modify a penalty that is paid in full or waived."""

    code: str = "PENALTY_IMMUTABLE"

    def __init__(self, penalty_id: str, operation: str):
        self.penalty_id = penalty_id
        self.operation = operation
        super().__init__(
            f"Cannot {operation} penalty {penalty_id}: settled penalties are immutable"
        )


class DuplicatePenaltyError(LedgerError):
    """Two ledger rows carry the same (rule_id, penalty_type, due_date) key."""

    code: str = "DUPLICATE_PENALTY"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Duplicate penalty key in ledger: {key}")


class InvalidPaymentError(LedgerError):
    """Payment amount is not a positive decimal."""

    code: str = "INVALID_PAYMENT"

    def __init__(self, amount: str):
        self.amount = amount
        super().__init__(f"Payment amount must be a positive Decimal, got {amount}")


# Rule-set (configuration) exceptions


class RuleSetError(ComplianceKernelError):
    """Base exception for rule-set configuration errors."""

    code: str = "RULE_SET_ERROR"


class RuleSetNotFoundError(RuleSetError):
    """No rule set covers the requested jurisdiction and date."""

    code: str = "RULE_SET_NOT_FOUND"

    def __init__(self, jurisdiction: str, as_of_date: str, search_path: str):
        self.jurisdiction = jurisdiction
        self.as_of_date = as_of_date
        self.search_path = search_path
        super().__init__(
            f"No rule set found for jurisdiction='{jurisdiction}' "
            f"as_of_date={as_of_date} in {search_path}"
        )


class RuleSetValidationError(RuleSetError):
    """Rule set failed set-level validation."""

    code: str = "RULE_SET_VALIDATION_FAILED"

    def __init__(self, rule_set_id: str, errors: list[str]):
        self.rule_set_id = rule_set_id
        self.errors = tuple(errors)
        super().__init__(
            f"Rule set {rule_set_id} validation failed:\n"
            + "\n".join(f"  - {e}" for e in self.errors)
        )


class RuleSetIntegrityError(RuleSetError):
    """Assembled rule-set checksum does not match the approved pin."""

    code: str = "RULE_SET_INTEGRITY_MISMATCH"

    def __init__(self, rule_set_id: str, expected: str, actual: str, pin_path: str):
        self.rule_set_id = rule_set_id
        self.expected = expected
        self.actual = actual
        self.pin_path = pin_path
        super().__init__(
            f"Rule set integrity check failed for '{rule_set_id}': "
            f"pinned checksum {expected[:16]}... != "
            f"assembled checksum {actual[:16]}... "
            f"(pin file: {pin_path})"
        )


class AssemblyError(RuleSetError):
    """Rule-set fragment directory is missing or malformed."""

    code: str = "ASSEMBLY_FAILED"
