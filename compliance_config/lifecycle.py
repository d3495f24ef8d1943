"""
Rule-set lifecycle status.

Rule sets are append-only. Each version declares its predecessor.
Only PUBLISHED sets are used for current evaluations; SUPERSEDED sets
remain selectable so historical obligations can be re-evaluated with the
rules in force at the time.
"""

from enum import Enum, unique


@unique
class RuleSetStatus(str, Enum):
    """Lifecycle status for a rule set."""

    DRAFT = "draft"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    PUBLISHED = "published"
    SUPERSEDED = "superseded"


# Allowed status transitions (from -> set of valid next states)
ALLOWED_TRANSITIONS: dict[RuleSetStatus, frozenset[RuleSetStatus]] = {
    RuleSetStatus.DRAFT: frozenset({RuleSetStatus.REVIEWED}),
    RuleSetStatus.REVIEWED: frozenset({RuleSetStatus.APPROVED, RuleSetStatus.DRAFT}),
    RuleSetStatus.APPROVED: frozenset({RuleSetStatus.PUBLISHED, RuleSetStatus.DRAFT}),
    RuleSetStatus.PUBLISHED: frozenset({RuleSetStatus.SUPERSEDED}),
    RuleSetStatus.SUPERSEDED: frozenset(),  # Terminal
}

# Statuses whose rules may drive an evaluation.
SELECTABLE_STATUSES: frozenset[RuleSetStatus] = frozenset({
    RuleSetStatus.PUBLISHED,
    RuleSetStatus.SUPERSEDED,
})


def validate_transition(current: RuleSetStatus, target: RuleSetStatus) -> bool:
    """Check if a status transition is valid."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())
