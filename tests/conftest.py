"""
Pytest fixtures for the compliance engine test suite.

Provides:
- Structured logging configured once per session
- LogContext isolation between tests
- A JSON log capture fixture
- The bundled Sierra Leone Finance Act 2020 rule set
"""

import json
import logging
from datetime import date
from io import StringIO

import pytest

from compliance_config import get_active_rule_set
from compliance_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture compliance_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            evaluator.evaluate(...)
            logs = captured_logs()
            assert any(r["message"] == "compliance_evaluated" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("compliance_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Rule-set fixtures
# =============================================================================


@pytest.fixture(scope="session")
def finance_act_rule_set():
    """The bundled Finance Act 2020 rule set, as served at runtime."""
    return get_active_rule_set("SL", date(2024, 1, 1))


@pytest.fixture(scope="session")
def finance_act_rules(finance_act_rule_set):
    return finance_act_rule_set.rules
