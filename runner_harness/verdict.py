from __future__ import annotations

from .models import JobRecord, TestCase


def check_test(case: TestCase, record: JobRecord) -> bool:
    """Return True when ``record`` satisfies the expectation set on ``case``.

    Only the first expectation present is evaluated, in the order ``expected``,
    ``expected_contains``, ``expected_error``. A case with no expectation fails.
    """
    stdout = (record.stdout or "").strip()

    if case.expected is not None:
        return stdout == case.expected

    if case.expected_contains is not None:
        return case.expected_contains in stdout

    if case.expected_error is not None:
        return record.sandbox_error_type == case.expected_error

    return False


__all__ = ["check_test"]
