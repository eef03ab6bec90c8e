#!filepath: flowexpect/runtime/assertion_log.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from flowexpect.utils.errors import AssertionFailure


@dataclass
class AssertionLog:
    """
    Per-test (per retry attempt) record of assertion outcomes.

    Every judged assertion lands here exactly once, as a pass or as a
    failure; the host raises the failures once the flow is idle.
    """

    passed: int = 0
    failures: List[AssertionFailure] = field(default_factory=list)

    def record_pass(self) -> None:
        self.passed += 1

    def record_failure(self, failure: AssertionFailure) -> None:
        self.failures.append(failure)

    @property
    def total(self) -> int:
        return self.passed + len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        if not self.failures:
            return
        if len(self.failures) == 1:
            raise self.failures[0]
        lines = "\n".join(f"  {i}. {f}" for i, f in enumerate(self.failures, 1))
        raise AssertionFailure(f"{len(self.failures)} expectations failed:\n{lines}") from self.failures[0]
