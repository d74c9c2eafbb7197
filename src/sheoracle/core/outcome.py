"""
sheoracle Outcomes

Structured results for checks, failures, cases and whole runs.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..utils.exceptions import (
    CapabilityError,
    ContextConstructionError,
    ParameterResolutionError,
    SheOracleError,
    UnsupportedOperationError,
)
from ..utils.logging import get_logger

logger = get_logger(__name__)


class FailureKind(Enum):
    CONFIGURATION = "configuration"
    EVALUATION = "evaluation"
    UNSUPPORTED = "unsupported"
    FOREIGN = "foreign"


class CaseStatus(Enum):
    PASSED = "passed"
    FAILED = "failed"
    NOT_RUN = "not_run"


@dataclass
class Failure:
    """An exception converted into data at the failure boundary."""
    kind: FailureKind
    message: str
    exception_type: str

    def __str__(self) -> str:
        return f"{self.kind.value} failure ({self.exception_type}): {self.message}"


def qualified_type_name(exc: BaseException) -> str:
    cls = type(exc)
    module = cls.__module__
    if module in ("builtins", "__main__"):
        return cls.__qualname__
    return f"{module}.{cls.__qualname__}"


def classify_failure(exc: BaseException) -> Failure:
    """Map an exception to a Failure; anything outside the taxonomy is FOREIGN."""
    if isinstance(exc, (ParameterResolutionError, ContextConstructionError)):
        kind = FailureKind.CONFIGURATION
    elif isinstance(exc, UnsupportedOperationError):
        kind = FailureKind.UNSUPPORTED
    elif isinstance(exc, CapabilityError):
        kind = FailureKind.EVALUATION
    elif isinstance(exc, SheOracleError):
        kind = FailureKind.CONFIGURATION
    else:
        kind = FailureKind.FOREIGN

    message = str(exc) or repr(exc)
    if isinstance(exc, CapabilityError) and exc.operation:
        message = f"{exc.operation}: {message}"
    return Failure(kind=kind, message=message, exception_type=qualified_type_name(exc))


@dataclass
class CheckResult:
    label: str
    passed: bool
    expected: Any = None
    actual: Any = None

    def describe(self) -> str:
        if self.passed:
            return f"{self.label}: ok"
        return f"{self.label} fails: expected {self.expected}, got {self.actual}"


class CheckRecorder:
    """
    Collects labelled checks for one case.

    A mismatch is recorded, never raised, so the remaining entry points of a
    verifier still run.
    """

    def __init__(self, case_name: str = ""):
        self.case_name = case_name
        self.results: List[CheckResult] = []

    def expect_equal(self, expected: Sequence[int], actual: Sequence[int], label: str) -> bool:
        exp = np.asarray(list(expected), dtype=np.int64)
        act = np.asarray(list(actual), dtype=np.int64)
        passed = exp.shape == act.shape and bool(np.array_equal(exp, act))
        return self._record(label, passed, exp.tolist(), act.tolist())

    def expect_same(self, expected: Any, actual: Any, label: str) -> bool:
        return self._record(label, expected == actual, expected, actual)

    def _record(self, label: str, passed: bool, expected: Any, actual: Any) -> bool:
        result = CheckResult(label=label, passed=passed, expected=expected, actual=actual)
        self.results.append(result)
        if not passed:
            logger.error(f"{self.case_name} {result.describe()}")
        return passed

    @property
    def failed(self) -> List[CheckResult]:
        return [r for r in self.results if not r.passed]


@dataclass
class CaseOutcome:
    name: str
    kind: str
    checks: List[CheckResult] = field(default_factory=list)
    failure: Optional[Failure] = None
    executed: bool = True
    duration_ms: float = 0.0

    @property
    def status(self) -> CaseStatus:
        if not self.executed:
            return CaseStatus.NOT_RUN
        if self.failure is not None or any(not c.passed for c in self.checks):
            return CaseStatus.FAILED
        return CaseStatus.PASSED

    @property
    def passed(self) -> bool:
        return self.status is CaseStatus.PASSED

    def failure_messages(self) -> List[str]:
        messages = [c.describe() for c in self.checks if not c.passed]
        if self.failure is not None:
            messages.append(str(self.failure))
        return messages

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "status": self.status.value,
            "checks": len(self.checks),
            "failed_checks": [c.label for c in self.checks if not c.passed],
            "failure": None if self.failure is None else {
                "kind": self.failure.kind.value,
                "type": self.failure.exception_type,
                "message": self.failure.message,
            },
            "duration_ms": round(self.duration_ms, 3),
        }


@dataclass
class RunReport:
    outcomes: List[CaseOutcome] = field(default_factory=list)

    def add(self, outcome: CaseOutcome) -> None:
        self.outcomes.append(outcome)

    def _count(self, status: CaseStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    @property
    def passed(self) -> int:
        return self._count(CaseStatus.PASSED)

    @property
    def failed(self) -> int:
        return self._count(CaseStatus.FAILED)

    @property
    def not_run(self) -> int:
        return self._count(CaseStatus.NOT_RUN)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    def failures(self) -> List[CaseOutcome]:
        return [o for o in self.outcomes if o.status is CaseStatus.FAILED]

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "not_run": self.not_run,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
