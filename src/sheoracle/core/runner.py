"""
sheoracle Case Runner

Dispatches each registry row to its verifier inside a failure boundary and
releases every engine context at the end of the case.
"""

import time
from typing import Callable, Dict, Iterable, Iterator, Optional

from .capability import ContextStore, EncryptionBackend
from .cases import TEST_CASES, OperationKind, TestCase
from .outcome import CaseOutcome, CheckRecorder, RunReport, classify_failure
from .params import resolve_parameters
from .verifiers import VERIFIERS, Verifier
from ..utils.logging import get_logger

logger = get_logger(__name__)

Reporter = Callable[[CaseOutcome], None]


class CaseRunner:
    """
    Sequential runner bound to one backend.

    Owns a single ContextStore; contexts never outlive the case that created
    them.
    """

    def __init__(self, backend: EncryptionBackend, verifiers: Optional[Dict[OperationKind, Verifier]] = None):
        self.backend = backend
        self.store = ContextStore(backend)
        self.verifiers = dict(VERIFIERS if verifiers is None else verifiers)

    def run_case(self, case: TestCase) -> CaseOutcome:
        verifier = self.verifiers.get(case.kind)
        if verifier is None:
            logger.warning(f"{case.name}: no verifier for {case.kind.name}, not run")
            return CaseOutcome(name=case.name, kind=case.kind.name, executed=False)

        checks = CheckRecorder(case.name)
        outcome = CaseOutcome(name=case.name, kind=case.kind.name, checks=checks.results)
        start = time.perf_counter()
        try:
            with self.store.scope():
                self._execute(case, verifier, checks, outcome)
        except Exception as e:
            # raised by context release
            if outcome.failure is None:
                outcome.failure = classify_failure(e)
            logger.error(f"{case.name}: context release failed: {e}")
        outcome.duration_ms = (time.perf_counter() - start) * 1000

        if outcome.passed:
            logger.info(f"{case.name}: passed ({len(outcome.checks)} checks)")
        else:
            logger.info(f"{case.name}: FAILED")
        return outcome

    def _execute(self, case: TestCase, verifier: Verifier, checks: CheckRecorder, outcome: CaseOutcome) -> None:
        try:
            resolved = resolve_parameters(case.params)
            context = self.store.create(resolved)
            verifier(context, checks)
        except Exception as e:
            outcome.failure = classify_failure(e)
            logger.error(f"{case.name} {case.describe()}: {outcome.failure}")

    def iter_outcomes(self, cases: Iterable[TestCase]) -> Iterator[CaseOutcome]:
        for case in cases:
            yield self.run_case(case)

    def run(self, cases: Iterable[TestCase], reporter: Optional[Reporter] = None) -> RunReport:
        report = RunReport()
        for outcome in self.iter_outcomes(cases):
            report.add(outcome)
            if reporter is not None:
                reporter(outcome)

        logger.info(f"Ran {report.total} case(s): {report.passed} passed, "
                    f"{report.failed} failed, {report.not_run} not run")
        return report


def run_registry(backend: EncryptionBackend, cases: Optional[Iterable[TestCase]] = None,
                 reporter: Optional[Reporter] = None) -> RunReport:
    """Run `cases` (default: the full registry) against `backend`."""
    runner = CaseRunner(backend)
    return runner.run(TEST_CASES if cases is None else cases, reporter=reporter)
