import logging

import pytest

from sheoracle.core.cases import TEST_CASES, OperationKind, TestCase, select_cases
from sheoracle.core.outcome import CaseStatus, FailureKind
from sheoracle.core.params import SchemeFamily, SchemeParameters
from sheoracle.core.runner import CaseRunner, run_registry
from sheoracle.core.verifiers import VERIFIERS
from sheoracle.utils.exceptions import ContextReleasedError, UnsupportedOperationError

from conftest import FakeBackend


class EngineCrash(Exception):
    pass


def _case(name):
    return next(c for c in TEST_CASES if c.name == name)


def test_full_registry_passes_and_releases_every_context():
    backend = FakeBackend()
    seen = []
    report = run_registry(backend, reporter=seen.append)

    assert report.total == len(TEST_CASES)
    assert report.failed == 0
    assert report.not_run == 0
    assert report.exit_code == 0
    assert [o.name for o in seen] == [c.name for c in TEST_CASES]
    assert backend.live == set()
    assert backend.release_all_calls == len(TEST_CASES)


def test_add_scenario_ring_16_depth_2(fake_backend):
    case = _case("ADD_PACKED_01")
    assert case.params.ring_dimension == 16
    assert case.params.multiplicative_depth == 2

    outcome = CaseRunner(fake_backend).run_case(case)

    assert outcome.status is CaseStatus.PASSED
    by_label = {c.label: c for c in outcome.checks}
    assert by_label["EvalAdd"].actual == [3, 1, 6, 3, 2, 2, 5, 1]
    assert by_label["EvalSub"].actual == [-1, -1, 0, -1, -2, 0, -1, 1]


def test_rotation_scenario(fake_backend):
    outcome = CaseRunner(fake_backend).run_case(_case("EVALATINDEX_01"))

    assert outcome.passed
    assert outcome.checks[0].actual == [4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15, 16, 0, 0, 0]
    assert outcome.checks[1].actual == [0, 0, 0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13]


def test_context_is_not_reusable_in_next_case(fake_backend):
    runner = CaseRunner(fake_backend)
    runner.run_case(_case("MULT_PACKED_01"))
    previous = fake_backend.created[-1]

    runner.run_case(_case("MULT_PACKED_02"))

    assert previous is not fake_backend.created[-1]
    assert runner.store.live_contexts == []
    with pytest.raises(ContextReleasedError):
        previous.key_gen()


def test_rejected_configuration_is_classified(caplog):
    backend = FakeBackend(reject=lambda params: params.scheme is SchemeFamily.BGVRNS)
    case = _case("KS_SINGLE_CRT_01")

    with caplog.at_level(logging.ERROR, logger="sheoracle"):
        outcome = CaseRunner(backend).run_case(case)

    assert outcome.status is CaseStatus.FAILED
    assert outcome.failure.kind is FailureKind.CONFIGURATION
    assert "GenCryptoContext" in outcome.failure.message
    assert any(case.name in r.getMessage() for r in caplog.records)


def test_missing_scheme_fails_before_context_creation(fake_backend):
    case = TestCase(OperationKind.EVALSUM, "no_scheme", SchemeParameters(ring_dimension=16))
    outcome = CaseRunner(fake_backend).run_case(case)

    assert outcome.failure.kind is FailureKind.CONFIGURATION
    assert outcome.failure.exception_type.endswith("ParameterResolutionError")
    assert fake_backend.created == []


def test_foreign_exception_is_contained():
    backend = FakeBackend(faults={"EvalMult": EngineCrash("segfault-ish")})
    report = CaseRunner(backend).run(select_cases(TEST_CASES, pattern="MULT_PACKED_0"))

    assert report.failed == 9
    failure = report.failures()[0].failure
    assert failure.kind is FailureKind.FOREIGN
    assert failure.exception_type.endswith("EngineCrash")
    assert failure.message == "segfault-ish"
    assert backend.live == set()


def test_unsupported_operation_is_classified():
    backend = FakeBackend(faults={
        "DropLastElement": UnsupportedOperationError("not exposed", operation="DropLastElement"),
    })
    outcome = CaseRunner(backend).run_case(_case("KS_MOD_REDUCE_DCRT_01"))

    assert outcome.failure.kind is FailureKind.UNSUPPORTED
    assert outcome.failure.message == "DropLastElement: not exposed"
    # checks recorded before the failure are kept
    assert [c.label for c in outcome.checks] == ["Key-Switched Decrypt"]


def test_kind_without_verifier_is_not_run(fake_backend):
    verifiers = {k: v for k, v in VERIFIERS.items() if k is not OperationKind.EVALSUM}
    runner = CaseRunner(fake_backend, verifiers=verifiers)
    report = runner.run(select_cases(TEST_CASES, kinds=[OperationKind.EVALSUM]))

    assert report.not_run == 16
    assert report.exit_code == 0
    assert fake_backend.created == []


def test_release_failure_marks_case_failed():
    class LeakyBackend(FakeBackend):
        def release_all(self):
            super().release_all()
            raise EngineCrash("teardown failed")

    backend = LeakyBackend()
    outcome = CaseRunner(backend).run_case(_case("EVALSUM_01"))

    assert outcome.status is CaseStatus.FAILED
    assert outcome.failure.kind is FailureKind.FOREIGN
    assert backend.live == set()


def test_iter_outcomes_streams_in_order(fake_backend):
    cases = select_cases(TEST_CASES, kinds=[OperationKind.KS_SINGLE_CRT])
    outcomes = CaseRunner(fake_backend).iter_outcomes(cases)

    first = next(outcomes)
    assert first.name == "KS_SINGLE_CRT_01"
    assert len(fake_backend.created) == 1
    assert [o.name for o in outcomes] == ["KS_SINGLE_CRT_02", "KS_SINGLE_CRT_03", "KS_SINGLE_CRT_04"]


def test_report_serializes():
    backend = FakeBackend(faults={"EvalSum": EngineCrash("boom")})
    report = CaseRunner(backend).run(select_cases(TEST_CASES, kinds=[OperationKind.EVALSUM_ALL]))
    data = report.to_dict()

    assert data["total"] == 2
    assert data["failed"] == 2
    assert data["outcomes"][0]["status"] == "failed"
    assert data["outcomes"][0]["failure"]["kind"] == "foreign"
    assert report.exit_code == 1
