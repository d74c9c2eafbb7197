"""
sheoracle: Correctness Oracle for Homomorphic Evaluation (BGV/BFV RNS)
"""

__version__ = "0.1.0"
__author__ = "Daniel Foo"

from .core.params import SchemeFamily, SchemeParameters, resolve_parameters
from .core.cases import TEST_CASES, OperationKind, TestCase, select_cases
from .core.outcome import CaseOutcome, CaseStatus, Failure, FailureKind, RunReport
from .core.runner import CaseRunner, run_registry
from .backends import get_backend
from .utils.config import settings

__all__ = [
    "SchemeFamily",
    "SchemeParameters",
    "resolve_parameters",
    "TEST_CASES",
    "OperationKind",
    "TestCase",
    "select_cases",
    "CaseOutcome",
    "CaseStatus",
    "Failure",
    "FailureKind",
    "RunReport",
    "CaseRunner",
    "run_registry",
    "get_backend",
    "settings",
]
