"""
sheoracle Exception Taxonomy
"""


class SheOracleError(Exception):
    """Base class for all harness errors."""


class ParameterResolutionError(SheOracleError):
    """Scheme parameters cannot be resolved to a usable configuration."""


class DuplicateTestCaseError(SheOracleError):
    """Two registry entries share a (kind, description) pair or a test name."""


class BackendNotAvailableError(SheOracleError):
    """The requested encryption backend is unknown or cannot be imported."""


class CapabilityError(SheOracleError):
    """Raised by an encryption backend while serving the harness."""

    def __init__(self, message: str, operation: str = ""):
        super().__init__(message)
        self.operation = operation


class ContextConstructionError(CapabilityError):
    """The engine rejected the resolved parameters."""


class EvaluationError(CapabilityError):
    """Key generation, encoding, encryption, evaluation or decryption failed."""


class ContextReleasedError(EvaluationError):
    """A context was used after the store released it."""


class UnsupportedOperationError(CapabilityError):
    """The backend does not expose the requested operation."""
