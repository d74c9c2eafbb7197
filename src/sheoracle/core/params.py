"""
sheoracle Scheme Parameter Model

Every field of SchemeParameters is optional; None means "use the scheme
default". resolve_parameters() turns a partial record into a concrete one using
per-family tables, so resolution is a pure function of its input.
"""

from dataclasses import dataclass, fields, replace as _dc_replace
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from ..utils.exceptions import ParameterResolutionError


# =============================================================================
# Enumerations (values are the engine's identifiers)
# =============================================================================

class SchemeFamily(Enum):
    BGVRNS = "BGVRNS"
    BFVRNS = "BFVRNS"


class SecretKeyDist(Enum):
    UNIFORM_TERNARY = "UNIFORM_TERNARY"
    GAUSSIAN = "GAUSSIAN"


class SecurityLevel(Enum):
    NOT_SET = "HEStd_NotSet"
    CLASSIC_128 = "HEStd_128_classic"
    CLASSIC_192 = "HEStd_192_classic"
    CLASSIC_256 = "HEStd_256_classic"


class KeySwitchTechnique(Enum):
    BV = "BV"
    HYBRID = "HYBRID"


class ScalingTechnique(Enum):
    FIXEDMANUAL = "FIXEDMANUAL"
    FIXEDAUTO = "FIXEDAUTO"
    FLEXIBLEAUTO = "FLEXIBLEAUTO"
    FLEXIBLEAUTOEXT = "FLEXIBLEAUTOEXT"
    NORESCALE = "NORESCALE"


class MultiplicationTechnique(Enum):
    HPS = "HPS"
    BEHZ = "BEHZ"
    HPSPOVERQ = "HPSPOVERQ"
    HPSPOVERQLEVELED = "HPSPOVERQLEVELED"


class EncryptionTechnique(Enum):
    STANDARD = "STANDARD"
    EXTENDED = "EXTENDED"      # P/Q encoding


# =============================================================================
# Parameter record
# =============================================================================

@dataclass(frozen=True)
class SchemeParameters:
    """Scheme configuration for one test case. None = scheme default."""
    scheme: Optional[SchemeFamily] = None
    ring_dimension: Optional[int] = None
    multiplicative_depth: Optional[int] = None
    scaling_mod_size: Optional[int] = None
    digit_size: Optional[int] = None
    batch_size: Optional[int] = None
    secret_key_dist: Optional[SecretKeyDist] = None
    max_relin_sk_deg: Optional[int] = None
    first_mod_size: Optional[int] = None
    security_level: Optional[SecurityLevel] = None
    ks_tech: Optional[KeySwitchTechnique] = None
    scal_tech: Optional[ScalingTechnique] = None
    num_large_digits: Optional[int] = None
    plaintext_modulus: Optional[int] = None
    standard_deviation: Optional[float] = None
    eval_add_count: Optional[int] = None
    eval_mult_count: Optional[int] = None
    key_switch_count: Optional[int] = None
    multiplication_technique: Optional[MultiplicationTechnique] = None
    encryption_technique: Optional[EncryptionTechnique] = None

    def explicit_fields(self) -> Dict[str, Any]:
        """Fields the caller set, in declaration order."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    def replace(self, **changes) -> "SchemeParameters":
        return _dc_replace(self, **changes)

    def __str__(self) -> str:
        parts = []
        for name, value in self.explicit_fields().items():
            parts.append(f"{name}={value.value if isinstance(value, Enum) else value}")
        return "[" + ", ".join(parts) + "]"


PARAMETER_FIELDS: List[str] = [f.name for f in fields(SchemeParameters)]


@dataclass(frozen=True)
class ResolvedParameters:
    """
    Fully resolved configuration handed to a backend.

    `values` holds every field the family uses; fields the family ignores
    are absent and must not be forwarded to the engine.
    """
    scheme: SchemeFamily
    values: Dict[str, Any]
    explicit: FrozenSet[str]

    def __getattr__(self, name: str) -> Any:
        if name in PARAMETER_FIELDS:
            return self.values.get(name)
        raise AttributeError(name)

    def __hash__(self) -> int:
        return hash((self.scheme, tuple(self.items()), self.explicit))

    def items(self):
        return ((name, self.values[name]) for name in PARAMETER_FIELDS if name in self.values)

    def is_default(self, name: str) -> bool:
        return name not in self.explicit


# =============================================================================
# Per-family defaults
# =============================================================================

_SHARED_DEFAULTS: Dict[str, Any] = {
    "ring_dimension": 0,
    "batch_size": 0,
    "digit_size": 0,
    "num_large_digits": 0,
    "plaintext_modulus": 0,
    "secret_key_dist": SecretKeyDist.UNIFORM_TERNARY,
    "standard_deviation": 3.19,
    "encryption_technique": EncryptionTechnique.STANDARD,
}

SCHEME_DEFAULTS: Dict[SchemeFamily, Dict[str, Any]] = {
    SchemeFamily.BGVRNS: {
        **_SHARED_DEFAULTS,
        "multiplicative_depth": 1,
        "scaling_mod_size": 0,
        "first_mod_size": 0,
        "security_level": SecurityLevel.NOT_SET,
        "ks_tech": KeySwitchTechnique.HYBRID,
        "scal_tech": ScalingTechnique.FLEXIBLEAUTOEXT,
        "max_relin_sk_deg": 2,
        "eval_add_count": 5,
        "key_switch_count": 3,
    },
    SchemeFamily.BFVRNS: {
        **_SHARED_DEFAULTS,
        "multiplicative_depth": 1,
        "scaling_mod_size": 60,
        "security_level": SecurityLevel.CLASSIC_128,
        "ks_tech": KeySwitchTechnique.BV,
        "scal_tech": ScalingTechnique.NORESCALE,
        "multiplication_technique": MultiplicationTechnique.HPSPOVERQLEVELED,
        "eval_add_count": 0,
        "key_switch_count": 0,
    },
}

IGNORED_FIELDS: Dict[SchemeFamily, FrozenSet[str]] = {
    SchemeFamily.BGVRNS: frozenset({"multiplication_technique", "eval_mult_count"}),
    SchemeFamily.BFVRNS: frozenset({"max_relin_sk_deg", "first_mod_size"}),
}


def resolve_parameters(params: SchemeParameters) -> ResolvedParameters:
    """Fill unset fields from the scheme family's table."""
    if params.scheme is None:
        raise ParameterResolutionError("scheme family must be set; it has no default")
    if params.scheme not in SCHEME_DEFAULTS:
        raise ParameterResolutionError(f"no default table for scheme {params.scheme!r}")

    family = params.scheme
    defaults = SCHEME_DEFAULTS[family]
    ignored = IGNORED_FIELDS[family]

    values: Dict[str, Any] = {}
    for name in PARAMETER_FIELDS:
        if name == "scheme" or name in ignored:
            continue
        value = getattr(params, name)
        if value is None:
            value = defaults.get(name)
        if value is not None:
            values[name] = value

    if family is SchemeFamily.BFVRNS and params.multiplicative_depth is None:
        # BFV cases state their multiplication budget as an op count
        if params.eval_mult_count:
            values["multiplicative_depth"] = params.eval_mult_count

    explicit = frozenset(name for name in params.explicit_fields() if name != "scheme" and name not in ignored)
    return ResolvedParameters(scheme=family, values=values, explicit=explicit)
