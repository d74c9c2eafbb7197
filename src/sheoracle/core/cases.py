"""
sheoracle Test Case Registry

The full configuration matrix as an explicit, ordered data table. Each block
helper expands one family of rows; descriptions are two-digit sequence numbers
restarted per operation kind.
"""

import itertools
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from .params import (
    EncryptionTechnique,
    KeySwitchTechnique,
    MultiplicationTechnique,
    ScalingTechnique,
    SchemeFamily,
    SchemeParameters,
    SecretKeyDist,
    SecurityLevel,
)
from ..utils.exceptions import DuplicateTestCaseError

# Fixture constants
BATCH = 16
BATCH_LRG = 1 << 12
PTM = 64
PTM_LRG = 65537
BV_DSIZE = 4

_NAME_RE = re.compile(r"[^A-Za-z0-9_]")


class OperationKind(Enum):
    ADD_PACKED = "ADD_PACKED"
    MULT_COEF_PACKED = "MULT_COEF_PACKED"
    MULT_PACKED = "MULT_PACKED"
    EVALATINDEX = "EVALATINDEX"
    EVALMERGE = "EVALMERGE"
    EVALSUM = "EVALSUM"
    METADATA = "METADATA"
    EVALSUM_ALL = "EVALSUM_ALL"
    KS_SINGLE_CRT = "KS_SINGLE_CRT"
    KS_MOD_REDUCE_DCRT = "KS_MOD_REDUCE_DCRT"


@dataclass(frozen=True)
class TestCase:
    """One registry row: an operation kind run under one configuration."""
    __test__ = False  # keep pytest from collecting the record type

    kind: OperationKind
    description: str
    params: SchemeParameters

    @property
    def name(self) -> str:
        return _NAME_RE.sub("_", f"{self.kind.name}_{self.description}")

    def describe(self) -> str:
        return f"[{self.kind.name}] {self.params}"


# =============================================================================
# Block helpers
# =============================================================================

_KEY_DISTS = (SecretKeyDist.UNIFORM_TERNARY, SecretKeyDist.GAUSSIAN)
_RESCALE_TECHS = (
    ScalingTechnique.FIXEDMANUAL,
    ScalingTechnique.FIXEDAUTO,
    ScalingTechnique.FLEXIBLEAUTO,
    ScalingTechnique.FLEXIBLEAUTOEXT,
)
_ENC_TECHS = (EncryptionTechnique.STANDARD, EncryptionTechnique.EXTENDED)
_KS_TECHS = (KeySwitchTechnique.BV, KeySwitchTechnique.HYBRID)
_MULT_TECHS = (
    MultiplicationTechnique.HPS,
    MultiplicationTechnique.BEHZ,
    MultiplicationTechnique.HPSPOVERQ,
    MultiplicationTechnique.HPSPOVERQLEVELED,
)


def _bgv_block(ring_dimension: int, plaintext_modulus: int) -> List[SchemeParameters]:
    rows = []
    for dist, scal in itertools.product(_KEY_DISTS, _RESCALE_TECHS):
        rows.append(SchemeParameters(
            scheme=SchemeFamily.BGVRNS,
            ring_dimension=ring_dimension,
            multiplicative_depth=2,
            scaling_mod_size=59,
            digit_size=BV_DSIZE,
            batch_size=BATCH,
            secret_key_dist=dist,
            max_relin_sk_deg=1,
            first_mod_size=60,
            security_level=SecurityLevel.NOT_SET,
            ks_tech=KeySwitchTechnique.BV,
            scal_tech=scal,
            plaintext_modulus=plaintext_modulus,
            encryption_technique=EncryptionTechnique.STANDARD,
        ))
    return rows


def _bfv_wide_block(plaintext_modulus: int, eval_add_count: Optional[int] = None,
                    eval_mult_count: Optional[int] = None,
                    key_switch_count: Optional[int] = None) -> List[SchemeParameters]:
    """32 rows: encryption x key switching x multiplication x key distribution."""
    rows = []
    for enc, ks, mult, dist in itertools.product(_ENC_TECHS, _KS_TECHS, _MULT_TECHS, _KEY_DISTS):
        rows.append(SchemeParameters(
            scheme=SchemeFamily.BFVRNS,
            scaling_mod_size=60,
            digit_size=20,
            batch_size=BATCH,
            secret_key_dist=dist,
            ks_tech=ks,
            plaintext_modulus=plaintext_modulus,
            eval_add_count=eval_add_count,
            eval_mult_count=eval_mult_count,
            key_switch_count=key_switch_count,
            multiplication_technique=mult,
            encryption_technique=enc,
        ))
    return rows


def _bfv_narrow_block() -> List[SchemeParameters]:
    """16 rows: encryption x multiplication x key distribution."""
    rows = []
    for enc, mult, dist in itertools.product(_ENC_TECHS, _MULT_TECHS, _KEY_DISTS):
        rows.append(SchemeParameters(
            scheme=SchemeFamily.BFVRNS,
            scaling_mod_size=60,
            digit_size=20,
            batch_size=BATCH,
            secret_key_dist=dist,
            scal_tech=ScalingTechnique.FIXEDMANUAL,
            plaintext_modulus=PTM_LRG,
            eval_mult_count=2,
            multiplication_technique=mult,
            encryption_technique=enc,
        ))
    return rows


def _evalsum_all_block() -> List[SchemeParameters]:
    return [
        SchemeParameters(
            scheme=SchemeFamily.BFVRNS,
            ring_dimension=BATCH_LRG,
            scaling_mod_size=60,
            digit_size=20,
            batch_size=BATCH_LRG,
            scal_tech=ScalingTechnique.FIXEDMANUAL,
            plaintext_modulus=PTM_LRG,
            eval_mult_count=2,
            encryption_technique=enc,
        )
        for enc in _ENC_TECHS
    ]


def _key_switch_block(scal_techs: Sequence[ScalingTechnique]) -> List[SchemeParameters]:
    return [
        SchemeParameters(
            scheme=SchemeFamily.BGVRNS,
            ring_dimension=8192,
            multiplicative_depth=1,
            scaling_mod_size=50,
            digit_size=1,
            scal_tech=scal,
            plaintext_modulus=256,
            standard_deviation=4,
            encryption_technique=EncryptionTechnique.STANDARD,
        )
        for scal in scal_techs
    ]


def _numbered(kind: OperationKind, rows: Iterable[SchemeParameters]) -> List[TestCase]:
    return [TestCase(kind, f"{i:02d}", params) for i, params in enumerate(rows, start=1)]


def build_registry() -> Tuple[TestCase, ...]:
    """Assemble the ordered case matrix."""
    cases: List[TestCase] = []
    cases += _numbered(OperationKind.ADD_PACKED,
                       _bgv_block(16, PTM) + _bfv_wide_block(PTM, eval_add_count=1, eval_mult_count=0))
    cases += _numbered(OperationKind.MULT_COEF_PACKED,
                       _bgv_block(16, PTM) + _bfv_wide_block(PTM, eval_mult_count=1))
    cases += _numbered(OperationKind.MULT_PACKED,
                       _bgv_block(256, PTM_LRG) + _bfv_wide_block(PTM_LRG, eval_mult_count=2))
    cases += _numbered(OperationKind.EVALATINDEX,
                       _bgv_block(256, PTM_LRG) + _bfv_wide_block(PTM_LRG, eval_mult_count=0, key_switch_count=1))
    cases += _numbered(OperationKind.EVALMERGE, _bgv_block(256, PTM_LRG) + _bfv_narrow_block())
    cases += _numbered(OperationKind.EVALSUM, _bfv_narrow_block())
    cases += _numbered(OperationKind.METADATA, _bgv_block(256, PTM_LRG) + _bfv_narrow_block())
    cases += _numbered(OperationKind.EVALSUM_ALL, _evalsum_all_block())
    cases += _numbered(OperationKind.KS_SINGLE_CRT, _key_switch_block(_RESCALE_TECHS))
    cases += _numbered(OperationKind.KS_MOD_REDUCE_DCRT, _key_switch_block([ScalingTechnique.FIXEDMANUAL]))
    return tuple(cases)


# =============================================================================
# Validation & selection
# =============================================================================

def validate_registry(cases: Sequence[TestCase]) -> None:
    """Reject repeated (kind, description) pairs and colliding names."""
    seen_keys = set()
    seen_names = set()
    for case in cases:
        key = (case.kind, case.description)
        if key in seen_keys:
            raise DuplicateTestCaseError(f"duplicate case {case.kind.name} {case.description!r}")
        if case.name in seen_names:
            raise DuplicateTestCaseError(f"case name collision: {case.name}")
        seen_keys.add(key)
        seen_names.add(case.name)


def parse_kinds(names: Iterable[str]) -> List[OperationKind]:
    kinds = []
    for name in names:
        try:
            kinds.append(OperationKind[name.strip().upper()])
        except KeyError:
            valid = ", ".join(k.name for k in OperationKind)
            raise ValueError(f"unknown operation kind '{name}' (expected one of: {valid})") from None
    return kinds


def select_cases(cases: Sequence[TestCase], kinds: Optional[Iterable[OperationKind]] = None,
                 pattern: Optional[str] = None) -> List[TestCase]:
    """Filter by kind and by case-name substring, keeping registry order."""
    wanted = set(kinds) if kinds else None
    selected = []
    for case in cases:
        if wanted is not None and case.kind not in wanted:
            continue
        if pattern and pattern not in case.name:
            continue
        selected.append(case)
    return selected


TEST_CASES: Tuple[TestCase, ...] = build_registry()
validate_registry(TEST_CASES)
