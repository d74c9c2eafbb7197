"""
OpenFHE Backend

Adapter over the `openfhe` Python bindings. Parameters are forwarded through
CCParamsBGVRNS / CCParamsBFVRNS setters; enum members are looked up on the
module by their engine identifier.

The bindings do not expose the engine's ciphertext metadata map, so metadata
access is reported as unsupported.
"""

from enum import Enum
from typing import Any, Callable, Dict, List, Sequence

import openfhe

from ..core.capability import Ciphertext, EncryptionBackend, EncryptionContext, KeyPair, Operand, Plaintext
from ..core.params import ResolvedParameters, SchemeFamily
from ..utils.exceptions import (
    ContextConstructionError,
    ContextReleasedError,
    EvaluationError,
    UnsupportedOperationError,
)
from ..utils.logging import get_logger

logger = get_logger(__name__)

# field -> CCParams setter
SETTERS: Dict[str, str] = {
    "ring_dimension": "SetRingDim",
    "multiplicative_depth": "SetMultiplicativeDepth",
    "scaling_mod_size": "SetScalingModSize",
    "digit_size": "SetDigitSize",
    "batch_size": "SetBatchSize",
    "secret_key_dist": "SetSecretKeyDist",
    "max_relin_sk_deg": "SetMaxRelinSkDeg",
    "first_mod_size": "SetFirstModSize",
    "security_level": "SetSecurityLevel",
    "ks_tech": "SetKeySwitchTechnique",
    "scal_tech": "SetScalingTechnique",
    "num_large_digits": "SetNumLargeDigits",
    "plaintext_modulus": "SetPlaintextModulus",
    "standard_deviation": "SetStandardDeviation",
    "eval_add_count": "SetEvalAddCount",
    "key_switch_count": "SetKeySwitchCount",
    "multiplication_technique": "SetMultiplicationTechnique",
    "encryption_technique": "SetEncryptionTechnique",
}

PARAMS_CLASSES = {
    SchemeFamily.BGVRNS: "CCParamsBGVRNS",
    SchemeFamily.BFVRNS: "CCParamsBFVRNS",
}

FEATURES = ("PKE", "KEYSWITCH", "LEVELEDSHE", "ADVANCEDSHE")


def _engine_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return getattr(openfhe, value.value)
    return value


def build_cc_params(params: ResolvedParameters):
    """Populate a CCParams object; zero values are left to the engine."""
    cc_params = getattr(openfhe, PARAMS_CLASSES[params.scheme])()
    for name, value in params.items():
        if value is None or (not isinstance(value, Enum) and value == 0):
            continue
        setter = SETTERS.get(name)
        if setter is None or not hasattr(cc_params, setter):
            logger.debug(f"{PARAMS_CLASSES[params.scheme]} has no setter for '{name}', skipped")
            continue
        getattr(cc_params, setter)(_engine_value(value))
    return cc_params


# =============================================================================
# Handles
# =============================================================================

class OpenFHEPlaintext(Plaintext):
    def __init__(self, raw):
        self.raw = raw

    @property
    def length(self) -> int:
        return self.raw.GetLength()

    def set_length(self, length: int) -> None:
        self.raw.SetLength(length)

    @property
    def packed_value(self) -> List[int]:
        return list(self.raw.GetPackedValue())

    @property
    def coef_packed_value(self) -> List[int]:
        return list(self.raw.GetCoefPackedValue())

    @property
    def string_value(self) -> str:
        return self.raw.GetStringValue()


class OpenFHECiphertext(Ciphertext):
    def __init__(self, raw):
        self.raw = raw

    def clone(self) -> "OpenFHECiphertext":
        return OpenFHECiphertext(_guard("Clone", self.raw.Clone))

    def __add__(self, other: "OpenFHECiphertext") -> "OpenFHECiphertext":
        return OpenFHECiphertext(_guard("operator+", lambda: self.raw + other.raw))

    def __sub__(self, other: "OpenFHECiphertext") -> "OpenFHECiphertext":
        return OpenFHECiphertext(_guard("operator-", lambda: self.raw - other.raw))

    def __mul__(self, other: "OpenFHECiphertext") -> "OpenFHECiphertext":
        return OpenFHECiphertext(_guard("operator*", lambda: self.raw * other.raw))

    def __iadd__(self, other: "OpenFHECiphertext") -> "OpenFHECiphertext":
        self.raw = _guard("operator+=", _in_place(self.raw, other.raw, "__iadd__", "__add__"))
        return self

    def __isub__(self, other: "OpenFHECiphertext") -> "OpenFHECiphertext":
        self.raw = _guard("operator-=", _in_place(self.raw, other.raw, "__isub__", "__sub__"))
        return self

    def __imul__(self, other: "OpenFHECiphertext") -> "OpenFHECiphertext":
        self.raw = _guard("operator*=", _in_place(self.raw, other.raw, "__imul__", "__mul__"))
        return self


def _in_place(left, right, inplace_name: str, fallback_name: str) -> Callable[[], Any]:
    method = getattr(left, inplace_name, None) or getattr(left, fallback_name)
    return lambda: method(right)


def _guard(operation: str, fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except RuntimeError as e:
        raise EvaluationError(str(e), operation=operation) from e


def _raw(operand: Operand):
    return operand.raw


# =============================================================================
# Context & backend
# =============================================================================

class OpenFHEContext(EncryptionContext):
    def __init__(self, params: ResolvedParameters):
        self.params = params
        try:
            cc = openfhe.GenCryptoContext(build_cc_params(params))
            for feature in FEATURES:
                cc.Enable(getattr(openfhe.PKESchemeFeature, feature))
        except RuntimeError as e:
            raise ContextConstructionError(str(e), operation="GenCryptoContext") from e
        self._cc = cc

    @property
    def cc(self):
        self._ensure_live()
        return self._cc

    def _ensure_live(self) -> None:
        if self._cc is None:
            raise ContextReleasedError("context has been released", operation="CryptoContext")

    def _call(self, operation: str, *args) -> Any:
        method = getattr(self.cc, operation)
        return _guard(operation, lambda: method(*args))

    @property
    def ring_dimension(self) -> int:
        return self.cc.GetRingDimension()

    @property
    def cyclotomic_order(self) -> int:
        return self.cc.GetCyclotomicOrder()

    # Keys
    def key_gen(self) -> KeyPair:
        kp = self._call("KeyGen")
        return KeyPair(public_key=kp.publicKey, secret_key=kp.secretKey)

    def eval_mult_key_gen(self, secret_key) -> None:
        self._call("EvalMultKeyGen", secret_key)

    def eval_at_index_key_gen(self, secret_key, indices: Sequence[int]) -> None:
        self._call("EvalAtIndexKeyGen", secret_key, list(indices))

    def eval_sum_key_gen(self, secret_key) -> None:
        self._call("EvalSumKeyGen", secret_key)

    def key_switch_gen(self, old_secret_key, new_secret_key):
        return self._call("KeySwitchGen", old_secret_key, new_secret_key)

    # Encoding
    def make_packed_plaintext(self, values: Sequence[int]) -> OpenFHEPlaintext:
        return OpenFHEPlaintext(self._call("MakePackedPlaintext", [int(v) for v in values]))

    def make_coef_packed_plaintext(self, values: Sequence[int]) -> OpenFHEPlaintext:
        return OpenFHEPlaintext(self._call("MakeCoefPackedPlaintext", [int(v) for v in values]))

    def make_string_plaintext(self, text: str) -> OpenFHEPlaintext:
        return OpenFHEPlaintext(self._call("MakeStringPlaintext", text))

    def encrypt(self, public_key, plaintext: OpenFHEPlaintext) -> OpenFHECiphertext:
        return OpenFHECiphertext(self._call("Encrypt", public_key, plaintext.raw))

    def decrypt(self, secret_key, ciphertext: OpenFHECiphertext) -> OpenFHEPlaintext:
        return OpenFHEPlaintext(self._call("Decrypt", secret_key, ciphertext.raw))

    # Evaluation
    def eval_add(self, ciphertext: OpenFHECiphertext, other: Operand) -> OpenFHECiphertext:
        return OpenFHECiphertext(self._call("EvalAdd", ciphertext.raw, _raw(other)))

    def eval_add_in_place(self, ciphertext: OpenFHECiphertext, other: OpenFHECiphertext) -> None:
        self._call("EvalAddInPlace", ciphertext.raw, other.raw)

    def eval_sub(self, ciphertext: OpenFHECiphertext, other: Operand) -> OpenFHECiphertext:
        return OpenFHECiphertext(self._call("EvalSub", ciphertext.raw, _raw(other)))

    def eval_mult(self, ciphertext: OpenFHECiphertext, other: Operand) -> OpenFHECiphertext:
        return OpenFHECiphertext(self._call("EvalMult", ciphertext.raw, _raw(other)))

    def eval_at_index(self, ciphertext: OpenFHECiphertext, index: int) -> OpenFHECiphertext:
        return OpenFHECiphertext(self._call("EvalAtIndex", ciphertext.raw, index))

    def eval_merge(self, ciphertexts: Sequence[OpenFHECiphertext]) -> OpenFHECiphertext:
        merged = self._call("EvalMerge", [ct.raw for ct in ciphertexts])
        return OpenFHECiphertext(merged)

    def eval_sum(self, ciphertext: OpenFHECiphertext, batch_size: int) -> OpenFHECiphertext:
        return OpenFHECiphertext(self._call("EvalSum", ciphertext.raw, batch_size))

    def key_switch(self, ciphertext: OpenFHECiphertext, hint) -> OpenFHECiphertext:
        return OpenFHECiphertext(self._call("KeySwitch", ciphertext.raw, hint))

    def mod_reduce_in_place(self, ciphertext: OpenFHECiphertext) -> None:
        self._call("ModReduceInPlace", ciphertext.raw)

    def drop_last_element(self, secret_key) -> None:
        raise UnsupportedOperationError(
            "the Python bindings do not expose a secret key's private element",
            operation="DropLastElement",
        )

    # Metadata
    def set_metadata(self, ciphertext: OpenFHECiphertext, key: str, value: Any) -> None:
        self._ensure_live()
        raise UnsupportedOperationError(
            "the Python bindings do not expose ciphertext metadata", operation="SetMetadata"
        )

    def get_metadata(self, ciphertext: OpenFHECiphertext, key: str) -> Any:
        self._ensure_live()
        raise UnsupportedOperationError(
            "the Python bindings do not expose ciphertext metadata", operation="GetMetadata"
        )

    def release(self) -> None:
        self._cc = None


class OpenFHEBackend(EncryptionBackend):
    name = "openfhe"

    def create_context(self, params: ResolvedParameters) -> OpenFHEContext:
        ctx = OpenFHEContext(params)
        logger.debug(f"Created {params.scheme.value} context (ring dimension {ctx.ring_dimension})")
        return ctx

    def release_all(self) -> None:
        openfhe.ReleaseAllContexts()
