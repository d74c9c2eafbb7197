"""
In-memory encryption capability used by the test-suite.

Ciphertexts hold clear residue vectors (numpy) and follow the documented
evaluation semantics: slot-wise packed arithmetic, negacyclic coefficient
multiplication, cyclic rotation over the ring dimension and rotate-and-add
summation. Keys, levels and context release are tracked so that a missing
key, a wrong key or a released context behaves like it would on an engine.
"""

import itertools
from typing import Any, Dict, Optional, Sequence

import numpy as np
import pytest

from sheoracle.core.capability import Ciphertext, EncryptionBackend, EncryptionContext, KeyPair, Plaintext
from sheoracle.core.params import ResolvedParameters, SchemeFamily, SchemeParameters, resolve_parameters
from sheoracle.utils.exceptions import ContextConstructionError, ContextReleasedError, EvaluationError

DEFAULT_RING_DIMENSION = 64

_ids = itertools.count(1)


class FakePublicKey:
    def __init__(self, key_id: int):
        self.key_id = key_id


class FakeSecretKey:
    def __init__(self, key_id: int):
        self.key_id = key_id
        self.dropped = 0


class FakeSwitchHint:
    def __init__(self, source: int, target: int):
        self.source = source
        self.target = target


class FakePlaintext(Plaintext):
    def __init__(self, data: np.ndarray, encoding: str, modulus: int, length: int, text: str = ""):
        self.data = data
        self.encoding = encoding
        self.modulus = modulus
        self._length = length
        self.text = text

    @property
    def length(self) -> int:
        return self._length

    def set_length(self, length: int) -> None:
        self._length = length
        self.text = self.text[:length]

    def _centered(self):
        t = self.modulus
        values = self.data[:self._length] % t
        return [int(v - t) if v > t // 2 else int(v) for v in values]

    @property
    def packed_value(self):
        return self._centered()

    @property
    def coef_packed_value(self):
        return self._centered()

    @property
    def string_value(self) -> str:
        return self.text


class FakeCiphertext(Ciphertext):
    def __init__(self, context: "FakeContext", data: np.ndarray, encoding: str, key_id: int,
                 text: str = "", level: int = 0, metadata: Optional[Dict[str, Any]] = None):
        self.context = context
        self.data = data
        self.encoding = encoding
        self.key_id = key_id
        self.text = text
        self.level = level
        self.metadata = dict(metadata or {})

    def derive(self, data: np.ndarray) -> "FakeCiphertext":
        return FakeCiphertext(self.context, data, self.encoding, self.key_id,
                              self.text, self.level, self.metadata)

    def clone(self) -> "FakeCiphertext":
        return self.derive(self.data.copy())

    def __add__(self, other):
        return self.context.eval_add(self, other)

    def __sub__(self, other):
        return self.context.eval_sub(self, other)

    def __mul__(self, other):
        return self.context.eval_mult(self, other)

    def __iadd__(self, other):
        self.context.eval_add_in_place(self, other)
        return self

    def __isub__(self, other):
        self.data = self.context.eval_sub(self, other).data
        return self

    def __imul__(self, other):
        self.data = self.context.eval_mult(self, other).data
        return self


class FakeContext(EncryptionContext):
    def __init__(self, backend: "FakeBackend", params: ResolvedParameters):
        self.backend = backend
        self.params = params
        self.n = params.ring_dimension or DEFAULT_RING_DIMENSION
        self.t = params.plaintext_modulus or 65537
        self.towers = (params.multiplicative_depth or 1) + 1
        self.released = False
        self.mult_keys = set()
        self.sum_keys = set()
        self.rotation_keys: Dict[int, set] = {}

    # helpers
    def _live(self, operation: str) -> None:
        if self.released:
            raise ContextReleasedError("context has been released", operation=operation)
        fault = self.backend.faults.get(operation)
        if fault is not None:
            raise fault

    def _operand(self, other) -> np.ndarray:
        return other.data

    def _negacyclic(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        full = np.convolve(a, b)
        out = full[:self.n].copy()
        out[:len(full) - self.n] -= full[self.n:]
        return out % self.t

    def _rotate(self, ct: FakeCiphertext, index: int, operation: str) -> FakeCiphertext:
        if index not in self.rotation_keys.get(ct.key_id, set()):
            raise EvaluationError(f"rotation key for index {index} not generated", operation=operation)
        return ct.derive(np.roll(ct.data, -index))

    @property
    def ring_dimension(self) -> int:
        self._live("GetRingDimension")
        return self.n

    @property
    def cyclotomic_order(self) -> int:
        self._live("GetCyclotomicOrder")
        return 2 * self.n

    # keys
    def key_gen(self) -> KeyPair:
        self._live("KeyGen")
        key_id = next(_ids)
        return KeyPair(public_key=FakePublicKey(key_id), secret_key=FakeSecretKey(key_id))

    def eval_mult_key_gen(self, secret_key) -> None:
        self._live("EvalMultKeyGen")
        self.mult_keys.add(secret_key.key_id)

    def eval_at_index_key_gen(self, secret_key, indices: Sequence[int]) -> None:
        self._live("EvalAtIndexKeyGen")
        self.rotation_keys.setdefault(secret_key.key_id, set()).update(indices)

    def eval_sum_key_gen(self, secret_key) -> None:
        self._live("EvalSumKeyGen")
        self.sum_keys.add(secret_key.key_id)

    def key_switch_gen(self, old_secret_key, new_secret_key):
        self._live("KeySwitchGen")
        return FakeSwitchHint(old_secret_key.key_id, new_secret_key.key_id)

    # encoding
    def _encode(self, values: Sequence[int], encoding: str) -> FakePlaintext:
        if len(values) > self.n:
            raise EvaluationError(f"{len(values)} values exceed ring dimension {self.n}", operation="Encode")
        data = np.zeros(self.n, dtype=np.int64)
        data[:len(values)] = np.asarray(values, dtype=np.int64)
        return FakePlaintext(data % self.t, encoding, self.t, len(values))

    def make_packed_plaintext(self, values):
        self._live("MakePackedPlaintext")
        return self._encode(values, "packed")

    def make_coef_packed_plaintext(self, values):
        self._live("MakeCoefPackedPlaintext")
        return self._encode(values, "coef")

    def make_string_plaintext(self, text: str):
        self._live("MakeStringPlaintext")
        return FakePlaintext(np.zeros(self.n, dtype=np.int64), "string", self.t, len(text), text)

    def encrypt(self, public_key, plaintext: FakePlaintext) -> FakeCiphertext:
        self._live("Encrypt")
        return FakeCiphertext(self, plaintext.data.copy(), plaintext.encoding, public_key.key_id, plaintext.text)

    def decrypt(self, secret_key, ciphertext: FakeCiphertext) -> FakePlaintext:
        self._live("Decrypt")
        data = ciphertext.data.copy()
        text = ciphertext.text
        if secret_key.key_id != ciphertext.key_id or secret_key.dropped != ciphertext.level:
            data = (data * 7 + np.arange(self.n) + 1) % self.t
            text = text[::-1].swapcase()
        length = len(text) if ciphertext.encoding == "string" else self.n
        return FakePlaintext(data, ciphertext.encoding, self.t, length, text)

    # evaluation
    def eval_add(self, ciphertext, other):
        self._live("EvalAdd")
        return ciphertext.derive((ciphertext.data + self._operand(other)) % self.t)

    def eval_add_in_place(self, ciphertext, other) -> None:
        self._live("EvalAddInPlace")
        ciphertext.data = (ciphertext.data + other.data) % self.t

    def eval_sub(self, ciphertext, other):
        self._live("EvalSub")
        return ciphertext.derive((ciphertext.data - self._operand(other)) % self.t)

    def eval_mult(self, ciphertext, other):
        self._live("EvalMult")
        if isinstance(other, FakeCiphertext) and ciphertext.key_id not in self.mult_keys:
            raise EvaluationError("relinearization key not generated", operation="EvalMult")
        if ciphertext.encoding == "coef":
            return ciphertext.derive(self._negacyclic(ciphertext.data, self._operand(other)))
        return ciphertext.derive((ciphertext.data * self._operand(other)) % self.t)

    def eval_at_index(self, ciphertext, index: int):
        self._live("EvalAtIndex")
        return self._rotate(ciphertext, index, "EvalAtIndex")

    def eval_merge(self, ciphertexts):
        self._live("EvalMerge")
        mask = np.zeros(self.n, dtype=np.int64)
        mask[0] = 1
        merged = ciphertexts[0].derive(ciphertexts[0].data * mask)
        for i, ct in enumerate(ciphertexts[1:], start=1):
            rotated = self._rotate(ct.derive(ct.data * mask), -i, "EvalMerge")
            merged = merged.derive((merged.data + rotated.data) % self.t)
        return merged

    def eval_sum(self, ciphertext, batch_size: int):
        self._live("EvalSum")
        if ciphertext.key_id not in self.sum_keys:
            raise EvaluationError("summation keys not generated", operation="EvalSum")
        data = ciphertext.data.copy()
        step = 1
        while step < batch_size:
            data = (data + np.roll(data, -step)) % self.t
            step *= 2
        return ciphertext.derive(data)

    def key_switch(self, ciphertext, hint: FakeSwitchHint):
        self._live("KeySwitch")
        switched = ciphertext.derive(ciphertext.data.copy())
        if hint.source == ciphertext.key_id:
            switched.key_id = hint.target
        return switched

    def mod_reduce_in_place(self, ciphertext) -> None:
        self._live("ModReduceInPlace")
        if ciphertext.level + 1 >= self.towers:
            raise EvaluationError("no tower left to drop", operation="ModReduceInPlace")
        ciphertext.level += 1

    def drop_last_element(self, secret_key) -> None:
        self._live("DropLastElement")
        secret_key.dropped += 1

    def set_metadata(self, ciphertext, key, value) -> None:
        self._live("SetMetadata")
        ciphertext.metadata[key] = value

    def get_metadata(self, ciphertext, key):
        self._live("GetMetadata")
        return ciphertext.metadata.get(key)

    def release(self) -> None:
        self.released = True
        self.backend.live.discard(self)


class FakeBackend(EncryptionBackend):
    name = "fake"

    def __init__(self, faults: Optional[Dict[str, BaseException]] = None, reject=None):
        self.faults: Dict[str, BaseException] = dict(faults or {})
        self.reject = reject
        self.live = set()
        self.created = []
        self.release_all_calls = 0

    def create_context(self, params: ResolvedParameters) -> FakeContext:
        if self.reject is not None and self.reject(params):
            raise ContextConstructionError("parameter combination rejected", operation="GenCryptoContext")
        ctx = FakeContext(self, params)
        self.live.add(ctx)
        self.created.append(ctx)
        return ctx

    def release_all(self) -> None:
        self.release_all_calls += 1


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def make_context():
    """Build a live FakeContext from SchemeParameters keyword overrides."""
    backend = FakeBackend()

    def _make(**overrides) -> FakeContext:
        overrides.setdefault("scheme", SchemeFamily.BFVRNS)
        return backend.create_context(resolve_parameters(SchemeParameters(**overrides)))

    return _make
