"""
sheoracle Encryption Capability

The harness never implements cryptography. It talks to an engine through the
EncryptionBackend / EncryptionContext interfaces below, and keeps every context
it creates in a ContextStore so they can be released at case boundaries.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, List, Sequence, Union

from .params import ResolvedParameters
from ..utils.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Handles
# =============================================================================

class Plaintext(ABC):
    """Encoded message with a declared logical length."""

    @property
    @abstractmethod
    def length(self) -> int:
        ...

    @abstractmethod
    def set_length(self, length: int) -> None:
        """Truncate (or extend) the logical message."""

    @property
    @abstractmethod
    def packed_value(self) -> List[int]:
        ...

    @property
    @abstractmethod
    def coef_packed_value(self) -> List[int]:
        ...

    @property
    @abstractmethod
    def string_value(self) -> str:
        ...


class Ciphertext(ABC):
    """
    Encrypted handle.

    Implementations route the infix operators (+, -, *, +=, -=, *=) to the
    engine's own operator entry points so the harness can compare them with
    the named evaluation calls.
    """

    @abstractmethod
    def clone(self) -> "Ciphertext":
        ...

    @abstractmethod
    def __add__(self, other: "Ciphertext") -> "Ciphertext":
        ...

    @abstractmethod
    def __sub__(self, other: "Ciphertext") -> "Ciphertext":
        ...

    @abstractmethod
    def __mul__(self, other: "Ciphertext") -> "Ciphertext":
        ...

    @abstractmethod
    def __iadd__(self, other: "Ciphertext") -> "Ciphertext":
        ...

    @abstractmethod
    def __isub__(self, other: "Ciphertext") -> "Ciphertext":
        ...

    @abstractmethod
    def __imul__(self, other: "Ciphertext") -> "Ciphertext":
        ...


Operand = Union[Ciphertext, Plaintext]


@dataclass
class KeyPair:
    public_key: Any
    secret_key: Any


# =============================================================================
# Context & backend interfaces
# =============================================================================

class EncryptionContext(ABC):
    """One configured engine instance: keys, encoding, evaluation."""

    @property
    @abstractmethod
    def ring_dimension(self) -> int:
        ...

    @property
    @abstractmethod
    def cyclotomic_order(self) -> int:
        ...

    # Key generation
    @abstractmethod
    def key_gen(self) -> KeyPair:
        ...

    @abstractmethod
    def eval_mult_key_gen(self, secret_key: Any) -> None:
        ...

    @abstractmethod
    def eval_at_index_key_gen(self, secret_key: Any, indices: Sequence[int]) -> None:
        ...

    @abstractmethod
    def eval_sum_key_gen(self, secret_key: Any) -> None:
        ...

    @abstractmethod
    def key_switch_gen(self, old_secret_key: Any, new_secret_key: Any) -> Any:
        """Switching hint from old_secret_key to new_secret_key."""

    # Encoding
    @abstractmethod
    def make_packed_plaintext(self, values: Sequence[int]) -> Plaintext:
        ...

    @abstractmethod
    def make_coef_packed_plaintext(self, values: Sequence[int]) -> Plaintext:
        ...

    @abstractmethod
    def make_string_plaintext(self, text: str) -> Plaintext:
        ...

    # Encryption
    @abstractmethod
    def encrypt(self, public_key: Any, plaintext: Plaintext) -> Ciphertext:
        ...

    @abstractmethod
    def decrypt(self, secret_key: Any, ciphertext: Ciphertext) -> Plaintext:
        ...

    # Evaluation
    @abstractmethod
    def eval_add(self, ciphertext: Ciphertext, other: Operand) -> Ciphertext:
        ...

    @abstractmethod
    def eval_add_in_place(self, ciphertext: Ciphertext, other: Ciphertext) -> None:
        ...

    @abstractmethod
    def eval_sub(self, ciphertext: Ciphertext, other: Operand) -> Ciphertext:
        ...

    @abstractmethod
    def eval_mult(self, ciphertext: Ciphertext, other: Operand) -> Ciphertext:
        ...

    @abstractmethod
    def eval_at_index(self, ciphertext: Ciphertext, index: int) -> Ciphertext:
        ...

    @abstractmethod
    def eval_merge(self, ciphertexts: Sequence[Ciphertext]) -> Ciphertext:
        ...

    @abstractmethod
    def eval_sum(self, ciphertext: Ciphertext, batch_size: int) -> Ciphertext:
        ...

    @abstractmethod
    def key_switch(self, ciphertext: Ciphertext, hint: Any) -> Ciphertext:
        ...

    @abstractmethod
    def mod_reduce_in_place(self, ciphertext: Ciphertext) -> None:
        ...

    @abstractmethod
    def drop_last_element(self, secret_key: Any) -> None:
        """Drop the last RNS tower from the secret key's private element."""

    # Metadata
    @abstractmethod
    def set_metadata(self, ciphertext: Ciphertext, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def get_metadata(self, ciphertext: Ciphertext, key: str) -> Any:
        ...

    # Lifecycle
    @abstractmethod
    def release(self) -> None:
        """Drop keys and cached evaluation material; further use must fail."""


class EncryptionBackend(ABC):
    """Factory for contexts of one engine."""

    name: str = "abstract"

    @abstractmethod
    def create_context(self, params: ResolvedParameters) -> EncryptionContext:
        ...

    @abstractmethod
    def release_all(self) -> None:
        """Engine-wide teardown of every context it still tracks."""


# =============================================================================
# Context store
# =============================================================================

class ContextStore:
    """
    Tracks the contexts created during one test case.

    A runner owns exactly one store; workers running cases in parallel each
    need their own.
    """

    def __init__(self, backend: EncryptionBackend):
        self.backend = backend
        self._live: List[EncryptionContext] = []
        self.stats = {"created": 0, "released": 0}

    @property
    def live_contexts(self) -> List[EncryptionContext]:
        return list(self._live)

    def create(self, params: ResolvedParameters) -> EncryptionContext:
        ctx = self.backend.create_context(params)
        self._live.append(ctx)
        self.stats["created"] += 1
        return ctx

    def release_all(self) -> int:
        """Release every tracked context, then ask the engine to do the same."""
        released = 0
        errors = []
        while self._live:
            ctx = self._live.pop()
            try:
                ctx.release()
            except Exception as e:
                errors.append(e)
            released += 1
        try:
            self.backend.release_all()
        except Exception as e:
            errors.append(e)

        self.stats["released"] += released
        logger.debug(f"Released {released} context(s) on backend '{self.backend.name}'")
        if errors:
            raise errors[0]
        return released

    @contextmanager
    def scope(self) -> Iterator["ContextStore"]:
        """Release everything on exit, whatever happened inside."""
        try:
            yield self
        finally:
            self.release_all()
