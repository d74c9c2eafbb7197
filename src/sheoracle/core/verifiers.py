"""
sheoracle Operation Verifiers

One procedure per OperationKind. Each builds its fixture, drives the context,
decrypts and records every equivalent entry point as its own labelled check.
Engine exceptions propagate to the runner's failure boundary.
"""

from typing import Callable, Dict, List, Sequence

import numpy as np

from .capability import Ciphertext, EncryptionContext, Plaintext
from .cases import BATCH_LRG, OperationKind
from .outcome import CheckRecorder

Verifier = Callable[[EncryptionContext, CheckRecorder], None]

# Reference ring for the reduced product (ring dimension 8)
REDUCED_CYCLOTOMIC_ORDER = 16

KEY_SWITCH_MESSAGE = "I am good, what are you?! 32 ch"


def _packed(pt: Plaintext, length: int) -> List[int]:
    pt.set_length(length)
    return pt.packed_value


def _coef(pt: Plaintext, length: int) -> List[int]:
    pt.set_length(length)
    return pt.coef_packed_value


def _tile(values: Sequence[int], n: int) -> np.ndarray:
    return np.resize(np.asarray(values, dtype=np.int64), n)


# =============================================================================
# Arithmetic
# =============================================================================

def verify_add_packed(context: EncryptionContext, checks: CheckRecorder) -> None:
    a = [1, 0, 3, 1, 0, 1, 2, 1]
    b = [2, 1, 3, 2, 2, 1, 3, 0]
    expected_sum = [3, 1, 6, 3, 2, 2, 5, 1]
    expected_diff = [-1, -1, 0, -1, -2, 0, -1, 1]
    n = len(expected_sum)

    kp = context.key_gen()
    pt1 = context.make_coef_packed_plaintext(a)
    pt2 = context.make_coef_packed_plaintext(b)
    ct1 = context.encrypt(kp.public_key, pt1)
    ct2 = context.encrypt(kp.public_key, pt2)

    def dec(ct: Ciphertext) -> List[int]:
        return _coef(context.decrypt(kp.secret_key, ct), n)

    checks.expect_equal(expected_sum, dec(context.eval_add(ct1, ct2)), "EvalAdd")

    ct_in_place = ct1.clone()
    context.eval_add_in_place(ct_in_place, ct2)
    checks.expect_equal(expected_sum, dec(ct_in_place), "EvalAddInPlace")

    checks.expect_equal(expected_sum, dec(ct1 + ct2), "operator+")

    ct_acc = ct1.clone()
    ct_acc += ct2
    checks.expect_equal(expected_sum, dec(ct_acc), "operator+=")

    checks.expect_equal(expected_diff, dec(context.eval_sub(ct1, ct2)), "EvalSub")
    checks.expect_equal(expected_diff, dec(ct1 - ct2), "operator-")

    ct_acc = ct1.clone()
    ct_acc -= ct2
    checks.expect_equal(expected_diff, dec(ct_acc), "operator-=")

    checks.expect_equal(expected_sum, dec(context.eval_add(ct1, pt2)), "EvalAdd Ct and Pt")
    checks.expect_equal(expected_diff, dec(context.eval_sub(ct1, pt2)), "EvalSub Ct and Pt")


def _verify_mult(context: EncryptionContext, checks: CheckRecorder, a: Sequence[int], b: Sequence[int],
                 expected: Sequence[int], coefficient: bool) -> None:
    make = context.make_coef_packed_plaintext if coefficient else context.make_packed_plaintext
    decode = _coef if coefficient else _packed
    n = len(expected)

    kp = context.key_gen()
    context.eval_mult_key_gen(kp.secret_key)
    pt1 = make(a)
    pt2 = make(b)
    ct1 = context.encrypt(kp.public_key, pt1)
    ct2 = context.encrypt(kp.public_key, pt2)

    def dec(ct: Ciphertext) -> List[int]:
        return decode(context.decrypt(kp.secret_key, ct), n)

    checks.expect_equal(expected, dec(context.eval_mult(ct1, ct2)), "EvalMult")
    checks.expect_equal(expected, dec(ct1 * ct2), "operator*")

    ct_acc = ct1.clone()
    ct_acc *= ct2
    checks.expect_equal(expected, dec(ct_acc), "operator*=")

    checks.expect_equal(expected, dec(context.eval_mult(ct1, pt2)), "EvalMult Ct and Pt")


def verify_mult_coef_packed(context: EncryptionContext, checks: CheckRecorder) -> None:
    a = [1, 0, 3, 1, 0, 1, 2, 1]
    b = [2, 1, 3, 2, 2, 1, 3, 0]
    if context.cyclotomic_order == REDUCED_CYCLOTOMIC_ORDER:
        # product reduced modulo x^8 + 1
        expected = [-17, -11, 2, 0, 5, 9, 16, 12]
    else:
        expected = [2, 1, 9, 7, 12, 12, 16, 12, 19, 12, 7, 7, 7, 3]
    _verify_mult(context, checks, a, b, expected, coefficient=True)


def verify_mult_packed(context: EncryptionContext, checks: CheckRecorder) -> None:
    a = [1, 0, 3, 1, 0, 1, 2, 1]
    b = [2, 1, 3, 2, 2, 1, 3, 1]
    expected = [2, 0, 9, 2, 0, 1, 6, 1]
    _verify_mult(context, checks, a, b, expected, coefficient=False)


# =============================================================================
# Slot movement
# =============================================================================

def verify_evalatindex(context: EncryptionContext, checks: CheckRecorder) -> None:
    values = list(range(1, 17))
    expected_left = values[3:] + [0, 0, 0]
    expected_right = [0, 0, 0] + values[:-3]

    kp = context.key_gen()
    ct = context.encrypt(kp.public_key, context.make_packed_plaintext(values))
    context.eval_at_index_key_gen(kp.secret_key, [3, -3])

    left = context.decrypt(kp.secret_key, context.eval_at_index(ct, 3))
    checks.expect_equal(expected_left, _packed(left, len(values)), "EvalAtIndex(3)")

    right = context.decrypt(kp.secret_key, context.eval_at_index(ct, -3))
    checks.expect_equal(expected_right, _packed(right, len(values)), "EvalAtIndex(-3)")


def verify_evalmerge(context: EncryptionContext, checks: CheckRecorder) -> None:
    heads = [32, 2, 4, 8, 16]
    expected = [32, 2, 4, 8, 16, 0, 0, 0]

    kp = context.key_gen()
    ciphertexts = []
    for head in heads:
        pt = context.make_packed_plaintext([head] + [0] * 9)
        ciphertexts.append(context.encrypt(kp.public_key, pt))
    context.eval_at_index_key_gen(kp.secret_key, [-i for i in range(1, len(heads) + 1)])

    merged = context.decrypt(kp.secret_key, context.eval_merge(ciphertexts))
    checks.expect_equal(expected, _packed(merged, len(expected)), "EvalMerge")


# =============================================================================
# Summation
# =============================================================================

def verify_evalsum(context: EncryptionContext, checks: CheckRecorder) -> None:
    base = [1, 2, 3, 4, 5, 6, 7, 8]
    dim = len(base)
    n = context.ring_dimension

    kp = context.key_gen()
    ct = context.encrypt(kp.public_key, context.make_packed_plaintext(_tile(base, n).tolist()))
    context.eval_sum_key_gen(kp.secret_key)

    windows = [
        (1, base),
        (2, [3, 5, 7, 9, 11, 13, 15, 9]),
        (8, [36] * dim),
    ]
    for batch, expected in windows:
        result = context.decrypt(kp.secret_key, context.eval_sum(ct, batch))
        checks.expect_equal(expected, _packed(result, dim), f"EvalSum for batch size = {batch}")


def verify_evalsum_all(context: EncryptionContext, checks: CheckRecorder) -> None:
    n = context.ring_dimension
    dim = 8
    values = np.zeros(n, dtype=np.int64)
    values[:dim] = np.arange(1, dim + 1)
    values[n - dim:] = np.arange(n - dim, n)

    kp = context.key_gen()
    ct = context.encrypt(kp.public_key, context.make_packed_plaintext(values.tolist()))
    context.eval_sum_key_gen(kp.secret_key)

    result = context.decrypt(kp.secret_key, context.eval_sum(ct, BATCH_LRG))
    checks.expect_equal([32768] * dim, _packed(result, dim), "EvalSum for batch size = All")


# =============================================================================
# Metadata
# =============================================================================

def verify_metadata(context: EncryptionContext, checks: CheckRecorder) -> None:
    key = "test"
    pt1 = context.make_packed_plaintext(list(range(8)))
    pt2 = context.make_packed_plaintext([-i for i in range(8)])

    kp = context.key_gen()
    context.eval_mult_key_gen(kp.secret_key)
    context.eval_at_index_key_gen(kp.secret_key, [2, -2])
    context.eval_sum_key_gen(kp.secret_key)

    ct1 = context.encrypt(kp.public_key, pt1)
    ct2 = context.encrypt(kp.public_key, pt2)
    context.set_metadata(ct1, key, "ciphertext1")
    context.set_metadata(ct2, key, "ciphertext2")

    def expect_tag(ct: Ciphertext, label: str) -> None:
        checks.expect_same("ciphertext1", context.get_metadata(ct, key),
                           f"Ciphertext metadata mismatch in {label}")

    expect_tag(context.eval_add(ct1, ct2), "EvalAdd(ctx,ctx)")

    ct_in_place = ct1.clone()
    context.eval_add_in_place(ct_in_place, ct2)
    expect_tag(ct_in_place, "EvalAddInPlace(ctx,ctx)")

    expect_tag(context.eval_add(ct1, pt1), "EvalAdd(ctx,ptx)")
    expect_tag(context.eval_sub(ct1, ct2), "EvalSub(ctx,ctx)")
    expect_tag(context.eval_sub(ct1, pt1), "EvalSub(ctx,ptx)")
    expect_tag(context.eval_mult(ct1, ct2), "EvalMult(ctx,ctx)")
    expect_tag(context.eval_mult(ct1, pt1), "EvalMult(ctx,ptx)")
    expect_tag(context.eval_at_index(ct1, 2), "EvalAtIndex +2")
    expect_tag(context.eval_at_index(ct1, -2), "EvalAtIndex -2")


# =============================================================================
# Key switching
# =============================================================================

def _switched_ciphertext(context: EncryptionContext, checks: CheckRecorder):
    plaintext = context.make_string_plaintext(KEY_SWITCH_MESSAGE)
    kp1 = context.key_gen()
    ct = context.encrypt(kp1.public_key, plaintext)

    kp2 = context.key_gen()
    hint = context.key_switch_gen(kp1.secret_key, kp2.secret_key)
    switched = context.key_switch(ct, hint)

    decrypted = context.decrypt(kp2.secret_key, switched)
    checks.expect_same(plaintext.string_value, decrypted.string_value, "Key-Switched Decrypt")
    return plaintext, switched, kp2


def verify_ks_single_crt(context: EncryptionContext, checks: CheckRecorder) -> None:
    _switched_ciphertext(context, checks)


def verify_ks_mod_reduce_dcrt(context: EncryptionContext, checks: CheckRecorder) -> None:
    plaintext, switched, kp2 = _switched_ciphertext(context, checks)

    context.mod_reduce_in_place(switched)
    context.drop_last_element(kp2.secret_key)
    decrypted = context.decrypt(kp2.secret_key, switched)
    checks.expect_same(plaintext.string_value, decrypted.string_value, "Mod Reduced Decrypt")


VERIFIERS: Dict[OperationKind, Verifier] = {
    OperationKind.ADD_PACKED: verify_add_packed,
    OperationKind.MULT_COEF_PACKED: verify_mult_coef_packed,
    OperationKind.MULT_PACKED: verify_mult_packed,
    OperationKind.EVALATINDEX: verify_evalatindex,
    OperationKind.EVALMERGE: verify_evalmerge,
    OperationKind.EVALSUM: verify_evalsum,
    OperationKind.METADATA: verify_metadata,
    OperationKind.EVALSUM_ALL: verify_evalsum_all,
    OperationKind.KS_SINGLE_CRT: verify_ks_single_crt,
    OperationKind.KS_MOD_REDUCE_DCRT: verify_ks_mod_reduce_dcrt,
}
