'''
Contains functions for creating and manipulating NumPy ndarrays that represent
ERC mark vectors as balanced ternary vectors:
    W (constraint prefers the winner) = +1
    e (no preference)                 =  0
    L (constraint prefers the loser)  = -1

A stack of k ERCs over m constraints is a k x m int8 ndarray, one ERC per row.
Most functions here have a vector version and a stack version.
'''

import numpy as np

from hashlib import sha1

from funcy import lmap


INT8 = np.int8

W = 1
E = 0
L = -1

MARK_TO_VALUE = {'W': W, 'e': E, 'L': L}
VALUE_TO_MARK = {W: 'W', E: 'e', L: 'L'}


###########################
# HASHING TERNARY VECTORS #
###########################


MAX_M_FOR_HASHING = 40  # 3^40 < 2^64, but 3^41 > 2^64


def marks_to_trits(u):
    '''
    Converts a balanced ternary mark vector (or stack) to unbalanced base-3
    digits, element-wise:
      [L, e, W] = [-1, 0, 1] => [0, 1, 2]
    '''
    return u + 1


def trits_to_int(trits):
    '''
    Converts a vector of base-3 digits (or a stack of them) to the
    corresponding base-10 integer(s), most significant digit first.

    E.g.
      trits_to_int(np.array([0, 1, 2, 0])) => 15
    '''
    m = trits.shape[-1]
    assert m <= MAX_M_FOR_HASHING, f"Cannot hash more than {MAX_M_FOR_HASHING} marks into 64 bits, got {m}"
    exponents = np.flip(np.arange(m)).astype(np.uint64)
    powers    = np.power(np.array([3], dtype=np.uint64), exponents)
    return np.matmul(trits.astype(np.uint64), powers, dtype=np.uint64)


def hash_marks(u):
    '''
    Maps a mark vector (or a stack of them) to a unique unsigned int. Only
    defined for vectors of at most MAX_M_FOR_HASHING marks.
    '''
    return trits_to_int(marks_to_trits(u))


class HashableArray(object):
    r'''Hashable wrapper for (mark vector) ndarrays.

        ndarrays are mutable and therefore unhashable; this wraps one so that
        mark vectors too long for hash_marks can still key sets and dicts. By
        default the wrapped array is copied and made read-only, so the hash
        cannot go stale.
    '''

    def __init__(self, arr, tight=True):
        if tight:
            arr = np.array(arr, dtype=INT8)
            arr.setflags(write=False)
        self.__wrapped = arr
        self.__hash    = int(sha1(np.ascontiguousarray(arr).view(np.uint8)).hexdigest(), 16)

    def __eq__(self, other):
        if not isinstance(other, HashableArray):
            return NotImplemented
        return self.__wrapped.shape == other.__wrapped.shape and bool(np.all(self.__wrapped == other.__wrapped))

    def __hash__(self):
        return self.__hash

    def unwrap(self):
        return self.__wrapped

    def __str__(self):
        return str(self.unwrap())

    def __repr__(self):
        return f"Hashable({self.unwrap().__repr__()})"


#################
# Pseudo-typing #
#################

def wf_marks(u):
    '''
    Indicates whether every value of u (a vector or a stack) is a legal mark.
    '''
    return bool(np.isin(u, (L, E, W)).all())


def empty_stack(m):
    '''
    Returns a well-shaped 0 x m stack.
    '''
    return np.zeros((0, m), dtype=INT8)


######################################
# Converting between representations #
######################################


def from_mark_dict(d, constraint_seq):
    '''
    Given a dictionary mapping (some) constraints to 'W'/'L'/'e' and an
    ordering on constraints, returns the ternary vector version of the
    dictionary. Constraints missing from d are 'e'.
    '''
    return np.array([MARK_TO_VALUE[d[c]] if c in d else E for c in constraint_seq], dtype=INT8)


def to_mark_dict(constraint_seq, u):
    '''
    Given a sequence of constraints and a mark vector u ordered the same way,
    returns the equivalent {constraint: 'W'/'L'/'e'} dictionary.
    '''
    assert len(constraint_seq) == u.shape[0], f"Num constraints does not match length of u: {len(constraint_seq)} vs. {u.shape[0]}"
    return dict(zip(constraint_seq, lmap(VALUE_TO_MARK.get, u.tolist())))


def to_marks_string(u):
    '''
    Returns the conventional comparative-tableau row for u, e.g.
      [1, -1, 0] => 'W L e'
    '''
    return ' '.join(VALUE_TO_MARK[x] for x in u.tolist())


def from_marks_string(s):
    '''
    Inverse of to_marks_string; also accepts unspaced rows like 'WLe'.
    '''
    tokens = s.split() if ' ' in s.strip() else list(s.strip())
    bad    = [t for t in tokens if t not in MARK_TO_VALUE]
    if len(bad) > 0:
        raise ValueError(f"Illegal mark(s) {bad} in '{s}'; expected W, L or e.")
    return np.array([MARK_TO_VALUE[t] for t in tokens], dtype=INT8)


def from_violations(winner, loser):
    '''
    Given the violation vectors of a winner and a loser over the same
    constraints, returns the mark vector comparing them: W where the winner
    has fewer violations, L where it has more, e where they tie.
    '''
    return np.sign(np.asarray(loser, dtype=np.int64) - np.asarray(winner, dtype=np.int64)).astype(INT8)


def from_violations_stack(winner, losers):
    '''
    Stack version of from_violations: one row per loser.
    '''
    losers = np.asarray(losers, dtype=np.int64)
    return np.sign(losers - np.asarray(winner, dtype=np.int64)).astype(INT8)


##################
# MARK PREDICATES #
##################


def w_mask(u):
    return u == W


def l_mask(u):
    return u == L


def trivially_valid(u=None, M=None):
    '''
    A mark vector is trivially valid iff it has no L: every hierarchy
    satisfies it. Given a stack M, answers row-wise.
    '''
    if u is not None:
        return not bool(np.any(u == L))
    elif M is not None:
        return ~np.any(M == L, axis=-1)
    else:
        raise Exception('Provide a vector u or a stack M.')


def trivially_invalid(u=None, M=None):
    '''
    A mark vector is trivially invalid iff it has an L and no W: no hierarchy
    satisfies it. Given a stack M, answers row-wise.
    '''
    if u is not None:
        return bool(np.any(u == L)) and not bool(np.any(u == W))
    elif M is not None:
        return np.any(M == L, axis=-1) & ~np.any(M == W, axis=-1)
    else:
        raise Exception('Provide a vector u or a stack M.')


#################
# ERC ALGEBRA   #
#################


def fuse(u=None, v=None, M=None):
    '''
    Fusion of two mark vectors u, v (or of every row of a stack M):
     - L wherever any factor has L
     - otherwise W wherever any factor has W
     - otherwise e

    The fusion of an empty stack is undefined; None is returned.
    '''
    if u is not None and v is not None:
        M = np.vstack([u, v])
    if M is None:
        raise Exception('Provide exactly two vectors u,v or else a stack M.')
    if M.shape[0] == 0:
        return None
    any_l = np.any(M == L, axis=0)
    any_w = np.any(M == W, axis=0)
    return np.where(any_l, L, np.where(any_w, W, E)).astype(INT8)


def arrow(u, v):
    '''
    The ERC arrow: u → v holds iff
     - every constraint that is W in u is also W in v (W only entails W)
     - every constraint that is L in v is also L in u (L only entailed by L)

    For non-trivial ERCs this is exactly entailment.
    '''
    w_ok = np.all(~w_mask(u) | w_mask(v))
    l_ok = np.all(~l_mask(v) | l_mask(u))
    return bool(w_ok and l_ok)


def arrow_stack_left(M, v):
    '''
    Row-wise version of arrow: returns a boolean vector with
        result[i] == arrow(M[i], v)
    '''
    w_ok = np.all(~w_mask(M) | w_mask(v), axis=-1)
    l_ok = np.all(~l_mask(v) | l_mask(M), axis=-1)
    return w_ok & l_ok


def conjunctive_expansion(u):
    '''
    Expands u with respect to its L marks: returns a stack with one row per
    L of u, each keeping every W of u and just that one L. A vector with at
    most one L expands to itself.
    '''
    l_indices = np.flatnonzero(l_mask(u))
    if l_indices.shape[0] < 2:
        return u.reshape(1, -1).copy()
    keep_w  = np.where(w_mask(u), W, E).astype(INT8)
    result  = np.tile(keep_w, (l_indices.shape[0], 1))
    result[np.arange(l_indices.shape[0]), l_indices] = L
    return result
