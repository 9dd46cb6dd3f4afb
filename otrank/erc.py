'''
Elementary Ranking Conditions (ERCs) and ordered collections of them.

An Erc is an immutable balanced ternary mark vector (see otrank.ternary) over
an explicit ConstraintUniverse, plus a label. An ErcList is an ordered
multiset of ERCs over one universe; it answers aggregate questions
(consistency, support) by delegating to RCD and to otrank.entailment.
'''

import numpy as np

from funcy import lmap

from otrank.constraint import ConstraintUniverse
from otrank.errors import DuplicateConstraintUniverseError, MalformedInputError, UnknownConstraintError
from otrank.ternary import INT8, W, E, L, MARK_TO_VALUE, VALUE_TO_MARK, MAX_M_FOR_HASHING
from otrank.ternary import HashableArray, hash_marks, empty_stack, wf_marks, to_marks_string, from_marks_string
from otrank.ternary import from_mark_dict, to_mark_dict
from otrank.ternary import from_violations, from_violations_stack, fuse, conjunctive_expansion
from otrank.ternary import trivially_valid, trivially_invalid


def _coerce_marks(universe, marks):
    '''
    Turns a mark specification into a read-only int8 vector ordered by
    universe. Accepted: None (all e), an ndarray / sequence of -1/0/1, a
    'W L e' string, or a dict from constraints (or their names) to
    'W'/'L'/'e'.
    '''
    m = len(universe)
    if marks is None:
        u = np.zeros(m, dtype=INT8)
    elif isinstance(marks, str):
        try:
            u = from_marks_string(marks)
        except ValueError as err:
            raise UnknownConstraintError(str(err)) from None
    elif isinstance(marks, dict):
        bad = [(c, v) for c, v in marks.items() if v not in MARK_TO_VALUE]
        if len(bad) > 0:
            raise UnknownConstraintError(f"Illegal mark(s) {bad}; expected W, L or e.")
        u = from_mark_dict({universe.resolve(c): v for c, v in marks.items()}, universe.constraints)
    else:
        u = np.array(marks, dtype=INT8)
        if u.ndim != 1 or not wf_marks(u):
            raise UnknownConstraintError(f"Not a mark vector: {marks!r}")
    if u.shape[0] != m:
        raise UnknownConstraintError(f"Got {u.shape[0]} marks for a universe of {m} constraints {universe}")
    u = u.copy()
    u.setflags(write=False)
    return u


class Erc(object):
    '''
    One ranking datum: a W, L or e mark for every constraint of a universe.

    Equality and hashing ignore the label (and any winner/loser): two ERCs
    are equal iff they have the same universe and the same marks.
    '''

    def __init__(self, universe, marks=None, label='NoLabel', winner=None, loser=None):
        if not isinstance(universe, ConstraintUniverse):
            universe = ConstraintUniverse(universe)
        self._universe = universe
        self._marks    = _coerce_marks(universe, marks)
        self._label    = label
        self._winner   = winner
        self._loser    = loser
        self._key      = None

    @classmethod
    def from_candidates(cls, winner, loser, label=None):
        '''
        Builds the ERC comparing two candidates of the same input: W where
        the winner has fewer violations, L where it has more.
        '''
        if winner.universe != loser.universe:
            raise DuplicateConstraintUniverseError(f"Winner {winner} and loser {loser} use different constraint universes")
        if winner.input != loser.input:
            raise MalformedInputError(f"Winner {winner} and loser {loser} do not have the same input")
        if label is None:
            label = f"{winner.label}>{loser.label}"
        return cls(winner.universe, from_violations(winner.violations, loser.violations),
                   label=label, winner=winner, loser=loser)

    @property
    def universe(self):
        return self._universe

    @property
    def marks(self):
        '''The read-only int8 mark vector, ordered by the universe.'''
        return self._marks

    @property
    def label(self):
        return self._label

    @property
    def winner(self):
        return self._winner

    @property
    def loser(self):
        return self._loser

    def mark(self, c):
        '''Returns 'W', 'L' or 'e' for constraint c (or the constraint named c).'''
        return VALUE_TO_MARK[int(self._marks[self._universe.index(c)])]

    def w(self, c):
        return self._marks[self._universe.index(c)] == W

    def l(self, c):
        return self._marks[self._universe.index(c)] == L

    def e(self, c):
        return self._marks[self._universe.index(c)] == E

    def _with(self, value):
        return [c for c, x in zip(self._universe, self._marks) if x == value]

    @property
    def w_constraints(self):
        return self._with(W)

    @property
    def l_constraints(self):
        return self._with(L)

    def trivially_valid(self):
        '''No L: satisfied by every hierarchy.'''
        return trivially_valid(u=self._marks)

    def trivially_invalid(self):
        '''An L but no W: satisfied by no hierarchy.'''
        return trivially_invalid(u=self._marks)

    def conjunctive_expansion(self):
        '''
        Returns a list of ERCs, one per L of this ERC, each keeping all of the
        W's and exactly one of the L's. Jointly they are equivalent to self.
        '''
        M = conjunctive_expansion(self._marks)
        if M.shape[0] == 1:
            return [self]
        return [Erc(self._universe, row, label=f"{self._label}.{i + 1}") for i, row in enumerate(M)]

    def to_dict(self):
        return to_mark_dict(self._universe.constraints, self._marks)

    def prefs_to_s(self):
        return ' '.join(f"{c}:{VALUE_TO_MARK[int(x)]}" for c, x in zip(self._universe, self._marks))

    def key(self):
        '''
        The base-3 integer of the marks, or a HashableArray of them when the
        universe has more than MAX_M_FOR_HASHING constraints.
        '''
        if self._key is None:
            if len(self._universe) <= MAX_M_FOR_HASHING:
                self._key = int(hash_marks(self._marks))
            else:
                self._key = HashableArray(self._marks)
        return self._key

    def __eq__(self, other):
        if not isinstance(other, Erc):
            return NotImplemented
        return self._universe == other._universe and bool(np.array_equal(self._marks, other._marks))

    def __hash__(self):
        return hash((self._universe, self.key()))

    def __str__(self):
        return f"{self._label} {to_marks_string(self._marks)}"

    def __repr__(self):
        return f"Erc({self._label!r}, {self.prefs_to_s()!r})"


class ErcList(object):
    '''
    An ordered multiset of ERCs sharing one constraint universe.

    The universe is either given at construction or established by the first
    ERC added. Consistency is computed by RCD and cached until the next add.
    '''

    def __init__(self, universe=None, ercs=(), label=''):
        if universe is not None and not isinstance(universe, ConstraintUniverse):
            universe = ConstraintUniverse(universe)
        self._universe    = universe
        self._ercs        = []
        self._stack       = None
        self._consistency = None
        self.label        = label
        self.add_all(ercs)

    @classmethod
    def from_stack(cls, universe, M, labels=None, label=''):
        '''
        Builds an ErcList from a k x m stack of mark vectors.
        '''
        if labels is None:
            labels = [f"{label or 'erc'}.{i + 1}" for i in range(len(M))]
        return cls(universe, [Erc(universe, row, label=lab) for row, lab in zip(M, labels)], label=label)

    @classmethod
    def from_competition(cls, winner, competition, label=None):
        '''
        The ERCs making winner beat every other candidate of competition.
        Candidates with violation profiles identical to the winner's yield
        all-e ERCs and are skipped.
        '''
        ercs = cls(winner.universe, label=winner.label if label is None else label)
        losers = [c for c in competition if c is not winner and not winner.ident_viols(c)]
        if len(losers) == 0:
            return ercs
        M = from_violations_stack(winner.violations, [c.violations for c in losers])
        for row, loser in zip(M, losers):
            ercs.add(Erc(winner.universe, row, label=f"{winner.label}>{loser.label}", winner=winner, loser=loser))
        return ercs

    @property
    def universe(self):
        return self._universe

    @property
    def constraints(self):
        return () if self._universe is None else self._universe.constraints

    def add(self, erc):
        '''
        Appends erc. Raises DuplicateConstraintUniverseError if erc is not
        over the collection's universe. Returns self.
        '''
        if not isinstance(erc, Erc):
            raise TypeError(f"Can only add Ercs to an ErcList, not {type(erc).__name__}")
        if self._universe is None:
            self._universe = erc.universe
        elif erc.universe != self._universe:
            raise DuplicateConstraintUniverseError(f"Cannot add ERC {erc.label} over {erc.universe} "
                                                   f"to a list over {self._universe}")
        self._ercs.append(erc)
        self._stack       = None
        self._consistency = None
        return self

    def add_all(self, ercs):
        for erc in ercs:
            self.add(erc)
        return self

    def copy(self, label=None):
        '''
        Returns an independent list over the same (immutable) ERC objects.
        '''
        new = ErcList(self._universe, label=self.label if label is None else label)
        new._ercs        = list(self._ercs)
        new._stack       = self._stack
        new._consistency = self._consistency
        return new

    def stack(self):
        '''
        Returns the k x m int8 stack of mark vectors (one row per ERC).
        '''
        if self._stack is None:
            m = len(self.constraints)
            if len(self._ercs) == 0:
                self._stack = empty_stack(m)
            else:
                self._stack = np.vstack([e.marks for e in self._ercs]).astype(INT8)
            self._stack.setflags(write=False)
        return self._stack

    def __len__(self):
        return len(self._ercs)

    def __iter__(self):
        return iter(self._ercs)

    def __getitem__(self, i):
        return self._ercs[i]

    def __bool__(self):
        return len(self._ercs) > 0

    def to_list(self):
        return list(self._ercs)

    def labels(self):
        return lmap(lambda e: e.label, self._ercs)

    ##########################
    # filtering by mark type #
    ##########################

    def _sublist(self, ercs):
        return ErcList(self._universe, ercs, label=self.label)

    def find_all(self, pred):
        return self._sublist(e for e in self._ercs if pred(e))

    def reject(self, pred):
        return self._sublist(e for e in self._ercs if not pred(e))

    def partition(self, pred):
        yes, no = [], []
        for e in self._ercs:
            (yes if pred(e) else no).append(e)
        return self._sublist(yes), self._sublist(no)

    def with_mark(self, c, mark):
        '''
        Returns the ERCs assigning mark ('W', 'L' or 'e') to constraint c.
        '''
        if mark not in MARK_TO_VALUE:
            raise UnknownConstraintError(f"Illegal mark {mark!r}; expected W, L or e.")
        if self._universe is None:
            return self._sublist([])
        column = self.stack()[:, self._universe.index(c)]
        return self._sublist(e for e, x in zip(self._ercs, column) if x == MARK_TO_VALUE[mark])

    ##############################
    # aggregate ranking queries  #
    ##############################

    def rcd(self, bias=None):
        '''
        Runs RCD with the given bias (default: all constraints as high as
        possible) and returns the RcdResult.
        '''
        from otrank.rcd import rcd
        return rcd(self, bias=bias)

    def consistent(self):
        '''
        True iff some stratified hierarchy over the universe satisfies every
        ERC. Bias never changes the answer, so the unbiased run is cached.
        '''
        if self._consistency is None:
            self._consistency = self.rcd().consistent
        return self._consistency

    def entails(self, target):
        from otrank.entailment import entails
        return entails(self, target)

    def minimal_support(self, target):
        '''
        The smallest sub-collection entailing target, or None if the whole
        collection does not entail it.
        '''
        from otrank.entailment import minimal_support
        return minimal_support(self, target)

    def fusion(self):
        '''
        The fusion of every ERC in the list, or None for an empty list.
        '''
        if len(self._ercs) == 0:
            return None
        return Erc(self._universe, fuse(M=self.stack()), label=f"f.{self.label}")

    def __str__(self):
        return '\n'.join(str(e) for e in self._ercs)

    def __repr__(self):
        return f"ErcList({self.label!r}, {len(self._ercs)} ercs over {self._universe})"
