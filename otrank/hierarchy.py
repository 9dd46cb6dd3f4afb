'''
Stratified constraint hierarchies.

A Hierarchy is an immutable tuple of strata (frozensets of constraints),
highest first, over an explicit ConstraintUniverse. Every constraint of the
universe is in exactly one stratum.
'''

import itertools

import numpy as np

from funcy import cat, lmap

from otrank.constraint import ConstraintUniverse
from otrank.errors import MalformedInputError
from otrank.ternary import W, L, E


class Hierarchy(object):

    def __init__(self, universe, strata):
        if not isinstance(universe, ConstraintUniverse):
            universe = ConstraintUniverse(universe)
        strata = tuple(frozenset(universe.resolve(c) for c in s) for s in strata)
        placed = list(cat(strata))
        if len(placed) != len(set(placed)):
            raise MalformedInputError(f"A constraint appears in more than one stratum: {lmap(lambda s: lmap(str, s), strata)}")
        if set(placed) != set(universe):
            missing = [str(c) for c in universe if c not in set(placed)]
            raise MalformedInputError(f"Hierarchy does not place every constraint of the universe; missing {missing}")
        if any(len(s) == 0 for s in strata):
            raise MalformedInputError('Hierarchies cannot contain empty strata')
        self._universe = universe
        self._strata   = strata
        ranks = np.empty(len(universe), dtype=np.int64)
        for r, s in enumerate(strata):
            ranks[universe.indices(s)] = r
        ranks.setflags(write=False)
        self._ranks = ranks

    @classmethod
    def unranked(cls, universe):
        '''
        The hierarchy with every constraint in a single stratum.
        '''
        return cls(universe, [list(universe)] if len(universe) > 0 else [])

    @classmethod
    def from_total_order(cls, universe, order):
        return cls(universe, [[c] for c in order])

    @property
    def universe(self):
        return self._universe

    @property
    def strata(self):
        return self._strata

    def ranks(self):
        '''
        Returns an int vector with the stratum index of every constraint,
        ordered by the universe.
        '''
        return self._ranks

    def rank_of(self, c):
        return int(self._ranks[self._universe.index(c)])

    def dominates(self, c1, c2):
        return self.rank_of(c1) < self.rank_of(c2)

    def is_total(self):
        return all(len(s) == 1 for s in self._strata)

    def ordered_strata(self):
        '''
        The strata as lists, each sorted by universe order.
        '''
        return [self._universe.order(s) for s in self._strata]

    def flatten(self):
        return list(cat(self.ordered_strata()))

    def names(self):
        return [[c.name for c in s] for s in self.ordered_strata()]

    def __len__(self):
        return len(self._strata)

    def __iter__(self):
        return iter(self._strata)

    def __getitem__(self, i):
        return self._strata[i]

    def __eq__(self, other):
        if not isinstance(other, Hierarchy):
            return NotImplemented
        return self._universe == other._universe and self._strata == other._strata

    def __hash__(self):
        return hash((self._universe, self._strata))

    def __str__(self):
        return ' '.join('[' + ' '.join(str(c) for c in s) + ']' for s in self.ordered_strata())

    def __repr__(self):
        return f"Hierarchy({self.names()!r})"

    ################
    # satisfaction #
    ################

    def satisfies_stack(self, M):
        '''
        Given a k x m stack of mark vectors, returns a boolean vector:
        row i is satisfied iff the highest stratum holding a non-e mark of
        M[i] holds a W and no L. All-e rows are satisfied.
        '''
        M = np.asarray(M)
        if M.shape[0] == 0:
            return np.ones(0, dtype=bool)
        specified = M != E
        ranks     = np.where(specified, self._ranks, len(self._strata))
        top       = ranks.min(axis=1, keepdims=True)
        at_top    = specified & (ranks == top)
        has_w     = np.any(at_top & (M == W), axis=1)
        has_l     = np.any(at_top & (M == L), axis=1)
        no_marks  = ~np.any(specified, axis=1)
        return no_marks | (has_w & ~has_l)

    def satisfies(self, erc):
        if erc.universe != self._universe:
            raise MalformedInputError(f"ERC {erc.label} is not over this hierarchy's universe")
        return bool(self.satisfies_stack(erc.marks.reshape(1, -1))[0])

    def satisfies_all(self, ercs):
        if len(ercs) == 0:
            return True
        if ercs.universe != self._universe:
            raise MalformedInputError(f"ERC list {ercs.label!r} is not over this hierarchy's universe")
        return bool(self.satisfies_stack(ercs.stack()).all())

    def violated(self, ercs):
        '''
        Returns the ERCs of ercs that this hierarchy does not satisfy.
        '''
        if len(ercs) == 0:
            return []
        mask = self.satisfies_stack(ercs.stack())
        return [e for e, ok in zip(ercs, mask) if not ok]

    def linearizations(self):
        '''
        Yields every total-order hierarchy refining this one.
        '''
        for perms in itertools.product(*[itertools.permutations(s) for s in self.ordered_strata()]):
            yield Hierarchy.from_total_order(self._universe, cat(perms))


def total_orders(universe):
    '''
    Yields every totally ordered hierarchy over universe (n! of them).
    '''
    for order in itertools.permutations(universe):
        yield Hierarchy.from_total_order(universe, order)
