'''
Ranking bias policies for RCD.

A policy is any object with a method

    select_tie_break(rankable, context) -> subset of rankable

which RCD calls once per round with the rankable constraints (in universe
order) and the current otrank.rcd.RcdContext. The policy decides which of
them are placed in the next stratum; the rest stay unranked for a later
round. Deferring a rankable constraint never makes it unrankable, so a policy
can change the hierarchy RCD builds but never its consistency verdict.

Every policy here is deterministic: remaining ties are broken by universe
order.
'''

import logging

import numpy as np

from funcy import lmap

from otrank.constraint import Constraint


logger = logging.getLogger(__name__)


class BiasPolicy(object):
    name = 'abstract'

    def select_tie_break(self, rankable, context):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}()"


class AllHigh(BiasPolicy):
    '''
    Unbiased RCD: every rankable constraint goes into the next stratum, so
    every constraint is ranked as high as possible.
    '''
    name = 'all-high'

    def select_tie_break(self, rankable, context):
        return list(rankable)


class SomeLow(BiasPolicy):
    '''
    Ranks the constraints of a "low" class as low as possible and all others
    as high as possible (after Biased Constraint Demotion, Prince & Tesar).

    Each round:
     1. If any rankable constraint is outside the low class, place exactly
        those.
     2. Otherwise, among the rankable low constraints that are *active*
        (assign W to some unexplained ERC), place the one that frees up the
        largest cascade of high constraints. If several free the same
        largest number, the first in universe order wins. If none frees
        anything, place every active low constraint.
     3. If no low constraint is active, place every rankable low constraint.

    Minimal gangs of low constraints are not searched for; a single
    constraint is the unit of choice.

    is_low is a predicate on constraints.
    '''
    name = 'some-low'

    def __init__(self, is_low):
        self.is_low = is_low

    def low_mask(self, context):
        return np.array([bool(self.is_low(c)) for c in context.universe], dtype=bool)

    def select_tie_break(self, rankable, context):
        low_mask = self.low_mask(context)
        high = [c for c in rankable if not low_mask[context.universe.index(c)]]
        if len(high) > 0:
            return high
        active_mask = context.active_mask()
        low_active = [c for c in rankable if active_mask[context.universe.index(c)]]
        if len(low_active) == 0:
            return list(rankable)
        freed = [(c, count_freed_high(c, context, low_mask)) for c in low_active]
        best, best_count = freed[0]
        for c, n in freed[1:]:
            if n > best_count:
                best, best_count = c, n
        logger.debug('%s: freed-high counts %s', self.name, [(str(c), n) for c, n in freed])
        if best_count == 0:
            return low_active
        return [best]

    def __repr__(self):
        return f"{type(self).__name__}({self.is_low!r})"


def count_freed_high(low_con, context, low_mask):
    '''
    Returns the number of high (not low_mask) constraints that would become
    rankable if low_con alone were ranked next, following the cascade: the
    freed high constraints are ranked in turn, possibly freeing more, until
    no further high constraint is freed. The context is not modified.
    '''
    unranked    = context.unranked.copy()
    unexplained = context.unexplained.copy()
    stratum     = context.mask([low_con])
    total       = 0
    while stratum.any():
        unranked    = unranked & ~stratum
        unexplained = unexplained & ~context.explained_mask(stratum, unexplained)
        stratum     = context.rankable_mask(unranked, unexplained) & ~low_mask
        total      += int(stratum.sum())
    return total


class FaithLow(SomeLow):
    '''
    Markedness high, faithfulness low.
    '''
    name = 'faith-low'

    def __init__(self):
        super().__init__(Constraint.faithfulness)

    def __repr__(self):
        return 'FaithLow()'


class MarkLow(SomeLow):
    '''
    Faithfulness high, markedness low.
    '''
    name = 'mark-low'

    def __init__(self):
        super().__init__(Constraint.markedness)

    def __repr__(self):
        return 'MarkLow()'


class ForcedLow(SomeLow):
    '''
    A specific set of constraints ranked as low as possible.
    '''
    name = 'forced-low'

    def __init__(self, constraints):
        self.low = frozenset(constraints)
        super().__init__(self.low.__contains__)

    def low_mask(self, context):
        low = {context.universe.resolve(c) for c in self.low}
        return np.array([c in low for c in context.universe], dtype=bool)

    def __repr__(self):
        return f"ForcedLow({sorted(lmap(str, self.low))})"


POLICIES = {'all-high':   AllHigh,
            'faith-low':  FaithLow,
            'mark-low':   MarkLow}


def get_policy(bias):
    '''
    Returns a policy instance for bias, which may already be a policy, None
    (AllHigh) or one of the names in POLICIES.
    '''
    if bias is None:
        return AllHigh()
    if isinstance(bias, str):
        try:
            return POLICIES[bias]()
        except KeyError:
            raise ValueError(f"Unknown bias {bias!r}; expected one of {sorted(POLICIES)}") from None
    if not hasattr(bias, 'select_tie_break'):
        raise TypeError(f"{bias!r} is not a bias policy")
    return bias
