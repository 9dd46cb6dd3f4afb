'''
Recursive Constraint Demotion (RCD).

Given an ErcList, RCD builds a stratified hierarchy from the top down. Each
round the constraints that assign L to no still-unexplained ERC are
*rankable*; the bias policy picks which of them go into the next stratum;
every ERC assigned a W by the new stratum is then explained. When no
constraint is rankable, either every constraint has been placed (the ERCs are
consistent) or the ERCs are inconsistent, and the unexplained ERCs are the
residue.

References:
 - Tesar 1995. Computational Optimality Theory. ROA-90.
 - Tesar & Smolensky 2000. Learnability in Optimality Theory. MIT Press.
'''

import logging

import numpy as np

from funcy import lmap

from otrank.bias import get_policy
from otrank.hierarchy import Hierarchy
from otrank.ternary import W, L


logger = logging.getLogger(__name__)

# Debugging flag: when True, every consistent result is re-checked against
# its ERCs before being returned.
CAREFUL = False


class RcdContext(object):
    '''
    The state of an RCD run between rounds, as seen by a bias policy.

    Masks are boolean vectors: `unranked` over the universe's constraints,
    `unexplained` over the rows of `stack`. Policies must treat the context
    as read-only; the helper methods return fresh arrays.
    '''

    def __init__(self, universe, stack, ercs, unranked, unexplained):
        self.universe    = universe
        self.stack       = stack
        self.ercs        = ercs
        self.unranked    = unranked
        self.unexplained = unexplained

    def rankable_mask(self, unranked=None, unexplained=None):
        '''
        Constraints in unranked that assign L to no ERC in unexplained.
        '''
        unranked    = self.unranked if unranked is None else unranked
        unexplained = self.unexplained if unexplained is None else unexplained
        has_l = np.any(self.stack[unexplained] == L, axis=0)
        return unranked & ~has_l

    def explained_mask(self, stratum, unexplained=None):
        '''
        Rows of unexplained assigned a W by some constraint in the stratum
        (a boolean mask over the universe).
        '''
        unexplained = self.unexplained if unexplained is None else unexplained
        return unexplained & np.any((self.stack == W) & stratum, axis=1)

    def active_mask(self):
        '''
        Constraints assigning W to at least one unexplained ERC.
        '''
        return np.any(self.stack[self.unexplained] == W, axis=0)

    def mask(self, constraints):
        m = np.zeros(len(self.universe), dtype=bool)
        m[self.universe.indices(constraints)] = True
        return m

    def constraints(self, mask):
        return [self.universe[i] for i in np.flatnonzero(mask)]

    def unexplained_ercs(self):
        return [self.ercs[i] for i in np.flatnonzero(self.unexplained)]

    def unranked_constraints(self):
        return self.constraints(self.unranked)


class RcdResult(object):
    '''
    The outcome of one RCD run.

    consistent
        True iff every constraint could be ranked.
    ranked
        The strata built by RCD (a list of lists of constraints). On
        inconsistency these do not include the unrankable constraints.
    unranked
        The constraints left unrankable; empty when consistent.
    explained
        One list of ERCs per stratum: the ERCs that stratum explained.
    unexplained
        ERCs no stratum explained. When consistent, these are all-e ERCs.
    hierarchy
        A full Hierarchy: the ranked strata, plus the unranked constraints as
        a bottom stratum when inconsistent.
    '''

    def __init__(self, ercs, ranked, unranked, explained, unexplained, bias, label='RCD'):
        self.ercs        = ercs
        self.universe    = ercs.universe
        self.ranked      = ranked
        self.unranked    = unranked
        self.explained   = explained
        self.unexplained = unexplained
        self.bias        = bias
        self.label       = label
        self.consistent  = len(unranked) == 0
        strata = list(ranked) + ([list(unranked)] if len(unranked) > 0 else [])
        self.hierarchy   = Hierarchy(self.universe, strata) if self.universe is not None else None

    @property
    def residue(self):
        '''
        The unexplained ERCs that assign some L; empty when consistent.
        '''
        if self.consistent:
            return []
        return [e for e in self.unexplained if not e.trivially_valid()]

    @property
    def verdict(self):
        return 'CONSISTENT' if self.consistent else 'INCONSISTENT'

    def residue_labels(self):
        return lmap(lambda e: e.label, self.residue)

    def __bool__(self):
        return self.consistent

    def __repr__(self):
        return (f"RcdResult({self.label}: {self.verdict}, {self.hierarchy}"
                + ('' if self.consistent else f", residue={self.residue_labels()}") + ')')


def rcd(ercs, bias=None, label='RCD'):
    '''
    Runs Recursive Constraint Demotion on the ErcList ercs, using bias (an
    otrank.bias policy; default AllHigh) to choose among rankable constraints.
    Returns an RcdResult.

    Terminates in at most n rounds for n constraints: each round places at
    least one constraint.
    '''
    bias = get_policy(bias)
    universe = ercs.universe
    if universe is None:
        return RcdResult(ercs, [], [], [], [], bias, label=label)
    M = ercs.stack()
    erc_objs = ercs.to_list()
    context = RcdContext(universe, M,
                         erc_objs,
                         np.ones(len(universe), dtype=bool),
                         np.ones(M.shape[0], dtype=bool))
    ranked, explained = [], []
    rankable = context.rankable_mask()
    while rankable.any():
        chosen = list(bias.select_tie_break(context.constraints(rankable), context))
        stratum = context.mask(chosen)
        if len(chosen) == 0 or np.any(stratum & ~rankable):
            raise ValueError(f"Bias {bias!r} must choose a non-empty subset of the rankable constraints "
                             f"{lmap(str, context.constraints(rankable))}; chose {lmap(str, chosen)}")
        newly_explained = context.explained_mask(stratum)
        logger.debug('%s round %d: rankable %s, placed %s, explained %d erc(s)', label, len(ranked) + 1,
                     lmap(str, context.constraints(rankable)), lmap(str, context.constraints(stratum)),
                     int(newly_explained.sum()))
        ranked.append(context.constraints(stratum))
        explained.append([erc_objs[i] for i in np.flatnonzero(newly_explained)])
        context.unranked    = context.unranked & ~stratum
        context.unexplained = context.unexplained & ~newly_explained
        rankable = context.rankable_mask()
    unranked    = context.unranked_constraints()
    unexplained = context.unexplained_ercs()
    result = RcdResult(ercs, ranked, unranked, explained, unexplained, bias, label=label)
    if not result.consistent:
        logger.debug('%s inconsistent after %d round(s); unrankable %s, residue %s', label, len(ranked),
                     lmap(str, unranked), result.residue_labels())
    elif CAREFUL:
        assert result.hierarchy.satisfies_all(ercs), f"RCD hierarchy {result.hierarchy} violates {lmap(str, result.hierarchy.violated(ercs))}"
    return result


def consistent(ercs):
    return rcd(ercs).consistent


def get_hierarchy(ercs, bias=None):
    return rcd(ercs, bias=bias).hierarchy


class Ranker(object):
    '''
    Turns an ErcList into a hierarchy in one call, using a fixed bias.
    '''

    def __init__(self, bias=None):
        self.bias = get_policy(bias)

    def rcd(self, ercs, label='RCD'):
        return rcd(ercs, bias=self.bias, label=label)

    def get_hierarchy(self, ercs):
        return self.rcd(ercs).hierarchy

    def __repr__(self):
        return f"Ranker({self.bias!r})"
