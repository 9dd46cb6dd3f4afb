'''
Candidates, competitions, and harmonic evaluation against stratified
hierarchies.

A Candidate is an input/output pair with a non-negative int violation vector
ordered by its ConstraintUniverse. A Competition is a non-empty collection of
candidates sharing one input and one universe, with at most one candidate
designated as the observed winner.

Two criteria resolve competing candidates inside a stratum:
    CTIE  conflicts tie: a stratum only decides between two candidates if
          one is no worse than the other on every constraint of the stratum.
    POOL  the violations of all constraints in the stratum are summed.
'''

import logging

from collections import namedtuple

import numpy as np

from funcy import lmap

from otrank.constraint import ConstraintUniverse
from otrank.errors import DuplicateConstraintUniverseError, EmptyCompetitionError, MalformedInputError
from otrank.erc import ErcList


logger = logging.getLogger(__name__)


CTIE = 'ctie'
POOL = 'pool'
CRITERIA = (CTIE, POOL)

FIRST    = 'first'
SECOND   = 'second'
TIE      = 'tie'
CONFLICT = 'conflict'


def _coerce_violations(universe, violations):
    m = len(universe)
    if isinstance(violations, dict):
        v = np.zeros(m, dtype=np.int64)
        for c, n in violations.items():
            v[universe.index(c)] = n
    else:
        v = np.array(violations, dtype=np.int64)
        if v.ndim != 1 or v.shape[0] != m:
            raise MalformedInputError(f"Expected {m} violation counts for universe {universe}, got {violations!r}")
    if np.any(v < 0):
        raise MalformedInputError(f"Violation counts must be non-negative: {violations!r}")
    v.setflags(write=False)
    return v


class Candidate(object):
    '''
    One candidate output for an input, with its violation profile.

    optimal is a typology assertion: True (this candidate must win), False
    (it may never win) or None (no assertion).

    Candidates are equal iff their inputs and outputs are equal.
    '''

    def __init__(self, input, output, violations, universe, label=None, optimal=None):
        if not isinstance(universe, ConstraintUniverse):
            universe = ConstraintUniverse(universe)
        if optimal not in (True, False, None):
            raise MalformedInputError(f"optimal must be True, False or None, not {optimal!r}")
        self.input      = input
        self.output     = output
        self.universe   = universe
        self.violations = _coerce_violations(universe, violations)
        self.label      = f"{input}->{output}" if label is None else label
        self.optimal    = optimal

    def viols(self, c):
        return int(self.violations[self.universe.index(c)])

    def ident_viols(self, other):
        '''True iff other has exactly the same violation profile.'''
        return bool(np.array_equal(self.violations, other.violations))

    def harmonically_bounds(self, other):
        '''
        True iff self is at least as good as other on every constraint and
        strictly better on at least one, so that other can never beat self.
        '''
        if self.universe != other.universe:
            raise DuplicateConstraintUniverseError(f"{self} and {other} use different constraint universes")
        return bool(np.all(self.violations <= other.violations) and np.any(self.violations < other.violations))

    def key(self):
        return (self.input, self.output)

    def __eq__(self, other):
        if not isinstance(other, Candidate):
            return NotImplemented
        return self.key() == other.key()

    def __hash__(self):
        return hash(self.key())

    def __str__(self):
        return self.label

    def __repr__(self):
        return f"Candidate({self.input!r}, {self.output!r}, {self.violations.tolist()})"


class Competition(object):
    '''
    The candidates for one input. winner, if given, is one of the candidates
    (or the output of one) and is the observed winner used by MRCD.
    '''

    def __init__(self, candidates, winner=None, label=None):
        candidates = tuple(candidates)
        if len(candidates) == 0:
            raise EmptyCompetitionError(f"Competition {label!r} has no candidates")
        universe = candidates[0].universe
        if any(c.universe != universe for c in candidates):
            raise DuplicateConstraintUniverseError(f"Candidates of competition {label!r} use different constraint universes")
        inputs = {c.input for c in candidates}
        if len(inputs) > 1:
            raise MalformedInputError(f"Candidates of one competition must share an input, got {sorted(map(str, inputs))}")
        if len(set(candidates)) != len(candidates):
            raise MalformedInputError(f"Competition {label!r} lists the same output twice")
        self.candidates = candidates
        self.universe   = universe
        self.input      = candidates[0].input
        self.label      = str(self.input) if label is None else label
        self.winner     = None if winner is None else self._resolve(winner)
        self._stack     = None

    def _resolve(self, winner):
        for c in self.candidates:
            if c is winner or c == winner or c.output == winner:
                return c
        raise MalformedInputError(f"Winner {winner} is not a candidate of competition {self.label}")

    def with_winner(self, winner):
        '''Returns a copy of this competition with winner designated.'''
        return Competition(self.candidates, winner=self._resolve(winner), label=self.label)

    def candidate(self, output):
        return self._resolve(output)

    def violations(self):
        '''
        The n x m violation stack, one row per candidate.
        '''
        if self._stack is None:
            self._stack = np.vstack([c.violations for c in self.candidates])
            self._stack.setflags(write=False)
        return self._stack

    def asserted_optima(self):
        return [c for c in self.candidates if c.optimal is True]

    def denied(self):
        return [c for c in self.candidates if c.optimal is False]

    def __len__(self):
        return len(self.candidates)

    def __iter__(self):
        return iter(self.candidates)

    def __getitem__(self, i):
        return self.candidates[i]

    def __str__(self):
        return f"{self.label}: " + ' '.join(lmap(str, self.candidates))

    def __repr__(self):
        return f"Competition({self.label!r}, {len(self.candidates)} candidates, winner={self.winner})"


#######################
# HARMONIC EVALUATION #
#######################


def _check_criterion(criterion):
    if criterion not in CRITERIA:
        raise ValueError(f"Unknown evaluation criterion {criterion!r}; expected one of {CRITERIA}")


def compare_on_stratum(a, b, stratum_mask, criterion=CTIE):
    '''
    Compares candidates a and b on the constraints selected by the boolean
    mask stratum_mask. Returns FIRST if a is better, SECOND if b is, TIE if
    the stratum does not distinguish them, and (CTie only) CONFLICT if each
    is better on some constraint of the stratum.
    '''
    _check_criterion(criterion)
    va, vb = a.violations[stratum_mask], b.violations[stratum_mask]
    if criterion == POOL:
        sa, sb = int(va.sum()), int(vb.sum())
        return TIE if sa == sb else (FIRST if sa < sb else SECOND)
    a_better, b_better = bool(np.any(va < vb)), bool(np.any(vb < va))
    if a_better and b_better:
        return CONFLICT
    if a_better:
        return FIRST
    return SECOND if b_better else TIE


def stratum_masks(hierarchy):
    '''
    One boolean mask over the universe per stratum, highest first.
    '''
    ranks = hierarchy.ranks()
    return [ranks == r for r in range(len(hierarchy))]


def compare(a, b, hierarchy, criterion=CTIE):
    '''
    Compares a and b stratum by stratum from the top; the first stratum that
    does not tie decides.
    '''
    for mask in stratum_masks(hierarchy):
        result = compare_on_stratum(a, b, mask, criterion)
        if result != TIE:
            return result
    return TIE


Evaluation = namedtuple('Evaluation', 'optima conflict')


def most_harmonic(competition, hierarchy, criterion=CTIE):
    '''
    Returns the Evaluation (optima, conflict) of competition under
    hierarchy.

    Strata are processed from the top. In each stratum, every candidate still
    in the running that is beaten on the stratum by another candidate still
    in the running is eliminated; all comparisons in a stratum are made
    against the candidates alive at its start, so the outcome does not
    depend on candidate order. Under CTie, if the survivors of a stratum do
    not all tie on it, they conflict: evaluation stops there and conflict is
    True.
    '''
    _check_criterion(criterion)
    if hierarchy.universe != competition.universe:
        raise DuplicateConstraintUniverseError(f"Hierarchy and competition {competition.label} use different universes")
    V = competition.violations()
    alive = np.ones(len(competition), dtype=bool)
    for mask in stratum_masks(hierarchy):
        S = V[:, mask]
        if criterion == POOL:
            sums = S.sum(axis=1)
            alive = alive & (sums == sums[alive].min())
            continue
        idx = np.flatnonzero(alive)
        A = S[idx]
        no_worse = np.all(A[:, None, :] <= A[None, :, :], axis=2)
        better   = np.any(A[:, None, :] < A[None, :, :], axis=2)
        beaten   = np.any(no_worse & better, axis=0)
        alive[idx[beaten]] = False
        survivors = S[alive]
        if np.any(survivors != survivors[0]):
            optima = [competition[i] for i in np.flatnonzero(alive)]
            logger.debug('%s: %d optima conflict under %s', competition.label, len(optima), hierarchy)
            return Evaluation(optima, True)
    return Evaluation([competition[i] for i in np.flatnonzero(alive)], False)


def predicted_optima(competition, hierarchy, criterion=CTIE, exclude_ident=None):
    '''
    The optima of competition under hierarchy, omitting candidates whose
    violations are identical to exclude_ident's (other than
    exclude_ident itself).
    '''
    optima, _ = most_harmonic(competition, hierarchy, criterion)
    if exclude_ident is None:
        return optima
    return [c for c in optima if c is exclude_ident or not exclude_ident.ident_viols(c)]


def is_sole_optimum(winner, competition, hierarchy, criterion=CTIE):
    '''
    True iff winner is the only optimum of competition under hierarchy,
    ignoring candidates with violations identical to winner's.
    '''
    optima = predicted_optima(competition, hierarchy, criterion, exclude_ident=winner)
    return optima == [winner]


########################
# HARMONIC BOUNDEDNESS #
########################


def bounded_by(candidate, competition):
    '''
    The candidates of competition that individually harmonically bound
    candidate.
    '''
    return [c for c in competition if c is not candidate and c.harmonically_bounds(candidate)]


def collectively_bounded(candidate, competition):
    '''
    True iff no hierarchy makes candidate an optimum of competition: the
    ERCs making it beat every other candidate are inconsistent.
    '''
    return not ErcList.from_competition(candidate, competition).consistent()


def possible_optima(competition):
    '''
    The candidates of competition that are optimal under some hierarchy.
    '''
    return [c for c in competition if not collectively_bounded(c, competition)]
