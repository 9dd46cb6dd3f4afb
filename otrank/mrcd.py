'''
Multi-Recursive Constraint Demotion (MRCD): error-driven ranking learning.

MRCD alternates between two states until it converges or fails:

    COLLECTING  every competition is parsed with the current hierarchy; for
                each observed winner that is not the sole optimum, an ERC
                is made comparing the winner with each predicted optimum.
    RANKING     the ERCs of the pass are added to the running ERC list and
                RCD builds a new hierarchy.

If a COLLECTING pass finds no mismatch the learner has CONVERGED. If RCD
finds the running ERC list inconsistent the learner has FAILED. Either way
the outcome is a result value (Converged or Failed), not an exception.

Every ERC added in a pass is unsatisfied by the hierarchy that made the
mismatch, so it is new to the list; there are finitely many distinct ERCs
over a universe, so the loop terminates.

References:
 - Tesar 1997. Multi-Recursive Constraint Demotion. ROA-197.
'''

import logging

from collections import namedtuple
from enum import Enum

from funcy import lmap

from otrank.competition import CTIE, predicted_optima
from otrank.erc import Erc, ErcList
from otrank.errors import DuplicateConstraintUniverseError, MalformedInputError
from otrank.rcd import Ranker


logger = logging.getLogger(__name__)


class State(Enum):
    COLLECTING = 'collecting'
    RANKING    = 'ranking'
    CONVERGED  = 'converged'
    FAILED     = 'failed'


TraceStep = namedtuple('TraceStep', 'pass_no state hierarchy new_ercs mismatches')
TraceStep.__doc__ = '''
One state transition of an MRCD run: the pass number, the state entered, the
hierarchy at that point, the ERCs added in the pass and the labels of the
competitions that mismatched.
'''


class Converged(namedtuple('Converged', 'hierarchy ercs trace passes')):
    '''
    MRCD converged: hierarchy makes every observed winner the sole optimum.
    '''
    __slots__ = ()

    @property
    def state(self):
        return State.CONVERGED

    @property
    def converged(self):
        return True


class Failed(namedtuple('Failed', 'hierarchy ercs residue offending_winner conflicting_constraints trace passes reason')):
    '''
    MRCD failed. hierarchy is the last (partial) RCD hierarchy; residue the
    ERCs RCD could not explain; offending_winner the observed winner whose
    ERCs first made the list inconsistent (None if the initial ERCs were
    already inconsistent, or if the run was cut short by max_passes);
    conflicting_constraints the constraints RCD could not rank.
    '''
    __slots__ = ()

    @property
    def state(self):
        return State.FAILED

    @property
    def converged(self):
        return False


def collect(competitions, hierarchy, criterion=CTIE):
    '''
    Parses every competition with hierarchy. Returns a list of
    (competition, ercs) pairs, one per competition whose observed winner is
    not the sole optimum, where ercs compare the winner with each predicted
    optimum.
    '''
    mismatches = []
    for comp in competitions:
        winner = comp.winner
        optima = predicted_optima(comp, hierarchy, criterion, exclude_ident=winner)
        if optima == [winner]:
            continue
        ercs = [Erc.from_candidates(winner, o) for o in optima if o is not winner]
        logger.debug('mismatch on %s: winner %s, predicted %s', comp.label, winner, lmap(str, optima))
        mismatches.append((comp, ercs))
    return mismatches


def _check_competitions(competitions, universe):
    for comp in competitions:
        if comp.winner is None:
            raise MalformedInputError(f"Competition {comp.label} has no observed winner")
        if universe is not None and comp.universe != universe:
            raise DuplicateConstraintUniverseError(f"Competition {comp.label} is not over universe {universe}")
        universe = comp.universe
    return universe


def _offending_winner(before, additions):
    '''
    Adds the ERCs of each mismatched competition to a copy of before, in pass
    order, and returns the winner whose ERCs first make it inconsistent.
    '''
    trial = before.copy()
    for comp, ercs in additions:
        trial.add_all(ercs)
        if not trial.consistent():
            return comp.winner
    return None


def mrcd(competitions, ercs=None, bias=None, criterion=CTIE, max_passes=None, universe=None):
    '''
    Runs MRCD over competitions, each of which must designate its observed
    winner, starting from the ErcList ercs (default: empty). bias is the RCD
    bias policy used to build each hierarchy and criterion the evaluation
    criterion used to parse. max_passes bounds the number of COLLECTING
    passes (default: unbounded).

    Returns Converged or Failed.
    '''
    competitions = list(competitions)
    if ercs is not None and ercs.universe is not None:
        universe = ercs.universe if universe is None else universe
        if ercs.universe != universe:
            raise DuplicateConstraintUniverseError(f"ERC list is not over universe {universe}")
    universe = _check_competitions(competitions, universe)
    if universe is None:
        raise MalformedInputError('MRCD needs a constraint universe, competitions or ERCs')
    running = ErcList(universe, label='MRCD') if ercs is None else ercs.copy(label='MRCD')
    if running.universe is None:
        running = ErcList(universe, running, label='MRCD')
    known = set(running)
    ranker = Ranker(bias)

    trace = []
    result = ranker.rcd(running, label='MRCD')
    if not result.consistent:
        logger.info('MRCD failed before the first pass: initial ERCs are inconsistent')
        return Failed(result.hierarchy, running, result.residue, None, result.unranked, trace, 0,
                      'initial ERCs are inconsistent')

    passes = 0
    while True:
        if max_passes is not None and passes >= max_passes:
            logger.info('MRCD stopped after %d pass(es) without converging', passes)
            return Failed(result.hierarchy, running, [], None, [], trace, passes,
                          f"no convergence within {max_passes} passes")
        passes += 1
        hierarchy  = result.hierarchy
        mismatches = collect(competitions, hierarchy, criterion)
        additions  = []
        for comp, new in mismatches:
            fresh = [e for e in new if e not in known]
            known.update(fresh)
            additions.append((comp, fresh))
        new_ercs = [e for _, new in additions for e in new]
        mismatched = lmap(lambda pair: pair[0].label, mismatches)
        trace.append(TraceStep(passes, State.COLLECTING, hierarchy, new_ercs, mismatched))
        logger.debug('MRCD pass %d: %d mismatch(es), %d new erc(s)', passes, len(mismatches), len(new_ercs))

        if len(mismatches) == 0:
            trace.append(TraceStep(passes, State.CONVERGED, hierarchy, [], []))
            logger.info('MRCD converged after %d pass(es) with %d erc(s): %s', passes, len(running), hierarchy)
            return Converged(hierarchy, running, trace, passes)
        if len(new_ercs) == 0:
            logger.info('MRCD stalled on pass %d', passes)
            return Failed(hierarchy, running, [], None, [], trace, passes, 'mismatches produced no new ERCs')

        before = running.copy()
        running.add_all(new_ercs)
        result = ranker.rcd(running, label='MRCD')
        trace.append(TraceStep(passes, State.RANKING, result.hierarchy, new_ercs, mismatched))
        if not result.consistent:
            offender = _offending_winner(before, additions)
            trace.append(TraceStep(passes, State.FAILED, result.hierarchy, [], []))
            logger.info('MRCD failed on pass %d: winner %s is inconsistent with the data; unrankable %s',
                        passes, offender, lmap(str, result.unranked))
            return Failed(result.hierarchy, running, result.residue, offender, result.unranked, trace, passes,
                          'ERCs are inconsistent')
