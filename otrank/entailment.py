'''
Entailment between ERCs, minimal supports, and Fusional Reduction (FRed).

A set of ERCs C entails an ERC a iff every hierarchy satisfying C satisfies
a. Entailment is decided with RCD: a fails under some total order consistent
with C iff one of a's L-constraints can dominate all of a's W-constraints, so
C entails a iff, for every L-constraint l of a, C plus the ERCs {l >> w : w
W-constraint of a} is inconsistent.

References:
 - Prince 2002. Entailed Ranking Arguments. ROA-500.
 - Prince & Brasoveanu 2005. Ranking and Necessity. ROA-794.
'''

import itertools
import logging

import numpy as np

from otrank.erc import Erc, ErcList
from otrank.errors import DuplicateConstraintUniverseError, InconsistentErcsError
from otrank.rcd import rcd
from otrank.ternary import INT8, W, L, E, fuse, arrow, arrow_stack_left


logger = logging.getLogger(__name__)


def _check_universe(ercs, target):
    if ercs.universe is not None and target.universe != ercs.universe:
        raise DuplicateConstraintUniverseError(f"Target ERC {target.label} is not over the list's universe")


def domination_ercs(universe, high, lows):
    '''
    The ERCs expressing that constraint high dominates each constraint in lows.
    '''
    m, h = len(universe), universe.index(high)
    result = []
    for low in lows:
        u = np.zeros(m, dtype=INT8)
        u[h] = W
        u[universe.index(low)] = L
        result.append(Erc(universe, u, label=f"{high.id}>>{low.id}"))
    return result


def entails(ercs, target):
    '''
    Returns True iff every hierarchy consistent with the ErcList ercs
    satisfies target. Inconsistent lists entail everything; trivially valid
    targets are entailed by everything. A list entails target outright
    when one of its ERCs arrows into it.
    '''
    _check_universe(ercs, target)
    if target.trivially_valid():
        return True
    universe = target.universe
    base = ercs.copy() if ercs.universe is not None else ErcList(universe)
    if len(base) > 0 and arrow_stack_left(base.stack(), target.marks).any():
        logger.debug('%s follows from a single erc by the arrow', target.label)
        return True
    w_cons = target.w_constraints
    for l_con in target.l_constraints:
        challenge = base.copy()
        challenge.add_all(domination_ercs(universe, l_con, w_cons))
        if challenge.consistent():
            return False
    return True


def minimal_support(ercs, target, exact=True):
    '''
    Returns an ErcList holding a smallest sub-collection of ercs that entails
    target, or None if ercs itself does not entail target.

    The sub-collection is first reduced greedily (dropping ERCs, in list
    order, whenever the rest still entails target); if exact, smaller
    subsets are then searched exhaustively, smallest first. The exhaustive
    step is exponential in the size of the list, so callers with large lists
    should pass exact=False and accept an irreducible (not necessarily
    minimum) support.
    '''
    _check_universe(ercs, target)
    universe = target.universe
    label = f"support({target.label})"
    if target.trivially_valid():
        return ErcList(universe, label=label)
    if not entails(ercs, target):
        return None
    kept = ercs.to_list()
    i = 0
    while i < len(kept):
        rest = kept[:i] + kept[i + 1:]
        if entails(ErcList(universe, rest), target):
            kept = rest
        else:
            i += 1
    if exact:
        pool = ercs.to_list()
        for size in range(0, len(kept)):
            for subset in itertools.combinations(pool, size):
                if entails(ErcList(universe, subset), target):
                    logger.debug('minimal support for %s: %d erc(s)', target.label, size)
                    return ErcList(universe, subset, label=label)
    return ErcList(universe, kept, label=label)


######################
# FUSIONAL REDUCTION #
######################


class FredStep(object):
    '''
    One step of FRed: the ERCs under consideration, their fusion, whether the
    fusion is kept in the Most Informative Basis, and, when kept, the
    corresponding Skeletal Basis ERC and a support for it.
    '''

    def __init__(self, ercs, fusion, keep, skb_l):
        self.ercs    = ercs
        self.fusion  = fusion
        self.keep    = keep
        self.skb     = None
        self.support = None
        if keep:
            skb = fusion.marks.copy()
            skb[[fusion.universe.index(c) for c in skb_l]] = E
            self.skb = Erc(fusion.universe, skb, label=ercs.label)
            self.support = self._find_support()

    def _find_support(self):
        '''
        ERCs of this step that jointly cover every L of the skeletal ERC,
        dropping earlier members whose relevant L's are subsumed by a later
        member's.
        '''
        skb_l     = self.skb.marks == L
        to_find   = skb_l.copy()
        support   = []
        for erc in self.ercs:
            erc_l = (erc.marks == L) & skb_l
            if not np.any(erc_l & to_find):
                continue
            support = [s for s in support if not np.all(~((s.marks == L) & skb_l) | erc_l)]
            support.append(erc)
            to_find &= ~erc_l
            if not to_find.any():
                break
        assert not to_find.any(), f"FRed found no support for skeletal ERC {self.skb}"
        return ErcList(self.fusion.universe, support, label=self.ercs.label)

    def __str__(self):
        s = f"Fred step {self.ercs.label} KEEP? {self.keep}\nFUS: {self.fusion}"
        if self.keep:
            s += f"\nSKB: {self.skb}\nSKB Support:\n{self.support}"
        return s + '\n'


class FredResult(object):
    '''
    The result of Fusional Reduction of a consistent ErcList.

    mib
        The Most Informative Basis: an ErcList of fusions, ordered by the
        position (in the RCD hierarchy) of their first W.
    skb
        The Skeletal Basis, parallel to mib.
    skb_support
        ERCs of the original list sufficient to support the skeletal basis.
    steps
        Every FredStep taken, kept or not.
    '''

    def __init__(self, ercs, rcd_result, steps, kept):
        label = ercs.label
        self.ercs        = ercs
        self.rcd_result  = rcd_result
        self.steps       = steps
        self.kept        = kept
        self.mib         = ErcList(ercs.universe, [s.fusion for s in kept], label=f"MIB.{label}")
        self.skb         = ErcList(ercs.universe, [s.skb for s in kept], label=f"{label} SKB")
        self.skb_support = ErcList(ercs.universe, [e for s in kept for e in s.support], label=f"{label} SKB Support")


def fred(ercs):
    '''
    Runs Fusional Reduction on the ErcList ercs. Raises InconsistentErcsError
    if ercs is inconsistent.
    '''
    rcd_result = rcd(ercs)
    if not rcd_result.consistent:
        raise InconsistentErcsError(f"Cannot run FRed on inconsistent ERCs; residue {rcd_result.residue_labels()}")
    universe = ercs.universe
    explained = [e for stratum in rcd_result.explained for e in stratum]
    work = ErcList(universe, explained, label=ercs.label) if len(rcd_result.unexplained) > 0 else ercs
    steps, kept, processed = [], [], []
    if len(work) > 0:
        _run_fred(work, list(range(len(work))), steps, kept, processed, work.label)
    order = [] if rcd_result.hierarchy is None else rcd_result.hierarchy.flatten()
    remaining, sorted_kept = list(kept), []
    for c in order:
        sorted_kept += [s for s in remaining if s.fusion.w(c)]
        remaining = [s for s in remaining if not s.fusion.w(c)]
    return FredResult(work, rcd_result, steps, sorted_kept)


def _run_fred(work, rows, steps, kept, processed, label):
    '''
    One recursive FRed step over the ERCs of work at indices rows.
    processed holds the row sets of residues already reduced.
    '''
    universe = work.universe
    sub = ErcList(universe, [work[i] for i in rows], label=label)
    M = sub.stack()
    fusion = Erc(universe, fuse(M=M), label=f"f.{sub.label}")
    residues, total = [], []
    for c in fusion.w_constraints:
        j = universe.index(c)
        residue = [r for r, row in zip(rows, M) if row[j] == E]
        if len(residue) > 0:
            residues.append(residue)
            total += residue
    keep, skb_l = _entailment_check(fusion, total, work)
    step = FredStep(sub, fusion, keep, skb_l)
    steps.append(step)
    if keep:
        kept.append(step)
    for k, residue in enumerate(residues):
        as_set = frozenset(residue)
        if not any(as_set <= old for old in processed):
            _run_fred(work, residue, steps, kept, processed, f"{label}.{k + 1}")
            processed.append(as_set)


def _entailment_check(fusion, total_residue, work):
    '''
    The fusion is kept unless the total residue already entails it (checked
    with the arrow). When kept, also returns the L-constraints of the fusion
    that are L in the fusion of the total residue: these are e in the
    skeletal basis ERC.
    '''
    if fusion.trivially_valid():
        return False, None
    if fusion.trivially_invalid():
        raise InconsistentErcsError(f"FRed met a trivially invalid fusion {fusion}")
    if len(total_residue) == 0:
        return True, []
    tr_fusion = fuse(M=np.vstack([work[i].marks for i in total_residue]))
    if arrow(tr_fusion, fusion.marks):
        return False, None
    skb_l = [c for c, f, t in zip(fusion.universe, fusion.marks, tr_fusion) if f == L and t == L]
    return True, skb_l
