'''
Factorial typology: every language (combination of winners, one per
competition) that some hierarchy over the constraints generates.

The search is depth-first over the competitions in order. A branch fixes a
winner for each competition so far and carries its own ErcList (the ERCs
making each chosen winner beat its competitors); a branch whose ERCs are
inconsistent is pruned. Each leaf is a language. Only contenders are ever
chosen as winners: candidates that are not harmonically bounded and, where
the competition asserts optima, only the asserted ones.
'''

import logging

from joblib import Parallel, delayed
from tqdm import tqdm

from funcy import lmap, ldistinct

from otrank.competition import collectively_bounded
from otrank.erc import ErcList
from otrank.errors import DuplicateConstraintUniverseError, MalformedInputError
from otrank.rcd import rcd


logger = logging.getLogger(__name__)


def par(gen_expr, j=-1, backend='loky', verbose=0, prefer='processes'):
    return Parallel(n_jobs=j, backend=backend, verbose=verbose, prefer=prefer)(gen_expr)


class Language(object):
    '''
    One language of a typology: a winner per competition, the ERCs the
    winners jointly impose, and a hierarchy (from RCD with the typology's
    bias) generating the language. Languages are equal iff their winner sets
    are equal.
    '''

    def __init__(self, label, winners, ercs, hierarchy):
        self.label     = label
        self.winners   = tuple(winners)
        self.ercs      = ercs
        self.hierarchy = hierarchy
        self.winner_set = frozenset(w.key() for w in self.winners)

    def outputs(self):
        return [w.output for w in self.winners]

    def __eq__(self, other):
        if not isinstance(other, Language):
            return NotImplemented
        return self.winner_set == other.winner_set

    def __hash__(self):
        return hash(self.winner_set)

    def __str__(self):
        return f"{self.label}: " + ' '.join(lmap(str, self.winners))

    def __repr__(self):
        return f"Language({self.label!r}, {self.outputs()!r})"


def _extend(competitions, contenders, depth, ercs, winners):
    '''
    Yields (winners, ercs) for every consistent completion of the branch
    that has fixed winners for competitions[:depth].
    '''
    if depth == len(competitions):
        yield winners, ercs
        return
    comp = competitions[depth]
    for cand in contenders[depth]:
        branch = ercs.copy(label=ercs.label)
        branch.add_all(ErcList.from_competition(cand, comp))
        if not branch.consistent():
            logger.debug('pruned %s at %s', cand, ' '.join(lmap(str, winners)) or 'root')
            continue
        yield from _extend(competitions, contenders, depth + 1, branch, winners + (cand,))


def _root(competitions, first):
    root = ErcList(competitions[0].universe, label='Typology')
    root.add_all(ErcList.from_competition(first, competitions[0]))
    return root if root.consistent() else None


def _branch(competitions, contenders, first):
    '''
    The leaves under one winner of the first competition, as a list (a unit
    of work for a parallel worker).
    '''
    root = _root(competitions, first)
    if root is None:
        return []
    return list(_extend(competitions, contenders, 1, root, (first,)))


class FactorialTypology(object):
    '''
    The factorial typology of a list of competitions.

    bias is the RCD bias policy used for each language's representative
    hierarchy; it does not affect which languages are found.
    '''

    def __init__(self, competitions, bias=None):
        self.competitions = list(competitions)
        if len(self.competitions) == 0:
            raise MalformedInputError('A factorial typology needs at least one competition')
        self.universe = self.competitions[0].universe
        for comp in self.competitions:
            if comp.universe != self.universe:
                raise DuplicateConstraintUniverseError(f"Competition {comp.label} is not over universe {self.universe}")
        self.bias = bias
        self._hbound = {}
        self._contenders = None

    def hbound(self, label=None):
        '''
        Returns a list of (candidate, harmonically bounded?) pairs for the
        competition with the given label, or a dict from label to such lists
        for every competition when label is None.
        '''
        if label is None:
            return {comp.label: self.hbound(comp.label) for comp in self.competitions}
        if label not in self._hbound:
            comp = self._competition(label)
            self._hbound[label] = [(c, collectively_bounded(c, comp)) for c in comp]
        return self._hbound[label]

    def _competition(self, label):
        for comp in self.competitions:
            if comp.label == label:
                return comp
        raise KeyError(label)

    def contenders(self, comp):
        '''
        The candidates of comp that may win in some language of the typology.

        Candidates with identical violation profiles win under exactly the
        same hierarchies, so only the first of them in candidate order is a
        contender; its twins appear in no language.
        '''
        asserted = comp.asserted_optima()
        if len(asserted) > 0:
            pool = asserted
        else:
            pool = [c for c, bounded in self.hbound(comp.label) if not bounded and c.optimal is not False]
        return ldistinct(pool, key=lambda c: tuple(c.violations.tolist()))

    def _all_contenders(self):
        if self._contenders is None:
            self._contenders = [self.contenders(comp) for comp in self.competitions]
            logger.debug('contenders per competition: %s', [len(c) for c in self._contenders])
        return self._contenders

    def _language(self, n, winners, ercs):
        hierarchy = rcd(ercs, bias=self.bias, label=f"L{n}").hierarchy
        return Language(f"L{n}", winners, ercs.copy(label=f"L{n}"), hierarchy)

    def iter_languages(self, progress=False):
        '''
        Lazily yields each language of the typology, in search order,
        labeled L1, L2, ...
        '''
        contenders = self._all_contenders()
        seen, n = set(), 0
        firsts = tqdm(contenders[0], desc='typology') if progress else contenders[0]
        for first in firsts:
            root = _root(self.competitions, first)
            if root is None:
                continue
            for winners, ercs in _extend(self.competitions, contenders, 1, root, (first,)):
                key = frozenset(w.key() for w in winners)
                if key in seen:
                    continue
                seen.add(key)
                n += 1
                yield self._language(n, winners, ercs)

    def factorial_typology(self, n_jobs=1, progress=False):
        '''
        Returns the list of all languages. With n_jobs other than 1, the
        branches under each winner of the first competition are searched by
        separate joblib workers and the results merged in search order.
        '''
        if n_jobs == 1:
            languages = list(self.iter_languages(progress=progress))
        else:
            contenders = self._all_contenders()
            firsts = tqdm(contenders[0], desc='typology') if progress else contenders[0]
            branches = par((delayed(_branch)(self.competitions, contenders, first) for first in firsts), j=n_jobs)
            seen, languages = set(), []
            for leaves in branches:
                for winners, ercs in leaves:
                    key = frozenset(w.key() for w in winners)
                    if key in seen:
                        continue
                    seen.add(key)
                    languages.append(self._language(len(languages) + 1, winners, ercs))
        logger.info('factorial typology of %d competition(s): %d language(s)', len(self.competitions), len(languages))
        return languages


def factorial_typology(competitions, bias=None, n_jobs=1, progress=False):
    return FactorialTypology(competitions, bias=bias).factorial_typology(n_jobs=n_jobs, progress=progress)
