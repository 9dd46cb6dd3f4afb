import pytest
import numpy as np

from otrank.competition import Candidate, Competition, CTIE, POOL, FIRST, SECOND, TIE, CONFLICT
from otrank.competition import compare, compare_on_stratum, most_harmonic, is_sole_optimum
from otrank.competition import bounded_by, collectively_bounded, possible_optima
from otrank.constraint import ConstraintUniverse, markedness, faithfulness
from otrank.erc import Erc, ErcList
from otrank.errors import EmptyCompetitionError, MalformedInputError, DuplicateConstraintUniverseError
from otrank.hierarchy import Hierarchy

NoCoda = markedness('NoCoda')
Max    = faithfulness('Max')
Dep    = faithfulness('Dep')
U = ConstraintUniverse([NoCoda, Max, Dep])

pat  = Candidate('pat', 'pat',  [1, 0, 0], U)
pa   = Candidate('pat', 'pa',   [0, 1, 0], U)
pata = Candidate('pat', 'pata', [0, 0, 1], U)
pat_comp = Competition([pat, pa, pata], winner='pata')

flat    = Hierarchy.unranked(U)
total   = Hierarchy(U, [[NoCoda], [Max], [Dep]])
two_way = Hierarchy(U, [[NoCoda], [Max, Dep]])


##############
# candidates #
##############

def test_candidate_basics():
    assert pat.viols('NoCoda') == 1
    assert pa.viols(Max) == 1
    assert pat.label == 'pat->pat'
    assert Candidate('pat', 'pa', {'Max': 1}, U) == pa
    assert Candidate('pat', 'pa', {'Max': 1}, U).ident_viols(pa)


def test_candidate_rejects_bad_violations():
    with pytest.raises(MalformedInputError):
        Candidate('x', 'y', [1, 0], U)
    with pytest.raises(MalformedInputError):
        Candidate('x', 'y', [0, -1, 0], U)
    with pytest.raises(MalformedInputError):
        Candidate('x', 'y', [0, 0, 0], U, optimal='yes')


def test_harmonically_bounds():
    best = Candidate('pat', 'p', [0, 0, 0], U)
    assert best.harmonically_bounds(pat)
    assert not pat.harmonically_bounds(pa)
    assert not pat.harmonically_bounds(pat)


def test_erc_from_candidates():
    erc = Erc.from_candidates(pata, pat)
    assert erc == Erc(U, 'W e L')
    assert erc.label == 'pat->pata>pat->pat'
    assert erc.winner is pata and erc.loser is pat
    with pytest.raises(MalformedInputError):
        Erc.from_candidates(pata, Candidate('other', 'o', [0, 0, 0], U))


def test_erclist_from_competition_skips_identical():
    twin = Candidate('pat', 'pata2', [0, 0, 1], U)
    comp = Competition([pat, pa, pata, twin])
    ercs = ErcList.from_competition(pata, comp)
    assert ercs.to_list() == [Erc(U, 'W e L'), Erc(U, 'e W L')]


################
# competitions #
################

def test_competition_basics():
    assert pat_comp.winner is pata
    assert pat_comp.input == 'pat'
    assert pat_comp.violations().shape == (3, 3)
    assert pat_comp.with_winner('pa').winner is pa
    assert pat_comp.candidate('pat') is pat


def test_competition_errors():
    with pytest.raises(EmptyCompetitionError):
        Competition([])
    with pytest.raises(MalformedInputError):
        Competition([pat, Candidate('other', 'o', [0, 0, 0], U)])
    with pytest.raises(MalformedInputError):
        Competition([pat, Candidate('pat', 'pat', [0, 0, 0], U)])
    with pytest.raises(MalformedInputError):
        Competition([pat, pa], winner='pata')
    other = ConstraintUniverse([NoCoda, Max])
    with pytest.raises(DuplicateConstraintUniverseError):
        Competition([pat, Candidate('pat', 'p', [0, 0], other)])


def test_empty_competition_is_malformed_input():
    with pytest.raises(MalformedInputError):
        Competition([])


##############
# evaluation #
##############

def test_compare_on_stratum():
    both = np.array([False, True, True])
    assert compare_on_stratum(pa, pata, both, CTIE) == CONFLICT
    assert compare_on_stratum(pa, pata, both, POOL) == TIE
    top = np.array([True, False, False])
    assert compare_on_stratum(pa, pat, top) == FIRST
    assert compare_on_stratum(pat, pa, top) == SECOND
    assert compare_on_stratum(pa, pata, top) == TIE
    with pytest.raises(ValueError):
        compare_on_stratum(pa, pat, top, 'lottery')


def test_compare():
    assert compare(pata, pa, total) == FIRST
    assert compare(pa, pata, two_way) == CONFLICT
    assert compare(pa, pa, total) == TIE


def test_most_harmonic_total():
    optima, conflict = most_harmonic(pat_comp, total)
    assert optima == [pata]
    assert not conflict


def test_most_harmonic_ctie_conflict():
    optima, conflict = most_harmonic(pat_comp, two_way, CTIE)
    assert optima == [pa, pata]
    assert conflict


def test_most_harmonic_pool():
    optima, conflict = most_harmonic(pat_comp, two_way, POOL)
    assert optima == [pa, pata]
    assert not conflict
    heavy = Candidate('pat', 'pa.a', [0, 1, 1], U)
    optima, _ = most_harmonic(Competition([pat, pa, heavy]), two_way, POOL)
    assert optima == [pa]


def test_most_harmonic_unranked_hierarchy():
    optima, conflict = most_harmonic(pat_comp, flat)
    assert optima == [pat, pa, pata]
    assert conflict


def test_most_harmonic_is_order_independent():
    comp = Competition([pata, pa, pat])
    for h in (flat, total, two_way, Hierarchy(U, [[Dep], [Max, NoCoda]])):
        for criterion in (CTIE, POOL):
            forward  = set(most_harmonic(pat_comp, h, criterion).optima)
            backward = set(most_harmonic(comp, h, criterion).optima)
            assert forward == backward, f"{h} {criterion}"


def test_is_sole_optimum():
    assert is_sole_optimum(pata, pat_comp, total)
    assert not is_sole_optimum(pa, pat_comp, total)
    assert not is_sole_optimum(pata, pat_comp, two_way)
    twin = Candidate('pat', 'pata2', [0, 0, 1], U)
    assert is_sole_optimum(pata, Competition([pat, pa, pata, twin]), total)


def test_hierarchy_universe_mismatch():
    other = ConstraintUniverse([NoCoda, Max])
    with pytest.raises(DuplicateConstraintUniverseError):
        most_harmonic(pat_comp, Hierarchy.unranked(other))


#########################
# harmonic boundedness  #
#########################

A = markedness('A')
B = markedness('B')
UAB = ConstraintUniverse([A, B])
left   = Candidate('x', 'left',   [0, 2], UAB)
right  = Candidate('x', 'right',  [2, 0], UAB)
middle = Candidate('x', 'middle', [1, 1], UAB)
worst  = Candidate('x', 'worst',  [1, 2], UAB)
ab_comp = Competition([left, right, middle, worst])


def test_bounded_by():
    assert bounded_by(worst, ab_comp) == [left, middle]
    assert bounded_by(middle, ab_comp) == []


def test_collective_bounding():
    assert collectively_bounded(middle, ab_comp)
    assert collectively_bounded(worst, ab_comp)
    assert not collectively_bounded(left, ab_comp)
    assert possible_optima(ab_comp) == [left, right]
    assert possible_optima(pat_comp) == [pat, pa, pata]
