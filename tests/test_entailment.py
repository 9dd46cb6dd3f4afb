import itertools

import pytest

from otrank.constraint import ConstraintUniverse, markedness, faithfulness
from otrank.entailment import entails, minimal_support, fred, domination_ercs
from otrank.erc import Erc, ErcList
from otrank.errors import DuplicateConstraintUniverseError, InconsistentErcsError
from otrank.hierarchy import total_orders

M1 = markedness('M1')
M2 = markedness('M2')
F1 = faithfulness('F1')
U = ConstraintUniverse([M1, M2, F1])

m1_m2 = Erc(U, 'W L e', label='m1>>m2')
m2_f1 = Erc(U, 'e W L', label='m2>>f1')
m1_f1 = Erc(U, 'W e L', label='m1>>f1')
chain = ErcList(U, [m1_m2, m2_f1], label='chain')
cycle = ErcList(U, [m1_m2, m2_f1, Erc(U, 'L e W', label='f1>>m1')], label='cycle')


def brute_force_entails(ercs, target):
    return all(h.satisfies(target) for h in total_orders(U) if h.satisfies_all(ercs))


##############
# entailment #
##############

def test_transitivity():
    assert entails(chain, m1_f1)
    assert chain.entails(m1_f1)


def test_not_entailed():
    assert not entails(chain, Erc(U, 'L W e'))
    assert not entails(ErcList(U, [m1_m2]), m1_f1)


def test_single_erc_entails_what_it_arrows_into():
    weaker = Erc(U, 'W L W')
    assert entails(ErcList(U, [m1_m2]), weaker)
    assert not entails(ErcList(U, [weaker]), m1_m2)
    assert brute_force_entails(ErcList(U, [m1_m2]), weaker)


def test_trivially_valid_always_entailed():
    assert entails(ErcList(U), Erc(U, 'W e e'))
    assert entails(ErcList(U), Erc(U, 'e e e'))


def test_inconsistent_entails_everything():
    assert entails(cycle, Erc(U, 'L W e'))
    assert entails(cycle, Erc(U, 'L L L'))


def test_entailment_agrees_with_brute_force():
    targets = [Erc(U, s) for s in ('W L e', 'W e L', 'e W L', 'L W e', 'W L L', 'W W L', 'L W W', 'L L W')]
    lists = [ErcList(U, list(c)) for n in range(3) for c in itertools.combinations(targets, n)]
    for ercs, target in itertools.product(lists, targets):
        assert entails(ercs, target) == brute_force_entails(ercs, target), f"{ercs} / {target}"


def test_entailment_universe_mismatch():
    other = ConstraintUniverse([M1, F1])
    with pytest.raises(DuplicateConstraintUniverseError):
        entails(chain, Erc(other, 'W L'))


def test_domination_ercs():
    assert domination_ercs(U, F1, [M1, M2]) == [Erc(U, 'L e W'), Erc(U, 'e L W')]


###################
# minimal support #
###################

def test_minimal_support_prefers_single_strong_erc():
    ercs = ErcList(U, [m1_m2, m2_f1, Erc(U, 'W L L', label='strong')])
    support = minimal_support(ercs, m1_f1)
    assert support.labels() == ['strong']


def test_minimal_support_chain():
    support = chain.minimal_support(m1_f1)
    assert support.labels() == ['m1>>m2', 'm2>>f1']


def test_minimal_support_not_entailed():
    assert minimal_support(ErcList(U, [m1_m2]), m1_f1) is None


def test_minimal_support_trivially_valid():
    assert len(minimal_support(chain, Erc(U, 'W W e'))) == 0


def test_minimal_support_is_minimal():
    ercs = ErcList(U, [Erc(U, 'W W L'), m1_m2, Erc(U, 'e W L'), Erc(U, 'W L L')])
    support = minimal_support(ercs, m1_f1)
    assert entails(support, m1_f1)
    for k in range(len(support)):
        for subset in itertools.combinations(ercs.to_list(), k):
            assert not entails(ErcList(U, subset), m1_f1), f"{subset}"


##########################
# fusional reduction     #
##########################

def test_fred_chain():
    result = fred(chain)
    assert result.mib.to_list() == [Erc(U, 'W L L'), Erc(U, 'e W L')]
    assert result.skb.to_list() == [Erc(U, 'W L e'), Erc(U, 'e W L')]
    assert result.skb_support.labels() == ['m1>>m2', 'm2>>f1']


def test_fred_mib_is_equivalent():
    ercs = ErcList(U, [m1_m2, m2_f1, m1_f1, Erc(U, 'W W L')], label='x')
    result = fred(ercs)
    for erc in ercs:
        assert entails(result.mib, erc), f"{erc}"
    for erc in result.mib:
        assert entails(ercs, erc), f"{erc}"
    for erc in result.skb:
        assert entails(ercs, erc), f"{erc}"


def test_fred_ignores_all_e():
    ercs = ErcList(U, [m1_m2, Erc(U, 'e e e', label='null')])
    result = fred(ercs)
    assert result.mib.to_list() == [m1_m2]
    assert 'null' not in result.ercs.labels()


def test_fred_inconsistent():
    with pytest.raises(InconsistentErcsError):
        fred(cycle)


def test_fred_empty():
    result = fred(ErcList(U))
    assert len(result.mib) == 0
    assert result.steps == []
