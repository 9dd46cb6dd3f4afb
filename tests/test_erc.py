import pickle

import pytest
import numpy as np

from otrank.constraint import Constraint, ConstraintUniverse, MARKEDNESS, FAITHFULNESS, markedness, faithfulness
from otrank.erc import Erc, ErcList
from otrank.errors import DuplicateConstraintUniverseError, MalformedInputError, UnknownConstraintError
from otrank.ternary import W, E, L, HashableArray

M1 = markedness('M1')
M2 = markedness('M2')
F1 = faithfulness('F1')
U = ConstraintUniverse([M1, M2, F1])
U2 = ConstraintUniverse([M1, F1])


###############
# constraints #
###############

def test_constraint_identity():
    assert Constraint('M1') == M1
    assert Constraint('M1', id='m') == M1
    assert Constraint('M1', kind=FAITHFULNESS) != M1
    assert hash(Constraint('M1', kind='markedness')) == hash(M1)
    assert M1.markedness() and not M1.faithfulness()
    assert F1.faithfulness()


def test_constraint_immutable():
    with pytest.raises(AttributeError):
        M1.name = 'other'


def test_constraint_pickles():
    assert pickle.loads(pickle.dumps(F1)) == F1


def test_constraint_bad_kind():
    with pytest.raises(ValueError):
        Constraint('X', kind='phonetic')


def test_universe():
    assert len(U) == 3
    assert U.index(M2) == 1
    assert U.index('F1') == 2
    assert U.by_name('M1') is M1
    assert U.order([F1, M1]) == [M1, F1]
    assert U == ConstraintUniverse.from_names(['M1', 'M2'], ['F1'])
    assert U != ConstraintUniverse([M2, M1, F1])


def test_universe_rejects_duplicates():
    with pytest.raises(DuplicateConstraintUniverseError):
        ConstraintUniverse([M1, M2, Constraint('M1')])


def test_universe_unknown_constraint():
    with pytest.raises(UnknownConstraintError):
        U.index('M3')
    with pytest.raises(UnknownConstraintError):
        U2.index(M2)


########
# ERCs #
########

def test_erc_construction():
    e1 = Erc(U, 'W L e', label='e1')
    e2 = Erc(U, {M1: 'W', 'M2': 'L'}, label='e2')
    e3 = Erc(U, [1, -1, 0], label='e3')
    assert e1 == e2 == e3
    assert hash(e1) == hash(e3)
    assert e1.mark('M1') == 'W' and e1.mark(M2) == 'L' and e1.mark(F1) == 'e'
    assert e1.w_constraints == [M1]
    assert e1.l_constraints == [M2]
    assert str(e1) == 'e1 W L e'


def test_erc_is_immutable():
    e = Erc(U, 'W L e')
    with pytest.raises(ValueError):
        e.marks[0] = L


def test_erc_default_is_all_e():
    e = Erc(U)
    assert np.array_equal(e.marks, np.zeros(3))
    assert e.trivially_valid()
    assert not e.trivially_invalid()


def test_erc_bad_marks():
    with pytest.raises(UnknownConstraintError):
        Erc(U, 'W L')
    with pytest.raises(UnknownConstraintError):
        Erc(U, {M1: 'X'})
    with pytest.raises(UnknownConstraintError):
        Erc(U, {'M3': 'W'})
    with pytest.raises(UnknownConstraintError):
        Erc(U, [2, 0, 0])


def test_erc_to_dict():
    e = Erc(U, {'M1': 'W', F1: 'L'})
    assert e.to_dict() == {M1: 'W', M2: 'e', F1: 'L'}
    assert Erc(U, e.to_dict()) == e


def test_erc_key_is_base_3_integer():
    assert Erc(U, 'W L e').key() == 19
    assert Erc(U).key() == 13
    assert len({Erc(U, 'W L e'), Erc(U, [1, -1, 0]), Erc(U, 'e W L')}) == 2


def test_erc_key_for_large_universe():
    big = ConstraintUniverse([markedness(f"C{i}") for i in range(41)])
    u = np.zeros(41, dtype=np.int8)
    u[0], u[40] = W, L
    e = Erc(big, u)
    assert isinstance(e.key(), HashableArray)
    assert len({e, Erc(big, u.copy()), Erc(big)}) == 2


def test_erc_trivial():
    assert Erc(U, 'W e e').trivially_valid()
    assert Erc(U, 'e L e').trivially_invalid()
    assert not Erc(U, 'W L e').trivially_invalid()


def test_erc_conjunctive_expansion():
    e = Erc(U, 'W L L', label='x')
    parts = e.conjunctive_expansion()
    assert parts == [Erc(U, 'W L e'), Erc(U, 'W e L')]
    assert [p.label for p in parts] == ['x.1', 'x.2']


############
# ErcLists #
############

ercs = ErcList(U, [Erc(U, 'W L e', label='a'),
                   Erc(U, 'e W L', label='b'),
                   Erc(U, 'L e W', label='c')], label='cycle')


def test_erclist_basics():
    assert len(ercs) == 3
    assert ercs.labels() == ['a', 'b', 'c']
    assert ercs.stack().shape == (3, 3)
    assert not ercs.stack().flags.writeable
    assert ErcList(U).stack().shape == (0, 3)


def test_erclist_universe_mismatch():
    with pytest.raises(DuplicateConstraintUniverseError):
        ErcList(U).add(Erc(U2, 'W L'))


def test_erclist_universe_from_first_erc():
    el = ErcList()
    assert el.universe is None
    el.add(Erc(U2, 'W L'))
    assert el.universe == U2
    with pytest.raises(DuplicateConstraintUniverseError):
        el.add(Erc(U, 'W L e'))


def test_erclist_add_type_check():
    with pytest.raises(TypeError):
        ErcList(U).add('W L e')


def test_erclist_filters():
    assert ercs.with_mark(M1, 'W').labels() == ['a']
    assert ercs.with_mark('F1', 'e').labels() == ['a']
    assert ercs.find_all(lambda e: e.l(M2)).labels() == ['a']
    assert ercs.reject(lambda e: e.l(M2)).labels() == ['b', 'c']
    yes, no = ercs.partition(lambda e: e.w(F1))
    assert yes.labels() == ['c'] and no.labels() == ['a', 'b']
    with pytest.raises(UnknownConstraintError):
        ercs.with_mark(M1, 'X')


def test_erclist_consistency_cache_invalidated_by_add():
    el = ErcList(U, [Erc(U, 'W L e')])
    assert el.consistent()
    el.add(Erc(U, 'L W e'))
    assert not el.consistent()


def test_erclist_copy_is_independent():
    el = ErcList(U, [Erc(U, 'W L e')])
    cp = el.copy()
    cp.add(Erc(U, 'L W e'))
    assert len(el) == 1 and el.consistent()
    assert len(cp) == 2 and not cp.consistent()


def test_erclist_from_stack():
    el = ErcList.from_stack(U, np.array([[W, L, E], [E, W, L]]), label='s')
    assert el.labels() == ['s.1', 's.2']
    assert el[1] == Erc(U, 'e W L')


def test_erclist_fusion():
    assert ercs.fusion() == Erc(U, 'L L L')
    assert ErcList(U, ercs[:2]).fusion() == Erc(U, 'W L L')
    assert ErcList(U).fusion() is None
