import pytest

from otrank.constraint import FAITHFULNESS, MARKEDNESS
from otrank.convert import make_universe, erc_list_from_rows, erc_list_from_dicts, competitions_from_rows
from otrank.erc import Erc
from otrank.errors import MalformedInputError, UnknownConstraintError
from otrank.mrcd import mrcd

headers = ['label', 'NoCoda', 'Max', 'Dep']
kinds   = ['M', 'F', 'F']


def test_make_universe():
    U = make_universe(headers[1:], kinds)
    assert [c.kind for c in U] == [MARKEDNESS, FAITHFULNESS, FAITHFULNESS]
    assert make_universe(['A', 'B'], {'B': 'faithfulness'})[1].faithfulness()
    with pytest.raises(MalformedInputError):
        make_universe(['A', 'B'], ['M'])


def test_erc_list_from_rows():
    ercs = erc_list_from_rows(headers, [['e1', 'W', 'e', 'L'],
                                        ['e2', 'e', 'W', ' L ']], kinds=kinds)
    assert ercs.labels() == ['e1', 'e2']
    assert ercs[1] == Erc(ercs.universe, 'e W L')
    assert ercs.consistent()


def test_erc_list_from_unlabeled_rows():
    ercs = erc_list_from_rows(headers[1:], [['W', '', 'L']], labeled=False, label='t')
    assert ercs.labels() == ['t.1']
    assert ercs[0] == Erc(ercs.universe, 'W e L')


def test_erc_list_from_rows_errors():
    with pytest.raises(MalformedInputError):
        erc_list_from_rows(headers, [['e1', 'W', 'L']])
    with pytest.raises(UnknownConstraintError):
        erc_list_from_rows(headers, [['e1', 'W', 'L', 'x']])


def test_erc_list_from_dicts():
    U = make_universe(headers[1:], kinds)
    ercs = erc_list_from_dicts(U, [{'label': 'a', 'NoCoda': 'W', 'Dep': 'L'}, {'Max': 'W'}], label='d')
    assert ercs.labels() == ['a', 'd.2']
    assert ercs[0] == Erc(U, 'W e L')


tableau = [['pat', 'pat',  '0', '1', '',  ''],
           ['',    'pa',   '',  '',  '1', ''],
           ['',    'pata', '1', '',  '',  '1'],
           ['pa',  'pa',   '1', '',  '',  ''],
           ['',    'a',    '0', '',  '1', '']]


def test_competitions_from_rows():
    comps = competitions_from_rows(headers[1:], tableau, kinds=kinds)
    assert [c.label for c in comps] == ['pat', 'pa']
    assert comps[0].winner.output == 'pata'
    assert comps[0].candidate('pat').viols('NoCoda') == 1
    assert comps[1].winner.output == 'pa'
    assert mrcd(comps).converged


def test_competitions_from_rows_errors():
    two_winners = [['pat', 'pat', '1', '1', '', ''],
                   ['',    'pa',  '1', '',  '1', '']]
    with pytest.raises(MalformedInputError):
        competitions_from_rows(headers[1:], two_winners)
    with pytest.raises(MalformedInputError):
        competitions_from_rows(headers[1:], [['', 'pa', '1', '', '', '']])
    with pytest.raises(MalformedInputError):
        competitions_from_rows(headers[1:], [['pa', 'pa', 'x', '', '', '']])
    with pytest.raises(MalformedInputError):
        competitions_from_rows(headers[1:], [['pa', 'pa', '1', 'one', '', '']])
    with pytest.raises(MalformedInputError):
        competitions_from_rows(headers[1:], [['pa', 'pa', '1']])
