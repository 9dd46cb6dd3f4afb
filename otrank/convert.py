'''
Functions to take in-memory tabular data (as produced by csv.reader or
csv.DictReader, or written out by hand) and build
 - a ConstraintUniverse from a header row of constraint names, optionally
   with a kind ('markedness' or 'faithfulness', or 'M' / 'F') per name
 - an ErcList from rows of W/L/e marks, one column per constraint, with an
   optional leading label column
 - a list of Competitions from OTSoft-style tableau rows:
       input, output, winner frequency, violation count per constraint
   where the input cell may be left blank to continue the previous input, and
   a frequency above zero marks the observed winner.

Reading and writing files is left to the caller.
'''

from funcy import lmap, lpartition_by

from otrank.constraint import Constraint, ConstraintUniverse, MARKEDNESS, FAITHFULNESS
from otrank.competition import Candidate, Competition
from otrank.erc import Erc, ErcList
from otrank.errors import MalformedInputError


KIND_ABBREVIATIONS = {'M': MARKEDNESS, 'F': FAITHFULNESS,
                      'markedness': MARKEDNESS, 'faithfulness': FAITHFULNESS}


def make_universe(constraint_names, kinds=None):
    '''
    Returns a ConstraintUniverse over constraint_names (in order). kinds may
    be None (all markedness), a sequence parallel to constraint_names, or a
    dict from names to kinds.
    '''
    constraint_names = list(constraint_names)
    if kinds is None:
        kinds = [MARKEDNESS] * len(constraint_names)
    elif isinstance(kinds, dict):
        kinds = [kinds.get(n, MARKEDNESS) for n in constraint_names]
    kinds = list(kinds)
    if len(kinds) != len(constraint_names):
        raise MalformedInputError(f"Got {len(kinds)} kinds for {len(constraint_names)} constraints")
    return ConstraintUniverse(Constraint(n, kind=KIND_ABBREVIATIONS.get(k, k))
                              for n, k in zip(constraint_names, kinds))


def have_uniform_width(rows, width):
    '''
    Returns True iff every row has exactly width cells.
    '''
    return all(len(r) == width for r in rows)


def erc_list_from_rows(headers, rows, kinds=None, labeled=True, label=''):
    '''
    Builds an ErcList from a header row and rows of W/L/e marks.

    If labeled, the first header cell names the label column and the first
    cell of each row is that ERC's label; otherwise ERCs are labeled by row
    number.
    '''
    headers = list(headers)
    rows    = [list(r) for r in rows]
    if not have_uniform_width(rows, len(headers)):
        raise MalformedInputError(f"Every row must have {len(headers)} cells to match the header {headers}")
    names    = headers[1:] if labeled else headers
    universe = make_universe(names, kinds)
    ercs     = ErcList(universe, label=label)
    for i, row in enumerate(rows):
        erc_label = row[0] if labeled else f"{label or 'erc'}.{i + 1}"
        marks     = row[1:] if labeled else row
        ercs.add(Erc(universe, dict(zip(names, lmap(lambda s: s.strip() or 'e', marks))), label=erc_label))
    return ercs


def erc_list_from_dicts(universe, mark_dicts, label=''):
    '''
    Builds an ErcList from dicts mapping constraint names to 'W'/'L'/'e'.
    A 'label' key, if present, names the ERC; constraints absent from a dict
    are 'e'.
    '''
    ercs = ErcList(universe, label=label)
    for i, d in enumerate(mark_dicts):
        d = dict(d)
        erc_label = d.pop('label', f"{label or 'erc'}.{i + 1}")
        ercs.add(Erc(universe, d, label=erc_label))
    return ercs


def _count(cell):
    cell = str(cell).strip()
    if cell == '':
        return 0
    try:
        return int(cell)
    except ValueError:
        raise MalformedInputError(f"Not a violation count: {cell!r}") from None


def _frequency(cell):
    cell = str(cell).strip()
    if cell == '':
        return 0.0
    try:
        return float(cell)
    except ValueError:
        raise MalformedInputError(f"Not a winner frequency: {cell!r}") from None


def competitions_from_rows(constraint_names, rows, kinds=None, universe=None):
    '''
    Builds a list of Competitions from OTSoft-style rows
        input, output, frequency, violations...
    with one violation column per constraint name. Blank input cells repeat
    the previous row's input and blank violation cells count as 0. A row
    with frequency above zero is the observed winner of its competition; a
    competition may have at most one.
    '''
    constraint_names = list(constraint_names)
    if universe is None:
        universe = make_universe(constraint_names, kinds)
    rows = [list(r) for r in rows]
    if not have_uniform_width(rows, len(constraint_names) + 3):
        raise MalformedInputError(f"Every row must have input, output, frequency and {len(constraint_names)} violation cells")
    filled, current = [], None
    for row in rows:
        if str(row[0]).strip() != '':
            current = str(row[0]).strip()
        if current is None:
            raise MalformedInputError(f"Row {row} has no input")
        filled.append([current] + row[1:])

    competitions = []
    for group in lpartition_by(lambda r: r[0], filled):
        candidates, winners = [], []
        for inp, out, freq, *viols in group:
            cand = Candidate(inp, str(out).strip(),
                             {universe.by_name(n): _count(v) for n, v in zip(constraint_names, viols)},
                             universe)
            candidates.append(cand)
            if _frequency(freq) > 0:
                winners.append(cand)
        if len(winners) > 1:
            raise MalformedInputError(f"Input {group[0][0]} has more than one observed winner: {lmap(str, winners)}")
        competitions.append(Competition(candidates, winner=winners[0] if winners else None))
    return competitions
