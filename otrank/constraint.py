'''
Constraints and constraint universes.

A Constraint is an immutable identity key: a name, a short id used when
building labels, and a kind (markedness or faithfulness). Every ERC, ERC list,
hierarchy and candidate is built against one explicit ConstraintUniverse, an
immutable ordered tuple of constraints; the position of a constraint in its
universe is its column in every mark vector and violation vector.
'''

from enum import Enum

from funcy import lmap

from otrank.errors import DuplicateConstraintUniverseError, UnknownConstraintError


class Kind(Enum):
    MARKEDNESS   = 'markedness'
    FAITHFULNESS = 'faithfulness'


MARKEDNESS   = Kind.MARKEDNESS
FAITHFULNESS = Kind.FAITHFULNESS


class Constraint(object):
    '''
    An OT constraint. Two constraints are equal iff their names and kinds are
    equal; the id is only a short label.
    '''
    __slots__ = ('_name', '_id', '_kind', '_hash')

    def __init__(self, name, id=None, kind=MARKEDNESS):
        if not isinstance(kind, Kind):
            try:
                kind = Kind(kind)
            except ValueError:
                raise ValueError(f"Constraint kind must be markedness or faithfulness, not {kind!r}") from None
        object.__setattr__(self, '_name', str(name))
        object.__setattr__(self, '_id', str(name) if id is None else str(id))
        object.__setattr__(self, '_kind', kind)
        object.__setattr__(self, '_hash', hash((self._name, kind)))

    def __setattr__(self, attr, value):
        raise AttributeError(f"Constraint {self._name} is immutable")

    @property
    def name(self):
        return self._name

    @property
    def id(self):
        return self._id

    @property
    def kind(self):
        return self._kind

    def markedness(self):
        return self._kind is MARKEDNESS

    def faithfulness(self):
        return self._kind is FAITHFULNESS

    def __eq__(self, other):
        if not isinstance(other, Constraint):
            return NotImplemented
        return self._name == other._name and self._kind is other._kind

    def __hash__(self):
        return self._hash

    def __reduce__(self):
        return (Constraint, (self._name, self._id, self._kind))

    def __str__(self):
        return f"{self._id}:{self._name}"

    def __repr__(self):
        return f"Constraint({self._name!r}, {self._id!r}, {self._kind.value})"


def markedness(name, id=None):
    return Constraint(name, id, MARKEDNESS)


def faithfulness(name, id=None):
    return Constraint(name, id, FAITHFULNESS)


class ConstraintUniverse(object):
    '''
    An immutable ordered set of constraints. Universes compare equal iff they
    hold equal constraints in the same order.
    '''

    def __init__(self, constraints):
        constraints = tuple(constraints)
        bad = [c for c in constraints if not isinstance(c, Constraint)]
        if len(bad) > 0:
            raise TypeError(f"Universe members must be Constraints, got {bad}")
        index = {}
        for i, c in enumerate(constraints):
            if c in index:
                raise DuplicateConstraintUniverseError(f"Constraint {c} appears twice in universe {lmap(str, constraints)}")
            index[c] = i
        self._constraints = constraints
        self._index       = index
        self._by_name     = {c.name: c for c in constraints}
        self._hash        = hash(constraints)

    @classmethod
    def from_names(cls, markedness_names=(), faithfulness_names=()):
        '''
        Builds a universe with the markedness constraints first (in the given
        order) followed by the faithfulness constraints.
        '''
        return cls([Constraint(n, kind=MARKEDNESS) for n in markedness_names] +
                   [Constraint(n, kind=FAITHFULNESS) for n in faithfulness_names])

    @property
    def constraints(self):
        return self._constraints

    def __len__(self):
        return len(self._constraints)

    def __iter__(self):
        return iter(self._constraints)

    def __getitem__(self, i):
        return self._constraints[i]

    def __contains__(self, c):
        return c in self._index

    def index(self, c):
        '''
        Returns the column of constraint c (or of the constraint named c).
        '''
        if isinstance(c, str):
            c = self.by_name(c)
        try:
            return self._index[c]
        except KeyError:
            raise UnknownConstraintError(f"{c} is not in universe {lmap(str, self._constraints)}") from None

    def indices(self, cs):
        return [self.index(c) for c in cs]

    def by_name(self, name):
        try:
            return self._by_name[name]
        except KeyError:
            raise UnknownConstraintError(f"No constraint named {name!r} in universe {lmap(str, self._constraints)}") from None

    def resolve(self, c):
        '''
        Returns the constraint object for c, which may be a Constraint or a name.
        '''
        return self.by_name(c) if isinstance(c, str) else self[self.index(c)]

    def order(self, cs):
        '''
        Returns the constraints of cs sorted by their position in the universe.
        '''
        return sorted(cs, key=self.index)

    def kind_mask(self, kind):
        return [c.kind is kind for c in self._constraints]

    def __eq__(self, other):
        if not isinstance(other, ConstraintUniverse):
            return NotImplemented
        return self is other or self._constraints == other._constraints

    def __hash__(self):
        return self._hash

    def __reduce__(self):
        return (ConstraintUniverse, (self._constraints,))

    def __str__(self):
        return '(' + ' '.join(lmap(str, self._constraints)) + ')'

    def __repr__(self):
        return f"ConstraintUniverse({list(self._constraints)!r})"
