'''
Exceptions raised on malformed input. Ranking inconsistency and learning
failure are ordinary results (see rcd.RcdResult and mrcd.Failed), not
exceptions.
'''


class MalformedInputError(ValueError):
    '''
    Base class for input that is rejected at construction time.
    '''


class UnknownConstraintError(MalformedInputError):
    '''
    A constraint (or a mark) was referenced that its universe does not know.
    '''


class DuplicateConstraintUniverseError(MalformedInputError):
    '''
    An ERC's constraint universe does not match the universe established by
    the collection it is added to, or a universe lists a constraint twice.
    '''


class EmptyCompetitionError(MalformedInputError):
    '''
    A competition was built with no candidates.
    '''


class InconsistentErcsError(Exception):
    '''
    An operation that is only defined for consistent ERCs was given
    inconsistent ones.
    '''
