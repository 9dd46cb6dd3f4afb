from otrank.constraint import Constraint, ConstraintUniverse, Kind, MARKEDNESS, FAITHFULNESS
from otrank.constraint import markedness, faithfulness

from otrank.errors import MalformedInputError, UnknownConstraintError, DuplicateConstraintUniverseError
from otrank.errors import EmptyCompetitionError, InconsistentErcsError

from otrank.ternary import W, E, L
from otrank.ternary import HashableArray, hash_marks, MAX_M_FOR_HASHING
from otrank.ternary import to_marks_string, from_marks_string, from_mark_dict, to_mark_dict
from otrank.ternary import fuse, arrow, arrow_stack_left, conjunctive_expansion

from otrank.erc import Erc, ErcList
from otrank.hierarchy import Hierarchy, total_orders

from otrank.bias import BiasPolicy, AllHigh, SomeLow, FaithLow, MarkLow, ForcedLow, get_policy
from otrank.rcd import rcd, consistent, get_hierarchy, Ranker, RcdResult

from otrank.entailment import entails, minimal_support, fred, FredResult

from otrank.competition import Candidate, Competition, CTIE, POOL
from otrank.competition import compare, compare_on_stratum, most_harmonic, is_sole_optimum
from otrank.competition import possible_optima, collectively_bounded, bounded_by

from otrank.mrcd import mrcd, State, Converged, Failed

from otrank.typology import FactorialTypology, Language, factorial_typology

import otrank.convert
