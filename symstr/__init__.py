from .backend import Backend, run_smt, default_backend, KindMismatch, SolverError, BOOL, INT, CHAR, STRING
from .core import SymbolicTracer, SymbolicValue, make_symbolic, literal, unliteral, ite, implies, emulate, sat, prove, current_tracer
from . import strings

__version__ = "0.1.0"
