"""
Problem definition package for optimal control problems.
"""

from .bounds import Bounds
from .core_problem import Problem
from .functions_problem import CostFunction, PathConstraintFunction, ProblemFunctions


__all__ = [
    "Bounds",
    "CostFunction",
    "PathConstraintFunction",
    "Problem",
    "ProblemFunctions",
]
