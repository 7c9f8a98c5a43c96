"""
Solution strategies: task graph assembly per algorithmic variant.
"""

from .solution_strategy import NLPStrategy, SingleTreeStrategy, SolutionStrategy

__all__ = ['SolutionStrategy', 'SingleTreeStrategy', 'NLPStrategy']
