"""
ESH Optimizer Command-Line Interface

Solves the built-in problems with configurable strategy settings.
"""

import sys
import argparse
import json
import logging
from pathlib import Path

import numpy as np

from .problems import PROBLEMS
from .settings import CutStrategy, Settings, SolutionStrategyType
from .solver import Solver

STRATEGIES = {
    'auto': SolutionStrategyType.AUTOMATIC,
    'single-tree': SolutionStrategyType.SINGLE_TREE,
    'nlp': SolutionStrategyType.NLP,
}

CUT_STRATEGIES = {
    'esh': CutStrategy.ESH,
    'ecp': CutStrategy.ECP,
}


def build_settings(args) -> Settings:
    """Settings from an optional JSON file, then the command-line overrides."""
    settings = Settings.load_json(Path(args.settings)) if args.settings else Settings()

    settings.update_setting("Type", "Strategy", int(STRATEGIES[args.strategy]))
    settings.update_setting("CutStrategy", "Dual", int(CUT_STRATEGIES[args.cut_strategy]))
    if args.time_limit is not None:
        settings.update_setting("TimeLimit", "Termination", args.time_limit)
    if args.iteration_limit is not None:
        settings.update_setting("IterationLimit", "Termination", args.iteration_limit)
    if args.assume_convex:
        settings.update_setting("Convexity.AssumeConvex", "Model", True)

    return settings


def cmd_list(args):
    """List the built-in problems."""
    for name, entry in PROBLEMS.items():
        problem = entry.build()
        problem.finalize()
        props = problem.properties
        print(f"{name:22} vars={props.number_of_variables:2d} "
              f"discrete={props.number_of_discrete_variables:2d} "
              f"convexity={props.convexity.value:10} optimum={entry.optimum:.6g}")
    return 0


def cmd_solve(args):
    """Solve a built-in problem."""
    if args.problem not in PROBLEMS:
        print(f"Error: Unknown problem '{args.problem}'")
        print(f"Available: {list(PROBLEMS.keys())}")
        return 1

    entry = PROBLEMS[args.problem]
    problem = entry.build()

    try:
        settings = build_settings(args)
    except (KeyError, TypeError, ValueError) as e:
        print(f"Error: invalid settings: {e}")
        return 1

    result = Solver(problem, settings).solve()

    if args.json:
        data = result.to_dict()
        data['problem'] = args.problem
        data['known_optimum'] = entry.optimum
        print(json.dumps(data, indent=2, default=str))
    else:
        print("=" * 60)
        print(f"Problem: {args.problem}")
        print("=" * 60)
        print(f"Strategy: {result.strategy}")
        print(f"Termination: {result.termination_reason.value} ({result.termination_description})")
        print(f"Primal bound: {result.primal_bound:.8g}")
        print(f"Dual bound: {result.dual_bound:.8g}")
        print(f"Known optimum: {entry.optimum:.8g}")
        print(f"Iterations: {result.iterations}")
        print(f"Time: {result.elapsed:.3f}s")
        if result.point is not None:
            print(f"Solution: {np.array2string(result.point, precision=6)}")
        for name, message in result.failures:
            print(f"Task failed: {name}: {message}")
        print(f"Receipts: {result.receipts_hash[:16]}")

    return 0 if result.has_solution else 1


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='esh-optimizer',
        description='ESH Optimizer - Outer approximation for convex MINLP'
    )
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Log every task (DEBUG)')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    list_parser = subparsers.add_parser('list', help='List built-in problems')
    list_parser.set_defaults(func=cmd_list)

    solve_parser = subparsers.add_parser('solve', help='Solve a built-in problem')
    solve_parser.add_argument('problem', help='Problem name (see "list")')
    solve_parser.add_argument('--strategy', '-s', choices=list(STRATEGIES.keys()), default='auto',
                              help='Solution strategy (default: auto)')
    solve_parser.add_argument('--cut-strategy', '-c', choices=list(CUT_STRATEGIES.keys()), default='esh',
                              help='Hyperplane point selection (default: esh)')
    solve_parser.add_argument('--time-limit', '-t', type=float,
                              help='Time limit in seconds')
    solve_parser.add_argument('--iteration-limit', '-n', type=int,
                              help='Iteration limit')
    solve_parser.add_argument('--assume-convex', action='store_true',
                              help='Treat the problem as convex')
    solve_parser.add_argument('--settings', type=str,
                              help='Settings JSON file ("Category.Name": value)')
    solve_parser.add_argument('--json', action='store_true',
                              help='Print the result as JSON')
    solve_parser.set_defaults(func=cmd_solve)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(message)s',
    )

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
