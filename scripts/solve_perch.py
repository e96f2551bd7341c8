#!/usr/bin/env python3
"""
Solves a perching trajectory for the flat-plate glider.

Loads the glider parameter document, seeds the optimizer with a straight line
between two points and prints the optimized per-knot sequences.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from glider_trajopt.guess import straight_line_guess
from glider_trajopt.solvers import make_solver
from glider_trajopt.trajectory_optimizer import (
    GliderTrajectoryConfig,
    GliderTrajectoryOptimizer,
    Transcription,
)

logger = logging.getLogger("solve_perch")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Optimize a glider perching trajectory.")
    parser.add_argument(
        "--params",
        default=str(REPO_ROOT / "config" / "glider_parameters.yaml"),
        help="Glider parameter YAML document.",
    )
    parser.add_argument("--knots", type=int, default=10, help="Number of knots N.")
    parser.add_argument("--duration", type=float, default=1.0, help="Maneuver duration (s).")
    parser.add_argument("--start", type=float, nargs=2, default=(0.0, 1.0), metavar=("X", "Z"))
    parser.add_argument("--end", type=float, nargs=2, default=(1.0, 0.0), metavar=("X", "Z"))
    parser.add_argument("--solver", choices=("cobyla", "ipopt"), default="cobyla")
    parser.add_argument("--max-time", type=float, default=0.5, help="Wall-clock budget (s).")
    parser.add_argument("--plot", action="store_true", help="Plot the optimized trajectory.")
    parser.add_argument("--verbose", action="store_true", help="Log every cost evaluation.")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    config = GliderTrajectoryConfig(max_time_sec=args.max_time)
    if args.solver == "ipopt":
        config.transcription = Transcription.NATIVE_EQUALITY
    optimizer = GliderTrajectoryOptimizer(config, make_solver(args.solver))

    loaded = optimizer.load_parameters(
        args.params,
        total_sec=args.duration,
        num_knots=args.knots,
        initial_x=[args.start[0]],
        initial_z=[args.start[1]],
    )
    if not loaded:
        logger.error("Parameters unavailable: %s", args.params)
        return 1

    guess = straight_line_guess(args.start, args.end, args.knots, args.duration)
    optimizer.load_initial_guess(guess)
    result = optimizer.optimize()

    np.set_printoptions(precision=4, suppress=True)
    for name in ("x", "z", "theta", "phi", "vx", "vz"):
        logger.info("%-5s %s", name, getattr(result, name))
    logger.info("max constraint violation %.3e", result.max_violation)

    if args.plot:
        from glider_trajopt.plotting import plot_states, plot_trajectory

        plot_trajectory(result, optimizer.params, show=False)
        plot_states(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
