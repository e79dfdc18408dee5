#!/usr/bin/env python3
"""
Single Poisson-Disk Field Runner

Fills one rectangular domain with blue-noise samples and saves the result
to .npz. Parameters come from the command line or a JSON/TOML file.
"""

import argparse
import sys
import time
from pathlib import Path

# Add package source to path
SRC = Path(__file__).resolve().parents[1]
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from pds_sim import FieldParams, run_model, utils


def parse_seed(text: str) -> tuple:
    try:
        x, y = (float(v) for v in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"seed must look like X,Y, got {text!r}")
    return x, y


def main():
    parser = argparse.ArgumentParser(
        description="Run a single Poisson-disk sample field",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=float, default=100.0, help="Domain width (default: 100)")
    parser.add_argument("--height", type=float, default=100.0, help="Domain height (default: 100)")
    parser.add_argument("--radius", type=float, default=10.0, help="Minimum sample distance (default: 10)")
    parser.add_argument("--k", type=int, default=30, help="Candidate attempts per round (default: 30)")
    parser.add_argument("--batch", type=int, default=1000, help="Rounds per advance() call (default: 1000)")
    parser.add_argument(
        "--seed-point",
        type=parse_seed,
        action="append",
        default=None,
        help="Seed sample as X,Y (repeatable, default: domain centre)",
    )
    parser.add_argument("--strict-seeds", action="store_true", help="Reject seeds closer than --radius")
    parser.add_argument("--seed", type=int, default=None, help="RNG seed")
    parser.add_argument("--params", type=str, default=None, help="JSON/TOML parameter file (overrides flags)")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    parser.add_argument(
        "--out",
        type=str,
        default=None,
        help="Output .npz file path (auto-generated if not provided)",
    )

    args = parser.parse_args()

    params = FieldParams(
        width=args.width,
        height=args.height,
        min_radius=args.radius,
        max_attempts=args.k,
        batch_size=args.batch,
        seeds=args.seed_point,
        strict_seeds=args.strict_seeds,
        seed=args.seed,
        verbose=not args.quiet,
    )
    if args.params:
        overrides = utils.load_params(args.params)
        params = FieldParams(**{**params.__dict__, **overrides})

    print(f"Running Poisson-disk field: {params.width}x{params.height}, "
          f"r={params.min_radius}, k={params.max_attempts}")
    start_time = time.time()
    result = run_model(params)
    elapsed_time = time.time() - start_time

    if args.out is None:
        output_dir = Path("results")
        output_dir.mkdir(exist_ok=True)
        args.out = str(
            output_dir / f"pds_{params.width:g}x{params.height:g}_r{params.min_radius:g}_{utils.now_str()}.npz"
        )

    utils.save_sample_result(args.out, result)

    print("\nSampling completed successfully!")
    print(f"   Time elapsed: {elapsed_time:.2f} seconds")
    print(f"   Samples generated: {result.positions.shape[0]}")
    print(f"   Output saved to: {args.out}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
