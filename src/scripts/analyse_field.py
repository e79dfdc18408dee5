"""
Spacing Analysis Script for Poisson-Disk Sample Fields.

Reports the nearest-neighbour distance distribution, checks the minimum
distance against min_radius and plots a histogram of spacings.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
from matplotlib import pyplot as plt

SRC = Path(__file__).resolve().parents[1]
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from pds_sim import analysis, utils


def plot_histogram(nn: np.ndarray, min_radius: float, output: str, title: str) -> None:
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.hist(nn, bins=50, color="0.3")
    ax.axvline(min_radius, color="red", linestyle="--", label=f"r = {min_radius:g}")
    ax.axvline(2.0 * min_radius, color="red", linestyle=":", label=f"2r = {2.0 * min_radius:g}")
    ax.set_xlabel("nearest-neighbour distance")
    ax.set_ylabel("count")
    ax.set_title(title)
    ax.legend()
    fig.tight_layout()
    fig.savefig(output, dpi=200)
    plt.close(fig)
    print(f"Saved histogram to {output}")


def main():
    parser = argparse.ArgumentParser(description="Analyse spacing of a saved sample field")
    parser.add_argument("file", help="Path to .npz sample file")
    parser.add_argument("--radius", type=float, default=None, help="Override min_radius from metadata")
    parser.add_argument("--out", default=None, help="Histogram output path (PNG)")
    args = parser.parse_args()

    result = utils.load_sample_result(args.file)
    meta = result.meta or {}
    min_radius = args.radius if args.radius is not None else meta.get("min_radius")
    if min_radius is None:
        print("Error: min_radius missing from metadata; pass --radius")
        return 1

    pos = analysis.validate_positions(result.positions)
    width = float(meta.get("width", np.ptp(pos[:, 0]) if len(pos) else 1.0))
    height = float(meta.get("height", np.ptp(pos[:, 1]) if len(pos) else 1.0))
    stats = analysis.summarize(pos, float(min_radius), width, height)

    print(f"Samples:             {stats['num']}")
    print(f"Min NN distance:     {stats['min_nn']:.4f} (r = {float(min_radius):g})")
    print(f"Mean NN distance:    {stats['mean_nn']:.4f} +/- {stats['std_nn']:.4f}")
    print(f"Packing fraction:    {stats['packing_fraction']:.4f}")
    print(f"Distance violations: {stats['violations']}")

    if args.out is None:
        args.out = str(Path(args.file).with_name(Path(args.file).stem + "_nn.png"))
    nn = analysis.nearest_neighbour_distances(pos)
    if nn.size:
        plot_histogram(nn, float(min_radius), args.out, f"{Path(args.file).name}: N={stats['num']:,}")

    return 0 if stats["violations"] == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
