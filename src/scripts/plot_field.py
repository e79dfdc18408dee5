# src/scripts/plot_field.py
"""
Render Poisson-disk sample fields.

Two modes:
- file: plot a saved .npz (samples plus the background grid overlay)
- live: grow a field batch by batch, colouring each batch of newly accepted
  samples by age, and mark the active frontier where growth stopped
"""
import argparse
import os
import sys
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

SRC = Path(__file__).resolve().parents[1]
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from pds_sim import FieldParams, build_field, utils


def draw_grid(ax, cell_size, cols, rows):
    """Background grid lines, one per cell boundary."""
    for c in range(cols + 1):
        ax.axvline(c * cell_size, color="0.85", linewidth=0.5, zorder=0)
    for r in range(rows + 1):
        ax.axhline(r * cell_size, color="0.85", linewidth=0.5, zorder=0)


def finish(fig, ax, width, height, title, output, dpi, show):
    ax.set_xlim(0, width)
    ax.set_ylim(0, height)
    ax.set_aspect("equal")
    if title:
        ax.set_title(title, pad=10)
    if output:
        os.makedirs(os.path.dirname(output) if os.path.dirname(output) else ".", exist_ok=True)
        plt.savefig(output, dpi=dpi, bbox_inches="tight", pad_inches=0.1)
        print(f"Saved figure to {output} @ {dpi} DPI")
    if show:
        plt.show()
    plt.close(fig)


def plot_file(path, output=None, grid=False, dpi=200, show=False):
    result = utils.load_sample_result(path)
    if result.positions is None:
        print(f"Error: no positions stored in {path}")
        return
    meta = result.meta or {}
    pos = result.positions

    fig, ax = plt.subplots(figsize=(6, 6))
    if grid and "cell_size" in meta:
        draw_grid(ax, float(meta["cell_size"]), int(meta["cols"]), int(meta["rows"]))
    ax.scatter(pos[:, 0], pos[:, 1], s=4, c="black", linewidths=0)

    width = float(meta.get("width", pos[:, 0].max() if len(pos) else 1.0))
    height = float(meta.get("height", pos[:, 1].max() if len(pos) else 1.0))
    title = f"Poisson disk: N={len(pos):,}"
    if "min_radius" in meta:
        title += f", r={meta['min_radius']:g}"
    finish(fig, ax, width, height, title, output, dpi, show)


def plot_live(params, batches, output=None, grid=False, dpi=200, show=False, cmap="viridis"):
    """Grow a field for at most `batches` advance() calls and plot its history."""
    sample_field = build_field(params)
    seeds = sample_field.positions()

    layers = []
    for _ in range(batches):
        if sample_field.is_complete:
            break
        sample_field.advance(params.batch_size)
        fresh = sample_field.drain_dirty()
        if fresh:
            layers.append(np.asarray(fresh, dtype=np.float64))
    print(f"{len(layers)} batches, {sample_field.num_points} samples, "
          f"{sample_field.num_active} still active")

    fig, ax = plt.subplots(figsize=(6, 6))
    if grid:
        draw_grid(ax, sample_field.cell_size, sample_field.cols, sample_field.rows)

    colours = plt.colormaps[cmap](np.linspace(0.0, 1.0, max(1, len(layers))))
    for layer, colour in zip(layers, colours):
        ax.scatter(layer[:, 0], layer[:, 1], s=4, color=colour, linewidths=0)
    ax.scatter(seeds[:, 0], seeds[:, 1], s=20, c="black", marker="x")

    active = sample_field.active_positions()
    if len(active):
        ax.scatter(active[:, 0], active[:, 1], s=12, facecolors="none", edgecolors="red")

    title = f"Growth: {sample_field.num_points:,} samples, {len(active):,} active"
    finish(fig, ax, params.width, params.height, title, output, dpi, show)


def main():
    parser = argparse.ArgumentParser(description="Plot Poisson-disk sample fields")
    parser.add_argument("file", nargs="?", default=None, help="Path to .npz sample file")
    parser.add_argument("--live", action="store_true", help="Grow a new field instead of loading a file")
    parser.add_argument("--batches", type=int, default=20, help="advance() calls in live mode (default: 20)")
    parser.add_argument("--batch", type=int, default=50, help="Rounds per advance() in live mode (default: 50)")
    parser.add_argument("--width", type=float, default=100.0)
    parser.add_argument("--height", type=float, default=100.0)
    parser.add_argument("--radius", type=float, default=4.0)
    parser.add_argument("--seed", type=int, default=None, help="RNG seed")
    parser.add_argument("--grid", action="store_true", help="Draw the background grid")
    parser.add_argument("--cmap", default="viridis", help="Colormap for batch ages in live mode")
    parser.add_argument("--out", default=None, help="Output image path (PNG)")
    parser.add_argument("--dpi", type=int, default=200)
    parser.add_argument("--show", action="store_true", help="Show plot interactively")
    args = parser.parse_args()

    if args.live:
        params = FieldParams(
            width=args.width,
            height=args.height,
            min_radius=args.radius,
            batch_size=args.batch,
            seed=args.seed,
            verbose=False,
        )
        plot_live(params, args.batches, output=args.out, grid=args.grid,
                  dpi=args.dpi, show=args.show, cmap=args.cmap)
        return

    if args.file is None or not os.path.exists(args.file):
        print(f"Error: file not found: {args.file}")
        return
    if args.out is None:
        args.out = str(Path(args.file).with_suffix(".png"))
    plot_file(args.file, output=args.out, grid=args.grid, dpi=args.dpi, show=args.show)


if __name__ == "__main__":
    main()
