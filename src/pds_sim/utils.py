# src/pds_sim/utils.py
from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover
    tomllib = None  # type: ignore


@dataclass
class SampleResult:
    """Container for a finished sample field."""

    positions: Optional[np.ndarray] = None
    occupied: Optional[np.ndarray] = None
    meta: Optional[Dict[str, Any]] = None

    def ensure_meta(self) -> Dict[str, Any]:
        if self.meta is None:
            self.meta = {}
        return self.meta


def now_str() -> str:
    return time.strftime("%Y%m%d-%H%M%S")


def save_samples(path: str | os.PathLike[str], positions=None, occupied=None, meta=None):
    """
    Save raw sample positions (and optional occupancy mask) to .npz.
    """
    result = SampleResult(
        positions=None if positions is None else np.asarray(positions),
        occupied=None if occupied is None else np.asarray(occupied),
        meta=meta or {},
    )
    save_sample_result(path, result)


def save_sample_result(
    path: str | os.PathLike[str], result: SampleResult, *, overwrite: bool = True
) -> None:
    """Serialize a SampleResult to disk."""
    if not overwrite and Path(path).exists():
        raise FileExistsError(f"{path} already exists")
    Path(path).parent.mkdir(parents=True, exist_ok=True)

    out: Dict[str, Any] = {}
    if result.positions is not None:
        out["positions"] = np.asarray(result.positions, dtype=np.float64).reshape(-1, 2)
    if result.occupied is not None:
        out["occupied"] = np.asarray(result.occupied).astype("uint8")

    # Arrays in meta go to the top level so they load without pickling
    meta_clean = {}
    for key, value in (result.meta or {}).items():
        if isinstance(value, np.ndarray):
            out[key] = value
        else:
            meta_clean[key] = value
    out["meta"] = meta_clean

    np.savez_compressed(path, **out)


def load_sample_result(path: str | os.PathLike[str]) -> SampleResult:
    """
    Load a .npz written by save_sample_result.
    """
    with np.load(path, allow_pickle=True) as data:
        positions = data["positions"].astype(float) if "positions" in data else None
        occupied = data["occupied"].astype(bool) if "occupied" in data else None

        meta: Dict[str, Any] = {}
        if "meta" in data:
            try:
                meta = dict(data["meta"].item())
            except (ValueError, TypeError):
                meta = {}
        for key in data.files:
            if key not in {"positions", "occupied", "meta"} and key not in meta:
                meta[key] = data[key]

    return SampleResult(positions=positions, occupied=occupied, meta=meta)


def _read_param_file(path: Path) -> Dict[str, Any]:
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix in {".json", ""}:
        return json.loads(text)
    if suffix in {".toml", ".tml"}:
        if tomllib is None:
            raise RuntimeError("tomllib is unavailable; cannot parse TOML files")
        return tomllib.loads(text)
    raise ValueError(f"Unsupported parameter file format: {suffix}")


def load_params(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """
    Load FieldParams overrides from a JSON or TOML file.

    Keys may sit at the top level or under a ``field`` table. Unknown keys
    raise ValueError naming them; ``seeds`` is returned as a list of
    (x, y) tuples.
    """
    from .field import FieldParams  # field imports utils

    raw = _read_param_file(Path(path))
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: expected a table of parameters, got {type(raw).__name__}")
    if isinstance(raw.get("field"), dict):
        raw = raw["field"]

    known = {f.name for f in fields(FieldParams)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"{path}: unknown parameter(s) {', '.join(unknown)}")

    params = dict(raw)
    if params.get("seeds") is not None:
        params["seeds"] = [(float(x), float(y)) for x, y in params["seeds"]]
    return params
