"""
Poisson-Disk Sampling Library - Incremental Blue-Noise Point Fields

This package provides an incremental Poisson-disk sampler:
- SampleField: grid-accelerated sampler driven by repeated advance() calls
- FieldParams / run_model: fill a domain to completion in one call
- NumpyRandomSource: default injectable random source
- analysis: nearest-neighbour spacing statistics
"""

from .field import (
    FieldParams,
    InvalidConfig,
    OutOfBounds,
    Point,
    SampleField,
    SeedRejected,
    build_field,
    run_model,
)
from .random_source import NumpyRandomSource, RandomSource
from . import analysis, utils

__all__ = [
    # Sampler
    "SampleField",
    "Point",
    # Configuration
    "FieldParams",
    "build_field",
    "run_model",
    # Errors
    "InvalidConfig",
    "OutOfBounds",
    "SeedRejected",
    # Randomness
    "RandomSource",
    "NumpyRandomSource",
    # Utilities
    "analysis",
    "utils",
]
