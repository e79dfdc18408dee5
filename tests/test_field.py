"""
Unit tests for the incremental Poisson-disk sample field.
"""

import itertools
import math

import numpy as np
import pytest

from pds_sim import (
    InvalidConfig,
    NumpyRandomSource,
    OutOfBounds,
    Point,
    SampleField,
    SeedRejected,
    analysis,
)


class ScriptedSource:
    """Deterministic source: fixed index, cycling directions, fixed radius."""

    def __init__(self, directions, radius_fraction=0.0, index=0):
        self.directions = itertools.cycle(directions)
        self.radius_fraction = radius_fraction
        self.index = index
        self.index_calls = 0

    def uniform_index(self, n):
        self.index_calls += 1
        return min(self.index, n - 1)

    def uniform_float(self, lo, hi):
        return lo + self.radius_fraction * (hi - lo)

    def random_unit_vector_2d(self):
        return next(self.directions)


class Counter:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


def _assert_min_distance(points, min_radius):
    nn = analysis.nearest_neighbour_distances(points)
    assert nn.min() >= min_radius, f"closest pair {nn.min()} < {min_radius}"


def _grow_until_done(sample_field, counter, batch=1000, max_calls=10_000):
    for _ in range(max_calls):
        if counter.calls:
            return
        sample_field.advance(batch)
    pytest.fail("completion signal never fired")


# ---------------------------------------------------------------- construction


@pytest.mark.parametrize(
    "width, height, min_radius, max_attempts",
    [
        (0, 100, 10, 30),
        (100, 0, 10, 30),
        (-1, 100, 10, 30),
        (100, 100, 0, 30),
        (100, 100, -2.0, 30),
        (100, 100, 10, 0),
        (100, 100, 10, -3),
        (100, 100, 10, 2.5),
        (math.nan, 100, 10, 30),
        (100, math.inf, 10, 30),
    ],
)
def test_construction_rejects_bad_config(width, height, min_radius, max_attempts):
    with pytest.raises(InvalidConfig):
        SampleField(width, height, min_radius, max_attempts)


def test_invalid_config_is_value_error():
    with pytest.raises(ValueError):
        SampleField(0, 100, 10)


def test_domain_smaller_than_one_cell():
    # cell size 10 / sqrt(2) ~ 7.07 > 5
    with pytest.raises(InvalidConfig):
        SampleField(5, 100, 10)


def test_grid_dimensions():
    sample_field = SampleField(100, 50, 10, 30)
    assert sample_field.cell_size == pytest.approx(10 / math.sqrt(2))
    assert sample_field.cols == 14
    assert sample_field.rows == 7
    assert sample_field.occupancy_grid().shape == (7, 14)
    assert not sample_field.occupancy_grid().any()
    assert not sample_field.started
    assert sample_field.positions().shape == (0, 2)
    assert sample_field.active_positions().shape == (0, 2)


# ---------------------------------------------------------------- seeding


@pytest.mark.parametrize("x, y", [(-5, 10), (100, 10), (10, 100), (10, -0.001), (math.nan, 5)])
def test_add_seed_out_of_bounds(x, y):
    sample_field = SampleField(100, 100, 10, 30)
    with pytest.raises(OutOfBounds):
        sample_field.add_seed(x, y)
    assert sample_field.snapshot_all() == []
    assert sample_field.snapshot_active() == []
    assert not sample_field.started


def test_add_seed_places_point_in_grid_and_frontier():
    sample_field = SampleField(100, 100, 10, 30)
    point = sample_field.add_seed(50, 50)

    assert point == Point(50.0, 50.0)
    assert isinstance(point.x, float)
    assert sample_field.snapshot_all() == [point]
    assert sample_field.snapshot_active() == [point]
    assert sample_field.started
    assert sample_field.occupancy_grid()[7, 7]
    # seeds are not newly accepted samples
    assert sample_field.drain_dirty() == []


def test_seed_in_last_partial_cell_is_kept():
    sample_field = SampleField(100, 100, 10, 30)
    sample_field.add_seed(99.5, 99.5)
    assert sample_field.occupancy_grid()[13, 13]
    assert sample_field.snapshot_all() == [Point(99.5, 99.5)]


def test_seed_in_occupied_cell_overwrites_grid_entry():
    sample_field = SampleField(100, 100, 10, 30)
    sample_field.add_seed(50, 50)
    sample_field.add_seed(51, 51)

    assert sample_field.num_points == 1
    assert sample_field.snapshot_all() == [Point(51.0, 51.0)]
    assert set(sample_field.snapshot_active()) == {Point(50.0, 50.0), Point(51.0, 51.0)}


def test_strict_seeds_reject_close_seed():
    sample_field = SampleField(100, 100, 10, 30, strict_seeds=True)
    sample_field.add_seed(50, 50)

    with pytest.raises(SeedRejected):
        sample_field.add_seed(55, 50)
    assert sample_field.num_active == 1
    assert sample_field.snapshot_all() == [Point(50.0, 50.0)]

    sample_field.add_seed(60, 50)
    assert sample_field.num_points == 2


@pytest.mark.parametrize(
    "first, second",
    [
        ((50, 50), (58, 50)),  # adjacent columns
        ((56, 50), (64, 50)),  # columns 7 and 9
        ((56, 56), (60, 64)),  # one column and two rows apart
    ],
)
def test_strict_seeds_check_two_cells_out(first, second):
    sample_field = SampleField(100, 100, 10, 30, strict_seeds=True)
    sample_field.add_seed(*first)

    with pytest.raises(SeedRejected):
        sample_field.add_seed(*second)
    assert sample_field.snapshot_all() == [Point(*map(float, first))]


# ---------------------------------------------------------------- advancing


def test_single_acceptance_then_retirement():
    source = ScriptedSource([(1.0, 0.0)])
    sample_field = SampleField(100, 100, 10, 5, random_source=source)
    sample_field.add_seed(50, 50)

    # first attempt lands exactly r away, the remaining four hit the same cell
    assert sample_field.advance(1) == [Point(60.0, 50.0)]
    assert sample_field.num_active == 2

    # the seed now only proposes the occupied cell and is retired
    assert sample_field.advance(1) == []
    assert sample_field.snapshot_active() == [Point(60.0, 50.0)]
    assert set(sample_field.snapshot_all()) == {Point(50.0, 50.0), Point(60.0, 50.0)}


def test_multiple_acceptances_in_one_round():
    source = ScriptedSource([(1.0, 0.0), (-1.0, 0.0), (0.0, 1.0), (0.0, -1.0)])
    sample_field = SampleField(100, 100, 10, 4, random_source=source)
    sample_field.add_seed(50, 50)

    accepted = sample_field.advance(1)
    assert accepted == [
        Point(60.0, 50.0),
        Point(40.0, 50.0),
        Point(50.0, 60.0),
        Point(50.0, 40.0),
    ]
    # base produced samples so it stays on the frontier
    assert sample_field.num_active == 5
    assert Point(50.0, 50.0) in sample_field.snapshot_active()


def test_candidate_closer_than_radius_is_rejected():
    # annulus radius 10 lands at (60, 50), within 10 of the second seed
    source = ScriptedSource([(1.0, 0.0)])
    sample_field = SampleField(100, 100, 10, 3, random_source=source)
    sample_field.add_seed(50, 50)
    sample_field.add_seed(68, 52)

    assert sample_field.advance(1) == []
    assert sample_field.num_points == 2


@pytest.mark.parametrize(
    "seeds, direction, candidate",
    [
        ([(7.0, 1.0), (24.2, 1.0)], (-1.0, 0.0), (14.2, 1.0)),
        ([(1.0, 7.0), (1.0, 24.2)], (0.0, -1.0), (1.0, 14.2)),
    ],
)
def test_candidate_two_cells_from_sample_is_rejected(seeds, direction, candidate):
    # cells are r/sqrt(2) wide: the candidate lands two cells from the first
    # seed but only 7.2 away from it
    source = ScriptedSource([direction], index=1)
    sample_field = SampleField(100, 100, 10, 1, random_source=source)
    for x, y in seeds:
        sample_field.add_seed(x, y)

    cx, cy = candidate
    col, row = int(cx // sample_field.cell_size), int(cy // sample_field.cell_size)
    assert not sample_field.occupancy_grid()[row, col]

    assert sample_field.advance(1) == []
    assert sample_field.num_points == 2
    assert sample_field.snapshot_active() == [Point(*seeds[0])]


def test_candidate_off_the_left_edge_is_rejected():
    # x = -0.5 must map to column -1, not be truncated to column 0
    source = ScriptedSource([(-1.0, 0.0)])
    sample_field = SampleField(100, 100, 10, 3, random_source=source)
    sample_field.add_seed(9.5, 50)

    assert sample_field.advance(1) == []
    assert sample_field.num_active == 0


def test_candidate_in_first_column_is_accepted():
    source = ScriptedSource([(-1.0, 0.0)])
    sample_field = SampleField(100, 100, 10, 3, random_source=source)
    sample_field.add_seed(11, 50)

    assert sample_field.advance(1) == [Point(1.0, 50.0)]
    assert sample_field.occupancy_grid()[7, 0]


def test_negative_iterations_rejected():
    sample_field = SampleField(100, 100, 10, 30)
    with pytest.raises(ValueError):
        sample_field.advance(-1)


def test_zero_iterations_is_a_no_op():
    sample_field = SampleField(100, 100, 10, 30, random_source=NumpyRandomSource(seed=3))
    sample_field.add_seed(50, 50)
    assert sample_field.advance(0) == []
    assert sample_field.num_active == 1


# ---------------------------------------------------------------- completion


def test_unseeded_field_never_signals():
    counter = Counter()
    sample_field = SampleField(100, 100, 10, 30, on_complete=counter)
    for _ in range(3):
        assert sample_field.advance(10) == []
    assert counter.calls == 0
    assert not sample_field.is_complete


def test_completion_fires_once_per_exhaustion():
    counter = Counter()
    source = ScriptedSource([(-1.0, 0.0)])
    sample_field = SampleField(100, 100, 10, 3, random_source=source, on_complete=counter)
    sample_field.add_seed(1, 1)

    # the only seed retires in the first round; the rest of the call is skipped
    assert sample_field.advance(1000) == []
    assert source.index_calls == 1
    assert sample_field.is_complete
    assert counter.calls == 0

    assert sample_field.advance(10) == []
    assert counter.calls == 1
    assert sample_field.advance(10) == []
    assert sample_field.advance(10) == []
    assert counter.calls == 1

    # a new seed re-opens the frontier and allows another signal
    sample_field.add_seed(1, 50)
    assert not sample_field.is_complete
    sample_field.advance(1)
    sample_field.advance(1)
    assert counter.calls == 2


def test_fill_scenario_keeps_minimum_distance():
    counter = Counter()
    sample_field = SampleField(
        100, 100, 10, 30,
        random_source=NumpyRandomSource(seed=7),
        on_complete=counter,
    )
    seed = sample_field.add_seed(50, 50)
    _grow_until_done(sample_field, counter)

    points = sample_field.snapshot_all()
    assert seed in points
    assert len(points) > 20
    _assert_min_distance(points, 10)
    assert sample_field.snapshot_active() == []

    for _ in range(3):
        assert sample_field.advance(1000) == []
    assert counter.calls == 1


def test_samples_stay_inside_domain():
    sample_field = SampleField(80, 45, 3, 30, random_source=NumpyRandomSource(seed=11))
    sample_field.add_seed(40, 20)
    sample_field.run(batch_size=200)

    pos = sample_field.positions()
    assert np.all(pos >= 0.0)
    assert np.all(pos[:, 0] < 80)
    assert np.all(pos[:, 1] < 45)
    _assert_min_distance(pos, 3)


def test_two_seeds_exactly_radius_apart_persist():
    counter = Counter()
    sample_field = SampleField(
        100, 100, 10, 30,
        random_source=NumpyRandomSource(seed=5),
        on_complete=counter,
    )
    a = sample_field.add_seed(50, 50)
    b = sample_field.add_seed(60, 50)
    _grow_until_done(sample_field, counter, batch=7)

    points = sample_field.snapshot_all()
    assert a in points
    assert b in points
    _assert_min_distance(points, 10)


# ---------------------------------------------------------------- consistency


def test_frontier_is_subset_of_grid_and_grid_only_grows():
    sample_field = SampleField(100, 100, 5, 30, random_source=NumpyRandomSource(seed=2))
    sample_field.add_seed(20, 20)
    sample_field.add_seed(80, 70)

    previous_mask = sample_field.occupancy_grid().copy()
    previous_points = set(sample_field.snapshot_all())
    while not sample_field.is_complete:
        sample_field.advance(5)

        points = set(sample_field.snapshot_all())
        assert set(sample_field.snapshot_active()) <= points
        assert previous_points <= points

        mask = sample_field.occupancy_grid()
        assert not np.any(previous_mask & ~mask)
        assert mask.sum() == sample_field.num_points == len(points)

        previous_mask = mask.copy()
        previous_points = points


def test_drain_collects_across_advance_calls():
    sample_field = SampleField(100, 100, 8, 30, random_source=NumpyRandomSource(seed=4))
    sample_field.add_seed(50, 50)

    returned = []
    for _ in range(4):
        returned.extend(sample_field.advance(3))

    assert sample_field.drain_dirty() == returned
    assert sample_field.drain_dirty() == []

    fresh = sample_field.advance(3)
    assert sample_field.drain_dirty() == fresh


def test_storage_grows_past_initial_capacity():
    sample_field = SampleField(100, 100, 2, 30, random_source=NumpyRandomSource(seed=9))
    sample_field.add_seed(50, 50)
    accepted = sample_field.run(batch_size=500)

    assert sample_field.num_points > 64
    assert accepted == sample_field.num_points - 1
    assert sample_field.positions().shape == (sample_field.num_points, 2)
    _assert_min_distance(sample_field.positions(), 2)


# ---------------------------------------------------------------- run


def test_run_signals_completion_once():
    counter = Counter()
    sample_field = SampleField(
        60, 60, 6, 30,
        random_source=NumpyRandomSource(seed=1),
        on_complete=counter,
    )
    sample_field.add_seed(30, 30)

    total = sample_field.run(batch_size=50)
    assert sample_field.is_complete
    assert counter.calls == 1
    assert total == sample_field.num_points - 1

    assert sample_field.run() == 0
    assert sample_field.advance(10) == []
    assert counter.calls == 1


def test_run_respects_max_batches():
    source = ScriptedSource([(1.0, 0.0)])
    sample_field = SampleField(100, 100, 10, 5, random_source=source)
    sample_field.add_seed(10, 50)

    sample_field.run(batch_size=1, max_batches=2)
    assert source.index_calls == 2


def test_run_leaves_dirty_buffer_empty():
    sample_field = SampleField(100, 100, 5, 30, random_source=NumpyRandomSource(seed=8))
    sample_field.add_seed(50, 50)

    accepted = sample_field.run(batch_size=20)
    assert accepted > 0
    assert sample_field.drain_dirty() == []
    _assert_min_distance(sample_field.positions(), 5)


def test_run_requires_seed():
    sample_field = SampleField(100, 100, 10, 30)
    with pytest.raises(RuntimeError):
        sample_field.run()
