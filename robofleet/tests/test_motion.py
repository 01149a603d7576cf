from math import ceil

from robofleet.sim.entities import Location, PathProgress, Route, Segment
from robofleet.sim.motion import advance_path, complete_segment, interpolate, ticks_to_traverse, valid_points


def _path(coords, distance_m):
    a = Location(lat=coords[0][1], lng=coords[0][0])
    b = Location(lat=coords[-1][1], lng=coords[-1][0])
    route = Route(coordinates=list(coords), distance_m=distance_m, duration_s=distance_m * 0.3)
    return PathProgress(journey=[Segment(origin=a, destination=b, route=route)])


def test_valid_points_drops_corrupt_geometry():
    raw = [(-97.74, 30.27), None, (0.0, 0.0), (0.05, -0.05), ("x", 30.0), (float("nan"), 30.0), [-97.73, 30.28]]
    assert valid_points(raw) == [(-97.74, 30.27), (-97.73, 30.28)]
    assert valid_points(None) == []


def test_ticks_to_traverse_at_delivery_speed():
    # 100 m at 12 km/h is 30 s, i.e. 150 ticks of 200 ms.
    assert abs(ticks_to_traverse(100.0, 12.0, 200) - 150.0) < 1e-9


def test_interpolate_multi_point_geometry():
    points = [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0)]
    assert interpolate(points, 0.0) == (0.0, 0.0)
    assert interpolate(points, 0.25) == (0.5, 0.0)
    assert interpolate(points, 0.75) == (1.0, 0.5)
    assert interpolate(points, 1.0) == (1.0, 1.0)


def test_advance_path_arrives_after_ceil_ticks():
    distance = 250.0
    path = _path([(-97.74, 30.27), (-97.738, 30.271)], distance)
    expected = ceil(distance / (12 / 3.6) / 0.2)

    ticks = 0
    while True:
        ticks += 1
        result = advance_path(path, 12.0, 200)
        if result.outcome == "arrived":
            break
        assert result.outcome == "moved"
    assert ticks == expected
    assert result.position == (-97.738, 30.271)


def test_distance_just_over_whole_ticks_needs_one_more_tick():
    # 375 ticks plus a sliver: accumulated progress gets within 1e-12 of 1.0 one tick early.
    distance = (375 + 1e-10) * (12 / 3.6) * 0.2
    path = _path([(-97.74, 30.27), (-97.738, 30.271)], distance)
    expected = ceil(distance / (12 / 3.6) / 0.2)
    assert expected == 376

    outcomes = [advance_path(path, 12.0, 200).outcome for _ in range(expected)]

    assert outcomes[:-1] == ["moved"] * (expected - 1)
    assert outcomes[-1] == "arrived"
    assert path.segment_ticks == expected


def test_complete_segment_resets_tick_count():
    path = _path([(-97.74, 30.27), (-97.738, 30.271)], 250.0)
    advance_path(path, 12.0, 200)
    assert path.segment_ticks == 1
    complete_segment(path)
    assert path.segment_ticks == 0
    assert path.progress == 0.0
    assert not path.servicing


def test_zero_distance_segment_completes_in_one_tick():
    path = _path([(-97.74, 30.27), (-97.74, 30.27)], 0.0)
    assert advance_path(path, 12.0, 200).outcome == "arrived"


def test_invalid_geometry_is_a_no_op():
    path = _path([(-97.74, 30.27), (0.0, 0.0)], 100.0)
    result = advance_path(path, 12.0, 200)
    assert result.outcome == "invalid"
    assert path.progress == 0.0


def test_zero_speed_stalls():
    path = _path([(-97.74, 30.27), (-97.73, 30.28)], 100.0)
    assert advance_path(path, 0.0, 200).outcome == "stalled"
    assert path.progress == 0.0


def test_servicing_counts_down_without_moving():
    path = _path([(-97.74, 30.27), (-97.73, 30.28)], 100.0)
    path.journey.append(path.journey[0])
    complete_segment(path, 500.0)
    assert path.segment_index == 1
    assert path.servicing

    outcomes = [advance_path(path, 12.0, 200).outcome for _ in range(3)]
    assert outcomes == ["servicing", "servicing", "servicing"]
    assert not path.servicing
    assert path.service_remaining_ms == 0.0
    assert path.progress == 0.0
