import math

import pytest

from wobj.keyframes import (
    identity_scale_track,
    reduce_animation,
    reduce_quat_keys,
    reduce_vector_keys,
)
from wobj.scene import NodeChannel, QuatKey, SceneAnimation, VectorKey


def _x_track(*xs):
    return [VectorKey(float(t), (float(x), 0.0, 0.0)) for t, x in enumerate(xs)]


def _z_rotation(t, degrees):
    half = math.radians(degrees) / 2
    return QuatKey(float(t), (math.cos(half), 0.0, 0.0, math.sin(half)))


def test_two_identical_keys_collapse_to_the_first():
    keys = [VectorKey(0.0, (1.0, 2.0, 3.0)), VectorKey(1.0, (1.0, 2.0, 3.0))]
    assert reduce_vector_keys(keys) == [keys[0]]


def test_single_and_empty_tracks():
    key = VectorKey(0.0, (1.0, 1.0, 1.0))
    assert reduce_vector_keys([key]) == [key]
    assert reduce_vector_keys([]) == []


def test_linear_run_keeps_only_its_ends():
    keys = _x_track(0, 1, 2, 3)
    assert reduce_vector_keys(keys) == [keys[0], keys[3]]


def test_corners_are_kept():
    keys = _x_track(0, 1, 2, 3, 3, 3, 3)
    assert reduce_vector_keys(keys) == [keys[0], keys[3]]

    zigzag = _x_track(0, 1, 0)
    assert reduce_vector_keys(zigzag) == zigzag


def test_prediction_uses_last_kept_key_and_key_times():
    # uneven spacing: x = 2t on t = 0, 1, 3
    keys = [VectorKey(0.0, (0.0, 0.0, 0.0)), VectorKey(1.0, (2.0, 0.0, 0.0)),
            VectorKey(3.0, (6.0, 0.0, 0.0)), VectorKey(4.0, (6.0, 0.0, 0.0))]
    assert reduce_vector_keys(keys) == [keys[0], keys[2]]


def test_differences_above_tolerance_are_kept():
    keys = [VectorKey(0.0, (0.0, 0.0, 0.0)), VectorKey(1.0, (0.0, 0.0, 2e-5)), VectorKey(2.0, (0.0, 0.0, 0.0))]
    assert len(reduce_vector_keys(keys)) == 3
    close = [VectorKey(0.0, (0.0, 0.0, 0.0)), VectorKey(1.0, (0.0, 0.0, 5e-6)), VectorKey(2.0, (0.0, 0.0, 0.0))]
    assert reduce_vector_keys(close) == [close[0]]


@pytest.mark.parametrize("xs", [
    (0, 1, 2, 3, 3, 3, 3),
    (0, 1, 0, 1, 0),
    (5, 5, 5, 7, 9, 11, 4),
])
def test_reduction_is_idempotent(xs):
    once = reduce_vector_keys(_x_track(*xs))
    assert reduce_vector_keys(once) == once


def test_constant_angular_velocity_rotation_is_elided():
    keys = [_z_rotation(t, 30 * t) for t in range(4)]
    assert reduce_quat_keys(keys) == [keys[0], keys[3]]


def test_rotation_change_of_speed_is_kept():
    keys = [_z_rotation(0, 0), _z_rotation(1, 10), _z_rotation(2, 90)]
    assert reduce_quat_keys(keys) == keys


def test_identity_scale_track():
    assert identity_scale_track(24.0) == [VectorKey(0.0, (1.0, 1.0, 1.0)), VectorKey(24.0, (1.0, 1.0, 1.0))]


def _walk_animation():
    return SceneAnimation("walk", 30.0, [
        NodeChannel("Hips", position_keys=_x_track(0, 1, 2), rotation_keys=[_z_rotation(0, 0)],
                    scaling_keys=[VectorKey(0.0, (2.0, 2.0, 2.0))]),
        NodeChannel("Pruned", position_keys=_x_track(0, 5)),
        NodeChannel("Spine", scaling_keys=_x_track(1, 1)),
    ])


def test_channels_for_unknown_nodes_are_dropped():
    reduced = reduce_animation(_walk_animation(), {"root": 0, "Hips": 1, "Spine": 2})
    assert reduced.name == "walk"
    assert reduced.duration == 30.0
    assert [ch.node_index for ch in reduced.channels] == [1, 2]
    hips = reduced.channels[0]
    assert [k.time for k in hips.position_keys] == [0.0, 2.0]
    assert hips.scaling_keys == [VectorKey(0.0, (2.0, 2.0, 2.0))]


def test_no_scale_replaces_every_scale_track():
    reduced = reduce_animation(_walk_animation(), {"Hips": 0, "Spine": 1, "Pruned": 2}, no_scale=True)
    assert len(reduced.channels) == 3
    for ch in reduced.channels:
        assert ch.scaling_keys == identity_scale_track(30.0)
