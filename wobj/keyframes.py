"""
Keyframe reduction.

A key is dropped when it can be rebuilt, within TOLERANCE per component, by
interpolating the last kept key and the next raw key at the key's time. The
first key of a track is always kept; the last one is dropped only when it
equals the last kept key.
"""

import logging
from dataclasses import dataclass, field
from typing import List

import numpy as np

from wobj.matrices import lerp, slerp
from wobj.scene import VectorKey

logger = logging.getLogger(__name__)

TOLERANCE = 1e-5


def _matches(a, b, tolerance):
    return bool(np.all(np.abs(np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)) < tolerance))


def reduce_keys(keys, interpolate, tolerance=TOLERANCE):
    """Return the keys that cannot be predicted from their neighbours."""
    keys = list(keys)
    if not keys:
        return []
    kept = [keys[0]]
    last = len(keys) - 1
    for i in range(1, len(keys)):
        key = keys[i]
        prev = kept[-1]
        if i < last:
            following = keys[i + 1]
            span = following.time - prev.time
            t = (key.time - prev.time) / span if span else 0.0
            if _matches(interpolate(prev.value, following.value, t), key.value, tolerance):
                continue
        elif _matches(prev.value, key.value, tolerance):
            continue
        kept.append(key)
    return kept


def reduce_vector_keys(keys, tolerance=TOLERANCE):
    return reduce_keys(keys, lerp, tolerance)


def reduce_quat_keys(keys, tolerance=TOLERANCE):
    return reduce_keys(keys, slerp, tolerance)


def identity_scale_track(duration):
    return [VectorKey(0.0, (1.0, 1.0, 1.0)), VectorKey(float(duration), (1.0, 1.0, 1.0))]


# ============================================================
# Animations
# ============================================================

@dataclass
class ReducedChannel:
    node_index: int
    position_keys: List[VectorKey]
    rotation_keys: list
    scaling_keys: List[VectorKey]


@dataclass
class ReducedAnimation:
    name: str
    duration: float
    channels: List[ReducedChannel] = field(default_factory=list)


def reduce_animation(animation, node_map, no_scale=False, tolerance=TOLERANCE):
    """Reduce every channel of an animation whose target is in node_map."""
    reduced = ReducedAnimation(animation.name, animation.duration)
    raw_count = kept_count = 0
    for channel in animation.channels:
        node_index = node_map.get(channel.node_name)
        if node_index is None:
            logger.debug("  Dropping channel for unknown node '%s'", channel.node_name)
            continue
        positions = reduce_vector_keys(channel.position_keys, tolerance)
        rotations = reduce_quat_keys(channel.rotation_keys, tolerance)
        if no_scale:
            scales = identity_scale_track(animation.duration)
        else:
            scales = reduce_vector_keys(channel.scaling_keys, tolerance)
        reduced.channels.append(ReducedChannel(node_index, positions, rotations, scales))

        raw_count += len(channel.position_keys) + len(channel.rotation_keys) + len(channel.scaling_keys)
        kept_count += len(positions) + len(rotations) + len(scales)

    logger.debug("Animation: %s, %d/%d channels, %d -> %d keys", animation.name,
                 len(reduced.channels), len(animation.channels), raw_count, kept_count)
    return reduced
