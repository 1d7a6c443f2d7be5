"""
Transform helpers shared by the geometry, bone and keyframe passes.

Matrices are 4x4 float64 numpy arrays, row-major, acting on column vectors.
"""

import numpy as np
from trimesh import transformations

# ============================================================
# Coordinate convention
# ============================================================

# Baked into the root of every conversion: y' = -z, z' = y.
HANDEDNESS_CORRECTION = np.array([
    [1.0, 0.0, 0.0, 0.0],
    [0.0, 0.0, -1.0, 0.0],
    [0.0, 1.0, 0.0, 0.0],
    [0.0, 0.0, 0.0, 1.0],
])


# ============================================================
# Matrix Math
# ============================================================

def mat4(values):
    """Build a 4x4 matrix from 16 row-major values or a nested sequence."""
    return np.asarray(values, dtype=np.float64).reshape(4, 4)


def _inverse(m):
    # singular input gives all NaN, as assimp's Inverse() does
    try:
        return np.linalg.inv(m)
    except np.linalg.LinAlgError:
        return np.full(np.shape(m), np.nan)


def mat4_inverse(m):
    """Invert a 4x4 matrix. A singular matrix yields all NaN."""
    return _inverse(np.asarray(m, dtype=np.float64))


def normal_matrix(m):
    """Inverse-transpose of the upper 3x3 of a world transform."""
    return _inverse(np.asarray(m, dtype=np.float64)[:3, :3]).T


def transform_points(m, points):
    """Apply a 4x4 transform to an (N, 3) array of positions."""
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    return points @ m[:3, :3].T + m[:3, 3]


def transform_normals(m, normals):
    """Re-orient (N, 3) normals into world space and re-normalize them."""
    normals = np.asarray(normals, dtype=np.float64).reshape(-1, 3) @ normal_matrix(m).T
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    # zero-length normals stay zero
    np.divide(normals, lengths, out=normals, where=lengths > 0)
    return normals


# ============================================================
# Interpolation
# ============================================================

def lerp(a, b, t):
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    return a + (b - a) * t


def slerp(q0, q1, t):
    """Shortest-path spherical interpolation of (w, x, y, z) quaternions."""
    return transformations.quaternion_slerp(
        np.asarray(q0, dtype=np.float64),
        np.asarray(q1, dtype=np.float64),
        t,
        shortestpath=True,
    )
