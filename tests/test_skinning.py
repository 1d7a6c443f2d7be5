import numpy as np
import pytest

from wobj.geometry import flatten_scene
from wobj.matrices import HANDEDNESS_CORRECTION
from wobj.scene import Scene, SceneBone, SceneMesh, SceneNode

from scenes import idle_animation, triangle


def _skinned_scene(bones, mesh=None):
    mesh = mesh or triangle("body", bones=bones)
    body = SceneNode("Body", meshes=[0])
    root = SceneNode("Scene", children=[SceneNode("Hips"), body])
    return Scene(root=root, meshes=[mesh], animations=[idle_animation("Hips")])


def test_weights_are_normalized_and_unweighted_vertices_use_auto_bone():
    bones = [
        SceneBone("hip", weights=[(0, 0.5), (1, 2.0)]),
        SceneBone("spine", weights=[(0, 1.5)]),
    ]
    ctx = flatten_scene(_skinned_scene(bones))
    vertices = ctx.vertex_buffer()

    assert ctx.bones.ids() == {"hip": 0, "spine": 1, "Body_auto": 2}
    assert vertices.format.floats_per_vertex == 16
    assert vertices.bone_indices.tolist() == [[0, 1, 0, 0], [0, 0, 0, 0], [2, 0, 0, 0]]
    assert np.allclose(vertices.bone_weights, [[0.25, 0.75, 0, 0], [1, 0, 0, 0], [1, 0, 0, 0]])


def test_weight_slots_sum_to_one():
    rng = np.random.default_rng(7)
    bones = [SceneBone(f"b{i}", weights=[(v, float(rng.uniform(0.1, 1.0))) for v in range(3)])
             for i in range(3)]
    weights = flatten_scene(_skinned_scene(bones)).vertex_buffer().bone_weights
    assert np.allclose(weights.sum(axis=1), 1.0, atol=1e-5)


def test_fifth_influence_is_dropped():
    bones = [SceneBone(f"b{i}", weights=[(0, 0.2)]) for i in range(5)]
    ctx = flatten_scene(_skinned_scene(bones))
    vertices = ctx.vertex_buffer()

    assert vertices.bone_indices[0].tolist() == [0, 1, 2, 3]
    assert np.allclose(vertices.bone_weights[0], [0.25] * 4)
    assert ctx.dropped_influences == 1
    # the dropped bone is still registered
    assert "b4" in ctx.bones


def test_repeated_bone_accumulates_into_one_slot():
    bones = [
        SceneBone("hip", weights=[(0, 0.3)]),
        SceneBone("spine", weights=[(0, 0.4)]),
        SceneBone("hip", weights=[(0, 0.3)]),
    ]
    vertices = flatten_scene(_skinned_scene(bones)).vertex_buffer()
    assert vertices.bone_indices[0].tolist() == [0, 1, 0, 0]
    assert np.allclose(vertices.bone_weights[0], [0.6, 0.4, 0, 0])


def test_skin_bone_inverse_bind_uses_node_world():
    offset = np.identity(4)
    offset[:3, 3] = (0.0, 1.0, 0.0)
    ctx = flatten_scene(_skinned_scene([SceneBone("hip", offset, [(0, 1.0)])]))
    assert np.allclose(ctx.bones["hip"].inverse_bind, offset @ np.linalg.inv(HANDEDNESS_CORRECTION))


def test_rigid_mesh_binds_every_vertex_to_auto_bone(rigid_animated_scene):
    ctx = flatten_scene(rigid_animated_scene)
    vertices = ctx.vertex_buffer()

    assert ctx.bones.ids() == {"Arm_auto": 0}
    assert vertices.bone_indices.tolist() == [[0, 0, 0, 0]] * 3
    assert vertices.bone_weights.tolist() == [[1, 0, 0, 0]] * 3
    world = HANDEDNESS_CORRECTION @ rigid_animated_scene.root.children[0].transform
    assert np.allclose(ctx.bones["Arm_auto"].inverse_bind, np.linalg.inv(world))


def test_auto_bone_is_only_registered_when_needed():
    bones = [SceneBone("hip", weights=[(0, 1.0), (1, 1.0), (2, 1.0)])]
    ctx = flatten_scene(_skinned_scene(bones))
    assert ctx.bones.ids() == {"hip": 0}


def test_bone_ids_are_deterministic():
    def build():
        bones = [SceneBone("spine", weights=[(1, 1.0)]), SceneBone("hip", weights=[(0, 1.0)])]
        return _skinned_scene(bones)

    first = flatten_scene(build())
    second = flatten_scene(build())
    assert first.bones.ids() == second.bones.ids() == {"spine": 0, "hip": 1, "Body_auto": 2}
    assert np.array_equal(first.vertex_buffer().bone_indices, second.vertex_buffer().bone_indices)


@pytest.mark.parametrize("animated", [True, False])
def test_skinning_only_runs_for_animated_scenes(animated):
    scene = _skinned_scene([SceneBone("hip", weights=[(0, 1.0)])])
    if not animated:
        scene.animations = []
    ctx = flatten_scene(scene)
    assert ctx.skinned is animated
    assert len(ctx.bones) == (2 if animated else 0)


def test_bones_are_shared_across_meshes():
    shared = np.identity(4)
    shared[:3, 3] = (3.0, 0.0, 0.0)
    a = triangle("a", bones=[SceneBone("hip", shared, [(0, 1.0)])])
    b = triangle("b", bones=[SceneBone("hip", np.identity(4), [(1, 1.0)])])
    root = SceneNode("root", children=[SceneNode("A", meshes=[0]), SceneNode("B", meshes=[1])])
    scene = Scene(root=root, meshes=[a, b], animations=[idle_animation("A")])

    ctx = flatten_scene(scene)
    ids = ctx.vertex_buffer().bone_indices[:, 0].tolist()
    assert ids == [0, 1, 1, 2, 0, 2]
    assert ctx.bones.ids() == {"hip": 0, "A_auto": 1, "B_auto": 2}
    assert np.allclose(ctx.bones["hip"].inverse_bind, shared @ np.linalg.inv(HANDEDNESS_CORRECTION))


def test_empty_skinned_mesh_registers_nothing_extra():
    mesh = SceneMesh("empty", bones=[SceneBone("hip")])
    ctx = flatten_scene(_skinned_scene([], mesh=mesh))
    assert len(ctx.bones) == 0
