import pytest

from wobj.scene import Scene, SceneNode

from scenes import idle_animation, translation, triangle


@pytest.fixture
def make_triangle():
    return triangle


@pytest.fixture
def static_scene():
    """A single unskinned triangle on the root node."""
    return Scene(root=SceneNode("root", meshes=[0]), meshes=[triangle()])


@pytest.fixture
def rigid_animated_scene():
    """root -> Arm (translated, rigid mesh), animated on Arm."""
    arm = SceneNode("Arm", transform=translation(0.0, 0.0, 2.0), meshes=[0])
    root = SceneNode("root", children=[arm])
    return Scene(root=root, meshes=[triangle("arm_mesh")], animations=[idle_animation("Arm")])
