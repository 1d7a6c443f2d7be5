"""
Node table for animated blobs.

Nodes are laid out so that the children of every node occupy a contiguous
block: the root sits in slot 0, and visiting a node reserves the next
len(children) slots for its children before descending into them.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from wobj.bones import auto_bone_name
from wobj.matrices import HANDEDNESS_CORRECTION

NO_BONE = -1


@dataclass
class FlatNode:
    name: str
    child_count: int
    child_start: int
    transform: np.ndarray
    bone_id: int = NO_BONE
    inverse_bind: Optional[np.ndarray] = None


def _bound_bone(bones, node):
    bone = bones.get(node.name)
    if bone is None and node.meshes:
        bone = bones.get(auto_bone_name(node.name))
    return bone


def flatten_hierarchy(root, bones=None, root_transform=HANDEDNESS_CORRECTION):
    """Flatten the node tree.

    Returns (nodes, node_map): the FlatNode list in slot order and a
    name -> slot mapping where the first node with a given name wins.
    Bones are only bound when a BoneIndexer is passed.
    """
    nodes = []
    node_map = {}
    next_free = [1]

    def visit(node, slot):
        child_start = next_free[0]
        next_free[0] += len(node.children)

        transform = node.transform
        if slot == 0:
            transform = root_transform @ transform
        entry = FlatNode(node.name, len(node.children), child_start, transform)
        if bones is not None:
            bone = _bound_bone(bones, node)
            if bone is not None:
                entry.bone_id = bone.id
                entry.inverse_bind = bone.inverse_bind

        if slot >= len(nodes):
            nodes.extend([None] * (slot + 1 - len(nodes)))
        nodes[slot] = entry
        node_map.setdefault(node.name, slot)

        for i, child in enumerate(node.children):
            visit(child, child_start + i)

    visit(root, 0)
    return nodes, node_map
