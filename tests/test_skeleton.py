from __future__ import annotations

import pytest

from conftest import REQUIRED_RIG
from vrm_bridge.converter.scene_graph import GltfSceneAdapter, SceneGraph, SceneNode
from vrm_bridge.converter.skeleton import NO_SKINNED_MESH_WARNING, NoSkeletonFound, extract_skeleton


def test_extracts_bones_and_skinned_mesh(adapter: GltfSceneAdapter, avatar_glb):
    skeleton = extract_skeleton(adapter.load(avatar_glb()))

    assert [bone.name for bone in skeleton.bones] == REQUIRED_RIG
    assert skeleton.skinned_mesh is not None
    assert skeleton.skinned_mesh.name == "Body"
    assert skeleton.warnings == []


def test_scene_without_bones_raises(adapter: GltfSceneAdapter, avatar_glb):
    scene = adapter.load(avatar_glb(with_skin=False))

    with pytest.raises(NoSkeletonFound):
        extract_skeleton(scene)


def test_bone_names_alone_do_not_make_bones():
    scene = SceneGraph()
    scene.root.add(SceneNode(name="Hips"))

    with pytest.raises(NoSkeletonFound):
        extract_skeleton(scene)


def test_missing_skinned_mesh_is_a_warning(adapter: GltfSceneAdapter, avatar_glb):
    skeleton = extract_skeleton(adapter.load(avatar_glb(height=None)))

    assert len(skeleton.bones) == len(REQUIRED_RIG)
    assert skeleton.skinned_mesh is None
    assert skeleton.warnings == [NO_SKINNED_MESH_WARNING]


def test_find_bone_returns_first_match():
    scene = SceneGraph()
    first = scene.root.add(SceneNode(name="Hips", is_bone=True))
    first.add(SceneNode(name="Hips", is_bone=True))

    skeleton = extract_skeleton(scene)

    assert skeleton.find_bone("Hips") is first
    assert skeleton.find_bone("Head") is None
