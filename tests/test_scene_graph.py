from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pygltflib
import pytest
from scipy.spatial.transform import Rotation

from conftest import REQUIRED_RIG, read_gltf_json
from vrm_bridge.converter.container import MalformedContainer, assemble_container
from vrm_bridge.converter.scene_graph import (
    GltfSceneAdapter,
    SceneGraph,
    SceneNode,
    compose_matrix,
    decompose_matrix,
)


def test_load_flags_skin_joints_as_bones(adapter: GltfSceneAdapter, avatar_glb):
    scene = adapter.load(avatar_glb())

    nodes = list(scene.traverse())
    bones = [node.name for node in nodes if node.is_bone]
    assert bones == REQUIRED_RIG

    armature = scene.root.children[0]
    assert armature.name == "Armature"
    assert not armature.is_bone

    body = next(node for node in nodes if node.name == "Body")
    assert body.is_skinned_mesh
    assert body.skin.inverse_bind_matrices.shape == (len(REQUIRED_RIG), 4, 4)
    low, high = body.bounds
    assert low[1] == pytest.approx(0.0)
    assert high[1] == pytest.approx(1.8)


def test_traversal_visits_every_node_once(adapter: GltfSceneAdapter, avatar_glb):
    scene = adapter.load(avatar_glb())

    nodes = list(scene.traverse())

    assert len(nodes) == len({id(node) for node in nodes})
    # armature + bones + body
    assert len(nodes) == len(REQUIRED_RIG) + 2


def test_matrix_nodes_are_decomposed_and_exported_as_matrices(adapter: GltfSceneAdapter, avatar_glb):
    scene = adapter.load(avatar_glb(matrix_bones=True))

    hips = next(node for node in scene.traverse() if node.name == "Hips")
    assert hips.has_matrix
    np.testing.assert_allclose(hips.translation, [0.0, 1.0, 0.0])

    exported = read_gltf_json(adapter.export(scene))
    exported_hips = next(node for node in exported["nodes"] if node["name"] == "Hips")
    assert exported_hips.get("matrix") is not None
    assert exported_hips.get("translation") is None


def test_export_writes_recomputed_inverse_bind_matrices(adapter: GltfSceneAdapter, avatar_glb):
    scene = adapter.load(avatar_glb())
    hips = next(node for node in scene.traverse() if node.name == "Hips")
    hips.translation = np.array([0.0, 2.0, 0.0])
    skin = next(node.skin for node in scene.traverse() if node.skin is not None)
    skin.calculate_inverses()

    reloaded = adapter.load(adapter.export(scene))

    body = next(node for node in reloaded.traverse() if node.name == "Body")
    hips_ibm = body.skin.inverse_bind_matrices[0]
    np.testing.assert_allclose(hips_ibm[:3, 3], [0.0, -2.0, 0.0], atol=1e-6)


def test_export_appends_inverse_bind_matrices_when_missing(adapter: GltfSceneAdapter, avatar_glb):
    scene = adapter.load(avatar_glb(with_inverse_bind_matrices=False))
    skin = next(node.skin for node in scene.traverse() if node.skin is not None)
    assert skin.inverse_bind_matrices is None
    skin.calculate_inverses()

    reloaded = adapter.load(adapter.export(scene))

    body = next(node for node in reloaded.traverse() if node.name == "Body")
    assert body.skin.inverse_bind_matrices.shape == (len(REQUIRED_RIG), 4, 4)
    np.testing.assert_allclose(body.skin.inverse_bind_matrices[0][:3, 3], [0.0, -1.0, 0.0], atol=1e-6)


def test_root_scale_is_folded_into_top_level_nodes(adapter: GltfSceneAdapter, avatar_glb):
    scene = adapter.load(avatar_glb(armature_name=None))
    scene.root.scale = np.full(3, 0.5)

    exported = read_gltf_json(adapter.export(scene))

    hips = next(node for node in exported["nodes"] if node["name"] == "Hips")
    np.testing.assert_allclose(hips["translation"], [0.0, 0.5, 0.0], atol=1e-6)
    np.testing.assert_allclose(hips["scale"], [0.5, 0.5, 0.5], atol=1e-6)


def test_export_rejects_foreign_scene(adapter: GltfSceneAdapter):
    with pytest.raises(ValueError):
        adapter.export(SceneGraph())


def test_compose_decompose_round_trip():
    rotation = Rotation.from_euler("xyz", [10, 20, 30], degrees=True).as_quat()
    matrix = compose_matrix([1.0, 2.0, 3.0], rotation, [2.0, 2.0, 2.0])

    translation, decomposed_rotation, scale = decompose_matrix(matrix)

    np.testing.assert_allclose(translation, [1.0, 2.0, 3.0])
    np.testing.assert_allclose(scale, [2.0, 2.0, 2.0])
    np.testing.assert_allclose(compose_matrix(translation, decomposed_rotation, scale), matrix, atol=1e-9)


def test_world_matrix_accumulates_parents():
    root = SceneNode(name="root", scale=[2.0, 2.0, 2.0])
    child = root.add(SceneNode(name="child", translation=[0.0, 1.0, 0.0]))

    np.testing.assert_allclose(child.world_matrix()[:3, 3], [0.0, 2.0, 0.0])


def _hierarchy_glb(nodes: list[dict]) -> bytes:
    return assemble_container(
        json.dumps({"asset": {"version": "2.0"}, "scene": 0, "scenes": [{"nodes": [0]}], "nodes": nodes})
    )


@pytest.mark.parametrize(
    "nodes",
    [
        [{"name": "A", "children": [1]}, {"name": "B", "children": [0]}],
        [{"name": "A", "children": [0]}],
        [{"name": "A", "children": [2]}, {"name": "B", "children": [2]}, {"name": "C"}],
        [{"name": "A", "children": [7]}],
    ],
    ids=["cycle", "self-parent", "two-parents", "missing-child"],
)
def test_load_rejects_broken_hierarchy(adapter: GltfSceneAdapter, nodes: list[dict]):
    with pytest.raises(MalformedContainer):
        adapter.load(_hierarchy_glb(nodes))


@pytest.fixture
def in_memory_load_fails(monkeypatch: pytest.MonkeyPatch) -> list[tuple[Path, bool]]:
    """Force the temporary file load path and record the files it reads."""
    seen: list[tuple[Path, bool]] = []
    original_load = pygltflib.GLTF2.load

    def failing_load_from_bytes(*_args, **_kwargs):
        raise ValueError("in-memory parsing unavailable")

    def recording_load(*args, **kwargs):
        path = Path(args[-1])
        seen.append((path, path.exists()))
        return original_load(str(path), **kwargs)

    monkeypatch.setattr(pygltflib.GLTF2, "load_from_bytes", failing_load_from_bytes)
    monkeypatch.setattr(pygltflib.GLTF2, "load", recording_load)
    return seen


def test_load_falls_back_to_temporary_file(tmp_path: Path, avatar_glb, in_memory_load_fails):
    scene = GltfSceneAdapter(tmp_path).load(avatar_glb())

    assert [node.name for node in scene.traverse() if node.is_bone] == REQUIRED_RIG
    assert len(in_memory_load_fails) == 1
    temp_path, existed = in_memory_load_fails[0]
    assert existed
    assert temp_path.parent == tmp_path
    assert list(tmp_path.iterdir()) == []


def test_temporary_file_is_removed_when_load_fails(tmp_path: Path, in_memory_load_fails):
    with pytest.raises(MalformedContainer):
        GltfSceneAdapter(tmp_path).load(assemble_container("this is not json"))

    assert len(in_memory_load_fails) == 1
    assert list(tmp_path.iterdir()) == []
