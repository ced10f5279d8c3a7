from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Optional, Sequence

import numpy as np
import pygltflib
import pytest

from vrm_bridge.config import AppSettings
from vrm_bridge.converter.container import assemble_container, parse_container
from vrm_bridge.converter.scene_graph import GltfSceneAdapter, SceneGraph, matrix_to_gltf

REQUIRED_RIG = [
    "Hips",
    "Spine",
    "Spine1",
    "Head",
    "LeftArm",
    "LeftForeArm",
    "LeftHand",
    "RightArm",
    "RightForeArm",
    "RightHand",
    "LeftUpLeg",
    "LeftLeg",
    "RightUpLeg",
    "RightLeg",
    "Neck",
]


def build_avatar_glb(
    bone_names: Sequence[str] = tuple(REQUIRED_RIG),
    height: Optional[float] = 1.8,
    hips_translation: Sequence[float] = (0.0, 1.0, 0.0),
    armature_name: Optional[str] = "Armature",
    armature_scale: float = 1.0,
    with_skin: bool = True,
    with_inverse_bind_matrices: bool = True,
    matrix_bones: bool = False,
) -> bytes:
    """
    Build a small rigged GLB.

    The first bone is the root of the skeleton and every other bone hangs off
    it. A box mesh spanning ``height`` on Y is skinned to the bones unless
    ``height`` is None. With ``armature_name`` set, bones and mesh sit under
    an armature node; otherwise they are scene roots.
    """
    nodes: list[pygltflib.Node] = []
    blob = bytearray()
    accessors: list[pygltflib.Accessor] = []
    buffer_views: list[pygltflib.BufferView] = []
    scene_roots: list[int] = []

    armature_index = None
    if armature_name is not None:
        armature_index = 0
        scale = None if armature_scale == 1.0 else [armature_scale] * 3
        nodes.append(pygltflib.Node(name=armature_name, scale=scale))
        scene_roots.append(armature_index)

    bone_indices: list[int] = []
    for position, name in enumerate(bone_names):
        translation = list(hips_translation) if position == 0 else [0.0, 0.1 * position, 0.0]
        if matrix_bones:
            matrix = np.eye(4)
            matrix[:3, 3] = translation
            nodes.append(pygltflib.Node(name=name, matrix=matrix_to_gltf(matrix)))
        else:
            nodes.append(pygltflib.Node(name=name, translation=translation))
        bone_indices.append(len(nodes) - 1)

    root_bone = bone_indices[0]
    nodes[root_bone].children = bone_indices[1:]
    if armature_index is not None:
        nodes[armature_index].children = [root_bone]
    else:
        scene_roots.append(root_bone)

    meshes: list[pygltflib.Mesh] = []
    if height is not None:
        positions = np.array(
            [[x, y, z] for x in (-0.25, 0.25) for y in (0.0, height) for z in (-0.1, 0.1)],
            dtype="<f4",
        )
        buffer_views.append(pygltflib.BufferView(buffer=0, byteOffset=len(blob), byteLength=positions.nbytes))
        blob += positions.tobytes()
        accessors.append(
            pygltflib.Accessor(
                bufferView=len(buffer_views) - 1,
                componentType=pygltflib.FLOAT,
                count=len(positions),
                type=pygltflib.VEC3,
                min=[float(v) for v in positions.min(axis=0)],
                max=[float(v) for v in positions.max(axis=0)],
            )
        )
        meshes.append(
            pygltflib.Mesh(
                name="Body",
                primitives=[
                    pygltflib.Primitive(
                        attributes=pygltflib.Attributes(POSITION=len(accessors) - 1),
                    )
                ],
            )
        )

    skins: list[pygltflib.Skin] = []
    if with_skin:
        inverse_bind = None
        if with_inverse_bind_matrices:
            matrices = np.tile(np.eye(4, dtype="<f4"), (len(bone_indices), 1, 1))
            buffer_views.append(pygltflib.BufferView(buffer=0, byteOffset=len(blob), byteLength=matrices.nbytes))
            blob += matrices.tobytes()
            accessors.append(
                pygltflib.Accessor(
                    bufferView=len(buffer_views) - 1,
                    componentType=pygltflib.FLOAT,
                    count=len(bone_indices),
                    type=pygltflib.MAT4,
                )
            )
            inverse_bind = len(accessors) - 1
        skins.append(pygltflib.Skin(joints=bone_indices, inverseBindMatrices=inverse_bind))

    if meshes:
        body = pygltflib.Node(name="Body", mesh=0, skin=0 if skins else None)
        nodes.append(body)
        if armature_index is not None:
            nodes[armature_index].children.append(len(nodes) - 1)
        else:
            scene_roots.append(len(nodes) - 1)

    gltf = pygltflib.GLTF2(
        scene=0,
        scenes=[pygltflib.Scene(nodes=scene_roots)],
        nodes=nodes,
        meshes=meshes,
        skins=skins,
        accessors=accessors,
        bufferViews=buffer_views,
        buffers=[pygltflib.Buffer(byteLength=len(blob))] if blob else [],
    )
    if blob:
        gltf.set_binary_blob(bytes(blob))
    return b"".join(gltf.save_to_bytes())


def read_gltf_json(data: bytes) -> dict:
    json_text, _ = parse_container(data)
    return json.loads(json_text)


class ReorderingAdapter(GltfSceneAdapter):
    """Adapter whose exporter emits nodes in reverse order."""

    def export(self, scene: SceneGraph) -> bytes:
        json_text, bin_chunk = parse_container(super().export(scene))
        gltf_json = json.loads(json_text)

        nodes = gltf_json.get("nodes", [])
        count = len(nodes)

        def remap(index: int) -> int:
            return count - 1 - index

        for node in nodes:
            if "children" in node:
                node["children"] = [remap(child) for child in node["children"]]
        for gltf_scene in gltf_json.get("scenes", []):
            gltf_scene["nodes"] = [remap(index) for index in gltf_scene.get("nodes", [])]
        for skin in gltf_json.get("skins", []):
            skin["joints"] = [remap(index) for index in skin["joints"]]
            if "skeleton" in skin:
                skin["skeleton"] = remap(skin["skeleton"])
        gltf_json["nodes"] = list(reversed(nodes))

        return assemble_container(json.dumps(gltf_json), bin_chunk)


@pytest.fixture
def avatar_glb() -> Callable[..., bytes]:
    return build_avatar_glb


@pytest.fixture
def adapter() -> GltfSceneAdapter:
    return GltfSceneAdapter()


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    return AppSettings(work_dir=work_dir, avatars_dir=tmp_path / "avatars")
