"""
Scene Graph Adapter

Thin, traversable node graph over a glTF document, plus the adapter that
loads GLB bytes into it and exports it back to GLB bytes.

The conversion pipeline only ever talks to the SceneGraphAdapter protocol, so
tests (and alternative glTF stacks) can substitute their own loader/exporter.
The default implementation is backed by pygltflib; transforms are kept as
numpy TRS components and quaternions are handled with scipy.
"""

import tempfile
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

import numpy as np
import pygltflib
from loguru import logger
from scipy.spatial.transform import Rotation

from vrm_bridge.converter.container import MalformedContainer

Bounds = Tuple[np.ndarray, np.ndarray]

_COMPONENT_DTYPES = {
    pygltflib.BYTE: np.int8,
    pygltflib.UNSIGNED_BYTE: np.uint8,
    pygltflib.SHORT: np.int16,
    pygltflib.UNSIGNED_SHORT: np.uint16,
    pygltflib.UNSIGNED_INT: np.uint32,
    pygltflib.FLOAT: np.float32,
}

_TYPE_WIDTHS = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}

# Errors pygltflib and the node graph raise on structurally broken documents
_DOCUMENT_ERRORS = (ValueError, KeyError, TypeError, IndexError, AttributeError)


# Transform helpers -------------------------------------------------------


def compose_matrix(
    translation: Sequence[float],
    rotation: Sequence[float],
    scale: Sequence[float],
) -> np.ndarray:
    """Build a 4x4 matrix from translation, xyzw quaternion and scale."""
    matrix = np.eye(4)
    matrix[:3, :3] = Rotation.from_quat(rotation).as_matrix() * np.asarray(scale, dtype=float)
    matrix[:3, 3] = translation
    return matrix


def decompose_matrix(matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Split a 4x4 affine matrix into translation, xyzw quaternion and scale.

    A negative determinant is carried by the X scale component.
    """
    matrix = np.asarray(matrix, dtype=float)
    translation = matrix[:3, 3].copy()
    basis = matrix[:3, :3]

    scale = np.linalg.norm(basis, axis=0)
    if np.linalg.det(basis) < 0:
        scale[0] = -scale[0]

    safe_scale = np.where(scale == 0.0, 1.0, scale)
    rotation = Rotation.from_matrix(basis / safe_scale).as_quat()
    return translation, rotation, scale


def matrix_from_gltf(values: Sequence[float]) -> np.ndarray:
    """Convert a column-major glTF matrix array to a 4x4 numpy matrix."""
    return np.asarray(values, dtype=float).reshape(4, 4).T


def matrix_to_gltf(matrix: np.ndarray) -> List[float]:
    """Convert a 4x4 numpy matrix to a column-major glTF matrix array."""
    return [float(v) for v in np.asarray(matrix, dtype=float).T.flatten()]


# Scene graph ------------------------------------------------------------


@dataclass(eq=False)
class SceneNode:
    """A node in the scene graph with a local TRS transform."""

    name: str = ""
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 0.0, 1.0]))
    scale: np.ndarray = field(default_factory=lambda: np.ones(3))
    is_bone: bool = False
    mesh_index: Optional[int] = None
    skin: Optional["Skin"] = None
    bounds: Optional[Bounds] = None
    has_matrix: bool = False
    source_index: Optional[int] = None
    children: List["SceneNode"] = field(default_factory=list, repr=False)
    parent: Optional["SceneNode"] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.translation = np.asarray(self.translation, dtype=float)
        self.rotation = np.asarray(self.rotation, dtype=float)
        self.scale = np.asarray(self.scale, dtype=float)

    @property
    def is_skinned_mesh(self) -> bool:
        return self.mesh_index is not None and self.skin is not None

    def add(self, child: "SceneNode") -> "SceneNode":
        """Attach a child node and return it."""
        child.parent = self
        self.children.append(child)
        return child

    def traverse(self) -> Iterator["SceneNode"]:
        """Yield this node and all descendants, depth first, parents first."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def local_matrix(self) -> np.ndarray:
        return compose_matrix(self.translation, self.rotation, self.scale)

    def world_matrix(self) -> np.ndarray:
        matrix = self.local_matrix()
        parent = self.parent
        while parent is not None:
            matrix = parent.local_matrix() @ matrix
            parent = parent.parent
        return matrix


@dataclass(eq=False)
class Skin:
    """Joint list and inverse bind matrices of a skinned mesh."""

    joints: List[SceneNode] = field(default_factory=list)
    inverse_bind_matrices: Optional[np.ndarray] = None
    source_index: Optional[int] = None
    modified: bool = False

    def calculate_inverses(self) -> None:
        """Recompute every inverse bind matrix from the joints' current world matrices."""
        if self.joints:
            self.inverse_bind_matrices = np.stack(
                [np.linalg.inv(joint.world_matrix()) for joint in self.joints]
            )
        else:
            self.inverse_bind_matrices = np.zeros((0, 4, 4))
        self.modified = True


@dataclass(eq=False)
class SceneGraph:
    """
    A loaded scene: a virtual root node whose children are the scene roots.

    The adapter that produced the graph may keep its own document in
    ``document``; the graph is owned by a single conversion run.
    """

    root: SceneNode = field(default_factory=lambda: SceneNode(name="Scene"))
    document: Any = field(default=None, repr=False)

    def traverse(self) -> Iterator[SceneNode]:
        """Yield every node of the scene once, excluding the virtual root."""
        for child in self.root.children:
            yield from child.traverse()


class SceneGraphAdapter(Protocol):
    """Load/export capability the converter depends on."""

    def load(self, data: bytes) -> SceneGraph:
        ...

    def export(self, scene: SceneGraph) -> bytes:
        ...


# pygltflib backed adapter ------------------------------------------------


class GltfSceneAdapter:
    """
    Scene graph adapter backed by pygltflib.

    Nodes authored with a matrix are decomposed into TRS for editing and are
    written back as matrices on export, so callers still see the original
    representation in the exported JSON.
    """

    def __init__(self, work_dir: Optional[Path] = None) -> None:
        self.work_dir = work_dir

    def load(self, data: bytes) -> SceneGraph:
        try:
            document = self._load_document(bytes(data))
            return self._build_scene(document)
        except _DOCUMENT_ERRORS as exc:
            raise MalformedContainer(f"Unable to parse GLB container: {exc}") from exc

    def export(self, scene: SceneGraph) -> bytes:
        document = scene.document
        if not isinstance(document, pygltflib.GLTF2):
            raise ValueError("Scene graph was not loaded by GltfSceneAdapter")

        root_matrix = scene.root.local_matrix()
        fold_root = not np.allclose(root_matrix, np.eye(4))
        if fold_root:
            logger.debug("Folding scene root transform into top-level nodes")

        skins: Dict[int, Skin] = {}
        for node in scene.traverse():
            if node.skin is not None:
                skins[id(node.skin)] = node.skin
            if node.source_index is None:
                continue

            gltf_node = document.nodes[node.source_index]
            if fold_root and node.parent is scene.root:
                translation, rotation, scale = decompose_matrix(root_matrix @ node.local_matrix())
            else:
                translation, rotation, scale = node.translation, node.rotation, node.scale
            self._write_transform(gltf_node, node.has_matrix, translation, rotation, scale)

        for skin in skins.values():
            if skin.modified and skin.source_index is not None:
                self._write_inverse_bind_matrices(document, skin)

        return b"".join(document.save_to_bytes())

    # Internal helpers -------------------------------------------------

    def _load_document(self, data: bytes) -> pygltflib.GLTF2:
        try:
            document = pygltflib.GLTF2().load_from_bytes(data)
        except _DOCUMENT_ERRORS as exc:
            logger.debug("In-memory GLB load failed ({}), retrying from a temporary file", exc)
            document = None

        if document is None:
            document = self._load_from_temp_file(data)
        if document is None:
            raise MalformedContainer("Unable to parse GLB container")
        return document

    def _load_from_temp_file(self, data: bytes) -> Optional[pygltflib.GLTF2]:
        with tempfile.NamedTemporaryFile(suffix=".glb", dir=self.work_dir, delete=False) as handle:
            handle.write(data)
            temp_path = Path(handle.name)
        try:
            return pygltflib.GLTF2().load(str(temp_path))
        finally:
            temp_path.unlink(missing_ok=True)

    def _build_scene(self, document: pygltflib.GLTF2) -> SceneGraph:
        gltf_nodes = document.nodes or []
        nodes = [self._build_node(document, index, gltf_node) for index, gltf_node in enumerate(gltf_nodes)]

        for index, gltf_node in enumerate(gltf_nodes):
            for child_index in gltf_node.children or []:
                if not 0 <= child_index < len(nodes):
                    raise MalformedContainer(f"Node {index} references missing child {child_index}")
                child = nodes[child_index]
                if child.parent is not None:
                    raise MalformedContainer(f"Node {child_index} has more than one parent")
                nodes[index].add(child)
        self._check_acyclic(nodes)

        skins: List[Skin] = []
        for skin_index, gltf_skin in enumerate(document.skins or []):
            joints = [nodes[joint_index] for joint_index in gltf_skin.joints or []]
            for joint in joints:
                joint.is_bone = True

            inverse_bind_matrices = None
            if gltf_skin.inverseBindMatrices is not None:
                values = self._read_accessor(document, gltf_skin.inverseBindMatrices)
                inverse_bind_matrices = values.reshape(-1, 4, 4).transpose(0, 2, 1)
            skins.append(
                Skin(joints=joints, inverse_bind_matrices=inverse_bind_matrices, source_index=skin_index)
            )

        for gltf_node, node in zip(gltf_nodes, nodes):
            if gltf_node.skin is not None:
                node.skin = skins[gltf_node.skin]

        scene = SceneGraph(document=document)
        if document.scenes:
            scene_index = document.scene if document.scene is not None else 0
            root_indices = document.scenes[scene_index].nodes or []
        else:
            root_indices = [index for index, node in enumerate(nodes) if node.parent is None]
        for index in root_indices:
            scene.root.add(nodes[index])

        logger.debug(
            "Loaded scene with {} node(s), {} skin(s), {} root(s)",
            len(nodes),
            len(skins),
            len(root_indices),
        )
        return scene

    @staticmethod
    def _check_acyclic(nodes: Sequence[SceneNode]) -> None:
        # Every node has at most one parent here, so a cycle shows up as a
        # parent chain longer than the node count.
        for node in nodes:
            depth = 0
            parent = node.parent
            while parent is not None:
                depth += 1
                if depth > len(nodes):
                    raise MalformedContainer(f"Node hierarchy contains a cycle through '{node.name}'")
                parent = parent.parent

    def _build_node(self, document: pygltflib.GLTF2, index: int, gltf_node: pygltflib.Node) -> SceneNode:
        node = SceneNode(name=gltf_node.name or "", mesh_index=gltf_node.mesh, source_index=index)

        if gltf_node.matrix is not None:
            translation, rotation, scale = decompose_matrix(matrix_from_gltf(gltf_node.matrix))
            node.translation, node.rotation, node.scale = translation, rotation, scale
            node.has_matrix = True
        else:
            if gltf_node.translation is not None:
                node.translation = np.asarray(gltf_node.translation, dtype=float)
            if gltf_node.rotation is not None:
                node.rotation = np.asarray(gltf_node.rotation, dtype=float)
            if gltf_node.scale is not None:
                node.scale = np.asarray(gltf_node.scale, dtype=float)

        if gltf_node.mesh is not None:
            node.bounds = self._mesh_bounds(document, gltf_node.mesh)
        return node

    def _mesh_bounds(self, document: pygltflib.GLTF2, mesh_index: int) -> Optional[Bounds]:
        lows: List[np.ndarray] = []
        highs: List[np.ndarray] = []

        for primitive in document.meshes[mesh_index].primitives:
            position_index = primitive.attributes.POSITION
            if position_index is None:
                continue

            accessor = document.accessors[position_index]
            if accessor.min and accessor.max:
                lows.append(np.asarray(accessor.min[:3], dtype=float))
                highs.append(np.asarray(accessor.max[:3], dtype=float))
                continue

            positions = self._read_accessor(document, position_index)
            if len(positions):
                lows.append(positions[:, :3].min(axis=0))
                highs.append(positions[:, :3].max(axis=0))

        if not lows:
            return None
        return np.min(lows, axis=0), np.max(highs, axis=0)

    def _read_accessor(self, document: pygltflib.GLTF2, accessor_index: int) -> np.ndarray:
        accessor = document.accessors[accessor_index]
        width = _TYPE_WIDTHS[accessor.type]
        if accessor.bufferView is None:
            return np.zeros((accessor.count, width))

        blob = document.binary_blob()
        if not blob:
            raise MalformedContainer(f"Accessor {accessor_index} references a missing binary chunk")

        view = document.bufferViews[accessor.bufferView]
        dtype = np.dtype(_COMPONENT_DTYPES[accessor.componentType]).newbyteorder("<")
        stride = view.byteStride or dtype.itemsize * width
        offset = (view.byteOffset or 0) + (accessor.byteOffset or 0)

        values = np.ndarray(
            shape=(accessor.count, width),
            dtype=dtype,
            buffer=blob,
            offset=offset,
            strides=(stride, dtype.itemsize),
        )
        return values.astype(float)

    def _write_transform(
        self,
        gltf_node: pygltflib.Node,
        has_matrix: bool,
        translation: np.ndarray,
        rotation: np.ndarray,
        scale: np.ndarray,
    ) -> None:
        if has_matrix:
            gltf_node.matrix = matrix_to_gltf(compose_matrix(translation, rotation, scale))
            gltf_node.translation = None
            gltf_node.rotation = None
            gltf_node.scale = None
            return

        gltf_node.matrix = None
        gltf_node.translation = None if np.allclose(translation, 0.0) else [float(v) for v in translation]
        gltf_node.rotation = (
            None if np.allclose(rotation, [0.0, 0.0, 0.0, 1.0]) else [float(v) for v in rotation]
        )
        gltf_node.scale = None if np.allclose(scale, 1.0) else [float(v) for v in scale]

    def _write_inverse_bind_matrices(self, document: pygltflib.GLTF2, skin: Skin) -> None:
        matrices = np.asarray(skin.inverse_bind_matrices, dtype=float)
        payload = matrices.transpose(0, 2, 1).astype("<f4").tobytes()
        gltf_skin = document.skins[skin.source_index]
        blob = bytearray(document.binary_blob() or b"")

        accessor_index = gltf_skin.inverseBindMatrices
        accessor = document.accessors[accessor_index] if accessor_index is not None else None
        view = (
            document.bufferViews[accessor.bufferView]
            if accessor is not None and accessor.bufferView is not None
            else None
        )

        writable_in_place = (
            view is not None
            and accessor.componentType == pygltflib.FLOAT
            and accessor.type == pygltflib.MAT4
            and accessor.count == len(matrices)
            and view.byteStride in (None, 64)
        )
        if writable_in_place:
            start = (view.byteOffset or 0) + (accessor.byteOffset or 0)
            blob[start:start + len(payload)] = payload
        else:
            blob += b"\x00" * ((4 - len(blob) % 4) % 4)
            document.bufferViews.append(
                pygltflib.BufferView(buffer=0, byteOffset=len(blob), byteLength=len(payload))
            )
            blob += payload
            document.accessors.append(
                pygltflib.Accessor(
                    bufferView=len(document.bufferViews) - 1,
                    byteOffset=0,
                    componentType=pygltflib.FLOAT,
                    count=len(matrices),
                    type=pygltflib.MAT4,
                )
            )
            gltf_skin.inverseBindMatrices = len(document.accessors) - 1

        document.set_binary_blob(bytes(blob))
        if document.buffers:
            document.buffers[0].byteLength = len(blob)
        else:
            document.buffers = [pygltflib.Buffer(byteLength=len(blob))]
        logger.debug("Wrote {} inverse bind matrices for skin {}", len(matrices), skin.source_index)


@lru_cache(maxsize=1)
def get_scene_adapter(work_dir: Optional[Path] = None) -> GltfSceneAdapter:
    """Return the shared default scene graph adapter."""
    return GltfSceneAdapter(work_dir=work_dir)
