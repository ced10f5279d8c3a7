"""
Skeleton Extraction Module

Collects the bones and the skinned mesh of a loaded scene graph.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from vrm_bridge.converter.scene_graph import SceneGraph, SceneNode
from vrm_bridge.converter.types import VRMConversionError

NO_SKINNED_MESH_WARNING = "No SkinnedMesh found, VRM will have skeleton but no skinned geometry"


class NoSkeletonFound(VRMConversionError):
    """Raised when a scene contains no bones."""


@dataclass
class Skeleton:
    """Bones of a scene in traversal order and its (first) skinned mesh."""

    bones: List[SceneNode] = field(default_factory=list)
    skinned_mesh: Optional[SceneNode] = None
    warnings: List[str] = field(default_factory=list)

    def find_bone(self, name: str) -> Optional[SceneNode]:
        """Return the first bone with the given name."""
        for bone in self.bones:
            if bone.name == name:
                return bone
        return None


def extract_skeleton(scene: SceneGraph) -> Skeleton:
    """
    Walk the scene and collect every bone plus the first skinned mesh.

    Bones are the nodes the adapter flagged as skin joints; names play no
    part in the decision.

    Raises:
        NoSkeletonFound: If the scene has no bones at all.
    """
    skeleton = Skeleton()

    for node in scene.traverse():
        if node.is_bone:
            skeleton.bones.append(node)
        if node.is_skinned_mesh and skeleton.skinned_mesh is None:
            skeleton.skinned_mesh = node

    if not skeleton.bones:
        raise NoSkeletonFound("No bones found in GLB, cannot create VRM skeleton")

    if skeleton.skinned_mesh is None:
        skeleton.warnings.append(NO_SKINNED_MESH_WARNING)

    logger.info(
        "Extracted {} bone(s), skinned mesh: {}",
        len(skeleton.bones),
        skeleton.skinned_mesh.name if skeleton.skinned_mesh is not None else None,
    )
    return skeleton
