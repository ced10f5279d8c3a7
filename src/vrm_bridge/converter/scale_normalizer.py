"""
Scale Normalization Module

Brings an avatar to a canonical height before export.

VRM consumers apply humanoid bone transforms directly and expect them in
unscaled space, so the scale factor is baked into the bone translations of
the armature rather than left on a wrapping node. Work is split in two
phases: plan() measures the scene and decides what to do without touching
it, apply() performs the mutation.
"""

from dataclasses import dataclass
from itertools import product
from typing import List, Optional

import numpy as np
from loguru import logger

from vrm_bridge.converter.scene_graph import Bounds, SceneGraph, SceneNode
from vrm_bridge.converter.skeleton import Skeleton

TARGET_HEIGHT = 1.6  # metres, average humanoid height
SCALE_TOLERANCE = 0.05

SKIP_DEGENERATE = "degenerate"
SKIP_WITHIN_TOLERANCE = "within_tolerance"


@dataclass(frozen=True)
class ScalePlan:
    """Outcome of measuring a scene against the target height."""

    factor: float = 1.0
    height: float = 0.0
    armature: Optional[SceneNode] = None
    skipped: Optional[str] = None

    @property
    def should_apply(self) -> bool:
        return self.skipped is None


class ScaleNormalizer:
    """
    Rescales a scene so its bounding box height matches a target height.

    Preferred path bakes the scale into every bone below the armature node
    and resets the armature scale to identity. Scenes without an identifiable
    armature fall back to scaling the scene root.
    """

    def __init__(self, target_height: float = TARGET_HEIGHT, tolerance: float = SCALE_TOLERANCE):
        """
        Initialize the scale normalizer.

        Args:
            target_height: Height (in scene units) the avatar should end up at
            tolerance: Relative deviation from 1.0 under which scaling is skipped
        """
        self.target_height = target_height
        self.tolerance = tolerance

    def compute_bounds(self, scene: SceneGraph) -> Optional[Bounds]:
        """
        Compute the world space axis-aligned bounding box of all geometry.

        Each node's local geometry box is transformed corner by corner with
        the node's world matrix. Returns None when the scene has no geometry.
        """
        corners: List[np.ndarray] = []

        for node in scene.traverse():
            if node.bounds is None:
                continue

            low, high = node.bounds
            world = node.world_matrix()
            for pick in product((0, 1), repeat=3):
                local = np.array([high[i] if pick[i] else low[i] for i in range(3)] + [1.0])
                corners.append((world @ local)[:3])

        if not corners:
            return None

        stacked = np.stack(corners)
        return stacked.min(axis=0), stacked.max(axis=0)

    def plan(self, scene: SceneGraph) -> ScalePlan:
        """
        Decide how (and whether) to rescale the scene.

        Args:
            scene: Loaded scene graph; not modified

        Returns:
            ScalePlan with the scale factor and the armature to bake into
        """
        bounds = self.compute_bounds(scene)
        height = float(bounds[1][1] - bounds[0][1]) if bounds is not None else 0.0

        if height <= 0:
            logger.debug("Scene height is {}, skipping scale normalization", height)
            return ScalePlan(height=height, skipped=SKIP_DEGENERATE)

        factor = self.target_height / height
        if abs(factor - 1.0) < self.tolerance:
            logger.debug("Scene height {:.3f} is within tolerance of target", height)
            return ScalePlan(factor=factor, height=height, skipped=SKIP_WITHIN_TOLERANCE)

        return ScalePlan(factor=factor, height=height, armature=self.find_armature(scene))

    def apply(self, scene: SceneGraph, skeleton: Skeleton, plan: ScalePlan) -> List[str]:
        """
        Apply a scale plan to the scene.

        Args:
            scene: Scene graph to mutate
            skeleton: Extracted skeleton of the same scene
            plan: Plan produced by plan()

        Returns:
            Warnings to surface to the caller; skipped plans add none
        """
        if not plan.should_apply:
            return []

        if plan.armature is not None:
            logger.info(
                "Baking scale factor {:.4f} into bones of '{}' (height {:.3f})",
                plan.factor,
                plan.armature.name,
                plan.height,
            )
            self._bake_armature_scale(plan.armature, skeleton, plan.factor)
        else:
            logger.warning(
                "No armature found, scaling whole scene by {:.4f} (lower fidelity)",
                plan.factor,
            )
            scene.root.scale = scene.root.scale * plan.factor

        return []

    def find_armature(self, scene: SceneGraph) -> Optional[SceneNode]:
        """
        Find the top-level node that roots the bone hierarchy.

        A top-level node qualifies when it is not itself a bone and is either
        named like an armature or has bone descendants.
        """
        for child in scene.root.children:
            if child.is_bone:
                continue
            if "armature" in child.name.lower():
                return child
            if any(node.is_bone for node in child.traverse()):
                return child
        return None

    def _bake_armature_scale(self, armature: SceneNode, skeleton: Skeleton, factor: float) -> None:
        # The armature's own scale is baked along with the new factor.
        effective_scale = armature.scale * factor

        for node in armature.traverse():
            if node is armature:
                continue
            if node.is_bone:
                node.translation = node.translation * effective_scale

        armature.scale = np.ones(3)

        skinned_mesh = skeleton.skinned_mesh
        if skinned_mesh is not None and skinned_mesh.skin is not None:
            skinned_mesh.skin.calculate_inverses()
