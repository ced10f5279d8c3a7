"""
Bone Retargeting Module

Maps the bones of an arbitrary humanoid rig onto the VRM 1.0 humanoid bone
schema.

Each source bone name is resolved to a canonical bone name (exact match
first, then the variation tables), and the canonical name is translated to
its humanoid slot. The result maps humanoid slot -> original bone name;
node indices are only resolved after export.
"""

from typing import Iterable, Optional

import numpy as np
from loguru import logger

from vrm_bridge.converter.bone_tables import (
    CANONICAL_TO_HUMANOID,
    REQUIRED_HUMANOID_BONES,
    find_canonical_bone_name,
)
from vrm_bridge.converter.scene_graph import SceneNode
from vrm_bridge.converter.types import BoneMapping

HIPS_MIN_LENGTH_SQUARED = 0.0001
DEFAULT_HIPS_TRANSLATION = (0.0, 0.9, 0.0)


class BoneRetargeter:
    """
    Resolves source bone names to VRM humanoid bones.

    Key operations:
    1. Resolve each bone name to a canonical name (exact, then fuzzy)
    2. Translate canonical names to humanoid slots
    3. Report missing required slots
    4. Make sure the hips bone carries a usable local translation
    """

    def resolve_canonical_name(self, name: str) -> Optional[str]:
        """
        Resolve a bone name to its canonical bone name.

        Args:
            name: Bone name as it appears in the source asset

        Returns:
            Canonical bone name, or None if the name is unknown
        """
        if name in CANONICAL_TO_HUMANOID:
            return name
        return find_canonical_bone_name(name)

    def map_bones_to_humanoid(self, bones: Iterable[SceneNode]) -> BoneMapping:
        """
        Map each bone to a VRM humanoid slot.

        When two bones resolve to the same slot the later one (in traversal
        order) wins and the displaced bone is logged. Bones that do not
        resolve are ignored.

        Args:
            bones: Bones in scene traversal order

        Returns:
            BoneMapping of humanoid slot -> original bone name
        """
        mapping = BoneMapping()
        seen_names = set()

        for bone in bones:
            if bone.name in seen_names:
                continue
            seen_names.add(bone.name)

            canonical = self.resolve_canonical_name(bone.name)
            if canonical is None:
                logger.debug("Bone '{}' has no humanoid counterpart", bone.name)
                continue

            slot = CANONICAL_TO_HUMANOID[canonical]
            previous = mapping.human_bones.get(slot)
            if previous is not None:
                logger.warning("Humanoid bone {}: '{}' replaces '{}'", slot, bone.name, previous)
            mapping.human_bones[slot] = bone.name

        mapping.missing_required = [slot for slot in REQUIRED_HUMANOID_BONES if slot not in mapping.human_bones]
        if mapping.missing_required:
            mapping.warnings.append(
                f"Missing required VRM bones: {', '.join(mapping.missing_required)}"
            )

        logger.info(
            "Mapped {} humanoid bone(s), {} required missing",
            len(mapping.human_bones),
            len(mapping.missing_required),
        )
        return mapping

    def ensure_hips_translation(self, mapping: BoneMapping, bones: Iterable[SceneNode]) -> Optional[str]:
        """
        Give the hips bone a default height if it sits at its local origin.

        Humanoid animation playback breaks on a hips bone without local
        translation.

        Returns:
            A warning when the default was applied, otherwise None
        """
        hips_name = mapping.human_bones.get("hips")
        if hips_name is None:
            return None

        hips = next((bone for bone in bones if bone.name == hips_name), None)
        if hips is None:
            return None

        if float(np.dot(hips.translation, hips.translation)) >= HIPS_MIN_LENGTH_SQUARED:
            return None

        hips.translation = np.array(DEFAULT_HIPS_TRANSLATION)
        logger.info("Hips bone '{}' had no local translation, applied default", hips_name)
        return "Hips bone had no local translation, set default Y=0.9m"
