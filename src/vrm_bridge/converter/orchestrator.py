"""
VRM Converter Orchestrator

Main entry point for the GLB to VRM pipeline.
Coordinates all modules to turn an arbitrary humanoid GLB into a VRM 1.0
avatar.

Workflow:
1. Validate the container and load it into a scene graph
2. Extract the skeleton
3. Plan scale normalization and the humanoid bone mapping
4. Apply the scale plan and fix up the hips bone
5. Two-pass export with VRMC_vrm injection
6. Optionally persist the result
"""

from typing import List, Optional

from loguru import logger

from vrm_bridge.converter.container import parse_container
from vrm_bridge.converter.exporter import VRMExporter
from vrm_bridge.converter.persistence import AvatarPersister
from vrm_bridge.converter.retargeter import BoneRetargeter
from vrm_bridge.converter.scale_normalizer import TARGET_HEIGHT, ScaleNormalizer
from vrm_bridge.converter.scene_graph import SceneGraphAdapter, get_scene_adapter
from vrm_bridge.converter.skeleton import extract_skeleton
from vrm_bridge.converter.types import ConversionOptions, ConversionResult


class VRMConverter:
    """
    Main orchestrator for GLB to VRM conversion.

    A converter holds no per-conversion state; every run() works on its own
    scene graph and warning list, so one instance can serve concurrent calls.
    """

    def __init__(
        self,
        adapter: Optional[SceneGraphAdapter] = None,
        target_height: float = TARGET_HEIGHT,
        persister: Optional[AvatarPersister] = None,
    ):
        """
        Initialize the VRM converter.

        Args:
            adapter: Scene graph adapter (defaults to the pygltflib adapter)
            target_height: Canonical avatar height in scene units
            persister: Where to save avatars when options.save is set
        """
        self.adapter = adapter or get_scene_adapter()
        self.persister = persister

        # Initialize all modules
        self.normalizer = ScaleNormalizer(target_height=target_height)
        self.retargeter = BoneRetargeter()
        self.exporter = VRMExporter(self.adapter)

    def run(self, data: bytes, options: Optional[ConversionOptions] = None) -> ConversionResult:
        """
        Convert a GLB buffer into a VRM 1.0 buffer.

        Args:
            data: Source GLB bytes
            options: Avatar metadata and persistence options

        Returns:
            ConversionResult with the VRM bytes and accumulated warnings

        Raises:
            MalformedContainer: If the source is not a GLB container
            NoSkeletonFound: If the source has no bones
            PersistFailure: If saving was requested and failed
        """
        options = options or ConversionOptions()
        warnings: List[str] = []

        # Step 1: Validate and load
        logger.info("Step 1: Loading GLB ({} bytes)...", len(data))
        parse_container(data)
        scene = self.adapter.load(data)

        # Step 2: Extract skeleton
        logger.info("Step 2: Extracting skeleton...")
        skeleton = extract_skeleton(scene)
        warnings.extend(skeleton.warnings)

        # Step 3: Plan (no mutation yet)
        logger.info("Step 3: Planning scale and bone mapping...")
        scale_plan = self.normalizer.plan(scene)
        bone_mapping = self.retargeter.map_bones_to_humanoid(skeleton.bones)

        # Step 4: Apply
        logger.info("Step 4: Applying scale (factor {:.4f}, skipped: {})", scale_plan.factor, scale_plan.skipped)
        warnings.extend(self.normalizer.apply(scene, skeleton, scale_plan))
        warnings.extend(bone_mapping.warnings)

        hips_warning = self.retargeter.ensure_hips_translation(bone_mapping, skeleton.bones)
        if hips_warning:
            warnings.append(hips_warning)

        # Step 5: Export
        logger.info("Step 5: Exporting VRM...")
        export = self.exporter.export(scene, bone_mapping.human_bones, options)
        warnings.extend(export.warnings)

        # Step 6: Persist
        saved_path: Optional[str] = None
        if options.save:
            persister = self.persister or self._default_persister()
            saved_path = str(persister.save(export.vrm, options.avatar_name))

        if warnings:
            logger.warning("Conversion finished with {} warning(s)", len(warnings))
        else:
            logger.info("Conversion complete!")

        return ConversionResult(
            vrm=export.vrm,
            warnings=warnings,
            mapped_bones=len(bone_mapping),
            saved_path=saved_path,
        )

    def _default_persister(self) -> AvatarPersister:
        from vrm_bridge.config import get_settings

        return AvatarPersister(get_settings().avatars_dir)


def convert_glb_to_vrm(data: bytes, options: Optional[ConversionOptions] = None) -> ConversionResult:
    """Convenience wrapper for one-shot conversion."""
    return VRMConverter().run(data, options)
