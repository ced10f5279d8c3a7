"""
VRM Export Module

Two-pass export of a retargeted scene into a VRM 1.0 container:

1. Export the scene with the scene graph adapter to a plain GLB.
2. Parse the GLB and index the exported JSON nodes by name. This is the
   ordering VRM loaders will use; the adapter's ordering is not guaranteed
   to match scene traversal order, so indices are never taken from the
   loaded scene.
3. Resolve humanoid bones to exported node indices.
4. Inject the VRMC_vrm extension.
5. Replace matrix-only nodes with explicit TRS (VRM requires TRS).
6. Reassemble the GLB with the untouched binary chunk.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from loguru import logger

from vrm_bridge.converter.container import assemble_container, parse_container
from vrm_bridge.converter.scene_graph import SceneGraph, SceneGraphAdapter, decompose_matrix, matrix_from_gltf
from vrm_bridge.converter.types import ConversionOptions

VRM_EXTENSION = "VRMC_vrm"
VRM_SPEC_VERSION = "1.0"
VRM_LICENSE_URL = "https://vrm.dev/licenses/1.0/"


@dataclass
class ExportResult:
    """Binary VRM plus warnings raised while exporting."""

    vrm: bytes
    warnings: List[str] = field(default_factory=list)
    human_bones: Dict[str, int] = field(default_factory=dict)


def build_node_index_table(gltf_json: Mapping[str, Any]) -> Dict[str, int]:
    """
    Map node names to their index in the glTF ``nodes`` array.

    The first node wins when several share a name; unnamed nodes are skipped.
    """
    table: Dict[str, int] = {}
    for index, node in enumerate(gltf_json.get("nodes") or []):
        name = node.get("name") if isinstance(node, dict) else None
        if isinstance(name, str):
            table.setdefault(name, index)
    return table


def build_vrm_meta(options: ConversionOptions) -> Dict[str, Any]:
    """Build the VRM 1.0 meta block, filling blanks with placeholders."""
    defaults = ConversionOptions()
    return {
        "metaVersion": "1",
        "name": options.avatar_name or defaults.avatar_name,
        "version": options.version or defaults.version,
        "authors": [options.author or defaults.author],
        "licenseUrl": VRM_LICENSE_URL,
        "avatarPermission": "everyone",
        "commercialUsage": "personalNonProfit",
        "allowExcessivelyViolentUsage": False,
        "allowExcessivelySexualUsage": False,
        "allowPoliticalOrReligiousUsage": False,
        "allowAntisocialOrHateUsage": False,
        "creditNotation": "required",
        "allowRedistribution": False,
        "modification": "prohibited",
    }


def normalize_node_transforms(gltf_json: Dict[str, Any]) -> int:
    """
    Replace matrix-only nodes with translation/rotation/scale.

    Returns:
        Number of nodes converted
    """
    converted = 0
    for node in gltf_json.get("nodes") or []:
        if node.get("matrix") is None:
            node.pop("matrix", None)
            continue
        if node.get("translation") is not None:
            continue

        translation, rotation, scale = decompose_matrix(matrix_from_gltf(node["matrix"]))
        node["translation"] = [float(v) for v in translation]
        node["rotation"] = [float(v) for v in rotation]
        node["scale"] = [float(v) for v in scale]
        del node["matrix"]
        converted += 1
    return converted


class VRMExporter:
    """Exports a scene graph as a VRM 1.0 binary."""

    def __init__(self, adapter: SceneGraphAdapter):
        """
        Initialize the exporter.

        Args:
            adapter: Scene graph adapter used for the first export pass
        """
        self.adapter = adapter

    def export(
        self,
        scene: SceneGraph,
        human_bones: Mapping[str, str],
        options: ConversionOptions,
    ) -> ExportResult:
        """
        Export the scene and inject VRM humanoid metadata.

        Args:
            scene: Retargeted scene graph
            human_bones: Humanoid slot -> original bone name
            options: Descriptive metadata for the VRM meta block

        Returns:
            ExportResult with the final VRM bytes
        """
        warnings: List[str] = []

        glb = self.adapter.export(scene)
        json_text, bin_chunk = parse_container(glb)
        gltf_json = json.loads(json_text)

        node_indices = build_node_index_table(gltf_json)

        resolved: Dict[str, int] = {}
        for slot, bone_name in human_bones.items():
            index = node_indices.get(bone_name)
            if index is None:
                warnings.append(f'Bone "{bone_name}" ({slot}) not found in exported glTF nodes')
                continue
            resolved[slot] = index

        extensions = gltf_json.setdefault("extensions", {})
        extensions[VRM_EXTENSION] = {
            "specVersion": VRM_SPEC_VERSION,
            "humanoid": {"humanBones": {slot: {"node": index} for slot, index in resolved.items()}},
            "meta": build_vrm_meta(options),
        }

        extensions_used = gltf_json.setdefault("extensionsUsed", [])
        if VRM_EXTENSION not in extensions_used:
            extensions_used.append(VRM_EXTENSION)

        converted = normalize_node_transforms(gltf_json)
        if converted:
            logger.debug("Converted {} matrix node(s) to TRS", converted)

        vrm = assemble_container(json.dumps(gltf_json, separators=(",", ":")), bin_chunk)
        logger.info(
            "Exported VRM ({} bytes) with {} humanoid bone(s)",
            len(vrm),
            len(resolved),
        )
        return ExportResult(vrm=vrm, warnings=warnings, human_bones=resolved)
