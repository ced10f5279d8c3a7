"""
VRM Converter

Core system for turning arbitrary humanoid GLB assets into VRM 1.0 avatars.
Supports Meshy, Mixamo, Rigify and Biped style bone naming.
"""

from vrm_bridge.converter.container import MalformedContainer
from vrm_bridge.converter.orchestrator import VRMConverter, convert_glb_to_vrm
from vrm_bridge.converter.persistence import PersistFailure
from vrm_bridge.converter.skeleton import NoSkeletonFound
from vrm_bridge.converter.types import ConversionOptions, ConversionResult, VRMConversionError

__all__ = [
    "VRMConverter",
    "convert_glb_to_vrm",
    "ConversionOptions",
    "ConversionResult",
    "VRMConversionError",
    "MalformedContainer",
    "NoSkeletonFound",
    "PersistFailure",
]
