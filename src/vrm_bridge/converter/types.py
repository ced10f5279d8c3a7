"""
Data models and types for the VRM Bridge.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


class VRMConversionError(RuntimeError):
    """Base class for fatal conversion errors."""


@dataclass
class ConversionOptions:
    """Caller supplied options for a GLB to VRM conversion."""

    avatar_name: str = "Converted Avatar"
    author: str = "Engine"
    version: str = "1.0"
    save: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "avatar_name": self.avatar_name,
            "author": self.author,
            "version": self.version,
            "save": self.save,
        }


@dataclass
class BoneMapping:
    """Humanoid slot to original bone name, plus mapping warnings."""

    human_bones: Dict[str, str] = field(default_factory=dict)
    missing_required: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.human_bones)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "human_bones": dict(self.human_bones),
            "missing_required": list(self.missing_required),
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class ConversionResult:
    """Result of a GLB to VRM conversion."""

    vrm: bytes
    warnings: List[str] = field(default_factory=list)
    mapped_bones: int = 0
    saved_path: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization (without the binary payload)."""
        return {
            "size": len(self.vrm),
            "warnings": list(self.warnings),
            "mapped_bones": self.mapped_bones,
            "saved_path": self.saved_path,
        }
