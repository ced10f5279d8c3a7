"""
Avatar persistence: writes converted VRM files to an avatars directory.
"""

import re
import time
from pathlib import Path
from typing import Optional

from loguru import logger

from vrm_bridge.converter.types import VRMConversionError

MAX_NAME_LENGTH = 64
DEFAULT_FILE_STEM = "converted"

_UNSAFE_CHARACTERS = re.compile(r"[^a-zA-Z0-9_-]")


class PersistFailure(VRMConversionError):
    """Raised when a converted avatar cannot be written to disk."""


def sanitize_avatar_name(avatar_name: Optional[str]) -> str:
    """Turn a display name into a filesystem-safe, length-capped file stem."""
    return _UNSAFE_CHARACTERS.sub("_", avatar_name or DEFAULT_FILE_STEM)[:MAX_NAME_LENGTH]


class AvatarPersister:
    """Saves VRM bytes under a caller-resolved directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def save(self, data: bytes, avatar_name: Optional[str] = None) -> Path:
        """
        Write the VRM to ``<directory>/<safe-name>-<epoch-ms>.vrm``.

        Returns:
            Absolute path of the written file

        Raises:
            PersistFailure: If the directory or file cannot be written
        """
        file_name = f"{sanitize_avatar_name(avatar_name)}-{int(time.time() * 1000)}.vrm"
        target = self.directory.expanduser().resolve() / file_name

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            logger.error("Unable to save avatar to {}: {}", target, exc)
            raise PersistFailure(f"Unable to save avatar to {target}: {exc}") from exc

        logger.info("Saved avatar to {}", target)
        return target
