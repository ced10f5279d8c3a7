from __future__ import annotations

from typing import Optional

from loguru import logger

from vrm_bridge.config import AppSettings, get_settings
from vrm_bridge.converter import ConversionOptions, ConversionResult, VRMConverter
from vrm_bridge.converter.persistence import AvatarPersister
from vrm_bridge.converter.scene_graph import SceneGraphAdapter, get_scene_adapter
from vrm_bridge.models import ConversionRequest, ConversionSummary


class ConversionService:
    """Coordinate GLB to VRM conversions for the API and CLI."""

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        adapter: Optional[SceneGraphAdapter] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.converter = VRMConverter(
            adapter=adapter or get_scene_adapter(self.settings.work_dir),
            target_height=self.settings.target_height,
            persister=AvatarPersister(self.settings.avatars_dir),
        )

    def convert(self, data: bytes, request: Optional[ConversionRequest] = None) -> ConversionResult:
        request = request or ConversionRequest()
        logger.info("Starting conversion for {name} ({size} bytes)", name=request.avatar_name, size=len(data))

        if not data:
            msg = "GLB payload must not be empty"
            raise ValueError(msg)

        result = self.converter.run(data, self._options(request))

        logger.info(
            "Conversion complete: {} bone(s) mapped, {} warning(s)",
            result.mapped_bones,
            len(result.warnings),
        )
        for warning in result.warnings:
            logger.debug("Conversion warning: {}", warning)
        return result

    def summarize(self, result: ConversionResult) -> ConversionSummary:
        return ConversionSummary(
            status="COMPLETED",
            mapped_bones=result.mapped_bones,
            warnings=list(result.warnings),
            saved_path=result.saved_path,
        )

    # Internal helpers -------------------------------------------------

    def _options(self, request: ConversionRequest) -> ConversionOptions:
        return ConversionOptions(
            avatar_name=request.avatar_name,
            author=request.author or self.settings.default_author,
            version=request.version,
            save=request.save,
        )


__all__ = [
    "ConversionService",
]
